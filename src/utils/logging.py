"""Structured logging configuration for trendpulse.

Uses structlog for JSON-capable logging. Every event logged while a scrape
job runs carries the job id ("gaming:week") plus its niche and time period.
"""

import logging
import sys
from contextvars import ContextVar

import structlog

# Id of the scrape job running in this context, e.g. "gaming:week"
current_job_id: ContextVar[str | None] = ContextVar("current_job_id", default=None)

NOISY_LOGGERS = (
    "urllib3.connectionpool",
    "requests.packages.urllib3.connectionpool",
    "apscheduler",
    "apscheduler.scheduler",
    "apscheduler.executors.default",
    "asyncio",
    "playwright",
)


def add_job_id(_logger, _method_name, event_dict):
    """Structlog processor adding job_id, niche and time_period of the running job."""
    job_id = current_job_id.get()
    if job_id:
        niche, _, time_period = job_id.rpartition(":")
        event_dict["job_id"] = job_id
        event_dict.setdefault("niche", niche)
        event_dict.setdefault("time_period", time_period)
    return event_dict


def quiet_noisy_loggers() -> None:
    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def setup_logging(log_level: str = "INFO", json_output: bool = False, log_file: str | None = None) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, render JSON lines; otherwise colored console output
        log_file: Optional file receiving the same rendering as the console
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_job_id,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Services log through logging.getLogger(__name__); foreign_pre_chain
    # runs the shared processors on those records too.
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper()))

    quiet_noisy_loggers()


def set_job_context(job_id: str) -> None:
    """Set the current job ID for log correlation.

    Args:
        job_id: "niche:period" id included in all subsequent log events
    """
    current_job_id.set(job_id)


def clear_job_context() -> None:
    """Clear the current job context."""
    current_job_id.set(None)
