"""Configuration loading and validation for trendpulse."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from rich.logging import RichHandler

from utils.logging import quiet_noisy_loggers, setup_logging as setup_structured_logging

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / ".env")

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_config() -> dict:
    """Load configuration from environment variables."""

    # Helper function to resolve paths relative to project root
    def resolve_path(path: str | None, default_relative: str) -> str:
        if not path:
            return str(PROJECT_ROOT / default_relative)
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    config = {
        # Persistence
        "database_path": resolve_path(os.getenv("DATABASE_PATH"), "data/trendpulse.db"),
        # Browser / navigation
        "browser_headless": os.getenv("BROWSER_HEADLESS", "true").lower() == "true",
        "navigation_timeout_ms": int(os.getenv("NAVIGATION_TIMEOUT_MS", "90000")),
        "fetch_max_attempts": int(os.getenv("FETCH_MAX_ATTEMPTS", "3")),
        "fetch_retry_delay_seconds": float(os.getenv("FETCH_RETRY_DELAY_SECONDS", "3")),
        "settle_delay_seconds": float(os.getenv("SETTLE_DELAY_SECONDS", "2")),
        "trends_settle_delay_seconds": float(os.getenv("TRENDS_SETTLE_DELAY_SECONDS", "10")),
        # Extraction
        "max_videos_per_page": int(os.getenv("MAX_VIDEOS_PER_PAGE", "20")),
        "max_keywords": int(os.getenv("MAX_KEYWORDS", "15")),
        "niche_candidates": os.getenv("NICHE_CANDIDATES"),  # comma-separated, ordered
        # Scheduler
        "scheduler_enabled": os.getenv("SCHEDULER_ENABLED", "false").lower() == "true",
        "scheduler_niches": os.getenv("SCHEDULER_NICHES"),  # comma-separated
        "dedup_batch_size": int(os.getenv("DEDUP_BATCH_SIZE", "100")),
        # Keyword suggestions
        "suggestion_timeout_seconds": float(os.getenv("SUGGESTION_TIMEOUT_SECONDS", "5")),
        "cache_enabled": os.getenv("CACHE_ENABLED", "true").lower() == "true",
        "cache_ttl_seconds": int(os.getenv("CACHE_TTL_SECONDS", "3600")),
        "cache_dir": resolve_path(os.getenv("CACHE_DIR"), ".cache/suggestions"),
        # Logging
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": os.getenv("LOG_JSON", "false").lower() == "true",
    }

    return config


def validate_config(config: dict) -> list[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if config.get("fetch_max_attempts", 1) < 1:
        errors.append("FETCH_MAX_ATTEMPTS must be at least 1")

    if config.get("navigation_timeout_ms", 1) <= 0:
        errors.append("NAVIGATION_TIMEOUT_MS must be positive")

    if config.get("suggestion_timeout_seconds", 1) <= 0:
        errors.append("SUGGESTION_TIMEOUT_SECONDS must be positive")

    if config.get("max_videos_per_page", 1) < 1:
        errors.append("MAX_VIDEOS_PER_PAGE must be at least 1")

    if config.get("dedup_batch_size", 1) < 1:
        errors.append("DEDUP_BATCH_SIZE must be at least 1")

    level = str(config.get("log_level", "INFO")).upper()
    if level not in VALID_LOG_LEVELS:
        errors.append(f"LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}")

    db_path = config.get("database_path")
    if db_path:
        try:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Cannot create database folder: {e}")

    return errors


def setup_logging(log_level: str = "INFO", log_file: str | None = None) -> None:
    """Set up logging configuration with Rich for terminal output."""
    # Clear any existing handlers
    logging.root.handlers.clear()

    handlers: list[logging.Handler] = [
        RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            markup=False,  # Disable markup to avoid conflicts
        )
    ]

    # Optional plain text log file
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        handlers=handlers,
        format="%(message)s",
    )

    quiet_noisy_loggers()


def configure_logging(config: dict, log_file: str | None = None) -> None:
    """Install logging from config: structlog JSON lines when LOG_JSON is set, Rich otherwise."""
    log_level = str(config.get("log_level", "INFO"))
    if config.get("log_json"):
        setup_structured_logging(log_level, json_output=True, log_file=log_file)
    else:
        setup_logging(log_level, log_file=log_file)
