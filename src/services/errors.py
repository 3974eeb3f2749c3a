"""Error types shared by the ingestion and analysis services."""

import re

# A 429 status as browser and HTTP layers spell it, not a bare "429" in a URL
_RATE_LIMIT_TEXT = re.compile(
    r"^\s*429\b|\b(?:HTTP|status|code)\W{0,3}429\b|\bToo Many Requests\b",
    re.IGNORECASE,
)


class TrendPulseError(Exception):
    """Base class for all trendpulse errors."""


class NavigationError(TrendPulseError):
    """A page could not be loaded after exhausting navigation attempts."""

    def __init__(self, url: str, message: str, attempts: int = 0, status: int | None = None):
        self.url = url
        self.message = message
        self.attempts = attempts
        self.status = status
        super().__init__(f"{message} ({url})")


class RateLimitError(NavigationError):
    """The remote source answered with HTTP 429 or an equivalent signal."""


class BrowserLaunchError(TrendPulseError):
    """A headless browser session could not be acquired."""


class ExtractionError(TrendPulseError):
    """A single element did not yield its required fields."""


class PersistenceError(TrendPulseError):
    """A store operation failed."""


def is_rate_limited(error: BaseException) -> bool:
    """Return True when an error signals rate limiting.

    Besides an explicit RateLimitError or a 429 status attribute, an error
    whose message reports a 429 status counts, since browser and HTTP layers
    report it as plain text. The URL of a NavigationError is not inspected.
    """
    if isinstance(error, RateLimitError):
        return True
    if getattr(error, "status", None) == 429:
        return True
    text = getattr(error, "message", None)
    if not isinstance(text, str):
        text = str(error)
    return bool(_RATE_LIMIT_TEXT.search(text))
