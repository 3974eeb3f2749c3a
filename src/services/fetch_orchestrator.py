"""Headless-browser page fetching with bounded retries.

One navigate() call owns one browser session from launch to close. The page
is requested up to max_attempts times, each attempt a fresh goto(), and the
rendered HTML is captured only after a settle delay since listing pages keep
rendering after the load event.
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from services.browser_fingerprint import BrowserFingerprint
from services.errors import BrowserLaunchError, NavigationError, RateLimitError
from utils.config import load_config

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_SECONDS = 3.0
DEFAULT_NAVIGATION_TIMEOUT_MS = 90_000
DEFAULT_SETTLE_DELAY_SECONDS = 2.0

BOT_CHALLENGE_MARKERS = (
    "unusual traffic",
    "are you a robot",
    "recaptcha",
    "captcha",
    "before you continue",
    "checking your browser",
)


@dataclass
class FetchConfig:
    """Navigation settings for one kind of page."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS
    settle_delay_seconds: float = DEFAULT_SETTLE_DELAY_SECONDS
    wait_until: str = "domcontentloaded"
    wait_for_selector: Optional[str] = None
    selector_timeout_ms: int = 30_000
    scroll_steps: int = 2
    scroll_distance_px: int = 800
    scroll_pause_seconds: float = 0.8
    headless: bool = True

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        self.retry_delay_seconds = max(0.0, self.retry_delay_seconds)
        self.settle_delay_seconds = max(0.0, self.settle_delay_seconds)

    @classmethod
    def from_config(cls, config: Optional[dict] = None, **overrides) -> "FetchConfig":
        """Create FetchConfig from application config or environment variables.

        Keyword overrides win over both.
        """
        if config is None:
            config = load_config()

        values = {
            "max_attempts": config.get(
                "fetch_max_attempts",
                int(os.getenv("FETCH_MAX_ATTEMPTS", str(DEFAULT_MAX_ATTEMPTS))),
            ),
            "retry_delay_seconds": config.get(
                "fetch_retry_delay_seconds",
                float(os.getenv("FETCH_RETRY_DELAY_SECONDS", str(DEFAULT_RETRY_DELAY_SECONDS))),
            ),
            "navigation_timeout_ms": config.get(
                "navigation_timeout_ms",
                int(os.getenv("NAVIGATION_TIMEOUT_MS", str(DEFAULT_NAVIGATION_TIMEOUT_MS))),
            ),
            "settle_delay_seconds": config.get(
                "settle_delay_seconds",
                float(os.getenv("SETTLE_DELAY_SECONDS", str(DEFAULT_SETTLE_DELAY_SECONDS))),
            ),
            "headless": config.get(
                "browser_headless",
                os.getenv("BROWSER_HEADLESS", "true").lower() == "true",
            ),
        }
        values.update(overrides)
        return cls(**values)


class PlaywrightSession:
    """A Chromium browser with one context, closed as a unit."""

    def __init__(self, headless: bool = True):
        self._playwright = None
        self._browser = None
        self._context = None
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=headless,
                args=["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"],
            )
        except PlaywrightError as e:
            self.close()
            raise BrowserLaunchError(f"Could not launch Chromium: {e}") from e

    def new_page(self, **context_options):
        self._context = self._browser.new_context(**context_options)
        return self._context.new_page()

    def close(self) -> None:
        for resource in (self._context, self._browser):
            if resource is not None:
                try:
                    resource.close()
                except PlaywrightError as e:
                    logger.debug(f"Ignoring error while closing browser resource: {e}")
        if self._playwright is not None:
            self._playwright.stop()
        self._context = self._browser = self._playwright = None


def launch_playwright(config: FetchConfig) -> PlaywrightSession:
    return PlaywrightSession(headless=config.headless)


def detect_bot_challenge(html: str, title: str = "") -> Tuple[bool, str]:
    """Check a captured page for captcha or consent interstitials.

    Returns:
        (is_blocked, matched_marker)
    """
    haystack = f"{title}\n{html[:20_000]}".lower()
    for marker in BOT_CHALLENGE_MARKERS:
        if marker in haystack:
            return True, marker
    return False, ""


class FetchOrchestrator:
    """Fetches rendered HTML through a short-lived headless browser session."""

    def __init__(
        self,
        config: Optional[FetchConfig] = None,
        launcher: Optional[Callable[[FetchConfig], object]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or FetchConfig()
        self.launcher = launcher or launch_playwright
        self.sleep = sleep

    def navigate(self, url: str, config: Optional[FetchConfig] = None) -> str:
        """Load a page and return its rendered HTML.

        Args:
            url: Page to load
            config: Per-call settings, defaults to the orchestrator's

        Returns:
            HTML captured after the settle delay

        Raises:
            BrowserLaunchError: No browser session could be started
            RateLimitError: The page answered 429
            NavigationError: Every attempt failed
        """
        config = config or self.config
        fingerprint = BrowserFingerprint()
        logger.info(f"Navigating to {url} ({fingerprint})")

        try:
            session = self.launcher(config)
        except BrowserLaunchError:
            raise
        except PlaywrightError as e:
            raise BrowserLaunchError(f"Could not launch browser: {e}") from e

        try:
            try:
                page = session.new_page(**fingerprint.apply_to_context_options())
            except PlaywrightError as e:
                raise BrowserLaunchError(f"Could not open a page: {e}") from e
            page.set_default_navigation_timeout(config.navigation_timeout_ms)
            self._goto_with_retries(page, url, config)
            try:
                return self._capture(page, url, config)
            except PlaywrightError as e:
                raise NavigationError(url, f"Page capture failed: {e}") from e
        finally:
            session.close()
            logger.debug(f"Browser session closed for {url}")

    def _goto_with_retries(self, page, url: str, config: FetchConfig) -> None:
        last_error: Optional[str] = None
        for attempt in range(1, config.max_attempts + 1):
            try:
                response = page.goto(
                    url,
                    wait_until=config.wait_until,
                    timeout=config.navigation_timeout_ms,
                )
            except PlaywrightError as e:
                last_error = str(e).splitlines()[0] if str(e) else type(e).__name__
                logger.warning(
                    f"Navigation attempt {attempt}/{config.max_attempts} failed for {url}: {last_error}"
                )
            else:
                if response is None:
                    last_error = "no response received"
                elif response.status == 429:
                    raise RateLimitError(
                        url, "Rate limited (HTTP 429)", attempts=attempt, status=429
                    )
                elif not response.ok:
                    last_error = f"HTTP {response.status}"
                else:
                    logger.info(f"Loaded {url} on attempt {attempt} (HTTP {response.status})")
                    return
                logger.warning(
                    f"Navigation attempt {attempt}/{config.max_attempts} for {url}: {last_error}"
                )

            if attempt < config.max_attempts:
                self.sleep(config.retry_delay_seconds)

        raise NavigationError(
            url,
            f"Navigation failed after {config.max_attempts} attempts: {last_error}",
            attempts=config.max_attempts,
        )

    def _capture(self, page, url: str, config: FetchConfig) -> str:
        page.wait_for_timeout(config.settle_delay_seconds * 1000)

        if config.wait_for_selector:
            try:
                page.wait_for_selector(
                    config.wait_for_selector, timeout=config.selector_timeout_ms
                )
            except PlaywrightError:
                logger.warning(
                    f"Selector '{config.wait_for_selector}' did not appear on {url}, "
                    f"capturing what rendered"
                )

        try:
            for _ in range(config.scroll_steps):
                page.evaluate(f"window.scrollBy(0, {config.scroll_distance_px})")
                page.wait_for_timeout(config.scroll_pause_seconds * 1000)
        except PlaywrightError as e:
            logger.warning(f"Scrolling failed on {url}, capturing what rendered: {e}")

        html = page.content()
        blocked, marker = detect_bot_challenge(html, page.title())
        if blocked:
            logger.warning(f"Page {url} looks like a bot challenge ('{marker}')")
        logger.debug(f"Captured {len(html)} characters from {url}")
        return html
