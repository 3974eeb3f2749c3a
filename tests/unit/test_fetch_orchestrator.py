"""Unit tests for headless-browser fetching with retries."""

from unittest.mock import patch

import pytest
from playwright.sync_api import Error as PlaywrightError

from services.browser_fingerprint import BASE_VIEWPORT, VIEWPORT_JITTER, BrowserFingerprint
from services.errors import BrowserLaunchError, NavigationError, RateLimitError
from services.fetch_orchestrator import (
    DEFAULT_MAX_ATTEMPTS,
    FetchConfig,
    FetchOrchestrator,
    detect_bot_challenge,
)

URL = "https://www.youtube.com/feed/trending"


class TestFetchConfig:
    """Tests for FetchConfig."""

    def test_default_values(self):
        """Test the default navigation settings."""
        config = FetchConfig()
        assert config.max_attempts == DEFAULT_MAX_ATTEMPTS == 3
        assert config.wait_until == "domcontentloaded"
        assert config.settle_delay_seconds > 0

    def test_rejects_zero_attempts(self):
        """Test at least one attempt is required."""
        with pytest.raises(ValueError):
            FetchConfig(max_attempts=0)

    def test_from_config_with_dict(self):
        """Test values come from the application config."""
        config = FetchConfig.from_config(
            {"fetch_max_attempts": 5, "navigation_timeout_ms": 1000, "browser_headless": False}
        )
        assert config.max_attempts == 5
        assert config.navigation_timeout_ms == 1000
        assert config.headless is False

    @patch.dict(
        "os.environ",
        {"FETCH_MAX_ATTEMPTS": "4", "FETCH_RETRY_DELAY_SECONDS": "0.5", "BROWSER_HEADLESS": "false"},
    )
    def test_from_config_with_env_vars(self):
        """Test environment variables fill in missing config keys."""
        config = FetchConfig.from_config({})
        assert config.max_attempts == 4
        assert config.retry_delay_seconds == 0.5
        assert config.headless is False

    def test_overrides_win(self):
        """Test keyword overrides take precedence."""
        config = FetchConfig.from_config({"fetch_max_attempts": 5}, max_attempts=2)
        assert config.max_attempts == 2


class TestBrowserFingerprint:
    """Tests for per-session fingerprints."""

    def test_viewport_jitter_bounds(self):
        """Test the viewport stays within the jitter range."""
        for seed in range(20):
            viewport = BrowserFingerprint(seed=str(seed)).viewport
            assert BASE_VIEWPORT["width"] <= viewport["width"] < BASE_VIEWPORT["width"] + VIEWPORT_JITTER
            assert BASE_VIEWPORT["height"] <= viewport["height"] < BASE_VIEWPORT["height"] + VIEWPORT_JITTER

    def test_context_options(self):
        """Test options carry user agent, viewport and headers."""
        options = BrowserFingerprint(seed="x").apply_to_context_options()
        assert options["user_agent"].startswith("Mozilla/5.0")
        assert "Accept-Language" in options["extra_http_headers"]
        assert options["is_mobile"] is False

    def test_seed_is_deterministic(self):
        """Test the same seed gives the same identity."""
        assert repr(BrowserFingerprint(seed="a")) == repr(BrowserFingerprint(seed="a"))


class TestNavigate:
    """Tests for FetchOrchestrator.navigate."""

    def test_success_first_attempt(self, page_factory, fetcher_factory):
        """Test HTML is returned and the session closed."""
        page = page_factory("<html>ok</html>")
        orchestrator, launcher, sleeps = fetcher_factory(page, navigation_timeout_ms=1234)

        assert orchestrator.navigate(URL) == "<html>ok</html>"
        assert len(page.goto_calls) == 1
        assert page.goto_calls[0]["timeout"] == 1234
        assert page.navigation_timeout == 1234
        assert sleeps == []
        assert launcher.sessions[0].closed is True
        assert "user_agent" in launcher.sessions[0].context_options

    def test_retries_then_succeeds(self, page_factory, fetcher_factory):
        """Test a failed attempt is retried with a fresh request."""
        page = page_factory("<html>ok</html>", responses=[PlaywrightError("Timeout 90000ms"), 500, 200])
        orchestrator, launcher, sleeps = fetcher_factory(page, retry_delay_seconds=3)

        assert orchestrator.navigate(URL) == "<html>ok</html>"
        assert len(page.goto_calls) == 3
        assert sleeps == [3, 3]
        assert launcher.sessions[0].closed is True

    def test_exhausted_attempts_raise(self, page_factory, fetcher_factory):
        """Test NavigationError after the attempt cap, session still closed."""
        page = page_factory(responses=[None, 503, PlaywrightError("net::ERR_FAILED")])
        orchestrator, launcher, sleeps = fetcher_factory(page)

        with pytest.raises(NavigationError) as exc_info:
            orchestrator.navigate(URL)

        assert exc_info.value.attempts == 3
        assert "net::ERR_FAILED" in str(exc_info.value)
        assert len(page.goto_calls) == 3
        assert len(sleeps) == 2
        assert launcher.sessions[0].closed is True

    def test_rate_limit_not_retried(self, page_factory, fetcher_factory):
        """Test a 429 raises RateLimitError immediately."""
        page = page_factory(responses=[429, 200])
        orchestrator, launcher, _ = fetcher_factory(page)

        with pytest.raises(RateLimitError) as exc_info:
            orchestrator.navigate(URL)

        assert exc_info.value.status == 429
        assert len(page.goto_calls) == 1
        assert launcher.sessions[0].closed is True

    def test_settle_delay_and_scrolling(self, page_factory, fetcher_factory):
        """Test the settle wait happens before capture and scroll steps run."""
        page = page_factory("<html></html>")
        orchestrator, _, _ = fetcher_factory(page, settle_delay_seconds=2, scroll_steps=2)

        orchestrator.navigate(URL)

        assert page.waits[0] == 2000
        assert len(page.scrolls) == 2
        assert page.scrolls[0].startswith("window.scrollBy")

    def test_scroll_failure_still_captures(self, page_factory, fetcher_factory):
        """Test a scroll error keeps the already loaded page."""
        page = page_factory("<html>loaded</html>")
        page.scroll_error = PlaywrightError("Execution context was destroyed")
        orchestrator, launcher, _ = fetcher_factory(page, scroll_steps=3)

        assert orchestrator.navigate(URL) == "<html>loaded</html>"
        assert len(page.scrolls) == 1
        assert launcher.sessions[0].closed is True

    def test_missing_selector_tolerated(self, page_factory, fetcher_factory):
        """Test a selector timeout still captures the page."""
        page = page_factory("<html>partial</html>")
        page.selector_error = PlaywrightError("Timeout 30000ms exceeded")
        orchestrator, _, _ = fetcher_factory(page, wait_for_selector="#contents")

        assert orchestrator.navigate(URL) == "<html>partial</html>"
        assert page.selector_waits == ["#contents"]

    def test_capture_failure_becomes_navigation_error(self, page_factory, fetcher_factory):
        """Test a browser error during capture surfaces as NavigationError."""
        page = page_factory()
        page.content_error = PlaywrightError("Target closed")
        orchestrator, launcher, _ = fetcher_factory(page)

        with pytest.raises(NavigationError):
            orchestrator.navigate(URL)
        assert launcher.sessions[0].closed is True

    def test_launch_failure(self):
        """Test a launcher error surfaces as BrowserLaunchError."""

        def broken_launcher(config):
            raise PlaywrightError("Executable doesn't exist")

        orchestrator = FetchOrchestrator(launcher=broken_launcher, sleep=lambda s: None)
        with pytest.raises(BrowserLaunchError):
            orchestrator.navigate(URL)

    def test_per_call_config(self, page_factory, fetcher_factory):
        """Test a per-call config overrides the orchestrator default."""
        page = page_factory()
        orchestrator, _, _ = fetcher_factory(page)

        orchestrator.navigate(URL, FetchConfig(wait_until="networkidle", settle_delay_seconds=0))
        assert page.goto_calls[0]["wait_until"] == "networkidle"


class TestDetectBotChallenge:
    """Tests for detect_bot_challenge."""

    def test_detects_marker(self):
        """Test captcha pages are recognized."""
        blocked, marker = detect_bot_challenge("<p>Our systems have detected unusual traffic</p>")
        assert blocked is True
        assert marker == "unusual traffic"

    def test_normal_page(self):
        """Test a regular page is not flagged."""
        assert detect_bot_challenge("<div id='contents'></div>", "Trending") == (False, "")
