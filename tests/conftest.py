"""Shared pytest fixtures for trendpulse tests."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from models.video import VideoRecord  # noqa: E402
from services.fetch_orchestrator import FetchConfig, FetchOrchestrator  # noqa: E402
from services.video_store import VideoStore  # noqa: E402

FROZEN_NOW = datetime(2024, 6, 15, 12, 0, 0)


class FakeResponse:
    """Stand-in for playwright's Response."""

    def __init__(self, status: int = 200):
        self.status = status

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class FakePage:
    """Stand-in for a playwright sync Page.

    `responses` is consumed one entry per goto(); an Exception entry is raised,
    None means "no response", an int is an HTTP status.
    """

    def __init__(self, html: str = "<html></html>", responses: Optional[list] = None,
                 title: str = "YouTube"):
        self.html = html
        self.responses = list(responses) if responses is not None else [200]
        self._title = title
        self.goto_calls: List[Dict] = []
        self.waits: List[float] = []
        self.selector_waits: List[str] = []
        self.scrolls: List[str] = []
        self.navigation_timeout = None
        self.selector_error: Optional[Exception] = None
        self.content_error: Optional[Exception] = None
        self.scroll_error: Optional[Exception] = None

    def set_default_navigation_timeout(self, timeout):
        self.navigation_timeout = timeout

    def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append({"url": url, "wait_until": wait_until, "timeout": timeout})
        outcome = self.responses.pop(0) if self.responses else 200
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return None
        return FakeResponse(outcome)

    def wait_for_timeout(self, ms):
        self.waits.append(ms)

    def wait_for_selector(self, selector, timeout=None):
        self.selector_waits.append(selector)
        if self.selector_error is not None:
            raise self.selector_error

    def evaluate(self, script):
        self.scrolls.append(script)
        if self.scroll_error is not None:
            raise self.scroll_error

    def content(self):
        if self.content_error is not None:
            raise self.content_error
        return self.html

    def title(self):
        return self._title


class FakeSession:
    """Stand-in for PlaywrightSession; records context options and close()."""

    def __init__(self, page: FakePage):
        self.page = page
        self.context_options: Optional[Dict] = None
        self.closed = False

    def new_page(self, **context_options):
        self.context_options = context_options
        return self.page

    def close(self):
        self.closed = True


class FakeLauncher:
    """Launcher returning one FakeSession per call, all sharing a page."""

    def __init__(self, page: FakePage):
        self.page = page
        self.sessions: List[FakeSession] = []

    def __call__(self, config):
        session = FakeSession(self.page)
        self.sessions.append(session)
        return session


@pytest.fixture
def restore_root_logger():
    """Root logger, with its handlers and level put back afterwards."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def frozen_now() -> datetime:
    return FROZEN_NOW


@pytest.fixture
def clock():
    """Clock callable that always returns FROZEN_NOW."""
    return lambda: FROZEN_NOW


@pytest.fixture
def store(tmp_path) -> VideoStore:
    """Fresh SQLite store in a temporary directory."""
    return VideoStore(str(tmp_path / "trendpulse.db"))


@pytest.fixture
def sample_config(tmp_path) -> Dict:
    """Sample configuration for testing."""
    return {
        "database_path": str(tmp_path / "trendpulse.db"),
        "browser_headless": True,
        "navigation_timeout_ms": 5000,
        "fetch_max_attempts": 3,
        "fetch_retry_delay_seconds": 0,
        "settle_delay_seconds": 0,
        "trends_settle_delay_seconds": 0,
        "max_videos_per_page": 10,
        "max_keywords": 15,
        "niche_candidates": None,
        "scheduler_enabled": False,
        "scheduler_niches": "gaming,music",
        "dedup_batch_size": 100,
        "suggestion_timeout_seconds": 2,
        "cache_enabled": False,
        "cache_ttl_seconds": 3600,
        "cache_dir": str(tmp_path / "cache"),
        "log_level": "INFO",
        "log_json": False,
    }


@pytest.fixture
def sample_records() -> List[VideoRecord]:
    """A small corpus with one duplicate pair and mixed niches."""
    return [
        VideoRecord(
            video_id="vid00000001",
            title="Minecraft Speedrun World Record",
            channel="BlockMaster",
            views=1_500_000,
            upload_date="2 days ago",
            niche="gaming",
            keywords=["minecraft", "speedrun", "minecraft speedrun"],
        ),
        VideoRecord(
            video_id="vid00000002",
            title="Minecraft Speedrun World Record",
            channel="blockmaster",
            views=900_000,
            upload_date="3 days ago",
            niche="gaming",
            keywords=["minecraft", "speedrun"],
        ),
        VideoRecord(
            video_id="vid00000003",
            title="Python Tutorial for Beginners",
            channel="CodeSchool",
            views=250_000,
            upload_date="1 week ago",
            niche="education",
            keywords=["python", "tutorial", "beginners"],
        ),
        VideoRecord(
            video_id="vid00000004",
            title="Minecraft Building Tips",
            channel="CraftDaily",
            views=40_000,
            upload_date="5 days ago",
            niche="gaming",
            keywords=["minecraft", "building"],
        ),
        VideoRecord(
            video_id="vid00000005",
            title="Python Web Scraping Tutorial",
            channel="CodeSchool",
            views=80_000,
            upload_date="4 days ago",
            niche="education",
            keywords=["python", "scraping", "tutorial"],
        ),
    ]


def make_orchestrator(page: FakePage, **config_overrides) -> tuple:
    """FetchOrchestrator wired to a FakeLauncher with no real waiting."""
    values = {"retry_delay_seconds": 0, "settle_delay_seconds": 0}
    values.update(config_overrides)
    launcher = FakeLauncher(page)
    sleeps: List[float] = []
    orchestrator = FetchOrchestrator(
        config=FetchConfig(**values), launcher=launcher, sleep=sleeps.append
    )
    return orchestrator, launcher, sleeps


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


@pytest.fixture
def page_factory():
    """FakePage constructor: page_factory(html, responses=[...], title=...)."""
    return FakePage


@pytest.fixture
def fetcher_factory():
    """make_orchestrator(page, **config) -> (orchestrator, launcher, sleeps)."""
    return make_orchestrator


# Listing HTML in the shape of a YouTube search results page
LISTING_HTML = """
<html><body>
<div id="contents">
  <ytd-video-renderer>
    <a id="thumbnail" href="/watch?v=abcdefghijk"></a>
    <a id="video-title" href="/watch?v=abcdefghijk" title="Top 10 JavaScript Tricks for Beginners 2024">
      Top 10 JavaScript Tricks for Beginners 2024
    </a>
    <ytd-channel-name id="channel-name"><yt-formatted-string id="text" class="style-scope ytd-channel-name"><a href="/@devtips">DevTips</a></yt-formatted-string></ytd-channel-name>
    <div id="metadata-line"><span>1.2M views</span><span>3 days ago</span></div>
  </ytd-video-renderer>
  <ytd-video-renderer>
    <a id="thumbnail" href="/watch?v=ZYXWVUTSRQP"></a>
    <a id="video-title" href="/watch?v=ZYXWVUTSRQP">Gaming Setup Tour</a>
    <ytd-channel-name id="channel-name"><yt-formatted-string id="text" class="style-scope ytd-channel-name"><a href="/@setups">Setups</a></yt-formatted-string></ytd-channel-name>
    <div id="metadata-line"><span>15K views</span><span>1 week ago</span></div>
  </ytd-video-renderer>
  <ytd-video-renderer>
    <a id="video-title">Missing link renderer</a>
  </ytd-video-renderer>
</div>
</body></html>
"""


@pytest.fixture
def listing_html() -> str:
    return LISTING_HTML
