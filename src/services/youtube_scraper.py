"""Video listing scraper: trending feed and niche search results.

Each scrape is one (niche, time period) page: fetched through the
FetchOrchestrator, extracted with the listing strategies, then turned into
validated VideoRecords with parsed view counts, keywords and a niche.
"""

import logging
from typing import List, Optional
from urllib.parse import quote

from models.video import TimePeriod, VideoRecord
from services.fetch_orchestrator import FetchConfig, FetchOrchestrator
from services.keyword_extractor import KeywordExtractor
from services.selector_extractor import (
    ListingItem,
    SelectorFallbackExtractor,
    video_listing_extractor,
)
from services.view_count_parser import format_view_count, parse_view_count

logger = logging.getLogger(__name__)

TRENDING_URL = "https://www.youtube.com/feed/trending"
SEARCH_URL = "https://www.youtube.com/results"

# YouTube search "upload date" filters
UPLOAD_DATE_FILTERS = {
    TimePeriod.DAY: "EgIIAg%3D%3D",
    TimePeriod.WEEK: "EgIIAw%3D%3D",
    TimePeriod.MONTH: "EgIIBA%3D%3D",
}

LISTING_READY_SELECTOR = "#contents ytd-video-renderer, #contents ytd-grid-video-renderer"
DEFAULT_MAX_VIDEOS = 20


def build_listing_url(niche: str = "", time_period: str = TimePeriod.ALL) -> str:
    """Trending feed for the general niche, otherwise a filtered search."""
    if not niche:
        return TRENDING_URL
    url = f"{SEARCH_URL}?search_query={quote(niche)}"
    time_filter = UPLOAD_DATE_FILTERS.get(time_period)
    if time_filter:
        url += f"&sp={time_filter}"
    return url


class YouTubeTrendScraper:
    """Scrapes one listing page into VideoRecords."""

    def __init__(
        self,
        fetcher: Optional[FetchOrchestrator] = None,
        extractor: Optional[SelectorFallbackExtractor] = None,
        keyword_extractor: Optional[KeywordExtractor] = None,
        max_videos: int = DEFAULT_MAX_VIDEOS,
        fetch_config: Optional[FetchConfig] = None,
    ):
        self.fetcher = fetcher or FetchOrchestrator()
        self.extractor = extractor or video_listing_extractor()
        self.keyword_extractor = keyword_extractor or KeywordExtractor()
        self.max_videos = max_videos
        self.fetch_config = fetch_config

    def _listing_config(self) -> FetchConfig:
        base = self.fetch_config or self.fetcher.config
        return FetchConfig(
            max_attempts=base.max_attempts,
            retry_delay_seconds=base.retry_delay_seconds,
            navigation_timeout_ms=base.navigation_timeout_ms,
            settle_delay_seconds=base.settle_delay_seconds,
            wait_until="domcontentloaded",
            wait_for_selector=LISTING_READY_SELECTOR,
            scroll_steps=base.scroll_steps,
            headless=base.headless,
        )

    def to_record(self, item: ListingItem, niche: str, time_period: str) -> VideoRecord:
        views = parse_view_count(item.views_text)
        keywords = self.keyword_extractor.extract(item.title)
        return VideoRecord(
            video_id=item.video_id,
            title=item.title,
            channel=item.channel,
            views=views,
            upload_date=item.upload_date,
            niche=niche or self.keyword_extractor.infer_niche(item.title, keywords),
            keywords=keywords,
            time_period=time_period if time_period in TimePeriod.SCRAPE_PERIODS else None,
        )

    def parse(self, html: str, niche: str = "", time_period: str = TimePeriod.ALL) -> List[VideoRecord]:
        """Extract records from captured listing HTML."""
        records: List[VideoRecord] = []
        seen = set()
        for item in self.extractor.extract(html):
            if item.video_id in seen:
                continue
            seen.add(item.video_id)
            try:
                record = self.to_record(item, niche, time_period)
            except ValueError as e:
                logger.warning(f"Skipping listing item {item.video_id}: {e}")
                continue
            logger.debug(
                f"{record.video_id}: {item.views_text!r} -> {format_view_count(record.views)} views, "
                f"niche={record.niche}"
            )
            records.append(record)
            if len(records) >= self.max_videos:
                break
        return records

    def fetch(self, niche: str = "", time_period: str = TimePeriod.ALL) -> str:
        """Load one listing page and return its HTML.

        Raises:
            NavigationError: The page could not be loaded
            BrowserLaunchError: No browser session was available
        """
        if not TimePeriod.is_valid(time_period):
            raise ValueError(f"Invalid time period: {time_period}")
        return self.fetcher.navigate(build_listing_url(niche, time_period), self._listing_config())

    def scrape(self, niche: str = "", time_period: str = TimePeriod.ALL) -> List[VideoRecord]:
        """Fetch and extract one listing page."""
        records = self.parse(self.fetch(niche, time_period), niche, time_period)
        logger.info(
            f"Scraped {len(records)} videos for niche '{niche or 'general'}' ({time_period})"
        )
        return records
