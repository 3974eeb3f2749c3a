"""Google Trends (YouTube search) keyword scraping.

The explore page renders its widgets client-side, so it is loaded until the
network is idle and then left to settle before the HTML is captured.
"""

import logging
from typing import List, Optional

from models.trend import GLOBAL_REGION, TREND_PERIODS, TrendFetchResult, TrendRecord
from services.errors import RateLimitError, is_rate_limited
from services.fetch_orchestrator import FetchConfig, FetchOrchestrator
from services.selector_extractor import SelectorFallbackExtractor, trend_keyword_extractor

logger = logging.getLogger(__name__)

EXPLORE_URL = "https://trends.google.co.id/trends/explore"

TIME_PARAMS = {
    "today": "now%201-d",
    "7days": "now%207-d",
    "30days": "today%201-m",
}

TRENDS_NAVIGATION_TIMEOUT_MS = 60_000
TRENDS_SETTLE_DELAY_SECONDS = 10.0


def build_explore_url(time_period: str = "today", region: str = GLOBAL_REGION) -> str:
    date = TIME_PARAMS.get(time_period, TIME_PARAMS["30days"])
    url = f"{EXPLORE_URL}?date={date}&gprop=youtube&hl=en"
    region = (region or GLOBAL_REGION).upper()
    if region != GLOBAL_REGION:
        url += f"&geo={region}"
    return url


def _validate_period(time_period: str) -> None:
    if time_period not in TREND_PERIODS:
        raise ValueError(
            f"Invalid time period: {time_period}. Use one of {', '.join(TREND_PERIODS)}"
        )


class GoogleTrendsScraper:
    """Scrapes ranked trending keywords for one (time period, region)."""

    def __init__(
        self,
        fetcher: Optional[FetchOrchestrator] = None,
        extractor: Optional[SelectorFallbackExtractor] = None,
        settle_delay_seconds: float = TRENDS_SETTLE_DELAY_SECONDS,
    ):
        self.fetcher = fetcher or FetchOrchestrator()
        self.extractor = extractor or trend_keyword_extractor()
        self.settle_delay_seconds = settle_delay_seconds

    def _explore_config(self) -> FetchConfig:
        base = self.fetcher.config
        return FetchConfig(
            max_attempts=base.max_attempts,
            retry_delay_seconds=base.retry_delay_seconds,
            navigation_timeout_ms=TRENDS_NAVIGATION_TIMEOUT_MS,
            settle_delay_seconds=self.settle_delay_seconds,
            wait_until="networkidle",
            scroll_steps=0,
            headless=base.headless,
        )

    def parse(self, html: str, time_period: str = "today", region: str = GLOBAL_REGION) -> List[TrendRecord]:
        return [
            TrendRecord(keyword=keyword, rank=rank, time_period=time_period, region=region)
            for keyword, rank in self.extractor.extract_keywords(html)
        ]

    def scrape(self, time_period: str = "today", region: str = GLOBAL_REGION) -> List[TrendRecord]:
        """Fetch the explore page and extract ranked keywords.

        Raises:
            ValueError: Unknown time period
            RateLimitError: Google answered 429
            NavigationError: The page could not be loaded
        """
        _validate_period(time_period)
        url = build_explore_url(time_period, region)
        html = self.fetcher.navigate(url, self._explore_config())
        trends = self.parse(html, time_period, region)
        if self.extractor.last_strategy is None:
            logger.warning(f"No trends extracted for {time_period}/{region}, using fallback keywords")
        logger.info(f"Found {len(trends)} trends for {time_period}/{region}")
        return trends


class TrendsService:
    """Serves trends from the store, scraping when asked or when nothing is stored."""

    def __init__(self, scraper: GoogleTrendsScraper, store):
        self.scraper = scraper
        self.store = store

    def get_trends(self, time_period: str = "today", region: str = GLOBAL_REGION) -> TrendFetchResult:
        """Stored trends if any exist for the partition, otherwise a fresh scrape."""
        _validate_period(time_period)
        region = (region or GLOBAL_REGION).upper()
        stored = self.store.get_trends(time_period, region)
        if stored:
            logger.info(f"Returning {len(stored)} stored trends for {time_period}/{region}")
            return TrendFetchResult(stored, "database", time_period, region)

        logger.info(f"No stored trends for {time_period}/{region}, scraping")
        return self.refresh_trends(time_period, region)

    def refresh_trends(self, time_period: str = "today", region: str = GLOBAL_REGION) -> TrendFetchResult:
        """Scrape and save fresh trends.

        When Google rate-limits the scrape, the stored rows for the partition
        are returned instead.

        Raises:
            RateLimitError: Rate limited and nothing is stored
            NavigationError: Any other scrape failure
        """
        _validate_period(time_period)
        region = (region or GLOBAL_REGION).upper()
        try:
            trends = self.scraper.scrape(time_period, region)
        except Exception as e:
            if not is_rate_limited(e):
                raise
            stored = self.store.get_trends(time_period, region)
            if not stored:
                logger.error(f"Rate limited for {time_period}/{region} and no stored trends")
                if isinstance(e, RateLimitError):
                    raise
                raise RateLimitError(
                    build_explore_url(time_period, region), str(e), status=429
                ) from e
            logger.warning(
                f"Rate limited for {time_period}/{region}, returning {len(stored)} stored trends"
            )
            return TrendFetchResult(stored, "database (rate limited)", time_period, region)

        save_result = self.store.save_trends(trends)
        if save_result.duplicates_removed:
            logger.info(f"Replaced {save_result.duplicates_removed} existing trend rows")
        return TrendFetchResult(trends, "scraper", time_period, region)
