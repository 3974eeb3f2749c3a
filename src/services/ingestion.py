"""Wiring between the scrapers, the store and the scheduler."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from models.video import TimePeriod, VideoRecord
from services.dedup_engine import DEFAULT_BATCH_SIZE, DeduplicationEngine
from services.fetch_orchestrator import FetchConfig, FetchOrchestrator
from services.google_trends_scraper import GoogleTrendsScraper, TrendsService
from services.keyword_extractor import KeywordExtractor
from services.scheduler import SchedulerState, SchedulingController
from services.suggestion_client import SuggestionClient
from services.video_store import VideoStore
from services.youtube_scraper import YouTubeTrendScraper
from utils.config import configure_logging, load_config, validate_config

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Fetch, extract and persist for one (niche, time period) at a time."""

    def __init__(self, scraper: YouTubeTrendScraper, store: VideoStore):
        self.scraper = scraper
        self.store = store

    def fetch(self, niche: str = "", time_period: str = TimePeriod.ALL) -> str:
        return self.scraper.fetch(niche, time_period)

    def extract(self, html: str, niche: str = "", time_period: str = TimePeriod.ALL) -> List[VideoRecord]:
        return self.scraper.parse(html, niche, time_period)

    def scrape(self, niche: str = "", time_period: str = TimePeriod.ALL) -> List[VideoRecord]:
        return self.scraper.scrape(niche, time_period)

    def persist(self, records: List[VideoRecord]) -> Tuple[int, int]:
        """Upsert records; returns (saved, failed)."""
        saved, failed = self.store.upsert_videos(records)
        logger.info(f"Saved {saved} videos ({failed} failed)")
        return saved, failed

    def ingest(self, niche: str = "", time_period: str = TimePeriod.ALL) -> Tuple[int, int]:
        return self.persist(self.scrape(niche, time_period))


def build_default_pipeline(config: Optional[dict] = None) -> IngestionPipeline:
    """Pipeline with a real browser fetcher and the configured SQLite store."""
    config = config or load_config()
    fetcher = FetchOrchestrator(FetchConfig.from_config(config))
    scraper = YouTubeTrendScraper(
        fetcher=fetcher,
        keyword_extractor=KeywordExtractor.from_config(config),
        max_videos=config.get("max_videos_per_page", 20),
    )
    return IngestionPipeline(scraper, VideoStore(config.get("database_path")))


def build_scheduling_controller(
    config: Optional[dict] = None,
    pipeline: Optional[IngestionPipeline] = None,
) -> SchedulingController:
    config = config or load_config()
    pipeline = pipeline or build_default_pipeline(config)
    state = SchedulerState(config.get("scheduler_niches"))
    return SchedulingController(state, pipeline.fetch, pipeline.extract, pipeline.persist)


def build_trends_service(config: Optional[dict] = None, store: Optional[VideoStore] = None) -> TrendsService:
    config = config or load_config()
    fetcher = FetchOrchestrator(FetchConfig.from_config(config))
    scraper = GoogleTrendsScraper(
        fetcher=fetcher,
        settle_delay_seconds=config.get("trends_settle_delay_seconds", 10.0),
    )
    return TrendsService(scraper, store or VideoStore(config.get("database_path")))


def build_suggestion_client(config: Optional[dict] = None) -> SuggestionClient:
    return SuggestionClient.from_config(config or load_config())


def build_dedup_engine(config: Optional[dict] = None, store: Optional[VideoStore] = None) -> DeduplicationEngine:
    config = config or load_config()
    return DeduplicationEngine(
        store or VideoStore(config.get("database_path")),
        batch_size=config.get("dedup_batch_size", DEFAULT_BATCH_SIZE),
    )


@dataclass
class TrendPulse:
    """The configured services sharing one store."""

    config: dict
    store: VideoStore
    pipeline: IngestionPipeline
    controller: SchedulingController
    trends: TrendsService
    suggestions: SuggestionClient
    dedup: DeduplicationEngine

    def shutdown(self) -> None:
        self.controller.stop()


def bootstrap(config: Optional[dict] = None, log_file: Optional[str] = None) -> TrendPulse:
    """Validate config, install logging and build every service.

    The recurring scheduler is started when SCHEDULER_ENABLED is set.

    Raises:
        ValueError: The configuration is invalid
    """
    config = config or load_config()
    errors = validate_config(config)
    if errors:
        raise ValueError(f"Invalid configuration: {'; '.join(errors)}")

    configure_logging(config, log_file=log_file)

    pipeline = build_default_pipeline(config)
    store = pipeline.store
    services = TrendPulse(
        config=config,
        store=store,
        pipeline=pipeline,
        controller=build_scheduling_controller(config, pipeline),
        trends=build_trends_service(config, store),
        suggestions=build_suggestion_client(config),
        dedup=build_dedup_engine(config, store),
    )

    if config.get("scheduler_enabled"):
        services.controller.start()
        periods = ", ".join(services.controller.state.scheduled_periods)
        logger.info(f"Recurring scrapes scheduled for {periods}")
    else:
        logger.info("Recurring scrapes disabled (SCHEDULER_ENABLED=false)")
    return services
