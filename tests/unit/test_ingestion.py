"""Unit tests for pipeline wiring."""

from unittest.mock import Mock

import pytest

from models.video import VideoRecord
from services.dedup_engine import DeduplicationEngine
from services.fetch_orchestrator import FetchOrchestrator
from services.ingestion import (
    IngestionPipeline,
    TrendPulse,
    bootstrap,
    build_dedup_engine,
    build_default_pipeline,
    build_scheduling_controller,
    build_suggestion_client,
    build_trends_service,
)


class TestIngestionPipeline:
    """Tests for IngestionPipeline."""

    def test_ingest_scrapes_then_persists(self, store):
        """Test scraped records are written to the store."""
        scraper = Mock()
        scraper.scrape.return_value = [VideoRecord(video_id="abc", title="T", views=5)]
        pipeline = IngestionPipeline(scraper, store)

        assert pipeline.ingest("gaming", "day") == (1, 0)
        scraper.scrape.assert_called_once_with("gaming", "day")
        assert store.get_video("abc").views == 5

    def test_fetch_and_extract_are_separate(self, store):
        """Test fetch loads the page and extract parses given HTML."""
        scraper = Mock()
        scraper.fetch.return_value = "<html></html>"
        scraper.parse.return_value = []
        pipeline = IngestionPipeline(scraper, store)

        html = pipeline.fetch("gaming", "week")
        pipeline.extract(html, "gaming", "week")

        scraper.fetch.assert_called_once_with("gaming", "week")
        scraper.parse.assert_called_once_with("<html></html>", "gaming", "week")


class TestBuilders:
    """Tests for the config-driven builders."""

    def test_default_pipeline(self, sample_config):
        """Test the pipeline is configured from the config dict."""
        pipeline = build_default_pipeline(sample_config)

        assert pipeline.scraper.max_videos == 10
        assert isinstance(pipeline.scraper.fetcher, FetchOrchestrator)
        assert pipeline.scraper.fetcher.config.navigation_timeout_ms == 5000
        assert pipeline.store.db_path == sample_config["database_path"]

    def test_scheduling_controller(self, sample_config):
        """Test configured niches and the pipeline stages are wired in."""
        pipeline = Mock()
        controller = build_scheduling_controller(sample_config, pipeline)

        assert controller.state.niches == ["", "gaming", "music"]
        assert controller.fetch_fn is pipeline.fetch
        assert controller.extract_fn is pipeline.extract
        assert controller.persist_fn is pipeline.persist

    def test_trends_service(self, sample_config, store):
        """Test the trends service reuses a given store."""
        service = build_trends_service(sample_config, store)
        assert service.store is store
        assert service.scraper.settle_delay_seconds == 0

    def test_suggestion_client(self, sample_config):
        """Test the suggestion client honors the timeout setting."""
        assert build_suggestion_client(sample_config).timeout == 2

    def test_dedup_engine_batch_size(self, sample_config, store):
        """Test DEDUP_BATCH_SIZE reaches the engine."""
        engine = build_dedup_engine({**sample_config, "dedup_batch_size": 25}, store)

        assert isinstance(engine, DeduplicationEngine)
        assert engine.batch_size == 25
        assert engine.store is store


class TestBootstrap:
    """Tests for bootstrap."""

    def test_services_share_one_store(self, sample_config, restore_root_logger):
        """Test every service is built over the configured database."""
        services = bootstrap(sample_config)

        assert isinstance(services, TrendPulse)
        assert services.store.db_path == sample_config["database_path"]
        assert services.trends.store is services.store
        assert services.dedup.store is services.store
        assert services.dedup.batch_size == 100
        assert services.controller.state.is_running is False

    def test_scheduler_enabled_starts_jobs(self, sample_config, restore_root_logger):
        """Test SCHEDULER_ENABLED registers the recurring jobs."""
        services = bootstrap({**sample_config, "scheduler_enabled": True})
        try:
            assert services.controller.state.is_running is True
            assert len(services.controller.state.scheduled_periods) == 4
        finally:
            services.shutdown()

        assert services.controller.state.is_running is False

    def test_log_json_installs_structured_logging(self, sample_config, restore_root_logger):
        """Test LOG_JSON switches the root handler to structlog."""
        bootstrap({**sample_config, "log_json": True})

        formatter = restore_root_logger.handlers[0].formatter
        assert type(formatter).__name__ == "ProcessorFormatter"

    def test_invalid_config_rejected(self, sample_config, restore_root_logger):
        """Test validation errors stop the bootstrap."""
        with pytest.raises(ValueError, match="FETCH_MAX_ATTEMPTS"):
            bootstrap({**sample_config, "fetch_max_attempts": 0})
