"""Unit tests for duplicate detection and batched deletion."""

from unittest.mock import Mock

import pytest

from models.video import VideoRecord, WatchlistEntry
from services.dedup_engine import DeduplicationEngine, dedup_key, detect_duplicates
from services.errors import PersistenceError


def _video(video_id, views, title="Same Title", channel="Same Channel"):
    return VideoRecord(video_id=video_id, title=title, channel=channel, views=views)


class TestDetectDuplicates:
    """Tests for the pure detection phase."""

    def test_key_is_case_insensitive(self):
        """Test title and channel are compared lower-cased."""
        assert dedup_key(_video("a", 1, "Hello", "Chan")) == dedup_key(_video("b", 1, "hello ", "CHAN"))

    def test_highest_views_survives(self):
        """Test the survivor has views >= every other group member."""
        records = [_video("a", 100), _video("b", 500), _video("c", 300)]
        result = detect_duplicates(records)

        assert [r.video_id for r in result.survivors] == ["b"]
        assert sorted(result.duplicate_ids) == ["a", "c"]
        assert result.duplicates_found == 2

    def test_tie_keeps_first_seen(self):
        """Test equal views keep the first record."""
        result = detect_duplicates([_video("a", 100), _video("b", 100)])
        assert [r.video_id for r in result.survivors] == ["a"]
        assert result.duplicate_ids == ["b"]

    def test_groups_are_independent(self, sample_records):
        """Test only records sharing title and channel are grouped."""
        result = detect_duplicates(sample_records)
        assert result.duplicate_ids == ["vid00000002"]
        assert len(result.survivors) == 4

    def test_protected_loser_never_deleted(self):
        """Test a watchlisted record with the lowest views is kept."""
        records = [_video("keep", 10), _video("big", 1000), _video("mid", 500)]
        result = detect_duplicates(records, protected_ids={"keep"})

        assert "keep" not in result.duplicate_ids
        assert result.duplicate_ids == ["mid"]
        assert result.protected_skipped == ["keep"]
        assert {r.video_id for r in result.survivors} == {"big", "keep"}

    def test_protected_winner(self):
        """Test a watchlisted winner simply survives."""
        result = detect_duplicates([_video("w", 1000), _video("x", 5)], protected_ids={"w"})
        assert result.duplicate_ids == ["x"]
        assert result.protected_skipped == []

    def test_no_duplicates(self):
        """Test distinct records produce nothing to delete."""
        result = detect_duplicates([_video("a", 1, "one"), _video("b", 1, "two")])
        assert result.duplicate_ids == []
        assert len(result.survivors) == 2


class TestDeduplicationEngine:
    """Tests for the effectful execution phase."""

    def test_batches_of_fixed_size(self):
        """Test deletes are issued in batches."""
        store = Mock()
        store.delete_videos.side_effect = lambda batch: len(batch)
        engine = DeduplicationEngine(store, batch_size=100)

        report = engine.execute([f"id{i}" for i in range(250)])

        assert [len(call.args[0]) for call in store.delete_videos.call_args_list] == [100, 100, 50]
        assert report.deleted == 250
        assert report.success is True

    def test_failed_batch_does_not_abort(self):
        """Test a failing batch is counted and the rest still run."""
        store = Mock()
        store.delete_videos.side_effect = [2, PersistenceError("locked"), 1]
        engine = DeduplicationEngine(store, batch_size=2)

        report = engine.execute(["a", "b", "c", "d", "e"])

        assert store.delete_videos.call_count == 3
        assert report.requested == 5
        assert report.deleted == 3
        assert report.failed_batches == 1
        assert report.success is False
        assert "locked" in report.errors[0]

    def test_invalid_batch_size(self):
        """Test batch size must be positive."""
        with pytest.raises(ValueError):
            DeduplicationEngine(Mock(), batch_size=0)

    def test_run_against_store(self, store, sample_records):
        """Test detection and removal against a real store."""
        store.upsert_videos(sample_records)
        engine = DeduplicationEngine(store)

        result, report = engine.run(remove=True)

        assert result.duplicate_ids == ["vid00000002"]
        assert report.deleted == 1
        assert store.get_video("vid00000002") is None
        assert store.get_video("vid00000001") is not None

    def test_run_respects_watchlist(self, store, sample_records):
        """Test a watchlisted duplicate is never removed."""
        store.upsert_videos(sample_records)
        store.add_to_watchlist(WatchlistEntry.from_record(sample_records[1]))
        engine = DeduplicationEngine(store)

        result, report = engine.run(remove=True)

        assert result.duplicate_ids == []
        assert result.protected_skipped == ["vid00000002"]
        assert report is None
        assert store.get_video("vid00000002") is not None

    def test_run_without_remove(self, store, sample_records):
        """Test detection alone deletes nothing."""
        store.upsert_videos(sample_records)
        result, report = DeduplicationEngine(store).run()
        assert result.duplicates_found == 1
        assert report is None
        assert store.count_videos() == 5
