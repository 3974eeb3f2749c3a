"""Near-duplicate detection and removal for stored videos.

Two records are duplicates when their lower-cased title and channel match.
Detection is pure; deletion runs separately in fixed-size batches so one bad
batch never aborts the rest.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from models.job import DedupResult, DeletionReport
from models.video import VideoRecord
from services.errors import PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


def dedup_key(record: VideoRecord) -> Tuple[str, str]:
    return (record.title.strip().lower(), record.channel.strip().lower())


def detect_duplicates(
    records: Iterable[VideoRecord],
    protected_ids: Optional[Set[str]] = None,
) -> DedupResult:
    """Pick one survivor per (title, channel) group.

    The highest-views record survives; ties keep the first one seen. Protected
    (watchlisted) ids are never reported as duplicates: a protected record
    that loses stays on as an extra survivor.

    Args:
        records: Candidate records, in the order they were read
        protected_ids: Ids that must never be deleted

    Returns:
        DedupResult with survivors in first-seen group order
    """
    protected_ids = protected_ids or set()
    winners: Dict[Tuple[str, str], VideoRecord] = {}
    order: List[Tuple[str, str]] = []
    kept_protected: List[VideoRecord] = []
    result = DedupResult()

    def discard(record: VideoRecord) -> None:
        if record.video_id in protected_ids:
            kept_protected.append(record)
            result.protected_skipped.append(record.video_id)
        else:
            result.duplicate_ids.append(record.video_id)

    for record in records:
        key = dedup_key(record)
        current = winners.get(key)
        if current is None:
            winners[key] = record
            order.append(key)
        elif record.views > current.views:
            winners[key] = record
            discard(current)
        else:
            discard(record)

    result.survivors = [winners[key] for key in order] + kept_protected
    if result.duplicate_ids or result.protected_skipped:
        logger.info(
            f"Found {len(result.duplicate_ids)} duplicates across {len(order)} groups "
            f"({len(result.protected_skipped)} watchlisted copies kept)"
        )
    return result


class DeduplicationEngine:
    """Runs duplicate detection against the store and optionally deletes."""

    def __init__(self, store, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.store = store
        self.batch_size = batch_size

    def execute(self, duplicate_ids: Sequence[str]) -> DeletionReport:
        """Delete ids in batches; failed batches are logged and skipped."""
        report = DeletionReport(requested=len(duplicate_ids))
        for start in range(0, len(duplicate_ids), self.batch_size):
            batch = list(duplicate_ids[start:start + self.batch_size])
            try:
                report.deleted += self.store.delete_videos(batch)
            except PersistenceError as e:
                report.failed_batches += 1
                report.errors.append(str(e))
                logger.error(
                    f"Duplicate delete batch {start // self.batch_size + 1} failed: {e}"
                )

        logger.info(
            f"Removed {report.deleted}/{report.requested} duplicates "
            f"({report.failed_batches} failed batches)"
        )
        return report

    def run(
        self,
        records: Optional[List[VideoRecord]] = None,
        remove: bool = False,
        **select_filters,
    ) -> Tuple[DedupResult, Optional[DeletionReport]]:
        """Detect duplicates in the store (or the given records) and optionally remove them.

        The watchlist is read before detection so watchlisted ids can never be
        selected for deletion.
        """
        protected = self.store.watchlist_ids()
        if records is None:
            records = self.store.select_videos(**select_filters)

        result = detect_duplicates(records, protected)
        report = self.execute(result.duplicate_ids) if remove and result.duplicate_ids else None
        return result, report
