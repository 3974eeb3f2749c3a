"""SQLite persistence for scraped videos, trends and the watchlist.

Videos are keyed by platform id and upserted: a re-scrape overwrites the view
count and time period and unions keywords. Each upsert also appends a row to
view_snapshots so growth analysis can use observed history where it exists.
Watchlist rows live in their own table and are never touched by video clears.
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from models.trend import TrendRecord, TrendSaveResult
from models.video import TimePeriod, VideoRecord, WatchlistEntry
from services.errors import PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


def _chunks(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class VideoStore:
    """SQLite-backed store for VideoRecord, WatchlistEntry and TrendRecord."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database. If None, uses default location.
        """
        if db_path is None:
            data_dir = Path.home() / ".trendpulse"
            data_dir.mkdir(parents=True, exist_ok=True)
            db_path = str(data_dir / "trendpulse.db")
        else:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.db_path = db_path
        self._lock = threading.Lock()

        self._init_db()
        logger.info(f"VideoStore initialized at {db_path}")

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection that commits on success and is always closed."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize SQLite database schema."""
        try:
            with self._connect() as conn:
                conn.executescript("""
                    CREATE TABLE IF NOT EXISTS videos (
                        id TEXT PRIMARY KEY,
                        title TEXT NOT NULL,
                        channel TEXT,
                        views INTEGER NOT NULL DEFAULT 0,
                        upload_date TEXT,
                        niche TEXT,
                        keywords TEXT,
                        time_period TEXT CHECK (time_period IN ('day', 'week', 'month')),
                        created_at TIMESTAMP NOT NULL,
                        updated_at TIMESTAMP NOT NULL
                    );

                    CREATE TABLE IF NOT EXISTS watchlist (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        video_id TEXT NOT NULL UNIQUE,
                        title TEXT,
                        channel TEXT,
                        views INTEGER,
                        niche TEXT,
                        notes TEXT,
                        created_at TIMESTAMP NOT NULL
                    );

                    CREATE TABLE IF NOT EXISTS google_trends (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        keyword TEXT NOT NULL,
                        rank INTEGER NOT NULL,
                        time_period TEXT NOT NULL CHECK (time_period IN ('today', '7days', '30days')),
                        region TEXT NOT NULL DEFAULT 'GLOBAL',
                        scraped_at TIMESTAMP NOT NULL,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    );

                    -- Observed view counts, one row per upsert
                    CREATE TABLE IF NOT EXISTS view_snapshots (
                        video_id TEXT NOT NULL,
                        views INTEGER NOT NULL,
                        recorded_at TIMESTAMP NOT NULL
                    );

                    CREATE INDEX IF NOT EXISTS idx_videos_niche ON videos(niche);
                    CREATE INDEX IF NOT EXISTS idx_videos_created ON videos(created_at);
                    CREATE INDEX IF NOT EXISTS idx_trends_key
                        ON google_trends(keyword, time_period, region);
                    CREATE INDEX IF NOT EXISTS idx_snapshots_video
                        ON view_snapshots(video_id, recorded_at);
                """)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot initialize schema: {e}") from e

    def check_connection(self) -> dict:
        """Report whether the database answers a trivial query."""
        try:
            with self._connect() as conn:
                conn.execute("SELECT 1").fetchone()
            return {"connected": True, "path": self.db_path}
        except (sqlite3.Error, PersistenceError) as e:
            return {"connected": False, "path": self.db_path, "error": str(e)}

    # =========================================================================
    # Video Operations
    # =========================================================================

    def _upsert(self, conn: sqlite3.Connection, record: VideoRecord, now: datetime) -> VideoRecord:
        row = conn.execute("SELECT * FROM videos WHERE id = ?", (record.video_id,)).fetchone()
        if row:
            stored = VideoRecord.from_row(row)
            record.updated_at = now
            stored.merge(record)
            conn.execute(
                """
                UPDATE videos
                SET views = ?, keywords = ?, updated_at = ?, time_period = ?
                WHERE id = ?
                """,
                (
                    stored.views,
                    json.dumps(stored.keywords),
                    now.isoformat(),
                    stored.time_period,
                    stored.video_id,
                ),
            )
            result = stored
        else:
            record.created_at = record.created_at or now
            record.updated_at = now
            conn.execute(
                """
                INSERT INTO videos (
                    id, title, channel, views, upload_date, niche, keywords,
                    time_period, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.video_id,
                    record.title,
                    record.channel,
                    record.views,
                    record.upload_date,
                    record.niche,
                    json.dumps(record.keywords),
                    record.time_period,
                    record.created_at.isoformat(),
                    now.isoformat(),
                ),
            )
            result = record

        conn.execute(
            "INSERT INTO view_snapshots (video_id, views, recorded_at) VALUES (?, ?, ?)",
            (result.video_id, result.views, now.isoformat()),
        )
        return result

    def upsert_video(self, record: VideoRecord) -> VideoRecord:
        """Insert or merge one record and return the stored version."""
        try:
            with self._lock, self._connect() as conn:
                return self._upsert(conn, record, datetime.now())
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to upsert video {record.video_id}: {e}") from e

    def upsert_videos(self, records: Iterable[VideoRecord]) -> Tuple[int, int]:
        """Upsert records one at a time.

        Returns:
            (success_count, error_count); a failing record does not stop the rest
        """
        success = 0
        errors = 0
        for record in records:
            try:
                self.upsert_video(record)
                success += 1
            except PersistenceError as e:
                errors += 1
                logger.error(str(e))
        logger.info(f"Saved videos: {success} succeeded, {errors} failed")
        return success, errors

    def get_video(self, video_id: str) -> Optional[VideoRecord]:
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT * FROM videos WHERE id = ?", (video_id,)).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read video {video_id}: {e}") from e
        return VideoRecord.from_row(row) if row else None

    @staticmethod
    def _since_for_period(time_period: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
        if not time_period or time_period == TimePeriod.ALL:
            return None
        if time_period not in TimePeriod.DAYS:
            raise ValueError(f"Invalid time period: {time_period}")
        return (now or datetime.now()) - timedelta(days=TimePeriod.DAYS[time_period])

    def select_videos(
        self,
        niche: Optional[str] = None,
        since: Optional[datetime] = None,
        time_period: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[VideoRecord]:
        """Select videos ordered by views, highest first.

        Args:
            niche: Only this niche ("all" or None for every niche)
            since: Only videos created at or after this time
            time_period: Shorthand for since = now - period window
            limit: Maximum rows
            offset: Rows to skip
        """
        if since is None:
            since = self._since_for_period(time_period)

        query = "SELECT * FROM videos WHERE 1 = 1"
        params: list = []
        if niche and niche != "all":
            query += " AND niche = ?"
            params.append(niche)
        if since is not None:
            query += " AND created_at >= ?"
            params.append(since.isoformat())
        query += " ORDER BY views DESC"
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])

        try:
            with self._connect() as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to select videos: {e}") from e
        return [VideoRecord.from_row(row) for row in rows]

    def count_videos(self, since: Optional[datetime] = None, niche: Optional[str] = None) -> int:
        query = "SELECT COUNT(*) FROM videos WHERE 1 = 1"
        params: list = []
        if niche:
            query += " AND niche = ?"
            params.append(niche)
        if since is not None:
            query += " AND created_at >= ?"
            params.append(since.isoformat())
        try:
            with self._connect() as conn:
                return conn.execute(query, params).fetchone()[0]
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to count videos: {e}") from e

    def delete_videos(self, video_ids: Sequence[str]) -> int:
        """Delete one batch of videos by id, skipping watchlisted ids.

        Returns:
            Number of rows deleted

        Raises:
            PersistenceError: The batch could not be deleted
        """
        if not video_ids:
            return 0
        placeholders = ",".join("?" * len(video_ids))
        try:
            with self._lock, self._connect() as conn:
                cursor = conn.execute(
                    f"""
                    DELETE FROM videos
                    WHERE id IN ({placeholders})
                    AND id NOT IN (SELECT video_id FROM watchlist)
                    """,
                    list(video_ids),
                )
                return cursor.rowcount
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete {len(video_ids)} videos: {e}") from e

    def clear_videos(self, time_period: str = TimePeriod.ALL, batch_size: int = DEFAULT_BATCH_SIZE) -> int:
        """Delete videos created within a window ("all" for everything).

        Watchlisted videos are preserved. Deletes run in batches; a failing
        batch is logged and the remaining batches still run.

        Returns:
            Number of videos deleted
        """
        since = self._since_for_period(time_period)
        protected = self.watchlist_ids()
        ids = [
            record.video_id
            for record in self.select_videos(since=since)
            if record.video_id not in protected
        ]
        logger.info(
            f"Clearing {len(ids)} videos for period '{time_period}' "
            f"({len(protected)} watchlisted preserved)"
        )

        deleted = 0
        for batch in _chunks(ids, batch_size):
            try:
                deleted += self.delete_videos(batch)
            except PersistenceError as e:
                logger.error(f"Skipping failed clear batch: {e}")
        return deleted

    def list_niches(self) -> List[str]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT DISTINCT niche FROM videos WHERE niche IS NOT NULL AND niche != '' ORDER BY niche"
                ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list niches: {e}") from e
        return [row[0] for row in rows]

    def statistics(self, days: int = 7, now: Optional[datetime] = None) -> dict:
        """Totals, niche distribution, per-window counts and videos added in the last `days`."""
        now = now or datetime.now()
        recent = self.count_videos(since=now - timedelta(days=days))
        try:
            with self._connect() as conn:
                total = conn.execute("SELECT COUNT(*) FROM videos").fetchone()[0]
                niche_rows = conn.execute(
                    "SELECT COALESCE(niche, 'unknown') AS niche, COUNT(*) AS n "
                    "FROM videos GROUP BY COALESCE(niche, 'unknown') ORDER BY n DESC"
                ).fetchall()
                watchlisted = conn.execute("SELECT COUNT(*) FROM watchlist").fetchone()[0]
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to compute statistics: {e}") from e

        periods = {TimePeriod.ALL: total}
        for period in TimePeriod.SCRAPE_PERIODS:
            periods[period] = self.count_videos(since=self._since_for_period(period, now))

        return {
            "total_videos": total,
            "watchlisted": watchlisted,
            "recent_videos": recent,
            "recent_days": days,
            "niche_distribution": {row["niche"]: row["n"] for row in niche_rows},
            "time_period_distribution": periods,
        }

    def earliest_snapshot(
        self,
        video_id: str,
        since: Optional[datetime] = None,
        before: Optional[datetime] = None,
    ) -> Optional[int]:
        """Oldest observed view count for a video within [since, before)."""
        query = "SELECT views FROM view_snapshots WHERE video_id = ?"
        params: list = [video_id]
        if since is not None:
            query += " AND recorded_at >= ?"
            params.append(since.isoformat())
        if before is not None:
            query += " AND recorded_at < ?"
            params.append(before.isoformat())
        query += " ORDER BY recorded_at ASC LIMIT 1"
        try:
            with self._connect() as conn:
                row = conn.execute(query, params).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read snapshots for {video_id}: {e}") from e
        return row[0] if row else None

    # =========================================================================
    # Watchlist Operations
    # =========================================================================

    def add_to_watchlist(self, entry: WatchlistEntry) -> WatchlistEntry:
        """Add a video to the watchlist; an existing entry keeps its notes unless new ones are given."""
        entry.created_at = entry.created_at or datetime.now()
        try:
            with self._lock, self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO watchlist (video_id, title, channel, views, niche, notes, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(video_id) DO UPDATE SET
                        views = excluded.views,
                        notes = CASE WHEN excluded.notes != '' THEN excluded.notes ELSE watchlist.notes END
                    """,
                    (
                        entry.video_id,
                        entry.title,
                        entry.channel,
                        entry.views,
                        entry.niche,
                        entry.notes,
                        entry.created_at.isoformat(),
                    ),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to watchlist {entry.video_id}: {e}") from e
        return entry

    def remove_from_watchlist(self, video_id: str) -> bool:
        try:
            with self._lock, self._connect() as conn:
                cursor = conn.execute("DELETE FROM watchlist WHERE video_id = ?", (video_id,))
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to unwatch {video_id}: {e}") from e

    def list_watchlist(self) -> List[WatchlistEntry]:
        try:
            with self._connect() as conn:
                rows = conn.execute("SELECT * FROM watchlist ORDER BY created_at DESC").fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read watchlist: {e}") from e
        return [
            WatchlistEntry(
                video_id=row["video_id"],
                title=row["title"] or "",
                channel=row["channel"] or "",
                views=row["views"] or 0,
                niche=row["niche"] or "",
                notes=row["notes"] or "",
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    def watchlist_ids(self) -> set:
        """Ids that must never be deleted by dedup or clears."""
        try:
            with self._connect() as conn:
                rows = conn.execute("SELECT video_id FROM watchlist").fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read watchlist: {e}") from e
        return {row[0] for row in rows}

    # =========================================================================
    # Trend Operations
    # =========================================================================

    def save_trends(self, trends: Iterable[TrendRecord]) -> TrendSaveResult:
        """Insert trends, first purging rows with the same (keyword, period, region)."""
        result = TrendSaveResult()
        with self._lock:
            for trend in trends:
                try:
                    with self._connect() as conn:
                        cursor = conn.execute(
                            "DELETE FROM google_trends WHERE keyword = ? AND time_period = ? AND region = ?",
                            trend.key,
                        )
                        result.duplicates_removed += max(cursor.rowcount, 0)
                        cursor = conn.execute(
                            """
                            INSERT INTO google_trends (keyword, rank, time_period, region, scraped_at)
                            VALUES (?, ?, ?, ?, ?)
                            """,
                            (
                                trend.keyword,
                                trend.rank,
                                trend.time_period,
                                trend.region,
                                trend.scraped_at.isoformat(),
                            ),
                        )
                        trend.row_id = cursor.lastrowid
                        result.inserted += 1
                except sqlite3.Error as e:
                    message = f"Failed to save trend '{trend.keyword}': {e}"
                    logger.error(message)
                    result.errors.append(message)

        logger.info(
            f"Saved {result.inserted} trends, removed {result.duplicates_removed} duplicates"
        )
        return result

    def get_trends(self, time_period: Optional[str] = None, region: Optional[str] = None) -> List[TrendRecord]:
        """Stored trends ordered by rank."""
        query = "SELECT * FROM google_trends WHERE 1 = 1"
        params: list = []
        if time_period:
            query += " AND time_period = ?"
            params.append(time_period)
        if region:
            query += " AND region = ?"
            params.append(region.upper())
        query += " ORDER BY rank ASC"
        try:
            with self._connect() as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read trends: {e}") from e
        return [
            TrendRecord(
                keyword=row["keyword"],
                rank=row["rank"],
                time_period=row["time_period"],
                region=row["region"],
                scraped_at=datetime.fromisoformat(row["scraped_at"]),
                row_id=row["id"],
            )
            for row in rows
        ]

    def clear_trends(self, time_period: Optional[str] = None, region: Optional[str] = None) -> int:
        query = "DELETE FROM google_trends WHERE 1 = 1"
        params: list = []
        if time_period:
            query += " AND time_period = ?"
            params.append(time_period)
        if region:
            query += " AND region = ?"
            params.append(region.upper())
        try:
            with self._lock, self._connect() as conn:
                return conn.execute(query, params).rowcount
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to clear trends: {e}") from e

