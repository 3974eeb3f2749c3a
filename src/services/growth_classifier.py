"""Growth velocity classification for stored videos.

Growth is measured against a baseline view count supplied by a
BaselineProvider. Without real history the baseline is simulated by decaying
the current count per analysis window; once view snapshots accumulate, the
snapshot provider uses the oldest observation in the window instead.

The tier for a video compares an age-normalized velocity score
(growth percentage / sqrt(age in days)) with thresholds scaled by three
calibration tables: analysis window, video age and view-count scale.
"""

import logging
import math
import os
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, Optional, Protocol, Tuple

from models.growth import GrowthReport, GrowthVideo
from models.video import TimePeriod, VideoRecord

logger = logging.getLogger(__name__)

SORT_FIELDS = ("growth_rate", "growth_percentage")

_RELATIVE_DATE = re.compile(
    r"(\d+)\s*(second|minute|hour|day|week|month|year)s?\s+ago", re.IGNORECASE
)
_UNIT_DAYS = {
    "second": 1 / 86400,
    "minute": 1 / 1440,
    "hour": 1 / 24,
    "day": 1,
    "week": 7,
    "month": 30,
    "year": 365,
}


def _parse_pairs(text: str) -> Dict[str, float]:
    """Parse "day:3,week:1" into {"day": 3.0, "week": 1.0}."""
    pairs = {}
    for item in text.split(","):
        if ":" not in item:
            continue
        key, value = item.split(":", 1)
        pairs[key.strip()] = float(value)
    return pairs


@dataclass
class GrowthConfig:
    """Calibration tables for growth classification.

    Tier tables are ordered (bound, multiplier) pairs checked top to bottom;
    the default applies when no bound matches.
    """

    period_multipliers: Dict[str, float] = field(
        default_factory=lambda: {"day": 3.0, "week": 1.0, "month": 0.3}
    )
    period_multiplier_default: float = 1.0

    # (max age in days, multiplier)
    age_multipliers: Tuple[Tuple[int, float], ...] = (
        (2, 0.5),
        (7, 0.7),
        (30, 0.9),
        (90, 1.2),
        (365, 1.5),
    )
    age_multiplier_default: float = 2.0

    # (min views, multiplier)
    view_scale_multipliers: Tuple[Tuple[int, float], ...] = (
        (1_000_000, 2.5),
        (500_000, 2.0),
        (100_000, 1.5),
        (10_000, 1.0),
        (1_000, 0.8),
    )
    view_scale_multiplier_default: float = 0.6

    base_thresholds: Dict[str, float] = field(
        default_factory=lambda: {"viral": 200.0, "fast": 100.0, "normal": 30.0}
    )

    # (min views, min absolute growth, min growth percentage)
    significance_tiers: Tuple[Tuple[int, int, float], ...] = (
        (1_000_000, 10_000, 2.0),
        (100_000, 1_000, 3.0),
        (10_000, 300, 4.0),
    )
    significance_default: Tuple[int, float] = (100, 5.0)

    # Fraction of current views assumed present at the start of the window
    baseline_decay: Dict[str, float] = field(
        default_factory=lambda: {"day": 0.85, "week": 0.7, "month": 0.5}
    )
    baseline_decay_default: float = 0.5

    @classmethod
    def from_config(cls, config: Optional[dict] = None) -> "GrowthConfig":
        """Create GrowthConfig from a config dict or environment variables.

        Only the window tables are read from the environment
        (GROWTH_PERIOD_MULTIPLIERS, GROWTH_BASELINE_DECAY as "day:3,week:1");
        any field can be overridden through the config dict.
        """
        config = config or {}
        overrides = {k: v for k, v in config.items() if k in cls.__dataclass_fields__}

        env_tables = {
            "period_multipliers": "GROWTH_PERIOD_MULTIPLIERS",
            "baseline_decay": "GROWTH_BASELINE_DECAY",
        }
        for field_name, env_var in env_tables.items():
            if field_name not in overrides and os.getenv(env_var):
                overrides[field_name] = _parse_pairs(os.environ[env_var])

        return cls(**overrides)


@dataclass
class Baseline:
    views: int
    estimated: bool = True


class BaselineProvider(Protocol):
    """Supplies the view count a video had at the start of a window."""

    def baseline_for(self, record: VideoRecord, time_period: str) -> Baseline:
        ...


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class SimulatedBaselineProvider:
    """Baseline = current views x a per-window decay factor."""

    def __init__(self, config: Optional[GrowthConfig] = None):
        self.config = config or GrowthConfig()

    def baseline_for(self, record: VideoRecord, time_period: str) -> Baseline:
        decay = self.config.baseline_decay.get(time_period, self.config.baseline_decay_default)
        return Baseline(views=_round_half_up(record.views * decay), estimated=True)


class SnapshotBaselineProvider:
    """Baseline from the oldest stored view snapshot inside the window.

    Snapshots taken at or after the record's last update are ignored, since
    those are the current observation. Falls back to simulation when no
    earlier snapshot exists.
    """

    def __init__(self, store, fallback: Optional[BaselineProvider] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.fallback = fallback or SimulatedBaselineProvider()
        self.clock = clock

    def baseline_for(self, record: VideoRecord, time_period: str) -> Baseline:
        days = TimePeriod.DAYS.get(time_period)
        since = self.clock() - timedelta(days=days) if days else None
        snapshot = self.store.earliest_snapshot(
            record.video_id, since=since, before=record.updated_at
        )
        if snapshot is None:
            return self.fallback.baseline_for(record, time_period)
        return Baseline(views=snapshot, estimated=False)


def parse_upload_date(value, now: datetime) -> Optional[datetime]:
    """Best-effort conversion of a listing's upload date to a datetime.

    Accepts datetimes, ISO timestamps, YYYYMMDD strings and relative text
    such as "3 days ago" or "Streamed 2 weeks ago".
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value

    text = str(value).strip()
    if len(text) == 8 and text.isdigit():
        try:
            return datetime.strptime(text, "%Y%m%d")
        except ValueError:
            return None

    match = _RELATIVE_DATE.search(text)
    if match:
        amount = int(match.group(1))
        unit = match.group(2).lower()
        try:
            return now - timedelta(days=amount * _UNIT_DAYS[unit])
        except (OverflowError, ValueError):
            return None

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


class GrowthVelocityClassifier:
    """Assigns slow / normal / fast / viral tiers to videos."""

    def __init__(
        self,
        config: Optional[GrowthConfig] = None,
        baseline_provider: Optional[BaselineProvider] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or GrowthConfig()
        self.baseline_provider = baseline_provider or SimulatedBaselineProvider(self.config)
        self.clock = clock

    # =========================================================================
    # Multipliers and thresholds
    # =========================================================================

    def period_multiplier(self, time_period: str) -> float:
        return self.config.period_multipliers.get(
            time_period, self.config.period_multiplier_default
        )

    def age_multiplier(self, age_in_days: int) -> float:
        for max_age, multiplier in self.config.age_multipliers:
            if age_in_days <= max_age:
                return multiplier
        return self.config.age_multiplier_default

    def view_scale_multiplier(self, views: int) -> float:
        for min_views, multiplier in self.config.view_scale_multipliers:
            if views >= min_views:
                return multiplier
        return self.config.view_scale_multiplier_default

    def combined_multiplier(self, time_period: str, age_in_days: int, views: int) -> float:
        return (
            self.period_multiplier(time_period)
            * self.age_multiplier(age_in_days)
            * self.view_scale_multiplier(views)
        )

    def thresholds(self, combined_multiplier: float) -> Dict[str, float]:
        return {
            tier: base * combined_multiplier
            for tier, base in self.config.base_thresholds.items()
        }

    # =========================================================================
    # Scoring
    # =========================================================================

    def reference_date(self, record: VideoRecord) -> datetime:
        """Earliest known date: upload date, then created_at, then updated_at, then now."""
        now = self.clock()
        # Relative upload text ("3 days ago") is relative to when it was scraped
        scraped_at = record.created_at or now
        for candidate in (record.upload_date, record.created_at, record.updated_at):
            parsed = parse_upload_date(candidate, scraped_at)
            if parsed is not None:
                return parsed
        return now

    def _age_since(self, reference: datetime) -> int:
        delta = self.clock() - reference
        return max(1, math.floor(delta.total_seconds() / 86400))

    def age_in_days(self, record: VideoRecord) -> int:
        return self._age_since(self.reference_date(record))

    @staticmethod
    def growth_percentage(views: int, baseline: int) -> float:
        if baseline <= 0:
            return 0.0
        return (views - baseline) / baseline * 100

    @staticmethod
    def velocity_score(growth_percentage: float, age_in_days: int) -> float:
        return growth_percentage / math.sqrt(max(1, age_in_days))

    def classify(self, velocity_score: float, combined_multiplier: float) -> str:
        """Highest tier whose threshold the score meets or exceeds."""
        thresholds = self.thresholds(combined_multiplier)
        for tier in ("viral", "fast", "normal"):
            if velocity_score >= thresholds[tier]:
                return tier
        return "slow"

    def classify_growth(
        self, growth_percentage: float, age_in_days: int, time_period: str, views: int
    ) -> str:
        """Tier for raw inputs, without a record or baseline lookup."""
        score = self.velocity_score(growth_percentage, age_in_days)
        return self.classify(score, self.combined_multiplier(time_period, age_in_days, views))

    def evaluate(self, record: VideoRecord, time_period: str) -> GrowthVideo:
        """Compute growth metrics and tier for one record."""
        baseline = self.baseline_provider.baseline_for(record, time_period)
        reference = self.reference_date(record)
        age = self._age_since(reference)
        percentage = self.growth_percentage(record.views, baseline.views)
        score = self.velocity_score(percentage, age)
        combined = self.combined_multiplier(time_period, age, record.views)

        return GrowthVideo(
            record=record,
            initial_views=baseline.views,
            growth_rate=record.views - baseline.views,
            growth_percentage=percentage,
            velocity=self.classify(score, combined),
            age_in_days=age,
            velocity_score=score,
            combined_multiplier=combined,
            reference_date=reference.isoformat(),
            is_growth_estimated=baseline.estimated,
        )

    # =========================================================================
    # Significance filter and reports
    # =========================================================================

    def significance_minimums(self, views: int) -> Tuple[int, float]:
        for min_views, min_growth, min_percentage in self.config.significance_tiers:
            if views >= min_views:
                return min_growth, min_percentage
        return self.config.significance_default

    def is_significant(self, video: GrowthVideo) -> bool:
        """False when both absolute and percentage growth are at or below the view-scaled minimums."""
        min_growth, min_percentage = self.significance_minimums(video.views)
        return video.growth_rate > min_growth or video.growth_percentage > min_percentage

    def analyze(
        self,
        records: Iterable[VideoRecord],
        time_period: str = TimePeriod.WEEK,
        sort_by: str = "growth_rate",
        page: int = 1,
        page_size: int = 20,
    ) -> GrowthReport:
        """Evaluate, filter to notable growth, sort and paginate.

        Args:
            records: Stored videos
            time_period: Analysis window (day, week, month, all)
            sort_by: "growth_rate" or "growth_percentage", descending
            page: 1-indexed page, clamped to the available range
            page_size: Videos per page
        """
        if sort_by not in SORT_FIELDS:
            raise ValueError(f"sort_by must be one of {SORT_FIELDS}, got {sort_by!r}")
        if page_size < 1:
            raise ValueError(f"page_size must be at least 1, got {page_size}")

        evaluated = [self.evaluate(record, time_period) for record in records]
        notable = [video for video in evaluated if self.is_significant(video)]
        notable.sort(key=lambda video: getattr(video, sort_by), reverse=True)

        report = GrowthReport(
            all_videos=notable,
            time_period=time_period,
            sort_by=sort_by,
            page_size=page_size,
        )
        report.page = max(1, min(page, report.total_pages or 1))
        start = (report.page - 1) * page_size
        report.videos = notable[start:start + page_size]

        logger.info(
            f"Growth analysis ({time_period}): {len(notable)}/{len(evaluated)} videos "
            f"with notable growth, tiers {report.tier_counts()}"
        )
        return report
