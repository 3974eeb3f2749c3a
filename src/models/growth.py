"""Data models for growth velocity analysis."""

import math
from dataclasses import dataclass, field
from typing import List, Optional

from models.video import VideoRecord

VELOCITY_TIERS = ("slow", "normal", "fast", "viral")


@dataclass
class GrowthVideo:
    """A VideoRecord annotated with growth metrics for one analysis request.

    Never persisted.
    """

    record: VideoRecord
    initial_views: int
    growth_rate: int  # views - initial_views
    growth_percentage: float
    velocity: str  # slow, normal, fast, viral
    age_in_days: int
    velocity_score: float
    combined_multiplier: float
    reference_date: Optional[str] = None  # ISO date the age was measured from
    is_growth_estimated: bool = True

    @property
    def video_id(self) -> str:
        return self.record.video_id

    @property
    def views(self) -> int:
        return self.record.views

    @classmethod
    def tier_rank(cls, velocity: str) -> int:
        """Ordinal position of a tier, slow=0 through viral=3."""
        return VELOCITY_TIERS.index(velocity)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON export."""
        return {
            "id": self.record.video_id,
            "title": self.record.title,
            "channel": self.record.channel,
            "views": self.record.views,
            "niche": self.record.niche,
            "upload_date": self.reference_date or self.record.upload_date,
            "initial_views": self.initial_views,
            "growth_rate": self.growth_rate,
            "growth_percentage": round(self.growth_percentage, 2),
            "velocity": self.velocity,
            "velocity_score": round(self.velocity_score, 2),
            "age_in_days": self.age_in_days,
            "is_growth_estimated": self.is_growth_estimated,
        }


@dataclass
class GrowthReport:
    """Paginated result of a growth analysis."""

    videos: List[GrowthVideo] = field(default_factory=list)
    all_videos: List[GrowthVideo] = field(default_factory=list)
    time_period: str = "week"
    sort_by: str = "growth_rate"
    page: int = 1
    page_size: int = 20

    @property
    def total_videos(self) -> int:
        return len(self.all_videos)

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_videos / self.page_size)

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1

    def tier_counts(self) -> dict:
        counts = {tier: 0 for tier in VELOCITY_TIERS}
        for video in self.all_videos:
            counts[video.velocity] += 1
        return counts

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON export."""
        return {
            "time_period": self.time_period,
            "sort_by": self.sort_by,
            "total_videos": self.total_videos,
            "tiers": self.tier_counts(),
            "videos": [v.to_dict() for v in self.videos],
            "pagination": {
                "page": self.page,
                "page_size": self.page_size,
                "total_pages": self.total_pages,
                "has_next_page": self.has_next_page,
                "has_previous_page": self.has_previous_page,
            },
        }
