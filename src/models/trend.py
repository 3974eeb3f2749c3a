"""Data models for search-trend keywords and suggestions."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

TREND_PERIODS = ("today", "7days", "30days")
GLOBAL_REGION = "GLOBAL"


@dataclass
class TrendRecord:
    """A ranked trending keyword for one (time period, region) partition."""

    keyword: str
    rank: int
    time_period: str = "today"
    region: str = GLOBAL_REGION
    scraped_at: Optional[datetime] = None
    row_id: Optional[int] = None

    def __post_init__(self):
        self.keyword = (self.keyword or "").strip()
        if not self.keyword:
            raise ValueError("keyword is required")
        if self.rank < 1:
            raise ValueError(f"rank must be positive, got {self.rank}")
        if self.time_period not in TREND_PERIODS:
            raise ValueError(f"Invalid trend time period: {self.time_period}")
        self.region = (self.region or GLOBAL_REGION).upper()
        if self.scraped_at is None:
            self.scraped_at = datetime.now()

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.keyword, self.time_period, self.region)

    def to_dict(self) -> dict:
        return {
            "id": self.row_id,
            "keyword": self.keyword,
            "rank": self.rank,
            "time_period": self.time_period,
            "region": self.region,
            "scraped_at": self.scraped_at.isoformat() if self.scraped_at else None,
        }


@dataclass
class TrendSaveResult:
    """Outcome of saving a batch of trends."""

    inserted: int = 0
    duplicates_removed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "inserted": self.inserted,
            "duplicates_removed": self.duplicates_removed,
            "errors": list(self.errors),
        }


@dataclass
class TrendFetchResult:
    """Trends returned to a caller together with where they came from."""

    trends: List[TrendRecord] = field(default_factory=list)
    source: str = "scraper"  # scraper, database, database (rate limited)
    time_period: str = "today"
    region: str = GLOBAL_REGION

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "time_period": self.time_period,
            "region": self.region,
            "count": len(self.trends),
            "trends": [t.to_dict() for t in self.trends],
        }


@dataclass
class KeywordSuggestion:
    """A search suggestion with rough volume and competition estimates."""

    keyword: str
    search_volume: int = 0
    competition: str = "Medium"  # Low, Medium, High


@dataclass
class SuggestionResult:
    """Suggestions for one query."""

    query: str
    suggestions: List[KeywordSuggestion] = field(default_factory=list)
    is_mock: bool = False

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "is_mock": self.is_mock,
            "suggestions": [
                {
                    "keyword": s.keyword,
                    "search_volume": s.search_volume,
                    "competition": s.competition,
                }
                for s in self.suggestions
            ],
        }
