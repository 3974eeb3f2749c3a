# Data models for trendpulse
from .video import TimePeriod, VideoRecord, WatchlistEntry, normalize_keywords
from .trend import (
    GLOBAL_REGION,
    TREND_PERIODS,
    KeywordSuggestion,
    SuggestionResult,
    TrendFetchResult,
    TrendRecord,
    TrendSaveResult,
)
from .growth import VELOCITY_TIERS, GrowthReport, GrowthVideo
from .cluster import ClusterEdge, ClusterNode, KeywordStat, TopicClusterResult
from .job import (
    DedupResult,
    DeletionReport,
    InvalidTransitionError,
    JobResult,
    JobState,
    ScrapeJob,
)

__all__ = [
    "TimePeriod",
    "VideoRecord",
    "WatchlistEntry",
    "normalize_keywords",
    # Google Trends and suggestions
    "GLOBAL_REGION",
    "TREND_PERIODS",
    "KeywordSuggestion",
    "SuggestionResult",
    "TrendFetchResult",
    "TrendRecord",
    "TrendSaveResult",
    # Growth analysis
    "VELOCITY_TIERS",
    "GrowthReport",
    "GrowthVideo",
    # Topic clusters
    "ClusterEdge",
    "ClusterNode",
    "KeywordStat",
    "TopicClusterResult",
    # Scrape jobs
    "DedupResult",
    "DeletionReport",
    "InvalidTransitionError",
    "JobResult",
    "JobState",
    "ScrapeJob",
]
