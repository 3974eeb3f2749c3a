"""Video-related data models."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


class TimePeriod:
    """Ingestion and analysis windows."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"

    SCRAPE_PERIODS = (DAY, WEEK, MONTH)
    ALL_PERIODS = (DAY, WEEK, MONTH, ALL)

    # Window length used when filtering by created_at
    DAYS = {DAY: 1, WEEK: 7, MONTH: 30}

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return value in cls.ALL_PERIODS


def normalize_keywords(keywords) -> List[str]:
    """Strip, lower-case and de-duplicate keywords, keeping first-seen order."""
    if not keywords:
        return []
    if isinstance(keywords, str):
        keywords = keywords.split(",")

    result: List[str] = []
    seen = set()
    for kw in keywords:
        if not isinstance(kw, str):
            continue
        cleaned = kw.strip().lower()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            result.append(cleaned)
    return result


def _coerce_views(views) -> int:
    try:
        return max(0, int(views or 0))
    except (TypeError, ValueError):
        return 0


@dataclass
class VideoRecord:
    """A scraped video listing entry.

    video_id is the sole identity: re-ingesting the same id overwrites views
    and unions keywords, it never drops previously known keywords.
    """

    video_id: str
    title: str
    channel: str = ""
    views: int = 0
    upload_date: str = ""  # relative text ("3 days ago") or timestamp
    niche: str = "other"
    keywords: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    time_period: Optional[str] = None  # day, week, month

    def __post_init__(self):
        if not self.video_id:
            raise ValueError("video_id is required")
        self.title = (self.title or "").strip()
        self.channel = (self.channel or "").strip()
        self.views = _coerce_views(self.views)
        self.keywords = normalize_keywords(self.keywords)
        self.niche = (self.niche or "other").strip().lower() or "other"
        if self.time_period is not None and self.time_period not in TimePeriod.SCRAPE_PERIODS:
            raise ValueError(f"Invalid time period: {self.time_period}")

    @property
    def url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.video_id}"

    def merge(self, newer: "VideoRecord") -> "VideoRecord":
        """Fold a re-scraped copy of the same video into this one."""
        if newer.video_id != self.video_id:
            raise ValueError(
                f"Cannot merge {newer.video_id} into {self.video_id}"
            )
        self.views = newer.views
        self.keywords = normalize_keywords(self.keywords + newer.keywords)
        self.updated_at = newer.updated_at or datetime.now()
        if newer.time_period:
            self.time_period = newer.time_period
        return self

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON export."""
        return {
            "id": self.video_id,
            "title": self.title,
            "channel": self.channel,
            "views": self.views,
            "upload_date": self.upload_date,
            "niche": self.niche,
            "keywords": list(self.keywords),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "time_period": self.time_period,
            "url": self.url,
        }

    @classmethod
    def from_row(cls, row) -> "VideoRecord":
        """Build a record from a sqlite3.Row or a plain mapping."""
        data = dict(row)
        return cls(
            video_id=data.get("id") or data.get("video_id"),
            title=data.get("title") or "",
            channel=data.get("channel") or "",
            views=data.get("views") or 0,
            upload_date=data.get("upload_date") or "",
            niche=data.get("niche") or "other",
            keywords=_decode_keywords(data.get("keywords")),
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
            time_period=data.get("time_period") or None,
        )


@dataclass
class WatchlistEntry:
    """A video the user chose to keep. Survives bulk clears of VideoRecord."""

    video_id: str
    title: str = ""
    channel: str = ""
    views: int = 0  # snapshot at the time of adding
    niche: str = ""
    notes: str = ""
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.video_id:
            raise ValueError("video_id is required")
        self.views = _coerce_views(self.views)

    @classmethod
    def from_record(cls, record: VideoRecord, notes: str = "") -> "WatchlistEntry":
        return cls(
            video_id=record.video_id,
            title=record.title,
            channel=record.channel,
            views=record.views,
            niche=record.niche,
            notes=notes,
        )

    def to_dict(self) -> dict:
        return {
            "video_id": self.video_id,
            "title": self.title,
            "channel": self.channel,
            "views": self.views,
            "niche": self.niche,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def _decode_keywords(value) -> List[str]:
    """Keywords are stored as a JSON array; older rows may hold comma-separated text."""
    if isinstance(value, str) and value.startswith("["):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    return normalize_keywords(value)


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None
