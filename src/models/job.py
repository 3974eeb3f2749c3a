"""Data models for scrape jobs and batch operation outcomes."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from models.video import VideoRecord


class JobState(str, Enum):
    """Lifecycle of one (niche, time period) scrape job."""

    PENDING = "pending"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.DONE, JobState.FAILED)


# Forward path only; any non-terminal state may fail.
_TRANSITIONS: Dict[JobState, tuple] = {
    JobState.PENDING: (JobState.FETCHING, JobState.FAILED),
    JobState.FETCHING: (JobState.EXTRACTING, JobState.FAILED),
    JobState.EXTRACTING: (JobState.PERSISTING, JobState.FAILED),
    JobState.PERSISTING: (JobState.DONE, JobState.FAILED),
    JobState.DONE: (),
    JobState.FAILED: (),
}


class InvalidTransitionError(RuntimeError):
    """Raised when a job is moved to a state it cannot reach."""


@dataclass
class JobResult:
    """Per-niche outcome reported back to the caller of a run."""

    niche: str
    time_period: str
    count: int = 0
    success: bool = True
    error: Optional[str] = None

    def to_dict(self) -> dict:
        result = {
            "niche": self.niche or "general",
            "time_period": self.time_period,
            "count": self.count,
            "success": self.success,
        }
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class ScrapeJob:
    """One (niche, time period) unit of scheduled work."""

    niche: str
    time_period: str
    state: JobState = JobState.PENDING
    history: List[JobState] = field(default_factory=lambda: [JobState.PENDING])
    count: int = 0
    error: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def job_id(self) -> str:
        return f"{self.niche or 'general'}:{self.time_period}"

    def advance(self, new_state: JobState) -> None:
        """Move to the next state, enforcing the allowed transitions."""
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Job {self.job_id} cannot move from {self.state.value} to {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)
        if new_state.is_terminal:
            self.finished_at = datetime.now()

    def fail(self, error: str) -> None:
        self.error = error
        self.advance(JobState.FAILED)

    def to_result(self) -> JobResult:
        return JobResult(
            niche=self.niche,
            time_period=self.time_period,
            count=self.count,
            success=self.state == JobState.DONE,
            error=self.error,
        )


@dataclass
class DedupResult:
    """Output of duplicate detection. Pure data, nothing deleted yet."""

    survivors: List[VideoRecord] = field(default_factory=list)
    duplicate_ids: List[str] = field(default_factory=list)
    protected_skipped: List[str] = field(default_factory=list)

    @property
    def duplicates_found(self) -> int:
        return len(self.duplicate_ids)


@dataclass
class DeletionReport:
    """Outcome of a batched delete-by-id run."""

    requested: int = 0
    deleted: int = 0
    failed_batches: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed_batches == 0

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "requested": self.requested,
            "deleted": self.deleted,
            "failed_batches": self.failed_batches,
            "errors": list(self.errors),
        }
