"""Domain models for scrape sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class SessionStatus(StrEnum):
    """Lifecycle state of a scrape session."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ScrapeRequest:
    """Normalized, validated scrape parameters."""

    url: str
    location_code: int
    region: str
    headless: bool


@dataclass(frozen=True)
class ProgressEntry:
    """One progress marker line reported by the worker."""

    timestamp: datetime
    message: str


@dataclass(frozen=True)
class JobCompleted:
    """Successful outcome carrying the worker's structured result."""

    result: dict[str, object]


@dataclass(frozen=True)
class JobFailed:
    """Failed outcome carrying a human-readable error."""

    error: str


JobOutcome = JobCompleted | JobFailed


@dataclass(frozen=True)
class SessionRecord:
    """Read-only snapshot of a scrape session."""

    id: str
    request: ScrapeRequest
    status: SessionStatus
    progress: tuple[ProgressEntry, ...]
    result: dict[str, object] | None
    error: str | None
    started_at: datetime
    finished_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        """Whether the session has left the running state."""
        return self.status is not SessionStatus.RUNNING

    @property
    def duration_ms(self) -> int | None:
        """Milliseconds between start and finish, once finished."""
        if self.finished_at is None:
            return None
        return int((self.finished_at - self.started_at).total_seconds() * 1000)
