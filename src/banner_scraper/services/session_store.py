"""Concurrent-safe storage for scrape sessions."""

import copy
import itertools
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Protocol

from banner_scraper.domain.errors import (
    SessionAlreadyFinalizedError,
    SessionNotFoundError,
    SessionStillRunningError,
)
from banner_scraper.domain.sessions import (
    JobCompleted,
    JobOutcome,
    ProgressEntry,
    ScrapeRequest,
    SessionRecord,
    SessionStatus,
)


class SessionStore(Protocol):
    """Storage interface for scrape sessions."""

    def create(self, request: ScrapeRequest) -> str:
        """Insert a new running session and return its id."""

    def get(self, session_id: str) -> SessionRecord | None:
        """Return a snapshot of a session, if present."""

    def append_progress(self, session_id: str, message: str) -> bool:
        """Append a progress entry; return False if the session is terminal."""

    def finalize(self, session_id: str, outcome: JobOutcome) -> SessionRecord:
        """Move a running session to its terminal state exactly once."""

    def delete(self, session_id: str) -> bool:
        """Remove a finished session; return False if it is unknown."""

    def __len__(self) -> int:
        """Return the number of stored sessions."""


@dataclass
class _SessionSlot:
    record: SessionRecord
    progress: list[ProgressEntry] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def snapshot(self) -> SessionRecord:
        return replace(
            self.record,
            progress=tuple(self.progress),
            result=copy.deepcopy(self.record.result),
        )


class InMemorySessionStore(SessionStore):
    """Process-local session store.

    A short store-wide lock guards the id map only. Each session carries its
    own lock, so appends and finalization on one session never wait on
    another session's mutations.
    """

    def __init__(self) -> None:
        self._slots: dict[str, _SessionSlot] = {}
        self._lock = threading.Lock()
        self._sequence = itertools.count(1)

    def create(self, request: ScrapeRequest) -> str:
        """Allocate a fresh time-ordered id and insert a running session."""
        with self._lock:
            session_id = f"{time.time_ns() // 1_000_000}-{next(self._sequence)}"
            self._slots[session_id] = _SessionSlot(
                record=SessionRecord(
                    id=session_id,
                    request=request,
                    status=SessionStatus.RUNNING,
                    progress=(),
                    result=None,
                    error=None,
                    started_at=datetime.now(tz=UTC),
                )
            )
        return session_id

    def get(self, session_id: str) -> SessionRecord | None:
        """Return an immutable snapshot of a session."""
        slot = self._slot_or_none(session_id)
        if slot is None:
            return None
        with slot.lock:
            return slot.snapshot()

    def append_progress(self, session_id: str, message: str) -> bool:
        """Append a timestamped progress entry to a running session."""
        slot = self._slot(session_id)
        with slot.lock:
            if slot.record.status is not SessionStatus.RUNNING:
                return False
            slot.progress.append(
                ProgressEntry(timestamp=datetime.now(tz=UTC), message=message)
            )
            return True

    def finalize(self, session_id: str, outcome: JobOutcome) -> SessionRecord:
        """Record the job outcome; finalizing twice is an error."""
        slot = self._slot(session_id)
        with slot.lock:
            if slot.record.status is not SessionStatus.RUNNING:
                raise SessionAlreadyFinalizedError(session_id, slot.record.status)
            finished_at = datetime.now(tz=UTC)
            if isinstance(outcome, JobCompleted):
                slot.record = replace(
                    slot.record,
                    status=SessionStatus.COMPLETED,
                    result=outcome.result,
                    finished_at=finished_at,
                )
            else:
                slot.record = replace(
                    slot.record,
                    status=SessionStatus.FAILED,
                    error=outcome.error,
                    finished_at=finished_at,
                )
            return slot.snapshot()

    def delete(self, session_id: str) -> bool:
        """Drop a finished session from the store."""
        with self._lock:
            slot = self._slots.get(session_id)
            if slot is None:
                return False
            with slot.lock:
                if slot.record.status is SessionStatus.RUNNING:
                    raise SessionStillRunningError(session_id)
            del self._slots[session_id]
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def _slot_or_none(self, session_id: str) -> _SessionSlot | None:
        with self._lock:
            return self._slots.get(session_id)

    def _slot(self, session_id: str) -> _SessionSlot:
        slot = self._slot_or_none(session_id)
        if slot is None:
            raise SessionNotFoundError(session_id)
        return slot
