"""Pydantic models for the scrape API payloads."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from banner_scraper.domain.sessions import SessionRecord, SessionStatus

_API_STATUS = {
    SessionStatus.RUNNING: "running",
    SessionStatus.COMPLETED: "completed",
    SessionStatus.FAILED: "error",
}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScrapeJobRequest(BaseModel):
    """Body of a scrape submission.

    Fields are loosely typed on purpose: the orchestrator owns validation and
    reports problems as 400 errors rather than 422 schema failures.
    """

    url: object = None
    location: object = 1
    headless: object = True


class ScrapeJobAccepted(_CamelModel):
    """Response for an accepted scrape submission."""

    success: bool = True
    session_id: str
    message: str = "Scraping started"


class ProgressItem(BaseModel):
    """One progress entry."""

    timestamp: datetime
    message: str


class ScrapeJobStatus(_CamelModel):
    """Polling view of a scrape session."""

    id: str
    url: str
    location_region: str
    status: str
    progress: list[ProgressItem]
    result: dict[str, object] | None
    error: str | None
    duration_ms: int | None

    @classmethod
    def from_record(cls, session: SessionRecord) -> "ScrapeJobStatus":
        """Build the API view of a session snapshot."""
        return cls(
            id=session.id,
            url=session.request.url,
            location_region=session.request.region,
            status=_API_STATUS[session.status],
            progress=[
                ProgressItem(timestamp=entry.timestamp, message=entry.message)
                for entry in session.progress
            ],
            result=session.result,
            error=session.error,
            duration_ms=(
                session.duration_ms
                if session.status is SessionStatus.COMPLETED
                else None
            ),
        )


class LocationItem(BaseModel):
    """A selectable scrape location."""

    id: int
    code: str
    name: str


class HealthStatus(_CamelModel):
    """Service health summary."""

    status: str
    active_sessions: int
    timestamp: datetime
