"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from banner_scraper.api.models import (
    HealthStatus,
    LocationItem,
    ScrapeJobAccepted,
    ScrapeJobRequest,
    ScrapeJobStatus,
)
from banner_scraper.app_logging import configure_logging
from banner_scraper.containers import AppContainer
from banner_scraper.domain.errors import (
    JobValidationError,
    SessionNotFoundError,
    SessionStillRunningError,
)
from banner_scraper.domain.locations import list_locations


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Banner scraper API ready (worker: %s)", _worker_label(container))
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(JobValidationError)
    async def validation_error(
        request: Request, exc: JobValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content={"error": exc.reason}
        )

    @app.exception_handler(SessionNotFoundError)
    async def not_found(request: Request, exc: SessionNotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND, content={"error": "not found"}
        )

    @app.exception_handler(SessionStillRunningError)
    async def still_running(
        request: Request, exc: SessionStillRunningError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"error": "session still running"},
        )

    @app.get("/api/health", response_model=HealthStatus)
    async def health(request: Request) -> HealthStatus:
        """Simple health check endpoint."""
        state_container: AppContainer = request.app.state.container
        return HealthStatus(
            status="ok",
            active_sessions=len(state_container.session_store),
            timestamp=datetime.now(tz=UTC),
        )

    @app.post("/api/scrape", response_model=ScrapeJobAccepted)
    async def start_scrape(
        body: ScrapeJobRequest, request: Request
    ) -> ScrapeJobAccepted:
        """Start a scrape job and return its session id immediately."""
        state_container: AppContainer = request.app.state.container
        session_id = await state_container.job_orchestrator.submit(
            body.url, body.location, body.headless
        )
        return ScrapeJobAccepted(session_id=session_id)

    @app.get("/api/scrape/{session_id}", response_model=ScrapeJobStatus)
    async def scrape_status(session_id: str, request: Request) -> ScrapeJobStatus:
        """Return status, progress and results of a scrape job."""
        state_container: AppContainer = request.app.state.container
        session = state_container.job_orchestrator.get_status(session_id)
        return ScrapeJobStatus.from_record(session)

    @app.delete("/api/scrape/{session_id}")
    async def delete_scrape(session_id: str, request: Request) -> dict[str, bool]:
        """Forget a finished scrape job."""
        state_container: AppContainer = request.app.state.container
        state_container.job_orchestrator.delete(session_id)
        return {"deleted": True}

    @app.get("/api/locations", response_model=list[LocationItem])
    async def locations() -> list[LocationItem]:
        """Return available scrape locations."""
        return [
            LocationItem(id=location.id, code=location.code, name=location.name)
            for location in list_locations()
        ]

    return app


def _worker_label(container: AppContainer) -> str:
    settings = container.settings
    return f"{settings.worker_executable} {settings.worker_script}"
