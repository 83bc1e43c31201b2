"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from banner_scraper.adapters.worker_process import AsyncioWorkerLauncher
from banner_scraper.config import Settings
from banner_scraper.services.jobs import JobOrchestrator
from banner_scraper.services.session_store import InMemorySessionStore, SessionStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_store: SessionStore
    job_orchestrator: JobOrchestrator
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    session_store = InMemorySessionStore()
    job_orchestrator = JobOrchestrator(
        store=session_store,
        launcher=AsyncioWorkerLauncher(),
        worker_executable=resolved_settings.worker_executable,
        worker_script=resolved_settings.worker_script,
        worker_cwd=resolved_settings.worker_cwd,
        worker_timeout_seconds=resolved_settings.worker_timeout_seconds,
        max_concurrent_jobs=resolved_settings.max_concurrent_jobs,
        result_marker_field=resolved_settings.result_marker_field,
    )

    async def close_resources() -> None:
        await job_orchestrator.shutdown(cancel=True)

    return AppContainer(
        settings=resolved_settings,
        session_store=session_store,
        job_orchestrator=job_orchestrator,
        close_resources=close_resources,
    )
