"""Shared test fixtures."""

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import pytest

from banner_scraper.adapters.worker_process import (
    ChunkHandler,
    WorkerLauncher,
    WorkerProcess,
)
from banner_scraper.config import Settings
from banner_scraper.containers import AppContainer
from banner_scraper.domain.errors import WorkerLaunchError
from banner_scraper.services.jobs import JobOrchestrator
from banner_scraper.services.session_store import InMemorySessionStore

SUCCESS_OUTPUT = (
    "[*] Launching browser\n"
    "[+] Found 2 homepage banners\n"
    '{"homepage": [{"src": "a.png"}, {"src": "b.png"}], "promotions": []}\n'
)


@dataclass
class FakeWorkerProcess(WorkerProcess):
    """Scripted worker that replays fixed output chunks."""

    stdout_chunks: list[str] = field(default_factory=list)
    stderr_chunks: list[str] = field(default_factory=list)
    exit_code: int = 0
    release: asyncio.Event | None = None
    killed: bool = False

    async def stream(self, on_stdout: ChunkHandler, on_stderr: ChunkHandler) -> int:
        for chunk in self.stderr_chunks:
            on_stderr(chunk)
            await asyncio.sleep(0)
        for chunk in self.stdout_chunks:
            on_stdout(chunk)
            await asyncio.sleep(0)
        if self.release is not None:
            await self.release.wait()
        return self.exit_code

    def kill(self) -> None:
        self.killed = True


@dataclass
class FakeWorkerLauncher(WorkerLauncher):
    """Launcher that hands out scripted workers and records invocations."""

    factory: Callable[[list[str]], FakeWorkerProcess] | None = None
    error: WorkerLaunchError | None = None
    calls: list[tuple[str, list[str], str | None]] = field(default_factory=list)
    processes: list[FakeWorkerProcess] = field(default_factory=list)

    async def start(
        self, executable: str, args: Sequence[str], cwd: str | None
    ) -> FakeWorkerProcess:
        self.calls.append((executable, list(args), cwd))
        if self.error is not None:
            raise self.error
        if self.factory is not None:
            process = self.factory(list(args))
        else:
            process = FakeWorkerProcess(stdout_chunks=[SUCCESS_OUTPUT])
        self.processes.append(process)
        return process


def scripted(
    stdout: Sequence[str] = (),
    stderr: Sequence[str] = (),
    exit_code: int = 0,
    release: asyncio.Event | None = None,
) -> FakeWorkerLauncher:
    """Build a launcher whose every worker replays the same output."""
    return FakeWorkerLauncher(
        factory=lambda _args: FakeWorkerProcess(
            stdout_chunks=list(stdout),
            stderr_chunks=list(stderr),
            exit_code=exit_code,
            release=release,
        )
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        worker_executable="python",
        worker_script="execution/scrape_api.py",
        worker_cwd="/srv/scraper",
        log_level="DEBUG",
    )


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def launcher() -> FakeWorkerLauncher:
    return FakeWorkerLauncher()


@pytest.fixture
def orchestrator(
    settings: Settings,
    session_store: InMemorySessionStore,
    launcher: FakeWorkerLauncher,
) -> JobOrchestrator:
    return JobOrchestrator(
        store=session_store,
        launcher=launcher,
        worker_executable=settings.worker_executable,
        worker_script=settings.worker_script,
        worker_cwd=settings.worker_cwd,
    )


@pytest.fixture
def container(
    settings: Settings,
    session_store: InMemorySessionStore,
    orchestrator: JobOrchestrator,
) -> AppContainer:
    async def close_resources() -> None:
        await orchestrator.shutdown(cancel=True)

    return AppContainer(
        settings=settings,
        session_store=session_store,
        job_orchestrator=orchestrator,
        close_resources=close_resources,
    )
