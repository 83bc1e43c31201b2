"""Asyncio subprocess adapter for the external scrape worker."""

import asyncio
import codecs
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from banner_scraper.domain.errors import WorkerLaunchError

ChunkHandler = Callable[[str], None]


class WorkerProcess(Protocol):
    """A running worker whose output can be streamed until exit."""

    async def stream(self, on_stdout: ChunkHandler, on_stderr: ChunkHandler) -> int:
        """Deliver output chunks as they arrive and return the exit code."""

    def kill(self) -> None:
        """Terminate the worker if it is still running."""


class WorkerLauncher(Protocol):
    """Interface for starting worker processes."""

    async def start(
        self, executable: str, args: Sequence[str], cwd: str | None
    ) -> WorkerProcess:
        """Launch the worker or raise WorkerLaunchError."""


@dataclass
class AsyncioWorkerProcess(WorkerProcess):
    """Worker process backed by an asyncio subprocess."""

    process: asyncio.subprocess.Process
    chunk_size: int = 4096

    async def stream(self, on_stdout: ChunkHandler, on_stderr: ChunkHandler) -> int:
        """Pump stdout and stderr concurrently, then wait for exit."""
        await asyncio.gather(
            self._pump(self.process.stdout, on_stdout),
            self._pump(self.process.stderr, on_stderr),
        )
        return await self.process.wait()

    def kill(self) -> None:
        """Kill the subprocess, ignoring one that already exited."""
        if self.process.returncode is None:
            try:
                self.process.kill()
            except ProcessLookupError:
                pass

    async def _pump(
        self, reader: asyncio.StreamReader | None, handler: ChunkHandler
    ) -> None:
        if reader is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await reader.read(self.chunk_size)
            if not data:
                break
            text = decoder.decode(data)
            if text:
                handler(text)
        tail = decoder.decode(b"", final=True)
        if tail:
            handler(tail)


@dataclass
class AsyncioWorkerLauncher(WorkerLauncher):
    """Launch workers with asyncio.create_subprocess_exec."""

    chunk_size: int = 4096

    async def start(
        self, executable: str, args: Sequence[str], cwd: str | None
    ) -> AsyncioWorkerProcess:
        """Start the executable with piped stdout and stderr."""
        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *args,
                cwd=cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise WorkerLaunchError(f"{executable}: {exc.strerror or exc}") from exc
        return AsyncioWorkerProcess(process=process, chunk_size=self.chunk_size)
