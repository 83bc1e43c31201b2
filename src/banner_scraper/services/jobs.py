"""Scrape job orchestration: validation, worker supervision, finalization."""

import asyncio
import logging
from dataclasses import dataclass, field

from pydantic import AnyUrl, TypeAdapter, ValidationError

from banner_scraper.adapters.worker_process import WorkerLauncher, WorkerProcess
from banner_scraper.domain.errors import (
    JobValidationError,
    SessionNotFoundError,
    WorkerLaunchError,
    WorkerTimeoutError,
)
from banner_scraper.domain.locations import resolve_location
from banner_scraper.domain.sessions import (
    JobCompleted,
    JobFailed,
    JobOutcome,
    ScrapeRequest,
    SessionRecord,
)
from banner_scraper.services.output import (
    RESULT_MARKER_FIELD,
    LineBuffer,
    extract_progress_lines,
    extract_result,
)
from banner_scraper.services.session_store import SessionStore

_logger = logging.getLogger(__name__)

NO_RESULT_ERROR = "no valid structured result in output"
CANCELLED_ERROR = "job cancelled"

_URL_ADAPTER = TypeAdapter(AnyUrl)
_TRUTHY = {"true", "1", "yes", "on"}
_FALSY = {"false", "0", "no", "off"}


def build_request(
    url: object, location: object = 1, headless: object = True
) -> ScrapeRequest:
    """Validate raw job parameters and return a normalized request."""
    if url is None or (isinstance(url, str) and not url.strip()):
        raise JobValidationError("URL is required")
    if not isinstance(url, str):
        raise JobValidationError("invalid URL")
    cleaned_url = url.strip()
    try:
        _URL_ADAPTER.validate_python(cleaned_url)
    except ValidationError:
        raise JobValidationError("invalid URL") from None

    code = _parse_location_code(location)
    resolved = resolve_location(code) if code is not None else None
    if resolved is None:
        raise JobValidationError("invalid location")

    return ScrapeRequest(
        url=cleaned_url,
        location_code=resolved.id,
        region=resolved.code,
        headless=_normalize_flag(headless),
    )


@dataclass
class JobOrchestrator:
    """Run one supervised worker task per submitted scrape job."""

    store: SessionStore
    launcher: WorkerLauncher
    worker_executable: str = "python"
    worker_script: str = "execution/scrape_api.py"
    worker_cwd: str | None = None
    worker_timeout_seconds: float | None = None
    max_concurrent_jobs: int | None = None
    result_marker_field: str = RESULT_MARKER_FIELD
    _tasks: dict[str, asyncio.Task[None]] = field(default_factory=dict, init=False)
    _slots: asyncio.Semaphore | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        if self.max_concurrent_jobs is not None:
            if self.max_concurrent_jobs < 1:
                raise ValueError("max_concurrent_jobs must be positive")
            self._slots = asyncio.Semaphore(self.max_concurrent_jobs)

    @property
    def active_jobs(self) -> int:
        """Number of jobs whose worker task has not finished."""
        return len(self._tasks)

    async def submit(
        self, url: object, location: object = 1, headless: object = True
    ) -> str:
        """Create a session and start its worker in the background.

        Returns the session id without waiting for the worker. Validation
        problems raise JobValidationError; everything that goes wrong after
        that is recorded on the session.
        """
        request = build_request(url, location, headless)
        session_id = self.store.create(request)
        _logger.info(
            "[%s] Starting scrape: %s (%s)", session_id, request.url, request.region
        )
        task = asyncio.create_task(
            self._run(session_id, request), name=f"scrape-{session_id}"
        )
        self._tasks[session_id] = task
        task.add_done_callback(lambda done: self._on_done(session_id, done))
        return session_id

    def get_status(self, session_id: str) -> SessionRecord:
        """Return the current snapshot of a session."""
        session = self.store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def delete(self, session_id: str) -> None:
        """Forget a finished session."""
        if not self.store.delete(session_id):
            raise SessionNotFoundError(session_id)

    def worker_args(self, request: ScrapeRequest) -> list[str]:
        """Build the worker's command-line arguments."""
        return [
            self.worker_script,
            "--url",
            request.url,
            "--location",
            str(request.location_code),
            "--headless",
            "true" if request.headless else "false",
            "--json",
        ]

    async def wait(self, session_id: str) -> None:
        """Wait until the job for a session has been finalized."""
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.wait({task})

    async def shutdown(self, cancel: bool = True) -> None:
        """Cancel (or drain) every in-flight job."""
        tasks = list(self._tasks.values())
        if not tasks:
            return
        _logger.info("Shutting down with %s active job(s)", len(tasks))
        if cancel:
            for task in tasks:
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, session_id: str, request: ScrapeRequest) -> None:
        try:
            if self._slots is None:
                outcome = await self._execute(session_id, request)
            else:
                async with self._slots:
                    outcome = await self._execute(session_id, request)
        except asyncio.CancelledError:
            _logger.warning("[%s] Job cancelled", session_id)
            self._finalize(session_id, JobFailed(CANCELLED_ERROR))
            raise
        except Exception as exc:
            _logger.exception("[%s] Job crashed", session_id)
            outcome = JobFailed(f"internal error: {exc}")
        self._finalize(session_id, outcome)

    async def _execute(self, session_id: str, request: ScrapeRequest) -> JobOutcome:
        try:
            process = await self.launcher.start(
                self.worker_executable, self.worker_args(request), self.worker_cwd
            )
        except WorkerLaunchError as exc:
            _logger.error("[%s] Failed to launch worker: %s", session_id, exc)
            return JobFailed(f"failed to launch worker: {exc}")

        capture = _OutputCapture(session_id=session_id, store=self.store)
        try:
            exit_code = await self._stream(process, capture)
        except WorkerTimeoutError as exc:
            _logger.error("[%s] %s", session_id, exc)
            return JobFailed(str(exc))
        finally:
            process.kill()
        capture.flush()
        _logger.info("[%s] Process closed with code %s", session_id, exit_code)
        return self._interpret_exit(session_id, exit_code, capture)

    async def _stream(self, process: WorkerProcess, capture: "_OutputCapture") -> int:
        streaming = process.stream(capture.on_stdout, capture.on_stderr)
        if self.worker_timeout_seconds is None:
            return await streaming
        try:
            return await asyncio.wait_for(streaming, self.worker_timeout_seconds)
        except TimeoutError as exc:
            raise WorkerTimeoutError(
                f"worker timed out after {self.worker_timeout_seconds:g} seconds"
            ) from exc

    def _interpret_exit(
        self, session_id: str, exit_code: int, capture: "_OutputCapture"
    ) -> JobOutcome:
        if exit_code != 0:
            stderr_text = capture.stderr_text.strip()
            _logger.error("[%s] Failed with code %s", session_id, exit_code)
            return JobFailed(stderr_text or f"worker exited with code {exit_code}")

        result = extract_result(capture.stdout_text, self.result_marker_field)
        if result is None:
            _logger.error(
                "[%s] No structured result in output: %s",
                session_id,
                capture.stdout_text[:500],
            )
            return JobFailed(NO_RESULT_ERROR)
        _logger.info(
            "[%s] Completed: %s homepage + %s promo banners",
            session_id,
            _count(result.get("homepage")),
            _count(result.get("promotions")),
        )
        return JobCompleted(result)

    def _finalize(self, session_id: str, outcome: JobOutcome) -> None:
        session = self.store.finalize(session_id, outcome)
        _logger.info("[%s] Session %s", session_id, session.status)

    def _on_done(self, session_id: str, task: "asyncio.Task[None]") -> None:
        self._tasks.pop(session_id, None)
        if not task.cancelled():
            return
        # A task cancelled before its first step never ran _run.
        session = self.store.get(session_id)
        if session is not None and not session.is_terminal:
            self._finalize(session_id, JobFailed(CANCELLED_ERROR))


@dataclass
class _OutputCapture:
    """Collect worker output and forward progress markers to the store."""

    session_id: str
    store: SessionStore
    lines: LineBuffer = field(default_factory=LineBuffer)
    stdout: list[str] = field(default_factory=list)
    stderr: list[str] = field(default_factory=list)

    @property
    def stdout_text(self) -> str:
        return "".join(self.stdout)

    @property
    def stderr_text(self) -> str:
        return "".join(self.stderr)

    def on_stdout(self, chunk: str) -> None:
        self.stdout.append(chunk)
        self._record(self.lines.feed(chunk))

    def on_stderr(self, chunk: str) -> None:
        self.stderr.append(chunk)
        _logger.warning("[%s] Worker stderr: %s", self.session_id, chunk.rstrip())

    def flush(self) -> None:
        self._record(self.lines.flush())

    def _record(self, text: str) -> None:
        for line in extract_progress_lines(text):
            self.store.append_progress(self.session_id, line)


def _parse_location_code(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _normalize_flag(value: object) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
    # Anything else follows plain truthiness, so an explicit null means false.
    return bool(value)


def _count(value: object) -> int:
    return len(value) if isinstance(value, list) else 0
