"""Exceptions raised by the scrape job layer."""


class JobValidationError(ValueError):
    """Raised when a submitted job request is malformed."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class SessionNotFoundError(LookupError):
    """Raised when a session id is unknown."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class SessionAlreadyFinalizedError(RuntimeError):
    """Raised when finalizing a session that already reached a terminal state."""

    def __init__(self, session_id: str, status: str) -> None:
        super().__init__(f"Session {session_id} is already {status}")
        self.session_id = session_id
        self.status = status


class SessionStillRunningError(RuntimeError):
    """Raised when deleting a session whose job has not finished."""


class WorkerLaunchError(RuntimeError):
    """Raised when the worker process cannot be started."""


class WorkerTimeoutError(RuntimeError):
    """Raised when the worker process exceeds its allowed runtime."""
