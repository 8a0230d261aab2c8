"""Failures of the queued worker path.

Every error here is recoverable by translating locally; only
``ShutdownWhenNotRunningError`` is meant to reach the user as-is.
"""

from __future__ import annotations


class WorkerError(RuntimeError):
    """Base class for worker-path failures."""


class WorkerSpawnError(WorkerError):
    """Worker process could not be started at all."""


class WorkerSpawnTimeoutError(WorkerError):
    """Worker never became alive within the spawn timeout."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Worker failed to start within {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class WorkerResponseTimeoutError(WorkerError):
    """No response file appeared within the response timeout."""

    def __init__(self, request_id: str, timeout_seconds: float) -> None:
        super().__init__(f"Worker response timeout for request {request_id} ({timeout_seconds:g}s)")
        self.request_id = request_id
        self.timeout_seconds = timeout_seconds


class MalformedRequestError(WorkerError):
    """Request file is not a JSON object with a string ``id``."""


class MalformedResponseError(WorkerError):
    """Response file does not follow the ``{ok, result?, error?}`` shape."""


class WorkerRequestFailedError(WorkerError):
    """Worker answered with ``ok: false``."""


class ShutdownWhenNotRunningError(WorkerError):
    """Shutdown was requested while no worker is alive."""

    def __init__(self) -> None:
        super().__init__("Worker is not running")
