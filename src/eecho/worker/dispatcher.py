"""Front-end side of the queue: keep a worker alive, enqueue, wait for answers."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import time
from collections.abc import Callable
from pathlib import Path

from eecho.config import WorkerSettings
from eecho.translation.translator import TranslationResult
from eecho.worker.errors import (
    ShutdownWhenNotRunningError,
    WorkerRequestFailedError,
    WorkerResponseTimeoutError,
    WorkerSpawnError,
    WorkerSpawnTimeoutError,
)
from eecho.worker.liveness import WorkerState, worker_state
from eecho.worker.protocol import (
    SHUTDOWN_COMMAND,
    WorkerRequest,
    WorkerResponse,
    ensure_queue_dir,
    new_request_id,
    take_response,
    write_request,
)

logger = logging.getLogger(__name__)

WORKER_MODULE = "eecho.worker.daemon"
STARTUP_NOTICE = "Starting translation worker... (shown only on first launch)"

Spawner = Callable[[Path, bool], None]
Notice = Callable[[str], None]


def spawn_detached_worker(queue_dir: Path, debug: bool) -> None:
    """Launch the worker in its own session so it outlives the CLI process."""

    env = os.environ.copy()
    env["EECHO_WORKER_DIR"] = str(queue_dir)
    if debug:
        env["EECHO_WORKER_DEBUG"] = "1"
    stdio = None if debug else subprocess.DEVNULL
    kwargs: dict[str, object] = {}
    if os.name == "nt":
        kwargs["creationflags"] = (
            subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP  # type: ignore[attr-defined]
        )
    else:
        kwargs["start_new_session"] = True
    try:
        subprocess.Popen(  # noqa: S603
            [sys.executable, "-m", WORKER_MODULE, "--queue", str(queue_dir)],
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=stdio,
            stderr=stdio,
            close_fds=True,
            **kwargs,
        )
    except OSError as error:
        raise WorkerSpawnError(f"Failed to spawn worker: {error}") from error


def _stderr_notice(message: str) -> None:
    sys.stderr.write(f"{message}\n")


class WorkerDispatcher:
    """Ensures a worker runs and exchanges request/response files with it."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        queue_dir: Path,
        debug: bool = False,
        spawn_timeout_seconds: float = 10.0,
        spawn_poll_seconds: float = 0.2,
        response_timeout_seconds: float = 60.0,
        response_poll_seconds: float = 0.1,
        spawner: Spawner | None = None,
        notice: Notice | None = None,
    ) -> None:
        self.queue_dir = queue_dir
        self.debug = debug
        self.spawn_timeout_seconds = spawn_timeout_seconds
        self.spawn_poll_seconds = spawn_poll_seconds
        self.response_timeout_seconds = response_timeout_seconds
        self.response_poll_seconds = response_poll_seconds
        self._spawner = spawner or spawn_detached_worker
        self._notice = notice or _stderr_notice
        self._notice_shown = False
        self.spawn_count = 0

    @classmethod
    def from_settings(cls, settings: WorkerSettings, **overrides: object) -> WorkerDispatcher:
        return cls(
            queue_dir=settings.queue_dir,
            debug=settings.debug,
            spawn_timeout_seconds=settings.spawn_timeout_seconds,
            spawn_poll_seconds=settings.spawn_poll_seconds,
            response_timeout_seconds=settings.response_timeout_seconds,
            response_poll_seconds=settings.response_poll_seconds,
            **overrides,  # type: ignore[arg-type]
        )

    def worker_state(self) -> WorkerState:
        return worker_state(self.queue_dir)

    def is_worker_alive(self) -> bool:
        return self.worker_state() is WorkerState.ALIVE

    def ensure_worker_running(self) -> None:
        """Spawn a worker unless one is alive; idempotent while it stays alive."""

        if self.is_worker_alive():
            return
        self._show_startup_notice()
        self.spawn_worker()
        self.wait_for_worker_ready()

    def spawn_worker(self) -> None:
        ensure_queue_dir(self.queue_dir)
        logger.debug("Spawning worker for %s", self.queue_dir)
        self._spawner(self.queue_dir, self.debug)
        self.spawn_count += 1

    def wait_for_worker_ready(self) -> None:
        deadline = time.monotonic() + self.spawn_timeout_seconds
        while time.monotonic() < deadline:
            if self.is_worker_alive():
                return
            time.sleep(self.spawn_poll_seconds)
        raise WorkerSpawnTimeoutError(self.spawn_timeout_seconds)

    def queue_worker_request(
        self,
        *,
        text: str | None = None,
        command: str | None = None,
    ) -> WorkerResponse:
        """Write a request, make sure a worker will see it, wait for the answer."""

        ensure_queue_dir(self.queue_dir)
        request = WorkerRequest(id=new_request_id(), text=text, command=command)
        write_request(self.queue_dir, request)
        logger.debug("Queued request %s", request.id)
        self.ensure_worker_running()
        return self.wait_for_response(request.id)

    def wait_for_response(self, request_id: str) -> WorkerResponse:
        deadline = time.monotonic() + self.response_timeout_seconds
        while time.monotonic() < deadline:
            response = take_response(self.queue_dir, request_id)
            if response is not None:
                return response
            time.sleep(self.response_poll_seconds)
        raise WorkerResponseTimeoutError(request_id, self.response_timeout_seconds)

    def request_translation(self, text: str) -> TranslationResult:
        response = self.queue_worker_request(text=text)
        if not response.ok or response.result is None:
            raise WorkerRequestFailedError(response.error or "Translation failed")
        return response.result

    def shutdown_worker(self) -> None:
        """Ask the worker to exit after finishing queued work ahead of the request."""

        if not self.is_worker_alive():
            raise ShutdownWhenNotRunningError()
        response = self.queue_worker_request(command=SHUTDOWN_COMMAND)
        if not response.ok:
            raise WorkerRequestFailedError(response.error or "Failed to shutdown worker")

    def _show_startup_notice(self) -> None:
        if self._notice_shown:
            return
        self._notice_shown = True
        self._notice(STARTUP_NOTICE)
