"""Long-lived worker that drains the queue directory with one warm translator."""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from eecho.config import Settings
from eecho.logging_setup import configure_logging
from eecho.translation.errors import TranslationError
from eecho.translation.providers import build_provider
from eecho.translation.translator import Translator
from eecho.worker.errors import MalformedRequestError, WorkerError
from eecho.worker.liveness import (
    WorkerState,
    claim_pid,
    marker_is_corrupt,
    process_exists,
    read_pid,
    remove_pid,
    write_pid,
)
from eecho.worker.protocol import (
    WorkerRequest,
    WorkerResponse,
    ensure_queue_dir,
    is_request_file,
    is_response_file,
    parse_request,
    read_request,
    request_id_from_name,
    write_response,
)

logger = logging.getLogger(__name__)

TranslatorFactory = Callable[[], Translator]


class EngineHandle:
    """Owns the daemon's single translator, built on first use."""

    def __init__(self, factory: TranslatorFactory) -> None:
        self._factory = factory
        self._translator: Translator | None = None
        self.builds = 0

    def get(self) -> Translator:
        if self._translator is None:
            self._translator = self._factory()
            self.builds += 1
        return self._translator

    def close(self) -> None:
        if self._translator is not None:
            self._translator.close()
            self._translator = None


@dataclass(slots=True)
class ScanSummary:
    """Counters for one pass over the queue directory."""

    processed: int = 0
    dropped: int = 0
    shutdown: bool = False


def handle_request(request: WorkerRequest, engine: EngineHandle) -> WorkerResponse:
    """Answer one request; engine failures become ``ok: false`` responses."""

    if request.is_shutdown:
        return WorkerResponse(ok=True)

    text = (request.text or "").strip()
    if not text:
        return WorkerResponse(ok=False, error="No input text provided")

    try:
        result = engine.get().translate(text)
    except (TranslationError, OSError, ValueError, RuntimeError) as error:
        logger.debug("Translation failed for request %s: %s", request.id, error)
        return WorkerResponse(ok=False, error=str(error) or error.__class__.__name__)
    return WorkerResponse(ok=True, result=result)


class _QueueEventHandler(FileSystemEventHandler):
    """Wakes the scan loop on any change inside the queue directory."""

    def __init__(self, wake: threading.Event) -> None:
        super().__init__()
        self._wake = wake

    def on_any_event(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._wake.set()


class WorkerDaemon:
    """Processes queued requests one at a time.

    Two triggers feed :meth:`scan_and_dispatch`: directory change events from
    ``watchdog`` and a fixed-interval safety-net tick, because change events
    are not delivered exactly once per change on every platform. The in-flight
    set keyed by file name keeps overlapping triggers from handling the same
    request twice.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        queue_dir: Path,
        translator_factory: TranslatorFactory,
        scan_interval_seconds: float = 0.5,
        orphan_ttl_seconds: float = 600.0,
        watch: bool = True,
        pid: int | None = None,
    ) -> None:
        self.queue_dir = queue_dir
        self.engine = EngineHandle(translator_factory)
        self.scan_interval_seconds = scan_interval_seconds
        self.orphan_ttl_seconds = orphan_ttl_seconds
        self.watch = watch
        self.pid = pid if pid is not None else os.getpid()
        self.state = WorkerState.NOT_RUNNING
        self._wake = threading.Event()
        self._in_flight: set[str] = set()
        self._in_flight_lock = threading.Lock()
        self._process_lock = threading.Lock()
        self._stop_requested = False
        self._stop_signal_name: str | None = None
        self._observer: Observer | None = None

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def start(self) -> bool:
        """Create the queue directory and claim the pid marker.

        Returns False without touching the marker when another live worker
        already owns it, or when a competing worker creates it first. A marker
        left by a dead process is replaced.
        """

        ensure_queue_dir(self.queue_dir)
        existing = read_pid(self.queue_dir)
        if existing == self.pid:
            write_pid(self.queue_dir, self.pid)
        else:
            if existing is not None:
                if process_exists(existing):
                    logger.debug("Worker %s already running for %s", existing, self.queue_dir)
                    return False
                remove_pid(self.queue_dir, expected_pid=existing)
            elif marker_is_corrupt(self.queue_dir):
                remove_pid(self.queue_dir)
            if not claim_pid(self.queue_dir, self.pid):
                logger.debug("Another worker claimed %s first", self.queue_dir)
                return False

        self.state = WorkerState.STARTING
        if self.watch:
            self._start_observer()
        self.state = WorkerState.ALIVE
        logger.debug("Worker %s watching %s", self.pid, self.queue_dir)
        return True

    def run(self, *, max_ticks: int | None = None) -> WorkerState:
        """Serve the queue until a shutdown request or a stop signal."""

        if not self.start():
            return self.state
        ticks = 0
        try:
            with self._signal_handlers():
                self.scan_and_dispatch()
                while not self._stop_requested:
                    if max_ticks is not None and ticks >= max_ticks:
                        break
                    triggered = self._wake.wait(timeout=self.scan_interval_seconds)
                    self._wake.clear()
                    if self._stop_requested:
                        break
                    self.scan_and_dispatch()
                    if not triggered:
                        self.reap_orphans()
                    ticks += 1
        finally:
            self.stop()
        return self.state

    def request_stop(self, *, reason: str) -> None:
        self._stop_requested = True
        self._stop_signal_name = reason
        self._wake.set()

    def stop(self) -> None:
        """Release the pid marker and the directory observer."""

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=2)
            self._observer = None
        self.engine.close()
        if self.state is not WorkerState.NOT_RUNNING:
            remove_pid(self.queue_dir, expected_pid=self.pid)
            logger.debug(
                "Worker %s stopped (%s)",
                self.pid,
                self._stop_signal_name or "loop exit",
            )
        self.state = WorkerState.NOT_RUNNING

    def scan_and_dispatch(self) -> ScanSummary:
        """List pending requests and process each one not already in flight.

        Names are visited in sorted order, which follows creation time for
        dispatcher-generated ids; this is best effort, not a FIFO guarantee.
        """

        summary = ScanSummary()
        for name in self._pending_requests():
            if self._stop_requested:
                break
            if not self._claim_in_flight(name):
                continue
            try:
                with self._process_lock:
                    outcome = None if self._stop_requested else self.process_request_file(name)
            except (WorkerError, OSError, ValueError) as error:
                logger.warning("Skipping request %s: %s", name, error)
                outcome = False
            finally:
                self._release_in_flight(name)
            if outcome is None:
                continue
            if outcome:
                summary.processed += 1
            else:
                summary.dropped += 1
            if self.state is WorkerState.DRAINING:
                summary.shutdown = True
                break
        return summary

    def process_request_file(self, name: str) -> bool | None:
        """Read, delete, parse and answer one request file.

        Returns True when a response was written, False when the request was
        malformed and dropped, None when another pass already took the file.
        """

        request_file = self.queue_dir / name
        claimed = request_file.with_name(f".{name}.{self.pid}.claimed")
        try:
            os.replace(request_file, claimed)
        except FileNotFoundError:
            return None
        try:
            request = read_request(claimed)
        except (MalformedRequestError, OSError) as error:
            request_id = request_id_from_name(name) or name
            logger.debug("Dropping malformed request %s: %s", request_id, error)
            return False
        finally:
            claimed.unlink(missing_ok=True)

        if request.is_shutdown:
            self.state = WorkerState.DRAINING
        response = handle_request(request, self.engine)
        write_response(self.queue_dir, request.id, response)
        logger.debug("Answered request %s ok=%s", request.id, response.ok)

        if request.is_shutdown:
            remove_pid(self.queue_dir, expected_pid=self.pid)
            self.request_stop(reason="shutdown request")
        return True

    def reap_orphans(self, *, now: float | None = None) -> int:
        """Delete responses nobody collected and leftovers of interrupted writes."""

        if self.orphan_ttl_seconds <= 0:
            return 0
        cutoff = (now if now is not None else time.time()) - self.orphan_ttl_seconds
        removed = 0
        try:
            entries = list(os.scandir(self.queue_dir))
        except FileNotFoundError:
            return 0
        for entry in entries:
            name = entry.name
            leftover = name.startswith(".") and name.endswith((".tmp", ".claimed"))
            if not (is_response_file(name) or leftover):
                continue
            try:
                if entry.stat().st_mtime >= cutoff:
                    continue
                os.unlink(entry.path)
            except FileNotFoundError:
                continue
            removed += 1
            logger.debug("Reaped orphaned file %s", name)
        return removed

    def _pending_requests(self) -> list[str]:
        try:
            names = os.listdir(self.queue_dir)
        except FileNotFoundError:
            ensure_queue_dir(self.queue_dir)
            return []
        return sorted(name for name in names if is_request_file(name))

    def _claim_in_flight(self, name: str) -> bool:
        with self._in_flight_lock:
            if name in self._in_flight:
                return False
            self._in_flight.add(name)
            return True

    def _release_in_flight(self, name: str) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(name)

    def _start_observer(self) -> None:
        observer = Observer()
        observer.daemon = True
        try:
            observer.schedule(_QueueEventHandler(self._wake), str(self.queue_dir), recursive=False)
            observer.start()
        except OSError as error:
            logger.warning("Directory watch unavailable, relying on interval scans: %s", error)
            return
        self._observer = observer

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        if not hasattr(signal, "SIGINT"):
            yield
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            self.request_stop(reason=name)

        installed = False
        try:
            signal.signal(signal.SIGINT, _handler)
            signal.signal(signal.SIGTERM, _handler)
            installed = True
        except ValueError:
            # Signal handlers can only be installed in main thread.
            logger.debug("Signal handlers not installed outside the main thread")
        try:
            yield
        finally:
            if installed:
                signal.signal(signal.SIGINT, original_sigint)
                signal.signal(signal.SIGTERM, original_sigterm)


def build_daemon(settings: Settings, *, queue_dir: Path | None = None) -> WorkerDaemon:
    engine_settings = settings.engine

    def _factory() -> Translator:
        return Translator(build_provider(engine_settings, quiet=True))

    return WorkerDaemon(
        queue_dir=queue_dir or settings.worker.queue_dir,
        translator_factory=_factory,
        scan_interval_seconds=settings.worker.scan_interval_seconds,
        orphan_ttl_seconds=settings.worker.orphan_ttl_seconds,
    )


def run_single_request(settings: Settings, payload: str, output_path: Path | None) -> int:
    """Answer one JSON request given on the command line, without a queue."""

    try:
        raw = json.loads(payload)
    except json.JSONDecodeError as error:
        raise MalformedRequestError(f"Request is not valid JSON: {error}") from error
    if not isinstance(raw, dict):
        raise MalformedRequestError("Request must be a JSON object")
    request = parse_request(json.dumps({"id": "single", **raw}))

    engine = EngineHandle(lambda: Translator(build_provider(settings.engine, quiet=True)))
    response = handle_request(request, engine)
    document = json.dumps(response.to_payload(), ensure_ascii=False)
    if output_path is not None:
        output_path.write_text(document, "utf-8")
    else:
        sys.stdout.write(f"{document}\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point of the background worker process."""

    parser = argparse.ArgumentParser(prog="eecho-worker")
    parser.add_argument("--queue", nargs="?", const="", default=None, metavar="DIR")
    parser.add_argument("payload", nargs="?")
    parser.add_argument("output", nargs="?")
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
        settings.validate()
        configure_logging(debug=settings.worker.debug)
        if args.queue is not None:
            queue_dir = Path(args.queue) if args.queue else settings.worker.queue_dir
            build_daemon(settings, queue_dir=queue_dir).run()
            return 0
        if not args.payload:
            raise MalformedRequestError("Missing worker payload")
        output_path = Path(args.output) if args.output else None
        return run_single_request(settings, args.payload, output_path)
    except (WorkerError, TranslationError, OSError, ValueError) as error:
        sys.stderr.write(f"Fatal error: {error or 'Unknown fatal error'}\n")
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
