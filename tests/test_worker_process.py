from __future__ import annotations

import os
import signal
import threading
import time
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from eecho.config import Settings
from eecho.main import eecho
from eecho.translation.providers import EchoProvider
from eecho.translation.translator import Translator
from eecho.worker.daemon import WorkerDaemon
from eecho.worker.dispatcher import STARTUP_NOTICE, WorkerDispatcher
from eecho.worker.liveness import WorkerState, process_exists, read_pid
from eecho.worker.protocol import WorkerRequest, take_response, write_request

pytestmark = [
    allure.epic("Worker Queue"),
    allure.feature("Detached Worker Process"),
    pytest.mark.skipif(os.name == "nt", reason="POSIX process control"),
]


def _wait_for_exit(pid: int, timeout: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            reaped, _ = os.waitpid(pid, os.WNOHANG)
        except ChildProcessError:
            reaped = 0 if process_exists(pid) else pid
        if reaped == pid:
            return True
        time.sleep(0.05)
    return False


def test_cli_spawns_worker_reuses_it_and_shuts_it_down(echo_engine: Path) -> None:
    runner = CliRunner()

    first = runner.invoke(eecho, ["こんにちは"])
    assert first.exit_code == 0, first.output
    assert first.output.strip().splitlines()[-1] == "Hello"
    worker_pid = read_pid(echo_engine)
    assert worker_pid is not None
    assert worker_pid != os.getpid()

    second = runner.invoke(eecho, ["ありがとう"])
    assert second.exit_code == 0, second.output
    assert second.output.strip() == "Thank you"
    assert STARTUP_NOTICE not in second.output
    assert read_pid(echo_engine) == worker_pid

    stopped = runner.invoke(eecho, ["--shutdown-worker"])
    assert stopped.exit_code == 0, stopped.output
    assert stopped.output.strip() == "Worker shutdown complete."
    assert _wait_for_exit(worker_pid)
    assert read_pid(echo_engine) is None


def test_dispatcher_respawns_worker_after_crash(echo_engine: Path) -> None:
    dispatcher = WorkerDispatcher.from_settings(Settings.from_env().worker, notice=lambda message: None)

    assert dispatcher.request_translation("こんにちは").translated_text == "Hello"
    crashed_pid = read_pid(echo_engine)
    assert crashed_pid is not None
    os.kill(crashed_pid, signal.SIGKILL)
    assert _wait_for_exit(crashed_pid)
    assert read_pid(echo_engine) == crashed_pid

    result = dispatcher.request_translation("おはようございます")

    assert result.translated_text == "Good morning"
    assert dispatcher.spawn_count == 2
    restarted_pid = read_pid(echo_engine)
    assert restarted_pid is not None
    assert restarted_pid != crashed_pid


def test_shutdown_lets_in_flight_translation_finish(echo_engine: Path, monkeypatch) -> None:
    monkeypatch.setenv("EECHO_ECHO_DELAY_SECONDS", "1")
    settings = Settings.from_env().worker
    dispatcher = WorkerDispatcher.from_settings(settings, notice=lambda message: None)
    dispatcher.ensure_worker_running()
    worker_pid = read_pid(echo_engine)
    assert worker_pid is not None
    results = []
    translating = threading.Thread(
        target=lambda: results.append(dispatcher.request_translation("こんにちは")),
    )
    translating.start()
    time.sleep(0.3)

    WorkerDispatcher.from_settings(settings, notice=lambda message: None).shutdown_worker()
    translating.join(timeout=10)

    assert [result.translated_text for result in results] == ["Hello"]
    assert _wait_for_exit(worker_pid)
    assert read_pid(echo_engine) is None


def test_directory_events_wake_the_worker_before_the_interval_tick(queue_dir: Path) -> None:
    daemon = WorkerDaemon(
        queue_dir=queue_dir,
        translator_factory=lambda: Translator(EchoProvider()),
        scan_interval_seconds=30,
    )
    thread = threading.Thread(target=daemon.run, daemon=True)
    thread.start()
    deadline = time.monotonic() + 5
    while daemon.state is not WorkerState.ALIVE and time.monotonic() < deadline:
        time.sleep(0.01)

    try:
        write_request(queue_dir, WorkerRequest(id="1-event", text="こんにちは"))
        response = None
        deadline = time.monotonic() + 10
        while response is None and time.monotonic() < deadline:
            response = take_response(queue_dir, "1-event")
            time.sleep(0.02)
    finally:
        daemon.request_stop(reason="test teardown")
        thread.join(timeout=5)

    assert response is not None
    assert response.result is not None
    assert response.result.translated_text == "Hello"
