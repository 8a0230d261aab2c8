"""Shared test fixtures."""

from __future__ import annotations

import os
import signal
import time
from pathlib import Path

import pytest

from eecho.worker.liveness import process_exists, read_pid


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Drop any EECHO_* variables inherited from the developer's shell."""
    for name in list(os.environ):
        if name.startswith("EECHO_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def queue_dir(tmp_path: Path) -> Path:
    path = tmp_path / "queue"
    path.mkdir()
    return path


@pytest.fixture()
def echo_engine(monkeypatch, queue_dir: Path) -> Path:
    """Point the CLI and any spawned worker at the echo provider and a private queue."""
    monkeypatch.setenv("EECHO_PROVIDER", "echo")
    monkeypatch.setenv("EECHO_WORKER_DIR", str(queue_dir))
    monkeypatch.setenv("EECHO_SPAWN_TIMEOUT_SECONDS", "20")
    monkeypatch.setenv("EECHO_RESPONSE_TIMEOUT_SECONDS", "20")
    monkeypatch.setenv("EECHO_SCAN_INTERVAL_SECONDS", "0.1")
    yield queue_dir
    _terminate_worker(queue_dir)


def _terminate_worker(queue_dir: Path) -> None:
    pid = read_pid(queue_dir)
    if pid is None or pid == os.getpid() or not process_exists(pid):
        return
    os.kill(pid, signal.SIGTERM)
    deadline = time.monotonic() + 5
    while time.monotonic() < deadline and process_exists(pid):
        time.sleep(0.05)
