"""Worker liveness: the pid marker plus a signal-less process existence check."""

from __future__ import annotations

import logging
import os
from enum import StrEnum
from pathlib import Path

from eecho.worker.protocol import pid_path

logger = logging.getLogger(__name__)

_WINDOWS_PROCESS_QUERY_LIMITED_INFORMATION = 0x1000
_WINDOWS_STILL_ACTIVE = 259
_WINDOWS_ERROR_ACCESS_DENIED = 5


class WorkerState(StrEnum):
    """Logical worker lifecycle; only ALIVE/DRAINING have a pid marker."""

    NOT_RUNNING = "not_running"
    STARTING = "starting"
    ALIVE = "alive"
    DRAINING = "draining"


def read_pid(queue_dir: Path) -> int | None:
    try:
        raw = pid_path(queue_dir).read_text("utf-8").strip()
    except (OSError, UnicodeDecodeError):
        return None
    try:
        pid = int(raw)
    except ValueError:
        return None
    return pid if pid > 0 else None


def write_pid(queue_dir: Path, pid: int | None = None) -> Path:
    path = pid_path(queue_dir)
    path.write_text(str(pid if pid is not None else os.getpid()), "utf-8")
    return path


def claim_pid(queue_dir: Path, pid: int | None = None) -> bool:
    """Create the marker only if none exists; False when another process won."""

    value = str(pid if pid is not None else os.getpid())
    try:
        fd = os.open(pid_path(queue_dir), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError:
        return False
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(value)
    return True


def marker_is_corrupt(queue_dir: Path) -> bool:
    """True when the marker holds text that is not a pid.

    An empty marker is not corrupt: a competing worker may be between
    creating it and writing its pid.
    """

    try:
        raw = pid_path(queue_dir).read_text("utf-8").strip()
    except UnicodeDecodeError:
        return True
    except OSError:
        return False
    return bool(raw) and read_pid(queue_dir) is None


def remove_pid(queue_dir: Path, *, expected_pid: int | None = None) -> bool:
    """Delete the marker; with ``expected_pid`` only if it still names that pid."""

    if expected_pid is not None and read_pid(queue_dir) != expected_pid:
        return False
    try:
        pid_path(queue_dir).unlink()
    except FileNotFoundError:
        return False
    return True


def process_exists(pid: int) -> bool:
    """Check whether ``pid`` names a live process without affecting it."""

    if pid <= 0:
        return False
    if os.name == "nt":
        return _windows_process_exists(pid)
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, but owned by someone else.
        return True
    except OSError:
        return False
    return _is_not_zombie(pid)


def worker_state(queue_dir: Path) -> WorkerState:
    """Report ALIVE or NOT_RUNNING, deleting a marker left by a dead worker."""

    pid = read_pid(queue_dir)
    if pid is None:
        return WorkerState.NOT_RUNNING
    if process_exists(pid):
        return WorkerState.ALIVE
    logger.debug("Removing stale pid marker for pid %s", pid)
    remove_pid(queue_dir, expected_pid=pid)
    return WorkerState.NOT_RUNNING


def is_worker_alive(queue_dir: Path) -> bool:
    return worker_state(queue_dir) is WorkerState.ALIVE


def _is_not_zombie(pid: int) -> bool:
    # A killed child that was never reaped still answers signal 0 on POSIX.
    status_path = Path(f"/proc/{pid}/stat")
    try:
        fields = status_path.read_text("utf-8").rsplit(")", 1)[1].split()
    except (OSError, IndexError):
        return True
    return not fields or fields[0] != "Z"


def _windows_process_exists(pid: int) -> bool:  # pragma: no cover - windows only
    import ctypes
    from ctypes import wintypes

    kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    handle = kernel32.OpenProcess(_WINDOWS_PROCESS_QUERY_LIMITED_INFORMATION, False, pid)
    if not handle:
        return ctypes.get_last_error() == _WINDOWS_ERROR_ACCESS_DENIED
    try:
        exit_code = wintypes.DWORD()
        if not kernel32.GetExitCodeProcess(handle, ctypes.byref(exit_code)):
            return True
        return exit_code.value == _WINDOWS_STILL_ACTIVE
    finally:
        kernel32.CloseHandle(handle)
