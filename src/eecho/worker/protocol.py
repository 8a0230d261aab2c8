"""File-based request/response contracts shared by dispatcher and worker."""

from __future__ import annotations

import json
import os
import random
import string
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from eecho.translation.translator import TranslationResult
from eecho.worker.errors import MalformedRequestError, MalformedResponseError

REQUEST_PREFIX = "req-"
RESPONSE_PREFIX = "res-"
FILE_EXT = ".json"
PID_FILE = "worker.pid"
SHUTDOWN_COMMAND = "shutdown"
LOG_LEVELS = ("verbose", "info", "warning", "error", "fatal")

_ID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass(slots=True)
class WorkerRequest:
    """One queued unit of work; ``command`` is only ever ``"shutdown"``."""

    id: str
    text: str | None = None
    command: str | None = None
    quiet: bool | None = None
    log_level: str | None = None

    @property
    def is_shutdown(self) -> bool:
        return self.command == SHUTDOWN_COMMAND

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id}
        if self.text is not None:
            payload["text"] = self.text
        if self.command is not None:
            payload["command"] = self.command
        if self.quiet is not None:
            payload["quiet"] = self.quiet
        if self.log_level is not None:
            payload["logLevel"] = self.log_level
        return payload


@dataclass(slots=True)
class WorkerResponse:
    """Worker answer for one request id."""

    ok: bool
    result: TranslationResult | None = None
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": self.ok}
        if self.result is not None:
            payload["result"] = self.result.to_payload()
        if self.error is not None:
            payload["error"] = self.error
        return payload


def new_request_id() -> str:
    """Time-based id with a random suffix; unique among outstanding requests."""

    suffix = "".join(random.choices(_ID_ALPHABET, k=10))  # noqa: S311
    return f"{int(time.time() * 1000)}-{suffix}"


def request_path(queue_dir: Path, request_id: str) -> Path:
    return queue_dir / f"{REQUEST_PREFIX}{request_id}{FILE_EXT}"


def response_path(queue_dir: Path, request_id: str) -> Path:
    return queue_dir / f"{RESPONSE_PREFIX}{request_id}{FILE_EXT}"


def pid_path(queue_dir: Path) -> Path:
    return queue_dir / PID_FILE


def is_request_file(name: str) -> bool:
    return name.startswith(REQUEST_PREFIX) and name.endswith(FILE_EXT)


def is_response_file(name: str) -> bool:
    return name.startswith(RESPONSE_PREFIX) and name.endswith(FILE_EXT)


def request_id_from_name(name: str) -> str | None:
    """Return the id encoded in a request file name, or None for other files."""

    if not is_request_file(name):
        return None
    request_id = name[len(REQUEST_PREFIX) : -len(FILE_EXT)]
    return request_id or None


def ensure_queue_dir(queue_dir: Path) -> None:
    queue_dir.mkdir(parents=True, exist_ok=True)


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    """Write JSON next to the target, then rename it into place.

    The temporary name starts with a dot so it never matches the request or
    response families while it is being written.
    """

    tmp_path = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    try:
        tmp_path.write_text(json.dumps(payload, ensure_ascii=False), "utf-8")
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def write_request(queue_dir: Path, request: WorkerRequest) -> Path:
    path = request_path(queue_dir, request.id)
    write_json_atomic(path, request.to_payload())
    return path


def write_response(queue_dir: Path, request_id: str, response: WorkerResponse) -> Path:
    path = response_path(queue_dir, request_id)
    write_json_atomic(path, response.to_payload())
    return path


def parse_request(raw: str) -> WorkerRequest:
    """Deserialize and validate a request document."""

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as error:
        raise MalformedRequestError(f"Request is not valid JSON: {error}") from error
    if not isinstance(payload, dict):
        raise MalformedRequestError("Request must be a JSON object")

    request_id = payload.get("id")
    if not isinstance(request_id, str) or not request_id.strip():
        raise MalformedRequestError("Missing request id")
    text = payload.get("text")
    if text is not None and not isinstance(text, str):
        raise MalformedRequestError("request.text must be a string when provided")
    command = payload.get("command")
    if command is not None and command != SHUTDOWN_COMMAND:
        raise MalformedRequestError(f"Unsupported request command: {command!r}")
    quiet = payload.get("quiet")
    if quiet is not None and not isinstance(quiet, bool):
        raise MalformedRequestError("request.quiet must be a boolean when provided")
    log_level = payload.get("logLevel")
    if log_level is not None and log_level not in LOG_LEVELS:
        raise MalformedRequestError(f"Unsupported request logLevel: {log_level!r}")

    return WorkerRequest(
        id=request_id,
        text=text,
        command=command,
        quiet=quiet,
        log_level=log_level,
    )


def read_request(path: Path) -> WorkerRequest:
    """Read and validate a request file; undecodable bytes count as malformed.

    A missing file or another I/O failure propagates as ``OSError``.
    """

    try:
        raw = path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as error:
        raise MalformedRequestError(f"Request is not valid UTF-8: {error}") from error
    return parse_request(raw)


def parse_response(raw: str) -> WorkerResponse:
    """Deserialize and validate a response document."""

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as error:
        raise MalformedResponseError(f"Response is not valid JSON: {error}") from error
    if not isinstance(payload, dict):
        raise MalformedResponseError("Response must be a JSON object")

    ok = payload.get("ok")
    if not isinstance(ok, bool):
        raise MalformedResponseError("response.ok must be a boolean")
    error = payload.get("error")
    if error is not None and not isinstance(error, str):
        raise MalformedResponseError("response.error must be a string when provided")

    result: TranslationResult | None = None
    raw_result = payload.get("result")
    if raw_result is not None:
        if not isinstance(raw_result, dict):
            raise MalformedResponseError("response.result must be an object when provided")
        try:
            result = TranslationResult.from_payload(raw_result)
        except ValueError as parse_error:
            raise MalformedResponseError(str(parse_error)) from parse_error

    return WorkerResponse(ok=ok, result=result, error=error)


def take_response(queue_dir: Path, request_id: str) -> WorkerResponse | None:
    """Read and delete the response for ``request_id``.

    Returns None while the response does not exist yet; any other I/O error
    propagates.
    """

    path = response_path(queue_dir, request_id)
    try:
        raw = path.read_text("utf-8")
    except FileNotFoundError:
        return None
    path.unlink(missing_ok=True)
    return parse_response(raw)
