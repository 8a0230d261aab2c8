"""Runtime configuration for the CLI, the background worker and the engine."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

SUPPORTED_PROVIDERS = ("transformers", "ollama", "echo")
DEFAULT_MODELS = {
    "transformers": "Helsinki-NLP/opus-mt-ja-en",
    "ollama": "mistral:instruct",
    "echo": "echo",
}


def default_queue_dir() -> Path:
    return Path(tempfile.gettempdir()) / "eecho-worker"


@dataclass(slots=True)
class WorkerSettings:
    """Queue directory location and worker lifecycle timings."""

    queue_dir: Path = field(default_factory=default_queue_dir)
    spawn_timeout_seconds: float = 10.0
    spawn_poll_seconds: float = 0.2
    response_timeout_seconds: float = 60.0
    response_poll_seconds: float = 0.1
    scan_interval_seconds: float = 0.5
    orphan_ttl_seconds: float = 600.0
    debug: bool = False


@dataclass(slots=True)
class EngineSettings:
    """Translation engine settings."""

    provider: str = "transformers"
    model: str | None = None
    ollama_url: str = "http://localhost:11434"
    timeout_seconds: float = 30.0
    echo_delay_seconds: float = 0.0

    @property
    def model_name(self) -> str:
        return self.model or DEFAULT_MODELS.get(self.provider, DEFAULT_MODELS["transformers"])


@dataclass(slots=True)
class CliSettings:
    """Front-end behaviour toggles."""

    verbose: bool = False


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    worker: WorkerSettings = field(default_factory=WorkerSettings)
    engine: EngineSettings = field(default_factory=EngineSettings)
    cli: CliSettings = field(default_factory=CliSettings)

    @classmethod
    def from_env(cls, queue_dir: Path | None = None) -> Settings:
        """Load settings from ``EECHO_*`` environment variables."""

        env_queue_dir = os.getenv("EECHO_WORKER_DIR", "").strip()
        debug = _env_bool("EECHO_DEBUG", default=False) or _env_bool(
            "EECHO_WORKER_DEBUG",
            default=False,
        )
        return cls(
            worker=WorkerSettings(
                queue_dir=queue_dir or (Path(env_queue_dir) if env_queue_dir else default_queue_dir()),
                spawn_timeout_seconds=float(os.getenv("EECHO_SPAWN_TIMEOUT_SECONDS", "10")),
                response_timeout_seconds=float(os.getenv("EECHO_RESPONSE_TIMEOUT_SECONDS", "60")),
                scan_interval_seconds=float(os.getenv("EECHO_SCAN_INTERVAL_SECONDS", "0.5")),
                orphan_ttl_seconds=float(os.getenv("EECHO_ORPHAN_TTL_SECONDS", "600")),
                debug=debug,
            ),
            engine=EngineSettings(
                provider=os.getenv("EECHO_PROVIDER", "transformers").strip().lower(),
                model=os.getenv("EECHO_MODEL", "").strip() or None,
                ollama_url=os.getenv("EECHO_OLLAMA_URL", "http://localhost:11434").strip(),
                timeout_seconds=float(os.getenv("EECHO_TRANSLATE_TIMEOUT_SECONDS", "30")),
                echo_delay_seconds=float(os.getenv("EECHO_ECHO_DELAY_SECONDS", "0")),
            ),
            cli=CliSettings(
                verbose=_env_flag("EECHO_VERBOSE"),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for values the worker cannot run with."""

        if self.engine.provider not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"Unsupported EECHO_PROVIDER: {self.engine.provider!r}. "
                f"Expected one of: {', '.join(SUPPORTED_PROVIDERS)}.",
            )
        if self.engine.timeout_seconds <= 0:
            raise ValueError("EECHO_TRANSLATE_TIMEOUT_SECONDS must be > 0.")
        if self.worker.spawn_timeout_seconds <= 0:
            raise ValueError("EECHO_SPAWN_TIMEOUT_SECONDS must be > 0.")
        if self.worker.response_timeout_seconds <= 0:
            raise ValueError("EECHO_RESPONSE_TIMEOUT_SECONDS must be > 0.")
        if self.worker.scan_interval_seconds <= 0:
            raise ValueError("EECHO_SCAN_INTERVAL_SECONDS must be > 0.")
        if self.worker.orphan_ttl_seconds < 0:
            raise ValueError("EECHO_ORPHAN_TTL_SECONDS must be >= 0.")
        if self.engine.provider == "ollama":
            _validate_base_url(self.engine.ollama_url)


def _validate_base_url(value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            "Invalid EECHO_OLLAMA_URL: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )


def _env_flag(name: str) -> bool:
    """Loose on/off switch: only explicit truthy values enable it."""

    value = os.getenv(name)
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "on", "yes"}


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off", ""}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
