"""Provider interface for translation engines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(slots=True)
class TranslateOptions:
    """Per-call overrides for one translation."""

    target_lang: str = "English"
    timeout_seconds: float | None = None


@dataclass(slots=True)
class ProviderResult:
    """Raw provider output before it is wrapped into a translation result."""

    text: str
    model: str | None = None
    response_time_ms: int | None = None


class TranslateProvider(Protocol):
    """Protocol implemented by translation engines."""

    name: str

    def translate(self, text: str, options: TranslateOptions | None = None) -> ProviderResult:
        """Translate text and return provider output."""

    def is_available(self) -> bool:
        """Return True when the provider can serve requests."""

    def close(self) -> None:
        """Release clients, threads or models held by the provider."""
