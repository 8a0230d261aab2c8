"""Deterministic local provider for worker integration tests and smoke checks."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from eecho.translation.providers.base import ProviderResult, TranslateOptions

DEFAULT_PHRASEBOOK = {
    "こんにちは": "Hello",
    "ありがとう": "Thank you",
    "ありがとうございます": "Thank you very much",
    "おはようございます": "Good morning",
    "今日はいい天気ですね": "It's nice weather today",
}


@dataclass(slots=True)
class EchoProvider:
    """Looks text up in a phrasebook, otherwise echoes it back."""

    phrasebook: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PHRASEBOOK))
    delay_seconds: float = 0.0
    name: str = "echo"

    def translate(self, text: str, options: TranslateOptions | None = None) -> ProviderResult:  # noqa: ARG002
        started = time.monotonic()
        if self.delay_seconds > 0:
            time.sleep(self.delay_seconds)
        translated = self.phrasebook.get(text.strip(), text.strip())
        return ProviderResult(
            text=translated,
            model="echo",
            response_time_ms=int((time.monotonic() - started) * 1000),
        )

    def is_available(self) -> bool:
        return True

    def close(self) -> None:
        pass
