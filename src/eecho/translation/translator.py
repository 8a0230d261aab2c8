"""Translation pipeline: detect Japanese, check the provider, translate."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from eecho.translation.detect import detect_japanese
from eecho.translation.errors import EmptyInputError, EngineUnavailableError
from eecho.translation.providers.base import TranslateProvider


@dataclass(slots=True)
class TranslationResult:
    """Outcome of one translation; ``duration_ms`` is wall time in milliseconds."""

    translated_text: str
    original_text: str
    was_japanese: bool
    provider: str
    duration_ms: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "translatedText": self.translated_text,
            "originalText": self.original_text,
            "wasJapanese": self.was_japanese,
            "provider": self.provider,
            "duration": self.duration_ms,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TranslationResult:
        """Parse the camelCase wire form; raises ValueError on missing fields."""

        try:
            translated_text = payload["translatedText"]
            original_text = payload["originalText"]
            was_japanese = payload["wasJapanese"]
            provider = payload["provider"]
            duration = payload["duration"]
        except KeyError as error:
            raise ValueError(f"Translation result is missing field: {error}") from error
        if not isinstance(translated_text, str) or not isinstance(original_text, str):
            raise ValueError("Translation result text fields must be strings.")
        if not isinstance(was_japanese, bool):
            raise ValueError("Translation result wasJapanese must be a boolean.")
        if isinstance(duration, bool) or not isinstance(duration, (int, float)):
            raise ValueError("Translation result duration must be a number.")
        return cls(
            translated_text=translated_text,
            original_text=original_text,
            was_japanese=was_japanese,
            provider=str(provider),
            duration_ms=max(0, int(duration)),
        )


class Translator:
    """Wraps one provider; expensive provider state is reused across calls."""

    def __init__(self, provider: TranslateProvider) -> None:
        self.provider = provider

    def translate(self, text: str) -> TranslationResult:
        started = time.monotonic()
        if not text or not text.strip():
            raise EmptyInputError()

        original_text = text.strip()
        if not detect_japanese(original_text):
            return TranslationResult(
                translated_text=original_text,
                original_text=original_text,
                was_japanese=False,
                provider=self.provider.name,
                duration_ms=_elapsed_ms(started),
            )

        if not self.provider.is_available():
            raise EngineUnavailableError(self.provider.name)

        result = self.provider.translate(original_text)
        return TranslationResult(
            translated_text=result.text,
            original_text=original_text,
            was_japanese=True,
            provider=self.provider.name,
            duration_ms=_elapsed_ms(started),
        )

    def is_available(self) -> bool:
        return self.provider.is_available()

    def close(self) -> None:
        self.provider.close()


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.monotonic() - started) * 1000))
