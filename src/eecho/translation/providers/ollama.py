"""Ollama HTTP provider using a local instruct model."""

from __future__ import annotations

import logging
import re
import time

import httpx

from eecho.translation.errors import TranslationError
from eecho.translation.providers.base import ProviderResult, TranslateOptions

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "mistral:instruct"
AVAILABILITY_TIMEOUT_SECONDS = 3.0
_LABEL_PATTERN = re.compile(r"^(Translation|English|Output):\s*", re.IGNORECASE)


class OllamaProvider:
    """Calls ``/api/generate`` of a locally running Ollama server."""

    name = "ollama"

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        timeout_seconds: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            transport=transport,
        )

    def translate(self, text: str, options: TranslateOptions | None = None) -> ProviderResult:
        started = time.monotonic()
        target_lang = options.target_lang if options else "English"
        timeout = (options.timeout_seconds if options else None) or self.timeout_seconds
        payload = {
            "model": self.model,
            "prompt": build_prompt(text, target_lang=target_lang),
            "stream": False,
            "options": {"temperature": 0.3},
        }
        try:
            response = self._client.post("/api/generate", json=payload, timeout=timeout)
        except httpx.TimeoutException as error:
            raise TranslationError("Translation timeout") from error
        except httpx.HTTPError as error:
            raise TranslationError(f"Translation failed: {error}") from error

        if not response.is_success:
            raise TranslationError(
                f"Translation failed: Ollama API error: {response.status_code} "
                f"{response.reason_phrase}",
            )
        try:
            data = response.json()
        except ValueError as error:
            raise TranslationError(f"Translation failed: invalid JSON from Ollama: {error}") from error

        return ProviderResult(
            text=cleanup_response(str(data.get("response", ""))),
            model=self.model,
            response_time_ms=int((time.monotonic() - started) * 1000),
        )

    def is_available(self) -> bool:
        try:
            response = self._client.get("/api/tags", timeout=AVAILABILITY_TIMEOUT_SECONDS)
        except httpx.HTTPError as exc:
            logger.debug("Ollama availability check failed: %s", exc)
            return False
        return response.is_success

    def close(self) -> None:
        self._client.close()


def build_prompt(text: str, *, target_lang: str = "English") -> str:
    return (
        f"Translate the following Japanese text to {target_lang}. "
        "Output only the translation, without any explanations, quotes, or additional text.\n"
        "\n"
        f"Japanese: {text}\n"
        "\n"
        f"{target_lang}:"
    )


def cleanup_response(response: str) -> str:
    """Strip wrapping quotes and leading labels the model sometimes adds."""

    cleaned = response.strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in {'"', "'"}:
        cleaned = cleaned[1:-1]
    cleaned = _LABEL_PATTERN.sub("", cleaned)
    return cleaned.strip()
