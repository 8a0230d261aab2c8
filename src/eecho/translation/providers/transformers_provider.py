"""Hugging Face ``transformers`` provider running an opus-mt model on CPU."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from typing import Any

from eecho.logging_setup import suppress_hf_hub_unauth_warning
from eecho.translation.errors import TranslationError
from eecho.translation.providers.base import ProviderResult, TranslateOptions

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "Helsinki-NLP/opus-mt-ja-en"
MAX_LENGTH = 512


class TransformersProvider:
    """Translation pipeline with lazy import and one-time model load.

    The first call downloads the model into the Hugging Face cache (about
    300MB); later calls, and every call inside a warm worker, reuse the loaded
    pipeline.
    """

    name = "transformers"

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL,
        timeout_seconds: float = 30.0,
        quiet: bool = True,
    ) -> None:
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.quiet = quiet
        self._pipeline: Any = None
        self._init_lock = threading.Lock()

    def translate(self, text: str, options: TranslateOptions | None = None) -> ProviderResult:
        started = time.monotonic()
        timeout = (options.timeout_seconds if options else None) or self.timeout_seconds
        try:
            translator = self._ensure_pipeline()
            output = _call_with_timeout(lambda: translator(text, max_length=MAX_LENGTH), timeout)
        except TranslationError:
            raise
        except Exception as error:  # noqa: BLE001
            raise TranslationError(f"Translation failed: {error}") from error

        return ProviderResult(
            text=_extract_translation(output, fallback=text),
            model=self.model,
            response_time_ms=int((time.monotonic() - started) * 1000),
        )

    def is_available(self) -> bool:
        # Models are downloaded on demand, so the provider is always usable.
        return True

    def _ensure_pipeline(self) -> Any:
        with self._init_lock:
            if self._pipeline is not None:
                return self._pipeline
            suppress_hf_hub_unauth_warning()
            try:
                import transformers  # type: ignore
            except ImportError as error:
                raise TranslationError(
                    "The transformers provider requires the 'model' extra: "
                    "pip install 'eecho[model]'.",
                ) from error

            if self.quiet:
                transformers.logging.set_verbosity_error()
                transformers.utils.logging.disable_progress_bar()
            else:
                transformers.logging.set_verbosity_warning()
                transformers.utils.logging.enable_progress_bar()
            logger.info("Loading translation model %s", self.model)
            self._pipeline = transformers.pipeline("translation", model=self.model)
            logger.info("Model ready: %s", self.model)
            return self._pipeline

    def close(self) -> None:
        with self._init_lock:
            self._pipeline = None


def _call_with_timeout(func: Callable[[], Any], timeout: float) -> Any:
    """Run func on a daemon thread; an abandoned call never blocks interpreter exit."""

    outcome: queue.Queue[tuple[bool, Any]] = queue.Queue(maxsize=1)

    def _target() -> None:
        try:
            outcome.put((True, func()))
        except Exception as error:  # noqa: BLE001
            outcome.put((False, error))

    threading.Thread(target=_target, name="eecho-engine", daemon=True).start()
    try:
        succeeded, value = outcome.get(timeout=timeout)
    except queue.Empty as error:
        raise TranslationError("Translation timeout") from error
    if not succeeded:
        raise value
    return value


def _extract_translation(result: object, *, fallback: str) -> str:
    if isinstance(result, list) and result:
        first = result[0]
        if isinstance(first, dict) and isinstance(first.get("translation_text"), str):
            return first["translation_text"]
    return fallback
