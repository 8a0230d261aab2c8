"""Engine-side errors raised by translators and providers."""

from __future__ import annotations


class TranslationError(RuntimeError):
    """Translation attempt failed inside the engine."""


class EngineUnavailableError(TranslationError):
    """Configured provider reports it cannot serve requests."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            f'Translation provider "{provider}" is not available. '
            "Please check your internet connection for the first run "
            "(model download required).",
        )
        self.provider = provider


class EmptyInputError(TranslationError):
    """Input was empty after trimming."""

    def __init__(self) -> None:
        super().__init__("Translation input cannot be empty")
