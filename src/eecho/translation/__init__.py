"""Translation engine consumed by the worker and the local fallback."""

from eecho.translation.errors import EmptyInputError, EngineUnavailableError, TranslationError
from eecho.translation.translator import TranslationResult, Translator

__all__ = [
    "EmptyInputError",
    "EngineUnavailableError",
    "TranslationError",
    "TranslationResult",
    "Translator",
]
