"""In-process translation used when the background worker cannot answer."""

from __future__ import annotations

from collections.abc import Callable

from eecho.config import EngineSettings
from eecho.translation.providers import build_provider
from eecho.translation.translator import TranslationResult, Translator

TranslatorFactory = Callable[[bool], Translator]


def translator_factory(engine: EngineSettings) -> TranslatorFactory:
    """Return a factory that builds a translator for the given quiet flag."""

    def _build(quiet: bool) -> Translator:
        return Translator(build_provider(engine, quiet=quiet))

    return _build


class LocalTranslator:
    """Fallback executor: one cached translator per quiet/verbose mode."""

    def __init__(self, factory: TranslatorFactory) -> None:
        self._factory = factory
        self._cache: dict[bool, Translator] = {}

    def translator(self, *, quiet: bool) -> Translator:
        cached = self._cache.get(quiet)
        if cached is None:
            cached = self._factory(quiet)
            self._cache[quiet] = cached
        return cached

    def translate(self, text: str, *, quiet: bool = True) -> TranslationResult:
        return self.translator(quiet=quiet).translate(text.strip())

    def close(self) -> None:
        for translator in self._cache.values():
            translator.close()
        self._cache.clear()
