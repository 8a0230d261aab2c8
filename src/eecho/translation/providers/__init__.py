"""Translation provider implementations."""

from __future__ import annotations

from eecho.config import EngineSettings
from eecho.translation.providers.base import ProviderResult, TranslateOptions, TranslateProvider
from eecho.translation.providers.echo import EchoProvider
from eecho.translation.providers.ollama import OllamaProvider
from eecho.translation.providers.transformers_provider import TransformersProvider

__all__ = [
    "EchoProvider",
    "OllamaProvider",
    "ProviderResult",
    "TransformersProvider",
    "TranslateOptions",
    "TranslateProvider",
    "build_provider",
]


def build_provider(engine: EngineSettings, *, quiet: bool = True) -> TranslateProvider:
    """Build the configured provider without loading any model yet."""

    if engine.provider == "transformers":
        return TransformersProvider(
            model=engine.model_name,
            timeout_seconds=engine.timeout_seconds,
            quiet=quiet,
        )
    if engine.provider == "ollama":
        return OllamaProvider(
            base_url=engine.ollama_url,
            model=engine.model_name,
            timeout_seconds=engine.timeout_seconds,
        )
    if engine.provider == "echo":
        return EchoProvider(delay_seconds=engine.echo_delay_seconds)
    raise ValueError(f"Unsupported translation provider: {engine.provider!r}")
