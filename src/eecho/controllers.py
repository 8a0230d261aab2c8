"""Controllers for the eecho CLI."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from eecho.config import Settings
from eecho.services import TranslationService
from eecho.translation.local import LocalTranslator, translator_factory
from eecho.worker.dispatcher import WorkerDispatcher

NON_JAPANESE_WARNING = "Warning: Input text does not contain Japanese"
SHUTDOWN_COMPLETE = "Worker shutdown complete."


@dataclass(slots=True)
class TranslateCommand:
    """CLI input for one translation."""

    text: str
    verbose: bool = False


@dataclass(slots=True)
class ShutdownWorkerCommand:
    """CLI input for stopping the background worker."""


@dataclass(slots=True)
class TranslateOutput:
    """Lines for stdout plus diagnostics for stderr."""

    lines: list[str]
    warnings: list[str] = field(default_factory=list)


class EechoCliController:
    """Wires settings, dispatcher and local fallback for CLI commands."""

    def __init__(self, settings_loader: Callable[[], Settings] = Settings.from_env) -> None:
        self._settings_loader = settings_loader

    def translate(self, command: TranslateCommand) -> TranslateOutput:
        settings = self.settings()
        verbose = command.verbose or settings.cli.verbose
        service = _service(settings)
        try:
            result = service.translate(command.text, verbose=verbose)
        finally:
            service.close()
        warnings = [NON_JAPANESE_WARNING] if verbose and not result.was_japanese else []
        return TranslateOutput(lines=[result.translated_text], warnings=warnings)

    def shutdown_worker(self, command: ShutdownWorkerCommand) -> list[str]:  # noqa: ARG002
        settings = self.settings()
        _service(settings).shutdown_worker()
        return [SHUTDOWN_COMPLETE]

    def settings(self) -> Settings:
        settings = self._settings_loader()
        settings.validate()
        return settings


def _service(settings: Settings) -> TranslationService:
    return TranslationService(
        dispatcher=WorkerDispatcher.from_settings(settings.worker),
        local=LocalTranslator(translator_factory(settings.engine)),
    )
