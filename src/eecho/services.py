"""Top-level translation path: warm worker first, local engine as fallback."""

from __future__ import annotations

import logging

from eecho.translation.errors import EmptyInputError
from eecho.translation.local import LocalTranslator
from eecho.translation.translator import TranslationResult
from eecho.worker.dispatcher import WorkerDispatcher
from eecho.worker.errors import WorkerError

logger = logging.getLogger(__name__)


class TranslationService:
    """Routes a translation through the worker queue or the local translator."""

    def __init__(
        self,
        *,
        dispatcher: WorkerDispatcher,
        local: LocalTranslator,
    ) -> None:
        self.dispatcher = dispatcher
        self.local = local

    def translate(self, text: str, *, verbose: bool = False) -> TranslationResult:
        """Translate text; worker failures fall back to a local run.

        Verbose runs skip the worker entirely so engine diagnostics reach the
        caller's stderr instead of the detached process.
        """

        trimmed = text.strip()
        if not trimmed:
            raise EmptyInputError()

        if verbose:
            return self.local.translate(trimmed, quiet=False)

        try:
            return self.dispatcher.request_translation(trimmed)
        except (WorkerError, OSError, ValueError) as error:
            logger.debug("Worker error (%s). Falling back to local translation.", error)
            return self.local.translate(trimmed, quiet=True)

    def shutdown_worker(self) -> None:
        self.dispatcher.shutdown_worker()

    def close(self) -> None:
        self.local.close()
