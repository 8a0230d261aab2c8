"""Stderr logging for the CLI and the worker process."""

from __future__ import annotations

import logging
import re
import sys

_HF_UNAUTH_WARNING_PATTERN = re.compile(
    r"^Warning:\s*You are sending unauthenticated requests to the HF Hub\.",
)
_LOG_FORMAT = "%(asctime)s %(process)d %(name)s %(levelname)s: %(message)s"


class _StderrHandler(logging.StreamHandler):
    """Always write to the current ``sys.stderr``."""

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, _value) -> None:
        pass


class _HfHubUnauthWarningFilter(logging.Filter):
    """Suppress one noisy HF Hub unauthenticated warning line."""

    def filter(self, record: logging.LogRecord) -> bool:
        return _HF_UNAUTH_WARNING_PATTERN.match(record.getMessage()) is None


def suppress_hf_hub_unauth_warning() -> None:
    logger = logging.getLogger("huggingface_hub.utils._http")
    if any(isinstance(item, _HfHubUnauthWarningFilter) for item in logger.filters):
        return
    logger.addFilter(_HfHubUnauthWarningFilter())


def configure_logging(*, debug: bool, verbose: bool = False) -> None:
    """Route ``eecho`` loggers to stderr; DEBUG for debug runs, INFO for verbose ones."""

    root = logging.getLogger("eecho")
    if debug:
        root.setLevel(logging.DEBUG)
    elif verbose:
        root.setLevel(logging.INFO)
    else:
        root.setLevel(logging.WARNING)
    if not any(isinstance(handler, _StderrHandler) for handler in root.handlers):
        handler = _StderrHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        root.addHandler(handler)
    root.propagate = False
    suppress_hf_hub_unauth_warning()
