"""Diagnostics logging on stderr.

stdout carries the relayed agent protocol, so every log record goes to stderr
through a single handler on the ``keybridge`` package logger.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TextIO

from keybridge.limits import MAX_LOG_MESSAGE_LENGTH

LOG_FORMAT = "keybridge[%(process)d]: %(name)s: %(message)s"
_TRUNCATION_SUFFIX = "... [truncated]"


class StderrLogHandler(logging.StreamHandler):
    """Stream handler that writes to stderr and truncates oversized messages."""

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__(stream if stream is not None else sys.stderr)
        self.setFormatter(logging.Formatter(LOG_FORMAT))

    def format(self, record: logging.LogRecord) -> str:
        output = super().format(record)
        if len(output) > MAX_LOG_MESSAGE_LENGTH:
            output = output[:MAX_LOG_MESSAGE_LENGTH] + _TRUNCATION_SUFFIX
        return output


_handler: StderrLogHandler | None = None


def setup_debug_logging(debug: bool = False, *, stream: TextIO | None = None) -> logging.Logger:
    """Attach the stderr handler to the package logger.

    Idempotent: later calls only adjust the level.
    """
    global _handler

    package_logger = logging.getLogger("keybridge")
    if _handler is None:
        _handler = StderrLogHandler(stream)
        package_logger.addHandler(_handler)
        package_logger.propagate = False

    package_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    package_logger.debug("Debug logging initialized (pid %d)", os.getpid())
    return package_logger


def reset_debug_logging() -> None:
    """Detach the stderr handler installed by :func:`setup_debug_logging`."""
    global _handler

    if _handler is not None:
        package_logger = logging.getLogger("keybridge")
        package_logger.removeHandler(_handler)
        package_logger.propagate = True
        package_logger.setLevel(logging.NOTSET)
        _handler = None


__all__ = ["LOG_FORMAT", "StderrLogHandler", "reset_debug_logging", "setup_debug_logging"]
