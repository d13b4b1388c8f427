from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Application logger for the importer.

One logger (``imob_import``) writes ``LABEL message`` lines to stdout:

    INFO parsed 1200 rows, checking duplicates in imob
    WARN dedup chunk 2/3 failed (attempt 1/3), retrying in 0.61s: timeout
    ERROR duplicate check failed: ...
    SUMMARY parsed=1200 duplicates=4 new=1196

Modules below the package log through ``logging.getLogger(__name__)`` and reach
it by propagation; the application logger itself does not propagate to root.
"""

__all__ = [
    "LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "log_summary",
    "reset_logging",
]

LOGGER_NAME = "imob_import"
SUMMARY_LEVEL = 25  # INFO < SUMMARY < WARNING

_LABELS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    SUMMARY_LEVEL: "SUMMARY",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRITICAL",
}

_configured: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """``LABEL message``; levels without a label fall back to ``levelname``."""

    def format(self, record: logging.LogRecord) -> str:
        label = _LABELS.get(record.levelno, record.levelname)
        text = record.getMessage()
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return f"{label} {text}"


def _apply_level(logger: logging.Logger, level: int) -> None:
    logger.setLevel(level)
    for h in logger.handlers:
        h.setLevel(level)


def setup_logging(debug: bool = False, stream: TextIO | None = None) -> logging.Logger:
    """Configure the application logger once; later calls can only turn on DEBUG.

    ``stream`` defaults to ``sys.stdout`` as it is at configuration time, so
    after ``reset_logging()`` the next setup writes to whatever stdout is then
    (pytest's capsys relies on this).
    """
    global _configured

    if _configured is None:
        logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
        logger = logging.getLogger(LOGGER_NAME)
        # 再設定時は古いハンドラを捨てる
        logger.handlers.clear()
        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setFormatter(LabeledFormatter())
        logger.addHandler(handler)
        logger.propagate = False
        _apply_level(logger, logging.INFO)
        _configured = logger

    if debug:
        _apply_level(_configured, logging.DEBUG)
    return _configured


def get_logger() -> logging.Logger:
    return _configured if _configured is not None else setup_logging()


def log_summary(message: str) -> None:
    """Emit ``message`` at SUMMARY level; the formatter adds the ``SUMMARY`` label."""
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Forget the configured logger (tests)."""
    global _configured
    _configured = None
