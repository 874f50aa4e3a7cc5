"""Logging helpers for the command safety engine."""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

from opsbot_safety.config import Settings, load_settings

_logging_configured = False
_logging_lock = threading.Lock()

_logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _handler(handler: logging.Handler) -> logging.Handler:
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
    return handler


def configure_logging(settings: Settings | None = None) -> None:
    """Route engine logs to stderr and, when configured, to a log file.

    ``settings`` defaults to the cached environment settings; the engine passes
    the ones it was built from so both agree on level and file.
    """
    global _logging_configured

    settings = settings or load_settings()
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [_handler(logging.StreamHandler(sys.stderr))]

    log_file = settings.logging.file
    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(_handler(logging.FileHandler(log_file)))
        except OSError as exc:
            _logger.warning("Failed to open log file %s: %s", log_file, exc)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    if not _logging_configured:
        with _logging_lock:
            if not _logging_configured:
                configure_logging()
    return logging.getLogger(name)
