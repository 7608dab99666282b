"""Logging for gitforge.

Adapters log under ``gitforge.<provider>`` and never attach handlers.
Applications that want gitforge's output call :func:`setup_logging` once.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from gitforge.config import Settings, get_settings

ROOT_LOGGER = "gitforge"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3

_configured = False


def _handlers(settings: Settings) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.log_file:
        path = Path(settings.log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8")
        )
    return handlers


def setup_logging(settings: Settings | None = None) -> logging.Logger:
    """Attach stderr (and, when ``log_file`` is set, rotating file) handlers
    to the ``gitforge`` logger.  Later calls are no-ops."""
    global _configured
    root = logging.getLogger(ROOT_LOGGER)
    if _configured:
        return root

    settings = settings or get_settings()
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    root.propagate = False

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in _handlers(settings):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    _configured = True
    root.debug("gitforge logging ready: level=%s file=%s", settings.log_level, settings.log_file or "-")
    return root


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    return logging.getLogger(name)
