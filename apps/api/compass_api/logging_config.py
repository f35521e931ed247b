"""Logging setup for the API process.

The root logger gets one stdout handler at ``log_level``; the ``compass_api``
package logger can run at its own level (``package_log_level``) so retriever
and lookup debug lines can be enabled without turning on DEBUG for uvicorn,
SQLAlchemy and every other library.
"""

from __future__ import annotations

import logging
import sys

from compass_api.config import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
PACKAGE_LOGGER = "compass_api"
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _level(name: str | None, default: int) -> int:
    if not name:
        return default
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else default


def setup_logging(settings: Settings) -> None:
    root_level = _level(settings.log_level, logging.INFO)

    root = logging.getLogger()
    root.setLevel(root_level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    # NOTSET defers to the root level when no package level is configured.
    logging.getLogger(PACKAGE_LOGGER).setLevel(_level(settings.package_log_level, logging.NOTSET))

    for name in _SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers.clear()
        server_logger.propagate = True
