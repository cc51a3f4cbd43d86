"""Shared logging helpers.

Modules obtain a logger via ``get_logger(__name__)``; entrypoints call
``configure_logging()`` once with the level from ``LOG_LEVEL``.
"""

from __future__ import annotations

import logging
import os
import sys

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    level_name = level or os.getenv("LOG_LEVEL", "INFO")
    log_level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(level=log_level, format=_LOG_FORMAT, stream=sys.stderr)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
