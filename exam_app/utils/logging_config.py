"""Logging configuration helpers for the exam application."""

from __future__ import annotations

import logging
from logging import Logger
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str | int | None = None) -> Logger:
    """Configure basic logging and return the application logger.

    ``level`` falls back to the ``EXAMQT_LOG_LEVEL`` environment variable, then INFO.
    """
    if level is None:
        level = os.environ.get("EXAMQT_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger = logging.getLogger("exam_app")
    logger.setLevel(level)
    return logger
