"""Logging configuration for the timeline planner."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

LOGGER_NAME = "solar_timeline"

VERBOSITY_QUIET = 0  # warnings and errors only
VERBOSITY_INFO = 1  # per-project summaries
VERBOSITY_DEBUG = 2  # engine internals (repair pass, search truncation)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger, or a child of it when `name` is given."""
    if name is None or name == LOGGER_NAME:
        return logging.getLogger(LOGGER_NAME)
    return logging.getLogger(f"{LOGGER_NAME}.{name.rsplit('.', 1)[-1]}")


def setup_logger(verbosity: int, stream: TextIO | None = None) -> None:
    """
    Configure the package logger for the given verbosity.

    Can be called repeatedly; existing handlers are replaced.
    """

    logger = get_logger()
    logger.handlers.clear()

    level_map = {
        VERBOSITY_QUIET: logging.WARNING,
        VERBOSITY_INFO: logging.INFO,
        VERBOSITY_DEBUG: logging.DEBUG,
    }
    level = level_map.get(verbosity, logging.DEBUG if verbosity > VERBOSITY_DEBUG else logging.WARNING)
    logger.setLevel(level)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def reset_logger() -> None:
    """Drop handlers and restore the default level (used by tests)."""
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
