"""Logging helpers.

The library itself only creates module loggers under the ``pyvarsolve``
hierarchy.  Scripts that want console output call :func:`reset_logging`.
"""

from __future__ import annotations

import logging
import sys

PACKAGE_LOGGER = "pyvarsolve"


def reset_logging(level: int = logging.INFO) -> logging.Logger:
    """Send package log records to stdout, formatted like ``print``.

    Existing handlers on the package logger are removed first, so the
    call is safe to repeat.

    Args:
        level: Logging level for the package logger.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)
    logger.setLevel(level)
    return logger


def set_log_level(level: int) -> None:
    """Set the level of the package logger."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)
