"""Logging helpers that keep logger names under the ``scof_stream`` namespace."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

BASE_LOGGER_NAME = "scof_stream"


def setup_base_logger(*, level: int = logging.INFO, stream: TextIO | None = None) -> logging.Logger:
    """Configure the base ``scof_stream`` logger once and return it.

    Later calls only adjust the level so repeated CLI invocations in one
    process do not stack handlers.

    Args:
        level: Logging level for the base logger.
        stream: Optional stream (stderr by default).

    Returns:
        logging.Logger: The configured base logger.
    """
    base = logging.getLogger(BASE_LOGGER_NAME)
    if base.handlers:
        base.setLevel(level)
        return base

    base.setLevel(level)
    base.propagate = False

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    base.addHandler(handler)

    return base


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a namespaced logger under ``scof_stream``."""
    if not name or name == BASE_LOGGER_NAME:
        return logging.getLogger(BASE_LOGGER_NAME)
    if name.startswith(f"{BASE_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{BASE_LOGGER_NAME}.{name}")
