"""Logging setup for the pulse monitor."""

from __future__ import annotations

import logging
import sys

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("pulse")


def setup_logging(level: str = "INFO", log_format: str = DEFAULT_FORMAT) -> logging.Logger:
    """Configure the package logger to write to stderr.

    Calling it again replaces the handler instead of stacking a second one.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    if name.startswith("pulse."):
        return logging.getLogger(name)
    return logging.getLogger(f"pulse.{name}")


__all__ = ["logger", "setup_logging", "get_logger"]
