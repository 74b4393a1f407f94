"""
Logging setup for funneldash.

Usage:
    from funneldash.logging_config import setup_logging

    setup_logging("INFO")
    logger = logging.getLogger(__name__)
"""

from __future__ import annotations

import logging
import sys


LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_level: str = "INFO", *, stream=None) -> logging.Logger:
    """
    Configure the ``funneldash`` logger tree once.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        stream: Output stream (default: stderr, keeps stdout clean for CLI JSON)

    Returns:
        The package logger
    """
    logger = logging.getLogger("funneldash")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Prevent duplicate handlers if called more than once
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger
