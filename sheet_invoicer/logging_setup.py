"""Logging configuration for sheet_invoicer."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s] %(message)s"

_initialized = False


def setup_logging(level: str = "INFO") -> None:
    """
    Attach a console handler to the `sheet_invoicer` logger.

    Safe to call more than once; only the first call configures handlers.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    logger = logging.getLogger("sheet_invoicer")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    for noisy_logger in ("googleapiclient", "google.auth", "urllib3"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


def reset_logging() -> None:
    """Reset logging state for tests."""
    global _initialized
    _initialized = False
    logging.getLogger("sheet_invoicer").handlers.clear()
