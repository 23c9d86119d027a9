"""Logging utilities for the winboat package."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

# Global package logger
logger = logging.getLogger("WinBoat")


def setup_winboat_logging(level: int = logging.INFO) -> None:
    """
    Setup logging with a clean format for the winboat package.

    Args:
        level: Logging level (default: INFO)
    """
    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    logging_handler = logging.StreamHandler(sys.stdout)
    logging_formatter = logging.Formatter("[WinBoat] [%(levelname)s] %(message)s")

    logging_handler.setFormatter(logging_formatter)
    logging_handler.setLevel(level)
    logger.addHandler(logging_handler)
    logger.setLevel(level)
    logger.propagate = False  # Don't propagate to root logger


@contextmanager
def file_logging_context(log_file: Path, level: int = logging.DEBUG) -> Iterator[logging.Handler | None]:
    """Tee package log records into ``log_file`` while the context is active.

    Failure to open the file is reported on stderr and the block still runs,
    so a read-only data directory never aborts the caller.

    Args:
        log_file: Path of the log file (appended to).
        level: Minimum level written to the file.

    Yields:
        The attached handler, or None if the file could not be opened.
    """
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler | None = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as e:
        print(f"Warning: Could not create log file {log_file}: {e}", file=sys.stderr)
        handler = None

    previous_level = logger.level
    if handler is not None:
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        if logger.level == logging.NOTSET or logger.level > level:
            logger.setLevel(level)

    try:
        yield handler
    finally:
        if handler is not None:
            logger.removeHandler(handler)
            handler.close()
            logger.setLevel(previous_level)


__all__ = [
    "file_logging_context",
    "logger",
    "setup_winboat_logging",
]
