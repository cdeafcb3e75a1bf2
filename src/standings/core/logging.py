"""
Centralized logging configuration for the standings package.

All components log under the ``standings`` namespace so that a single call
to :func:`setup_logging` controls mapping decisions, ranking passes and the
SQL layer alike.
"""

from __future__ import annotations

import logging
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

ROOT_LOGGER_NAME = "standings"


def setup_logging(
    level: str | int = logging.INFO,
    log_file: str | Path | None = None,
    format_style: str = "detailed",
) -> logging.Logger:
    """Set up logging for the standings package.

    Args:
        level: Logging level name or number. Defaults to logging.INFO.
        log_file: Optional file to also write logs to. Defaults to None.
        format_style: "simple", "detailed" or "json". Defaults to "detailed".

    Returns:
        The configured package logger.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    if format_style == "simple":
        format_string = "%(levelname)s: %(message)s"
    elif format_style == "json":
        format_string = '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"

    formatter = logging.Formatter(format_string)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger below the package namespace.

    Args:
        name: Component name, usually ``__name__``.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


@contextmanager
def log_timing(
    logger: logging.Logger, operation: str, level: int = logging.INFO
) -> Iterator[None]:
    """Log start, completion and duration of an operation.

    Examples:
        >>> logger = get_logger(__name__)
        >>> with log_timing(logger, "recalculating tournament 7"):
        ...     calculator.recalculate_all(7)
    """
    start_time = time.perf_counter()
    logger.log(level, "Starting %s", operation)
    try:
        yield
    except Exception as exception:
        elapsed_time = time.perf_counter() - start_time
        logger.error(
            "Failed %s after %.2fs: %s", operation, elapsed_time, exception
        )
        raise
    elapsed_time = time.perf_counter() - start_time
    logger.log(level, "Completed %s in %.2fs", operation, elapsed_time)
