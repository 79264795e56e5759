"""Logging setup for risk monitor scans.

Scans log to a size-rotated file and to one console stream. The level comes
from the caller, else ``RISK_LOG_LEVEL``, else INFO, so a scheduled scan can
be made verbose without editing its command line.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

DEFAULT_LOG_DIR = Path("logs")
DEFAULT_LOG_FILE = "risk_monitor.log"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
ROOT_LOGGER_NAME = "risk_monitor"
LOG_LEVEL_ENV = "RISK_LOG_LEVEL"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3
CONSOLE_STREAMS = ("stdout", "stderr")


def resolve_level(level: Union[int, str, None] = None) -> int:
    """Turn ``level`` (or ``RISK_LOG_LEVEL`` when it is None) into a logging level."""
    value = level if level is not None else os.environ.get(LOG_LEVEL_ENV)
    if value is None or value == "":
        return logging.INFO
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(str(value).strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {value!r}")
    return resolved


def reset_logging() -> None:
    """Close and detach every handler on the ``risk_monitor`` logger."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True


def setup_logging(
    log_file: Optional[Path] = None,
    *,
    level: Union[int, str, None] = None,
    console: Optional[str] = "stdout",
    log_dir: Path = DEFAULT_LOG_DIR,
    max_bytes: int = MAX_LOG_BYTES,
    backup_count: int = LOG_BACKUP_COUNT,
) -> logging.Logger:
    """Configure the ``risk_monitor`` logger for a scan.

    Args:
        log_file: Log file path; relative names go under ``log_dir``
        level: Level name or number; None defers to ``RISK_LOG_LEVEL``
        console: "stdout", "stderr", or None for file logging only
        log_dir: Directory for relative log files (default: logs/)
        max_bytes: Rotate the file once it grows past this size
        backup_count: Rotated files to keep

    Returns:
        The configured ``risk_monitor`` logger
    """
    if console is not None and console not in CONSOLE_STREAMS:
        raise ValueError(f"console must be one of {CONSOLE_STREAMS} or None, got {console!r}")

    if log_file is None:
        log_file = log_dir / DEFAULT_LOG_FILE
    elif not log_file.is_absolute():
        log_file = log_dir / log_file
    log_file.parent.mkdir(parents=True, exist_ok=True)

    resolved = resolve_level(level)
    formatter = logging.Formatter(DEFAULT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)

    reset_logging()
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(resolved)

    file_handler = RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console is not None:
        console_handler = logging.StreamHandler(getattr(sys, console))
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    logger.propagate = False

    logger.info(f"Logging initialized: {log_file} (level {logging.getLevelName(resolved)})")
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the risk_monitor namespace."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
