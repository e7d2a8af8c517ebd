"""Logging setup for navhistory.

Library modules only call ``logging.getLogger(__name__)``; nothing is
configured until a host (or the CLI) calls ``setup_logging``. Transition
tracing is logged at DEBUG by ``navhistory.engine`` and the backends.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TextIO

PACKAGE_LOGGER = "navhistory"

DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
DEFAULT_BACKUP_COUNT = 3

# Modules that log POP reconciliation and backend writes
TRACE_MODULES = ("engine", "backends")

LOG_DIR = Path.home() / ".config" / "navhistory" / "logs"
LOG_FILE_NAME = "navhistory.log"


def get_log_file_path() -> Path:
    """Get the path to the log file, creating directory if needed."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    return LOG_DIR / LOG_FILE_NAME


def parse_level(level: int | str) -> int:
    """Turn a level name such as ``"debug"`` into its number.

    Unknown names fall back to DEFAULT_LOG_LEVEL.
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else DEFAULT_LOG_LEVEL


def _add_handler(
    logger: logging.Logger, handler: logging.Handler, level: int
) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT, DEFAULT_DATE_FORMAT))
    logger.addHandler(handler)


def setup_logging(
    *,
    level: int | str = DEFAULT_LOG_LEVEL,
    log_to_file: bool = True,
    log_to_console: bool = False,
    console_stream: TextIO = sys.stderr,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    debug_modules: list[str] | None = None,
) -> logging.Logger:
    """Replace the handlers on the ``navhistory`` logger.

    Args:
        level: Level number or name for the package logger and its handlers.
        log_to_file: Write to a rotating file under LOG_DIR.
        log_to_console: Write to ``console_stream``.
        console_stream: Stream for console output (stderr by default).
        max_bytes: File size that triggers rotation.
        backup_count: Rotated files to keep.
        debug_modules: Submodules (e.g. ``"engine"``) forced to DEBUG.

    Returns:
        The package logger.
    """
    level = parse_level(level)
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    if log_to_file:
        _add_handler(
            package_logger,
            RotatingFileHandler(
                get_log_file_path(),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            ),
            level,
        )
    if log_to_console:
        _add_handler(package_logger, logging.StreamHandler(console_stream), level)

    for module_name in debug_modules or ():
        get_logger(module_name).setLevel(logging.DEBUG)

    return package_logger


def enable_debug_mode() -> None:
    """Trace every transition to stderr, without touching the log file."""
    setup_logging(
        level=logging.DEBUG,
        log_to_console=True,
        log_to_file=False,
        debug_modules=list(TRACE_MODULES),
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger inside the navhistory namespace.

    Args:
        name: Logger name, with or without the ``navhistory.`` prefix.
    """
    if name == PACKAGE_LOGGER or name.startswith(f"{PACKAGE_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")


def log_exception(
    logger: logging.Logger,
    exc: Exception,
    message: str = "An error occurred",
    *,
    level: int = logging.ERROR,
    include_traceback: bool = True,
) -> None:
    """Log an exception with consistent formatting.

    Args:
        logger: Logger to use.
        exc: Exception to log.
        message: Human-readable message prefix.
        level: Log level (default ERROR).
        include_traceback: Whether to include full traceback.
    """
    if include_traceback:
        logger.log(level, "%s: %s", message, exc, exc_info=exc)
    else:
        logger.log(level, "%s: %s (%s)", message, exc, type(exc).__name__)
