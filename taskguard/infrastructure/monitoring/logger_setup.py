"""Centralized logging configuration for the taskguard CLI.

Library code only creates module loggers. The CLI entry point calls
:func:`setup_logging` once to send records to stderr and, optionally, to a
size-rotated log file, so long-running batch hosts keep a bounded history.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import List, Optional, Union

DEFAULT_LOG_LEVEL = logging.WARNING
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_MAX_BYTES = 1_048_576
DEFAULT_BACKUP_COUNT = 3

logger = logging.getLogger(__name__)

# Handlers added by the last setup_logging call; anything else on the root logger is left alone
_installed_handlers: List[logging.Handler] = []


def resolve_log_level(level: Union[int, str, None], default: int = DEFAULT_LOG_LEVEL) -> int:
    """Turns a level name like 'debug' or a numeric level into a logging level."""
    if level is None:
        return default
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else default


def create_file_handler(
    log_file: Union[str, Path],
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> logging.Handler:
    """Opens a rotating log file, creating its directory (``~`` is expanded).

    Raises:
        OSError: If the directory or file cannot be created.
    """
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
    )


def setup_logging(
    log_level: int = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[Union[str, Path]] = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> List[logging.Handler]:
    """Configures the root logger for the CLI.

    Calling it again replaces the handlers from the previous call. A log
    file that cannot be opened is reported and skipped; console logging
    still works.

    Args:
        log_level: The minimum logging level (e.g., logging.DEBUG, logging.INFO).
        log_format: The format string for log messages.
        log_file: Optional path of a log file, rotated at ``max_bytes``.
        max_bytes: Size at which the log file is rotated.
        backup_count: Number of rotated files kept next to the log file.

    Returns:
        The handlers that were installed.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    formatter = logging.Formatter(log_format)
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    file_error: Optional[OSError] = None
    if log_file:
        try:
            handlers.append(create_file_handler(log_file, max_bytes, backup_count))
        except OSError as e:
            file_error = e

    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
        _installed_handlers.append(handler)

    if file_error is not None:
        logger.error(f"Failed to set up file logging to {log_file}: {file_error}")
    elif log_file:
        logger.info(f"Logging to file: {log_file} (rotating at {max_bytes} bytes, {backup_count} backups)")
    logger.debug(f"Logging configured. Level={logging.getLevelName(log_level)}")
    return list(handlers)
