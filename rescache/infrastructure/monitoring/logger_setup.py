"""Logging configuration for the rescache CLI.

Command output (result tables, previews) owns stdout, so every log record
goes to stderr. An optional log file rotates by size. The HTTP client stack
logs one INFO line per request; those loggers are held at their own level so
`--verbose` on rescache does not drown the cache diagnostics.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Iterable, Optional, Union

DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_FILE = None
DEFAULT_MAX_BYTES = 1_000_000
DEFAULT_BACKUP_COUNT = 3

# Third-party loggers that report every transport call
NOISY_LIBRARY_LOGGERS = ("httpx", "httpcore")
DEFAULT_LIBRARY_LEVEL = logging.WARNING


def resolve_log_level(level: Union[int, str, None], default: int = DEFAULT_LOG_LEVEL) -> int:
    """Accepts logging.DEBUG-style ints or names like 'debug'."""
    if isinstance(level, int):
        return level
    if level is None:
        return default
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else default


def setup_logging(
    log_level: Union[int, str] = DEFAULT_LOG_LEVEL,
    log_format: Optional[str] = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = DEFAULT_LOG_FILE,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    library_level: Union[int, str, None] = DEFAULT_LIBRARY_LEVEL,
    library_loggers: Iterable[str] = NOISY_LIBRARY_LOGGERS,
) -> None:
    """Configures the root logger for a CLI invocation.

    Args:
        log_level: Minimum level for rescache records (e.g. 'DEBUG', logging.INFO).
        log_format: Format string; None falls back to the default format.
        log_file: Optional path of a size-rotated log file.
        max_bytes: Rotation threshold of the log file.
        backup_count: Rotated files kept next to the log file.
        library_level: Level applied to the HTTP client loggers.
        library_loggers: Names of the loggers held at library_level.
    """
    level = resolve_log_level(log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Repeated invocations in one process must not stack handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(log_format or DEFAULT_LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            logging.info(f"Logging to file: {log_file}")
        except OSError as e:
            logging.error(f"Failed to set up file logging to {log_file}: {e}", exc_info=True)

    quiet_level = resolve_log_level(library_level, default=DEFAULT_LIBRARY_LEVEL)
    for name in library_loggers:
        logging.getLogger(name).setLevel(quiet_level)

    logging.debug(
        f"Logging configured. Level={logging.getLevelName(level)} "
        f"libraries={logging.getLevelName(quiet_level)}"
    )
