"""Logger configuration using loguru.

trx-reporter runs inside somebody else's test process, so it never touches
handlers it did not add itself: :func:`setup_logger` installs sinks filtered
to the ``trx_reporter`` package and :func:`reset_logger` removes exactly
those.  File paths in log lines are reported relative to the package root
instead of the absolute site-packages location.
"""

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from loguru import logger

if TYPE_CHECKING:
    from loguru import Logger

from .exceptions import InvalidLogLevelError

# When installed this resolves to ``.../site-packages``, when running from
# the repository to ``.../src``.
_PACKAGE_DIR = Path(__file__).resolve().parent
_PACKAGE_NAME = _PACKAGE_DIR.name
_PATH_TRIM_BASES = (_PACKAGE_DIR.parent.resolve(),)

VALID_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

CONSOLE_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | " "<level>{level: <8}</level> | " "{extra[short_path]}:{line} in <cyan>{function}</cyan> - " "<level>{message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | " "{level: <8} | " "{extra[short_path]}:{line} in {function} - " "{message}"

_handler_ids: List[int] = []


def format_path_for_log(file_path: str) -> str:
    """Return a concise, project-relative path for logging purposes.

    Args:
        file_path: Original absolute file path reported by loguru.

    Returns:
        A trimmed path relative to :data:`_PATH_TRIM_BASES` when possible.  If
        the path is outside our project roots the original path is returned.
    """

    path = Path(file_path)
    try:
        resolved = path.resolve()
    except OSError:
        resolved = path

    for base in _PATH_TRIM_BASES:
        try:
            trimmed = resolved.relative_to(base)
        except ValueError:
            continue
        else:
            return trimmed.as_posix()

    return str(resolved)


def _formatter(template: str) -> Any:
    def format_record(record: Dict[str, Any]) -> str:
        record["extra"].setdefault("short_path", format_path_for_log(record["file"].path))
        return template + "\n{exception}"

    return format_record


def reset_logger() -> None:
    """Remove every handler previously added by :func:`setup_logger`."""
    while _handler_ids:
        handler_id = _handler_ids.pop()
        try:
            logger.remove(handler_id)
        except ValueError:
            # Already removed by someone calling logger.remove() globally
            pass


def setup_logger(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    stream: Any = None,
) -> None:
    """
    Setup loguru handlers for trx-reporter log records.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL), defaults to TRX_LOG_LEVEL
        log_file: Optional log file path
        stream: Stream or callable sink for console logs (default: sys.stdout)

    Raises:
        InvalidLogLevelError: If an invalid log level is provided
    """
    reset_logger()

    if log_level is None:
        from .config import get_settings

        log_level = get_settings().trx_log_level

    level = log_level.upper()
    if level not in VALID_LEVELS:
        raise InvalidLogLevelError(f"Invalid log level '{log_level}'. Must be one of: {', '.join(VALID_LEVELS)}")

    _handler_ids.append(
        logger.add(
            stream if stream is not None else sys.stdout,
            format=_formatter(CONSOLE_FORMAT),
            level=level,
            filter=_PACKAGE_NAME,
            colorize=None,
        )
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        _handler_ids.append(
            logger.add(
                log_file,
                format=_formatter(FILE_FORMAT),
                level=level,
                filter=_PACKAGE_NAME,
                rotation="10 MB",
                retention="7 days",
            )
        )


def get_logger(name: str) -> "Logger":
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logger.bind(name=name)
