"""
Logging setup for contact_mirror.

One console handler on stderr (colored level names on a capable terminal)
and, unless disabled, one dated log file per day that always receives DEBUG
records. Levels and the log file can be overridden from the environment:

    CONTACT_MIRROR_DEBUG=1           force DEBUG
    CONTACT_MIRROR_LOG_LEVEL=WARNING level name (unknown names mean INFO)
    CONTACT_MIRROR_LOG_FILE=none     explicit file path, or none/disabled
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO

ROOT_LOGGER_NAME = "contact_mirror"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Files are named <prefix>YYYYMMDD.log
LOG_FILE_PREFIX = "contact_mirror_"

ENV_LOG_LEVEL = "CONTACT_MIRROR_LOG_LEVEL"
ENV_DEBUG = "CONTACT_MIRROR_DEBUG"
ENV_LOG_FILE = "CONTACT_MIRROR_LOG_FILE"

DEFAULT_LOG_DIR = Path.home() / ".contact-mirror" / "logs"

_TRUTHY = ("1", "true", "yes")
_FILE_LOGGING_OFF = ("", "none", "disabled")


def stream_supports_color(stream: TextIO) -> bool:
    """True for an interactive terminal that has not opted out of colors."""
    isatty = getattr(stream, "isatty", None)
    if isatty is None or not isatty():
        return False
    # https://no-color.org/
    if os.environ.get("NO_COLOR"):
        return False
    return os.environ.get("TERM", "") != "dumb"


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name of console records."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
        stream: Optional[TextIO] = None,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and stream_supports_color(stream or sys.stderr)

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        if color is None:
            return super().format(record)
        # The record is shared with the file handler
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def get_log_level_from_env() -> int:
    """Level from CONTACT_MIRROR_DEBUG, else CONTACT_MIRROR_LOG_LEVEL, else INFO."""
    if os.environ.get(ENV_DEBUG, "").lower() in _TRUTHY:
        return logging.DEBUG

    level = logging.getLevelName(os.environ.get(ENV_LOG_LEVEL, "INFO").upper())
    # getLevelName returns "Level <name>" for names it does not know
    return level if isinstance(level, int) and level > logging.NOTSET else logging.INFO


def get_log_file_path(log_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Resolve the log file for this run.

    Args:
        log_dir: Directory for dated log files (default: ~/.contact-mirror/logs)

    Returns:
        The file named by CONTACT_MIRROR_LOG_FILE, None when that variable
        disables file logging, otherwise today's file inside log_dir.
    """
    override = os.environ.get(ENV_LOG_FILE)
    if override is not None:
        return None if override.lower() in _FILE_LOGGING_OFF else Path(override)

    stamp = datetime.now().strftime("%Y%m%d")
    return (log_dir or DEFAULT_LOG_DIR) / f"{LOG_FILE_PREFIX}{stamp}.log"


def _open_file_handler(path: Path) -> logging.FileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(VERBOSE_FORMAT, DATE_FORMAT))
    return handler


def setup_logging(
    level: Optional[int] = None,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    log_file: Optional[Path] = None,
    enable_file_logging: bool = True,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure the contact_mirror logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Console level; None reads it from the environment
        verbose: Force DEBUG and use the verbose console format
        log_dir: Directory for dated log files
        log_file: Explicit log file, takes precedence over log_dir
        enable_file_logging: False disables the log file entirely
        use_colors: Color level names when stderr is a terminal

    Returns:
        The package logger
    """
    if verbose:
        level = logging.DEBUG
    elif level is None:
        level = get_log_level_from_env()

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)
    logger.propagate = False

    console_format = VERBOSE_FORMAT if verbose else CONSOLE_FORMAT
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(
        ColoredFormatter(console_format, DATE_FORMAT)
        if use_colors
        else logging.Formatter(console_format, DATE_FORMAT)
    )
    logger.addHandler(console)

    file_path = (log_file or get_log_file_path(log_dir)) if enable_file_logging else None
    if file_path is not None:
        try:
            logger.addHandler(_open_file_handler(file_path))
        except OSError as e:
            logger.warning(f"Could not create log file {file_path}: {e}")
        else:
            logger.debug(f"Log file: {file_path}")

    return logger


def cleanup_old_logs(log_dir: Optional[Path] = None, keep_count: int = 10) -> int:
    """
    Delete all but the keep_count most recent dated log files.

    A keep_count of 0 (or less) keeps everything.

    Returns:
        Number of files deleted
    """
    directory = log_dir or DEFAULT_LOG_DIR
    if keep_count <= 0 or not directory.is_dir():
        return 0

    newest_first = sorted(
        directory.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    deleted = 0
    for path in newest_first[keep_count:]:
        try:
            path.unlink()
        except OSError as e:
            logging.getLogger(__name__).debug(f"Could not delete old log {path}: {e}")
            continue
        deleted += 1
    return deleted


def get_logger(name: str) -> logging.Logger:
    """Logger inside the contact_mirror hierarchy (prefixed when needed)."""
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


__all__ = [
    "setup_logging",
    "get_logger",
    "cleanup_old_logs",
    "ColoredFormatter",
    "stream_supports_color",
    "get_log_level_from_env",
    "get_log_file_path",
    "ROOT_LOGGER_NAME",
    "DEFAULT_LOG_DIR",
    "DEFAULT_FORMAT",
    "CONSOLE_FORMAT",
    "VERBOSE_FORMAT",
    "DATE_FORMAT",
    "LOG_FILE_PREFIX",
]
