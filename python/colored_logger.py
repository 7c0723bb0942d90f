import logging
import sys
from typing import Union

# Custom logging levels
TRACE_LEVEL = 5
SUCCESS_LEVEL = 25
NOTICE_LEVEL = 35
FAILURE_LEVEL = 45

logging.addLevelName(TRACE_LEVEL, "TRACE")
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")
logging.addLevelName(NOTICE_LEVEL, "NOTICE")
logging.addLevelName(FAILURE_LEVEL, "FAILURE")

# Level names accepted on the command line
LEVEL_NAMES = {
    "trace": TRACE_LEVEL,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "silent": logging.CRITICAL + 10,
}

class ColoredFormatter(logging.Formatter):
    """Formatter that colors each record by level when writing to a terminal."""

    COLORS = {
        "TRACE": "\033[90m",  # Gray
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "SUCCESS": "\033[92m",  # Bright Green
        "WARNING": "\033[33m",  # Yellow
        "NOTICE": "\033[96m",  # Bright Cyan
        "ERROR": "\033[31m",  # Red
        "FAILURE": "\033[91m",  # Bright Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        if sys.stderr.isatty():
            level_color = self.COLORS.get(record.levelname, "")
            return f"{level_color}{message}{self.COLORS['RESET']}"

        return message


def resolve_level(level: Union[int, str]) -> int:
    """
    Convert a level name from the command line (or a numeric level) to a logging level.

    Args:
        level: One of LEVEL_NAMES, a standard logging level name, or an int.

    Returns:
        Numeric logging level.

    Raises:
        ValueError: If the name is unknown.
    """
    if isinstance(level, int):
        return level

    name = level.strip().lower()
    if name in LEVEL_NAMES:
        return LEVEL_NAMES[name]

    numeric = logging.getLevelName(name.upper())
    if isinstance(numeric, int):
        return numeric

    raise ValueError(f"Unknown log level: {level}")


def setup_colored_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configure colored logging for the application.

    Args:
        level: Logging level or level name (default: info)
    """
    formatter = ColoredFormatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(resolve_level(level))

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)


def set_log_level(level: Union[int, str]) -> int:
    """
    Change the level of the root logger between interactive cycles.

    Returns:
        The numeric level now in effect.
    """
    numeric = resolve_level(level)
    logging.getLogger().setLevel(numeric)
    return numeric


class EnhancedLogger:
    """Logger wrapper with methods for the custom levels."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def trace(self, msg, *args, **kwargs):
        """Per-hop traversal and per-chunk render detail."""
        self._logger.log(TRACE_LEVEL, msg, *args, **kwargs)

    def debug(self, msg, *args, **kwargs):
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        self._logger.info(msg, *args, **kwargs)

    def success(self, msg, *args, **kwargs):
        self._logger.log(SUCCESS_LEVEL, msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        self._logger.warning(msg, *args, **kwargs)

    def notice(self, msg, *args, **kwargs):
        self._logger.log(NOTICE_LEVEL, msg, *args, **kwargs)

    def error(self, msg, *args, **kwargs):
        self._logger.error(msg, *args, **kwargs)

    def failure(self, msg, *args, **kwargs):
        self._logger.log(FAILURE_LEVEL, msg, *args, **kwargs)

    def critical(self, msg, *args, **kwargs):
        self._logger.critical(msg, *args, **kwargs)

    # Delegate other logger methods
    def __getattr__(self, name):
        return getattr(self._logger, name)


def get_colored_logger(name: str) -> EnhancedLogger:
    """
    Get an enhanced logger instance with custom level methods.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Enhanced logger instance
    """
    return EnhancedLogger(logging.getLogger(name))
