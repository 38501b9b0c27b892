"""
Console logging for the archiver.

Adds TRACE, PROGRESS, SUCCESS, NOTICE and FAILURE levels on top of the
standard ones and colors records by level when stderr is a terminal.
"""

import logging
import os
import sys
from typing import Dict, Optional, TextIO

TRACE_LEVEL = 5
PROGRESS_LEVEL = 22
SUCCESS_LEVEL = 25
NOTICE_LEVEL = 35
FAILURE_LEVEL = 45

CUSTOM_LEVELS: Dict[int, str] = {
    TRACE_LEVEL: "TRACE",
    PROGRESS_LEVEL: "PROGRESS",
    SUCCESS_LEVEL: "SUCCESS",
    NOTICE_LEVEL: "NOTICE",
    FAILURE_LEVEL: "FAILURE",
}

for _level, _name in CUSTOM_LEVELS.items():
    logging.addLevelName(_level, _name)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """Formatter that wraps each record in the ANSI color of its level."""

    COLORS = {
        "TRACE": "\033[90m",  # Gray
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "PROGRESS": "\033[94m",  # Bright Blue
        "SUCCESS": "\033[92m",  # Bright Green
        "WARNING": "\033[33m",  # Yellow
        "NOTICE": "\033[96m",  # Bright Cyan
        "ERROR": "\033[31m",  # Red
        "FAILURE": "\033[91m",  # Bright Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_color: Optional[bool] = None,
    ):
        super().__init__(fmt, datefmt)
        self.use_color = use_color

    def _should_color(self) -> bool:
        if self.use_color is not None:
            return self.use_color
        if os.environ.get("NO_COLOR"):
            return False
        return sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        if self._should_color():
            level_color = self.COLORS.get(record.levelname, "")
            return f"{level_color}{message}{self.RESET}"

        return message


def level_for_verbosity(verbose: int) -> int:
    """Map a repeated -v count to a logging level."""
    if verbose >= 2:
        return TRACE_LEVEL
    if verbose == 1:
        return logging.DEBUG
    return logging.INFO


def setup_colored_logging(
    level: int = logging.INFO, stream: Optional[TextIO] = None
) -> None:
    """
    Configure the root logger with a single colored console handler.

    Args:
        level: Logging level (default: logging.INFO)
        stream: Output stream (default: sys.stderr)
    """
    formatter = ColoredFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Replace handlers so repeated setup does not duplicate output
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)


class EnhancedLogger:
    """Logger wrapper exposing the custom levels as methods."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def trace(self, msg, *args, **kwargs):
        """Per-entry detail: symlink resolution, skipped paths."""
        self._logger.log(TRACE_LEVEL, msg, *args, **kwargs)

    def progress(self, msg, *args, **kwargs):
        self._logger.log(PROGRESS_LEVEL, msg, *args, **kwargs)

    def success(self, msg, *args, **kwargs):
        self._logger.log(SUCCESS_LEVEL, msg, *args, **kwargs)

    def notice(self, msg, *args, **kwargs):
        self._logger.log(NOTICE_LEVEL, msg, *args, **kwargs)

    def failure(self, msg, *args, **kwargs):
        """Fatal problems that abort a command."""
        self._logger.log(FAILURE_LEVEL, msg, *args, **kwargs)

    # debug, info, warning, error and the rest come from the wrapped logger
    def __getattr__(self, name):
        return getattr(self._logger, name)


def get_colored_logger(name: str) -> EnhancedLogger:
    """
    Get a logger with the custom level methods.

    Args:
        name: Logger name (typically __name__)

    Returns:
        EnhancedLogger wrapping ``logging.getLogger(name)``
    """
    return EnhancedLogger(logging.getLogger(name))
