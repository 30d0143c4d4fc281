"""Console logging for vnaiscan.

Every module logs below the ``vnaiscan`` logger. The CLI installs a single
stderr handler with setup_logging(); stdout is left to the scan summary.
"""

import logging
import sys
from enum import Enum
from typing import Dict, Optional, Tuple

ROOT_LOGGER = "vnaiscan"

# Pipeline stages and their outcomes, between INFO and WARNING
STEP = 25
RESULT = 24


class LogLevel(Enum):
    """Console verbosity chosen on the command line."""
    QUIET = "quiet"
    INFO = "info"
    VERBOSE = "verbose"


_LEVELS = {
    LogLevel.QUIET: logging.ERROR,
    LogLevel.INFO: logging.INFO,
    LogLevel.VERBOSE: logging.DEBUG,
}

_verbose_mode = False


def is_verbose() -> bool:
    """Whether the console was set up in verbose mode."""
    return _verbose_mode


class ConsoleFormatter(logging.Formatter):
    """One line per record: emoji and color on a terminal, a tag otherwise."""

    RESET = "\033[0m"

    # level -> (color, emoji, plain tag)
    STYLES: Dict[int, Tuple[str, str, str]] = {
        logging.DEBUG: ("\033[36m", "🔍", "[DEBUG]"),
        logging.INFO: ("", "ℹ️ ", "[INFO]"),
        RESULT: ("\033[32m", "  →", "  -"),
        STEP: ("\033[1m", "🛡️ ", "[STEP]"),
        logging.WARNING: ("\033[33m", "⚠️ ", "[WARN]"),
        logging.ERROR: ("\033[31m", "❌", "[ERROR]"),
        logging.CRITICAL: ("\033[35m", "💥", "[CRITICAL]"),
    }

    def __init__(self, use_colors: bool = False):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        color, emoji, tag = self.STYLES.get(record.levelno, ("", "", "[LOG]"))
        if self.use_colors:
            return f"{color}{emoji} {record.getMessage()}{self.RESET}"
        return f"{tag} {record.getMessage()}"


class VerboseOnlyFilter(logging.Filter):
    """
    Drop warnings and errors unless verbose mode is on.

    Extraction logs every skipped archive entry as a warning and tool
    failures already appear in the summary table.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if _verbose_mode or record.levelno >= logging.CRITICAL:
            return True
        return record.levelno not in (logging.WARNING, logging.ERROR)


def setup_logging(
    level: LogLevel = LogLevel.INFO,
    use_colors: Optional[bool] = None,
    show_errors: bool = True,
) -> None:
    """
    Configure the vnaiscan logger for console output.

    Args:
        level: Console verbosity
        use_colors: Colored output (auto-detected from stderr if None)
        show_errors: When False, warnings and errors appear in verbose mode only
    """
    global _verbose_mode

    logging.addLevelName(STEP, "STEP")
    logging.addLevelName(RESULT, "RESULT")

    _verbose_mode = level == LogLevel.VERBOSE
    log_level = _LEVELS[level]

    if use_colors is None:
        use_colors = sys.stderr.isatty()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(ConsoleFormatter(use_colors))
    if not show_errors:
        handler.addFilter(VerboseOnlyFilter())

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Logger for a vnaiscan module."""
    return logging.getLogger(name)


def _log_at(level: int):
    def log(self: logging.Logger, message: str, *args, **kwargs) -> None:
        if self.isEnabledFor(level):
            self._log(level, message, args, **kwargs)
    return log


def _verbose_only(level: int):
    """Log at level in verbose mode and at DEBUG otherwise."""
    def log(self: logging.Logger, message: str, *args, **kwargs) -> None:
        if _verbose_mode:
            self.log(level, message, *args, **kwargs)
        else:
            self.debug(message, *args, **kwargs)
    return log


def log_success(self: logging.Logger, message: str, *args, **kwargs) -> None:
    """Log a finished pipeline stage."""
    self.log(RESULT, f"✅ {message}", *args, **kwargs)


# Logger methods used across vnaiscan
logging.Logger.step = _log_at(STEP)
logging.Logger.result = _log_at(RESULT)
logging.Logger.success = log_success
logging.Logger.error_verbose = _verbose_only(logging.ERROR)
logging.Logger.warn_verbose = _verbose_only(logging.WARNING)
