"""Utility modules for vnaiscan."""

from .logging import (
    get_logger,
    setup_logging,
    LogLevel,
    is_verbose,
)
from .subprocess import (
    run_command,
    run_process,
    terminate_process,
    CommandResult,
)
from .progress import ProgressStyle, ToolProgress

__all__ = [
    "get_logger",
    "setup_logging",
    "LogLevel",
    "is_verbose",
    "run_command",
    "run_process",
    "terminate_process",
    "CommandResult",
    "ProgressStyle",
    "ToolProgress",
]
