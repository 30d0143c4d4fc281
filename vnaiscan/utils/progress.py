"""Console progress output for the scan command."""

import sys
from dataclasses import dataclass
from typing import Optional, Any


@dataclass
class ProgressStyle:
    """Style configuration for progress output."""
    color_ok: str = "\033[92m"  # Green
    color_warn: str = "\033[93m"  # Yellow
    color_failed: str = "\033[91m"  # Red
    color_reset: str = "\033[0m"


class ToolProgress:
    """Prints one line per analysis tool as it finishes."""

    ICONS = {
        "ok": ("✓", "color_ok"),
        "failed": ("✗", "color_failed"),
        "timeout": ("⏱", "color_warn"),
        "skipped": ("-", "color_warn"),
    }

    def __init__(
        self,
        total: int,
        style: Optional[ProgressStyle] = None,
        file: Any = None,
        enabled: bool = True,
    ):
        self.total = total
        self.completed = 0
        self.style = style or ProgressStyle()
        self.file = file or sys.stderr
        self.enabled = enabled

    def complete(self, name: str, status: str, duration: float = 0.0) -> None:
        """Report a finished tool."""
        self.completed += 1
        if not self.enabled:
            return

        icon, color_attr = self.ICONS.get(status, ("?", "color_warn"))
        if hasattr(self.file, "isatty") and self.file.isatty():
            color = getattr(self.style, color_attr)
            reset = self.style.color_reset
        else:
            color = reset = ""

        self.file.write(
            f"  {color}{icon}{reset} [{self.completed}/{self.total}] "
            f"{name:<12} {status} ({duration:.1f}s)\n"
        )
        self.file.flush()
