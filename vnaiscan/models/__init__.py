"""Data models for vnaiscan."""

from .scan_result import (
    ScanOptions,
    ScanResult,
    ScanStatus,
    Score,
    ToolResult,
    ToolStatus,
    Findings,
    TrivyFindings,
    MalcontentFindings,
    MagikaFindings,
    VulnCounts,
)

__all__ = [
    "ScanOptions",
    "ScanResult",
    "ScanStatus",
    "Score",
    "ToolResult",
    "ToolStatus",
    "Findings",
    "TrivyFindings",
    "MalcontentFindings",
    "MagikaFindings",
    "VulnCounts",
]
