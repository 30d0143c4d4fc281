"""Pipeline-level errors.

Tool failures are never raised; they are recorded in ToolResult.
"""

from ..models.scan_result import ScanResult


class ScanError(Exception):
    """Base class for errors that stop a scan."""


class AcquisitionError(ScanError):
    """Image content or digest could not be obtained."""


class ExtractionError(ScanError):
    """The image filesystem archive is corrupt, truncated or unwritable."""


class ScanCancelledError(ScanError):
    """The scan was cancelled before it finished."""


class ToolsFailedError(ScanError):
    """Every enabled tool ended without an ok status."""

    def __init__(self, result: ScanResult):
        failed = ", ".join(
            f"{t.name} ({t.status.value})" for t in result.enabled_tools
        )
        super().__init__(f"all enabled scanners failed: {failed}")
        self.result = result
