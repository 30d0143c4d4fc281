"""Core functionality for vnaiscan."""

from .errors import (
    ScanError,
    AcquisitionError,
    ExtractionError,
    ScanCancelledError,
    ToolsFailedError,
)
from .extractor import safe_extract, make_readable, ExtractStats, MAX_FILE_SIZE
from .image import ImageSource, DockerImageSource, ArchiveImageSource
from .runner import ToolRunner, probe_version, UNKNOWN_VERSION
from .scanner import ImageScanner
from .scoring import aggregate, compute_score, grade_for, Verdict
from .tools import ToolSpec, TOOLS, get_tool

__all__ = [
    "ScanError",
    "AcquisitionError",
    "ExtractionError",
    "ScanCancelledError",
    "ToolsFailedError",
    "safe_extract",
    "make_readable",
    "ExtractStats",
    "MAX_FILE_SIZE",
    "ImageSource",
    "DockerImageSource",
    "ArchiveImageSource",
    "ToolRunner",
    "probe_version",
    "UNKNOWN_VERSION",
    "ImageScanner",
    "aggregate",
    "compute_score",
    "grade_for",
    "Verdict",
    "ToolSpec",
    "TOOLS",
    "get_tool",
]
