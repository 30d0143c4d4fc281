"""
vnaiscan - AI Agent Image Security Scanner

Scans container images with several independent analysis tools:
- Trivy for CVEs, secrets and misconfigurations
- Malcontent for binary capabilities and malware behavior
- Magika for file type detection

The image filesystem is extracted with symlinks, hardlinks, device nodes
and path traversal removed before any tool sees it.
"""

__version__ = "0.1.0"

from .core.scanner import ImageScanner
from .core.extractor import safe_extract
from .core.scoring import aggregate
from .models.scan_result import ScanOptions, ScanResult, ScanStatus

__all__ = [
    "ImageScanner",
    "safe_extract",
    "aggregate",
    "ScanOptions",
    "ScanResult",
    "ScanStatus",
]
