"""Data models for scan results."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any, FrozenSet
import json

DEFAULT_PLATFORM = "linux/amd64"
DEFAULT_REPORT_DIR = "./vnaiscan-reports"
DEFAULT_TIMEOUT_MINUTES = 30


def now_utc() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


class ToolStatus(Enum):
    """Outcome of a single analysis tool run."""
    OK = "ok"
    FAILED = "failed"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"


class ScanStatus(Enum):
    """Overall verdict of a scan."""
    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"
    ERROR = "ERROR"

    @property
    def exit_code(self) -> int:
        """Process exit code for this status."""
        return {
            ScanStatus.PASS: 0,
            ScanStatus.WARN: 1,
            ScanStatus.FAIL: 2,
            ScanStatus.ERROR: 3,
        }[self]


@dataclass(frozen=True)
class ScanOptions:
    """Inputs for one scan. Immutable while the scan runs."""
    image: str
    platform: str = DEFAULT_PLATFORM
    output_format: str = "table"
    report_dir: str = DEFAULT_REPORT_DIR
    # Seconds per tool; tool_timeouts overrides it for individual tools
    timeout: Optional[float] = DEFAULT_TIMEOUT_MINUTES * 60
    tool_timeouts: Dict[str, float] = field(default_factory=dict)
    skip_tools: FrozenSet[str] = frozenset()
    archive: Optional[str] = None
    quiet: bool = False
    verbose: bool = False

    def is_enabled(self, tool: str) -> bool:
        """Whether the named tool should run."""
        return tool not in self.skip_tools

    def timeout_for(self, tool: str) -> Optional[float]:
        """Timeout for the named tool, None to use the tool's default."""
        return self.tool_timeouts.get(tool, self.timeout)


@dataclass
class ToolResult:
    """Outcome of one analysis tool."""
    name: str
    status: ToolStatus
    version: str = "unknown"
    error: Optional[str] = None
    output_file: Optional[str] = None
    duration_seconds: float = 0.0

    @classmethod
    def skipped(cls, name: str) -> "ToolResult":
        """Result for a tool that was disabled and never invoked."""
        return cls(name=name, status=ToolStatus.SKIPPED, version="")

    @property
    def ok(self) -> bool:
        return self.status == ToolStatus.OK

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data: Dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "status": self.status.value,
            "duration_seconds": round(self.duration_seconds, 2),
        }
        if self.error:
            data["error"] = self.error
        if self.output_file:
            data["output_file"] = self.output_file
        return data


@dataclass
class Score:
    """Numeric risk score and its letter grade."""
    total: int = 0
    grade: str = "A"
    breakdown: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"total": self.total, "grade": self.grade}
        if self.breakdown:
            data["breakdown"] = dict(self.breakdown)
        return data


@dataclass
class VulnCounts:
    """Vulnerability counts by severity."""
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    @property
    def total(self) -> int:
        return self.critical + self.high + self.medium + self.low

    def to_dict(self) -> Dict[str, int]:
        return {
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
        }


@dataclass
class TrivyFindings:
    """CVE, secret and misconfiguration counts from Trivy."""
    vulnerabilities: VulnCounts = field(default_factory=VulnCounts)
    secrets: int = 0
    misconfigs: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vulnerabilities": self.vulnerabilities.to_dict(),
            "secrets": self.secrets,
            "misconfigs": self.misconfigs,
        }


@dataclass
class MalcontentFindings:
    """Behavioral capability counts from Malcontent, by risk tier."""
    total: int = 0
    high_risk: int = 0
    medium_risk: int = 0
    low_risk: int = 0
    capabilities: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "total": self.total,
            "high_risk": self.high_risk,
            "medium_risk": self.medium_risk,
            "low_risk": self.low_risk,
        }
        if self.capabilities:
            data["capabilities"] = list(self.capabilities)
        return data


@dataclass
class MagikaFindings:
    """File type detection counts from Magika."""
    total_files: int = 0
    suspicious_types: int = 0
    mismatched_extension: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_files": self.total_files,
            "suspicious_types": self.suspicious_types,
            "mismatched_extension": self.mismatched_extension,
        }


@dataclass
class Findings:
    """Parsed findings, one optional category per tool."""
    trivy: Optional[TrivyFindings] = None
    malcontent: Optional[MalcontentFindings] = None
    magika: Optional[MagikaFindings] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {}
        for name in ("trivy", "malcontent", "magika"):
            category = getattr(self, name)
            if category is not None:
                data[name] = category.to_dict()
        return data


@dataclass
class ScanResult:
    """Result of scanning a single image."""
    image: str
    platform: str = DEFAULT_PLATFORM
    digest: Optional[str] = None
    started_at: datetime = field(default_factory=now_utc)
    finished_at: Optional[datetime] = None
    status: ScanStatus = ScanStatus.ERROR
    partial: bool = False
    score: Score = field(default_factory=Score)
    tools: Dict[str, ToolResult] = field(default_factory=dict)
    findings: Findings = field(default_factory=Findings)

    @property
    def exit_code(self) -> int:
        return self.status.exit_code

    @property
    def enabled_tools(self) -> List[ToolResult]:
        """Tools that were actually invoked."""
        return [t for t in self.tools.values() if t.status != ToolStatus.SKIPPED]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "image_ref": self.image,
            "image_digest": self.digest,
            "platform": self.platform,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "status": self.status.value,
            "partial": self.partial,
            "score": self.score.to_dict(),
            "tools": {name: tool.to_dict() for name, tool in sorted(self.tools.items())},
            "findings": self.findings.to_dict(),
        }

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    def save(self, filepath: str) -> None:
        """Save result to file."""
        with open(filepath, "w") as f:
            f.write(self.to_json())
