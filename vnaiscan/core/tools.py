"""Analysis tool table and result parsers.

Each external tool is one ToolSpec entry. The runner only knows how to
run a ToolSpec, so adding a tool means adding an entry to TOOLS.
"""

import json
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..models.scan_result import (
    DEFAULT_TIMEOUT_MINUTES,
    MagikaFindings,
    MalcontentFindings,
    TrivyFindings,
)


@dataclass(frozen=True)
class ToolSpec:
    """How to invoke one analysis tool and read its output."""
    name: str
    binary: str
    description: str
    # Argument template; {rootfs} and {output} are substituted
    args: Tuple[str, ...]
    output_name: str
    # Tool prints its report on stdout instead of writing {output}
    stdout_is_output: bool = False
    version_args: Tuple[str, ...] = ("--version",)
    default_timeout: float = DEFAULT_TIMEOUT_MINUTES * 60
    parser: Optional[Callable[[str], Any]] = None

    def command(self, rootfs: str, output_file: str) -> List[str]:
        """Build the argument list for a scan of rootfs."""
        return [self.binary] + [
            arg.format(rootfs=rootfs, output=output_file) for arg in self.args
        ]

    def version_command(self) -> List[str]:
        return [self.binary, *self.version_args]


def _load_json(path: str) -> Any:
    with open(path) as f:
        return json.load(f)


# ---------------------------------------------------------------------------
# Trivy
# ---------------------------------------------------------------------------

def parse_trivy(path: str) -> TrivyFindings:
    """
    Count vulnerabilities, secrets and failed misconfiguration checks in a
    ``trivy fs --format json`` report.
    """
    report = _load_json(path)
    findings = TrivyFindings()
    vulns = findings.vulnerabilities

    for result in report.get("Results") or []:
        for vuln in result.get("Vulnerabilities") or []:
            severity = str(vuln.get("Severity", "")).upper()
            if severity == "CRITICAL":
                vulns.critical += 1
            elif severity == "HIGH":
                vulns.high += 1
            elif severity == "MEDIUM":
                vulns.medium += 1
            elif severity == "LOW":
                vulns.low += 1

        findings.secrets += len(result.get("Secrets") or [])
        findings.misconfigs += sum(
            1 for m in result.get("Misconfigurations") or []
            if str(m.get("Status", "FAIL")).upper() != "PASS"
        )

    return findings


# ---------------------------------------------------------------------------
# Malcontent
# ---------------------------------------------------------------------------

_RISK_SCORE_LEVELS = {4: "CRITICAL", 3: "HIGH", 2: "MEDIUM", 1: "LOW"}


def _risk_level(behavior: Dict[str, Any]) -> str:
    level = behavior.get("RiskLevel")
    if level:
        return str(level).upper()
    return _RISK_SCORE_LEVELS.get(behavior.get("RiskScore"), "NONE")


def parse_malcontent(path: str) -> MalcontentFindings:
    """
    Count behaviors by risk tier in a ``mal analyze --format json`` report.

    CRITICAL behaviors count as high risk. The IDs of high risk behaviors
    are kept as the capability list.
    """
    report = _load_json(path)
    findings = MalcontentFindings()
    capabilities = set()

    for file_report in (report.get("Files") or {}).values():
        for behavior in file_report.get("Behaviors") or []:
            findings.total += 1
            level = _risk_level(behavior)
            if level in ("CRITICAL", "HIGH"):
                findings.high_risk += 1
                cap = behavior.get("ID") or behavior.get("RuleName")
                if cap:
                    capabilities.add(cap)
            elif level == "MEDIUM":
                findings.medium_risk += 1
            elif level == "LOW":
                findings.low_risk += 1

    findings.capabilities = sorted(capabilities)
    return findings


# ---------------------------------------------------------------------------
# Magika
# ---------------------------------------------------------------------------

# Content types that are dangerous when disguised behind another extension
SUSPICIOUS_GROUPS = frozenset({"executable"})
SUSPICIOUS_LABELS = frozenset({
    "batch", "javascript", "perl", "php", "powershell",
    "python", "ruby", "shell", "vba",
})
# Extensions native binaries legitimately carry in a Linux filesystem
BINARY_EXTENSIONS = frozenset({"a", "bin", "ko", "o", "so", "elf", "node"})


def _file_extension(path: str) -> str:
    """Extension of path, ignoring version suffixes (libssl.so.3 -> so)."""
    parts = os.path.basename(path).lower().split(".")[1:]
    while parts and parts[-1].isdigit():
        parts.pop()
    return parts[-1] if parts else ""


def _magika_output(entry: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    # Rust CLI: {"path", "result": {"status", "value": {"output": {...}}}}
    result = entry.get("result")
    if isinstance(result, dict):
        if result.get("status", "ok") != "ok":
            return None
        return (result.get("value") or {}).get("output")
    # Python CLI: {"path", "output": {"ct_label", "group", ...}}
    return entry.get("output")


def _iter_magika_entries(path: str) -> Iterable[Dict[str, Any]]:
    with open(path) as f:
        content = f.read()
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        # --jsonl output
        data = [json.loads(line) for line in content.splitlines() if line.strip()]
    if isinstance(data, dict):
        data = [data]
    return data


def parse_magika(path: str) -> MagikaFindings:
    """
    Count files whose detected content type does not match their extension.

    A mismatch is suspicious when the content is executable code.
    """
    findings = MagikaFindings()

    for entry in _iter_magika_entries(path):
        output = _magika_output(entry)
        if not output:
            continue
        findings.total_files += 1

        label = output.get("label") or output.get("ct_label") or ""
        group = output.get("group") or ""
        extensions = {e.lower() for e in output.get("extensions") or []}
        ext = _file_extension(entry.get("path", ""))

        if not ext or not extensions or ext in extensions:
            continue
        if group in SUSPICIOUS_GROUPS and ext in BINARY_EXTENSIONS:
            continue

        findings.mismatched_extension += 1
        if group in SUSPICIOUS_GROUPS or label in SUSPICIOUS_LABELS:
            findings.suspicious_types += 1

    return findings


TRIVY = ToolSpec(
    name="trivy",
    binary="trivy",
    description="CVE/Secrets/Misconfig",
    args=(
        "fs",
        "--format", "json",
        "--output", "{output}",
        "--scanners", "vuln,secret,misconfig",
        "{rootfs}",
    ),
    output_name="trivy.json",
    parser=parse_trivy,
)

MALCONTENT = ToolSpec(
    name="malcontent",
    binary="mal",
    description="Binary Capabilities",
    args=("analyze", "--format", "json", "--output", "{output}", "{rootfs}"),
    output_name="malcontent.json",
    parser=parse_malcontent,
)

MAGIKA = ToolSpec(
    name="magika",
    binary="magika",
    description="AI File Type Detection",
    args=("--json", "--recursive", "--no-dereference", "{rootfs}"),
    output_name="magika.json",
    stdout_is_output=True,
    parser=parse_magika,
)

TOOLS: Tuple[ToolSpec, ...] = (TRIVY, MALCONTENT, MAGIKA)


def get_tool(name: str) -> ToolSpec:
    """Look up a tool by name."""
    for spec in TOOLS:
        if spec.name == name:
            return spec
    raise KeyError(f"unknown tool: {name}")
