"""Risk scoring: findings and tool outcomes to score, grade and status.

Everything here is a pure function of its inputs.
"""

from dataclasses import dataclass
from typing import Dict, Mapping

from ..models.scan_result import (
    Findings,
    ScanStatus,
    Score,
    ToolResult,
    ToolStatus,
)

# Points per finding
CRITICAL_VULN_POINTS = 10
HIGH_VULN_POINTS = 5
MEDIUM_VULN_POINTS = 2
LOW_VULN_POINTS = 1
SECRET_POINTS = 20
HIGH_RISK_CAPABILITY_POINTS = 15
MEDIUM_RISK_CAPABILITY_POINTS = 7
SUSPICIOUS_FILE_POINTS = 5

# (inclusive upper bound, grade)
GRADE_THRESHOLDS = ((10, "A"), (30, "B"), (60, "C"), (100, "D"))
FAILING_GRADE = "F"

FAIL_THRESHOLD = 100
WARN_THRESHOLD = 30


@dataclass
class Verdict:
    """Aggregated outcome of a scan."""
    score: Score
    status: ScanStatus
    partial: bool


def grade_for(total: int) -> str:
    """Letter grade for a score total."""
    for upper, grade in GRADE_THRESHOLDS:
        if total <= upper:
            return grade
    return FAILING_GRADE


def _tool_ok(tools: Mapping[str, ToolResult], name: str) -> bool:
    tool = tools.get(name)
    return tool is not None and tool.status == ToolStatus.OK


def score_breakdown(findings: Findings, tools: Mapping[str, ToolResult]) -> Dict[str, int]:
    """
    Points per category, counting only findings of tools that finished ok.
    """
    breakdown: Dict[str, int] = {}

    if findings.trivy is not None and _tool_ok(tools, "trivy"):
        vulns = findings.trivy.vulnerabilities
        breakdown["vulnerabilities"] = (
            vulns.critical * CRITICAL_VULN_POINTS
            + vulns.high * HIGH_VULN_POINTS
            + vulns.medium * MEDIUM_VULN_POINTS
            + vulns.low * LOW_VULN_POINTS
        )
        breakdown["secrets"] = findings.trivy.secrets * SECRET_POINTS

    if findings.malcontent is not None and _tool_ok(tools, "malcontent"):
        breakdown["capabilities"] = (
            findings.malcontent.high_risk * HIGH_RISK_CAPABILITY_POINTS
            + findings.malcontent.medium_risk * MEDIUM_RISK_CAPABILITY_POINTS
        )

    if findings.magika is not None and _tool_ok(tools, "magika"):
        breakdown["file_types"] = findings.magika.suspicious_types * SUSPICIOUS_FILE_POINTS

    return breakdown


def compute_score(findings: Findings, tools: Mapping[str, ToolResult]) -> Score:
    breakdown = score_breakdown(findings, tools)
    total = max(0, sum(breakdown.values()))
    return Score(total=total, grade=grade_for(total), breakdown=breakdown)


def is_partial(tools: Mapping[str, ToolResult]) -> bool:
    """True if any enabled tool failed or timed out."""
    return any(
        t.status in (ToolStatus.FAILED, ToolStatus.TIMEOUT) for t in tools.values()
    )


def determine_status(total: int, tools: Mapping[str, ToolResult]) -> ScanStatus:
    """
    Overall status.

    ERROR when tools were enabled but none finished ok, then FAIL above
    100 points, WARN above 30 points or when coverage is partial.
    """
    enabled = [t for t in tools.values() if t.status != ToolStatus.SKIPPED]
    if enabled and not any(t.status == ToolStatus.OK for t in enabled):
        return ScanStatus.ERROR
    if total > FAIL_THRESHOLD:
        return ScanStatus.FAIL
    if total > WARN_THRESHOLD or is_partial(tools):
        return ScanStatus.WARN
    return ScanStatus.PASS


def aggregate(tools: Mapping[str, ToolResult], findings: Findings) -> Verdict:
    """Score a finished scan."""
    score = compute_score(findings, tools)
    return Verdict(
        score=score,
        status=determine_status(score.total, tools),
        partial=is_partial(tools),
    )
