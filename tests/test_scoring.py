"""Tests for risk aggregation (vnaiscan.core.scoring)."""

from __future__ import annotations

import pytest

from vnaiscan.core.scoring import aggregate, compute_score, determine_status, grade_for
from vnaiscan.models.scan_result import (
    Findings,
    MagikaFindings,
    MalcontentFindings,
    ScanStatus,
    ToolResult,
    ToolStatus,
    TrivyFindings,
    VulnCounts,
)


def tools(**statuses: ToolStatus) -> dict:
    return {name: ToolResult(name=name, status=status) for name, status in statuses.items()}


ALL_OK = dict(trivy=ToolStatus.OK, malcontent=ToolStatus.OK, magika=ToolStatus.OK)


@pytest.mark.parametrize("total,grade", [
    (0, "A"), (10, "A"),
    (11, "B"), (30, "B"),
    (31, "C"), (60, "C"),
    (61, "D"), (100, "D"),
    (101, "F"), (5000, "F"),
])
def test_grade_thresholds(total, grade):
    assert grade_for(total) == grade


def test_critical_and_high_vulnerabilities_score_twenty():
    findings = Findings(trivy=TrivyFindings(vulnerabilities=VulnCounts(critical=1, high=2)))

    verdict = aggregate(tools(**ALL_OK), findings)

    assert verdict.score.total == 20
    assert verdict.score.grade == "B"
    assert verdict.status == ScanStatus.PASS
    assert verdict.partial is False


def test_every_category_is_scored():
    findings = Findings(
        trivy=TrivyFindings(
            vulnerabilities=VulnCounts(critical=1, high=1, medium=1, low=1),
            secrets=1,
            misconfigs=50,
        ),
        malcontent=MalcontentFindings(total=9, high_risk=1, medium_risk=1, low_risk=7),
        magika=MagikaFindings(total_files=10, suspicious_types=1, mismatched_extension=4),
    )

    score = compute_score(findings, tools(**ALL_OK))

    assert score.breakdown == {
        "vulnerabilities": 10 + 5 + 2 + 1,
        "secrets": 20,
        "capabilities": 15 + 7,
        "file_types": 5,
    }
    assert score.total == 65
    assert score.grade == "D"


def test_findings_of_failed_tools_are_ignored():
    findings = Findings(
        trivy=TrivyFindings(vulnerabilities=VulnCounts(critical=20)),
        malcontent=MalcontentFindings(high_risk=1),
    )
    results = tools(trivy=ToolStatus.FAILED, malcontent=ToolStatus.OK)

    verdict = aggregate(results, findings)

    assert verdict.score.total == 15
    assert "vulnerabilities" not in verdict.score.breakdown


def test_timeout_makes_result_partial_and_warn_at_zero_score():
    verdict = aggregate(tools(trivy=ToolStatus.OK, malcontent=ToolStatus.TIMEOUT), Findings())

    assert verdict.score.total == 0
    assert verdict.partial is True
    assert verdict.status == ScanStatus.WARN


def test_all_enabled_tools_failed_is_error():
    findings = Findings(trivy=TrivyFindings(vulnerabilities=VulnCounts(critical=50)))
    results = tools(trivy=ToolStatus.FAILED, malcontent=ToolStatus.TIMEOUT, magika=ToolStatus.SKIPPED)

    verdict = aggregate(results, findings)

    assert verdict.status == ScanStatus.ERROR
    assert verdict.partial is True


def test_skipped_tools_do_not_count_as_partial():
    verdict = aggregate(tools(trivy=ToolStatus.OK, magika=ToolStatus.SKIPPED), Findings())
    assert verdict.partial is False
    assert verdict.status == ScanStatus.PASS


def test_no_enabled_tools_passes():
    verdict = aggregate(tools(trivy=ToolStatus.SKIPPED), Findings())
    assert verdict.status == ScanStatus.PASS
    assert verdict.score.total == 0


@pytest.mark.parametrize("total,status", [
    (0, ScanStatus.PASS),
    (30, ScanStatus.PASS),
    (31, ScanStatus.WARN),
    (100, ScanStatus.WARN),
    (101, ScanStatus.FAIL),
])
def test_status_thresholds(total, status):
    assert determine_status(total, tools(trivy=ToolStatus.OK)) == status


def test_fail_wins_over_partial():
    results = tools(trivy=ToolStatus.OK, magika=ToolStatus.FAILED)
    assert determine_status(150, results) == ScanStatus.FAIL


def test_aggregate_is_deterministic():
    findings = Findings(malcontent=MalcontentFindings(high_risk=3, medium_risk=2))
    results = tools(**ALL_OK)
    assert aggregate(results, findings) == aggregate(results, findings)


@pytest.mark.parametrize("status,code", [
    (ScanStatus.PASS, 0),
    (ScanStatus.WARN, 1),
    (ScanStatus.FAIL, 2),
    (ScanStatus.ERROR, 3),
])
def test_exit_codes(status, code):
    assert status.exit_code == code
