"""Tests for result models and their JSON form."""

from __future__ import annotations

import dataclasses
import json
from datetime import datetime, timezone

import pytest

from vnaiscan.core.errors import ToolsFailedError
from vnaiscan.models.scan_result import (
    Findings,
    MagikaFindings,
    ScanOptions,
    ScanResult,
    ScanStatus,
    Score,
    ToolResult,
    ToolStatus,
)


def test_options_are_immutable():
    options = ScanOptions(image="alpine:3")
    with pytest.raises(dataclasses.FrozenInstanceError):
        options.image = "busybox"


def test_options_tool_selection_and_timeouts():
    options = ScanOptions(
        image="alpine:3",
        timeout=600,
        tool_timeouts={"trivy": 1200},
        skip_tools=frozenset({"magika"}),
    )
    assert options.is_enabled("trivy")
    assert not options.is_enabled("magika")
    assert options.timeout_for("trivy") == 1200
    assert options.timeout_for("malcontent") == 600


def test_skipped_tool_result():
    tool = ToolResult.skipped("magika")
    assert tool.status == ToolStatus.SKIPPED
    assert not tool.ok
    assert tool.to_dict() == {
        "name": "magika",
        "version": "",
        "status": "skipped",
        "duration_seconds": 0.0,
    }


def test_scan_result_json_shape():
    started = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    result = ScanResult(
        image="ghcr.io/example/agent:latest",
        digest="sha256:abc",
        started_at=started,
        finished_at=started,
        status=ScanStatus.WARN,
        partial=True,
        score=Score(total=5, grade="A", breakdown={"file_types": 5}),
        tools={
            "trivy": ToolResult(name="trivy", status=ToolStatus.OK, version="0.56.2", duration_seconds=3.14159),
            "magika": ToolResult(name="magika", status=ToolStatus.TIMEOUT, error="scan timed out after 1800s"),
        },
        findings=Findings(magika=MagikaFindings(total_files=3, suspicious_types=1, mismatched_extension=1)),
    )

    data = json.loads(result.to_json())

    assert data["image_ref"] == "ghcr.io/example/agent:latest"
    assert data["image_digest"] == "sha256:abc"
    assert data["platform"] == "linux/amd64"
    assert data["started_at"] == "2026-03-01T12:00:00+00:00"
    assert data["status"] == "WARN"
    assert data["partial"] is True
    assert data["score"] == {"total": 5, "grade": "A", "breakdown": {"file_types": 5}}
    assert list(data["tools"]) == ["magika", "trivy"]
    assert data["tools"]["trivy"]["duration_seconds"] == 3.14
    assert data["tools"]["magika"]["error"] == "scan timed out after 1800s"
    assert data["findings"] == {
        "magika": {"total_files": 3, "suspicious_types": 1, "mismatched_extension": 1},
    }


def test_scan_result_defaults_to_error():
    result = ScanResult(image="alpine:3")
    assert result.status == ScanStatus.ERROR
    assert result.exit_code == 3
    assert result.finished_at is None
    assert result.to_dict()["finished_at"] is None


def test_save_writes_json(tmp_path):
    path = tmp_path / "summary.json"
    ScanResult(image="alpine:3", status=ScanStatus.PASS).save(str(path))
    assert json.loads(path.read_text())["status"] == "PASS"


def test_tools_failed_error_lists_enabled_tools():
    result = ScanResult(
        image="alpine:3",
        tools={
            "trivy": ToolResult(name="trivy", status=ToolStatus.FAILED),
            "magika": ToolResult.skipped("magika"),
        },
    )
    error = ToolsFailedError(result)
    assert str(error) == "all enabled scanners failed: trivy (failed)"
    assert error.result is result
