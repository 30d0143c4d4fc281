"""Tests for running a single tool (vnaiscan.core.runner)."""

from __future__ import annotations

import os
import threading

import pytest

from conftest import python_tool
from vnaiscan.core.runner import UNKNOWN_VERSION, ToolRunner, probe_version
from vnaiscan.core.tools import ToolSpec
from vnaiscan.models.scan_result import ToolStatus
from vnaiscan.utils.subprocess import CommandResult


@pytest.fixture
def workdir(tmp_path):
    rootfs = tmp_path / "rootfs"
    rootfs.mkdir()
    return str(rootfs), str(tmp_path)


def fake_runner(returncode=0, stdout="", stderr=""):
    calls = []

    def run(cmd, timeout=None):
        calls.append((cmd, timeout))
        return CommandResult(returncode=returncode, stdout=stdout, stderr=stderr)

    run.calls = calls
    return run


@pytest.mark.parametrize("stdout,expected", [
    ("Version: 0.56.2\nVulnerability DB:\n  Version: 2\n", "0.56.2"),
    ("\n  magika 0.6.1  \n", "magika 0.6.1"),
    ("", UNKNOWN_VERSION),
])
def test_probe_version_first_line(stdout, expected):
    assert probe_version(["tool", "--version"], fake_runner(stdout=stdout)) == expected


def test_probe_version_reads_stderr_when_stdout_is_empty():
    assert probe_version(["mal", "--version"], fake_runner(stderr="mal version 1.8.0\n")) == "mal version 1.8.0"


def test_probe_version_failure_is_unknown():
    run = fake_runner(returncode=1, stdout="Version: 1.0")
    assert probe_version(["trivy", "--version"], run, timeout=3) == UNKNOWN_VERSION
    assert run.calls == [(["trivy", "--version"], 3)]


def test_successful_tool(workdir):
    rootfs, out_dir = workdir
    spec = python_tool("trivy", "import sys; open(sys.argv[1], 'w').write('[]')")

    result = ToolRunner(spec, timeout=30).run(rootfs, out_dir)

    assert result.status == ToolStatus.OK
    assert result.error is None
    assert result.output_file == os.path.join(out_dir, "trivy.json")
    with open(result.output_file) as f:
        assert f.read() == "[]"
    assert result.version.startswith("Python")
    assert result.duration_seconds > 0


def test_tool_runs_inside_rootfs(workdir):
    rootfs, out_dir = workdir
    spec = python_tool("trivy", "import os, sys; open(sys.argv[1], 'w').write(os.getcwd())")

    result = ToolRunner(spec, timeout=30).run(rootfs, out_dir)

    with open(result.output_file) as f:
        assert os.path.realpath(f.read()) == os.path.realpath(rootfs)


def test_stdout_is_saved_as_report(workdir):
    rootfs, out_dir = workdir
    spec = python_tool("magika", "print('[]')", stdout_is_output=True)

    result = ToolRunner(spec, timeout=30).run(rootfs, out_dir)

    assert result.ok
    with open(result.output_file) as f:
        assert f.read().strip() == "[]"


def test_nonzero_exit_is_failed_with_diagnostic(workdir):
    rootfs, out_dir = workdir
    spec = python_tool("malcontent", "import sys; sys.stderr.write('rule compile error'); sys.exit(3)")

    result = ToolRunner(spec, timeout=30).run(rootfs, out_dir)

    assert result.status == ToolStatus.FAILED
    assert "rule compile error" in result.error
    assert result.output_file is None


def test_missing_binary_is_failed_with_unknown_version(workdir):
    rootfs, out_dir = workdir
    spec = ToolSpec(
        name="trivy",
        binary=os.path.join(out_dir, "no-such-tool"),
        description="missing",
        args=("{rootfs}",),
        output_name="trivy.json",
    )

    result = ToolRunner(spec, timeout=30).run(rootfs, out_dir)

    assert result.status == ToolStatus.FAILED
    assert result.version == UNKNOWN_VERSION
    assert "failed to start" in result.error


def test_timeout_kills_tool(workdir):
    rootfs, out_dir = workdir
    code = "import os, sys, time; open(sys.argv[1], 'w').write(str(os.getpid())); time.sleep(60)"
    spec = python_tool("trivy", code)

    result = ToolRunner(spec, timeout=2).run(rootfs, out_dir)

    assert result.status == ToolStatus.TIMEOUT
    assert result.error == "scan timed out after 2s"
    assert result.duration_seconds < 30
    with open(os.path.join(out_dir, "trivy.json")) as f:
        pid = int(f.read())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


def test_cancelled_tool_is_failed(workdir):
    rootfs, out_dir = workdir
    spec = python_tool("magika", "import time; time.sleep(60)", stdout_is_output=True)
    cancel = threading.Event()
    cancel.set()

    result = ToolRunner(spec, timeout=60).run(rootfs, out_dir, cancel)

    assert result.status == ToolStatus.FAILED
    assert result.error == "scan cancelled"
    assert result.duration_seconds < 30
