"""Run one analysis tool against an extracted filesystem."""

import os
import threading
import time
from typing import Callable, List, Optional

from ..models.scan_result import ToolResult, ToolStatus
from ..utils.logging import get_logger
from ..utils.subprocess import CommandResult, run_command, run_process
from .tools import ToolSpec

logger = get_logger(__name__)

UNKNOWN_VERSION = "unknown"
VERSION_PROBE_TIMEOUT = 10
# Keep the tail of tool output in diagnostics
MAX_DIAGNOSTIC_CHARS = 4000


def probe_version(
    command: List[str],
    run: Callable[..., CommandResult] = run_command,
    timeout: float = VERSION_PROBE_TIMEOUT,
) -> str:
    """
    Ask a tool for its version.

    Args:
        command: Version command, e.g. ["trivy", "--version"]
        run: Callable that executes a command and returns a CommandResult
        timeout: Seconds to wait for the probe

    Returns:
        First non-empty output line (without a "Version:" prefix), or
        "unknown" if the probe fails
    """
    result = run(command, timeout=timeout)
    if not result.success:
        return UNKNOWN_VERSION

    for line in (result.stdout or result.stderr).splitlines():
        line = line.strip()
        if not line:
            continue
        if line.lower().startswith("version:"):
            line = line.split(":", 1)[1].strip()
        return line or UNKNOWN_VERSION
    return UNKNOWN_VERSION


def _diagnostic(text: str) -> str:
    text = text.strip()
    if len(text) > MAX_DIAGNOSTIC_CHARS:
        return "..." + text[-MAX_DIAGNOSTIC_CHARS:]
    return text


class ToolRunner:
    """
    Runs a single ToolSpec and turns the outcome into a ToolResult.

    Tool failures are data: run() always returns a result.
    """

    def __init__(
        self,
        spec: ToolSpec,
        timeout: Optional[float] = None,
        version_runner: Callable[..., CommandResult] = run_command,
    ):
        """
        Initialize runner.

        Args:
            spec: Tool to run
            timeout: Deadline in seconds (defaults to spec.default_timeout)
            version_runner: Command executor used for the version probe
        """
        self.spec = spec
        self.timeout = timeout if timeout is not None else spec.default_timeout
        self.version_runner = version_runner

    def run(
        self,
        rootfs: str,
        output_dir: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> ToolResult:
        """
        Scan rootfs with the tool.

        Args:
            rootfs: Extracted filesystem, also used as working directory
            output_dir: Directory for the tool's raw report
            cancel_event: Terminates the tool when set

        Returns:
            ToolResult with status ok, failed or timeout
        """
        spec = self.spec
        started = time.monotonic()
        version = probe_version(spec.version_command(), self.version_runner)

        output_file = os.path.join(output_dir, spec.output_name)
        command = spec.command(rootfs, output_file)
        logger.debug(f"{spec.name}: {' '.join(command)}")

        result = run_process(
            command,
            timeout=self.timeout,
            cwd=rootfs,
            stdout_path=output_file if spec.stdout_is_output else None,
            cancel_event=cancel_event,
        )

        tool = ToolResult(name=spec.name, status=ToolStatus.FAILED, version=version)
        if result.timed_out:
            tool.status = ToolStatus.TIMEOUT
            tool.error = f"scan timed out after {self.timeout:g}s"
        elif result.cancelled:
            tool.error = "scan cancelled"
        elif result.spawn_failed:
            tool.error = result.stderr
        elif result.returncode != 0:
            tool.error = _diagnostic(result.output) or f"exited with status {result.returncode}"
        else:
            tool.status = ToolStatus.OK
            tool.output_file = output_file

        tool.duration_seconds = time.monotonic() - started
        if tool.ok:
            logger.debug(f"{spec.name} finished in {tool.duration_seconds:.1f}s")
        else:
            logger.error_verbose(f"{spec.name} {tool.status.value}: {tool.error}")
        return tool
