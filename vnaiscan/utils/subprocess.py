"""Subprocess utilities with timeout and cancellation support."""

import os
import shutil
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Optional, List, Union
from .logging import get_logger, is_verbose

logger = get_logger(__name__)

# Seconds between SIGTERM and SIGKILL when stopping a tool
TERMINATE_GRACE = 5.0


@dataclass
class CommandResult:
    """Result of a command execution."""
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False
    cancelled: bool = False
    spawn_failed: bool = False

    @property
    def success(self) -> bool:
        """Check if command was successful."""
        return self.returncode == 0 and not (self.timed_out or self.cancelled)

    @property
    def output(self) -> str:
        """Combined stdout and stderr, for diagnostics."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part).strip()


def run_command(
    cmd: Union[str, List[str]],
    timeout: Optional[float] = None,
    capture_output: bool = True,
    cwd: Optional[str] = None,
    env: Optional[dict] = None,
) -> CommandResult:
    """
    Run a short-lived command with optional timeout.

    Args:
        cmd: Command to run (string or list of arguments)
        timeout: Timeout in seconds (None for no timeout)
        capture_output: Whether to capture stdout/stderr
        cwd: Working directory
        env: Environment variables

    Returns:
        CommandResult with stdout, stderr, and return code
    """
    if isinstance(cmd, str):
        cmd = cmd.split()

    logger.debug(f"Running command: {cmd}")

    try:
        result = subprocess.run(
            cmd,
            capture_output=capture_output,
            text=True,
            errors="replace",
            timeout=timeout,
            cwd=cwd,
            env=env,
            stdin=subprocess.DEVNULL,
        )
        return CommandResult(
            returncode=result.returncode,
            stdout=result.stdout if capture_output else "",
            stderr=result.stderr if capture_output else "",
        )
    except subprocess.TimeoutExpired:
        if is_verbose():
            logger.warning(f"Command timed out after {timeout}s: {cmd}")
        return CommandResult(
            returncode=-1,
            stdout="",
            stderr=f"Command timed out after {timeout} seconds",
            timed_out=True,
        )
    except OSError as e:
        logger.debug(f"Command could not be started: {cmd[0]}: {e}")
        return CommandResult(
            returncode=127,
            stdout="",
            stderr=str(e),
            spawn_failed=True,
        )


def terminate_process(proc: subprocess.Popen, grace: float = TERMINATE_GRACE) -> None:
    """
    Stop a process started in its own session, children included.

    Sends SIGTERM to the process group, then SIGKILL if it is still
    alive after the grace period.
    """
    if proc.poll() is not None:
        return

    try:
        os.killpg(proc.pid, signal.SIGTERM)
    except ProcessLookupError:
        return

    try:
        proc.wait(timeout=grace)
    except subprocess.TimeoutExpired:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            return
        proc.wait()


def run_process(
    cmd: List[str],
    timeout: Optional[float] = None,
    cwd: Optional[str] = None,
    stdout_path: Optional[str] = None,
    cancel_event: Optional[threading.Event] = None,
    poll_interval: float = 0.2,
) -> CommandResult:
    """
    Run a long-running tool that can be timed out or cancelled.

    The process runs in a new session so that the whole process group is
    terminated on timeout or cancellation.

    Args:
        cmd: Command arguments
        timeout: Deadline in seconds (None for no deadline)
        cwd: Working directory
        stdout_path: Write stdout to this file instead of capturing it;
            stderr is then captured on its own
        cancel_event: When set, the process is terminated
        poll_interval: Seconds between deadline/cancellation checks

    Returns:
        CommandResult; when stdout is captured it also holds stderr
    """
    logger.debug(f"Running tool: {' '.join(cmd)}")

    stdout_file = open(stdout_path, "w") if stdout_path else None
    try:
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=stdout_file if stdout_file else subprocess.PIPE,
                stderr=subprocess.PIPE if stdout_file else subprocess.STDOUT,
                text=True,
                errors="replace",
                start_new_session=True,
            )
        except OSError as e:
            return CommandResult(
                returncode=127,
                stdout="",
                stderr=f"failed to start {cmd[0]}: {e}",
                spawn_failed=True,
            )

        deadline = time.monotonic() + timeout if timeout is not None else None
        timed_out = False
        cancelled = False

        try:
            while True:
                try:
                    out, err = proc.communicate(timeout=poll_interval)
                    break
                except subprocess.TimeoutExpired:
                    if cancel_event is not None and cancel_event.is_set():
                        cancelled = True
                    elif deadline is not None and time.monotonic() >= deadline:
                        timed_out = True
                    else:
                        continue

                terminate_process(proc)
                try:
                    out, err = proc.communicate(timeout=TERMINATE_GRACE)
                except subprocess.TimeoutExpired:
                    out, err = "", ""
                break
        finally:
            # Interrupts must not leave the tool running
            terminate_process(proc)

        return CommandResult(
            returncode=proc.returncode,
            stdout=out or "",
            stderr=err or "",
            timed_out=timed_out,
            cancelled=cancelled,
        )
    finally:
        if stdout_file:
            stdout_file.close()


def check_tool_available(tool: str) -> bool:
    """
    Check if a tool is available in PATH.

    Args:
        tool: Tool name to check

    Returns:
        True if tool is available
    """
    return shutil.which(tool) is not None

