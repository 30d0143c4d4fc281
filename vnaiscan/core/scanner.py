"""Scan orchestration.

Pipeline: acquire image -> safe extraction -> all enabled tools in
parallel -> parse findings -> score.
"""

import os
import shutil
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Optional, Sequence

from ..models.scan_result import (
    Findings,
    ScanOptions,
    ScanResult,
    ScanStatus,
    ToolResult,
    ToolStatus,
    now_utc,
)
from ..utils.logging import get_logger
from .errors import ScanCancelledError, ToolsFailedError
from .extractor import make_readable
from .image import ArchiveImageSource, DockerImageSource, ImageSource
from .runner import ToolRunner
from .scoring import aggregate
from .tools import TOOLS, ToolSpec

logger = get_logger(__name__)


class ImageScanner:
    """
    Scans one container image with every enabled analysis tool.

    A temporary working directory holds the extracted filesystem and the
    raw tool reports; it is removed when scan() returns or raises.
    """

    def __init__(
        self,
        options: ScanOptions,
        tools: Sequence[ToolSpec] = TOOLS,
        source: Optional[ImageSource] = None,
        work_root: Optional[str] = None,
        on_tool_done: Optional[Callable[[ToolResult], None]] = None,
    ):
        """
        Initialize scanner.

        Args:
            options: Scan options
            tools: Tool table to run
            source: Image source (defaults to docker, or the archive in options)
            work_root: Parent directory for the temporary working area
            on_tool_done: Called once per finished tool, from the scan thread
        """
        self.options = options
        self.tools = tuple(tools)
        if source is None:
            if options.archive:
                source = ArchiveImageSource(options.archive)
            else:
                source = DockerImageSource(options.image, options.platform)
        self.source = source
        self.work_root = work_root
        self.on_tool_done = on_tool_done
        self.work_dir: Optional[str] = None

    def scan(self, cancel_event: Optional[threading.Event] = None) -> ScanResult:
        """
        Run the full pipeline.

        Args:
            cancel_event: Set from another thread to stop the scan; running
                tools are terminated

        Returns:
            The finished ScanResult

        Raises:
            AcquisitionError: The image could not be obtained
            ExtractionError: The image filesystem could not be extracted
            ScanCancelledError: cancel_event was set
            ToolsFailedError: No enabled tool finished ok; carries the result
        """
        if cancel_event is None:
            cancel_event = threading.Event()

        result = ScanResult(image=self.options.image, platform=self.options.platform)
        self.work_dir = tempfile.mkdtemp(prefix="vnaiscan-", dir=self.work_root)
        try:
            rootfs = os.path.join(self.work_dir, "rootfs")
            os.makedirs(rootfs)

            logger.step(f"Fetching {self.options.image} ({self.options.platform})")
            result.digest = self.source.fetch(rootfs, cancel_event)
            make_readable(rootfs)
            logger.debug(f"Image digest: {result.digest}")
            stats = self.source.stats
            if stats is not None:
                logger.result(
                    f"Extracted {stats.files} files, {stats.directories} directories "
                    f"(skipped {stats.skipped} unsafe entries)"
                )
            if cancel_event.is_set():
                raise ScanCancelledError("scan cancelled")

            logger.step("Running security scanners...")
            result.tools = self._run_tools(rootfs, cancel_event)
            if cancel_event.is_set():
                raise ScanCancelledError("scan cancelled")

            result.findings = self._parse_findings(result.tools)
            verdict = aggregate(result.tools, result.findings)
            result.score = verdict.score
            result.status = verdict.status
            result.partial = verdict.partial
            if result.status != ScanStatus.ERROR:
                logger.success(
                    f"Scan complete: score {result.score.total}, "
                    f"grade {result.score.grade} ({result.status.value})"
                )

            self._keep_outputs(result.tools)
        finally:
            self._cleanup()

        result.finished_at = now_utc()

        if result.status == ScanStatus.ERROR:
            raise ToolsFailedError(result)
        return result

    def _run_tools(self, rootfs: str, cancel_event: threading.Event) -> Dict[str, ToolResult]:
        """Run enabled tools concurrently and wait for all of them."""
        results: Dict[str, ToolResult] = {}
        lock = threading.Lock()

        enabled = []
        for spec in self.tools:
            if self.options.is_enabled(spec.name):
                enabled.append(spec)
            else:
                results[spec.name] = ToolResult.skipped(spec.name)
                logger.debug(f"{spec.name} skipped")

        if not enabled:
            logger.warn_verbose("All scanners are disabled")
            return results

        def run_one(spec: ToolSpec) -> ToolResult:
            runner = ToolRunner(spec, timeout=self.options.timeout_for(spec.name))
            try:
                tool = runner.run(rootfs, self.work_dir, cancel_event)
            except Exception as e:
                logger.error_verbose(f"{spec.name} runner crashed: {e}")
                tool = ToolResult(
                    name=spec.name,
                    status=ToolStatus.FAILED,
                    error=f"runner error: {e}",
                )
            with lock:
                results[spec.name] = tool
            return tool

        with ThreadPoolExecutor(max_workers=len(enabled)) as executor:
            futures = [executor.submit(run_one, spec) for spec in enabled]
            try:
                for future in as_completed(futures):
                    tool = future.result()
                    if self.on_tool_done:
                        self.on_tool_done(tool)
            except BaseException:
                # Ctrl-C or a failing callback: stop every tool, then
                # let the executor join the workers
                cancel_event.set()
                raise

        return results

    def _parse_findings(self, tools: Dict[str, ToolResult]) -> Findings:
        """Parse raw reports of tools that finished ok."""
        findings = Findings()
        for spec in self.tools:
            tool = tools.get(spec.name)
            if tool is None or not tool.ok or spec.parser is None:
                continue
            if not hasattr(findings, spec.name):
                logger.debug(f"No findings category for {spec.name}")
                continue
            try:
                setattr(findings, spec.name, spec.parser(tool.output_file))
            except (OSError, ValueError, TypeError, AttributeError) as e:
                logger.warn_verbose(f"Could not parse {spec.name} report: {e}")
        return findings

    def _keep_outputs(self, tools: Dict[str, ToolResult]) -> None:
        """Copy raw reports to the report directory before cleanup."""
        report_dir = self.options.report_dir
        for tool in tools.values():
            if not tool.output_file:
                continue
            try:
                os.makedirs(report_dir, exist_ok=True)
                dest = os.path.join(report_dir, os.path.basename(tool.output_file))
                shutil.copyfile(tool.output_file, dest)
                tool.output_file = os.path.abspath(dest)
            except OSError as e:
                logger.warn_verbose(f"Could not save {tool.name} report: {e}")
                tool.output_file = None

    def _cleanup(self) -> None:
        if not self.work_dir:
            return

        try:
            shutil.rmtree(self.work_dir)
        except OSError as e:
            logger.warning(f"Failed to remove working directory {self.work_dir}: {e}")
            return
        logger.debug(f"Removed working directory {self.work_dir}")
