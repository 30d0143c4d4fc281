"""CLI for scanning a container image."""

import argparse
import os
import sys
from typing import Any, Optional, TextIO

from ..core.errors import ScanError, ToolsFailedError
from ..core.scanner import ImageScanner
from ..core.tools import TOOLS
from ..models.scan_result import (
    DEFAULT_PLATFORM,
    DEFAULT_REPORT_DIR,
    DEFAULT_TIMEOUT_MINUTES,
    ScanOptions,
    ScanResult,
    ScanStatus,
    ToolStatus,
)
from ..utils.logging import setup_logging, LogLevel, get_logger
from ..utils.progress import ToolProgress

logger = get_logger(__name__)

SUMMARY_FILE = "summary.json"


def create_scan_parser(subparsers: Any) -> argparse.ArgumentParser:
    """Create the scan subparser."""
    parser = subparsers.add_parser(
        "scan",
        help="Scan a container image for security issues",
        description="""
Scan a container image using Trivy, Malcontent, and Magika.

The scan will:
  1. Pull the image (if not cached)
  2. Extract the filesystem (symlinks, devices and path traversal are dropped)
  3. Run all scanners in parallel
  4. Aggregate results into a score, grade and status
""",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
  0 PASS, 1 WARN, 2 FAIL, 3 ERROR

Examples:
  vnaiscan scan ghcr.io/openclaw/openclaw:latest
  vnaiscan scan --platform linux/arm64 myimage:tag
  vnaiscan scan --output json --report ./reports image:tag
  vnaiscan scan --archive rootfs.tar myimage:tag
""",
    )

    parser.add_argument("image", help="Container image to scan")
    parser.add_argument(
        "-p", "--platform",
        default=DEFAULT_PLATFORM,
        help=f"Target platform (default: {DEFAULT_PLATFORM})",
    )
    parser.add_argument(
        "-o", "--output",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )
    parser.add_argument(
        "-r", "--report",
        default=DEFAULT_REPORT_DIR,
        help=f"Directory to save reports (default: {DEFAULT_REPORT_DIR})",
    )
    parser.add_argument(
        "-t", "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT_MINUTES,
        help=f"Timeout per tool in minutes (default: {DEFAULT_TIMEOUT_MINUTES})",
    )
    for spec in TOOLS:
        parser.add_argument(
            f"--skip-{spec.name}",
            action="store_true",
            help=f"Skip {spec.name.capitalize()} scanner",
        )
    parser.add_argument(
        "--archive",
        help="Scan a filesystem tarball from 'docker export' instead of pulling",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Minimal output",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output (shows tool errors and skipped archive entries)",
    )

    return parser


def build_options(args: argparse.Namespace) -> ScanOptions:
    """Map parsed arguments to ScanOptions."""
    skip = frozenset(
        spec.name for spec in TOOLS
        if getattr(args, f"skip_{spec.name}", False)
    )
    return ScanOptions(
        image=args.image,
        platform=args.platform,
        output_format=args.output,
        report_dir=args.report,
        timeout=args.timeout * 60,
        skip_tools=skip,
        archive=args.archive,
        quiet=args.quiet,
        verbose=args.verbose,
    )


_STATUS_LABELS = {
    ToolStatus.OK: "✓ Passed",
    ToolStatus.FAILED: "✗ Failed",
    ToolStatus.TIMEOUT: "⏱ Timeout",
    ToolStatus.SKIPPED: "- Skipped",
}


def print_summary(result: ScanResult, report_dir: str, file: Optional[TextIO] = None) -> None:
    """
    Print scan summary to console.

    Args:
        result: Scan result to summarize
        report_dir: Where reports were written
        file: Output stream (default: stdout)
    """
    out = file or sys.stdout

    def line(text: str = "") -> None:
        print(text, file=out)

    line()
    line("━" * 60)
    line(f"📊 SCAN RESULTS{'Score: ' + str(result.score.total):>44}")
    line("━" * 60)
    line()
    line(f"{'Image:':<20} {result.image}")
    line(f"{'Digest:':<20} {result.digest or 'unknown'}")
    line(f"{'Platform:':<20} {result.platform}")

    for name, tool in sorted(result.tools.items()):
        line()
        line(f"🔬 {name.capitalize():<20} {_STATUS_LABELS[tool.status]}")
        if tool.status == ToolStatus.SKIPPED:
            continue
        line(f"   {'Version:':<18} {tool.version}")
        if tool.error:
            line(f"   {'Error:':<18} {tool.error.splitlines()[-1]}")

    findings = result.findings
    if findings.trivy:
        v = findings.trivy.vulnerabilities
        line()
        line("Vulnerabilities:")
        line(f"  🔴 Critical: {v.critical}")
        line(f"  🟠 High:     {v.high}")
        line(f"  🟡 Medium:   {v.medium}")
        line(f"  🟢 Low:      {v.low}")
        line(f"  🔑 Secrets:  {findings.trivy.secrets}")
        line(f"  ⚙️  Misconfig: {findings.trivy.misconfigs}")
    if findings.malcontent:
        m = findings.malcontent
        line()
        line("Capabilities:")
        line(f"  High risk:   {m.high_risk}")
        line(f"  Medium risk: {m.medium_risk}")
        line(f"  Low risk:    {m.low_risk}")
    if findings.magika:
        g = findings.magika
        line()
        line("File types:")
        line(f"  Files:       {g.total_files}")
        line(f"  Suspicious:  {g.suspicious_types}")
        line(f"  Mismatched:  {g.mismatched_extension}")

    line()
    line("━" * 60)
    partial = " [PARTIAL]" if result.partial else ""
    line(f"📋 Grade: {result.score.grade} ({result.status.value}){partial}   │   Report: {report_dir}")
    line("━" * 60)


def save_summary(result: ScanResult, report_dir: str) -> Optional[str]:
    """Write summary.json to the report directory."""
    path = os.path.join(report_dir, SUMMARY_FILE)
    try:
        os.makedirs(report_dir, exist_ok=True)
        result.save(path)
    except OSError as e:
        logger.warning(f"Could not write {path}: {e}")
        return None
    return path


def run_scan(args: argparse.Namespace) -> int:
    """
    Run an image scan.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code derived from the scan status
    """
    if args.quiet:
        log_level = LogLevel.QUIET
    elif args.verbose:
        log_level = LogLevel.VERBOSE
    else:
        log_level = LogLevel.INFO
    setup_logging(log_level, show_errors=args.verbose)

    options = build_options(args)
    show = not options.quiet and options.output_format == "table"

    if show:
        print(f"\n🔍 Scanning {options.image} ({options.platform})\n")

    enabled = [spec for spec in TOOLS if options.is_enabled(spec.name)]
    progress = ToolProgress(len(enabled), enabled=show)
    scanner = ImageScanner(
        options,
        on_tool_done=lambda t: progress.complete(t.name, t.status.value, t.duration_seconds),
    )

    failure = None
    try:
        result = scanner.scan()
    except ToolsFailedError as e:
        result = e.result
        failure = str(e)
    except ScanError as e:
        print(f"❌ Scan failed: {e}", file=sys.stderr)
        return ScanStatus.ERROR.exit_code

    save_summary(result, options.report_dir)

    if options.output_format == "json":
        print(result.to_json())
    elif not options.quiet:
        print_summary(result, options.report_dir)

    if failure:
        print(f"Error: {failure}", file=sys.stderr)
    elif result.status == ScanStatus.FAIL:
        print(
            f"Error: scan completed with FAIL status (score: {result.score.total})",
            file=sys.stderr,
        )

    return result.exit_code
