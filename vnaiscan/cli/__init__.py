"""CLI entry points for vnaiscan."""

import sys
import argparse
from typing import List, Optional

from .. import __version__
from .scan import create_scan_parser, run_scan
from .tools import create_tools_parser, create_version_parser, run_tools, run_version


def create_main_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="vnaiscan",
        description="vnaiscan - Security scanner for AI agent container images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Scans container images using multiple security tools:
  • Trivy      - CVE, secrets, and misconfiguration detection
  • Malcontent - Binary capability and malware behavior analysis
  • Magika     - AI-powered file type detection

Commands:
  scan      Scan a container image for security issues
  tools     Check bundled tool versions and availability
  version   Print version information

Examples:
  vnaiscan scan ghcr.io/openclaw/openclaw:latest
  vnaiscan scan --platform linux/arm64 myimage:tag
  vnaiscan scan --output json --report ./reports image:tag
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    create_scan_parser(subparsers)
    create_tools_parser(subparsers)
    create_version_parser(subparsers)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_main_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    command_handlers = {
        "scan": run_scan,
        "tools": run_tools,
        "version": run_version,
    }

    handler = command_handlers.get(args.command)
    if handler:
        try:
            return handler(args)
        except KeyboardInterrupt:
            print("\n\nOperation cancelled by user", file=sys.stderr)
            return 130
    else:
        parser.print_help()
        return 1


__all__ = ["main", "create_main_parser"]
