"""CLI for checking bundled tools and printing the version."""

import argparse
from typing import Any

from .. import __version__
from ..core.runner import UNKNOWN_VERSION, probe_version
from ..core.tools import TOOLS
from ..utils.subprocess import check_tool_available

TOOL_HOMEPAGES = {
    "trivy": "https://trivy.dev",
    "malcontent": "https://github.com/chainguard-dev/malcontent",
    "magika": "https://github.com/google/magika",
}


def create_tools_parser(subparsers: Any) -> argparse.ArgumentParser:
    """Create the tools subparser."""
    return subparsers.add_parser(
        "tools",
        help="Check bundled tool versions and availability",
    )


def create_version_parser(subparsers: Any) -> argparse.ArgumentParser:
    """Create the version subparser."""
    return subparsers.add_parser("version", help="Print version information")


def run_tools(args: argparse.Namespace) -> int:
    """
    Report which analysis tools are installed.

    Returns:
        0 if every tool (and docker) is available, 1 otherwise
    """
    checks = [(spec.name.capitalize(), spec.binary, spec.version_command()) for spec in TOOLS]
    checks.append(("Docker", "docker", ["docker", "--version"]))

    print("\n🔧 Checking bundled tools...\n")

    all_ok = True
    for label, binary, version_cmd in checks:
        if not check_tool_available(binary):
            print(f"  ✗ {label}: not found")
            all_ok = False
            continue
        version = probe_version(version_cmd)
        print(f"  ✓ {label}: {version}")
        if version == UNKNOWN_VERSION:
            all_ok = False

    print()
    if not all_ok:
        print("❌ Some tools are missing")
        return 1
    return 0


def run_version(args: argparse.Namespace) -> int:
    """Print version and bundled tool homepages."""
    print(f"vnaiscan {__version__}")
    print("\nBundled tools:")
    for spec in TOOLS:
        print(f"  {spec.name.capitalize() + ':':<12} {TOOL_HOMEPAGES.get(spec.name, '')}")
    return 0
