"""
Main entry point for vnaiscan.

Usage:
    python -m vnaiscan scan IMAGE [OPTIONS]
    python -m vnaiscan tools
    python -m vnaiscan version
"""

import sys


def main() -> int:
    """Main entry point."""
    from .cli import main as cli_main
    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
