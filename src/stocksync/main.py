#!/usr/bin/env python3
"""stocksync application entry point.

This module provides a unified entry point for both interfaces:
- CLI: Command-line interface to the local store and the sync engine
- Remote: Reference sheet server the client can sync with

Usage:
    python -m stocksync.main cli list Products          # Use CLI
    python -m stocksync.main cli sync now               # Sync with the remote
    python -m stocksync.main remote [--port 8765]       # Start the reference remote
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import NoReturn

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the unified argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description="stocksync - offline-first inventory and sales store synced with a sheet",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m stocksync.main cli list Products
  python -m stocksync.main cli add Products name=Bread stock=10 price=2.5
  python -m stocksync.main cli record-sale --product Bread --quantity 3 --price 2.5
  python -m stocksync.main cli sync now
  python -m stocksync.main remote --port 8765
""",
    )

    parser.add_argument(
        "-d", "--config-dir",
        type=Path,
        default=None,
        help="Custom configuration directory (default: ~/.config/stocksync/)"
    )

    # Create subparsers for each interface
    subparsers = parser.add_subparsers(dest="interface", help="Interface to use")

    from stocksync.cli import add_cli_subparser
    add_cli_subparser(subparsers)

    from stocksync.remote_server import add_remote_subparser
    add_remote_subparser(subparsers)

    return parser


def main() -> NoReturn:
    """Main entry point for stocksync.

    Parses arguments and dispatches to the appropriate interface.
    """
    parser = create_parser()
    args = parser.parse_args()

    if args.config_dir:
        logger.info(f"Using custom config directory: {args.config_dir}")

    if args.interface == "cli":
        from stocksync.cli import run as run_cli
        exit_code = run_cli(args.config_dir, args)
    elif args.interface == "remote":
        from stocksync.remote_server import run as run_remote
        exit_code = run_remote(args.config_dir, args)
    else:
        parser.print_help()
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
