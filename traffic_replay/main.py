#!/usr/bin/env python3
"""
Command line entry point for replaying recorded HTTP GET traffic.

Usage:
    python replay.py requests.csv --accelerator 10 --host localhost:3000

CSV format (one request per line):
    unix_timestamp_in_milliseconds,url
    1761128950441,https://example.com/api/stream
    1761128950941,https://example.com/api/data
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from .config import DEFAULT_ACCELERATOR, DEFAULT_TIMEOUT_MS, ReplayConfig
from .models import ParseError
from .scheduler import run_load_test


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="traffic-replay",
        description="Replay recorded HTTP GET requests preserving their original timing.",
    )
    ap.add_argument("csv_path", help="CSV file with `timestamp_ms,url` lines")
    ap.add_argument("-t", "--timeout", type=float, default=DEFAULT_TIMEOUT_MS,
                    help=f"Timeout in milliseconds for each request (default: {DEFAULT_TIMEOUT_MS})")
    ap.add_argument("-a", "--accelerator", type=float, default=DEFAULT_ACCELERATOR,
                    help="Time acceleration factor (default: 1, e.g. 10 = 10x speed)")
    ap.add_argument("-H", "--host", default=None,
                    help="Rewrite the host in all URLs to this value (e.g. localhost:3000)")
    ap.add_argument("--no-cache", action="store_true", default=False,
                    help="Add cache=false to the querystring of all URLs")
    ap.add_argument("--skip-header", action="store_true", default=False,
                    help="Skip the first line of the CSV file (useful for headers)")
    ap.add_argument("--no-verify", action="store_true", default=False,
                    help="Disable HTTPS certificate verification (useful for self-signed certs)")
    ap.add_argument("--reset-connections", type=int, default=None,
                    help="Replace the connection pool every N requests")
    ap.add_argument("--limit", type=int, default=None,
                    help="Only replay the first N requests")
    ap.add_argument("--spin-ns", type=int, default=0,
                    help="Final busy-wait window before each dispatch, in nanoseconds (default: 0)")
    ap.add_argument("--system-state", action="store_true", default=False,
                    help="Print CPU/memory usage of this machine before replaying")
    ap.add_argument("-v", "--verbose", action="store_true", default=False,
                    help="Print pool rotations and progress notices")
    return ap


def config_from_args(args: argparse.Namespace) -> ReplayConfig:
    return ReplayConfig(
        timeout_ms=args.timeout,
        accelerator=args.accelerator,
        host=args.host,
        no_cache=args.no_cache,
        skip_header=args.skip_header,
        no_verify=args.no_verify,
        reset_connections=args.reset_connections,
        limit=args.limit,
        spin_ns=args.spin_ns,
        verbose=args.verbose,
        system_state=args.system_state,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Run a replay and return the process exit status."""
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args).validate()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        asyncio.run(run_load_test(args.csv_path, config))
    except (ParseError, OSError) as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        return 1
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
