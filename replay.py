#!/usr/bin/env python3
"""
HTTP traffic replayer.

This is a wrapper script that runs the traffic_replay package.

    python replay.py requests.csv --accelerator 10

For full options:
    python replay.py --help
"""

from traffic_replay.main import cli

if __name__ == "__main__":
    cli()
