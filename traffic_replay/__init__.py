"""
traffic_replay - A package for replaying recorded HTTP GET traffic.

This package provides functionality for:
- Replaying timestamped requests from a CSV file with their original spacing
- Rotating outbound connection pools and enforcing per-request timeouts
- Recording latency and error statistics
"""

from .config import ReplayConfig
from .main import main
from .models import ParseError, InvalidURLError, Record, RequestOutcome, RunSummary
from .scheduler import run_load_test, run_replay

__all__ = [
    'main', 'run_load_test', 'run_replay', 'ReplayConfig',
    'ParseError', 'InvalidURLError', 'Record', 'RequestOutcome', 'RunSummary',
]
