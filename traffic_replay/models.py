"""
Data structures and exceptions for the traffic_replay package.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Record:
    """A recorded request from the input CSV."""
    scheduled_time: float  # Epoch milliseconds as recorded
    url: str


@dataclass(frozen=True)
class RequestOutcome:
    """Result of one dispatched request (success or failure)."""
    url: str
    success: bool
    latency_ns: int
    status_code: Optional[int] = None
    error_kind: Optional[str] = None     # HTTP_<code>, TIMEOUT, ECONNREFUSED, ...
    error_detail: Optional[str] = None

    @property
    def latency_ms(self) -> float:
        return self.latency_ns / 1e6


@dataclass(frozen=True)
class LatencyStats:
    """Latency summary in milliseconds."""
    count: int
    min_ms: float
    max_ms: float
    mean_ms: float
    stddev_ms: float
    p50_ms: float
    p75_ms: float
    p90_ms: float
    p99_ms: float


@dataclass(frozen=True)
class RunSummary:
    """Final counts for a completed replay."""
    total: int
    successful: int
    errors: int
    latency: LatencyStats


class ParseError(ValueError):
    """Raised when an input line is not a valid `time,url` record."""

    def __init__(self, reason: str, line_number: int,
                 field_count: Optional[int] = None, detail: Optional[str] = None):
        self.reason = reason
        self.line_number = line_number
        self.field_count = field_count
        message = f"{reason} at line {line_number}"
        if field_count is not None:
            message += f": got {field_count}"
        elif detail:
            message += f": {detail}"
        super().__init__(message)


class InvalidURLError(ValueError):
    """Raised when a URL is not a well-formed absolute URL."""

    def __init__(self, url: str, reason: str = "not an absolute URL"):
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid URL '{url}': {reason}")
