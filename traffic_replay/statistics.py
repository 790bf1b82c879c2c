"""
Latency histogram and the end-of-run statistics report.

Latencies are kept in a log-linear histogram so memory stays bounded on long
replays: values below 2048 ns get one bucket each, and every power of two
above that is split into 1024 equal sub-buckets, which keeps the relative
error of any reported value under 0.1%. Count, min, max, mean and standard
deviation are tracked exactly from running sums.

Percentiles use nearest-rank: the p-th percentile is the smallest recorded
value whose rank is >= ceil(p/100 * count). The value reported is the top of
the bucket holding that rank, clamped to the exact [min, max] range.
"""

import math
import sys
from typing import List, Optional, TextIO

import numpy as np

from .models import LatencyStats, RunSummary

SUB_BUCKET_BITS = 11
SUB_BUCKET_COUNT = 1 << SUB_BUCKET_BITS      # 2048
SUB_BUCKET_HALF = SUB_BUCKET_COUNT // 2      # 1024
HIGHEST_TRACKABLE_NS = (1 << 50) - 1         # ~13 days
_MAX_SHIFT = HIGHEST_TRACKABLE_NS.bit_length() - SUB_BUCKET_BITS
BUCKET_COUNT = SUB_BUCKET_COUNT + _MAX_SHIFT * SUB_BUCKET_HALF

REPORT_PERCENTILES = (50, 75, 90, 99)


def bucket_index(value_ns: int) -> int:
    """Map a latency in ns to its bucket."""
    if value_ns < SUB_BUCKET_COUNT:
        return value_ns
    value_ns = min(value_ns, HIGHEST_TRACKABLE_NS)
    shift = value_ns.bit_length() - SUB_BUCKET_BITS
    mantissa = value_ns >> shift
    return SUB_BUCKET_COUNT + (shift - 1) * SUB_BUCKET_HALF + (mantissa - SUB_BUCKET_HALF)


def bucket_upper_bound(index: int) -> int:
    """Highest value that maps to the given bucket."""
    if index < SUB_BUCKET_COUNT:
        return index
    offset = index - SUB_BUCKET_COUNT
    shift = offset // SUB_BUCKET_HALF + 1
    mantissa = offset % SUB_BUCKET_HALF + SUB_BUCKET_HALF
    return ((mantissa + 1) << shift) - 1


class LatencyHistogram:
    """Records request latencies in nanoseconds."""

    def __init__(self):
        self._counts = np.zeros(BUCKET_COUNT, dtype=np.int64)
        self.count = 0
        self.min_ns: Optional[int] = None
        self.max_ns: Optional[int] = None
        self._sum = 0
        self._sum_sq = 0

    def record(self, latency_ns: int) -> None:
        latency_ns = max(0, int(latency_ns))
        self._counts[bucket_index(latency_ns)] += 1
        self.count += 1
        self._sum += latency_ns
        self._sum_sq += latency_ns * latency_ns
        if self.min_ns is None or latency_ns < self.min_ns:
            self.min_ns = latency_ns
        if self.max_ns is None or latency_ns > self.max_ns:
            self.max_ns = latency_ns

    @property
    def mean_ns(self) -> float:
        if not self.count:
            return 0.0
        return self._sum / self.count

    @property
    def stddev_ns(self) -> float:
        """Population standard deviation."""
        if not self.count:
            return 0.0
        n = self.count
        # Exact in integers until the final division
        variance = (n * self._sum_sq - self._sum * self._sum) / (n * n)
        return math.sqrt(max(variance, 0.0))

    def percentile_ns(self, p: float) -> int:
        """Nearest-rank percentile (p in 0-100)."""
        if not self.count:
            return 0
        if not 0 <= p <= 100:
            raise ValueError(f"percentile must be within [0, 100], got {p}")
        rank = max(1, math.ceil(p / 100.0 * self.count))
        cumulative = np.cumsum(self._counts)
        index = int(np.searchsorted(cumulative, rank, side="left"))
        value = bucket_upper_bound(index)
        return min(max(value, self.min_ns), self.max_ns)

    def stats(self) -> LatencyStats:
        """Snapshot of the recorded latencies in milliseconds."""
        p50, p75, p90, p99 = (self.percentile_ns(p) / 1e6 for p in REPORT_PERCENTILES)
        return LatencyStats(
            count=self.count,
            min_ms=(self.min_ns or 0) / 1e6,
            max_ms=(self.max_ns or 0) / 1e6,
            mean_ms=self.mean_ns / 1e6,
            stddev_ms=self.stddev_ns / 1e6,
            p50_ms=p50,
            p75_ms=p75,
            p90_ms=p90,
            p99_ms=p99,
        )


def format_report(summary: RunSummary) -> List[str]:
    """Render the final statistics block."""
    lat = summary.latency
    return [
        "=" * 60,
        "Load test completed",
        f"  Total requests:  {summary.total}",
        f"  Successful:      {summary.successful}",
        f"  Errors:          {summary.errors}",
        "-" * 60,
        "LATENCY (ms)",
        f"  Min:      {lat.min_ms:.2f}",
        f"  Max:      {lat.max_ms:.2f}",
        f"  Mean:     {lat.mean_ms:.2f}",
        f"  Stddev:   {lat.stddev_ms:.2f}",
        f"  P50:      {lat.p50_ms:.2f}",
        f"  P75:      {lat.p75_ms:.2f}",
        f"  P90:      {lat.p90_ms:.2f}",
        f"  P99:      {lat.p99_ms:.2f}",
        "=" * 60,
    ]


def print_report(summary: RunSummary, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    print("", file=out)
    for line in format_report(summary):
        print(line, file=out)
