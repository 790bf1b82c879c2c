"""
In-flight request tracking and the end-of-run completion barrier.
"""

import asyncio
from typing import Optional

from .models import RequestOutcome, RunSummary
from .statistics import LatencyHistogram


class CompletionTracker:
    """
    Counts dispatched and finished requests for one run.

    Every method is called from the event loop thread only, so the counters
    need no lock. The barrier opens once the record stream is exhausted and
    no request is in flight; both transitions re-check the condition because
    the last request can finish before or after the stream ends.
    """

    def __init__(self, histogram: Optional[LatencyHistogram] = None):
        self.histogram = histogram if histogram is not None else LatencyHistogram()
        self.dispatched = 0
        self.in_flight = 0
        self.completed = 0
        self.errors = 0
        self.stream_exhausted = False
        self._done = asyncio.Event()

    def on_dispatch(self) -> None:
        """Called right before a request starts."""
        self.dispatched += 1
        self.in_flight += 1

    def on_finish(self, outcome: RequestOutcome) -> None:
        """Called exactly once per dispatched request."""
        if self.in_flight <= 0:
            raise RuntimeError("on_finish called with no request in flight")
        self.in_flight -= 1
        self.completed += 1
        if not outcome.success:
            self.errors += 1
        self.histogram.record(outcome.latency_ns)
        self._check_done()

    def mark_exhausted(self) -> None:
        """Called once the scheduler has dispatched its last request."""
        self.stream_exhausted = True
        self._check_done()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    async def wait(self) -> None:
        """Block until the stream is exhausted and every request has finished."""
        await self._done.wait()

    def _check_done(self) -> None:
        if self.stream_exhausted and self.in_flight == 0:
            self._done.set()

    def summary(self) -> RunSummary:
        return RunSummary(
            total=self.completed,
            successful=self.completed - self.errors,
            errors=self.errors,
            latency=self.histogram.stats(),
        )
