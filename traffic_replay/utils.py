"""
Timing helpers for the replay loop.
"""

import asyncio
import math
import time


def now_ns() -> int:
    """Monotonic clock used for both scheduling and latency measurement."""
    return time.perf_counter_ns()


def accelerated_offset_ms(scheduled_time: float, first_time: float, accelerator: float) -> int:
    """Delay of a record relative to the first one, divided by the acceleration factor."""
    return math.floor((scheduled_time - first_time) / accelerator)


async def wait_until_ns(target_ns: int, spin_ns: int = 0) -> None:
    """
    Suspend the scheduling loop until a record's fire time on the now_ns()
    clock. In-flight requests keep running on the event loop meanwhile.

    With spin_ns > 0 the last spin_ns nanoseconds are busy-waited instead of
    slept, which tightens dispatch jitter at the cost of blocking the loop for
    that window. A fire time already in the past returns at once, so late
    records go out immediately rather than being skipped.
    """
    while True:
        remaining = target_ns - now_ns()
        if remaining <= 0:
            return
        if remaining > spin_ns:
            await asyncio.sleep((remaining - spin_ns) / 1e9)
        else:
            while now_ns() < target_ns:
                pass
            return
