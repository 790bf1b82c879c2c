"""
Timed replay of recorded requests.

The scheduling loop walks the record stream in order and sleeps until each
record's fire time (its recorded offset from the first record, divided by the
acceleration factor). Requests are dispatched as independent tasks, so the
loop never waits on network I/O; only the final barrier waits for them.
"""

import asyncio
from typing import Iterable, Optional, Set

from .config import ReplayConfig
from .executor import (
    UNEXPECTED_ERROR,
    execute_request,
    failed_outcome,
    invalid_url_outcome,
    report_outcome,
)
from .models import InvalidURLError, Record, RequestOutcome, RunSummary
from .pool import ConnectionPoolManager, PoolHandle
from .records import read_records
from .statistics import print_report
from .system_info import format_system_state, get_system_state
from .tracker import CompletionTracker
from .urls import transform_url
from .utils import accelerated_offset_ms, now_ns, wait_until_ns


async def run_replay(records: Iterable[Record], config: ReplayConfig) -> Optional[RunSummary]:
    """
    Replay records against their targets and return the final counts, or
    None if the stream held no records.

    A ParseError raised by the stream stops dispatching; requests already in
    flight still finish and the pool is closed before the error propagates.
    """
    tracker = CompletionTracker()
    pool = ConnectionPoolManager(
        reset_every=config.reset_connections,
        verify_tls=not config.no_verify,
        verbose=config.verbose,
    )
    tasks: Set[asyncio.Task] = set()

    async def run_one(url: str, handle: PoolHandle) -> None:
        # Every dispatched request must reach on_finish or the barrier never opens
        start_ns = now_ns()
        outcome: Optional[RequestOutcome] = None
        try:
            outcome = await execute_request(url, config.timeout_ms, handle)
        except Exception as e:
            outcome = failed_outcome(url, UNEXPECTED_ERROR, f"{type(e).__name__}: {e}",
                                     now_ns() - start_ns)
            report_outcome(outcome)
        finally:
            handle.release()
            if outcome is None:
                outcome = failed_outcome(url, UNEXPECTED_ERROR, "request cancelled",
                                         now_ns() - start_ns)
            tracker.on_finish(outcome)

    def dispatch(record: Record) -> None:
        try:
            url = transform_url(record.url, config.host, config.no_cache)
        except InvalidURLError as e:
            tracker.on_dispatch()
            outcome = invalid_url_outcome(e)
            report_outcome(outcome)
            tracker.on_finish(outcome)
            return
        handle = pool.checkout()
        tracker.on_dispatch()
        task = asyncio.create_task(run_one(url, handle))
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    iterator = iter(records)
    first_time: Optional[float] = None
    t0_ns = 0
    try:
        for record in iterator:
            if first_time is None:
                first_time = record.scheduled_time
                t0_ns = now_ns()
                print("Starting load test...\n")

            offset_ms = accelerated_offset_ms(record.scheduled_time, first_time, config.accelerator)
            await wait_until_ns(t0_ns + offset_ms * 1_000_000, config.spin_ns)
            dispatch(record)

            if config.limit and tracker.dispatched >= config.limit:
                break
    finally:
        close = getattr(iterator, "close", None)
        if close is not None:
            close()
        tracker.mark_exhausted()
        if tracker.dispatched:
            if config.verbose:
                print(f"[Replay] Dispatched {tracker.dispatched} requests, "
                      f"waiting for {tracker.in_flight} in flight...")
            await tracker.wait()
        await pool.close_final()

    if not tracker.dispatched:
        print("No requests found in CSV file")
        return None

    summary = tracker.summary()
    print_report(summary)
    return summary


async def run_load_test(csv_path: str, config: ReplayConfig) -> Optional[RunSummary]:
    """Replay a recorded CSV file with the given configuration."""
    config.validate()
    print(f"\n{'='*60}")
    print(f"Replaying: {csv_path}")
    print(f"Timeout: {config.timeout_ms:g}ms, Accelerator: {config.accelerator:g}x")
    if config.host:
        print(f"Host rewrite: {config.host}")
    if config.reset_connections:
        print(f"Connection reset every {config.reset_connections} requests")
    if config.limit:
        print(f"Limit: {config.limit} requests")
    print(f"{'='*60}\n")

    if config.system_state:
        loop = asyncio.get_running_loop()
        state = await loop.run_in_executor(None, get_system_state)
        print(format_system_state(state) + "\n")

    records = read_records(csv_path, skip_header=config.skip_header)
    return await run_replay(records, config)
