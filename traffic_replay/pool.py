"""
Connection pool ownership and rotation.

A pool handle wraps one aiohttp session with its own TCP connector. Requests
borrow the handle that is current when they are dispatched and keep using it
after a rotation; the replaced handle is closed in the background once its
last borrower releases it.
"""

import asyncio
from typing import Optional, Set

import aiohttp


class PoolHandle:
    """An aiohttp session plus a count of the requests currently using it."""

    def __init__(self, session: aiohttp.ClientSession, generation: int):
        self.session = session
        self.generation = generation
        self.borrowers = 0
        self._idle = asyncio.Event()
        self._idle.set()

    def acquire(self) -> None:
        self.borrowers += 1
        self._idle.clear()

    def release(self) -> None:
        if self.borrowers <= 0:
            raise RuntimeError("release() without matching acquire()")
        self.borrowers -= 1
        if self.borrowers == 0:
            self._idle.set()

    async def wait_idle(self) -> None:
        await self._idle.wait()

    @property
    def closed(self) -> bool:
        return self.session.closed


class ConnectionPoolManager:
    """
    Owns the current pool handle and swaps it every `reset_every` dispatches.

    All methods run on the event loop thread; the swap in rotate_if_due()
    happens between two awaits, so it is atomic with respect to dispatch.
    """

    def __init__(self, reset_every: Optional[int] = None, verify_tls: bool = True,
                 verbose: bool = False):
        if reset_every is not None and reset_every <= 0:
            raise ValueError("reset_every must be a positive integer")
        self.reset_every = reset_every
        self.verify_tls = verify_tls
        self.verbose = verbose
        self.rotations = 0
        self._since_rotation = 0
        self._generation = 0
        self._current: Optional[PoolHandle] = None
        self._closing: Set[asyncio.Task] = set()

    def _new_handle(self) -> PoolHandle:
        connector_kwargs = {"limit": 0}  # no client-side admission control
        if not self.verify_tls:
            connector_kwargs["ssl"] = False
        connector = aiohttp.TCPConnector(**connector_kwargs)
        # Deadlines are enforced per request by the executor
        session = aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=None),
        )
        self._generation += 1
        return PoolHandle(session, self._generation)

    def current(self) -> PoolHandle:
        """The handle new requests should use."""
        if self._current is None:
            self._current = self._new_handle()
        return self._current

    def checkout(self) -> PoolHandle:
        """Borrow the current handle for one request, rotating afterwards if due."""
        handle = self.current()
        handle.acquire()
        self._since_rotation += 1
        self.rotate_if_due()
        return handle

    def rotate_if_due(self) -> bool:
        """Swap in a fresh handle once `reset_every` requests used the current one."""
        if not self.reset_every or self._since_rotation < self.reset_every:
            return False
        old = self.current()
        self._current = self._new_handle()
        self._since_rotation = 0
        self.rotations += 1
        if self.verbose:
            print(f"[Pool] Rotated connection pool after {self.reset_every} requests "
                  f"(generation {old.generation} -> {self._current.generation})")
        task = asyncio.create_task(self.drain_and_close(old))
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)
        return True

    async def drain_and_close(self, handle: PoolHandle) -> None:
        """Close a handle once every request using it has finished."""
        await handle.wait_idle()
        await handle.session.close()

    async def close_final(self) -> None:
        """Close the current handle and wait for any rotated handles still closing."""
        if self._current is not None:
            await self.drain_and_close(self._current)
        if self._closing:
            await asyncio.gather(*list(self._closing))
