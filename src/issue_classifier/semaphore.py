"""Counting semaphore with FIFO hand-off of permits.

Used to cap in-flight requests against the GitHub API and the classifier.
A released permit goes straight to the oldest waiter instead of back to the
pool, so a caller arriving later can never overtake one already queued.

The counters and the waiter queue are only touched between await points of
a single event loop. The class is not thread-safe; sharing it across OS
threads would need a lock around acquire and hand-off.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

logger = logging.getLogger(__name__)


class Permit:
    """Handle returned by a successful acquire. Release it exactly once."""

    __slots__ = ("_semaphore", "_released")

    def __init__(self, semaphore: CountingSemaphore) -> None:
        self._semaphore = semaphore
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            raise RuntimeError(f"Permit of semaphore {self._semaphore.label!r} released twice")
        self._released = True
        self._semaphore._hand_off()


class CountingSemaphore:
    def __init__(self, max_permits: int, label: Optional[str] = None) -> None:
        if max_permits < 1:
            raise ValueError(
                f"Semaphore {label!r} needs at least 1 permit, got {max_permits}"
            )
        self.max_permits = max_permits
        self.label = label
        self._available = max_permits
        self._waiters: deque[asyncio.Future[None]] = deque()

    def __repr__(self) -> str:
        return (
            f"<CountingSemaphore {self.label!r} available={self._available}"
            f"/{self.max_permits} waiting={len(self._waiters)}>"
        )

    @property
    def available(self) -> int:
        return self._available

    @property
    def waiting(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> Permit:
        if self._available > 0:
            self._available -= 1
            return Permit(self)

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug(
            "Waiting for a permit on %r (%d queued)", self.label, len(self._waiters)
        )
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # The permit was handed over before the cancellation landed.
                self._hand_off()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise
        return Permit(self)

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[Permit]:
        """Acquire a permit for the duration of the ``async with`` block.

        The permit is released on every exit path, including errors raised by
        the guarded operation.
        """
        permit = await self.acquire()
        try:
            yield permit
        finally:
            permit.release()

    def _hand_off(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self._available += 1
