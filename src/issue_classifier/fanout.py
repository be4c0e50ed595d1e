from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

from issue_classifier.semaphore import CountingSemaphore

T = TypeVar("T")
R = TypeVar("R")


async def gather_bounded(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    semaphore: CountingSemaphore,
) -> list[R]:
    """Run ``worker`` on every item at once, at most ``max_permits`` inside it.

    Results keep the order of ``items``. The first exception is re-raised;
    siblings already running are left to finish on their own.
    """

    async def _run_one(item: T) -> R:
        async with semaphore.hold():
            return await worker(item)

    return list(await asyncio.gather(*[_run_one(item) for item in items]))


def run_with_semaphore(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    max_concurrent: int,
    label: Optional[str] = None,
) -> list[R]:
    async def _run() -> list[R]:
        semaphore = CountingSemaphore(max_concurrent, label)
        return await gather_bounded(items, worker, semaphore)

    return asyncio.run(_run())
