from __future__ import annotations

from typing import Iterable, Sequence, TypeVar

T = TypeVar("T")

ISSUES_BATCH_SIZE = 10


def batch_items(items: Sequence[T], size: int = ISSUES_BATCH_SIZE) -> list[list[T]]:
    if size < 1:
        raise ValueError(f"Batch size must be at least 1, got {size}")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


def flatten_batches(batches: Iterable[Iterable[T]]) -> list[T]:
    flattened: list[T] = []
    for batch in batches:
        flattened.extend(batch)
    return flattened
