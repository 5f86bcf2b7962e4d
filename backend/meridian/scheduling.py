"""
Cooperative scheduling helpers.

Long passes (standardization, reconciliation) run in chunks on the event
loop. A chunk always runs to completion; the only suspension point is
yield_point() between chunks, which is also where cancellation is checked.
"""

import asyncio
from typing import Callable, Sequence, TypeVar

import structlog

from .config import (
    ADAPTIVE_CHUNK_ALL_BELOW,
    ADAPTIVE_CHUNK_SIZE_MAX,
    ADAPTIVE_CHUNK_SIZES,
)
from .errors import OperationCancelled

logger = structlog.get_logger("meridian.scheduling")

T = TypeVar("T")
R = TypeVar("R")

ProgressCallback = Callable[[int, int, float], None]


class CancellationToken:
    """
    Caller-owned flag used to abort a running operation.

    Checked only at chunk boundaries, so an in-flight chunk either
    completes or never starts.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled(self.reason or "cancelled")


async def yield_point(delay: float = 0.0) -> None:
    """Hand control back to the event loop."""
    await asyncio.sleep(delay)


def get_optimal_chunk_size(total_items: int) -> int:
    """
    Pick a chunk size that keeps each uninterrupted slice short.

    Small inputs run in one go; bigger inputs get progressively
    bigger slices so the number of yields stays bounded.
    """
    if total_items < ADAPTIVE_CHUNK_ALL_BELOW:
        return max(total_items, 1)
    for upper_bound, size in ADAPTIVE_CHUNK_SIZES:
        if total_items < upper_bound:
            return size
    return ADAPTIVE_CHUNK_SIZE_MAX


async def process_in_chunks(
    items: Sequence[T],
    processor: Callable[[T, int], R],
    chunk_size: int | None = None,
    delay: float = 0.0,
    on_progress: ProgressCallback | None = None,
    on_chunk_complete: Callable[[list[R], int], None] | None = None,
    cancel_token: CancellationToken | None = None,
) -> list[R]:
    """
    Apply processor to every item, yielding to the loop between chunks.

    Args:
        items: Items to process, in order
        processor: Called as processor(item, index)
        chunk_size: Items per uninterrupted slice (adaptive if None)
        delay: Seconds to sleep at each yield point
        on_progress: Called with (processed, total, percent) after each chunk
        on_chunk_complete: Called with (chunk_results, chunk_index)
        cancel_token: Checked before each chunk starts

    Returns:
        Results in input order
    """
    total = len(items)
    if total == 0:
        return []

    size = chunk_size or get_optimal_chunk_size(total)
    results: list[R] = []

    for chunk_index, start in enumerate(range(0, total, size)):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        end = min(start + size, total)
        chunk_results = [processor(items[i], i) for i in range(start, end)]
        results.extend(chunk_results)

        if on_chunk_complete:
            on_chunk_complete(chunk_results, chunk_index)
        if on_progress:
            on_progress(end, total, round(end / total * 100, 1))

        if end < total:
            await yield_point(delay)

    logger.debug("chunked_pass_complete", total=total, chunk_size=size)
    return results
