"""Bounded-concurrency helpers shared by ingestion and teardown.

Two primitives:

1. **throttled_gather** -- ``asyncio.gather`` with each awaitable wrapped in
   a semaphore acquire/release.  Results keep input order, which matters
   for chunk embeddings: result *i* must belong to chunk *i*.

2. **run_with_timeout** -- ``asyncio.wait_for`` that converts the stdlib
   ``TimeoutError`` into :class:`~src.utils.errors.OperationTimeoutError`
   so the API layer can map it onto a deadline-exceeded response.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Iterator, Sequence, TypeVar

import structlog

from src.utils.errors import OperationTimeoutError
from src.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    limit: int = 1,
    return_exceptions: bool = False,
) -> list[_T | BaseException]:
    """Run awaitables with at most *limit* in flight, preserving order.

    Parameters
    ----------
    coros:
        Awaitable objects to execute.
    limit:
        Maximum concurrent awaitables.  ``1`` degenerates to sequential
        execution.
    return_exceptions:
        Mirrors ``asyncio.gather``.  Defaults to ``False`` here: the first
        failure propagates and the caller aborts.

    Returns
    -------
    list
        Results in the same order as *coros*.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def run_with_timeout(
    awaitable: Awaitable[_T],
    timeout: float,
    operation: str,
) -> _T:
    """Await *awaitable*, raising ``OperationTimeoutError`` after *timeout* seconds."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        _logger.warning("operation_timeout", operation=operation, timeout_seconds=timeout)
        raise OperationTimeoutError(
            f"{operation} exceeded {timeout:.0f}s budget"
        ) from exc


def batched(items: Sequence[_T], size: int) -> Iterator[Sequence[_T]]:
    """Yield consecutive slices of *items* holding at most *size* elements."""
    if size <= 0:
        raise ValueError("batch size must be positive")
    for start in range(0, len(items), size):
        yield items[start : start + size]
