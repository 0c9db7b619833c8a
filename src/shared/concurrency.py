"""Bounded fan-out / fan-in for independent store calls."""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

T = TypeVar("T")


async def gather_bounded(
    calls: Iterable[Callable[[], Awaitable[T]]],
    limit: int,
) -> list[T | BaseException]:
    """Run ``calls`` with at most ``limit`` in flight; results keep input order.

    Exceptions are returned in place of results, so one failure never stops
    the others. Cancellation of the caller cancels every call still running.
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")
    semaphore = asyncio.Semaphore(limit)

    async def _one(call):
        async with semaphore:
            return await call()

    return await asyncio.gather(*(_one(call) for call in calls), return_exceptions=True)
