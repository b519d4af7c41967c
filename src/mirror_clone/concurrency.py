"""Bounded, unordered fan-out over coroutines."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Coroutine, Iterable
from typing import Any, TypeVar

T = TypeVar("T")


async def buffer_unordered(
    coros: Iterable[Coroutine[Any, Any, T]],
    limit: int,
) -> AsyncIterator[T]:
    """Run coroutines with at most ``limit`` in flight, yielding results as they finish.

    ``coros`` is consumed lazily: a new coroutine is pulled only when a slot
    frees up, so a generator over millions of keys never materialises more
    than ``limit`` tasks. Results arrive in completion order.

    The first exception raised by a coroutine propagates to the consumer and
    cancels everything still in flight. Callers that must not stop on one
    failure catch inside the coroutine.
    """
    limit = max(1, int(limit))
    pending_iter = iter(coros)
    in_flight: set[asyncio.Task[T]] = set()

    def submit_next() -> bool:
        try:
            coro = next(pending_iter)
        except StopIteration:
            return False
        in_flight.add(asyncio.ensure_future(coro))
        return True

    try:
        while len(in_flight) < limit and submit_next():
            continue
        while in_flight:
            done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                in_flight.discard(task)
                # Refill before handing control back to the consumer.
                while len(in_flight) < limit and submit_next():
                    continue
                yield task.result()
    finally:
        for task in in_flight:
            task.cancel()
        if in_flight:
            await asyncio.gather(*in_flight, return_exceptions=True)
        # Close coroutines that were never scheduled to avoid "never awaited" warnings.
        for coro in pending_iter:
            coro.close()
