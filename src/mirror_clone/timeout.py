"""Deadline wrapper for awaitables."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from mirror_clone.exceptions import OperationTimeoutError

T = TypeVar("T")

DEFAULT_OBJECT_TIMEOUT = 60.0


async def with_timeout(aw: Awaitable[T], seconds: float, *, operation: str = "operation") -> T:
    """Await ``aw`` for at most ``seconds``.

    On overrun the wrapped operation is cancelled and awaited before
    ``OperationTimeoutError`` is raised, so nothing keeps running in the
    background. Errors raised by the operation itself pass through unchanged.
    """
    try:
        return await asyncio.wait_for(aw, timeout=seconds)
    except asyncio.TimeoutError as exc:
        raise OperationTimeoutError(
            f"{operation} timed out after {seconds:g}s",
            context={"operation": operation, "timeout_s": seconds},
        ) from exc
