"""Snapshot key types and helpers shared by storages and the transfer engine."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Iterable, Sequence


class SnapshotPath(str):
    """Canonical relative path identifying one object within a storage.

    Ordering and equality are those of the underlying string.
    """

    __slots__ = ()

    def __repr__(self) -> str:
        return f"SnapshotPath({str.__repr__(self)})"


class TransferURL(str):
    """Absolute, short-lived locator for an object's bytes."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"TransferURL({str.__repr__(self)})"


def snapshot_string_to_path(snapshot: Iterable[str]) -> list[SnapshotPath]:
    return [SnapshotPath(item) for item in snapshot]


async def sort_snapshot(snapshot: list[SnapshotPath]) -> list[SnapshotPath]:
    """Sort a snapshot in a worker thread so large scans don't stall the loop."""
    return await asyncio.to_thread(sorted, snapshot)


def sample_snapshot(snapshot: Sequence[SnapshotPath], k: int = 50) -> list[SnapshotPath]:
    if k <= 0 or not snapshot:
        return []
    return random.sample(list(snapshot), min(k, len(snapshot)))


def log_snapshot_sample(
    logger: logging.Logger | logging.LoggerAdapter,
    snapshot: Sequence[SnapshotPath],
    k: int = 50,
) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    for item in sample_snapshot(snapshot, k):
        logger.debug("%s", item)
