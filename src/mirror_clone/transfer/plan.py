"""Transfer plan construction from sorted snapshots."""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from mirror_clone.config import PLAN_ALL, PLAN_DIFF
from mirror_clone.snapshot import SnapshotPath


def missing_keys(
    source: Sequence[SnapshotPath],
    target: Sequence[SnapshotPath],
) -> Iterator[SnapshotPath]:
    """Yield keys of ``source`` that are absent from ``target``.

    Both sequences must be sorted. Runs as a single merge walk, so it is
    linear in the combined size and preserves the source order.
    """
    j = 0
    n = len(target)
    for key in source:
        while j < n and target[j] < key:
            j += 1
        if j < n and target[j] == key:
            continue
        yield key


def build_transfer_plan(
    source: Sequence[SnapshotPath],
    target: Sequence[SnapshotPath],
    mode: str = PLAN_DIFF,
) -> list[SnapshotPath]:
    """Select the source keys to transfer.

    ``diff`` keeps only keys missing from the target; ``all`` re-transfers
    every source key.
    """
    if mode == PLAN_ALL:
        return list(source)
    if mode == PLAN_DIFF:
        return list(missing_keys(source, target))
    raise ValueError(f"Unknown plan mode '{mode}'. Available: {PLAN_ALL}, {PLAN_DIFF}")
