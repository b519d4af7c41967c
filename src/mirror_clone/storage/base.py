"""Capability protocols for storage backends.

A backend implements whichever of these it supports; nothing inherits from
them. The transfer engine only relies on the methods being present.
"""

from __future__ import annotations

from typing import Protocol, TypeVar, runtime_checkable

from mirror_clone.config import SnapshotConfig
from mirror_clone.mission import Mission
from mirror_clone.snapshot import SnapshotPath

ItemOut = TypeVar("ItemOut", covariant=True)
ItemIn = TypeVar("ItemIn", contravariant=True)


@runtime_checkable
class SnapshotStorage(Protocol):
    async def snapshot(self, mission: Mission, config: SnapshotConfig) -> list[SnapshotPath]:
        """Enumerate every key currently exposed by the storage.

        Partial failures inside the scan are absorbed and logged; only
        failures that make the whole listing untrustworthy are raised.
        """
        ...

    def info(self) -> str:
        """Human-readable description of the backend for logging."""
        ...


@runtime_checkable
class SourceStorage(Protocol[ItemOut]):
    async def get_object(self, snapshot: SnapshotPath, mission: Mission) -> ItemOut:
        """Resolve a key to fetchable content; raises ``MirrorError`` on failure."""
        ...


@runtime_checkable
class TargetStorage(Protocol[ItemIn]):
    async def put_object(self, snapshot: SnapshotPath, item: ItemIn, mission: Mission) -> None:
        """Place content at a key; raises ``MirrorError`` on failure."""
        ...


@runtime_checkable
class SnapshotSource(SnapshotStorage, SourceStorage[ItemOut], Protocol[ItemOut]):
    """A storage that can be both scanned and read from."""


@runtime_checkable
class SnapshotTarget(SnapshotStorage, TargetStorage[ItemIn], Protocol[ItemIn]):
    """A storage that can be both scanned and written to."""
