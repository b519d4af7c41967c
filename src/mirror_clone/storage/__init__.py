"""Storage backends and their capability protocols."""

from mirror_clone.storage.base import (
    SnapshotSource,
    SnapshotStorage,
    SnapshotTarget,
    SourceStorage,
    TargetStorage,
)
from mirror_clone.storage.registry import build_storage, list_storages

__all__ = [
    "SnapshotSource",
    "SnapshotStorage",
    "SnapshotTarget",
    "SourceStorage",
    "TargetStorage",
    "build_storage",
    "list_storages",
]
