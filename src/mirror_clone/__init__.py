"""Mirror remote package indices and rsync trees into a target store."""

from mirror_clone.__version__ import __version__
from mirror_clone.config import SnapshotConfig, TransferConfig
from mirror_clone.mission import Mission, Progress
from mirror_clone.snapshot import SnapshotPath, TransferURL

__all__ = [
    "__version__",
    "Mission",
    "Progress",
    "SnapshotConfig",
    "SnapshotPath",
    "TransferConfig",
    "TransferURL",
]
