"""Snapshot-diff transfer engine."""

from mirror_clone.transfer.plan import build_transfer_plan, missing_keys
from mirror_clone.transfer.simple_diff import SimpleDiffTransfer, TransferState, TransferSummary

__all__ = [
    "SimpleDiffTransfer",
    "TransferState",
    "TransferSummary",
    "build_transfer_plan",
    "missing_keys",
]
