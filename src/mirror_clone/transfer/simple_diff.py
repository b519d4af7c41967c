"""Simple diff transfer engine.

A run goes through these phases, never backwards:

    init -> snapshot -> plan -> transfer -> done
                \\
                 -> failed

Both storages are scanned concurrently; if either scan fails the run fails.
Snapshots are sorted off the event loop, turned into a transfer plan, and
each planned key is resolved on the source and placed on the target with a
bounded number of keys in flight. A key that fails or times out in either
step is logged and counted; it never stops the run.

Usage:
    from mirror_clone.config import TransferConfig
    from mirror_clone.storage.local import LocalDirectory
    from mirror_clone.storage.pypi import Pypi
    from mirror_clone.transfer import SimpleDiffTransfer

    engine = SimpleDiffTransfer(Pypi(), LocalDirectory("/srv/pypi"), TransferConfig())
    summary = asyncio.run(engine.transfer())
"""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import logging
from collections import Counter
from typing import Any, Generic, TypeVar

import httpx

from mirror_clone.concurrency import buffer_unordered
from mirror_clone.config import TransferConfig
from mirror_clone.exceptions import MirrorError
from mirror_clone.mission import Mission, Progress, build_client, new_mission
from mirror_clone.result import Err, Ok, Result
from mirror_clone.snapshot import SnapshotPath, log_snapshot_sample, sort_snapshot
from mirror_clone.storage.base import (
    SnapshotSource,
    SnapshotStorage,
    SnapshotTarget,
    SourceStorage,
    TargetStorage,
)
from mirror_clone.timeout import with_timeout
from mirror_clone.transfer.plan import build_transfer_plan

logger = logging.getLogger(__name__)

Item = TypeVar("Item")


class TransferState(str, enum.Enum):
    INIT = "init"
    SNAPSHOT = "snapshot"
    PLAN = "plan"
    TRANSFER = "transfer"
    DONE = "done"
    FAILED = "failed"


@dataclasses.dataclass
class TransferSummary:
    source_objects: int = 0
    target_objects: int = 0
    planned: int = 0
    transferred: int = 0
    failed: int = 0
    error_counts: Counter = dataclasses.field(default_factory=Counter)
    failed_keys: list[SnapshotPath] = dataclasses.field(default_factory=list)

    def record(self, outcome: Result) -> None:
        if outcome.is_ok:
            self.transferred += 1
            return
        self.failed += 1
        self.error_counts[outcome.error or "unknown"] += 1
        self.failed_keys.append(outcome.extras["key"])

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_objects": self.source_objects,
            "target_objects": self.target_objects,
            "planned": self.planned,
            "transferred": self.transferred,
            "failed": self.failed,
            "error_counts": dict(self.error_counts),
        }


def _error_code(exc: BaseException) -> str:
    return exc.code if isinstance(exc, MirrorError) else type(exc).__name__


def _check_capabilities(storage: Any, *capabilities: type, role: str) -> None:
    missing = [cap.__name__ for cap in capabilities if not isinstance(storage, cap)]
    if missing:
        raise TypeError(f"{role} storage {type(storage).__name__} lacks {', '.join(missing)}")


class SimpleDiffTransfer(Generic[Item]):
    def __init__(
        self,
        source: SnapshotSource[Item],
        target: SnapshotTarget[Item],
        config: TransferConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        _check_capabilities(source, SnapshotStorage, SourceStorage, role="source")
        _check_capabilities(target, SnapshotStorage, TargetStorage, role="target")
        self.source = source
        self.target = target
        self.config = config
        self.state = TransferState.INIT
        self._client = client

    async def transfer(self) -> TransferSummary:
        if self._client is not None:
            return await self._run(self._client)
        async with build_client() as client:
            return await self._run(client)

    async def _take_snapshots(
        self, client: httpx.AsyncClient
    ) -> tuple[list[SnapshotPath], list[SnapshotPath]]:
        cfg = self.config
        source_mission = new_mission(
            client,
            "snapshot.source",
            progress=Progress.create("[source]", enabled=cfg.progress, position=0),
        )
        target_mission = new_mission(
            client,
            "snapshot.target",
            progress=Progress.create("[target]", enabled=cfg.progress, position=1),
        )
        tasks = [
            asyncio.ensure_future(self.source.snapshot(source_mission, cfg.snapshot_config)),
            asyncio.ensure_future(self.target.snapshot(target_mission, cfg.snapshot_config)),
        ]
        try:
            source_snapshot, target_snapshot = await asyncio.gather(*tasks)
        except BaseException:
            # No diff is possible with one side missing; stop the other scan too.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return source_snapshot, target_snapshot

    async def _transfer_one(
        self,
        key: SnapshotPath,
        source_mission: Mission,
        target_mission: Mission,
        progress: Progress,
    ) -> Result:
        timeout = self.config.object_timeout
        progress.set_message(key)
        try:
            item = await with_timeout(
                self.source.get_object(key, source_mission), timeout, operation="get_object"
            )
        except Exception as exc:
            source_mission.logger.warning("failed to resolve %s: %r", key, exc)
            return Err(_error_code(exc), str(exc), key=key, phase="get_object")
        try:
            await with_timeout(
                self.target.put_object(key, item, target_mission), timeout, operation="put_object"
            )
        except Exception as exc:
            target_mission.logger.warning("error while transfer %s: %r", key, exc)
            return Err(_error_code(exc), str(exc), key=key, phase="put_object")
        return Ok(key=key)

    async def _run(self, client: httpx.AsyncClient) -> TransferSummary:
        cfg = self.config
        logger.info("using simple diff transfer, config %r", cfg)
        logger.info("begin transfer, source: %s, target: %s", self.source.info(), self.target.info())

        self.state = TransferState.SNAPSHOT
        logger.info("taking snapshot...")
        try:
            source_snapshot, target_snapshot = await self._take_snapshots(client)
        except BaseException:
            self.state = TransferState.FAILED
            raise

        summary = TransferSummary(
            source_objects=len(source_snapshot),
            target_objects=len(target_snapshot),
        )
        logger.info(
            "source %d objects, target %d objects",
            summary.source_objects,
            summary.target_objects,
        )
        log_snapshot_sample(logger, source_snapshot, cfg.debug_sample)
        log_snapshot_sample(logger, target_snapshot, cfg.debug_sample)

        self.state = TransferState.PLAN
        logger.info("generating transfer plan...")
        source_snapshot, target_snapshot = await asyncio.gather(
            sort_snapshot(source_snapshot), sort_snapshot(target_snapshot)
        )
        plan = build_transfer_plan(source_snapshot, target_snapshot, cfg.plan)
        summary.planned = len(plan)
        logger.info("%d objects planned (%s)", summary.planned, cfg.plan)

        self.state = TransferState.TRANSFER
        logger.info("mirror in progress...")
        progress = Progress.create("mirror", enabled=cfg.progress, total=len(plan))
        source_mission = new_mission(client, "mirror.source")
        target_mission = new_mission(client, "mirror.target")

        async for outcome in buffer_unordered(
            (self._transfer_one(key, source_mission, target_mission, progress) for key in plan),
            cfg.concurrent_transfer,
        ):
            progress.inc(1)
            summary.record(outcome)
        progress.finish("done")

        self.state = TransferState.DONE
        if summary.failed:
            logger.warning(
                "transfer complete, %d of %d objects failed: %s",
                summary.failed,
                summary.planned,
                dict(summary.error_counts),
            )
        else:
            logger.info("transfer complete, %d objects transferred", summary.transferred)
        return summary
