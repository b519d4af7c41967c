"""Local directory storage.

Acts as a snapshot producer and a target. Objects are written to
``<key>.part`` first and renamed into place once complete, so a partially
transferred file never shows up in a later snapshot.
"""

from __future__ import annotations

import asyncio
import dataclasses
import os
from pathlib import Path

import httpx

from mirror_clone.config import SnapshotConfig
from mirror_clone.exceptions import TargetWriteError
from mirror_clone.mission import Mission
from mirror_clone.process import run_cmd
from mirror_clone.snapshot import SnapshotPath, TransferURL, snapshot_string_to_path

PART_SUFFIX = ".part"
CHUNK_SIZE = 1024 * 1024  # 1 MB chunks


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_join(root: Path, key: str) -> Path:
    """Join ``key`` under ``root``, refusing keys that escape it."""
    root = root.resolve()
    candidate = (root / key.lstrip("/")).resolve()
    if candidate != root and root not in candidate.parents:
        raise TargetWriteError(f"key escapes storage root: {key!r}", context={"key": key})
    return candidate


def list_files(root: Path) -> list[str]:
    if not root.is_dir():
        return []
    files: list[str] = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            if name.endswith(PART_SUFFIX):
                continue
            files.append(Path(dirpath, name).relative_to(root).as_posix())
    return files


@dataclasses.dataclass
class LocalDirectory:
    root: Path
    rsync_command: tuple[str, ...] = ("rsync", "-q")

    def __post_init__(self) -> None:
        self.root = Path(self.root).expanduser()

    async def snapshot(self, mission: Mission, config: SnapshotConfig) -> list[SnapshotPath]:
        mission.logger.info("scanning %s...", self.root)
        files = await asyncio.to_thread(list_files, self.root)
        mission.progress.inc(len(files))
        mission.progress.finish("done")
        return snapshot_string_to_path(files)

    def info(self) -> str:
        return f"local, {self!r}"

    async def put_object(
        self,
        snapshot: SnapshotPath,
        item: TransferURL | bytes,
        mission: Mission,
    ) -> None:
        dest = safe_join(self.root, snapshot)
        part = dest.with_name(dest.name + PART_SUFFIX)
        ensure_dir(part.parent)
        stored = False
        try:
            if isinstance(item, bytes):
                await asyncio.to_thread(part.write_bytes, item)
            elif item.startswith(("http://", "https://")):
                await self._download(mission.client, item, part)
            else:
                await run_cmd([*self.rsync_command, item, str(part)])
            os.replace(part, dest)
            stored = True
        except (httpx.HTTPError, OSError) as exc:
            raise TargetWriteError(
                f"failed to write {snapshot}: {exc!r}",
                context={"key": str(snapshot), "item": str(item)},
            ) from exc
        finally:
            # Also runs when a timeout cancels the write.
            if not stored:
                part.unlink(missing_ok=True)
        mission.logger.debug("stored %s", snapshot)

    @staticmethod
    async def _download(client: httpx.AsyncClient, url: str, part: Path) -> None:
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            with part.open("wb") as f:
                async for chunk in response.aiter_bytes(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
