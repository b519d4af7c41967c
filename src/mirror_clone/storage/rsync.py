"""Rsync module source.

The snapshot comes from a recursive rsync listing. Each stdout line looks like

    -rw-r--r--      1,048,576 2021/03/14 15:09:26 path/to/file name.tar

and only regular files are kept. A listing that ends with a non-zero exit
status is rejected as a whole. Filenames are decoded with ``surrogateescape``
so names that are not UTF-8 still map back to the file on disk.
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses

from mirror_clone.config import SnapshotConfig
from mirror_clone.exceptions import ListingParseError, NotFoundError, ProcessError
from mirror_clone.mission import Mission
from mirror_clone.process import spawn
from mirror_clone.snapshot import SnapshotPath, TransferURL, snapshot_string_to_path

DEBUG_LINE_LIMIT = 1000
REGULAR_FILE_MARKER = "-"


def _split_field(rest: str, line: str) -> tuple[str, str]:
    head, sep, tail = rest.partition(" ")
    if not sep:
        raise ListingParseError(f"incomplete rsync line: {line!r}", context={"line": line})
    return head, tail.lstrip()


def parse_rsync_output(line: str) -> tuple[str, str, str, str, str]:
    """Split a listing line into ``(permission, size, date, time, file)``.

    The first four fields end at the next space; the file is the whole
    remainder, so embedded spaces survive.
    """
    permission, rest = _split_field(line, line)
    size, rest = _split_field(rest, line)
    date, rest = _split_field(rest, line)
    time, sep, file = rest.partition(" ")
    if not sep or not file:
        raise ListingParseError(f"incomplete rsync line: {line!r}", context={"line": line})
    return permission, size, date, time, file


@dataclasses.dataclass
class Rsync:
    base: str
    debug: bool = False
    command: tuple[str, ...] = ("rsync", "-r")

    @property
    def listing_base(self) -> str:
        """Base with a trailing slash, so rsync lists its contents rather than the directory itself."""
        return self.base if self.base.endswith("/") else f"{self.base}/"

    async def snapshot(self, mission: Mission, config: SnapshotConfig) -> list[SnapshotPath]:
        logger = mission.logger
        progress = mission.progress

        logger.info("running rsync...")
        snapshot: list[str] = []

        async with spawn([*self.command, self.listing_base]) as proc:
            assert proc.stdout is not None
            exit_task = asyncio.ensure_future(proc.wait())
            try:
                idx = 0
                async for raw in proc.stdout:
                    progress.inc(1)
                    idx += 1
                    if self.debug and idx > DEBUG_LINE_LIMIT:
                        logger.info("debug mode, stopping rsync after %d lines", DEBUG_LINE_LIMIT)
                        progress.finish("done")
                        return snapshot_string_to_path(snapshot)

                    line = raw.rstrip(b"\r\n").decode("utf-8", errors="surrogateescape")
                    try:
                        permission, _, _, _, file = parse_rsync_output(line)
                    except ListingParseError as exc:
                        logger.warning("skipping rsync output: %s", exc)
                        continue
                    progress.set_message(file)
                    if permission.startswith(REGULAR_FILE_MARKER):
                        snapshot.append(file)

                progress.set_message("waiting for rsync to exit")
                returncode = await exit_task
            finally:
                if not exit_task.done():
                    exit_task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await exit_task

        if returncode != 0:
            raise ProcessError(
                f"rsync exited with code {returncode}",
                context={"base": self.base, "returncode": returncode, "lines": idx},
            )

        progress.finish("done")
        return snapshot_string_to_path(snapshot)

    def info(self) -> str:
        return f"rsync, {self!r}"

    async def get_object(self, snapshot: SnapshotPath, mission: Mission) -> TransferURL:
        if not snapshot:
            raise NotFoundError("empty key", context={"base": self.base})
        return TransferURL(f"{self.base.rstrip('/')}/{snapshot}")
