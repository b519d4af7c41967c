"""Async subprocess helpers with guaranteed child termination."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Sequence

from mirror_clone.exceptions import ProcessError


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        return
    await proc.wait()


@contextlib.asynccontextmanager
async def spawn(cmd: Sequence[str]) -> AsyncIterator[asyncio.subprocess.Process]:
    """Start ``cmd`` with stdout piped; the child is killed on every exit path.

    Normal completion, an exception in the body and task cancellation all
    leave no running child behind.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise ProcessError(
            f"failed to spawn {cmd[0]}: {exc}", context={"cmd": list(cmd)}
        ) from exc
    try:
        yield proc
    finally:
        # Shield so a cancellation arriving here can't leave an orphan.
        await asyncio.shield(_terminate(proc))


async def run_cmd(cmd: Sequence[str]) -> str:
    """Run ``cmd`` to completion and return its stdout.

    Raises:
        ProcessError: If the command cannot start or exits non-zero.
    """
    async with spawn(cmd) as proc:
        stdout, _ = await proc.communicate()
    if proc.returncode != 0:
        raise ProcessError(
            f"{cmd[0]} exited with code {proc.returncode}",
            context={"cmd": list(cmd), "returncode": proc.returncode},
        )
    return stdout.decode("utf-8", errors="ignore")
