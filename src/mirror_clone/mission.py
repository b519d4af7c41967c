"""Per-phase execution context: network client, progress reporter, task logger."""

from __future__ import annotations

import dataclasses
import logging
import os

import httpx
from tqdm import tqdm

from mirror_clone.__version__ import __version__ as VERSION
from mirror_clone.logging_config import TaskLoggerAdapter, task_logger

DEFAULT_SITE = "mirror.sjtu.edu.cn"
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 60.0


def build_user_agent(site: str | None = None, version: str = VERSION) -> str:
    """Identity sent with every request, e.g. ``mirror-clone / 0.1.0 (mirror.example.org)``."""
    site = site or os.environ.get("MIRROR_CLONE_SITE") or DEFAULT_SITE
    return f"mirror-clone / {version} ({site})"


def build_client(
    *,
    user_agent: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the shared async client. One client serves every mission of a run."""
    return httpx.AsyncClient(
        headers={"User-Agent": user_agent or build_user_agent()},
        timeout=httpx.Timeout(DEFAULT_READ_TIMEOUT, connect=DEFAULT_CONNECT_TIMEOUT),
        follow_redirects=True,
        transport=transport,
    )


class Progress:
    """Progress sink backed by tqdm; a hidden instance still counts."""

    def __init__(self, bar: tqdm | None = None) -> None:
        self._bar = bar
        self.count = 0
        self.length: int | None = None
        self.message = ""

    @classmethod
    def hidden(cls) -> Progress:
        return cls(None)

    @classmethod
    def create(
        cls,
        prefix: str,
        *,
        enabled: bool,
        total: int | None = None,
        position: int | None = None,
    ) -> Progress:
        if not enabled:
            progress = cls.hidden()
            progress.length = total
            return progress
        bar = tqdm(total=total, desc=prefix, position=position, leave=True, dynamic_ncols=True)
        progress = cls(bar)
        progress.length = total
        return progress

    def set_length(self, length: int) -> None:
        self.length = length
        if self._bar is not None:
            self._bar.reset(total=length)
            self._bar.update(self.count)

    def set_message(self, message: str) -> None:
        self.message = message
        if self._bar is not None:
            self._bar.set_postfix_str(message, refresh=False)

    def inc(self, n: int = 1) -> None:
        self.count += n
        if self._bar is not None:
            self._bar.update(n)

    def finish(self, message: str = "done") -> None:
        self.set_message(message)
        if self._bar is not None:
            self._bar.close()


@dataclasses.dataclass(frozen=True)
class Mission:
    client: httpx.AsyncClient
    progress: Progress
    logger: TaskLoggerAdapter


def new_mission(
    client: httpx.AsyncClient,
    task: str,
    *,
    progress: Progress | None = None,
    logger: str | logging.Logger = "mirror_clone",
) -> Mission:
    """Build a mission for one logical phase (e.g. ``snapshot.source``)."""
    return Mission(
        client=client,
        progress=progress or Progress.hidden(),
        logger=task_logger(logger, task),
    )
