"""
Shared pytest fixtures for mirror-clone tests.

Provides common helpers for:
- Running coroutines against a mocked httpx client
- Building missions for storage calls
- Fake listing processes standing in for rsync
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import httpx
import pytest

SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if SRC_ROOT.is_dir():
    sys.path.insert(0, str(SRC_ROOT))

from mirror_clone.mission import Mission, Progress, build_client, new_mission  # noqa: E402

T = TypeVar("T")

Handler = Callable[[httpx.Request], Any]


def _unexpected_request(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request: {request.method} {request.url}")


# =============================================================================
# Async helpers
# =============================================================================


@pytest.fixture
def run_with_client() -> Callable[..., Any]:
    """Run ``fn(client)`` inside a fresh event loop with a mocked client."""

    def runner(fn: Callable[[httpx.AsyncClient], Awaitable[T]], handler: Handler | None = None) -> T:
        async def main() -> T:
            transport = httpx.MockTransport(handler or _unexpected_request)
            async with build_client(transport=transport) as client:
                return await fn(client)

        return asyncio.run(main())

    return runner


@pytest.fixture
def make_mission() -> Callable[..., Mission]:
    def factory(client: httpx.AsyncClient, task: str = "test", progress: Progress | None = None) -> Mission:
        return new_mission(client, task, progress=progress or Progress.hidden())

    return factory


# =============================================================================
# Fake listing process
# =============================================================================


def fake_listing_command(
    lines: list[str],
    *,
    exit_code: int = 0,
    sleep: float = 0.0,
) -> tuple[str, ...]:
    """Command that prints ``lines`` like ``rsync -r`` would, then exits."""
    script = (
        "import sys, time\n"
        f"for line in {lines!r}:\n"
        "    sys.stdout.write(line + '\\n')\n"
        "sys.stdout.flush()\n"
        f"time.sleep({sleep!r})\n"
        f"sys.exit({exit_code!r})\n"
    )
    return (sys.executable, "-c", script)


@pytest.fixture
def listing_command() -> Callable[..., tuple[str, ...]]:
    return fake_listing_command
