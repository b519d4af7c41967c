"""Tests for mirror_clone.storage.local."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import httpx
import pytest

from mirror_clone.config import SnapshotConfig
from mirror_clone.exceptions import OperationTimeoutError, ProcessError, TargetWriteError
from mirror_clone.mission import Progress
from mirror_clone.snapshot import SnapshotPath, TransferURL
from mirror_clone.storage.local import LocalDirectory, list_files, safe_join
from mirror_clone.timeout import with_timeout

COPY_COMMAND = (
    sys.executable,
    "-c",
    "import shutil, sys; shutil.copyfile(sys.argv[1], sys.argv[2])",
)


def _populate(root: Path, files: dict[str, bytes]) -> None:
    for name, data in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)


class TestListFiles:
    def test_relative_posix_paths(self, tmp_path: Path) -> None:
        _populate(tmp_path, {"a.txt": b"a", "sub/dir/b.whl": b"b"})
        assert sorted(list_files(tmp_path)) == ["a.txt", "sub/dir/b.whl"]

    def test_skips_partial_files(self, tmp_path: Path) -> None:
        _populate(tmp_path, {"done.tar.gz": b"x", "pending.tar.gz.part": b"y"})
        assert list_files(tmp_path) == ["done.tar.gz"]

    def test_missing_root_is_empty(self, tmp_path: Path) -> None:
        assert list_files(tmp_path / "absent") == []


class TestSafeJoin:
    def test_nested_key(self, tmp_path: Path) -> None:
        assert safe_join(tmp_path, "ab/cd/f.whl") == tmp_path.resolve() / "ab/cd/f.whl"

    @pytest.mark.parametrize("key", ["../outside", "a/../../outside"])
    def test_escaping_key_is_rejected(self, tmp_path: Path, key: str) -> None:
        with pytest.raises(TargetWriteError):
            safe_join(tmp_path, key)


class TestLocalSnapshot:
    def test_snapshot_counts_progress(self, tmp_path: Path, run_with_client, make_mission) -> None:
        _populate(tmp_path, {"x/1": b"1", "x/2": b"2", "x/3.part": b"3"})
        progress = Progress.hidden()
        storage = LocalDirectory(tmp_path)

        async def scenario(client):
            return await storage.snapshot(make_mission(client, progress=progress), SnapshotConfig())

        snapshot = run_with_client(scenario)
        assert sorted(snapshot) == ["x/1", "x/2"]
        assert all(isinstance(key, SnapshotPath) for key in snapshot)
        assert progress.count == 2


class TestLocalPutObject:
    def test_put_bytes(self, tmp_path: Path, run_with_client, make_mission) -> None:
        storage = LocalDirectory(tmp_path)

        async def scenario(client):
            await storage.put_object(SnapshotPath("a/b.txt"), b"hello", make_mission(client))

        run_with_client(scenario)
        assert (tmp_path / "a/b.txt").read_bytes() == b"hello"
        assert not (tmp_path / "a/b.txt.part").exists()

    def test_put_http_url_streams_body(self, tmp_path: Path, run_with_client, make_mission) -> None:
        storage = LocalDirectory(tmp_path)
        body = b"x" * 4096

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/packages/ab/f.whl"
            return httpx.Response(200, content=body)

        async def scenario(client):
            url = TransferURL("https://mirror.test/packages/ab/f.whl")
            await storage.put_object(SnapshotPath("ab/f.whl"), url, make_mission(client))

        run_with_client(scenario, handler)
        assert (tmp_path / "ab/f.whl").read_bytes() == body

    def test_http_error_leaves_nothing_behind(self, tmp_path: Path, run_with_client, make_mission) -> None:
        storage = LocalDirectory(tmp_path)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        async def scenario(client):
            url = TransferURL("https://mirror.test/packages/gone.whl")
            await storage.put_object(SnapshotPath("gone.whl"), url, make_mission(client))

        with pytest.raises(TargetWriteError) as excinfo:
            run_with_client(scenario, handler)
        assert isinstance(excinfo.value.__cause__, httpx.HTTPStatusError)
        assert list(tmp_path.iterdir()) == []

    def test_put_copies_non_http_location(self, tmp_path: Path, run_with_client, make_mission) -> None:
        source = tmp_path / "upstream" / "pool" / "a.deb"
        _populate(tmp_path / "upstream", {"pool/a.deb": b"deb"})
        storage = LocalDirectory(tmp_path / "mirror", rsync_command=COPY_COMMAND)

        async def scenario(client):
            await storage.put_object(SnapshotPath("pool/a.deb"), TransferURL(str(source)), make_mission(client))

        run_with_client(scenario)
        assert (tmp_path / "mirror/pool/a.deb").read_bytes() == b"deb"

    def test_failed_copy_is_process_error(self, tmp_path: Path, run_with_client, make_mission) -> None:
        storage = LocalDirectory(tmp_path, rsync_command=COPY_COMMAND)

        async def scenario(client):
            missing = TransferURL(str(tmp_path / "no-such-file"))
            await storage.put_object(SnapshotPath("f"), missing, make_mission(client))

        with pytest.raises(ProcessError):
            run_with_client(scenario)
        assert not (tmp_path / "f.part").exists()

    def test_timed_out_download_removes_partial_file(self, tmp_path: Path, run_with_client, make_mission) -> None:
        storage = LocalDirectory(tmp_path)
        part = tmp_path / "ab" / "slow.whl.part"

        async def stalled_body():
            yield b"partial"
            await asyncio.sleep(10)
            yield b"rest"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=stalled_body())

        async def scenario(client):
            url = TransferURL("https://mirror.test/packages/ab/slow.whl")
            task = asyncio.ensure_future(
                with_timeout(
                    storage.put_object(SnapshotPath("ab/slow.whl"), url, make_mission(client)),
                    0.5,
                    operation="put_object",
                )
            )
            while not part.exists() and not task.done():
                await asyncio.sleep(0.01)
            seen_in_flight = part.exists()
            with pytest.raises(OperationTimeoutError):
                await task
            return seen_in_flight

        assert run_with_client(scenario, handler) is True
        assert not part.exists()
        assert not (tmp_path / "ab" / "slow.whl").exists()

    def test_escaping_key(self, tmp_path: Path, run_with_client, make_mission) -> None:
        storage = LocalDirectory(tmp_path / "root")

        async def scenario(client):
            await storage.put_object(SnapshotPath("../evil"), b"x", make_mission(client))

        with pytest.raises(TargetWriteError):
            run_with_client(scenario)
        assert not (tmp_path / "evil").exists()


def test_info_mentions_root(tmp_path: Path) -> None:
    assert str(tmp_path) in LocalDirectory(tmp_path).info()
