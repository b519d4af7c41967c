"""PyPI simple-index source.

The snapshot is taken in two levels: the root simple index lists every
project, and each project's index lists its distribution files. Project pages
are fetched concurrently, bounded by ``SnapshotConfig.concurrent_resolve``.

Links on project pages usually carry a checksum fragment
(``#sha256=...``); it is stripped so that keys stay stable across scans.
Keys are paths relative to ``package_base``.
"""

from __future__ import annotations

import dataclasses
import re
from urllib.parse import urljoin, urlsplit, urlunsplit

import httpx

from mirror_clone.concurrency import buffer_unordered
from mirror_clone.config import SnapshotConfig
from mirror_clone.exceptions import NotFoundError, TransportError
from mirror_clone.mission import Mission
from mirror_clone.snapshot import SnapshotPath, TransferURL, snapshot_string_to_path

DEFAULT_SIMPLE_BASE = "https://nanomirrors.tuna.tsinghua.edu.cn/pypi/web/simple"
DEFAULT_PACKAGE_BASE = "https://nanomirrors.tuna.tsinghua.edu.cn/pypi/web/packages"
DEBUG_PACKAGE_LIMIT = 1000

ANCHOR_RE = re.compile(r'<a\s[^>]*?href="([^"]*)"[^>]*>(.*?)</a>')


def extract_links(html: str) -> list[tuple[str, str]]:
    """Return every ``(href, text)`` pair of the anchors in ``html``, in page order."""
    return [(m.group(1), m.group(2)) for m in ANCHOR_RE.finditer(html)]


def canonicalize_url(link: str, base: str | None = None) -> str:
    """Resolve ``link`` against ``base`` and drop its query and fragment."""
    url = urljoin(base, link) if base else link
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def _with_trailing_slash(url: str) -> str:
    return url if url.endswith("/") else f"{url}/"


async def fetch_text(client: httpx.AsyncClient, url: str) -> str:
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise TransportError(f"GET {url} failed: {exc!r}", context={"url": url}) from exc
    return response.text


@dataclasses.dataclass
class Pypi:
    simple_base: str = DEFAULT_SIMPLE_BASE
    package_base: str = DEFAULT_PACKAGE_BASE
    # Only the first DEBUG_PACKAGE_LIMIT projects are crawled. Never combine
    # with deletion on a production target.
    debug: bool = False

    async def _fetch_package(self, mission: Mission, url: str, name: str) -> list[str]:
        package_url = urljoin(_with_trailing_slash(self.simple_base), url)
        mission.progress.set_message(name)
        try:
            page = await fetch_text(mission.client, package_url)
            return [canonicalize_url(href, package_url) for href, _ in extract_links(page)]
        except Exception as exc:
            mission.logger.warning("failed to fetch index %s: %r", package_url, exc)
            return []
        finally:
            mission.progress.inc(1)

    async def snapshot(self, mission: Mission, config: SnapshotConfig) -> list[SnapshotPath]:
        logger = mission.logger
        progress = mission.progress

        logger.info("downloading pypi index...")
        index = await fetch_text(mission.client, _with_trailing_slash(self.simple_base))

        logger.info("parsing index...")
        packages = extract_links(index)
        if self.debug:
            packages = packages[:DEBUG_PACKAGE_LIMIT]

        logger.info("downloading package index...")
        progress.set_length(len(packages))

        urls: list[str] = []
        async for links in buffer_unordered(
            (self._fetch_package(mission, url, name) for url, name in packages),
            config.concurrent_resolve,
        ):
            urls.extend(links)

        package_base = _with_trailing_slash(self.package_base)
        snapshot: list[str] = []
        for url in urls:
            if not url.startswith(package_base):
                logger.warning("PyPI package isn't stored on base: %s", url)
                continue
            key = url[len(package_base):]
            # The base itself or a directory under it names no file.
            if not key or key.endswith("/"):
                logger.warning("skipping link without a file name: %s", url)
                continue
            snapshot.append(key)

        progress.finish("done")
        logger.info("%d packages, %d objects", len(packages), len(snapshot))
        return snapshot_string_to_path(snapshot)

    def info(self) -> str:
        return f"pypi, {self!r}"

    async def get_object(self, snapshot: SnapshotPath, mission: Mission) -> TransferURL:
        if not snapshot:
            raise NotFoundError("empty key", context={"base": self.package_base})
        return TransferURL(f"{_with_trailing_slash(self.package_base)}{snapshot}")
