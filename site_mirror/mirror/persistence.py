# site_mirror/mirror/persistence.py
"""
Persistence stage: re-render every visited page and download every asset,
then write them under the output directory through the path mapper and the
link rewriter.
"""
from __future__ import annotations

import asyncio
import json
import posixpath
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar, Union

from site_mirror.crawler.fetcher import AssetFetcher
from site_mirror.logger import get_logger
from site_mirror.mirror.path_mapper import asset_path, to_path
from site_mirror.mirror.rewriter import rewrite
from site_mirror.render.pool import SessionPool
from site_mirror.render.session import load_deadline
from site_mirror.utils import chunked, is_same_origin

__all__ = ("Storage", "PersistenceStage")

log = get_logger("persistence")

T = TypeVar("T")


class Storage:
    """Filesystem sink rooted at the output directory; paths are relative POSIX strings."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def resolve(self, rel_path: str) -> Path:
        return self.root.joinpath(*rel_path.split("/"))

    def ensure_directory(self, rel_path: str = "") -> Path:
        path = self.resolve(rel_path) if rel_path else self.root
        path.mkdir(parents=True, exist_ok=True)
        return path

    def exists(self, rel_path: str) -> bool:
        return self.resolve(rel_path).is_file()

    def write_bytes(self, rel_path: str, data: bytes) -> Path:
        path = self.resolve(rel_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def write_text(self, rel_path: str, text: str) -> Path:
        return self.write_bytes(rel_path, text.encode("utf-8"))

    def write_json(self, rel_path: str, data: Any) -> Path:
        return self.write_text(rel_path, json.dumps(data, ensure_ascii=False, indent=2))


def sidecar_path(page_path: str) -> str:
    """``about/index.html`` -> ``about/index.json``."""
    return posixpath.splitext(page_path)[0] + ".json"


class PersistenceStage:
    """Сохранение страниц и ресурсов батчами с ограниченной параллельностью."""

    def __init__(
        self,
        pool: SessionPool,
        storage: Storage,
        site_origin: str,
        fetcher: AssetFetcher,
        *,
        navigation_timeout: float = 30.0,
        settle_delay: float = 2.0,
        batch_size: Optional[int] = None,
        batch_delay: float = 0.5,
    ) -> None:
        self.pool = pool
        self.storage = storage
        self.site_origin = site_origin
        self.fetcher = fetcher
        self.navigation_timeout = navigation_timeout
        self.settle_delay = settle_delay
        self.batch_size = batch_size
        self.batch_delay = batch_delay

    # -- single units ------------------------------------------------------

    async def save_page(self, url: str, depth: Optional[int] = None) -> Optional[str]:
        """Render *url*, rewrite its links and write it with a metadata sidecar.

        Relative references resolve against the URL the browser ended on,
        which differs from *url* after a redirect (``/docs`` -> ``/docs/``).
        """
        hard_timeout = load_deadline(self.navigation_timeout, self.settle_delay)
        try:
            rel = to_path(url)
            async with self.pool.acquire() as session:
                doc = await asyncio.wait_for(session.load(url, self.navigation_timeout), timeout=hard_timeout)
            markup = rewrite(doc.content, self.site_origin, rel, page_url=doc.url or url)
            full_path = self.storage.write_text(rel, markup)
            self.storage.write_json(
                sidecar_path(rel),
                {
                    "url": url,
                    "depth": depth,
                    "savedAt": datetime.now(timezone.utc).isoformat(),
                    "filePath": str(full_path),
                },
            )
        except asyncio.TimeoutError:
            log.warning("Page save timed out: %s", url)
            return None
        except Exception as exc:
            log.warning("Page save failed (%s): %s", url, exc)
            return None
        log.debug("Saved page %s -> %s", url, rel)
        return rel

    async def save_asset(self, url: str) -> Optional[str]:
        """Download *url* unless its file already exists."""
        if not is_same_origin(url, self.site_origin):
            log.debug("Skipping cross-origin asset %s", url)
            return None
        try:
            rel = asset_path(url)
            if self.storage.exists(rel):
                log.debug("Asset already present: %s", rel)
                return rel
            data = await self.fetcher.fetch(url)
            if data is None:
                return None
            self.storage.write_bytes(rel, data)
        except Exception as exc:
            log.warning("Asset save failed (%s): %s", url, exc)
            return None
        log.debug("Saved asset %s -> %s", url, rel)
        return rel

    # -- batches -----------------------------------------------------------

    async def _run_batches(
        self, items: Sequence[T], unit: Callable[[T], Awaitable[Optional[str]]], label: str
    ) -> List[str]:
        saved: List[str] = []
        if not items:
            return saved
        size = self.batch_size or self.pool.capacity
        done = 0
        for index, batch in enumerate(chunked(items, size)):
            if index and self.batch_delay:
                await asyncio.sleep(self.batch_delay)
            results = await asyncio.gather(*(unit(item) for item in batch), return_exceptions=True)
            for item, result in zip(batch, results):
                if isinstance(result, BaseException):
                    log.warning("%s save failed (%s): %s", label, item, result)
                elif result:
                    saved.append(result)
            done += len(batch)
            log.info("%s: %d/%d (%d%%)", label, done, len(items), round(done / len(items) * 100))
        return saved

    async def save_pages(self, pages: Sequence[Tuple[str, Optional[int]]]) -> List[str]:
        """Save ``(url, depth)`` pairs; returns the relative paths that were written."""
        log.info("Saving %d pages", len(pages))
        saved = await self._run_batches(pages, lambda item: self.save_page(*item), "Pages")
        log.info("Pages saved: %d/%d", len(saved), len(pages))
        return saved

    async def save_assets(self, urls: Sequence[str]) -> List[str]:
        log.info("Saving %d assets", len(urls))
        saved = await self._run_batches(urls, self.save_asset, "Assets")
        log.info("Assets saved: %d/%d", len(saved), len(urls))
        return saved
