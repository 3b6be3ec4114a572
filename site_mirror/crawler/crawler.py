# === FILE: site_mirror/crawler/crawler.py ===
from __future__ import annotations

import asyncio
import sys
import time
from typing import List, Optional, Sequence

from site_mirror.crawler.frontier import Frontier
from site_mirror.crawler.link_extractor import DISCOVERY_SCRIPT, extract_from_markup, filter_discovery
from site_mirror.crawler.models import ExtractionResult, FrontierEntry, RoundStats
from site_mirror.logger import get_logger
from site_mirror.render.pool import SessionPool
from site_mirror.render.session import load_deadline
from site_mirror.utils import chunked, origin_of

__all__ = ("MirrorCrawler", "platform_batching")


def platform_batching(capacity: int, delay: float, platform: Optional[str] = None) -> tuple[int, float]:
    """(batch size, pacing delay) adjusted for resource-constrained platforms."""
    if (platform or sys.platform) == "win32":
        return 1, max(delay, 3.0)
    return capacity, delay


class MirrorCrawler:
    """Обход в ширину с ограничением глубины и батчами через пул сессий."""

    def __init__(
        self,
        pool: SessionPool,
        seed_url: str,
        max_depth: int,
        *,
        prefix: Optional[str] = None,
        navigation_timeout: float = 30.0,
        settle_delay: float = 2.0,
        batch_size: Optional[int] = None,
        batch_delay: float = 0.5,
    ) -> None:
        self.pool = pool
        self.frontier = Frontier(seed_url, max_depth, prefix)
        self.site_origin = origin_of(self.frontier.seed_url)
        if self.site_origin is None:
            raise ValueError(f"seed URL has no origin: {seed_url!r}")
        self.max_depth = max_depth
        self.prefix = prefix
        self.navigation_timeout = navigation_timeout
        self.settle_delay = settle_delay
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.round_log: List[RoundStats] = []
        self.logger = get_logger("crawler")

    # -- discovery ---------------------------------------------------------

    async def discover(self, url: str) -> ExtractionResult:
        """Discovery pass for one URL; any failure yields an empty, failed result.

        Links come from :data:`DISCOVERY_SCRIPT` in the live DOM.  When the
        session cannot evaluate it, the rendered markup is parsed instead.
        """
        hard_timeout = load_deadline(self.navigation_timeout, self.settle_delay)
        try:
            async with self.pool.acquire() as session:
                doc = await asyncio.wait_for(session.load(url, self.navigation_timeout), timeout=hard_timeout)
                try:
                    raw = await asyncio.wait_for(session.evaluate(DISCOVERY_SCRIPT), timeout=hard_timeout)
                except Exception as exc:
                    self.logger.debug("Discovery script failed on %s (%s); parsing markup", url, exc)
                    raw = None
        except asyncio.TimeoutError:
            self.logger.warning("Discovery timed out: %s", url)
            return ExtractionResult.failed(url)
        except Exception as exc:
            self.logger.warning("Discovery failed for %s: %s", url, exc)
            return ExtractionResult.failed(url)

        if isinstance(raw, dict):
            result = filter_discovery(raw, url, self.site_origin, self.prefix)
        else:
            result = extract_from_markup(doc.content, doc.url or url, self.site_origin, self.prefix)
            result.url = url
        self.logger.debug("%s: %d links, %d assets", url, len(result.links), len(result.assets))
        return result

    def _batching(self) -> tuple[int, float]:
        return max(1, self.batch_size or self.pool.capacity), self.batch_delay

    async def _dispatch(self, entries: Sequence[FrontierEntry]) -> List[ExtractionResult]:
        size, delay = self._batching()
        results: List[ExtractionResult] = []
        done = 0
        for index, batch in enumerate(chunked(entries, size)):
            if index and delay:
                await asyncio.sleep(delay)
            outcomes = await asyncio.gather(*(self.discover(e.url) for e in batch), return_exceptions=True)
            for entry, outcome in zip(batch, outcomes):
                # visited regardless of outcome: guarantees forward progress
                self.frontier.mark_visited(entry.url)
                if isinstance(outcome, BaseException):
                    self.logger.warning("Discovery failed for %s: %s", entry.url, outcome)
                    results.append(ExtractionResult.failed(entry.url))
                else:
                    results.append(outcome)
            done += len(batch)
            self.logger.info("Progress: %d/%d (%d%%)", done, len(entries), round(done / len(entries) * 100))
        return results

    # -- traversal ---------------------------------------------------------

    async def crawl(self) -> Frontier:
        """Run the BFS to completion and return the final frontier."""
        self.logger.info(
            "Старт обхода: %s (глубина %d, сессий %d)", self.frontier.seed_url, self.max_depth, self.pool.capacity
        )
        start = time.monotonic()
        self.frontier.initialize()

        depth = 0
        while depth <= self.max_depth:
            entries = self.frontier.pop_round(depth)
            if not entries:
                self.logger.info("Depth %d: nothing left to process", depth)
                break

            self.logger.info("Depth %d: discovering %d URLs", depth, len(entries))
            results = await self._dispatch(entries)

            new_entries = new_assets = 0
            for result in results:
                for link in result.links:
                    if self.frontier.add_to_queue(link, depth + 1):
                        new_entries += 1
                for asset in result.assets:
                    if self.frontier.add_asset(asset):
                        new_assets += 1

            stats = RoundStats(
                depth=depth,
                dispatched=len(entries),
                failed=sum(1 for r in results if not r.ok),
                new_entries=new_entries,
                new_assets=new_assets,
            )
            self.round_log.append(stats)
            self.logger.info(
                "Depth %d done: %d failed, %d new URLs, %d new assets",
                depth, stats.failed, new_entries, new_assets,
            )

            depth += 1
            if new_entries == 0:
                break

        duration = time.monotonic() - start
        self.logger.info(
            "Завершено: %d страниц, %d ресурсов за %.2f с",
            self.frontier.visited_count, self.frontier.asset_count, duration,
        )
        return self.frontier
