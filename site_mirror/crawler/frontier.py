# site_mirror/crawler/frontier.py
"""
Shared crawl state: the depth-keyed URL queue, the visited set and the asset set.

Per URL the state machine is ``Unseen -> Queued(depth) -> Visited``.  A URL is
queued at most once, at the depth it was first seen, and never again once it
is visited; together with the depth bound this guarantees termination on
cyclic link graphs.  The orchestrator is the only writer.
"""
from __future__ import annotations

from collections import deque
from typing import Deque, Dict, List, Optional, Set, Tuple
from urllib.parse import urlsplit

from site_mirror.crawler.models import FrontierEntry
from site_mirror.logger import get_logger
from site_mirror.utils import normalize_url

__all__ = ("Frontier", "matches_prefix")

log = get_logger("frontier")


def matches_prefix(url: str, prefix: Optional[str]) -> bool:
    """Path-prefix filter: ``/docs`` admits ``/docs/...`` and any path containing ``docs``."""
    if not prefix:
        return True
    path = urlsplit(url).path
    return path.startswith(prefix) or prefix.lstrip("/") in path


class Frontier:
    """Очередь обхода, множество посещённых страниц и множество ресурсов."""

    def __init__(self, seed_url: str, max_depth: int, prefix: Optional[str] = None) -> None:
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        self.seed_url = normalize_url(seed_url)
        self.max_depth = max_depth
        self.prefix = prefix
        self._queue: Deque[FrontierEntry] = deque()
        self._queued: Set[str] = set()
        self._visited: Set[str] = set()
        self._assets: Set[str] = set()
        self._depths: Dict[str, int] = {}

    # -- transitions -------------------------------------------------------

    def initialize(self) -> None:
        """Reset the queue to the seed URL at depth 0."""
        self._queue.clear()
        self._queued.clear()
        self._queue.append(FrontierEntry(self.seed_url, 0))
        self._queued.add(self.seed_url)
        self._depths.setdefault(self.seed_url, 0)
        log.info("Frontier initialised with %s", self.seed_url)

    def add_to_queue(self, url: str, depth: int) -> bool:
        """Unseen -> Queued(depth). Returns False when the guard rejects the URL."""
        canonical = normalize_url(url)
        if depth > self.max_depth:
            return False
        if canonical in self._visited or canonical in self._queued:
            return False
        if not matches_prefix(canonical, self.prefix):
            log.debug("Excluded by prefix %s: %s", self.prefix, canonical)
            return False
        self._queue.append(FrontierEntry(canonical, depth))
        self._queued.add(canonical)
        self._depths.setdefault(canonical, depth)
        log.debug("Queued %s (depth %d)", canonical, depth)
        return True

    def mark_visited(self, url: str) -> None:
        canonical = normalize_url(url)
        self._visited.add(canonical)
        self._queued.discard(canonical)

    def add_asset(self, url: str) -> bool:
        canonical = normalize_url(url)
        if canonical in self._assets:
            return False
        self._assets.add(canonical)
        return True

    def pop_round(self, depth: int) -> List[FrontierEntry]:
        """Drain every queued entry of *depth*; entries of other depths stay queued."""
        current: List[FrontierEntry] = []
        others: List[FrontierEntry] = []
        while self._queue:
            entry = self._queue.popleft()
            if entry.depth == depth:
                current.append(entry)
            else:
                others.append(entry)
        self._queue.extend(others)
        return current

    # -- queries -----------------------------------------------------------

    def is_visited(self, url: str) -> bool:
        return normalize_url(url) in self._visited

    def depth_of(self, url: str) -> Optional[int]:
        """Depth at which *url* was first seen, if ever."""
        return self._depths.get(normalize_url(url))

    @property
    def visited_count(self) -> int:
        return len(self._visited)

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    @property
    def asset_count(self) -> int:
        return len(self._assets)

    def get_all_urls(self) -> Tuple[List[str], List[str]]:
        """Snapshot of (visited pages, assets), sorted for stable output."""
        return sorted(self._visited), sorted(self._assets)

    def status(self) -> Dict[str, int]:
        return {
            "visited": self.visited_count,
            "queued": self.queue_size,
            "assets": self.asset_count,
            "max_depth": self.max_depth,
        }
