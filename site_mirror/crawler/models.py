# site_mirror/crawler/models.py
"""
Data models shared by the crawler, the rendering pool and the persistence stage.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True, slots=True)
class FrontierEntry:
    """A canonical URL waiting for its discovery pass at *depth*."""

    url: str
    depth: int


@dataclass(slots=True)
class RenderedDocument:
    """DOM content of a page after navigation and the settle delay."""

    url: str
    content: str
    status: Optional[int] = None


@dataclass(slots=True)
class ExtractionResult:
    """Outbound same-origin links and asset references of one page."""

    url: str
    links: List[str] = field(default_factory=list)
    assets: List[str] = field(default_factory=list)
    ok: bool = True

    @classmethod
    def failed(cls, url: str) -> ExtractionResult:
        return cls(url=url, ok=False)


@dataclass(frozen=True, slots=True)
class RoundStats:
    """Итоги одного BFS-раунда."""

    depth: int
    dispatched: int
    failed: int
    new_entries: int
    new_assets: int
