# File: site_mirror/report/__init__.py
"""site_mirror.report: Итоговый отчёт обхода и его сериализация (JSON и HTML)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Union

REPORT_FILENAME = "crawl-report.json"


@dataclass(slots=True)
class CrawlReport:
    """Audit record of one mirror run, produced once at the end."""

    base_url: str
    output_dir: str
    max_depth: int
    max_concurrency: int
    total_pages: int
    total_assets: int
    saved_pages: List[str] = field(default_factory=list)
    saved_assets: List[str] = field(default_factory=list)
    crawled_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Persisted schema of ``crawl-report.json``."""
        return {
            "baseUrl": self.base_url,
            "outputDir": self.output_dir,
            "maxDepth": self.max_depth,
            "maxConcurrency": self.max_concurrency,
            "crawledAt": self.crawled_at,
            "statistics": {
                "totalPages": self.total_pages,
                "totalAssets": self.total_assets,
                "savedPages": len(self.saved_pages),
                "savedAssets": len(self.saved_assets),
            },
            "savedPages": list(self.saved_pages),
            "savedAssets": list(self.saved_assets),
        }


def build_report(
    *,
    base_url: str,
    output_dir: Union[str, Path],
    max_depth: int,
    max_concurrency: int,
    total_pages: int,
    total_assets: int,
    saved_pages: List[str],
    saved_assets: List[str],
) -> CrawlReport:
    return CrawlReport(
        base_url=base_url,
        output_dir=str(output_dir),
        max_depth=max_depth,
        max_concurrency=max_concurrency,
        total_pages=total_pages,
        total_assets=total_assets,
        saved_pages=sorted(saved_pages),
        saved_assets=sorted(saved_assets),
    )


__all__ = ["CrawlReport", "build_report", "REPORT_FILENAME"]
