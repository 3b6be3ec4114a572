# File: site_mirror/engine.py
"""site_mirror.engine: Orchestration layer: пул сессий, обход, сохранение и отчёт."""

from __future__ import annotations

import asyncio
import functools
from typing import Callable, Optional

from site_mirror.config import MirrorConfig, load_config
from site_mirror.crawler.crawler import MirrorCrawler, platform_batching
from site_mirror.crawler.fetcher import AssetFetcher
from site_mirror.logger import logger
from site_mirror.mirror.persistence import PersistenceStage, Storage
from site_mirror.render.pool import SessionFactory, SessionPool, effective_capacity
from site_mirror.render.session import PlaywrightSession, RenderingSession
from site_mirror.report import CrawlReport, build_report
from site_mirror.report.json_report import render_json

__all__ = ["Engine", "start_mirror", "playwright_factory"]


def _playwright_session(config: MirrorConfig, index: int) -> RenderingSession:
    return PlaywrightSession(
        f"browser-{index + 1}",
        headless=config.headless,
        user_agent=config.user_agent,
        settle_delay=config.settle_delay,
    )


def playwright_factory(config: MirrorConfig) -> SessionFactory:
    """Session factory producing Playwright browsers configured from *config*."""
    return functools.partial(_playwright_session, config)


async def start_mirror(
    config: MirrorConfig,
    *,
    session_factory: Optional[SessionFactory] = None,
    fetcher: Optional[AssetFetcher] = None,
    platform: Optional[str] = None,
) -> CrawlReport:
    """Полный прогон: обход в ширину, сохранение страниц и ресурсов, JSON-отчёт.

    Raises :class:`~site_mirror.errors.PoolExhaustedError` when no rendering
    session can be started; every other failure is confined to its URL.
    """
    factory = session_factory or playwright_factory(config)
    capacity = effective_capacity(config.max_concurrency, platform)
    pool = SessionPool(factory, capacity, init_retries=config.init_retries)
    fetcher = fetcher or AssetFetcher(
        timeout=config.asset_timeout,
        retry_times=config.retry_times,
        user_agent=config.user_agent,
    )
    storage = Storage(config.output_dir)
    storage.ensure_directory()

    logger.info("Mirroring %s -> %s", config.seed_url, config.output_dir)
    try:
        await pool.start()
        batch_size, batch_delay = platform_batching(pool.capacity, config.batch_delay, platform)

        crawler = MirrorCrawler(
            pool,
            config.seed_url,
            config.max_depth,
            prefix=config.prefix,
            navigation_timeout=config.navigation_timeout,
            settle_delay=config.settle_delay,
            batch_size=batch_size,
            batch_delay=batch_delay,
        )
        frontier = await crawler.crawl()
        visited, assets = frontier.get_all_urls()
        logger.info("Discovery finished: %d pages, %d assets", len(visited), len(assets))

        stage = PersistenceStage(
            pool,
            storage,
            crawler.site_origin,
            fetcher,
            navigation_timeout=config.navigation_timeout,
            settle_delay=config.settle_delay,
            batch_size=batch_size,
            batch_delay=batch_delay,
        )
        saved_pages = await stage.save_pages([(url, frontier.depth_of(url)) for url in visited])
        saved_assets = await stage.save_assets(assets)
    finally:
        await pool.close()
        await fetcher.close()

    report = build_report(
        base_url=config.seed_url,
        output_dir=config.output_dir,
        max_depth=config.max_depth,
        max_concurrency=config.max_concurrency,
        total_pages=len(visited),
        total_assets=len(assets),
        saved_pages=saved_pages,
        saved_assets=saved_assets,
    )
    report_path = render_json(report, config.output_dir)
    logger.info(
        "Saved %d/%d pages and %d/%d assets; report: %s",
        len(saved_pages), len(visited), len(saved_assets), len(assets), report_path,
    )
    return report


class Engine:
    """Фасад для CLI и тестов: загрузка конфига и синхронный запуск зеркалирования."""

    @staticmethod
    def load_config(path: Optional[str], **overrides) -> MirrorConfig:
        """Загружает конфиг из YAML/JSON; overrides имеют приоритет."""
        return load_config(path, **overrides)

    def __init__(
        self,
        config: MirrorConfig,
        session_factory: Optional[Callable[[int], RenderingSession]] = None,
    ) -> None:
        self.config = config
        self.session_factory = session_factory

    def run(self) -> CrawlReport:
        """Запускает asyncio-цикл и возвращает отчёт."""
        try:
            return asyncio.run(start_mirror(self.config, session_factory=self.session_factory))
        except Exception as exc:
            logger.error("Mirroring failed: %s", exc)
            raise
