# site_mirror/render/session.py
"""
Rendering sessions: one headless browser with exactly one page.

:class:`RenderingSession` is the capability the crawler depends on; the
Playwright-backed implementation is the production one.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional, Protocol, runtime_checkable

from playwright.async_api import Browser, Error as PlaywrightError, Page, Playwright, async_playwright

from site_mirror.crawler.models import RenderedDocument
from site_mirror.errors import NavigationError, SessionStartError
from site_mirror.logger import get_logger

__all__ = ("RenderingSession", "PlaywrightSession", "BROWSER_ARGS", "LOAD_GRACE", "load_deadline")

log = get_logger("render")

#: extra time on top of navigation + settle before a hung session is abandoned
LOAD_GRACE = 5.0

BROWSER_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-extensions",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--disable-sync",
    "--disable-translate",
    "--hide-scrollbars",
    "--mute-audio",
    "--ignore-certificate-errors",
    "--disable-blink-features=AutomationControlled",
)


def load_deadline(navigation_timeout: float, settle_delay: float) -> float:
    """Hard upper bound for one `load` call, used with :func:`asyncio.wait_for`."""
    return navigation_timeout + settle_delay + LOAD_GRACE


@runtime_checkable
class RenderingSession(Protocol):
    """What the pool, the crawler and the persistence stage need from a browser."""

    name: str

    async def start(self) -> None: ...

    async def load(self, url: str, timeout: float) -> RenderedDocument: ...

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...

    async def reset(self) -> None: ...

    async def close(self) -> None: ...


class PlaywrightSession:
    """Chromium via Playwright: navigate, wait for network idle, then settle."""

    def __init__(
        self,
        name: str,
        *,
        headless: bool = True,
        user_agent: Optional[str] = None,
        settle_delay: float = 2.0,
    ) -> None:
        self.name = name
        self.headless = headless
        self.user_agent = user_agent
        self.settle_delay = settle_delay
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._page: Optional[Page] = None

    async def start(self) -> None:
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=list(BROWSER_ARGS),
                ignore_default_args=["--enable-automation"],
                timeout=60_000,
            )
            context = await self._browser.new_context(
                user_agent=self.user_agent,
                viewport={"width": 1920, "height": 1080},
                ignore_https_errors=True,
            )
            self._page = await context.new_page()
        except PlaywrightError as exc:
            await self.close()
            raise SessionStartError(f"{self.name}: {exc}") from exc
        log.debug("Session %s started", self.name)

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError(f"session {self.name} is not started")
        return self._page

    async def load(self, url: str, timeout: float) -> RenderedDocument:
        try:
            response = await self.page.goto(url, wait_until="networkidle", timeout=timeout * 1000)
        except PlaywrightError as exc:
            raise NavigationError(url, str(exc)) from exc
        status = response.status if response is not None else None
        if response is not None and not response.ok:
            raise NavigationError(url, f"HTTP {status}")
        if self.settle_delay:
            await asyncio.sleep(self.settle_delay)
        return RenderedDocument(url=self.page.url, content=await self.page.content(), status=status)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self.page.evaluate(script, arg)

    async def reset(self) -> None:
        if self._page is None or self._page.url == "about:blank":
            return
        try:
            await self._page.goto("about:blank", timeout=5_000)
        except PlaywrightError as exc:
            log.debug("Session %s: reset to about:blank failed: %s", self.name, exc)

    async def close(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as exc:
                log.debug("Session %s: browser close failed: %s", self.name, exc)
        if self._playwright is not None:
            await self._playwright.stop()
        self._browser = None
        self._page = None
        self._playwright = None
