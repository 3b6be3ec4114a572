# File: tests/conftest.py
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Dict, List, Optional, Set
from urllib.parse import urljoin

import pytest
from aiohttp import web
from bs4 import BeautifulSoup

from site_mirror.config import MirrorConfig
from site_mirror.crawler.models import RenderedDocument
from site_mirror.errors import NavigationError, SessionStartError
from site_mirror.utils import normalize_url

ORIGIN = "https://example.com"


class FakeSite:
    """Synthetic site graph served to fake rendering sessions."""

    def __init__(self, pages: Dict[str, str], *, delay: float = 0.0) -> None:
        self.pages = {normalize_url(url): html for url, html in pages.items()}
        self.delay = delay
        self.failing: Set[str] = set()
        self.hanging: Set[str] = set()
        self.redirects: Dict[str, str] = {}
        self.scriptless = False
        self.loads: List[str] = []
        self.violations = 0
        self.active = 0
        self.max_active = 0

    def fail(self, url: str) -> None:
        self.failing.add(normalize_url(url))

    def hang(self, url: str) -> None:
        self.hanging.add(normalize_url(url))

    def redirect(self, url: str, final_url: str) -> None:
        """Serve the page of *url* as if the browser ended on *final_url*."""
        self.redirects[normalize_url(url)] = final_url


class FakeSession:
    """In-memory stand-in for a browser session."""

    def __init__(self, name: str, site: FakeSite, *, fail_start: bool = False) -> None:
        self.name = name
        self.site = site
        self.fail_start = fail_start
        self.start_calls = 0
        self.in_use = False
        self.resets = 0
        self.closed = False
        self._current: Optional[RenderedDocument] = None

    async def start(self) -> None:
        self.start_calls += 1
        if self.fail_start:
            raise SessionStartError(f"{self.name}: cannot launch")

    async def load(self, url: str, timeout: float) -> RenderedDocument:
        if self.in_use:
            self.site.violations += 1
        self.in_use = True
        self.site.loads.append(normalize_url(url))
        self.site.active += 1
        self.site.max_active = max(self.site.max_active, self.site.active)
        try:
            if normalize_url(url) in self.site.hanging:
                await asyncio.sleep(3600)
            await asyncio.sleep(self.site.delay)
        finally:
            self.site.active -= 1
        canonical = normalize_url(url)
        if canonical in self.site.failing:
            raise NavigationError(url, f"Timeout {int(timeout * 1000)}ms exceeded")
        if canonical not in self.site.pages:
            raise NavigationError(url, "HTTP 404")
        final_url = self.site.redirects.get(canonical, url)
        self._current = RenderedDocument(url=final_url, content=self.site.pages[canonical], status=200)
        return self._current

    async def evaluate(self, script: str, arg=None):
        if self.site.scriptless:
            raise RuntimeError("Execution context was destroyed")
        if self._current is None:
            raise RuntimeError("nothing loaded")
        soup = BeautifulSoup(self._current.content, "html.parser")
        base = self._current.url
        links = [urljoin(base, a["href"]) for a in soup.find_all("a", href=True)]
        assets = [urljoin(base, t["src"]) for t in soup.find_all(["img", "script"], src=True)]
        assets += [urljoin(base, t["href"]) for t in soup.find_all("link", href=True)]
        return {"links": links, "assets": assets}

    async def reset(self) -> None:
        self.resets += 1
        self.in_use = False
        self._current = None

    async def close(self) -> None:
        self.closed = True


class FakeFetcher:
    """Asset fetcher answering from a dict."""

    def __init__(self, assets: Dict[str, bytes]) -> None:
        self.assets = assets
        self.requested: List[str] = []
        self.closed = False

    async def fetch(self, url: str) -> Optional[bytes]:
        self.requested.append(url)
        return self.assets.get(url)

    async def close(self) -> None:
        self.closed = True


def session_factory(site: FakeSite, failing_slots=(), created: Optional[list] = None):
    def factory(index: int) -> FakeSession:
        session = FakeSession(f"fake-{index}", site, fail_start=index in failing_slots)
        if created is not None:
            created.append(session)
        return session

    return factory


async def serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


@pytest.fixture()
def chain_site() -> FakeSite:
    """``/`` -> ``/a`` -> ``/a/b`` plus one local and one foreign asset."""
    return FakeSite(
        {
            f"{ORIGIN}/": (
                '<html><head><link rel="stylesheet" href="/static/site.css"></head>'
                '<body><a href="/a">A</a><img src="https://cdn.other.net/logo.png"></body></html>'
            ),
            f"{ORIGIN}/a": '<html><body><a href="/a/b">B</a><a href="/">Home</a></body></html>',
            f"{ORIGIN}/a/b": (
                '<html><body><a href="https://other.org/elsewhere">out</a>'
                '<script src="/static/app.js"></script></body></html>'
            ),
        }
    )


@pytest.fixture()
def basic_config(tmp_path) -> MirrorConfig:
    """Return a fast MirrorConfig writing into a temporary directory."""
    return MirrorConfig(
        base_url=f"{ORIGIN}/",
        output_dir=tmp_path / "dist",
        max_depth=3,
        max_concurrency=2,
        settle_delay=0,
        batch_delay=0,
        navigation_timeout=1.0,
        init_retries=0,
    )
