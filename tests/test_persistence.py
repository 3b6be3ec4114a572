# File: tests/test_persistence.py
from __future__ import annotations

import asyncio
import json

import pytest
import pytest_asyncio
from aiohttp import web
from bs4 import BeautifulSoup

from conftest import ORIGIN, FakeFetcher, FakeSite, serve_app, session_factory
import site_mirror.render.session as session_module
from site_mirror.crawler.fetcher import AssetFetcher
from site_mirror.mirror.persistence import PersistenceStage, Storage, sidecar_path
from site_mirror.render.pool import SessionPool


# --------------------------------------------------------------------------- #
#                                 Asset fetcher                                #
# --------------------------------------------------------------------------- #


@pytest_asyncio.fixture()
async def asset_server(unused_tcp_port):
    """Small server: one good asset, one flaky (500 twice), one missing."""
    hits = {"flaky": 0, "broken": 0}

    async def good(request):
        return web.Response(body=b"body{}", content_type="text/css")

    async def flaky(request):
        hits["flaky"] += 1
        if hits["flaky"] <= 2:
            return web.Response(status=500)
        return web.Response(body=b"ok")

    async def broken(request):
        hits["broken"] += 1
        return web.Response(status=503)

    app = web.Application()
    app.router.add_get("/site.css", good)
    app.router.add_get("/flaky.js", flaky)
    app.router.add_get("/broken.js", broken)

    async for base in serve_app(app, unused_tcp_port):
        yield base, hits


@pytest.mark.asyncio()
async def test_fetch_ok(asset_server):
    base, _ = asset_server
    async with AssetFetcher(timeout=5, retry_times=0) as fetcher:
        assert await fetcher.fetch(f"{base}/site.css") == b"body{}"


@pytest.mark.asyncio()
async def test_fetch_missing_returns_none(asset_server):
    base, _ = asset_server
    async with AssetFetcher(timeout=5, retry_times=2, backoff_factor=0) as fetcher:
        assert await fetcher.fetch(f"{base}/nope.png") is None


@pytest.mark.asyncio()
async def test_fetch_retries_server_errors(asset_server):
    base, hits = asset_server
    async with AssetFetcher(timeout=5, retry_times=3, backoff_factor=0) as fetcher:
        assert await fetcher.fetch(f"{base}/flaky.js") == b"ok"
    assert hits["flaky"] == 3


@pytest.mark.asyncio()
async def test_fetch_gives_up_after_retries(asset_server):
    base, hits = asset_server
    async with AssetFetcher(timeout=5, retry_times=2, backoff_factor=0) as fetcher:
        assert await fetcher.fetch(f"{base}/broken.js") is None
    assert hits["broken"] == 3


# --------------------------------------------------------------------------- #
#                               Persistence stage                              #
# --------------------------------------------------------------------------- #


def test_storage_paths(tmp_path):
    storage = Storage(tmp_path)
    storage.write_text("a/b/index.html", "<p>x</p>")
    assert (tmp_path / "a" / "b" / "index.html").read_text(encoding="utf-8") == "<p>x</p>"
    assert storage.exists("a/b/index.html")
    assert not storage.exists("a/b")
    assert sidecar_path("a/b/index.html") == "a/b/index.json"


@pytest.mark.asyncio()
async def test_save_page_writes_rewritten_copy_and_sidecar(tmp_path):
    site = FakeSite({f"{ORIGIN}/blog": '<a href="/about">About</a><img src="/img/x.png">'})
    storage = Storage(tmp_path)
    async with SessionPool(session_factory(site), 1, init_retries=0) as pool:
        stage = PersistenceStage(pool, storage, ORIGIN, FakeFetcher({}), batch_delay=0)
        rel = await stage.save_page(f"{ORIGIN}/blog", 1)

    assert rel == "blog/index.html"
    soup = BeautifulSoup((tmp_path / "blog" / "index.html").read_text(encoding="utf-8"), "html.parser")
    assert soup.a["href"] == "../about/index.html"
    assert soup.img["src"] == "../_assets/img/x.png"

    meta = json.loads((tmp_path / "blog" / "index.json").read_text(encoding="utf-8"))
    assert meta["url"] == f"{ORIGIN}/blog"
    assert meta["depth"] == 1
    assert meta["filePath"].endswith("index.html")
    assert "savedAt" in meta


@pytest.mark.asyncio()
async def test_failed_pages_are_left_out(tmp_path):
    site = FakeSite({f"{ORIGIN}/": "<p>root</p>", f"{ORIGIN}/ok": "<p>ok</p>"})
    site.fail(f"{ORIGIN}/ok")
    async with SessionPool(session_factory(site), 2, init_retries=0) as pool:
        stage = PersistenceStage(pool, Storage(tmp_path), ORIGIN, FakeFetcher({}), batch_delay=0)
        saved = await stage.save_pages([(f"{ORIGIN}/", 0), (f"{ORIGIN}/ok", 1), (f"{ORIGIN}/gone", 1)])

    assert saved == ["index.html"]
    assert not (tmp_path / "ok").exists()


@pytest.mark.asyncio()
async def test_assets_saved_once_and_foreign_skipped(tmp_path):
    css = f"{ORIGIN}/static/site.css"
    fetcher = FakeFetcher({css: b"body{}"})
    (tmp_path / "_assets" / "static").mkdir(parents=True)
    (tmp_path / "_assets" / "static" / "old.js").write_bytes(b"cached")

    async with SessionPool(session_factory(FakeSite({})), 1, init_retries=0) as pool:
        stage = PersistenceStage(pool, Storage(tmp_path), ORIGIN, fetcher, batch_delay=0)
        saved = await stage.save_assets(
            [css, f"{ORIGIN}/static/old.js", "https://cdn.other.net/logo.png", f"{ORIGIN}/missing.png"]
        )

    assert sorted(saved) == ["_assets/static/old.js", "_assets/static/site.css"]
    assert (tmp_path / "_assets" / "static" / "site.css").read_bytes() == b"body{}"
    assert (tmp_path / "_assets" / "static" / "old.js").read_bytes() == b"cached"
    assert fetcher.requested == [css, f"{ORIGIN}/missing.png"]


@pytest.mark.asyncio()
async def test_redirected_page_links_resolve_against_final_url(tmp_path):
    site = FakeSite({f"{ORIGIN}/docs": '<a href="intro">Intro</a><a href="../blog">Blog</a>'})
    site.redirect(f"{ORIGIN}/docs", f"{ORIGIN}/docs/")
    async with SessionPool(session_factory(site), 1, init_retries=0) as pool:
        stage = PersistenceStage(pool, Storage(tmp_path), ORIGIN, FakeFetcher({}), batch_delay=0)
        rel = await stage.save_page(f"{ORIGIN}/docs", 1)

    assert rel == "docs/index.html"
    soup = BeautifulSoup((tmp_path / "docs" / "index.html").read_text(encoding="utf-8"), "html.parser")
    hrefs = [a["href"] for a in soup.find_all("a")]
    assert hrefs == ["intro/index.html", "../blog/index.html"]


@pytest.mark.asyncio()
async def test_hung_page_does_not_block_the_batch(tmp_path, monkeypatch):
    monkeypatch.setattr(session_module, "LOAD_GRACE", 0.05)
    site = FakeSite({f"{ORIGIN}/": "<p>root</p>", f"{ORIGIN}/h": "<p>h</p>"})
    site.hang(f"{ORIGIN}/h")
    async with SessionPool(session_factory(site), 2, init_retries=0) as pool:
        stage = PersistenceStage(
            pool, Storage(tmp_path), ORIGIN, FakeFetcher({}),
            navigation_timeout=0.05, settle_delay=0, batch_delay=0,
        )
        saved = await asyncio.wait_for(stage.save_pages([(f"{ORIGIN}/", 0), (f"{ORIGIN}/h", 1)]), timeout=5)

    assert saved == ["index.html"]
    assert not (tmp_path / "h").exists()
