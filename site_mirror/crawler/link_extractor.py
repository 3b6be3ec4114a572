# site_mirror/crawler/link_extractor.py
"""
Link and asset discovery for SiteMirror.

Discovery normally runs :data:`DISCOVERY_SCRIPT` inside the rendered DOM so
that client-side-rendered anchors are seen; :func:`extract_from_markup` is the
same protocol over static markup.
"""
from __future__ import annotations

from typing import Any, Iterable, List, Optional
from urllib.parse import urljoin, urldefrag

from bs4 import BeautifulSoup
from bs4.element import Tag
from site_mirror.crawler.frontier import matches_prefix
from site_mirror.crawler.models import ExtractionResult
from site_mirror.utils import is_http_url, is_same_origin

__all__ = ("DISCOVERY_SCRIPT", "ASSET_SELECTORS", "filter_discovery", "extract_from_markup")

#: CSS selector -> attribute holding an asset reference.
ASSET_SELECTORS = (
    ('link[rel="stylesheet"]', "href"),
    ("img[src]", "src"),
    ("script[src]", "src"),
    ('link[rel="preload"], link[rel="prefetch"]', "href"),
)

DISCOVERY_SCRIPT = """
() => {
    const links = new Set();
    const assets = new Set();
    document.querySelectorAll('a[href]').forEach(a => { if (a.href) links.add(a.href); });
    const selectors = [
        ['link[rel="stylesheet"]', 'href'],
        ['img[src]', 'src'],
        ['script[src]', 'src'],
        ['link[rel="preload"], link[rel="prefetch"]', 'href'],
    ];
    for (const [selector, attr] of selectors) {
        document.querySelectorAll(selector).forEach(el => {
            const raw = el.getAttribute(attr);
            if (!raw) return;
            try { assets.add(new URL(raw, document.baseURI).href); } catch (e) {}
        });
    }
    return { links: Array.from(links), assets: Array.from(assets) };
}
"""

_SKIP_SCHEMES = ("mailto:", "javascript:", "tel:", "data:")


def _clean(urls: Iterable[Any], site_origin: str) -> List[str]:
    seen: List[str] = []
    for raw in urls:
        if not isinstance(raw, str):
            continue
        url = urldefrag(raw.strip())[0]
        if not url or url.startswith(_SKIP_SCHEMES):
            continue
        if not is_http_url(url) or not is_same_origin(url, site_origin):
            continue
        if url not in seen:
            seen.append(url)
    return seen


def filter_discovery(
    raw: Any, page_url: str, site_origin: str, prefix: Optional[str] = None
) -> ExtractionResult:
    """Turn the script's ``{links, assets}`` payload into a same-origin :class:`ExtractionResult`."""
    if not isinstance(raw, dict):
        return ExtractionResult.failed(page_url)
    links = [u for u in _clean(raw.get("links") or [], site_origin) if matches_prefix(u, prefix)]
    assets = _clean(raw.get("assets") or [], site_origin)
    return ExtractionResult(url=page_url, links=links, assets=assets)


def extract_from_markup(
    markup: str, page_url: str, site_origin: str, prefix: Optional[str] = None
) -> ExtractionResult:
    """Static-markup equivalent of :data:`DISCOVERY_SCRIPT`."""
    soup = BeautifulSoup(markup, "html.parser")
    base = page_url
    base_tag = soup.find("base", href=True)
    if isinstance(base_tag, Tag):
        base = urljoin(page_url, str(base_tag["href"]))

    links: List[str] = []
    for tag in soup.find_all("a", href=True):
        if isinstance(tag, Tag):
            links.append(urljoin(base, str(tag["href"]).strip()))

    assets: List[str] = []
    for selector, attr in ASSET_SELECTORS:
        for tag in soup.select(selector):
            value = tag.get(attr)
            if isinstance(value, str) and value.strip():
                assets.append(urljoin(base, value.strip()))

    return filter_discovery({"links": links, "assets": assets}, page_url, site_origin, prefix)
