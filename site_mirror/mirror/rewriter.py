# site_mirror/mirror/rewriter.py
"""
Rewrites same-origin references in saved markup into paths relative to the
page's own location on disk.

The markup is parsed into a tree with BeautifulSoup; only attributes that the
discovery pass also follows are touched, so every rewritten reference points
at a file the persistence stage writes.  Cross-origin references and
non-navigational schemes are left as they are.

Apply exactly once to raw fetched markup: already-relative output is resolved
against the page URL again on a second pass and would be rewritten twice.
"""
from __future__ import annotations

from typing import Callable, Iterable, Optional, Tuple
from urllib.parse import urldefrag, urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_mirror.logger import get_logger
from site_mirror.mirror.path_mapper import asset_path, relative_path, to_path
from site_mirror.utils import is_http_url, is_same_origin

__all__ = ("rewrite", "rewrite_reference", "REWRITE_RULES")

log = get_logger("rewriter")

PathFn = Callable[[str], str]

#: tag name, attribute, required rel values (None = any), target mapping.
REWRITE_RULES: Tuple[Tuple[str, str, Optional[frozenset], PathFn], ...] = (
    ("a", "href", None, to_path),
    ("link", "href", frozenset({"stylesheet", "preload", "prefetch"}), asset_path),
    ("img", "src", None, asset_path),
    ("script", "src", None, asset_path),
)

_UNTOUCHED_PREFIXES = ("#", "mailto:", "tel:", "javascript:", "data:", "blob:", "about:")


def rewrite_reference(
    value: str,
    *,
    base_url: str,
    site_origin: str,
    current_page_path: str,
    path_fn: PathFn,
) -> Optional[str]:
    """Relative replacement for one attribute value, or None to keep it."""
    raw = value.strip()
    if not raw or raw.lower().startswith(_UNTOUCHED_PREFIXES):
        return None
    try:
        absolute = urljoin(base_url, raw)
    except ValueError as exc:
        log.debug("Cannot resolve %s: %s", raw, exc)
        return None
    if not is_http_url(absolute) or not is_same_origin(absolute, site_origin):
        return None
    target, fragment = urldefrag(absolute)
    local = relative_path(current_page_path, path_fn(target))
    return f"{local}#{fragment}" if fragment else local


def _rel_values(tag: Tag) -> frozenset:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return frozenset(r.lower() for r in rel)


def _matching(soup: BeautifulSoup, name: str, attr: str, rels: Optional[frozenset]) -> Iterable[Tag]:
    for tag in soup.find_all(name, attrs={attr: True}):
        if not isinstance(tag, Tag):
            continue
        if rels is not None and not (_rel_values(tag) & rels):
            continue
        yield tag


def rewrite(
    markup: str,
    site_origin: str,
    current_page_path: str,
    page_url: Optional[str] = None,
) -> str:
    """Return *markup* with same-origin references made relative to *current_page_path*.

    Relative references resolve against *page_url* (or a ``<base href>``),
    falling back to *site_origin*.
    """
    soup = BeautifulSoup(markup, "html.parser")
    base_url = page_url or site_origin
    base_tag = soup.find("base", href=True)
    if isinstance(base_tag, Tag):
        base_url = urljoin(base_url, str(base_tag["href"]))
        # a surviving <base> would re-anchor every rewritten relative link
        base_tag.decompose()

    rewritten = 0
    for name, attr, rels, path_fn in REWRITE_RULES:
        for tag in _matching(soup, name, attr, rels):
            new_value = rewrite_reference(
                str(tag[attr]),
                base_url=base_url,
                site_origin=site_origin,
                current_page_path=current_page_path,
                path_fn=path_fn,
            )
            if new_value is not None:
                tag[attr] = new_value
                rewritten += 1

    log.debug("Rewrote %d references in %s", rewritten, current_page_path)
    return str(soup)
