# site_mirror/mirror/path_mapper.py
"""
URL -> on-disk path mapping for the offline copy.

Pages use a directory scheme: ``/`` is ``index.html``, ``/about`` and
``/about/`` both become ``about/index.html``.  A query string is folded into
the filename as a fixed-width hash (``search/index-1a2b3c4d.html``) so that
distinct queries never overwrite each other.  All results are relative POSIX
paths without a leading slash.

Assets live under their own top-level directory (``_assets/static/site.css``)
so that an extensionless asset such as ``/about`` never takes the place of
the ``about/`` page directory, and no asset overwrites a page sidecar.
"""
from __future__ import annotations

import posixpath
from typing import List
from urllib.parse import unquote, urlsplit

from site_mirror.logger import get_logger
from site_mirror.utils import normalize_url, query_hash, sort_query

__all__ = ("ASSET_DIR", "DOC_EXT", "DOC_EXTENSIONS", "to_path", "asset_path", "relative_path")

DOC_EXT = "html"
DOC_EXTENSIONS = frozenset({".html", ".htm", ".xhtml", ".shtml", ".php", ".asp", ".aspx", ".jsp"})
INDEX_DOCUMENT = f"index.{DOC_EXT}"
ASSET_DIR = "_assets"

log = get_logger("paths")


def _segments(path: str) -> List[str]:
    # "." and ".." never leave the output directory
    return [seg for seg in path.split("/") if seg not in ("", ".", "..")]


def _splice_hash(rel: str, query: str) -> str:
    if not query:
        return rel
    head, name = posixpath.split(rel)
    stem, ext = posixpath.splitext(name)
    return posixpath.join(head, f"{stem}-{query_hash(sort_query(query))}{ext}")


def _unparsable(url: str, ext: str = "") -> str:
    log.debug("Unparsable URL mapped by hash: %s", url)
    return f"{query_hash(url)}{ext}"


def to_path(url: str) -> str:
    """Relative path of the saved document for page *url*.

    A URL that cannot be parsed still gets a stable name derived from its text.
    """
    try:
        parts = urlsplit(url)
    except ValueError:
        return _unparsable(url, f".{DOC_EXT}")
    path = unquote(parts.path) or "/"

    if path == "/":
        rel = INDEX_DOCUMENT
    else:
        ext = posixpath.splitext(posixpath.basename(path))[1].lower()
        if ext in DOC_EXTENSIONS:
            rel = path[: -len(ext)] + f".{DOC_EXT}"
        elif path.endswith("/"):
            rel = path + INDEX_DOCUMENT
        else:
            rel = f"{path}/{INDEX_DOCUMENT}"

    rel = "/".join(_segments(rel)) or INDEX_DOCUMENT
    return _splice_hash(rel, parts.query)


def asset_path(url: str) -> str:
    """Relative path of a static asset under :data:`ASSET_DIR`; keeps the server-side file name."""
    try:
        parts = urlsplit(normalize_url(url))
    except ValueError:
        return posixpath.join(ASSET_DIR, _unparsable(url))
    path = unquote(parts.path) or "/"
    if path.endswith("/"):
        path += "index"
    rel = "/".join(_segments(path)) or "index"
    return posixpath.join(ASSET_DIR, _splice_hash(rel, parts.query))


def relative_path(from_path: str, target_path: str) -> str:
    """Shortest relative link from the document at *from_path* to *target_path*.

    >>> relative_path("blog/index.html", "about/index.html")
    '../about/index.html'
    """
    from_dirs = _segments(from_path)[:-1]
    target = _segments(target_path)
    if not target:
        return "./"

    common = 0
    for a, b in zip(from_dirs, target[:-1]):
        if a != b:
            break
        common += 1

    up = [".."] * (len(from_dirs) - common)
    rel = "/".join(up + target[common:])
    return rel or "./"
