# File: site_mirror/utils.py
"""site_mirror.utils: Утилиты для канонизации URL, проверки происхождения и разбиения на батчи."""

from __future__ import annotations

import hashlib
from typing import Iterator, List, Optional, Sequence, TypeVar
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from site_mirror.logger import get_logger

__all__: Sequence[str] = (
    "normalize_url",
    "origin_of",
    "is_same_origin",
    "is_http_url",
    "query_hash",
    "sort_query",
    "chunked",
)

_DEFAULT_PORTS = {"http": 80, "https": 443}
QUERY_HASH_LENGTH = 8

log = get_logger("utils")

T = TypeVar("T")


def sort_query(query: str) -> str:
    """Sort query pairs by key, then value; blank values are kept."""
    pairs = parse_qsl(query, keep_blank_values=True)
    pairs.sort()
    return urlencode(pairs)


def normalize_url(url: str) -> str:
    """Канонизирует URL: без фрагмента, с отсортированным query, без завершающего слеша.

    Некорректный URL возвращается без изменений.
    """
    try:
        parts = urlsplit(url.strip())
        # .port raises ValueError on a malformed port
        _ = parts.port
    except ValueError:
        log.debug("Malformed URL kept as-is: %s", url)
        return url
    if not parts.scheme or not parts.netloc:
        return url

    path = parts.path.rstrip("/") or "/"
    query = sort_query(parts.query) if parts.query else ""
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, query, ""))


def origin_of(url: str) -> Optional[str]:
    """Возвращает origin (scheme://host[:port]) или None для некорректного URL."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return None
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if not scheme or not host:
        return None
    if port is None or port == _DEFAULT_PORTS.get(scheme):
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def is_same_origin(url: str, other: str) -> bool:
    """Совпадают ли scheme, host и порт двух URL."""
    first = origin_of(url)
    return first is not None and first == origin_of(other)


def is_http_url(url: str) -> bool:
    return urlsplit(url).scheme.lower() in ("http", "https")


def query_hash(query: str) -> str:
    """Short fixed-width hash of an (already sorted) query string."""
    return hashlib.md5(query.encode("utf-8")).hexdigest()[:QUERY_HASH_LENGTH]


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Разбивает последовательность на батчи размером не больше *size*."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])
