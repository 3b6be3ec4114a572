"""Исключения SiteMirror."""
from __future__ import annotations

__all__ = ["MirrorError", "SessionStartError", "PoolExhaustedError", "NavigationError"]


class MirrorError(Exception):
    """Base class for all SiteMirror errors."""


class SessionStartError(MirrorError):
    """A single rendering session could not be started."""


class PoolExhaustedError(MirrorError):
    """No rendering session could be started; the crawl cannot proceed."""

    def __init__(self, requested: int, attempts: int) -> None:
        super().__init__(
            f"none of {requested} rendering sessions started "
            f"(each tried {attempts} time(s)); check the browser installation"
        )
        self.requested = requested
        self.attempts = attempts


class NavigationError(MirrorError):
    """Page load failed or returned a non-OK status."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason
