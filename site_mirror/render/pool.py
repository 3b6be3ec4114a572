# site_mirror/render/pool.py
"""
Fixed-capacity pool of rendering sessions.

Sessions are interchangeable: a unit of work waits on a semaphore sized to the
live capacity, then takes a uniformly random idle session.  The session goes
back to the idle set (after a reset to a blank page) on every exit path, so a
session that failed one URL keeps serving the next one.
"""
from __future__ import annotations

import asyncio
import random
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, List, Optional

from site_mirror.errors import PoolExhaustedError, SessionStartError
from site_mirror.logger import get_logger
from site_mirror.render.session import RenderingSession

__all__ = ("SessionFactory", "SessionPool", "effective_capacity")

log = get_logger("pool")

SessionFactory = Callable[[int], RenderingSession]

#: Browser instances are memory-hungry on Windows desktops.
WINDOWS_MAX_SESSIONS = 2


def effective_capacity(requested: int, platform: Optional[str] = None) -> int:
    platform = platform or sys.platform
    if platform == "win32":
        return max(1, min(requested, WINDOWS_MAX_SESSIONS))
    return max(1, requested)


class SessionPool:
    """Пул сессий рендеринга с ограниченной ёмкостью."""

    def __init__(
        self,
        factory: SessionFactory,
        capacity: int,
        *,
        init_retries: int = 2,
        retry_backoff: float = 1.0,
        rng: Optional[random.Random] = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._factory = factory
        self.requested = capacity
        self.init_retries = init_retries
        self.retry_backoff = retry_backoff
        self._rng = rng or random.Random()
        self._sessions: List[RenderingSession] = []
        self._idle: List[RenderingSession] = []
        self._lock = asyncio.Lock()
        self._semaphore: Optional[asyncio.Semaphore] = None

    @property
    def capacity(self) -> int:
        return len(self._sessions)

    @property
    def sessions(self) -> List[RenderingSession]:
        return list(self._sessions)

    async def _start_one(self, index: int) -> Optional[RenderingSession]:
        attempts = self.init_retries + 1
        for attempt in range(1, attempts + 1):
            session = self._factory(index)
            try:
                await session.start()
                return session
            except SessionStartError as exc:
                log.warning("Session %d failed to start (attempt %d/%d): %s", index, attempt, attempts, exc)
            except Exception as exc:
                log.warning("Session %d crashed while starting (attempt %d/%d): %r", index, attempt, attempts, exc)
                await self._discard(session)
            if attempt < attempts:
                await asyncio.sleep(min(self.retry_backoff * 2 ** (attempt - 1), 30))
        return None

    async def _discard(self, session: RenderingSession) -> None:
        try:
            await session.close()
        except Exception as exc:
            log.debug("Closing half-started session %s failed: %s", getattr(session, "name", "?"), exc)

    async def start(self) -> SessionPool:
        """Start all sessions; drop the ones that never start.

        Raises :class:`PoolExhaustedError` when not a single session is alive.
        """
        started = await asyncio.gather(*(self._start_one(i) for i in range(self.requested)))
        self._sessions = [s for s in started if s is not None]
        if not self._sessions:
            raise PoolExhaustedError(self.requested, self.init_retries + 1)
        if len(self._sessions) < self.requested:
            log.warning("Pool running with %d/%d sessions", len(self._sessions), self.requested)
        else:
            log.info("Pool ready: %d sessions", len(self._sessions))
        self._idle = list(self._sessions)
        self._semaphore = asyncio.Semaphore(len(self._sessions))
        return self

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[RenderingSession]:
        """Exclusive use of one random idle session for the duration of the block."""
        if self._semaphore is None:
            raise RuntimeError("pool is not started")
        async with self._semaphore:
            async with self._lock:
                session = self._rng.choice(self._idle)
                self._idle.remove(session)
            try:
                yield session
            finally:
                try:
                    await session.reset()
                finally:
                    async with self._lock:
                        self._idle.append(session)

    async def close(self) -> None:
        for session in self._sessions:
            try:
                await session.close()
            except Exception as exc:
                log.debug("Closing session %s failed: %s", getattr(session, "name", "?"), exc)
        self._sessions.clear()
        self._idle.clear()
        self._semaphore = None

    async def __aenter__(self) -> SessionPool:
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
