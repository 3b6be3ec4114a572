# site_mirror/crawler/fetcher.py
"""
Fetcher module: downloads static assets with retry/backoff and a per-request timeout.
"""
from __future__ import annotations

import asyncio
import random
from typing import Optional, Sequence

from aiohttp import ClientError, ClientSession, ClientTimeout

from site_mirror.logger import get_logger

__all__ = ("AssetFetcher",)

log = get_logger("fetcher")


class AssetFetcher:
    """Handles asset downloads with retries/backoff and timeout."""

    RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)

    def __init__(
        self,
        *,
        timeout: float = 15.0,
        retry_times: int = 3,
        backoff_factor: float = 1.0,
        user_agent: Optional[str] = None,
        session: Optional[ClientSession] = None,
    ) -> None:
        self.timeout = timeout
        self.retry_times = retry_times
        self.backoff_factor = backoff_factor
        self.user_agent = user_agent
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            headers = {"User-Agent": self.user_agent} if self.user_agent else None
            self._session = ClientSession(
                timeout=ClientTimeout(total=self.timeout),
                headers=headers,
                raise_for_status=False,
            )
            self._owns_session = True
        return self._session

    async def fetch(self, url: str) -> Optional[bytes]:
        """
        Download *url*.

        Returns the body on a 2xx answer, None on 4xx, timeout or exhausted retries.
        """
        session = await self._get_session()
        attempts = 0
        while True:
            try:
                async with session.get(url) as resp:
                    if resp.status in self.RETRY_STATUS:
                        raise ClientError(f"retryable status {resp.status}")
                    if resp.status >= 400:
                        log.warning("Asset %s -> HTTP %s", url, resp.status)
                        return None
                    return await resp.read()
            except asyncio.TimeoutError:
                # no retry on timeout
                log.warning("Asset %s timed out after %.1f s", url, self.timeout)
                return None
            except ClientError as exc:
                attempts += 1
                if attempts > self.retry_times:
                    log.warning("Failed %s: %s", url, exc)
                    return None
                backoff = min(60, self.backoff_factor * (2 ** attempts + random.random()))
                log.debug("Retry %d/%d for %s after %.2f s", attempts, self.retry_times, url, backoff)
                await asyncio.sleep(backoff)

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> AssetFetcher:
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
