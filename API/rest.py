# ============================================================
# FILE: API/rest.py
# ROLE: Shared public REST JSON client (aiohttp session pooling + retries).
# ============================================================

from __future__ import annotations

import asyncio
from typing import Any, Optional

import aiohttp

from CORE.feeds import FeedContext, PollFeed


class RestJson:
    """Public GET-only JSON client for one venue base URL.

    Uses a shared aiohttp.ClientSession (connection pooling), recreated lazily
    if it was closed underneath us. Raises RuntimeError once retries are exhausted.
    """

    def __init__(self, base_url: str, *, venue: str, timeout_sec: float = 10.0, retries: int = 2):
        self.base_url = base_url.rstrip("/")
        self.venue = venue
        self._timeout = aiohttp.ClientTimeout(total=float(timeout_sec))
        self._retries = max(1, int(retries))
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None and not self._session.closed:
            return self._session
        async with self._session_lock:
            if self._session is not None and not self._session.closed:
                return self._session
            connector = aiohttp.TCPConnector(limit=20, ttl_dns_cache=300, enable_cleanup_closed=True)
            self._session = aiohttp.ClientSession(timeout=self._timeout, connector=connector)
            return self._session

    async def aclose(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def get_json(self, path: str, params: Optional[dict] = None) -> Any:
        url = f"{self.base_url}{path}"
        last_err: Optional[Exception] = None

        for attempt in range(1, self._retries + 1):
            try:
                session = await self._get_session()
                async with session.get(url, params=params) as resp:
                    if resp.status != 200:
                        text = await resp.text()
                        raise RuntimeError(f"HTTP {resp.status}: {text[:200]}")
                    return await resp.json(content_type=None)
            except asyncio.CancelledError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError, RuntimeError, ValueError) as e:
                last_err = e
                if attempt < self._retries:
                    await asyncio.sleep(0.4 * attempt)

        raise RuntimeError(f"{self.venue} REST failed: {path} params={params} err={last_err}")


class RestPollFeed(PollFeed):
    """PollFeed whose fetch() is one GET on a fixed path."""

    PATH = ""
    PARAMS: Optional[dict] = None

    def __init__(self, name: str, venue: str, *, ctx: FeedContext, api: RestJson, interval_sec: float):
        super().__init__(name, venue, ctx=ctx, interval_sec=interval_sec)
        self.api = api

    async def fetch(self) -> Any:
        return await self.api.get_json(self.PATH, params=self.PARAMS)
