# ============================================================
# FILE: CORE/feeds.py
# ROLE: Feed base classes (poll loop, push reconnect state machine) + feed health registry.
# ============================================================

from __future__ import annotations

import asyncio
import contextlib
import json
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp

from c_log import UnifiedLogger
from c_utils import now
from CORE.store import InstrumentStore
from CORE.universe import UniverseResolver


class PayloadError(ValueError):
    """The whole payload is unusable (wrong root type, venue error code...)."""


class FeedState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBING = "subscribing"
    STREAMING = "streaming"
    CLOSED = "closed"
    # poll feeds
    IDLE = "idle"
    POLLING = "polling"


@dataclass
class FeedHealth:
    name: str
    venue: str
    kind: str  # "push" | "poll"
    ok: bool
    state: FeedState = FeedState.DISCONNECTED
    last_update_ms: Optional[int] = None
    last_error: str = ""
    failures: int = 0

    def mark_update(self, ts_ms: Optional[int] = None) -> None:
        self.last_update_ms = ts_ms if ts_ms is not None else now()

    def mark_failure(self, err: str) -> None:
        self.ok = False
        self.failures += 1
        self.last_error = err


class FeedRegistry:
    """Owns the health record of every feed (one per physical feed)."""

    def __init__(self):
        self._items: Dict[str, FeedHealth] = {}

    def register(self, name: str, venue: str, kind: str) -> FeedHealth:
        if name in self._items:
            raise ValueError(f"feed already registered: {name}")
        # push: healthy == connected; poll: healthy until a poll fails
        h = FeedHealth(
            name=name,
            venue=venue,
            kind=kind,
            ok=(kind == "poll"),
            state=FeedState.DISCONNECTED if kind == "push" else FeedState.IDLE,
        )
        self._items[name] = h
        return h

    def get(self, name: str) -> Optional[FeedHealth]:
        return self._items.get(name)

    def names(self) -> List[str]:
        return list(self._items)

    def snapshot(self) -> tuple:
        return tuple(replace(h) for h in self._items.values())


@dataclass
class FeedContext:
    """Shared collaborators handed to every feed."""

    store: InstrumentStore
    universe: UniverseResolver
    registry: FeedRegistry
    logger: UnifiedLogger
    quote: str = "USDT"


# ============================================================
# POLL
# ============================================================
class PollFeed:
    """Fixed-interval REST poller.

    Subclasses implement fetch() (network) and apply(payload) (store mutation).
    On failure previous data stays untouched (stale but present) and the next
    tick retries.
    """

    kind = "poll"

    def __init__(self, name: str, venue: str, *, ctx: FeedContext, interval_sec: float):
        self.name = name
        self.venue = venue
        self.ctx = ctx
        self.store = ctx.store
        self.universe = ctx.universe
        self.logger = ctx.logger
        self.interval_sec = max(0.1, float(interval_sec))
        self.health = ctx.registry.register(name, venue, self.kind)
        self._closed = asyncio.Event()

    async def fetch(self) -> Any:
        raise NotImplementedError

    def apply(self, payload: Any) -> int:
        """Mutate the store from one payload; return number of items applied."""
        raise NotImplementedError

    async def poll_once(self) -> bool:
        self.health.state = FeedState.POLLING
        try:
            try:
                payload = await self.fetch()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.health.mark_failure(str(e))
                self.logger.warning(f"[{self.name}] poll failed: {e}")
                return False

            try:
                n = self.apply(payload)
            except PayloadError as e:
                self.health.mark_failure(f"malformed payload: {e}")
                self.logger.warning(f"[{self.name}] malformed payload: {e}")
                return False
            except Exception as e:
                self.health.mark_failure(f"apply failed: {e}")
                self.logger.exception(f"[{self.name}] apply failed: {e}")
                return False

            self.health.ok = True
            self.health.last_error = ""
            self.health.mark_update()
            self.store.mark_dirty()
            self.logger.debug(f"[{self.name}] applied {n} items")
            return True
        finally:
            self.health.state = FeedState.IDLE

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        while not self._closed.is_set():
            next_at = loop.time() + self.interval_sec
            await self.poll_once()
            delay = max(0.0, next_at - loop.time())
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._closed.wait(), timeout=delay)

    def close(self) -> None:
        self._closed.set()

    async def aclose(self) -> None:
        self.close()


# ============================================================
# PUSH
# ============================================================
Connector = Callable[[], Awaitable[Any]]


class PushFeed:
    """Long-lived WebSocket feed with an explicit reconnect state machine.

        DISCONNECTED -> CONNECTING -> SUBSCRIBING -> STREAMING -> DISCONNECTED ...
                                                                 -> CLOSED (owner)

    health.ok == currently connected. After a disconnect the feed waits a fixed
    backoff and reconnects, forever, unless close() was called. Old store values
    are never cleared on disconnect.

    connect: optional coroutine factory returning a ws-like object
    (receive(timeout=...), send_str(), close(), closed). Defaults to aiohttp.
    """

    kind = "push"

    def __init__(
        self,
        name: str,
        venue: str,
        *,
        ctx: FeedContext,
        url: str,
        reconnect_sec: float = 1.0,
        idle_ping_sec: Optional[float] = None,
        connect: Optional[Connector] = None,
    ):
        self.name = name
        self.venue = venue
        self.ctx = ctx
        self.store = ctx.store
        self.universe = ctx.universe
        self.logger = ctx.logger
        self.url = url
        self.reconnect_sec = max(0.0, float(reconnect_sec))
        self.idle_ping_sec = idle_ping_sec
        self.health = ctx.registry.register(name, venue, self.kind)
        self.connects = 0

        self._connect = connect or self._ws_connect
        self._closed = asyncio.Event()
        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Any = None

    # -------------------------
    # state
    # -------------------------
    @property
    def state(self) -> FeedState:
        return self.health.state

    def _set_state(self, st: FeedState) -> None:
        self.health.state = st
        self.health.ok = st in (FeedState.SUBSCRIBING, FeedState.STREAMING)

    @property
    def closed_by_owner(self) -> bool:
        return self._closed.is_set()

    # -------------------------
    # hooks
    # -------------------------
    async def on_connected(self, ws: Any) -> None:
        """Send subscriptions (if the venue needs them)."""
        return None

    async def send_ping(self, ws: Any) -> None:
        """Application-level keepalive after idle_ping_sec without traffic."""
        return None

    def apply(self, payload: Any) -> Optional[int]:
        """Mutate the store from one message. None == control message (ack, pong)."""
        raise NotImplementedError

    # -------------------------
    # transport
    # -------------------------
    async def _ws_connect(self) -> aiohttp.ClientWebSocketResponse:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return await self._session.ws_connect(self.url, autoping=True, heartbeat=None, max_msg_size=0)

    def handle_text(self, data: str) -> bool:
        """Parse + apply one text frame. Errors are logged and swallowed."""
        if data == "pong":
            return False
        try:
            payload = json.loads(data)
        except ValueError as e:
            self.logger.warning(f"[{self.name}] non-JSON message skipped: {e}")
            return False
        try:
            n = self.apply(payload)
        except Exception as e:
            self.logger.exception(f"[{self.name}] message handling failed: {e}")
            return False
        if n is None:
            return False
        self.health.mark_update()
        self.store.mark_dirty()
        return True

    async def _stream(self, ws: Any) -> None:
        while not self._closed.is_set():
            try:
                msg = await ws.receive(timeout=self.idle_ping_sec)
            except asyncio.TimeoutError:
                await self.send_ping(ws)
                continue

            if msg.type == aiohttp.WSMsgType.TEXT:
                self.handle_text(msg.data)
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING,
                              aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                break

    async def run(self) -> None:
        while not self._closed.is_set():
            self._set_state(FeedState.CONNECTING)
            ws = None
            try:
                ws = await self._connect()
                self._ws = ws
                self.connects += 1
                self.logger.info(f"[{self.name}] connected (#{self.connects})")

                self._set_state(FeedState.SUBSCRIBING)
                await self.on_connected(ws)

                self._set_state(FeedState.STREAMING)
                await self._stream(ws)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.health.failures += 1
                self.health.last_error = str(e)
                self.logger.warning(f"[{self.name}] connection error: {e}")
            finally:
                self._ws = None
                if ws is not None and not ws.closed:
                    with contextlib.suppress(Exception):
                        await ws.close()
                self._set_state(FeedState.CLOSED if self._closed.is_set() else FeedState.DISCONNECTED)

            if self._closed.is_set():
                break
            self.logger.warning(f"[{self.name}] disconnected, reconnecting in {self.reconnect_sec:.1f}s")
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._closed.wait(), timeout=self.reconnect_sec)

        self._set_state(FeedState.CLOSED)

    def close(self) -> None:
        self._closed.set()

    async def aclose(self) -> None:
        self.close()
        ws = self._ws
        if ws is not None and not ws.closed:
            with contextlib.suppress(Exception):
                await ws.close()
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        self._set_state(FeedState.CLOSED)
