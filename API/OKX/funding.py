# ============================================================
# FILE: API/OKX/funding.py
# ROLE: OKX SWAP funding rate via WS (aiohttp), chunked subscriptions
# CHANNEL: funding-rate
# DOCS: /ws/v5/public funding-rate channel (push every ~30-90s)
# ============================================================

from __future__ import annotations

import asyncio
import contextlib
import json
from typing import Any, List, Mapping, Optional, Set

from c_utils import Utils
from CORE.feeds import Connector, FeedContext, FeedState, PushFeed
from CORE.intervals import FundingIntervalBook, exact_hours, infer_hours
from CORE.symbols import OKX, SymbolNormalizer


class OkxFundingStream(PushFeed):
    """Funding rate stream for OKX SWAP instruments.

    OKX REST funding endpoint is per-instId (no bulk call), so funding comes
    from the `funding-rate` channel for every subscribed instId.

    Subscribe message (sent in chunks, fixed delay between chunks):
        {"op":"subscribe","args":[{"channel":"funding-rate","instId":"BTC-USDT-SWAP"}, ...]}

    The instId set comes from the OKX listing feed (set_instruments). Before the
    first listing arrives the socket stays open with nothing subscribed.

    Notes:
        - OKX wants the string "ping" when no data for <30s and answers "pong".
        - Payload carries fundingTime + nextFundingTime: the exact interval is
          taken from them; delta inference is the fallback.
    """

    CHANNEL = "funding-rate"

    def __init__(
        self,
        *,
        ctx: FeedContext,
        intervals: FundingIntervalBook,
        url: str,
        reconnect_sec: float = 1.0,
        idle_ping_sec: float = 25.0,
        chunk_size: int = 100,
        chunk_delay_sec: float = 0.25,
        connect: Optional[Connector] = None,
    ):
        super().__init__(
            "okx_ws",
            OKX,
            ctx=ctx,
            url=url,
            reconnect_sec=reconnect_sec,
            idle_ping_sec=idle_ping_sec,
            connect=connect,
        )
        self.intervals = intervals
        self.chunk_size = max(1, int(chunk_size))
        self.chunk_delay_sec = max(0.0, float(chunk_delay_sec))

        self._desired: Set[str] = set()
        self._subscribed: Set[str] = set()
        self._sub_task: Optional[asyncio.Task] = None

    # -------------------------
    # subscriptions
    # -------------------------
    def set_instruments(self, venue: str, symbol_map: Mapping[str, str]) -> None:
        """Universe listener: OKX listing -> desired subscription set."""
        if venue != OKX:
            return
        self._desired = {str(s).upper().strip() for s in symbol_map.values() if str(s).strip()}
        ws = self._ws
        if ws is not None and self.state == FeedState.STREAMING and self._desired - self._subscribed:
            if self._sub_task is None or self._sub_task.done():
                subscribe = self.logger.total_exception_decor(self._subscribe_missing, context=self.name)
                self._sub_task = asyncio.create_task(subscribe(ws))

    def _chunks(self, inst_ids: List[str]) -> List[List[str]]:
        return [inst_ids[i:i + self.chunk_size] for i in range(0, len(inst_ids), self.chunk_size)]

    async def _subscribe_missing(self, ws: Any) -> int:
        sent = 0
        # loop: the desired set may grow while we sleep between chunks
        while True:
            missing = sorted(self._desired - self._subscribed)
            if not missing:
                return sent
            for i, chunk in enumerate(self._chunks(missing)):
                if i:
                    await asyncio.sleep(self.chunk_delay_sec)
                if ws.closed:
                    return sent
                self._subscribed.update(chunk)
                msg = {"op": "subscribe", "args": [{"channel": self.CHANNEL, "instId": s} for s in chunk]}
                await ws.send_str(json.dumps(msg))
                sent += len(chunk)
            self.logger.info(f"[{self.name}] subscribed {sent} instIds (total {len(self._subscribed)})")

    async def on_connected(self, ws: Any) -> None:
        self._subscribed = set()
        await self._subscribe_missing(ws)

    async def send_ping(self, ws: Any) -> None:
        await ws.send_str("ping")

    async def aclose(self) -> None:
        if self._sub_task is not None and not self._sub_task.done():
            self._sub_task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await self._sub_task
        await super().aclose()

    # -------------------------
    # parsing
    # -------------------------
    def apply(self, payload: Any) -> Optional[int]:
        if not isinstance(payload, dict):
            return None

        event = payload.get("event")
        if event is not None:
            if event == "error":
                self.logger.warning(f"[{self.name}] error event: code={payload.get('code')} msg={payload.get('msg')}")
            return None

        arg = payload.get("arg")
        if not isinstance(arg, dict) or arg.get("channel") != self.CHANNEL:
            return None
        data = payload.get("data")
        if not isinstance(data, list):
            return None

        applied = 0
        for d in data:
            if not isinstance(d, dict):
                continue
            ticker = SymbolNormalizer.from_okx(d.get("instId"), self.ctx.quote)
            if not ticker or not self.universe.admits(ticker):
                continue
            rate = Utils.finite_float(d.get("fundingRate"))
            if rate is None:
                continue

            row = self.store.get_or_create(ticker)
            row.okx_funding = rate

            ft = Utils.epoch_ms(d.get("fundingTime"))
            nt = Utils.epoch_ms(d.get("nextFundingTime"))
            hours = exact_hours(ft, nt)
            if hours is not None:
                row.okx_interval_observed = hours
                row.okx_next_funding_ms = nt
            elif nt is not None:
                inferred = infer_hours(row.okx_next_funding_ms, nt)
                if inferred is not None:
                    row.okx_interval_observed = inferred
                row.okx_next_funding_ms = nt

            row.okx_interval_hours = self.intervals.resolve(ticker, row.okx_interval_observed)
            applied += 1
        return applied
