# ============================================================
# FILE: API/BINANCE/price.py
# ROLE: Binance USDT-M Futures mark price + funding via WS (aiohttp)
# STREAM: !markPrice@arr@1s  (all symbols, array payload every second)
# ============================================================

from __future__ import annotations

from typing import Any, Optional

from c_utils import Utils
from CORE.feeds import FeedContext, PushFeed
from CORE.intervals import FundingIntervalBook, infer_hours
from CORE.symbols import BINANCE, SymbolNormalizer


class BinanceMarkPriceStream(PushFeed):
    """All-market mark price stream.

    Item fields used:
        s  symbol (BTCUSDT)
        p  mark price
        r  funding rate (fraction)
        T  next funding time (ms)

    Binance sends protocol pings itself; aiohttp answers them (autoping).
    Interval is not in the payload: it is inferred from successive T values,
    unless the fundingInfo override table covers the symbol.
    """

    def __init__(
        self,
        *,
        ctx: FeedContext,
        intervals: FundingIntervalBook,
        url: str,
        reconnect_sec: float = 1.0,
        connect=None,
    ):
        super().__init__(
            "binance_ws",
            BINANCE,
            ctx=ctx,
            url=url,
            reconnect_sec=reconnect_sec,
            idle_ping_sec=None,
            connect=connect,
        )
        self.intervals = intervals

    def apply(self, payload: Any) -> Optional[int]:
        if not isinstance(payload, list):
            return None

        applied = 0
        skipped = 0
        for x in payload:
            if not isinstance(x, dict):
                skipped += 1
                continue
            s, p, r = x.get("s"), x.get("p"), x.get("r")
            if not s or p is None or r is None:
                skipped += 1
                continue

            ticker = SymbolNormalizer.from_binance(s, self.ctx.quote)
            if not ticker or not self.universe.admits(ticker):
                continue

            price = Utils.finite_float(p)
            rate = Utils.finite_float(r)
            if price is None or rate is None:
                skipped += 1
                continue

            row = self.store.get_or_create(ticker)
            row.bn_price = price
            row.bn_funding = rate

            nxt = Utils.epoch_ms(x.get("T"))
            if nxt is not None:
                inferred = infer_hours(row.bn_next_funding_ms, nxt)
                if inferred is not None:
                    row.bn_interval_observed = inferred
                row.bn_next_funding_ms = nxt

            row.bn_interval_hours = self.intervals.resolve(ticker, row.bn_interval_observed)
            applied += 1

        if skipped:
            self.logger.debug(f"[{self.name}] skipped {skipped} malformed items")
        return applied
