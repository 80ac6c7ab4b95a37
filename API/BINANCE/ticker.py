# ============================================================
# FILE: API/BINANCE/ticker.py
# ROLE: Binance USDT-M Futures 24h volume via REST (quote-denominated).
# ENDPOINT: GET https://fapi.binance.com/fapi/v1/ticker/24hr
# ============================================================

from __future__ import annotations

from typing import Any

from API.rest import RestJson, RestPollFeed
from c_utils import Utils
from CORE.feeds import FeedContext, PayloadError
from CORE.intervals import FundingIntervalBook
from CORE.symbols import BINANCE, SymbolNormalizer


class Binance24hPoller(RestPollFeed):
    """24h ticker stats for all symbols (one LIST per call).

    quoteVolume is already in the quote asset (USDT here); volume is the
    fallback when quoteVolume is absent.
    """

    PATH = "/fapi/v1/ticker/24hr"

    def __init__(self, *, ctx: FeedContext, api: RestJson, intervals: FundingIntervalBook, interval_sec: float):
        super().__init__("binance_24h", BINANCE, ctx=ctx, api=api, interval_sec=interval_sec)
        self.intervals = intervals

    def apply(self, payload: Any) -> int:
        if not isinstance(payload, list):
            raise PayloadError(f"expected list, got {type(payload).__name__}")

        applied = 0
        for x in payload:
            if not isinstance(x, dict):
                continue
            ticker = SymbolNormalizer.from_binance(x.get("symbol"), self.ctx.quote)
            if not ticker or not self.universe.admits(ticker):
                continue

            qv = x.get("quoteVolume")
            v = Utils.finite_float(qv) if qv is not None else Utils.finite_float(x.get("volume"))
            if v is None:
                continue

            created = ticker not in self.store
            row = self.store.get_or_create(ticker)
            if created:
                row.bn_interval_hours = self.intervals.resolve(ticker, None)
            row.bn_vol_24h = v
            applied += 1
        return applied
