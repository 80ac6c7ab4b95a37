# ============================================================
# FILE: API/OKX/ticker.py
# ROLE: OKX SWAP 24h volume via REST (base currency -> USDT).
# ENDPOINT: GET https://www.okx.com/api/v5/market/tickers?instType=SWAP
# ============================================================

from __future__ import annotations

from typing import Any

from API.rest import RestJson
from c_utils import Utils
from CORE.feeds import FeedContext
from CORE.symbols import OKX, SymbolNormalizer

from .symbol import OkxRestPoller


class Okx24hPoller(OkxRestPoller):
    """24h tickers for all SWAP instruments.

    volCcy24h is in base currency for SWAP. Converted with:
        okx_vol_24h(USDT) = volCcy24h * mark price (preferred) else last
    """

    PATH = "/api/v5/market/tickers"
    PARAMS = {"instType": "SWAP"}

    def __init__(self, *, ctx: FeedContext, api: RestJson, interval_sec: float):
        super().__init__("okx_24h", OKX, ctx=ctx, api=api, interval_sec=interval_sec)

    def apply(self, payload: Any) -> int:
        applied = 0
        for x in self.data(payload):
            if not isinstance(x, dict):
                continue
            ticker = SymbolNormalizer.from_okx(x.get("instId"), self.ctx.quote)
            if not ticker or not self.universe.admits(ticker):
                continue
            base_vol = Utils.finite_float(x.get("volCcy24h"))
            if base_vol is None:
                continue

            row = self.store.get_or_create(ticker)
            row.set_okx_base_volume(base_vol, fallback_price=Utils.finite_float(x.get("last")))
            applied += 1
        return applied
