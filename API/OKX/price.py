# ============================================================
# FILE: API/OKX/price.py
# ROLE: OKX SWAP mark price via REST (all instruments in one call).
# ENDPOINT: GET https://www.okx.com/api/v5/public/mark-price?instType=SWAP
# ============================================================

from __future__ import annotations

from typing import Any

from API.rest import RestJson
from c_utils import Utils
from CORE.feeds import FeedContext
from CORE.symbols import OKX, SymbolNormalizer

from .symbol import OkxRestPoller


class OkxMarkPoller(OkxRestPoller):
    """Mark price per instId.

    A new mark price also re-converts the stored base-currency 24h volume,
    so the quote volume follows price moves between ticker polls.
    """

    PATH = "/api/v5/public/mark-price"
    PARAMS = {"instType": "SWAP"}

    def __init__(self, *, ctx: FeedContext, api: RestJson, interval_sec: float):
        super().__init__("okx_mark", OKX, ctx=ctx, api=api, interval_sec=interval_sec)

    def apply(self, payload: Any) -> int:
        applied = 0
        skipped = 0
        for x in self.data(payload):
            if not isinstance(x, dict):
                skipped += 1
                continue
            ticker = SymbolNormalizer.from_okx(x.get("instId"), self.ctx.quote)
            if not ticker or not self.universe.admits(ticker):
                continue
            px = Utils.finite_float(x.get("markPx"))
            if px is None:
                skipped += 1
                continue

            self.store.get_or_create(ticker).set_okx_price(px)
            applied += 1

        if skipped:
            self.logger.debug(f"[{self.name}] skipped {skipped} malformed items")
        return applied
