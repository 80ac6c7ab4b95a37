# ============================================================
# FILE: API/BINANCE/symbol.py
# ROLE: Binance USDT-M Futures PERPETUAL listing via REST -> venue universe.
# ENDPOINT: GET https://fapi.binance.com/fapi/v1/exchangeInfo
# ============================================================

from __future__ import annotations

from typing import Any, List

from API.rest import RestJson, RestPollFeed
from CORE.feeds import FeedContext, PayloadError
from CORE.symbols import BINANCE, SymbolNormalizer


class BinanceListingPoller(RestPollFeed):
    """Active symbol set for Binance.

    Filters:
        - contractType == "PERPETUAL"
        - status == "TRADING"
        - quoteAsset == quote (default: "USDT")
    """

    PATH = "/fapi/v1/exchangeInfo"

    def __init__(self, *, ctx: FeedContext, api: RestJson, interval_sec: float):
        super().__init__("binance_listing", BINANCE, ctx=ctx, api=api, interval_sec=interval_sec)

    def perp_symbols(self, payload: Any) -> List[str]:
        if not isinstance(payload, dict) or not isinstance(payload.get("symbols"), list):
            raise PayloadError("exchangeInfo without symbols list")

        quote_u = self.ctx.quote.upper()
        out: List[str] = []
        for s in payload["symbols"]:
            if not isinstance(s, dict):
                continue
            if s.get("contractType") != "PERPETUAL":
                continue
            if s.get("status") != "TRADING":
                continue
            if str(s.get("quoteAsset") or "").upper() != quote_u:
                continue
            sym = s.get("symbol")
            if sym:
                out.append(str(sym))
        return out

    def apply(self, payload: Any) -> int:
        cmap = SymbolNormalizer.map_binance(self.perp_symbols(payload), self.ctx.quote)
        self.universe.update_venue_universe(BINANCE, cmap)
        return len(cmap)
