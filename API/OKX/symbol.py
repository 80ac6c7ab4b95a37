# ============================================================
# FILE: API/OKX/symbol.py
# ROLE: OKX SWAP REST envelope + instrument listing -> venue universe.
# ENDPOINT: GET https://www.okx.com/api/v5/public/instruments?instType=SWAP
# ============================================================

from __future__ import annotations

from typing import Any, List

from API.rest import RestJson, RestPollFeed
from CORE.feeds import FeedContext, PayloadError
from CORE.symbols import OKX, SymbolNormalizer


class OkxRestPoller(RestPollFeed):
    """OKX v5 REST envelope: {"code": "0", "msg": "", "data": [...]}."""

    @staticmethod
    def data(payload: Any) -> List[Any]:
        if not isinstance(payload, dict):
            raise PayloadError(f"expected object, got {type(payload).__name__}")
        code = str(payload.get("code"))
        if code != "0":
            raise PayloadError(f"code={code} msg={payload.get('msg')!r}")
        arr = payload.get("data")
        if not isinstance(arr, list):
            raise PayloadError("data is not a list")
        return arr


class OkxListingPoller(OkxRestPoller):
    """Live USDT-margined SWAP instruments (BTC-USDT-SWAP ...)."""

    PATH = "/api/v5/public/instruments"
    PARAMS = {"instType": "SWAP"}

    def __init__(self, *, ctx: FeedContext, api: RestJson, interval_sec: float):
        super().__init__("okx_listing", OKX, ctx=ctx, api=api, interval_sec=interval_sec)

    def live_inst_ids(self, payload: Any) -> List[str]:
        out: List[str] = []
        for it in self.data(payload):
            if not isinstance(it, dict):
                continue
            inst_id = str(it.get("instId") or "").strip()
            if not inst_id:
                continue
            if str(it.get("state") or "").lower() != "live":
                continue
            out.append(inst_id)
        return out

    def apply(self, payload: Any) -> int:
        cmap = SymbolNormalizer.map_okx(self.live_inst_ids(payload), self.ctx.quote)
        self.universe.update_venue_universe(OKX, cmap)
        return len(cmap)
