# ============================================================
# FILE: API/BINANCE/funding.py
# ROLE: Binance USDT-M Futures funding interval overrides via REST.
# ENDPOINT: GET https://fapi.binance.com/fapi/v1/fundingInfo
# ============================================================

from __future__ import annotations

from typing import Any, Dict

from API.rest import RestJson, RestPollFeed
from CORE.feeds import FeedContext, PayloadError
from CORE.intervals import FundingIntervalBook, valid_override_hours
from CORE.symbols import BINANCE, SymbolNormalizer


class BinanceFundingInfoPoller(RestPollFeed):
    """Funding interval adjustments (1h/4h/...).

    Binance only lists symbols whose fundingIntervalHours was adjusted; the
    rest settle on the 8h default. The override table is replaced wholesale
    each refresh and re-applied to every known record.
    """

    PATH = "/fapi/v1/fundingInfo"

    def __init__(self, *, ctx: FeedContext, api: RestJson, intervals: FundingIntervalBook, interval_sec: float):
        super().__init__("binance_funding_info", BINANCE, ctx=ctx, api=api, interval_sec=interval_sec)
        self.intervals = intervals

    def apply(self, payload: Any) -> int:
        if not isinstance(payload, list):
            raise PayloadError(f"expected list, got {type(payload).__name__}")

        overrides: Dict[str, float] = {}
        for x in payload:
            if not isinstance(x, dict):
                continue
            ticker = SymbolNormalizer.from_binance(x.get("symbol"), self.ctx.quote)
            if not ticker:
                continue
            h = valid_override_hours(x.get("fundingIntervalHours"))
            if h is not None:
                overrides[ticker] = h

        prev = self.intervals.overrides
        self.intervals.replace_overrides(overrides)
        if overrides != prev:
            self.logger.info(f"[{self.name}] overrides: {len(overrides)} symbols (was {len(prev)})")

        for row in self.store:
            row.bn_interval_hours = self.intervals.resolve(row.ticker, row.bn_interval_observed)
        return len(overrides)
