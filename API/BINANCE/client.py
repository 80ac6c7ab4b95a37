# ============================================================
# FILE: API/BINANCE/client.py
# ROLE: Thin exchange client wrapper: owns every Binance feed + the REST session.
# ============================================================

from __future__ import annotations

from typing import List, Optional, Union

from const import (
    BINANCE_24H_POLL_SEC,
    BINANCE_FUNDING_INFO_POLL_SEC,
    BINANCE_LISTING_POLL_SEC,
    BINANCE_RECONNECT_SEC,
    BINANCE_REST_BASE,
    BINANCE_WS_URL,
    HTTP_RETRIES,
    HTTP_TIMEOUT_SEC,
)
from API.rest import RestJson
from CORE.feeds import Connector, FeedContext, PollFeed, PushFeed
from CORE.intervals import FundingIntervalBook
from CORE.symbols import BINANCE

from .funding import BinanceFundingInfoPoller
from .price import BinanceMarkPriceStream
from .symbol import BinanceListingPoller
from .ticker import Binance24hPoller


class BinanceClient:
    name = BINANCE

    def __init__(
        self,
        *,
        ctx: FeedContext,
        intervals: FundingIntervalBook,
        connect: Optional[Connector] = None,
    ):
        self.ctx = ctx
        self.logger = ctx.logger
        self.intervals = intervals
        self.api = RestJson(BINANCE_REST_BASE, venue=BINANCE, timeout_sec=HTTP_TIMEOUT_SEC, retries=HTTP_RETRIES)

        self.listing = BinanceListingPoller(ctx=ctx, api=self.api, interval_sec=BINANCE_LISTING_POLL_SEC)
        self.funding_info = BinanceFundingInfoPoller(
            ctx=ctx, api=self.api, intervals=intervals, interval_sec=BINANCE_FUNDING_INFO_POLL_SEC
        )
        self.ticker = Binance24hPoller(ctx=ctx, api=self.api, intervals=intervals, interval_sec=BINANCE_24H_POLL_SEC)
        self.price = BinanceMarkPriceStream(
            ctx=ctx,
            intervals=intervals,
            url=BINANCE_WS_URL,
            reconnect_sec=BINANCE_RECONNECT_SEC,
            connect=connect,
        )

    @property
    def feeds(self) -> List[Union[PollFeed, PushFeed]]:
        return [self.listing, self.funding_info, self.ticker, self.price]

    async def shutdown(self) -> None:
        """Best-effort cleanup for the WS stream and the shared REST session."""
        for feed in self.feeds:
            try:
                await feed.aclose()
            except Exception as e:
                self.logger.warning(f"{self.name}: {feed.name} close failed: {e}")
        try:
            await self.api.aclose()
        except Exception as e:
            self.logger.warning(f"{self.name}: REST session close failed: {e}")
