# ============================================================
# FILE: API/OKX/client.py
# ROLE: Thin exchange client wrapper: owns every OKX feed + the REST session.
# ============================================================

from __future__ import annotations

from typing import List, Optional, Union

from const import (
    HTTP_RETRIES,
    HTTP_TIMEOUT_SEC,
    OKX_24H_POLL_SEC,
    OKX_IDLE_PING_SEC,
    OKX_LISTING_POLL_SEC,
    OKX_MARK_POLL_SEC,
    OKX_RECONNECT_SEC,
    OKX_REST_BASE,
    OKX_SUBSCRIBE_CHUNK,
    OKX_SUBSCRIBE_DELAY_SEC,
    OKX_WS_URL,
)
from API.rest import RestJson
from CORE.feeds import Connector, FeedContext, PollFeed, PushFeed
from CORE.intervals import FundingIntervalBook
from CORE.symbols import OKX

from .funding import OkxFundingStream
from .price import OkxMarkPoller
from .symbol import OkxListingPoller
from .ticker import Okx24hPoller


class OKXClient:
    name = OKX

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
        self.api = RestJson(OKX_REST_BASE, venue=OKX, timeout_sec=HTTP_TIMEOUT_SEC, retries=HTTP_RETRIES)

        self.listing = OkxListingPoller(ctx=ctx, api=self.api, interval_sec=OKX_LISTING_POLL_SEC)
        self.mark = OkxMarkPoller(ctx=ctx, api=self.api, interval_sec=OKX_MARK_POLL_SEC)
        self.ticker = Okx24hPoller(ctx=ctx, api=self.api, interval_sec=OKX_24H_POLL_SEC)
        self.funding = OkxFundingStream(
            ctx=ctx,
            intervals=intervals,
            url=OKX_WS_URL,
            reconnect_sec=OKX_RECONNECT_SEC,
            idle_ping_sec=OKX_IDLE_PING_SEC,
            chunk_size=OKX_SUBSCRIBE_CHUNK,
            chunk_delay_sec=OKX_SUBSCRIBE_DELAY_SEC,
            connect=connect,
        )
        # listing -> WS subscription set
        ctx.universe.add_listener(self.funding.set_instruments)

    @property
    def feeds(self) -> List[Union[PollFeed, PushFeed]]:
        return [self.listing, self.mark, self.ticker, self.funding]

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
