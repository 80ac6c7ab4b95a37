# ============================================================
# FILE: CORE/engine.py
# ROLE: Orchestrator: wires store/universe/feeds/publisher and runs every feed as its own task.
# ============================================================

from __future__ import annotations

import asyncio
import contextlib
from typing import Dict, List, Optional

from const import (
    BINANCE_DEFAULT_INTERVAL_HOURS,
    DEFAULT_SORT_DIR,
    DEFAULT_SORT_KEY,
    QUOTE,
    UI_REFRESH_SEC,
)

from c_log import UnifiedLogger

from API.BINANCE.client import BinanceClient
from API.OKX.client import OKXClient

from CORE.feeds import Connector, FeedContext, FeedRegistry
from CORE.intervals import FundingIntervalBook
from CORE.publisher import SORT_KEYS, SnapshotCallback, SnapshotPublisher, SortState, Subscription, ViewState
from CORE.startup_checks import StartupSelfCheck
from CORE.store import InstrumentStore
from CORE.symbols import BINANCE, OKX, VENUES
from CORE.universe import UniverseResolver


def default_view() -> ViewState:
    key = DEFAULT_SORT_KEY if DEFAULT_SORT_KEY in SORT_KEYS else "price_diff"
    return ViewState(search="", sort=SortState(key, DEFAULT_SORT_DIR))


class DivergenceMonitor:
    """Binance USDT-M vs OKX SWAP divergence monitor.

    Pipeline:
      1) listing polls feed the universe resolver (intersection, pruning)
      2) price/funding/volume feeds update the instrument store in place
      3) the publisher turns store mutations into throttled snapshots

    Each feed runs as an independent asyncio task; one feed failing never
    stops another. Consumers attach via subscribe().
    """

    def __init__(
        self,
        logger: Optional[UnifiedLogger] = None,
        *,
        self_check: bool = True,
        binance_connect: Optional[Connector] = None,
        okx_connect: Optional[Connector] = None,
    ):
        self.logger = logger or UnifiedLogger(name="core", context="ENGINE")

        if self_check:
            report = StartupSelfCheck(self.logger).run()
            if not report.ok:
                raise RuntimeError(
                    "Startup self-check failed. Fix config/runtime issues in logs and restart."
                )

        self.store = InstrumentStore(bn_default_interval_hours=BINANCE_DEFAULT_INTERVAL_HOURS)
        self.registry = FeedRegistry()
        self.universe = UniverseResolver(store=self.store, venues=VENUES, logger=self.logger)
        self.intervals: Dict[str, FundingIntervalBook] = {
            BINANCE: FundingIntervalBook(BINANCE, default_hours=BINANCE_DEFAULT_INTERVAL_HOURS),
            OKX: FundingIntervalBook(OKX, default_hours=None),
        }
        self.ctx = FeedContext(
            store=self.store,
            universe=self.universe,
            registry=self.registry,
            logger=self.logger,
            quote=QUOTE,
        )

        self.exchanges = [
            BinanceClient(ctx=self.ctx, intervals=self.intervals[BINANCE], connect=binance_connect),
            OKXClient(ctx=self.ctx, intervals=self.intervals[OKX], connect=okx_connect),
        ]
        self.publisher = SnapshotPublisher(
            store=self.store,
            registry=self.registry,
            logger=self.logger,
            refresh_sec=UI_REFRESH_SEC,
        )

        self._tasks: List[asyncio.Task] = []
        self._stop = asyncio.Event()

    @property
    def feeds(self) -> list:
        return [f for ex in self.exchanges for f in ex.feeds]

    def subscribe(self, callback: SnapshotCallback, view: Optional[ViewState] = None) -> Subscription:
        return self.publisher.subscribe(callback, view or default_view())

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled() or self._stop.is_set():
            return
        ex = task.exception()
        if ex is not None:
            self.logger.error(f"[ENGINE] task {task.get_name()} crashed: {ex!r}")
        else:
            self.logger.warning(f"[ENGINE] task {task.get_name()} exited")

    def start(self) -> None:
        if self._tasks:
            return
        for feed in self.feeds:
            t = asyncio.create_task(feed.run(), name=feed.name)
            t.add_done_callback(self._on_task_done)
            self._tasks.append(t)
        t = asyncio.create_task(self.publisher.run(), name="publisher")
        t.add_done_callback(self._on_task_done)
        self._tasks.append(t)
        self.logger.info(
            f"[ENGINE] started: quote={QUOTE} feeds={', '.join(self.registry.names())} refresh={UI_REFRESH_SEC:g}s"
        )

    def stop(self) -> None:
        """Ask every loop to finish; run_forever() returns after shutdown."""
        self._stop.set()
        for feed in self.feeds:
            feed.close()
        self.publisher.close()

    async def run_forever(self) -> None:
        try:
            self.start()
            await self._stop.wait()
        finally:
            await self._shutdown()

    async def _shutdown(self) -> None:
        self._stop.set()
        self.publisher.close()
        for ex in self.exchanges:
            try:
                await ex.shutdown()
            except Exception as e:
                self.logger.warning(f"[SHUTDOWN] {ex.name} failed: {e}")

        for t in self._tasks:
            if not t.done():
                t.cancel()
        for t in self._tasks:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await t
        self._tasks = []
        self.logger.info("[ENGINE] stopped")
