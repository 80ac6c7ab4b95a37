# ============================================================
# FILE: CORE/publisher.py
# ROLE: Coalesce store mutations into bounded-rate immutable snapshots (+ filter/sort views).
# ============================================================

from __future__ import annotations

import asyncio
import contextlib
import inspect
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, List, Optional, Sequence, Tuple

from c_log import UnifiedLogger
from c_utils import Utils, now
from CORE.arb_math import ArbMath
from CORE.feeds import FeedRegistry
from CORE.store import InstrumentRecord, InstrumentStore


@dataclass(frozen=True)
class RowView:
    """Read-only view of one record + derived metrics, as handed to consumers."""

    ticker: str
    bn_price: Optional[float]
    okx_price: Optional[float]
    price_diff: Optional[float]
    bn_funding: Optional[float]
    okx_funding: Optional[float]
    funding_diff: Optional[float]
    bn_interval_hours: Optional[float]
    okx_interval_hours: Optional[float]
    bn_vol_24h: Optional[float]
    okx_vol_24h: Optional[float]

    @classmethod
    def from_record(cls, r: InstrumentRecord) -> "RowView":
        return cls(
            ticker=r.ticker,
            bn_price=r.bn_price,
            okx_price=r.okx_price,
            price_diff=ArbMath.price_divergence(r.bn_price, r.okx_price),
            bn_funding=r.bn_funding,
            okx_funding=r.okx_funding,
            funding_diff=ArbMath.funding_divergence(r.bn_funding, r.okx_funding),
            bn_interval_hours=r.bn_interval_hours,
            okx_interval_hours=r.okx_interval_hours,
            bn_vol_24h=r.bn_vol_24h,
            okx_vol_24h=r.okx_vol_24h,
        )


SORT_KEYS: Tuple[str, ...] = tuple(f.name for f in fields(RowView) if f.name != "ticker")


@dataclass(frozen=True)
class SortState:
    key: str = "price_diff"
    dir: str = "desc"  # "asc" | "desc"

    def __post_init__(self):
        if self.key not in SORT_KEYS:
            raise ValueError(f"unknown sort key: {self.key}")
        if self.dir not in ("asc", "desc"):
            raise ValueError(f"bad sort dir: {self.dir}")

    def toggle(self, key: str) -> "SortState":
        """New key -> ascending; same key -> flip direction."""
        if key != self.key:
            return SortState(key, "asc")
        return SortState(key, "desc" if self.dir == "asc" else "asc")


@dataclass
class ViewState:
    search: str = ""
    sort: SortState = field(default_factory=SortState)


def filter_rows(rows: Sequence[RowView], search: str) -> List[RowView]:
    """Case-insensitive substring match on the canonical ticker."""
    q = (search or "").strip().upper()
    if not q:
        return list(rows)
    return [r for r in rows if q in r.ticker]


def sort_rows(rows: Sequence[RowView], sort: SortState) -> List[RowView]:
    """Sort by one numeric field; missing/non-finite values always go last."""
    sign = 1.0 if sort.dir == "asc" else -1.0

    def _key(r: RowView):
        v = getattr(r, sort.key)
        if Utils.is_finite(v):
            return (0, sign * v)
        return (1, 0.0)

    return sorted(rows, key=_key)


def select_rows(rows: Sequence[RowView], view: ViewState) -> Tuple[RowView, ...]:
    return tuple(sort_rows(filter_rows(rows, view.search), view.sort))


@dataclass(frozen=True)
class Snapshot:
    version: int
    ts_ms: int
    rows: Tuple[RowView, ...]
    total: int
    health: tuple
    search: str = ""
    sort: SortState = field(default_factory=SortState)


SnapshotCallback = Callable[[Snapshot], Any]


class Subscription:
    """One consumer: its callback and its own filter/sort view."""

    def __init__(self, callback: SnapshotCallback, view: Optional[ViewState] = None):
        self.callback = callback
        self.view = view or ViewState()
        # deliver on the next tick even if the store is clean
        self.stale = True

    def set_search(self, text: str) -> None:
        self.view.search = text or ""
        self.stale = True

    def toggle_sort(self, key: str) -> SortState:
        self.view.sort = self.view.sort.toggle(key)
        self.stale = True
        return self.view.sort


class SnapshotPublisher:
    """Dirty-flag coalescing scheduler.

    Feeds set store.dirty at any rate. Every refresh_sec tick: if dirty, clear
    the flag, rebuild the row set once and deliver it to every subscriber
    (each through its own view); otherwise deliver only to subscribers whose
    view changed since their last delivery.
    """

    def __init__(
        self,
        *,
        store: InstrumentStore,
        registry: FeedRegistry,
        logger: UnifiedLogger,
        refresh_sec: float = 1.0,
    ):
        self.store = store
        self.registry = registry
        self.logger = logger
        self.refresh_sec = max(0.05, float(refresh_sec))
        self.version = 0
        self._rows: Optional[Tuple[RowView, ...]] = None
        self._subs: List[Subscription] = []
        self._closed = asyncio.Event()

    def subscribe(self, callback: SnapshotCallback, view: Optional[ViewState] = None) -> Subscription:
        sub = Subscription(self.logger.total_exception_decor(callback, context="PUBLISHER"), view)
        self._subs.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with contextlib.suppress(ValueError):
            self._subs.remove(sub)

    @property
    def rows(self) -> Optional[Tuple[RowView, ...]]:
        """Last published (unfiltered, ticker-ordered) row set."""
        return self._rows

    def build_rows(self) -> Tuple[RowView, ...]:
        return tuple(RowView.from_record(r) for r in self.store.records())

    def snapshot_for(self, view: ViewState) -> Snapshot:
        rows = self._rows or ()
        return Snapshot(
            version=self.version,
            ts_ms=now(),
            rows=select_rows(rows, view),
            total=len(rows),
            health=self.registry.snapshot(),
            search=view.search,
            sort=view.sort,
        )

    async def _deliver(self, sub: Subscription) -> None:
        sub.stale = False
        res = sub.callback(self.snapshot_for(replace(sub.view)))
        if inspect.isawaitable(res):
            await res

    async def tick(self) -> int:
        """One publication step. Returns the number of deliveries."""
        if self.store.consume_dirty():
            self._rows = self.build_rows()
            self.version += 1
            targets = list(self._subs)
        elif self._rows is not None:
            targets = [s for s in self._subs if s.stale]
        else:
            targets = []

        for sub in targets:
            await self._deliver(sub)
        return len(targets)

    async def run(self) -> None:
        while not self._closed.is_set():
            await self.tick()
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._closed.wait(), timeout=self.refresh_sec)

    def close(self) -> None:
        self._closed.set()
