# ============================================================
# FILE: CORE/store.py
# ROLE: Per-instrument mutable state (one record per canonical ticker) + dirty flag.
# ============================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Set

from CORE.arb_math import ArbMath


@dataclass
class InstrumentRecord:
    """Latest known state of one instrument on both venues.

    Prices/volumes are quote-denominated (USDT); funding rates are fractions.
    Every field is updated independently by the feed that owns it, so a record
    may mix fresher Binance fields with older OKX ones.
    """

    ticker: str

    bn_price: Optional[float] = None
    okx_price: Optional[float] = None

    bn_funding: Optional[float] = None
    okx_funding: Optional[float] = None

    bn_vol_24h: Optional[float] = None
    okx_vol_24h: Optional[float] = None

    # OKX reports 24h volume in base currency; kept so the quote value can be
    # recomputed whenever the price moves.
    okx_base_vol_24h: Optional[float] = None

    # Inference only (not displayed).
    bn_next_funding_ms: Optional[int] = None
    okx_next_funding_ms: Optional[int] = None

    # Last observed interval (inferred or exact), before overrides/defaults.
    bn_interval_observed: Optional[float] = None
    okx_interval_observed: Optional[float] = None

    # Effective interval shown to consumers.
    bn_interval_hours: Optional[float] = 8.0
    okx_interval_hours: Optional[float] = None

    def set_okx_price(self, price: float) -> None:
        self.okx_price = price
        self.reconvert_okx_volume(price)

    def set_okx_base_volume(self, base_vol: float, fallback_price: Optional[float] = None) -> None:
        self.okx_base_vol_24h = base_vol
        px = self.okx_price if self.okx_price is not None else fallback_price
        self.reconvert_okx_volume(px)

    def reconvert_okx_volume(self, price: Optional[float]) -> None:
        v = ArbMath.convert_base_volume(self.okx_base_vol_24h, price)
        if v is not None:
            self.okx_vol_24h = v


class InstrumentStore:
    """Canonical ticker -> InstrumentRecord.

    Mutation contract:
      - feeds create records lazily via get_or_create() and update fields in place;
      - only prune() deletes records (universe changes);
      - every mutating caller sets the dirty flag via mark_dirty().

    Not thread-safe: all access happens on the asyncio loop thread.
    """

    def __init__(self, *, bn_default_interval_hours: Optional[float] = 8.0):
        self._rows: Dict[str, InstrumentRecord] = {}
        self._dirty = False
        self.bn_default_interval_hours = bn_default_interval_hours

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, ticker: object) -> bool:
        return ticker in self._rows

    def __iter__(self) -> Iterator[InstrumentRecord]:
        return iter(list(self._rows.values()))

    def get(self, ticker: str) -> Optional[InstrumentRecord]:
        return self._rows.get(ticker)

    def get_or_create(self, ticker: str) -> InstrumentRecord:
        row = self._rows.get(ticker)
        if row is None:
            row = InstrumentRecord(ticker=ticker, bn_interval_hours=self.bn_default_interval_hours)
            self._rows[ticker] = row
        return row

    def tickers(self) -> List[str]:
        return sorted(self._rows)

    def prune(self, keep: Set[str]) -> List[str]:
        """Delete every record whose ticker is not in keep. Returns removed tickers."""
        removed = [t for t in self._rows if t not in keep]
        for t in removed:
            del self._rows[t]
        return removed

    # -------------------------
    # dirty flag
    # -------------------------
    @property
    def dirty(self) -> bool:
        return self._dirty

    def mark_dirty(self) -> None:
        self._dirty = True

    def consume_dirty(self) -> bool:
        """Return the flag and clear it."""
        was = self._dirty
        self._dirty = False
        return was

    def records(self, tickers: Optional[Iterable[str]] = None) -> List[InstrumentRecord]:
        if tickers is None:
            return [self._rows[t] for t in sorted(self._rows)]
        return [self._rows[t] for t in tickers if t in self._rows]
