# ============================================================
# FILE: CORE/universe.py
# ROLE: Per-venue active instrument sets + common universe (intersection) + store pruning.
# ============================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set

from c_log import UnifiedLogger
from CORE.store import InstrumentStore


@dataclass
class SymbolUniverse:
    # ex -> {canon}; empty set == listing not available yet
    per_exchange_sets: Dict[str, Set[str]] = field(default_factory=dict)
    # ex -> {canon: raw}
    per_exchange_maps: Dict[str, Dict[str, str]] = field(default_factory=dict)
    # None == unconstrained
    common: Optional[Set[str]] = None


UniverseListener = Callable[[str, Dict[str, str]], None]


class UniverseResolver:
    """Tracks each venue's listing and the intersection across venues.

    A venue with an empty set (listing never fetched, or an endpoint hiccup
    returning nothing) imposes no constraint: the common universe is then
    None and nothing is pruned. Availability over strictness.

    The only component allowed to delete store records.
    """

    def __init__(self, *, store: InstrumentStore, venues: Iterable[str], logger: UnifiedLogger):
        self.store = store
        self.logger = logger
        self.universe = SymbolUniverse(
            per_exchange_sets={str(v): set() for v in venues},
            per_exchange_maps={str(v): {} for v in venues},
        )
        self._listeners: List[UniverseListener] = []

    def add_listener(self, fn: UniverseListener) -> None:
        """fn(venue, {canon: raw}) called after every venue update."""
        self._listeners.append(self.logger.total_exception_decor(fn, context="UNIVERSE"))

    @staticmethod
    def _intersection(per_sets: Mapping[str, Set[str]]) -> Optional[Set[str]]:
        common: Optional[Set[str]] = None
        for s in per_sets.values():
            if not s:
                return None
            common = set(s) if common is None else (common & s)
        return common

    def common_universe(self) -> Optional[Set[str]]:
        c = self.universe.common
        return None if c is None else set(c)

    def admits(self, ticker: str) -> bool:
        """True when a feed may create/update this ticker."""
        c = self.universe.common
        return c is None or ticker in c

    def venue_map(self, venue: str) -> Dict[str, str]:
        return dict(self.universe.per_exchange_maps.get(venue, {}))

    def update_venue_universe(self, venue: str, symbol_map: Mapping[str, str]) -> List[str]:
        """Replace one venue's active set ({canon: raw}), recompute, prune. Returns removed tickers."""
        if venue not in self.universe.per_exchange_sets:
            raise KeyError(f"unknown venue: {venue}")

        cmap = dict(symbol_map)
        prev = self.universe.per_exchange_sets[venue]
        self.universe.per_exchange_maps[venue] = cmap
        self.universe.per_exchange_sets[venue] = set(cmap)
        self.universe.common = self._intersection(self.universe.per_exchange_sets)

        removed: List[str] = []
        if self.universe.common is not None:
            removed = self.store.prune(self.universe.common)
        self.store.mark_dirty()

        if not cmap:
            self.logger.warning(f"[UNIVERSE] {venue}: empty listing -> no constraint from this venue")
        elif set(cmap) != prev:
            common_n = "n/a" if self.universe.common is None else len(self.universe.common)
            self.logger.info(
                f"[UNIVERSE] {venue}: {len(cmap)} symbols | common={common_n} | pruned={len(removed)}"
                + (f" sample={','.join(sorted(removed)[:10])}" if removed else "")
            )

        for fn in list(self._listeners):
            fn(venue, dict(cmap))
        return removed
