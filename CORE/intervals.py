# ============================================================
# FILE: CORE/intervals.py
# ROLE: Funding-interval inference (timestamp deltas) + per-venue override tables.
# ============================================================

from __future__ import annotations

from typing import Dict, Mapping, Optional

from c_utils import MS_PER_HOUR, Utils

MIN_INTERVAL_MS = 30 * 60 * 1000
MAX_INTERVAL_MS = 24 * MS_PER_HOUR


def infer_hours(prev_next_ms: Optional[int], next_ms: Optional[int]) -> Optional[float]:
    """Interval from two successive next-settlement timestamps.

    Only a strictly increasing step inside [30m, 24h] counts. Anything else
    (reconnect resending the same value, a gap of several settlements)
    is noise and yields None.
    """
    if not prev_next_ms or not next_ms:
        return None
    delta = next_ms - prev_next_ms
    if delta <= 0:
        return None
    if delta < MIN_INTERVAL_MS or delta > MAX_INTERVAL_MS:
        return None
    return delta / MS_PER_HOUR


def exact_hours(funding_ms: Optional[int], next_ms: Optional[int]) -> Optional[float]:
    """Interval from one payload carrying both settlement and next-settlement time."""
    if funding_ms is None or next_ms is None or next_ms <= funding_ms:
        return None
    hours = (next_ms - funding_ms) / MS_PER_HOUR
    if 0 < hours <= 24:
        return hours
    return None


def valid_override_hours(value) -> Optional[float]:
    h = Utils.finite_float(value)
    if h is None or h <= 0 or h > 24:
        return None
    return h


class FundingIntervalBook:
    """Per-venue interval resolution.

    Precedence: override table > last observed (inferred/exact) value > venue default.
    The override table is replaced wholesale on every refresh, so a ticker that
    drops out of it falls back to the observed/default value on the next resolve().
    """

    def __init__(self, venue: str, default_hours: Optional[float] = None):
        self.venue = venue
        self.default_hours = default_hours
        self._overrides: Dict[str, float] = {}

    @property
    def overrides(self) -> Dict[str, float]:
        return dict(self._overrides)

    def replace_overrides(self, table: Mapping[str, float]) -> None:
        self._overrides = dict(table)

    def override(self, ticker: str) -> Optional[float]:
        return self._overrides.get(ticker)

    def resolve(self, ticker: str, observed: Optional[float]) -> Optional[float]:
        ov = self._overrides.get(ticker)
        if ov is not None:
            return ov
        if observed is not None:
            return observed
        return self.default_hours
