# ============================================================
# FILE: CORE/arb_math.py
# ROLE: Pure math for cross-venue comparison (divergence + unit conversion).
# ============================================================

from __future__ import annotations

import math
from typing import Optional


def _finite(x: object) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool) and math.isfinite(x)


class ArbMath:
    """Pure math helpers. No IO, no cache access, no side effects.

    Results are recomputed on every snapshot and never stored on records.
    """

    @staticmethod
    def price_divergence(bn_price: Optional[float], okx_price: Optional[float]) -> Optional[float]:
        """|okx - bn| / bn as a fraction (0.01 == 1%).

        None when either price is missing/non-finite or the Binance price is zero.
        """
        if not _finite(bn_price) or not _finite(okx_price):
            return None
        if bn_price == 0:
            return None
        return abs((okx_price - bn_price) / bn_price)

    @staticmethod
    def funding_divergence(bn_funding: Optional[float], okx_funding: Optional[float]) -> Optional[float]:
        """|okx - bn| in rate units (fractions)."""
        if not _finite(bn_funding) or not _finite(okx_funding):
            return None
        return abs(okx_funding - bn_funding)

    @staticmethod
    def convert_base_volume(base_vol: Optional[float], price: Optional[float]) -> Optional[float]:
        """Base-currency volume -> quote-currency volume."""
        if not _finite(base_vol) or not _finite(price):
            return None
        return base_vol * price
