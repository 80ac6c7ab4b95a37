# ============================================================
# FILE: c_utils.py
# ROLE: Small helper utilities (time, safe casting, formatting)
# ============================================================

from __future__ import annotations

import math
import time
from typing import Any, Optional

MS_PER_HOUR = 60 * 60 * 1000


def now() -> int:
    """Return current timestamp in milliseconds."""
    return int(time.time() * 1000)


class Utils:
    @staticmethod
    def finite_float(value: Any) -> Optional[float]:
        """float(value) if it parses to a finite number, else None.

        Booleans are rejected: venues never encode numbers as JSON true/false.
        """
        if value is None or isinstance(value, bool):
            return None
        try:
            x = float(value)
        except (TypeError, ValueError, OverflowError):
            return None
        return x if math.isfinite(x) else None

    @staticmethod
    def epoch_ms(value: Any) -> Optional[int]:
        """Positive epoch-ms integer (venues send it as int or numeric string)."""
        x = Utils.finite_float(value)
        if x is None or x <= 0:
            return None
        return int(x)

    @staticmethod
    def is_finite(value: Any) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)

    # -------------------------
    # display helpers (console consumer)
    # -------------------------
    @staticmethod
    def fmt_num(value: Optional[float]) -> str:
        if not Utils.is_finite(value):
            return "-"
        a = abs(value)
        digits = 2 if a >= 1000 else 4 if a >= 1 else 8
        return f"{value:,.{digits}f}".rstrip("0").rstrip(".")

    @staticmethod
    def fmt_compact(value: Optional[float]) -> str:
        if not Utils.is_finite(value):
            return "-"
        a = abs(value)
        for div, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
            if a >= div:
                return f"{value / div:.2f}{suffix}"
        return f"{value:.2f}"

    @staticmethod
    def fmt_pct(rate: Optional[float], digits: int = 4) -> str:
        """Fraction -> percent string (0.0002 -> 0.0200%)."""
        if not Utils.is_finite(rate):
            return "-"
        return f"{rate * 100:.{digits}f}%"

    @staticmethod
    def fmt_interval(hours: Optional[float]) -> str:
        if not Utils.is_finite(hours):
            return ""
        if abs(hours - round(hours)) < 1e-6:
            return f"{int(round(hours))}h"
        return f"{hours:.1f}h"

    @staticmethod
    def format_age(ms: Optional[int], now_ms: Optional[int] = None) -> str:
        if ms is None:
            return "never"
        total_seconds = max(0, int((now_ms or now()) - int(ms)) // 1000)
        minutes, seconds = divmod(total_seconds, 60)
        if minutes > 0:
            return f"{minutes}m {seconds}s ago"
        return f"{seconds}s ago"
