# ============================================================
# FILE: CORE/symbols.py
# ROLE: Symbol canonicalization (venue-native id -> canonical ticker)
# ============================================================

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Optional

BINANCE = "BINANCE"
OKX = "OKX"
VENUES = (BINANCE, OKX)

_BASE_REGEX = re.compile(r"^[A-Z0-9]+$")


class SymbolNormalizer:
    """Maps each venue's native id into one canonical ticker: BASE + QUOTE (uppercase).

    Examples:
        BINANCE: BTCUSDT        -> BTCUSDT
        OKX:     BTC-USDT-SWAP  -> BTCUSDT
        OKX:     BTC-USDT       -> BTCUSDT

    Anything that does not end up as <alnum base><quote> is "not applicable"
    and returned as None. Never raises.
    """

    @staticmethod
    def is_canonical(ticker: Any, quote: str = "USDT") -> bool:
        if not isinstance(ticker, str):
            return False
        q = (quote or "USDT").upper()
        if not ticker.endswith(q):
            return False
        base = ticker[: -len(q)]
        return bool(base) and bool(_BASE_REGEX.match(base))

    @classmethod
    def canonical(cls, base: str, quote: str = "USDT") -> Optional[str]:
        ticker = f"{(base or '').strip().upper()}{(quote or '').strip().upper()}"
        return ticker if cls.is_canonical(ticker, quote) else None

    # -------------------------
    # Parsers (raw -> canonical)
    # -------------------------
    @classmethod
    def from_binance(cls, sym: Any, quote: str = "USDT") -> Optional[str]:
        # Typical: BTCUSDT. Delivery contracts (BTCUSDT_250328) are rejected.
        if not isinstance(sym, str):
            return None
        s = sym.strip().upper()
        return s if cls.is_canonical(s, quote) else None

    @classmethod
    def from_okx(cls, inst_id: Any, quote: str = "USDT") -> Optional[str]:
        # Typical: BTC-USDT-SWAP. Futures (BTC-USDT-250328) and options are rejected.
        if not isinstance(inst_id, str):
            return None
        s = inst_id.strip().upper()
        if s.endswith("-SWAP"):
            s = s[: -len("-SWAP")]
        parts = s.split("-")
        if len(parts) != 2:
            return None
        base, q = parts
        if q != (quote or "USDT").upper():
            return None
        return cls.canonical(base, q)

    @staticmethod
    def okx_swap_id(ticker: str, quote: str = "USDT") -> Optional[str]:
        """Canonical ticker -> OKX SWAP instId (BTCUSDT -> BTC-USDT-SWAP)."""
        q = (quote or "USDT").upper()
        if not SymbolNormalizer.is_canonical(ticker, q):
            return None
        return f"{ticker[: -len(q)]}-{q}-SWAP"

    @classmethod
    def map_binance(cls, raw_symbols: Iterable[Any], quote: str = "USDT") -> Dict[str, str]:
        """{canonical: raw} for the applicable Binance symbols."""
        out: Dict[str, str] = {}
        for raw in raw_symbols:
            canon = cls.from_binance(raw, quote)
            if canon:
                out[canon] = str(raw).strip().upper()
        return out

    @classmethod
    def map_okx(cls, raw_ids: Iterable[Any], quote: str = "USDT") -> Dict[str, str]:
        """{canonical: instId} for the applicable OKX instruments."""
        out: Dict[str, str] = {}
        for raw in raw_ids:
            canon = cls.from_okx(raw, quote)
            if canon:
                out[canon] = str(raw).strip().upper()
        return out
