# ============================================================
# FILE: API/BINANCE/__init__.py
# ROLE: Binance USDT-M Futures public feeds (listing/funding info/24h ticker/mark price WS)
# NOTE: Self-contained, aiohttp-only.
# ============================================================

__all__ = ["client", "symbol", "funding", "ticker", "price"]
