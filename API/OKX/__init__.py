# ============================================================
# FILE: API/OKX/__init__.py
# ROLE: OKX SWAP public feeds (listing/mark price/24h ticker/funding WS)
# NOTE: Self-contained, aiohttp-only.
# ============================================================

__all__ = ["client", "symbol", "price", "ticker", "funding"]
