from __future__ import annotations

"""Unified configuration loader (single source of truth = cfg.json).

This module intentionally stays thin:
- reads cfg.json
- normalizes types
- exposes runtime constants used by the codebase
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

_CFG_PATH = Path(__file__).resolve().parent / "cfg.json"


# Exposed for startup diagnostics: which defaults were applied because cfg.json omitted a value.
CONFIG_DEFAULTS_USED: list[str] = []


def _load_cfg() -> Dict[str, Any]:
    if not _CFG_PATH.exists():
        raise FileNotFoundError(f"cfg.json not found: {_CFG_PATH}")
    with _CFG_PATH.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise RuntimeError("cfg.json root must be object")
    return data


_CFG: Dict[str, Any] = _load_cfg()


def _get(path: str, default: Any = None) -> Any:
    cur: Any = _CFG
    for part in path.split('.'):
        if not isinstance(cur, dict):
            return default
        cur = cur.get(part)
        if cur is None:
            return default
    return cur


def _first(*values: Any) -> Any:
    for v in values:
        if v is not None:
            return v
    return None


def _cfg(path: str, default: Any) -> Any:
    """Value at path, or default (noted in CONFIG_DEFAULTS_USED)."""
    v = _get(path, None)
    if v is None:
        CONFIG_DEFAULTS_USED.append(f"{path}={default!r}")
        return default
    return v


def _to_bool(v: Any, default: bool = False) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        x = v.strip().lower()
        if x in {"1", "true", "yes", "y", "on"}:
            return True
        if x in {"0", "false", "no", "n", "off"}:
            return False
    return bool(default)


def _to_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _to_float(v: Any, default: float = 0.0) -> float:
    try:
        return float(v)
    except Exception:
        return float(default)


def _norm_none_num(v: Any) -> Optional[float]:
    if v is None:
        return None
    if isinstance(v, str) and v.strip().lower() in {"", "none", "null"}:
        return None
    try:
        return float(v)
    except Exception:
        return None


# ============================================================
# CORE RUNTIME
# ============================================================
QUOTE = str(_cfg("runtime.quote", "USDT") or "USDT").strip().upper() or "USDT"
UI_REFRESH_SEC = _to_float(_cfg("runtime.refresh_sec", 1.0), 1.0)
DEFAULT_SORT_KEY = str(_cfg("runtime.default_sort", "price_diff") or "price_diff").strip().lower()
_sort_dir = str(_cfg("runtime.default_sort_dir", "desc") or "desc").strip().lower()
DEFAULT_SORT_DIR = _sort_dir if _sort_dir in {"asc", "desc"} else "desc"
CONSOLE_TOP = _to_int(_cfg("runtime.console_top", 15), 15)


# ============================================================
# BINANCE (venue A)
# ============================================================
BINANCE_REST_BASE = str(_cfg("feeds.binance.rest_base", "https://fapi.binance.com")).rstrip("/")
BINANCE_WS_URL = str(_cfg("feeds.binance.ws_url", "wss://fstream.binance.com/ws/!markPrice@arr@1s"))
BINANCE_24H_POLL_SEC = _to_float(_cfg("feeds.binance.ticker_poll_sec", 5), 5.0)
# Interval changes are rare; a minute is fine.
BINANCE_FUNDING_INFO_POLL_SEC = _to_float(_cfg("feeds.binance.funding_info_poll_sec", 60), 60.0)
BINANCE_LISTING_POLL_SEC = _to_float(_cfg("feeds.binance.listing_poll_sec", 300), 300.0)
BINANCE_RECONNECT_SEC = _to_float(_cfg("feeds.binance.reconnect_sec", 1.0), 1.0)
BINANCE_DEFAULT_INTERVAL_HOURS = _norm_none_num(_cfg("feeds.binance.default_interval_hours", 8))


# ============================================================
# OKX (venue B)
# ============================================================
OKX_REST_BASE = str(_cfg("feeds.okx.rest_base", "https://www.okx.com")).rstrip("/")
OKX_WS_URL = str(_cfg("feeds.okx.ws_url", "wss://ws.okx.com:8443/ws/v5/public"))
OKX_MARK_POLL_SEC = _to_float(_cfg("feeds.okx.mark_poll_sec", 5), 5.0)
OKX_24H_POLL_SEC = _to_float(_cfg("feeds.okx.ticker_poll_sec", 5), 5.0)
OKX_LISTING_POLL_SEC = _to_float(_cfg("feeds.okx.listing_poll_sec", 300), 300.0)
OKX_RECONNECT_SEC = _to_float(_cfg("feeds.okx.reconnect_sec", 1.0), 1.0)
# OKX drops idle sockets after 30s without traffic.
OKX_IDLE_PING_SEC = _to_float(_cfg("feeds.okx.idle_ping_sec", 25), 25.0)
OKX_SUBSCRIBE_CHUNK = max(1, _to_int(_cfg("feeds.okx.subscribe_chunk", 100), 100))
OKX_SUBSCRIBE_DELAY_SEC = _to_float(_cfg("feeds.okx.subscribe_delay_sec", 0.25), 0.25)


# ============================================================
# HTTP
# ============================================================
HTTP_TIMEOUT_SEC = _to_float(_cfg("http.timeout_sec", 10), 10.0)
HTTP_RETRIES = max(1, _to_int(_cfg("http.retries", 2), 2))


# ============================================================
# LOGGING / DISPLAY / TIME
# ============================================================
LOG_DEBUG = _to_bool(_first(_get("logging.debug"), False), False)
LOG_INFO = _to_bool(_first(_get("logging.info"), True), True)
LOG_WARNING = _to_bool(_first(_get("logging.warning"), True), True)
LOG_ERROR = _to_bool(_first(_get("logging.error"), True), True)
MAX_LOG_LINES = _to_int(_first(_get("logging.max_log_lines"), 2000), 2000)
TIME_ZONE = str(_first(_get("logging.time_zone"), "UTC") or "UTC")
