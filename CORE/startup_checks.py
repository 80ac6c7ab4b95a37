# ============================================================
# FILE: CORE/startup_checks.py
# ROLE: Startup config/runtime self-checks (best-effort validation)
# ============================================================

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from const import (
    BINANCE_24H_POLL_SEC,
    BINANCE_DEFAULT_INTERVAL_HOURS,
    BINANCE_FUNDING_INFO_POLL_SEC,
    BINANCE_LISTING_POLL_SEC,
    BINANCE_RECONNECT_SEC,
    BINANCE_WS_URL,
    CONFIG_DEFAULTS_USED,
    DEFAULT_SORT_KEY,
    HTTP_TIMEOUT_SEC,
    OKX_24H_POLL_SEC,
    OKX_IDLE_PING_SEC,
    OKX_LISTING_POLL_SEC,
    OKX_MARK_POLL_SEC,
    OKX_RECONNECT_SEC,
    OKX_SUBSCRIBE_DELAY_SEC,
    OKX_WS_URL,
    UI_REFRESH_SEC,
)
from CORE.publisher import SORT_KEYS


@dataclass
class StartupSelfCheckReport:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    infos: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class StartupSelfCheck:
    """Lightweight startup checks.

    Goals:
    - catch obvious config mistakes early (with readable logs),
    - create the log dir,
    - avoid hard-crash from trivial env/config issues.

    Does NOT perform network I/O.
    """

    def __init__(self, logger, log_dir: Optional[str] = None):
        self.logger = logger
        self.log_dir = Path(log_dir or getattr(logger, "log_dir", "logs"))

    def run(self) -> StartupSelfCheckReport:
        r = StartupSelfCheckReport()
        self._check_runtime_dirs(r)
        self._check_applied_defaults(r)
        self._check_timers(r)
        self._check_urls(r)
        self._check_intervals(r)
        self._check_view(r)
        self._emit(r)
        return r

    def _check_runtime_dirs(self, r: StartupSelfCheckReport) -> None:
        path = self.log_dir
        try:
            path.mkdir(parents=True, exist_ok=True)
            test = path / ".write_test.tmp"
            test.write_text("ok", encoding="utf-8")
            test.unlink(missing_ok=True)
            r.infos.append(f"runtime dir OK: {path.as_posix()}")
        except Exception as e:
            r.errors.append(f"runtime dir not writable: {path.as_posix()} ({e})")

    def _check_applied_defaults(self, r: StartupSelfCheckReport) -> None:
        for item in CONFIG_DEFAULTS_USED:
            r.infos.append(f"config default applied: {item}")

    def _check_timers(self, r: StartupSelfCheckReport) -> None:
        def _positive(name: str, value) -> None:
            try:
                v = float(value)
            except Exception:
                r.errors.append(f"{name} must be numeric, got {value!r}")
                return
            if v <= 0:
                r.errors.append(f"{name} must be > 0, got {v}")

        for name, value in (
            ("runtime.refresh_sec", UI_REFRESH_SEC),
            ("feeds.binance.ticker_poll_sec", BINANCE_24H_POLL_SEC),
            ("feeds.binance.funding_info_poll_sec", BINANCE_FUNDING_INFO_POLL_SEC),
            ("feeds.binance.listing_poll_sec", BINANCE_LISTING_POLL_SEC),
            ("feeds.binance.reconnect_sec", BINANCE_RECONNECT_SEC),
            ("feeds.okx.mark_poll_sec", OKX_MARK_POLL_SEC),
            ("feeds.okx.ticker_poll_sec", OKX_24H_POLL_SEC),
            ("feeds.okx.listing_poll_sec", OKX_LISTING_POLL_SEC),
            ("feeds.okx.reconnect_sec", OKX_RECONNECT_SEC),
            ("feeds.okx.idle_ping_sec", OKX_IDLE_PING_SEC),
            ("http.timeout_sec", HTTP_TIMEOUT_SEC),
        ):
            _positive(name, value)

        if OKX_SUBSCRIBE_DELAY_SEC < 0:
            r.errors.append(f"feeds.okx.subscribe_delay_sec must be >= 0, got {OKX_SUBSCRIBE_DELAY_SEC}")
        if OKX_IDLE_PING_SEC >= 30:
            r.warnings.append(f"feeds.okx.idle_ping_sec={OKX_IDLE_PING_SEC:g}s: OKX drops sockets idle for 30s")

        # a poll faster than the publish tick only burns requests
        for name, value in (
            ("feeds.binance.ticker_poll_sec", BINANCE_24H_POLL_SEC),
            ("feeds.okx.mark_poll_sec", OKX_MARK_POLL_SEC),
            ("feeds.okx.ticker_poll_sec", OKX_24H_POLL_SEC),
        ):
            if 0 < float(value) < float(UI_REFRESH_SEC):
                r.warnings.append(f"{name}={value:g}s < runtime.refresh_sec={UI_REFRESH_SEC:g}s")

    def _check_urls(self, r: StartupSelfCheckReport) -> None:
        for name, url in (("feeds.binance.ws_url", BINANCE_WS_URL), ("feeds.okx.ws_url", OKX_WS_URL)):
            if not str(url).startswith(("ws://", "wss://")):
                r.errors.append(f"{name} must be a ws:// or wss:// URL, got {url!r}")

    def _check_intervals(self, r: StartupSelfCheckReport) -> None:
        h = BINANCE_DEFAULT_INTERVAL_HOURS
        if h is None:
            r.infos.append("feeds.binance.default_interval_hours=None (unknown until inferred)")
        elif not (0 < float(h) <= 24):
            r.errors.append(f"feeds.binance.default_interval_hours must be in (0, 24], got {h}")

    def _check_view(self, r: StartupSelfCheckReport) -> None:
        if DEFAULT_SORT_KEY not in SORT_KEYS:
            r.warnings.append(f"runtime.default_sort={DEFAULT_SORT_KEY!r} unknown; falling back to price_diff")

    def _emit(self, r: StartupSelfCheckReport) -> None:
        for msg in r.infos:
            self._safe_log("info", f"[SELF-CHECK] {msg}")
        for msg in r.warnings:
            self._safe_log("warning", f"[SELF-CHECK] {msg}")
        for msg in r.errors:
            self._safe_log("error", f"[SELF-CHECK] {msg}")

        if r.ok:
            self._safe_log("info", "[SELF-CHECK] OK")
        else:
            self._safe_log("error", f"[SELF-CHECK] FAILED: {len(r.errors)} error(s)")

    def _safe_log(self, level: str, text: str) -> None:
        fn = getattr(self.logger, level, None)
        if callable(fn):
            try:
                fn(text)
                return
            except Exception:
                pass
        print(text)
