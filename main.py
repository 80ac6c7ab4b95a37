# ============================================================
# FILE: main.py
# ROLE: Entry point + console consumer (top rows of every snapshot)
# ============================================================

import asyncio

from const import CONSOLE_TOP
from c_log import UnifiedLogger, log_time
from c_utils import Utils
from CORE.engine import DivergenceMonitor
from CORE.publisher import Snapshot


class ConsoleView:
    """Renders the first N rows of each snapshot plus one health line per feed."""

    def __init__(self, logger: UnifiedLogger, top: int = CONSOLE_TOP):
        self.logger = logger
        self.top = max(1, int(top))

    def render(self, snap: Snapshot) -> list:
        lines = [
            f"[SNAPSHOT] v{snap.version} @ {log_time(snap.ts_ms)} | rows={len(snap.rows)}/{snap.total}"
            f" | sort={snap.sort.key} {snap.sort.dir}" + (f" | search={snap.search!r}" if snap.search else "")
        ]
        health = []
        for h in snap.health:
            mark = "ok" if h.ok else "DOWN"
            health.append(f"{h.name}={mark}({Utils.format_age(h.last_update_ms, snap.ts_ms)})")
        lines.append("  feeds: " + " ".join(health))

        lines.append(
            f"  {'TICKER':<14} {'BN PRICE':>14} {'OKX PRICE':>14} {'DIFF':>9} "
            f"{'BN FUND':>9} {'OKX FUND':>9} {'F.DIFF':>9} {'INT':>7} {'BN VOL':>9} {'OKX VOL':>9}"
        )
        for r in snap.rows[:self.top]:
            intervals = f"{Utils.fmt_interval(r.bn_interval_hours) or '-'}/{Utils.fmt_interval(r.okx_interval_hours) or '-'}"
            lines.append(
                f"  {r.ticker:<14} {Utils.fmt_num(r.bn_price):>14} {Utils.fmt_num(r.okx_price):>14} "
                f"{Utils.fmt_pct(r.price_diff, 3):>9} {Utils.fmt_pct(r.bn_funding):>9} "
                f"{Utils.fmt_pct(r.okx_funding):>9} {Utils.fmt_pct(r.funding_diff):>9} {intervals:>7} "
                f"{Utils.fmt_compact(r.bn_vol_24h):>9} {Utils.fmt_compact(r.okx_vol_24h):>9}"
            )
        return lines

    def __call__(self, snap: Snapshot) -> None:
        self.logger.info("\n".join(self.render(snap)))


def main() -> None:
    logger = UnifiedLogger(name="core", context="MAIN")
    try:
        monitor = DivergenceMonitor(logger=logger)
        monitor.subscribe(ConsoleView(logger.child("CONSOLE")))
        asyncio.run(monitor.run_forever())
    except KeyboardInterrupt:
        logger.info("[APP] stopped by user")
    except Exception as e:
        logger.error(f"[APP] startup/runtime fatal: {e}")
        raise


if __name__ == "__main__":
    main()
