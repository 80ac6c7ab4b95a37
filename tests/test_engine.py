import asyncio

import pytest

from conftest import FakeApi
from CORE.engine import DivergenceMonitor, default_view
from CORE.feeds import FeedState
from CORE.publisher import SnapshotPublisher
from CORE.startup_checks import StartupSelfCheck
from CORE.symbols import BINANCE, OKX
from main import ConsoleView


def test_monitor_registers_every_feed(logger):
    monitor = DivergenceMonitor(logger, self_check=False)
    assert sorted(monitor.registry.names()) == sorted([
        "binance_listing", "binance_funding_info", "binance_24h", "binance_ws",
        "okx_listing", "okx_mark", "okx_24h", "okx_ws",
    ])
    assert monitor.intervals[BINANCE].default_hours == 8.0
    assert monitor.intervals[OKX].default_hours is None


def test_okx_listing_reaches_funding_stream(logger):
    monitor = DivergenceMonitor(logger, self_check=False)
    okx = monitor.exchanges[1]
    okx.listing.apply({"code": "0", "data": [{"instId": "BTC-USDT-SWAP", "state": "live"}]})
    assert okx.funding._desired == {"BTC-USDT-SWAP"}


def test_listing_polls_build_common_universe(logger):
    monitor = DivergenceMonitor(logger, self_check=False)
    bn, okx = monitor.exchanges
    monitor.store.get_or_create("ETHUSDT")

    async def scenario():
        bn.listing.api = FakeApi({"symbols": [
            {"symbol": "BTCUSDT", "contractType": "PERPETUAL", "status": "TRADING", "quoteAsset": "USDT"},
        ]})
        okx.listing.api = FakeApi({"code": "0", "data": [
            {"instId": "BTC-USDT-SWAP", "state": "live"},
            {"instId": "ETH-USDT-SWAP", "state": "live"},
        ]})
        assert await bn.listing.poll_once()
        assert await okx.listing.poll_once()

    asyncio.run(scenario())
    assert monitor.universe.common_universe() == {"BTCUSDT"}
    assert "ETHUSDT" not in monitor.store


def test_stop_before_run_shuts_down_cleanly(logger):
    async def scenario():
        monitor = DivergenceMonitor(logger, self_check=False)
        monitor.stop()
        await asyncio.wait_for(monitor.run_forever(), timeout=2)
        return monitor

    monitor = asyncio.run(scenario())
    assert monitor.registry.get("binance_ws").state == FeedState.CLOSED
    assert monitor.registry.get("okx_ws").state == FeedState.CLOSED
    assert monitor._tasks == []


def test_default_view_uses_configured_sort():
    view = default_view()
    assert view.search == ""
    assert view.sort.dir in ("asc", "desc")


def test_self_check_passes_with_shipped_config(logger, tmp_path):
    report = StartupSelfCheck(logger, log_dir=str(tmp_path / "check")).run()
    assert report.ok, report.errors
    assert (tmp_path / "check").is_dir()


def test_console_view_renders_rows(store, registry, logger):
    r = store.get_or_create("BTCUSDT")
    r.bn_price, r.okx_price = 100.0, 101.0
    r.bn_funding, r.okx_funding = 0.0001, -0.0001
    r.bn_vol_24h = 1_500_000.0
    store.mark_dirty()

    publisher = SnapshotPublisher(store=store, registry=registry, logger=logger)
    got = []
    publisher.subscribe(got.append, default_view())
    asyncio.run(publisher.tick())

    lines = ConsoleView(logger, top=5).render(got[0])
    body = "\n".join(lines)
    assert "BTCUSDT" in body
    assert "1.000%" in body
    assert "1.50M" in body
    assert "8h/-" in body


def test_cross_venue_price_divergence_end_to_end(logger):
    monitor = DivergenceMonitor(logger, self_check=False)
    bn, okx = monitor.exchanges
    got = []
    monitor.subscribe(got.append)

    bn.price.handle_text('[{"s": "BTCUSDT", "p": "100", "r": "0.0001", "T": 1700000000000}]')
    okx.mark.apply({"code": "0", "data": [{"instId": "BTC-USDT-SWAP", "markPx": "101"}]})
    asyncio.run(monitor.publisher.tick())

    (r,) = got[0].rows
    assert r.ticker == "BTCUSDT"
    assert r.price_diff == pytest.approx(0.01)
    assert r.bn_interval_hours == 8.0
    assert len(got[0].health) == 8
