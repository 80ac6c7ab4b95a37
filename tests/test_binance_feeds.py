import asyncio
import json

import pytest

from c_utils import MS_PER_HOUR
from conftest import FakeApi
from API.BINANCE.funding import BinanceFundingInfoPoller
from API.BINANCE.price import BinanceMarkPriceStream
from API.BINANCE.symbol import BinanceListingPoller
from API.BINANCE.ticker import Binance24hPoller
from CORE.feeds import PayloadError
from CORE.symbols import BINANCE

T0 = 1_700_000_000_000


def mark_item(symbol="BTCUSDT", price="100.5", rate="0.0001", nxt=T0):
    return {"e": "markPriceUpdate", "s": symbol, "p": price, "r": rate, "T": nxt}


def test_mark_price_stream_updates_price_and_funding(ctx, bn_book):
    feed = BinanceMarkPriceStream(ctx=ctx, intervals=bn_book, url="wss://test")
    n = feed.apply([mark_item(), mark_item("ETHUSDT", "2000", "-0.0002")])

    assert n == 2
    row = ctx.store.get("BTCUSDT")
    assert row.bn_price == 100.5
    assert row.bn_funding == 0.0001
    assert row.bn_interval_hours == 8.0
    assert ctx.store.get("ETHUSDT").bn_funding == -0.0002


def test_mark_price_stream_skips_malformed_items(ctx, bn_book):
    feed = BinanceMarkPriceStream(ctx=ctx, intervals=bn_book, url="wss://test")
    n = feed.apply([
        mark_item(price="abc"),
        {"s": "ETHUSDT", "p": "1"},
        "garbage",
        mark_item("BTCUSDT_250328"),
        mark_item("SOLUSDT", "150", "0.0003"),
    ])

    assert n == 1
    assert ctx.store.tickers() == ["SOLUSDT"]


def test_mark_price_stream_skips_out_of_range_number(ctx, bn_book):
    feed = BinanceMarkPriceStream(ctx=ctx, intervals=bn_book, url="wss://test")
    frame = json.dumps([mark_item(price=10 ** 400), mark_item("ETHUSDT", "2000", "0.0002")])

    assert feed.handle_text(frame) is True
    assert ctx.store.get("BTCUSDT") is None
    assert ctx.store.get("ETHUSDT").bn_price == 2000.0


def test_mark_price_stream_ignores_non_list(ctx, bn_book):
    feed = BinanceMarkPriceStream(ctx=ctx, intervals=bn_book, url="wss://test")
    assert feed.apply({"result": None, "id": 1}) is None


def test_interval_inferred_from_successive_next_funding(ctx, bn_book):
    feed = BinanceMarkPriceStream(ctx=ctx, intervals=bn_book, url="wss://test")
    feed.apply([mark_item(nxt=T0)])
    feed.apply([mark_item(nxt=T0)])
    assert ctx.store.get("BTCUSDT").bn_interval_hours == 8.0

    feed.apply([mark_item(nxt=T0 + 4 * MS_PER_HOUR)])
    assert ctx.store.get("BTCUSDT").bn_interval_hours == 4.0

    # a multi-settlement gap is noise: keep the last good value
    feed.apply([mark_item(nxt=T0 + 40 * MS_PER_HOUR)])
    assert ctx.store.get("BTCUSDT").bn_interval_hours == 4.0


def test_funding_info_override_and_revert(ctx, bn_book):
    stream = BinanceMarkPriceStream(ctx=ctx, intervals=bn_book, url="wss://test")
    info = BinanceFundingInfoPoller(ctx=ctx, api=FakeApi(), intervals=bn_book, interval_sec=60)
    stream.apply([mark_item()])

    assert info.apply([{"symbol": "BTCUSDT", "fundingIntervalHours": 1}, {"symbol": "XUSDT", "fundingIntervalHours": 0}]) == 1
    assert ctx.store.get("BTCUSDT").bn_interval_hours == 1.0

    # stream updates do not undo the override
    stream.apply([mark_item(nxt=T0 + 8 * MS_PER_HOUR)])
    assert ctx.store.get("BTCUSDT").bn_interval_hours == 1.0

    # dropped from the table -> back to the observed value
    info.apply([])
    assert ctx.store.get("BTCUSDT").bn_interval_hours == 8.0


def test_funding_info_revert_to_default(ctx, bn_book):
    info = BinanceFundingInfoPoller(ctx=ctx, api=FakeApi(), intervals=bn_book, interval_sec=60)
    ctx.store.get_or_create("BTCUSDT")
    info.apply([{"symbol": "BTCUSDT", "fundingIntervalHours": 4}])
    assert ctx.store.get("BTCUSDT").bn_interval_hours == 4.0
    info.apply([])
    assert ctx.store.get("BTCUSDT").bn_interval_hours == 8.0


def test_funding_info_rejects_non_list(ctx, bn_book):
    info = BinanceFundingInfoPoller(ctx=ctx, api=FakeApi(), intervals=bn_book, interval_sec=60)
    with pytest.raises(PayloadError):
        info.apply({"code": -1121})


def test_ticker_prefers_quote_volume(ctx, bn_book):
    poller = Binance24hPoller(ctx=ctx, api=FakeApi(), intervals=bn_book, interval_sec=5)
    n = poller.apply([
        {"symbol": "BTCUSDT", "quoteVolume": "123456.5", "volume": "1"},
        {"symbol": "ETHUSDT", "volume": "42"},
        {"symbol": "SOLUSDT", "quoteVolume": "n/a"},
    ])
    assert n == 2
    assert ctx.store.get("BTCUSDT").bn_vol_24h == 123456.5
    assert ctx.store.get("ETHUSDT").bn_vol_24h == 42.0
    assert "SOLUSDT" not in ctx.store


def test_ticker_new_row_gets_override_interval(ctx, bn_book):
    bn_book.replace_overrides({"BTCUSDT": 4.0})
    poller = Binance24hPoller(ctx=ctx, api=FakeApi(), intervals=bn_book, interval_sec=5)
    poller.apply([{"symbol": "BTCUSDT", "quoteVolume": "1"}])
    assert ctx.store.get("BTCUSDT").bn_interval_hours == 4.0


def test_ticker_respects_universe(ctx, bn_book):
    ctx.universe.update_venue_universe(BINANCE, {"BTCUSDT": "BTCUSDT"})
    ctx.universe.update_venue_universe("OKX", {"BTCUSDT": "BTC-USDT-SWAP"})
    poller = Binance24hPoller(ctx=ctx, api=FakeApi(), intervals=bn_book, interval_sec=5)
    poller.apply([{"symbol": "BTCUSDT", "quoteVolume": "1"}, {"symbol": "ETHUSDT", "quoteVolume": "2"}])
    assert ctx.store.tickers() == ["BTCUSDT"]


def test_listing_filters_perpetual_trading_usdt(ctx):
    poller = BinanceListingPoller(ctx=ctx, api=FakeApi(), interval_sec=300)
    payload = {"symbols": [
        {"symbol": "BTCUSDT", "contractType": "PERPETUAL", "status": "TRADING", "quoteAsset": "USDT"},
        {"symbol": "ETHUSDT", "contractType": "PERPETUAL", "status": "SETTLING", "quoteAsset": "USDT"},
        {"symbol": "BTCUSDT_250328", "contractType": "CURRENT_QUARTER", "status": "TRADING", "quoteAsset": "USDT"},
        {"symbol": "BTCUSDC", "contractType": "PERPETUAL", "status": "TRADING", "quoteAsset": "USDC"},
    ]}
    assert poller.apply(payload) == 1
    assert ctx.universe.venue_map(BINANCE) == {"BTCUSDT": "BTCUSDT"}


def test_listing_bad_shape_is_a_failed_poll(ctx):
    poller = BinanceListingPoller(ctx=ctx, api=FakeApi({"msg": "nope"}), interval_sec=300)
    ok = asyncio.run(poller.poll_once())
    assert ok is False
    assert poller.health.ok is False
    assert "malformed" in poller.health.last_error
