import asyncio

import pytest

from CORE.publisher import (
    RowView,
    SnapshotPublisher,
    SortState,
    ViewState,
    filter_rows,
    select_rows,
    sort_rows,
)


def row(ticker, price_diff=None, bn_funding=None):
    return RowView(
        ticker=ticker,
        bn_price=None,
        okx_price=None,
        price_diff=price_diff,
        bn_funding=bn_funding,
        okx_funding=None,
        funding_diff=None,
        bn_interval_hours=8.0,
        okx_interval_hours=None,
        bn_vol_24h=None,
        okx_vol_24h=None,
    )


ROWS = [row("AUSDT", 0.01), row("BUSDT", None), row("CUSDT", -0.02), row("DUSDT", 0.05), row("EUSDT", float("nan"))]


def tickers(rows):
    return [r.ticker for r in rows]


def test_sort_missing_last_descending():
    assert tickers(sort_rows(ROWS, SortState("price_diff", "desc"))) == ["DUSDT", "AUSDT", "CUSDT", "BUSDT", "EUSDT"]


def test_sort_missing_last_ascending():
    assert tickers(sort_rows(ROWS, SortState("price_diff", "asc"))) == ["CUSDT", "AUSDT", "DUSDT", "BUSDT", "EUSDT"]


def test_toggle_sort():
    s = SortState("price_diff", "desc")
    s = s.toggle("bn_funding")
    assert (s.key, s.dir) == ("bn_funding", "asc")
    s = s.toggle("bn_funding")
    assert (s.key, s.dir) == ("bn_funding", "desc")
    s = s.toggle("bn_funding")
    assert s.dir == "asc"


def test_unknown_sort_key_rejected():
    with pytest.raises(ValueError):
        SortState("ticker", "asc")
    with pytest.raises(ValueError):
        SortState("price_diff", "up")


def test_filter_case_insensitive_substring():
    rows = [row("BTCUSDT"), row("ETHUSDT"), row("WBTCUSDT")]
    assert tickers(filter_rows(rows, "btc")) == ["BTCUSDT", "WBTCUSDT"]
    assert tickers(filter_rows(rows, "  ")) == ["BTCUSDT", "ETHUSDT", "WBTCUSDT"]


def test_select_rows_filters_then_sorts():
    view = ViewState(search="usdt", sort=SortState("price_diff", "asc"))
    assert tickers(select_rows(ROWS[:4], view)) == ["CUSDT", "AUSDT", "DUSDT", "BUSDT"]


@pytest.fixture
def publisher(store, registry, logger):
    return SnapshotPublisher(store=store, registry=registry, logger=logger, refresh_sec=0.05)


def test_rows_carry_derived_metrics(store, publisher):
    r = store.get_or_create("BTCUSDT")
    r.bn_price, r.okx_price = 100.0, 101.0
    r.bn_funding, r.okx_funding = 0.0001, 0.0003
    rows = publisher.build_rows()
    assert rows[0].price_diff == pytest.approx(0.01)
    assert rows[0].funding_diff == pytest.approx(0.0002)


def test_nothing_published_before_first_mutation(publisher):
    got = []
    publisher.subscribe(got.append)
    assert asyncio.run(publisher.tick()) == 0
    assert got == []


def test_mutations_coalesce_into_one_snapshot(store, publisher):
    got = []
    publisher.subscribe(got.append)

    async def scenario():
        for i in range(100):
            store.get_or_create(f"T{i}USDT").bn_price = float(i)
            store.mark_dirty()
        assert await publisher.tick() == 1
        assert await publisher.tick() == 0

    asyncio.run(scenario())
    assert len(got) == 1
    assert got[0].version == 1
    assert got[0].total == 100


def test_view_change_reemits_without_mutation(store, publisher):
    got = []
    store.get_or_create("BTCUSDT")
    store.get_or_create("ETHUSDT")
    store.mark_dirty()
    sub = publisher.subscribe(got.append)

    async def scenario():
        await publisher.tick()
        sub.set_search("eth")
        assert await publisher.tick() == 1
        sub.toggle_sort("bn_price")
        assert await publisher.tick() == 1
        assert await publisher.tick() == 0

    asyncio.run(scenario())
    assert [len(s.rows) for s in got] == [2, 1, 1]
    assert got[1].search == "eth"
    assert got[1].version == got[0].version
    assert got[2].sort == SortState("bn_price", "asc")


def test_snapshot_is_immutable_copy(store, publisher):
    got = []
    publisher.subscribe(got.append)
    r = store.get_or_create("BTCUSDT")
    r.bn_price = 1.0
    store.mark_dirty()
    asyncio.run(publisher.tick())

    r.bn_price = 2.0
    assert got[0].rows[0].bn_price == 1.0
    with pytest.raises(AttributeError):
        got[0].rows[0].bn_price = 3.0


def test_failing_subscriber_does_not_block_others(store, publisher):
    got = []

    def broken(snap):
        raise RuntimeError("consumer bug")

    async def async_consumer(snap):
        got.append(snap)

    publisher.subscribe(broken)
    publisher.subscribe(async_consumer)
    store.mark_dirty()
    assert asyncio.run(publisher.tick()) == 2
    assert len(got) == 1


def test_unsubscribe(store, publisher):
    got = []
    sub = publisher.subscribe(got.append)
    publisher.unsubscribe(sub)
    publisher.unsubscribe(sub)
    store.mark_dirty()
    asyncio.run(publisher.tick())
    assert got == []


def test_run_publishes_until_closed(store, publisher):
    got = []
    publisher.subscribe(got.append)

    async def scenario():
        task = asyncio.create_task(publisher.run())
        store.mark_dirty()
        await asyncio.sleep(0.12)
        publisher.close()
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(scenario())
    assert len(got) == 1
