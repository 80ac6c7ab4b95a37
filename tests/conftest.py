import json
from types import SimpleNamespace

import aiohttp
import pytest

from c_log import UnifiedLogger
from CORE.feeds import FeedContext, FeedRegistry
from CORE.intervals import FundingIntervalBook
from CORE.store import InstrumentStore
from CORE.symbols import BINANCE, OKX, VENUES
from CORE.universe import UniverseResolver


def text_msg(payload):
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data)


def closed_msg():
    return SimpleNamespace(type=aiohttp.WSMsgType.CLOSED, data=None)


class FakeWS:
    """Scripted ws: yields the given messages, then reports the socket closed."""

    def __init__(self, messages=(), on_receive=None):
        self._msgs = list(messages)
        self.on_receive = on_receive
        self.sent = []
        self.closed = False

    async def receive(self, timeout=None):
        if self.on_receive is not None:
            self.on_receive()
        if self._msgs:
            return self._msgs.pop(0)
        return closed_msg()

    async def send_str(self, data):
        self.sent.append(data)

    async def close(self):
        self.closed = True


class FakeApi:
    """Stands in for RestJson: returns (or raises) queued responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def get_json(self, path, params=None):
        self.calls.append((path, params))
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


@pytest.fixture
def logger(tmp_path):
    return UnifiedLogger(name="tests", log_dir=str(tmp_path / "logs"), context="TEST")


@pytest.fixture
def store():
    return InstrumentStore(bn_default_interval_hours=8.0)


@pytest.fixture
def registry():
    return FeedRegistry()


@pytest.fixture
def resolver(store, logger):
    return UniverseResolver(store=store, venues=VENUES, logger=logger)


@pytest.fixture
def ctx(store, resolver, registry, logger):
    return FeedContext(store=store, universe=resolver, registry=registry, logger=logger, quote="USDT")


@pytest.fixture
def bn_book():
    return FundingIntervalBook(BINANCE, default_hours=8.0)


@pytest.fixture
def okx_book():
    return FundingIntervalBook(OKX, default_hours=None)
