"""
Fakes shared by the unit tests.

Nothing here touches the network: REST clients are replaced with coroutine
functions and the Bitfinex stream with a queue-backed fake.
"""

import asyncio
from typing import Dict, List, Optional

from core.data_source import DataSource, Producer, SourceState
from core.errors import ExchangeAPIError
from core.schemas import OrderBookSnapshot, TickerSnapshot


# ============================================
# Sinks
# ============================================

class RecordingProducer(Producer):
    """Keeps every produce() call as (batch, tag)."""

    def __init__(self):
        self.calls = []

    def produce(self, batch, tag=None):
        self.calls.append((list(batch), tag))


class ExplodingProducer(Producer):
    """Raises on every produce() call."""

    def __init__(self):
        self.calls = 0

    def produce(self, batch, tag=None):
        self.calls += 1
        raise RuntimeError("sink unavailable")


# ============================================
# Builders
# ============================================

def make_ticker(buy=100.0, sell=101.0, pair=None, channel_id=None, volume=5000.0) -> TickerSnapshot:
    return TickerSnapshot(
        pair=pair,
        channel_id=channel_id,
        last_price=(buy + sell) / 2,
        buy=buy,
        sell=sell,
        high=110.0,
        low=90.0,
        volume=volume,
    )


def make_book(pair: str) -> OrderBookSnapshot:
    return OrderBookSnapshot.from_levels(pair, bids=[(99, 1)], asks=[(101, 2)])


# ============================================
# Fake Exchange Clients
# ============================================

class FakeKucoinClient:
    """
    Stand-in for KucoinAPIClient.

    Attributes:
        tickers: Listing returned by get_tickers (None makes every call fail)
        failing_books: Pairs whose order book always fails
        book_calls: Number of get_order_book calls per pair
    """

    def __init__(self, tickers: Optional[Dict[str, TickerSnapshot]], failing_books=()):
        self.tickers = tickers
        self.failing_books = set(failing_books)
        self.ticker_calls = 0
        self.book_calls: Dict[str, int] = {}

    async def get_tickers(self, market="USDT"):
        self.ticker_calls += 1
        if self.tickers is None:
            raise ExchangeAPIError("kucoin", "/v1/market/open/symbols", "boom", status=500)
        return dict(self.tickers)

    async def get_order_book(self, pair, limit=200):
        self.book_calls[pair] = self.book_calls.get(pair, 0) + 1
        if pair in self.failing_books:
            raise ExchangeAPIError("kucoin", "/v1/open/orders", "boom", status=503)
        return make_book(pair)


class FakeBitfinexClient:
    """Stand-in for BitfinexAPIClient."""

    def __init__(self, symbols: List[str], failing_books=()):
        self.symbols = symbols
        self.failing_books = set(failing_books)
        self.symbol_calls = 0

    async def get_symbols(self):
        self.symbol_calls += 1
        return list(self.symbols)

    async def get_order_book(self, pair, limit_bids=50, limit_asks=50):
        if pair in self.failing_books:
            raise ExchangeAPIError("bitfinex", f"/v1/book/{pair}", "boom", status=500)
        return make_book(pair)


class FakeStream:
    """
    Queue-backed stand-in for BitfinexWSClient.

    Tests push decoded messages with feed() and end the current connection
    with drop(), the way a server-side close ends messages().
    """

    _CLOSE = object()

    def __init__(self):
        self.connects = 0
        self.closes = 0
        self.subscriptions: List[str] = []
        self.calls: List[str] = []
        self._queue: asyncio.Queue = asyncio.Queue()

    @property
    def connected(self):
        return self.connects > self.closes

    async def connect(self):
        self.connects += 1
        self.calls.append("connect")

    async def close(self):
        self.closes += 1

    async def subscribe_ticker(self, pair):
        self.subscriptions.append(pair)
        self.calls.append(f"subscribe:{pair}")

    def feed(self, message):
        self._queue.put_nowait(message)

    def drop(self):
        self._queue.put_nowait(self._CLOSE)

    async def messages(self):
        while True:
            message = await self._queue.get()
            if message is self._CLOSE:
                return
            yield message


async def wait_until(predicate, timeout=2.0):
    """Poll a condition while letting the source tasks run."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)




class StubSource(DataSource):
    """Data source recording lifecycle calls."""

    def __init__(self, producer, name, fail_start=False, fail_stop=False):
        self.name = name
        self.display_name = name.title()
        self.tag = name.upper()
        super().__init__(producer)
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.started = 0
        self.stopped = 0

    async def start(self):
        self.started += 1
        if self.fail_start:
            raise RuntimeError("cannot start")
        self.state = SourceState.RUNNING

    async def stop(self):
        self.stopped += 1
        if self.fail_stop:
            raise RuntimeError("cannot stop")
        self.state = SourceState.STOPPED

    def asset_name(self, pair):
        return pair
