"""
Unit Tests for Kucoin API Client

These tests verify that the KucoinAPIClient:
- Decodes the ticker listing into TickerSnapshot objects keyed by pair
- Decodes order books into OrderBookSnapshot objects
- Treats unsuccessful envelopes as malformed responses
- Works with mocked HTTP responses

Run with:
    pytest tests/unit/test_kucoin_api_client.py -v
"""

import pytest
import pytest_asyncio

from core.errors import MalformedResponseError
from core.schemas import OrderBookSnapshot, TickerSnapshot
from exchanges.kucoin.api_client import KucoinAPIClient


# ============================================
# Fixtures
# ============================================

@pytest_asyncio.fixture
async def api_client():
    """Create a KucoinAPIClient instance for testing"""
    async with KucoinAPIClient() as client:
        yield client


def ticker_record(symbol="BTC-USDT", **overrides):
    record = {
        "coinType": symbol.split("-")[0],
        "coinTypePair": "USDT",
        "symbol": symbol,
        "lastDealPrice": 100.5,
        "buy": 100.0,
        "sell": 101.0,
        "high": 110.0,
        "low": 90.0,
        "vol": 50.0,
        "volValue": 5000.0,
        "changeRate": 0.01,
    }
    record.update(overrides)
    return record


# ============================================
# Tests for the Ticker Listing
# ============================================

class TestGetTickers:
    """Tests for get_tickers method"""

    @pytest.mark.asyncio
    async def test_returns_snapshots_keyed_by_pair(self, api_client, monkeypatch):
        called = {}

        async def mock_get(path, params=None):
            called["path"] = path
            called["params"] = params
            return {"success": True, "code": "OK", "data": [ticker_record(), ticker_record("ETH-USDT", buy=10.0)]}

        monkeypatch.setattr(api_client, "_get", mock_get)

        tickers = await api_client.get_tickers("USDT")

        assert called["path"] == "/v1/market/open/symbols"
        assert called["params"] == {"market": "USDT"}
        assert set(tickers) == {"BTC-USDT", "ETH-USDT"}
        btc = tickers["BTC-USDT"]
        assert isinstance(btc, TickerSnapshot)
        assert btc.buy == 100.0
        assert btc.sell == 101.0
        assert btc.volume == 5000.0
        assert btc.last_price == 100.5

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope_is_malformed(self, api_client, monkeypatch):
        async def mock_get(path, params=None):
            return {"success": False, "code": "ERROR", "data": None}

        monkeypatch.setattr(api_client, "_get", mock_get)

        with pytest.raises(MalformedResponseError):
            await api_client.get_tickers()

    @pytest.mark.asyncio
    async def test_missing_success_flag_is_malformed(self, api_client, monkeypatch):
        async def mock_get(path, params=None):
            return {"data": [ticker_record()]}

        monkeypatch.setattr(api_client, "_get", mock_get)

        with pytest.raises(MalformedResponseError):
            await api_client.get_tickers()

    @pytest.mark.asyncio
    async def test_undecodable_records_are_skipped(self, api_client, monkeypatch):
        """One broken record does not lose the rest of the listing"""
        broken = ticker_record("ETH-USDT")
        del broken["buy"]

        async def mock_get(path, params=None):
            return {"success": True, "data": [ticker_record(), broken]}

        monkeypatch.setattr(api_client, "_get", mock_get)

        tickers = await api_client.get_tickers()

        assert list(tickers) == ["BTC-USDT"]


# ============================================
# Tests for Order Books
# ============================================

class TestGetOrderBook:
    """Tests for get_order_book method"""

    @pytest.mark.asyncio
    async def test_decodes_buy_and_sell_levels(self, api_client, monkeypatch):
        called = {}

        async def mock_get(path, params=None):
            called["params"] = params
            return {
                "success": True,
                "data": {
                    "BUY": [[99.0, 1.0, 99.0], [98.0, 2.0, 196.0]],
                    "SELL": [[101.0, 2.0, 202.0]],
                },
            }

        monkeypatch.setattr(api_client, "_get", mock_get)

        book = await api_client.get_order_book("btc-usdt", limit=50)

        assert called["params"] == {"symbol": "BTC-USDT", "limit": 50}
        assert isinstance(book, OrderBookSnapshot)
        assert book.pair == "BTC-USDT"
        assert [(e.price, e.amount, e.usd_total) for e in book.bids] == [(99.0, 1.0, 99.0), (98.0, 2.0, 196.0)]
        assert book.asks[0].usd_total == 202.0

    @pytest.mark.asyncio
    async def test_missing_side_is_empty(self, api_client, monkeypatch):
        async def mock_get(path, params=None):
            return {"success": True, "data": {"BUY": [[99.0, 1.0, 99.0]]}}

        monkeypatch.setattr(api_client, "_get", mock_get)

        book = await api_client.get_order_book("BTC-USDT")

        assert book.asks == []

    @pytest.mark.asyncio
    async def test_bad_level_is_malformed(self, api_client, monkeypatch):
        async def mock_get(path, params=None):
            return {"success": True, "data": {"BUY": [["abc"]], "SELL": []}}

        monkeypatch.setattr(api_client, "_get", mock_get)

        with pytest.raises(MalformedResponseError):
            await api_client.get_order_book("BTC-USDT")


class TestSessionManagement:

    @pytest.mark.asyncio
    async def test_get_without_session_raises(self):
        client = KucoinAPIClient()
        with pytest.raises(RuntimeError):
            await client.get_tickers()
