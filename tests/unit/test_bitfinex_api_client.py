"""
Unit Tests for Bitfinex API Client

Run with:
    pytest tests/unit/test_bitfinex_api_client.py -v
"""

import pytest
import pytest_asyncio

from core.errors import MalformedResponseError
from exchanges.bitfinex.api_client import BitfinexAPIClient


@pytest_asyncio.fixture
async def api_client():
    """Create a BitfinexAPIClient instance for testing"""
    async with BitfinexAPIClient() as client:
        yield client


class TestGetSymbols:

    @pytest.mark.asyncio
    async def test_returns_pairs(self, api_client, monkeypatch):
        async def mock_get(path, params=None):
            assert path == "/v1/symbols"
            return ["btcusd", "ltcbtc"]

        monkeypatch.setattr(api_client, "_get", mock_get)

        assert await api_client.get_symbols() == ["btcusd", "ltcbtc"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [[], {"error": "x"}, ["btcusd", 1]])
    async def test_rejects_unexpected_bodies(self, api_client, monkeypatch, body):
        async def mock_get(path, params=None):
            return body

        monkeypatch.setattr(api_client, "_get", mock_get)

        with pytest.raises(MalformedResponseError):
            await api_client.get_symbols()


class TestGetOrderBook:

    @pytest.mark.asyncio
    async def test_decodes_string_levels(self, api_client, monkeypatch):
        called = {}

        async def mock_get(path, params=None):
            called["path"] = path
            called["params"] = params
            return {
                "bids": [{"price": "574.61", "amount": "0.14", "timestamp": "1472506127.0"}],
                "asks": [{"price": "574.62", "amount": "2", "timestamp": "1472506126.0"}],
            }

        monkeypatch.setattr(api_client, "_get", mock_get)

        book = await api_client.get_order_book("BTCUSD", limit_bids=10, limit_asks=20)

        assert called["path"] == "/v1/book/BTCUSD"
        assert called["params"] == {"limit_bids": 10, "limit_asks": 20}
        assert book.bids[0].price == 574.61
        assert book.asks[0].usd_total == pytest.approx(1149.24)

    @pytest.mark.asyncio
    async def test_missing_side_is_malformed(self, api_client, monkeypatch):
        async def mock_get(path, params=None):
            return {"bids": []}

        monkeypatch.setattr(api_client, "_get", mock_get)

        with pytest.raises(MalformedResponseError):
            await api_client.get_order_book("BTCUSD")
