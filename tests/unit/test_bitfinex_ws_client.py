"""
Unit Tests for Bitfinex WebSocket Client

These tests replace websockets.connect with an in-memory connection and
verify that:
- Frames sent before the connection opens are queued, then flushed in order
- Incoming frames are decoded; undecodable ones are skipped
- An abnormal close ends the message iteration without raising

Run with:
    pytest tests/unit/test_bitfinex_ws_client.py -v
"""

import json

import pytest
import websockets

from core.schemas import TickerSnapshot
from exchanges.bitfinex import ws_client as ws_module
from exchanges.bitfinex.messages import Heartbeat, SubscribedEvent
from exchanges.bitfinex.ws_client import BitfinexWSClient


class FakeConnection:
    """In-memory websocket connection."""

    def __init__(self, incoming=(), fail_with=None):
        self.sent = []
        self.closed = False
        self._incoming = list(incoming)
        self._fail_with = fail_with

    async def send(self, frame):
        self.sent.append(json.loads(frame))

    async def close(self):
        self.closed = True

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self._incoming:
            yield frame
        if self._fail_with is not None:
            raise self._fail_with


@pytest.fixture
def fake_connect(monkeypatch):
    """Patch websockets.connect; returns the list of opened connections."""
    opened = []
    state = {"incoming": (), "fail_with": None}

    async def connect(url, open_timeout=None):
        conn = FakeConnection(state["incoming"], state["fail_with"])
        opened.append((url, conn))
        return conn

    monkeypatch.setattr(ws_module.websockets, "connect", connect)
    return opened, state


class TestQueuedSends:

    @pytest.mark.asyncio
    async def test_subscriptions_queued_until_connected(self, fake_connect):
        opened, _ = fake_connect
        client = BitfinexWSClient(url="wss://example.test/ws")

        await client.subscribe_ticker("btcusd")
        await client.subscribe_ticker("ethusd")
        assert client.pending == 2
        assert not client.connected

        await client.connect()

        url, conn = opened[0]
        assert url == "wss://example.test/ws"
        assert client.pending == 0
        assert conn.sent == [
            {"event": "subscribe", "channel": "ticker", "pair": "btcusd"},
            {"event": "subscribe", "channel": "ticker", "pair": "ethusd"},
        ]

    @pytest.mark.asyncio
    async def test_send_when_connected_goes_straight_out(self, fake_connect):
        opened, _ = fake_connect
        client = BitfinexWSClient()
        await client.connect()

        await client.subscribe_ticker("btcusd")

        assert client.pending == 0
        assert opened[0][1].sent == [{"event": "subscribe", "channel": "ticker", "pair": "btcusd"}]

    @pytest.mark.asyncio
    async def test_close_is_idempotent_and_drops_queue(self, fake_connect):
        opened, _ = fake_connect
        client = BitfinexWSClient()
        await client.connect()

        await client.close()
        await client.close()
        await client.subscribe_ticker("btcusd")
        await client.close()

        assert opened[0][1].closed
        assert client.pending == 0
        assert not client.connected


class TestMessages:

    @pytest.mark.asyncio
    async def test_decodes_and_skips_bad_frames(self, fake_connect):
        _, state = fake_connect
        state["incoming"] = [
            '{"event": "subscribed", "channel": "ticker", "chanId": 5, "pair": "BTCUSD"}',
            "garbage",
            '[5, "hb"]',
            json.dumps([5, 1.0, 1.0, 2.0, 1.0, 0, 0, 1.5, 10.0, 3.0, 0.5]),
        ]
        client = BitfinexWSClient()
        await client.connect()

        messages = [m async for m in client.messages()]

        assert [type(m) for m in messages] == [SubscribedEvent, Heartbeat, TickerSnapshot]

    @pytest.mark.asyncio
    async def test_abnormal_close_ends_iteration(self, fake_connect):
        _, state = fake_connect
        state["incoming"] = ['[5, "hb"]']
        state["fail_with"] = websockets.ConnectionClosed(None, None)
        client = BitfinexWSClient()
        await client.connect()

        messages = [m async for m in client.messages()]

        assert len(messages) == 1

    @pytest.mark.asyncio
    async def test_messages_requires_connection(self):
        client = BitfinexWSClient()
        with pytest.raises(RuntimeError):
            async for _ in client.messages():
                pass
