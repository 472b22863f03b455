"""
Unit Tests for Bitfinex Stream Message Decoding

Run with:
    pytest tests/unit/test_bitfinex_messages.py -v
"""

import json

import pytest

from core.errors import StreamProtocolError
from core.schemas import TickerSnapshot
from exchanges.bitfinex.messages import (
    ErrorEvent,
    GenericEvent,
    Heartbeat,
    InfoCode,
    InfoEvent,
    RESTART_CODES,
    SubscribedEvent,
    is_heartbeat,
    parse_message,
)


TICKER_FRAME = [2, 236.62, 9.0029, 236.88, 7.1138, -1.02, -0.0043, 236.52, 5191.36754297, 250.01, 220.05]


class TestEvents:

    def test_subscribed_event(self):
        message = parse_message(json.dumps(
            {"event": "subscribed", "channel": "ticker", "chanId": 2, "pair": "BTCUSD"}
        ))
        assert isinstance(message, SubscribedEvent)
        assert message.chan_id == 2
        assert message.pair == "BTCUSD"

    def test_greeting_info_has_no_code(self):
        message = parse_message('{"event": "info", "version": 1}')
        assert isinstance(message, InfoEvent)
        assert message.code is None
        assert message.version == 1

    def test_restart_info_code(self):
        message = parse_message('{"event": "info", "code": 20051, "msg": "Stopping. Please try to reconnect"}')
        assert isinstance(message, InfoEvent)
        assert message.code == InfoCode.RESTART

    def test_engine_restart_info_code(self):
        message = parse_message('{"event": "info", "code": 20059, "msg": "Trading engine restart"}')
        assert isinstance(message, InfoEvent)
        assert message.code == InfoCode.RESTART_ENGINE
        assert message.code in RESTART_CODES
        assert InfoCode.SUSPEND not in RESTART_CODES

    def test_error_event(self):
        message = parse_message('{"event": "error", "msg": "Unknown pair", "code": 10300, "pair": "XXXUSD"}')
        assert isinstance(message, ErrorEvent)
        assert message.code == 10300

    def test_unknown_event_is_generic(self):
        message = parse_message('{"event": "pong", "ts": 1}')
        assert isinstance(message, GenericEvent)
        assert message.event == "pong"


class TestArrays:

    def test_heartbeat(self):
        message = parse_message('[2, "hb"]')
        assert isinstance(message, Heartbeat)
        assert message.chan_id == 2
        assert is_heartbeat([2, "hb"])
        assert not is_heartbeat(TICKER_FRAME)

    def test_ticker_positions(self):
        message = parse_message(json.dumps(TICKER_FRAME))
        assert isinstance(message, TickerSnapshot)
        assert message.channel_id == 2
        assert message.buy == 236.62
        assert message.sell == 236.88
        assert message.last_price == 236.52
        assert message.volume == 5191.36754297
        assert message.high == 250.01
        assert message.low == 220.05


class TestInvalidFrames:

    @pytest.mark.parametrize("raw", [
        "not json",
        "[]",
        '"text"',
        '{"channel": "ticker"}',
        '[2, 1.0, 2.0]',
        '[2, "a", 1, "b", 1, 0, 0, "c", 1, 1, 1]',
        '{"event": "subscribed", "channel": "ticker"}',
    ])
    def test_rejected(self, raw):
        with pytest.raises(StreamProtocolError):
            parse_message(raw)
