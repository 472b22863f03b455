"""
Bitfinex Stream Messages

Decodes raw WebSocket frames (v1 protocol) into tagged message types so the
data source never handles untyped JSON.

Frame Kinds:
    Event objects:
        {"event": "info", "version": 1}                         -> InfoEvent (greeting)
        {"event": "info", "code": 20051, "msg": "..."}           -> InfoEvent
        {"event": "subscribed", "channel": "ticker",
         "chanId": 2, "pair": "BTCUSD"}                          -> SubscribedEvent
        {"event": "error", "code": 10300, "msg": "..."}          -> ErrorEvent
        {"event": "<anything else>", ...}                        -> GenericEvent

    Arrays:
        [chanId, "hb"]                                           -> Heartbeat
        [chanId, BID, BID_SIZE, ASK, ASK_SIZE, DAILY_CHANGE,
         DAILY_CHANGE_PERC, LAST_PRICE, VOLUME, HIGH, LOW]        -> TickerSnapshot

Info Codes:
    20051 : Stop/Restart WebSocket server, reconnect and resubscribe
    20059 : Trading engine restart, reconnect and resubscribe
    20060 : Trading engine refresh started, pause activity
    20061 : Trading engine refresh done, resume activity
"""

import json
from enum import IntEnum
from typing import Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.errors import StreamProtocolError
from core.schemas import TickerSnapshot


HEARTBEAT_MARKER = "hb"
TICKER_FRAME_LENGTH = 11


class InfoCode(IntEnum):
    """Info codes that change how the stream must be handled."""

    RESTART = 20051
    RESTART_ENGINE = 20059
    SUSPEND = 20060
    RESUME = 20061


RESTART_CODES = frozenset({InfoCode.RESTART, InfoCode.RESTART_ENGINE})


# ============================================
# Event Messages
# ============================================

class SubscribedEvent(BaseModel):
    """Acknowledgment assigning a channel id to a subscribed pair."""

    event: Literal["subscribed"]
    channel: str
    chan_id: int = Field(..., alias="chanId")
    pair: str

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class InfoEvent(BaseModel):
    """Informational message; the greeting carries a version and no code."""

    event: Literal["info"]
    code: Optional[int] = None
    msg: Optional[str] = None
    version: Optional[int] = None

    model_config = ConfigDict(extra="ignore", frozen=True)


class ErrorEvent(BaseModel):
    """Error reported by the server (e.g. a rejected subscription)."""

    event: Literal["error"]
    code: Optional[int] = None
    msg: Optional[str] = None
    pair: Optional[str] = None

    model_config = ConfigDict(extra="ignore", frozen=True)


class GenericEvent(BaseModel):
    """Any other event object (pong, unsubscribed, ...)."""

    event: str

    model_config = ConfigDict(extra="allow", frozen=True)


class Heartbeat(BaseModel):
    """Keepalive sent on an idle channel."""

    chan_id: int

    model_config = ConfigDict(frozen=True)


StreamMessage = Union[SubscribedEvent, InfoEvent, ErrorEvent, GenericEvent, Heartbeat, TickerSnapshot]

EVENT_MODELS: Dict[str, Type[BaseModel]] = {
    "subscribed": SubscribedEvent,
    "info": InfoEvent,
    "error": ErrorEvent,
}


# ============================================
# Decoding
# ============================================

def is_heartbeat(frame: List[Any]) -> bool:
    """True for the two-element [chanId, "hb"] keepalive array."""
    return len(frame) == 2 and frame[1] == HEARTBEAT_MARKER


def parse_ticker(frame: List[Any]) -> TickerSnapshot:
    """
    Decode a positional ticker array.

    Raises:
        StreamProtocolError: If the array is too short or not numeric
    """
    if len(frame) < TICKER_FRAME_LENGTH:
        raise StreamProtocolError(f"Ticker frame has {len(frame)} fields, expected {TICKER_FRAME_LENGTH}")

    try:
        return TickerSnapshot(
            channel_id=frame[0],
            buy=frame[1],
            sell=frame[3],
            last_price=frame[7],
            volume=frame[8],
            high=frame[9],
            low=frame[10],
        )
    except ValidationError as e:
        raise StreamProtocolError(f"Invalid ticker frame {frame!r}: {e.error_count()} errors") from e


def parse_message(raw: Union[str, bytes]) -> StreamMessage:
    """
    Decode one WebSocket frame.

    Args:
        raw: Text frame as received

    Returns:
        One of the StreamMessage types

    Raises:
        StreamProtocolError: If the frame is not valid JSON or matches no known shape

    Example:
        >>> parse_message('[2, "hb"]')
        Heartbeat(chan_id=2)
    """
    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise StreamProtocolError(f"Invalid JSON frame: {str(raw)[:100]}") from e

    if isinstance(payload, dict):
        event = payload.get("event")
        if not isinstance(event, str):
            raise StreamProtocolError(f"Event object without event name: {payload!r:.100}")

        model = EVENT_MODELS.get(event, GenericEvent)
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise StreamProtocolError(f"Invalid '{event}' event: {e.error_count()} errors") from e

    if isinstance(payload, list) and payload:
        if is_heartbeat(payload):
            try:
                return Heartbeat(chan_id=payload[0])
            except ValidationError as e:
                raise StreamProtocolError(f"Invalid heartbeat frame: {payload!r}") from e
        return parse_ticker(payload)

    raise StreamProtocolError(f"Unknown Bitfinex message type: {str(raw)[:100]}")
