"""
Bitfinex WebSocket Client

This module provides the low-level WebSocket connection used by the Bitfinex
data source. It handles:
- Opening and closing the connection
- Sending subscription requests, queued until the connection is open
- Decoding incoming frames into typed messages (see messages.py)

It does not reconnect on its own: the data source decides when a closed
stream is restarted, because a reconnect must reset the channel map first.

WebSocket Documentation:
    https://docs.bitfinex.com/v1/reference#ws-public-ticker

Usage:
    client = BitfinexWSClient()
    await client.subscribe_ticker("btcusd")   # queued
    await client.connect()                   # opens, then sends queued frames
    async for message in client.messages():
        ...
    await client.close()
"""

import json
from typing import AsyncGenerator, List, Optional

import websockets

from core.errors import StreamProtocolError
from core.logging import get_logger, log_websocket_event
from .messages import StreamMessage, parse_message


class BitfinexWSClient:
    """
    Async WebSocket client for the Bitfinex v1 public stream.

    Attributes:
        BASE_URL: Bitfinex WebSocket URL
        url: Effective URL
        ws: Active connection (None when disconnected)
        open_timeout: Seconds allowed for the opening handshake
    """

    BASE_URL = "wss://api.bitfinex.com/ws"

    def __init__(self, url: Optional[str] = None, open_timeout: float = 10.0):
        self.url = url or self.BASE_URL
        self.open_timeout = open_timeout
        self.ws = None
        self._pending: List[str] = []
        self.logger = get_logger(__name__)

    @property
    def connected(self) -> bool:
        return self.ws is not None

    @property
    def pending(self) -> int:
        """Number of frames waiting for the connection to open."""
        return len(self._pending)

    # ============================================
    # Connection Management
    # ============================================

    async def connect(self) -> None:
        """
        Open the connection and flush queued frames.

        Raises:
            OSError / websockets.InvalidHandshake: If the connection cannot be opened
        """
        log_websocket_event("bitfinex", "connecting", details=self.url)
        self.ws = await websockets.connect(self.url, open_timeout=self.open_timeout)
        log_websocket_event("bitfinex", "connected")

        pending, self._pending = self._pending, []
        for frame in pending:
            await self.ws.send(frame)
        if pending:
            self.logger.debug(f"Flushed {len(pending)} queued frames")

    async def close(self) -> None:
        """
        Close the connection. Safe to call multiple times.

        Queued frames are discarded: they belonged to the closed session.
        """
        ws, self.ws = self.ws, None
        self._pending.clear()

        if ws is not None:
            await ws.close()
            log_websocket_event("bitfinex", "disconnected")

    # ============================================
    # Outgoing Frames
    # ============================================

    async def send(self, payload: dict) -> None:
        """Send a JSON frame now, or queue it until the connection opens."""
        frame = json.dumps(payload)

        if self.ws is None:
            self._pending.append(frame)
            self.logger.debug(f"Queued frame until connection opens: {frame}")
            return

        await self.ws.send(frame)

    async def subscribe_ticker(self, pair: str) -> None:
        """Request the ticker channel for one pair."""
        await self.send({"event": "subscribe", "channel": "ticker", "pair": pair})
        self.logger.debug(f"Subscribed to bitfinex ticker: {pair}")

    # ============================================
    # Incoming Frames
    # ============================================

    async def messages(self) -> AsyncGenerator[StreamMessage, None]:
        """
        Yield decoded messages until the connection closes.

        Frames that cannot be decoded are logged and skipped. An abnormal
        close is logged and ends the iteration like a normal one.

        Raises:
            RuntimeError: If called before connect()
        """
        if self.ws is None:
            raise RuntimeError("WebSocket not connected. Call connect() first.")

        try:
            async for raw in self.ws:
                try:
                    message = parse_message(raw)
                except StreamProtocolError as e:
                    self.logger.warning(f"Skipping Bitfinex frame: {e}")
                    continue
                yield message
        except websockets.ConnectionClosed as e:
            log_websocket_event("bitfinex", "error", details=f"connection closed: {e}")
