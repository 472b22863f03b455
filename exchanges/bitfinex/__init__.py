"""
Bitfinex Data Source (streaming)

Bitfinex tickers arrive over a persistent WebSocket; order books are fetched
over REST when a batch is emitted. Two independent cycles share one
StreamState:

Connection cycle (task "bitfinex_stream"):
    DISCONNECTED → CONNECTING → SUBSCRIBING → LIVE → (RECONNECTING) → DISCONNECTED

    1. Fetch the tradable pairs (retried) and keep those quoted in the target currency
    2. Queue one ticker subscription per pair, then open the stream, which sends them
    3. Dispatch incoming messages:
         subscribed   -> map channel id to pair
         ticker array -> update the latest ticker of the mapped pair
         heartbeat    -> ignored
         info 20051/9 -> tear down and run the whole start sequence again
         info 20060/1 -> logged only
    4. On an unexpected close: reset local state, back off, reconnect

Emission cycle (task "bitfinex_emitter"), started after the subscriptions:
    Every `interval` seconds, copy the ticker cache, fetch each pair's order
    book concurrently, join, and hand the batch to the producer.

Endpoints Used:
    REST:      GET /v1/symbols, GET /v1/book/{pair}
    WebSocket: wss://api.bitfinex.com/ws (v1 ticker channels)
"""

import asyncio
from enum import Enum
from typing import Dict, List, Optional

from core.data_source import DataSource, Producer, SourceState
from core.retry import RetryPolicy
from core.schemas import NormalizedPayload, TickerSnapshot
from .api_client import BitfinexAPIClient
from .messages import (
    ErrorEvent,
    Heartbeat,
    InfoCode,
    InfoEvent,
    RESTART_CODES,
    StreamMessage,
    SubscribedEvent,
)
from .ws_client import BitfinexWSClient


class ConnectionState(str, Enum):
    """Connection cycle of the streaming source."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SUBSCRIBING = "subscribing"
    LIVE = "live"
    RECONNECTING = "reconnecting"


class StreamState:
    """
    Channel → pair map and pair → latest ticker cache of one connection.

    Written only by the connection cycle, read by the emission cycle through
    snapshot(). A pair enters the ticker cache only once its subscription has
    been acknowledged; updates for unknown channels are discarded.
    """

    def __init__(self):
        self._channels: Dict[int, str] = {}
        self._tickers: Dict[str, TickerSnapshot] = {}

    def map_channel(self, chan_id: int, pair: str) -> None:
        self._channels[chan_id] = pair

    def pair_for(self, chan_id: int) -> Optional[str]:
        return self._channels.get(chan_id)

    def update_ticker(self, ticker: TickerSnapshot) -> Optional[str]:
        """
        Store a ticker under the pair mapped to its channel.

        Returns:
            The updated pair, or None when the channel is not mapped
        """
        pair = self._channels.get(ticker.channel_id)
        if pair is None:
            return None
        self._tickers[pair] = ticker
        return pair

    def ticker_for(self, pair: str) -> Optional[TickerSnapshot]:
        return self._tickers.get(pair)

    def snapshot(self) -> Dict[str, TickerSnapshot]:
        """Copy of the ticker cache, immune to later updates."""
        return dict(self._tickers)

    @property
    def channels(self) -> Dict[int, str]:
        return dict(self._channels)

    def clear(self) -> None:
        self._channels.clear()
        self._tickers.clear()

    def is_empty(self) -> bool:
        return not self._channels and not self._tickers


class BitfinexDataSource(DataSource):
    """
    Streaming data source for Bitfinex.

    Attributes:
        interval: Seconds between emission cycles
        quote_currency: Only pairs ending with this currency are subscribed
        book_limit: Bids/asks requested per order book
        symbols_retry: Budget for the pair universe call
        book_retry: Budget for each order book call
        reconnect_delay: First backoff delay after an unexpected close
        max_reconnect_delay: Backoff cap
        stream_state: Channel map and ticker cache
        connection_state: Current ConnectionState
        pairs: Pairs subscribed in the current session
        restarts: Number of restarts triggered by the server

    Example:
        >>> source = BitfinexDataSource(producer, interval=120)
        >>> await source.start()
        >>> ...
        >>> await source.stop()
    """

    name = "bitfinex"
    display_name = "Bitfinex"
    tag = "BITFINEX"

    def __init__(
        self,
        producer: Producer,
        interval: float = 120.0,
        quote_currency: str = "USD",
        book_limit: int = 50,
        symbols_retry: Optional[RetryPolicy] = None,
        book_retry: Optional[RetryPolicy] = None,
        reconnect_delay: float = 5.0,
        max_reconnect_delay: float = 60.0,
        base_url: Optional[str] = None,
        ws_url: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[BitfinexAPIClient] = None,
        stream: Optional[BitfinexWSClient] = None,
    ):
        super().__init__(producer)

        self.interval = interval
        self.quote_currency = quote_currency.upper()
        self.book_limit = book_limit
        self.symbols_retry = symbols_retry or RetryPolicy(attempts=10, delay=1.0)
        self.book_retry = book_retry or RetryPolicy(attempts=2, delay=1.0)
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay

        self._base_url = base_url
        self._timeout = timeout
        self.client = client
        self._owns_client = client is None
        self.stream = stream or BitfinexWSClient(url=ws_url, open_timeout=timeout)

        self.stream_state = StreamState()
        self.connection_state = ConnectionState.DISCONNECTED
        self.pairs: List[str] = []
        self.restarts = 0

        self._task: Optional[asyncio.Task] = None
        self._emit_task: Optional[asyncio.Task] = None
        self._reconnect_attempt = 0

    def asset_name(self, pair: str) -> str:
        pair = pair.upper()
        if pair.endswith(self.quote_currency):
            return pair[: -len(self.quote_currency)]
        return pair

    def status(self):
        status = super().status()
        status.update({
            "connection": self.connection_state.value,
            "pairs": len(self.pairs),
            "cached_tickers": len(self.stream_state.snapshot()),
            "restarts": self.restarts,
        })
        return status

    # ============================================
    # Lifecycle
    # ============================================

    async def start(self) -> None:
        if self.is_running:
            return

        if self._owns_client:
            self.client = BitfinexAPIClient(base_url=self._base_url, timeout=self._timeout)
            await self.client.__aenter__()

        self.state = SourceState.RUNNING
        self.logger.info(f"Starting Bitfinex data source (quote {self.quote_currency}, every {self.interval}s)")
        self._task = asyncio.create_task(self._run(), name="bitfinex_stream")

    async def stop(self) -> None:
        if not self.is_running:
            return

        self.logger.info("Stopping Bitfinex data source...")
        self.state = SourceState.STOPPED

        await self._cancel_emission()

        if self._task:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

        await self._teardown()

        if self._owns_client and self.client:
            await self.client.__aexit__(None, None, None)
            self.client = None

        self.logger.info("Bitfinex data source stopped")

    # ============================================
    # Connection Cycle
    # ============================================

    async def _run(self) -> None:
        while self.is_running:
            restart = False
            try:
                restart = await self._session()
            except Exception as e:
                self.logger.error(f"Bitfinex stream error: {e}")

            await self._teardown()

            if not self.is_running:
                break

            if restart:
                self.restarts += 1
                self._reconnect_attempt = 0
                self.logger.info("Restarting Bitfinex stream on server request")
                continue

            self.connection_state = ConnectionState.RECONNECTING
            delay = min(self.reconnect_delay * (2 ** self._reconnect_attempt), self.max_reconnect_delay)
            self._reconnect_attempt += 1
            self.logger.warning(f"Reconnecting to Bitfinex in {delay:.1f}s (attempt {self._reconnect_attempt})")
            await asyncio.sleep(delay)

    async def _session(self) -> bool:
        """
        Run one connection from pair discovery until the stream ends.

        Returns:
            True when the server requested a restart, False when the stream
            ended on its own or the pair universe could not be fetched
        """
        self.connection_state = ConnectionState.CONNECTING

        pairs = await self._load_pairs()
        if not pairs:
            return False
        self.pairs = pairs

        # Queued by the client, sent as soon as the connection opens
        self.connection_state = ConnectionState.SUBSCRIBING
        for pair in pairs:
            await self.stream.subscribe_ticker(pair)

        await self.stream.connect()

        self.connection_state = ConnectionState.LIVE
        self._reconnect_attempt = 0
        self.logger.info(f"Subscribed to {len(pairs)} Bitfinex ticker channels")
        self._start_emission()

        async for message in self.stream.messages():
            try:
                if self.handle_message(message):
                    return True
            except Exception as e:
                self.logger.error(f"Error processing Bitfinex message {message!r}: {e}")

        self.logger.warning("Bitfinex stream closed unexpectedly")
        return False

    async def _load_pairs(self) -> List[str]:
        result = await self.symbols_retry.run(lambda: self.client.get_symbols(), "bitfinex symbols")
        if not result.ok:
            self.logger.error(f"There was an error retrieving Bitfinex symbols: {result.error}")
            return []

        pairs = [s for s in result.value if s.upper().endswith(self.quote_currency)]
        if not pairs:
            self.logger.warning(f"No Bitfinex pairs quoted in {self.quote_currency}")
        return pairs

    async def _teardown(self) -> None:
        """Stop emitting, close the stream, then forget every channel and ticker."""
        await self._cancel_emission()

        try:
            await self.stream.close()
        except Exception as e:
            self.logger.error(f"Error closing Bitfinex stream: {e}")

        self.stream_state.clear()
        self.connection_state = ConnectionState.DISCONNECTED

    # ============================================
    # Message Dispatch
    # ============================================

    def handle_message(self, message: StreamMessage) -> bool:
        """
        Apply one decoded stream message to the local state.

        Returns:
            True if the message requests a full restart
        """
        if isinstance(message, TickerSnapshot):
            pair = self.stream_state.update_ticker(message)
            if pair is None:
                self.logger.warning(f"Dropping ticker for unknown Bitfinex channel {message.channel_id}")
            else:
                self.logger.debug(f"Updated bitfinex ticker data for {pair}")

        elif isinstance(message, Heartbeat):
            pass

        elif isinstance(message, SubscribedEvent):
            self.stream_state.map_channel(message.chan_id, message.pair)
            self.logger.debug(f"Bitfinex channel {message.chan_id} -> {message.pair}")

        elif isinstance(message, InfoEvent):
            return self._handle_info(message)

        elif isinstance(message, ErrorEvent):
            self.logger.error(f"Bitfinex error event {message.code}: {message.msg} (pair={message.pair})")

        else:
            self.logger.debug(f"Ignoring Bitfinex event: {message.event}")

        return False

    def _handle_info(self, message: InfoEvent) -> bool:
        if message.code is None:
            self.logger.debug(f"Bitfinex info: version={message.version}")
            return False

        if message.code in RESTART_CODES:
            self.logger.warning(f"Bitfinex requested a restart ({message.code}): {message.msg}")
            return True

        if message.code in (InfoCode.SUSPEND, InfoCode.RESUME):
            # Refresh window of the trading engine; the subscriptions stay as they are.
            self.logger.info(f"Bitfinex info {message.code}: {message.msg}")
            return False

        self.logger.error(f"Received invalid info code from Bitfinex: {message.code}")
        return False

    # ============================================
    # Emission Cycle
    # ============================================

    def _start_emission(self) -> None:
        if self._emit_task is None or self._emit_task.done():
            self._emit_task = asyncio.create_task(self._emission_loop(), name="bitfinex_emitter")

    async def _cancel_emission(self) -> None:
        task, self._emit_task = self._emit_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def _emission_loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval

        while self.is_running:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            next_tick = loop.time() + self.interval
            try:
                await self.run_emission_cycle()
            except Exception as e:
                self.logger.error(f"Failed to build Bitfinex data for producer: {e}")

    async def run_emission_cycle(self) -> List[NormalizedPayload]:
        """
        Run one snapshot → fetch books → join → emit cycle.

        Returns:
            The emitted batch
        """
        tickers = self.stream_state.snapshot()

        books = await self._fetch_books(
            list(tickers),
            lambda pair: self.client.get_order_book(pair, self.book_limit, self.book_limit),
            self.book_retry,
        )

        batch = self._build_batch(tickers, books)
        self._emit(batch)
        return batch


__all__ = [
    "BitfinexDataSource",
    "BitfinexAPIClient",
    "BitfinexWSClient",
    "ConnectionState",
    "StreamState",
]
