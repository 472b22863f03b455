"""
Kucoin Data Source (polling)

Kucoin is ingested by polling its REST API on a fixed interval.

Each cycle:
    1. Fetch the ticker listing for the whole market (one retried call).
       If it fails, or the response is not successful, the cycle is skipped.
    2. Fetch the order book of every tracked pair present in the listing
       concurrently, each one retried independently and followed by a settle delay.
    3. Join tickers and books by pair; pairs missing either side are dropped.
    4. Hand the batch, stamped with one shared timestamp, to the producer.

Lifecycle:
    IDLE → RUNNING → STOPPED

    start() runs a cycle immediately, then one every `interval` seconds.
    stop() cancels the poller; an in-flight cycle is aborted and never emits.

Endpoints Used:
    GET /v1/market/open/symbols?market=USDT
    GET /v1/open/orders?symbol={pair}&limit={depth}
"""

import asyncio
from typing import List, Optional, Sequence

from core.data_source import DataSource, Producer, SourceState
from core.retry import RetryPolicy
from core.schemas import NormalizedPayload
from .api_client import KucoinAPIClient


class KucoinDataSource(DataSource):
    """
    Polling data source for Kucoin.

    Attributes:
        pairs: Tracked pairs (e.g., ["BTC-USDT", "ETH-USDT"])
        interval: Seconds between cycle starts
        market: Quote market of the ticker listing
        book_depth: Order book depth per side
        ticker_retry: Budget for the ticker listing call
        book_retry: Budget for each order book call
        settle_delay: Pause after every order book attempt

    Example:
        >>> source = KucoinDataSource(producer, pairs=["BTC-USDT"], interval=120)
        >>> await source.start()
        >>> ...
        >>> await source.stop()
    """

    name = "kucoin"
    display_name = "Kucoin"
    tag = "KUCOIN"

    def __init__(
        self,
        producer: Producer,
        pairs: Sequence[str],
        interval: float = 120.0,
        market: str = "USDT",
        book_depth: int = 200,
        ticker_retry: Optional[RetryPolicy] = None,
        book_retry: Optional[RetryPolicy] = None,
        settle_delay: float = 1.0,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[KucoinAPIClient] = None,
    ):
        super().__init__(producer)

        self.pairs: List[str] = [p.upper() for p in pairs]
        self.interval = interval
        self.market = market
        self.book_depth = book_depth
        self.ticker_retry = ticker_retry or RetryPolicy(attempts=10, delay=1.0)
        self.book_retry = book_retry or RetryPolicy(attempts=5, delay=1.0)
        self.settle_delay = settle_delay

        self._base_url = base_url
        self._timeout = timeout
        self.client = client
        self._owns_client = client is None
        self._task: Optional[asyncio.Task] = None

    def asset_name(self, pair: str) -> str:
        return pair.split("-", 1)[0]

    def status(self):
        status = super().status()
        status["pairs"] = len(self.pairs)
        return status

    # ============================================
    # Lifecycle
    # ============================================

    async def start(self) -> None:
        if self.is_running:
            return

        if self._owns_client:
            self.client = KucoinAPIClient(base_url=self._base_url, timeout=self._timeout)
            await self.client.__aenter__()

        self.state = SourceState.RUNNING
        self.logger.info(f"Starting Kucoin data source ({len(self.pairs)} pairs, every {self.interval}s)")
        self._task = asyncio.create_task(self._run(), name="kucoin_poller")

    async def stop(self) -> None:
        if not self.is_running:
            return

        self.logger.info("Stopping Kucoin data source...")
        self.state = SourceState.STOPPED

        if self._task:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

        if self._owns_client and self.client:
            await self.client.__aexit__(None, None, None)
            self.client = None

        self.logger.info("Kucoin data source stopped")

    # ============================================
    # Core Loop
    # ============================================

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()

        while self.is_running:
            cycle_start = loop.time()
            try:
                await self.run_cycle()
            except Exception as e:
                self.logger.error(f"Kucoin cycle error: {e}")

            elapsed = loop.time() - cycle_start
            await asyncio.sleep(max(0.0, self.interval - elapsed))

    async def run_cycle(self) -> Optional[List[NormalizedPayload]]:
        """
        Run one fetch → join → emit cycle.

        Returns:
            The emitted batch, or None when the ticker listing could not be fetched
        """
        result = await self.ticker_retry.run(
            lambda: self.client.get_tickers(self.market),
            "kucoin ticker listing",
        )
        if not result.ok:
            self.logger.error(f"Skipping Kucoin cycle, ticker listing unavailable: {result.error}")
            return None

        listing = result.value
        tickers = {pair: listing[pair] for pair in self.pairs if pair in listing}

        missing = [pair for pair in self.pairs if pair not in tickers]
        if missing:
            self.logger.debug(f"Tracked pairs absent from Kucoin listing, no book fetched: {', '.join(missing)}")

        books = await self._fetch_books(
            list(tickers),
            lambda pair: self.client.get_order_book(pair, self.book_depth),
            self.book_retry,
            settle_delay=self.settle_delay,
        )

        batch = self._build_batch(tickers, books)
        self._emit(batch)
        return batch


__all__ = ["KucoinDataSource", "KucoinAPIClient"]
