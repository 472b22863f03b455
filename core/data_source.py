"""
Data Source Interface — Contract for All Exchange Adapters

This module defines the two seams of the ingestion pipeline:

- Producer: the sink every data source writes normalized batches to.
  It has exactly one method, produce(batch, tag), and is the one place
  that must stay pluggable for future sinks.
- DataSource: the abstract base every exchange adapter inherits from.
  It owns the shared plumbing (guarded produce calls, concurrent order
  book fan-out, batch joining) so each exchange only implements its own
  transport.

Design Philosophy:
    "Program to an interface, not an implementation"

    The SourceManager and the HTTP layer work with DataSource, never with a
    concrete exchange class, so adding an exchange does not touch them.

Example:
    class KucoinDataSource(DataSource):
        name = "kucoin"
        display_name = "Kucoin"
        tag = "KUCOIN"

        async def start(self): ...
        async def stop(self): ...
"""

import asyncio
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from core.logging import get_logger
from core.retry import RetryPolicy, RetryResult
from core.schemas import NormalizedPayload, OrderBookSnapshot, TickerSnapshot
from core.utils.time import batch_timestamp


# ============================================
# Producer Contract
# ============================================

class Producer(ABC):
    """
    Sink for normalized batches.

    produce() is fire-and-forget: it must not block the caller, and it returns
    nothing the data source waits on. Delivery failures are the sink's own
    concern to report through its logging.
    """

    @abstractmethod
    def produce(self, batch: Sequence[NormalizedPayload], tag: Optional[str] = None) -> None:
        """
        Accept one batch of normalized payloads.

        Args:
            batch: Payloads of one emission cycle (may be empty)
            tag: Source tag (e.g., "KUCOIN", "BITFINEX")
        """


# ============================================
# Data Source Lifecycle
# ============================================

class SourceState(str, Enum):
    """Lifecycle of a data source."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class DataSource(ABC):
    """
    Abstract Base Class for Exchange Data Sources

    Class Attributes:
        name: Unique identifier (lowercase, e.g., "kucoin")
        display_name: Exchange name written into payloads (e.g., "Kucoin")
        tag: Tag passed to Producer.produce (e.g., "KUCOIN")

    Abstract Methods (MUST be implemented by all data sources):
        - start: Begin autonomous fetch/emit cycles
        - stop: Stop all cycles; idempotent; no produce call after it returns
        - asset_name: Base asset name for a pair

    Shared Helpers:
        - _emit: Guarded Producer.produce call
        - _fetch_books: Concurrent retried order book fan-out keyed by pair
        - _build_batch: Join tickers and books into one timestamped batch
    """

    name: str
    display_name: str
    tag: str

    def __init__(self, producer: Producer):
        self.producer = producer
        self.state = SourceState.IDLE
        self.logger = get_logger(f"sources.{self.name}")

        self._cycles = 0
        self._last_emission: Optional[str] = None
        self._last_batch_size = 0

    # ============================================
    # Lifecycle (implemented by subclasses)
    # ============================================

    @abstractmethod
    async def start(self) -> None:
        """Start the data source. Calling start on a running source is a no-op."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop the data source. Calling stop twice is a no-op."""

    @abstractmethod
    def asset_name(self, pair: str) -> str:
        """Base asset of a pair (e.g., "BTC-USDT" -> "BTC")."""

    @property
    def is_running(self) -> bool:
        return self.state == SourceState.RUNNING

    def status(self) -> Dict[str, Any]:
        """
        Snapshot of the data source for health reporting.

        Returns:
            Dict with state, completed cycles, last emission time and batch size
        """
        return {
            "state": self.state.value,
            "cycles": self._cycles,
            "last_emission": self._last_emission,
            "last_batch_size": self._last_batch_size,
        }

    # ============================================
    # Shared Helpers
    # ============================================

    def _emit(self, batch: List[NormalizedPayload]) -> None:
        """
        Hand a batch to the producer.

        Exceptions raised by the producer are logged and never propagate
        into the ingestion cycle. Nothing is emitted once the source has
        been stopped.
        """
        if self.state == SourceState.STOPPED:
            self.logger.debug(f"Discarding batch of {len(batch)} from {self.name}: source stopped")
            return

        self._cycles += 1
        self._last_batch_size = len(batch)
        self._last_emission = batch[0].timestamp if batch else batch_timestamp()

        try:
            self.producer.produce(batch, self.tag)
            self.logger.info(f"Emitted {len(batch)} {self.display_name} payloads")
        except Exception as e:
            self.logger.error(f"Producer failed for {self.tag} batch: {e}")

    async def _fetch_books(
        self,
        pairs: Sequence[str],
        fetch: Callable[[str], Awaitable[OrderBookSnapshot]],
        policy: RetryPolicy,
        settle_delay: float = 0.0,
    ) -> Dict[str, RetryResult]:
        """
        Fetch the order book of every pair concurrently.

        Each pair is retried independently; one pair exhausting its budget
        never aborts its siblings.

        Args:
            pairs: Pairs to fetch
            fetch: Coroutine function fetching one pair's book
            policy: Attempt/delay budget per pair
            settle_delay: Pause after every attempt (rate limit pacing)

        Returns:
            Dict mapping each pair to its RetryResult
        """

        def attempt_for(pair: str) -> Callable[[], Awaitable[OrderBookSnapshot]]:
            async def attempt() -> OrderBookSnapshot:
                try:
                    book = await fetch(pair)
                except Exception:
                    if settle_delay > 0:
                        await asyncio.sleep(settle_delay)
                    raise
                if settle_delay > 0:
                    await asyncio.sleep(settle_delay)
                return book

            return attempt

        pairs = list(pairs)
        results = await asyncio.gather(
            *(policy.run(attempt_for(pair), f"{self.name} order book {pair}") for pair in pairs)
        )
        return dict(zip(pairs, results))

    def _build_batch(
        self,
        tickers: Mapping[str, TickerSnapshot],
        books: Mapping[str, RetryResult],
    ) -> List[NormalizedPayload]:
        """
        Join tickers and order books into payloads sharing one timestamp.

        A pair is kept only when both its ticker and a successful book are
        present. Everything else is dropped from this cycle.
        """
        timestamp = batch_timestamp()
        batch: List[NormalizedPayload] = []
        dropped: List[str] = []

        for pair, ticker in tickers.items():
            result = books.get(pair)
            if result is None or not result.ok:
                dropped.append(pair)
                continue

            batch.append(
                NormalizedPayload.from_snapshots(
                    exchange=self.display_name,
                    name=self.asset_name(pair),
                    pair=pair,
                    ticker=ticker,
                    book=result.value,
                    timestamp=timestamp,
                )
            )

        if dropped:
            self.logger.warning(
                f"Dropped {len(dropped)} {self.display_name} pairs without order book: {', '.join(dropped)}"
            )

        return batch
