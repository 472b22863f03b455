"""
Normalized Data Schemas

This module defines Pydantic models for the data that flows through the
ingestion pipeline.

Key Principle:
    Regardless of which exchange the data comes from (Kucoin, Bitfinex, ...),
    it gets normalized into NormalizedPayload. Exchange-specific responses are
    decoded into these models right after each fetch, so no untyped data
    travels deeper into the pipeline.

Models:
    - BookEntry: One price level of an order book
    - OrderBookSnapshot: Bids and asks for one pair at fetch time
    - TickerSnapshot: Latest summary statistics for one pair
    - NormalizedPayload: The canonical record handed to the Producer
"""

from enum import Enum
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """Event type tags carried by normalized payloads."""

    EXCHANGE_TICKER = "EXCHANGE_TICKER"


# ============================================
# Order Book Schemas
# ============================================

class BookEntry(BaseModel):
    """
    One order book price level.

    Attributes:
        price: Level price in quote currency
        amount: Size available at this level in base currency
        usd_total: price * amount

    Example:
        >>> BookEntry.from_level(99, 1)
        BookEntry(price=99.0, amount=1.0, usd_total=99.0)
    """

    price: float = Field(..., description="Level price")
    amount: float = Field(..., description="Size available at this price")
    usd_total: float = Field(..., description="price * amount")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_level(cls, price: float, amount: float) -> "BookEntry":
        """Build an entry from a raw price/amount pair, computing usd_total."""
        price = float(price)
        amount = float(amount)
        return cls(price=price, amount=amount, usd_total=price * amount)


class OrderBookSnapshot(BaseModel):
    """
    Point-in-time order book for one pair.

    Only valid at fetch time; it carries no timestamp of its own because the
    enclosing payload is stamped once per batch.
    """

    pair: str = Field(..., description="Pair the book belongs to")
    bids: List[BookEntry] = Field(default_factory=list, description="Buy side, best first")
    asks: List[BookEntry] = Field(default_factory=list, description="Sell side, best first")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_levels(
        cls,
        pair: str,
        bids: Sequence[Tuple[float, float]],
        asks: Sequence[Tuple[float, float]],
    ) -> "OrderBookSnapshot":
        """
        Build a snapshot from raw (price, amount) levels.

        Example:
            >>> book = OrderBookSnapshot.from_levels("BTC-USDT", [(99, 1)], [(101, 2)])
            >>> book.asks[0].usd_total
            202.0
        """
        return cls(
            pair=pair,
            bids=[BookEntry.from_level(price, amount) for price, amount in bids],
            asks=[BookEntry.from_level(price, amount) for price, amount in asks],
        )


# ============================================
# Ticker Schema
# ============================================

class TickerSnapshot(BaseModel):
    """
    Latest summary statistics for one pair.

    Produced by a single REST record (polling sources) or a single stream
    message (streaming sources). Superseded by the next update for the same
    pair and never merged across pairs.

    Attributes:
        pair: Pair identifier, when the exchange reports it with the ticker
        channel_id: Stream channel id, for streaming sources
        last_price: Last traded price
        buy: Best bid
        sell: Best ask
        high: Daily high
        low: Daily low
        volume: Daily volume as reported by the exchange
    """

    pair: Optional[str] = None
    channel_id: Optional[int] = None
    last_price: Optional[float] = None
    buy: float
    sell: float
    high: float
    low: float
    volume: float

    model_config = ConfigDict(frozen=True)


# ============================================
# Canonical Record
# ============================================

class NormalizedPayload(BaseModel):
    """
    The canonical record emitted for one pair in one emission cycle.

    Field names are part of the downstream contract and are kept exactly as
    consumers expect them (volume_USD, book_buy, eventType, ...).

    Spread:
        Always |sell - buy|, for every exchange.

    Example:
        >>> payload.model_dump(mode="json")
        {
            "exchange": "Kucoin",
            "name": "BTC",
            "symbol": "BTC",
            "pair": "BTC-USDT",
            "timestamp": "2024-01-01T12:00:00.000Z",
            "volume_USD": 5000.0,
            "buy": 100.0,
            "sell": 101.0,
            "spread": 1.0,
            "high": 110.0,
            "low": 90.0,
            "book_buy": [{"price": 99.0, "amount": 1.0, "usd_total": 99.0}],
            "book_sell": [{"price": 101.0, "amount": 2.0, "usd_total": 202.0}],
            "eventType": "EXCHANGE_TICKER"
        }
    """

    exchange: str = Field(..., description="Source exchange display name")
    name: str = Field(..., description="Base asset name")
    symbol: str = Field(..., description="Base asset symbol")
    pair: str = Field(..., description="Pair identifier as used by the exchange")
    timestamp: str = Field(..., description="ISO-8601 timestamp shared by the whole batch")
    volume_USD: float = Field(..., description="Daily volume")
    buy: float = Field(..., description="Best bid")
    sell: float = Field(..., description="Best ask")
    spread: float = Field(..., ge=0, description="|sell - buy|")
    high: float = Field(..., description="Daily high")
    low: float = Field(..., description="Daily low")
    book_buy: List[BookEntry] = Field(default_factory=list, description="Order book bids")
    book_sell: List[BookEntry] = Field(default_factory=list, description="Order book asks")
    eventType: EventType = Field(default=EventType.EXCHANGE_TICKER)

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    @classmethod
    def from_snapshots(
        cls,
        exchange: str,
        name: str,
        pair: str,
        ticker: TickerSnapshot,
        book: OrderBookSnapshot,
        timestamp: str,
    ) -> "NormalizedPayload":
        """
        Join a ticker and an order book for the same pair into one record.

        Args:
            exchange: Exchange display name (e.g., "Kucoin")
            name: Base asset name, also used as symbol
            pair: Pair identifier
            ticker: Latest ticker for the pair
            book: Order book fetched for the pair in this cycle
            timestamp: Batch timestamp

        Returns:
            NormalizedPayload
        """
        return cls(
            exchange=exchange,
            name=name,
            symbol=name,
            pair=pair,
            timestamp=timestamp,
            volume_USD=ticker.volume,
            buy=ticker.buy,
            sell=ticker.sell,
            spread=compute_spread(ticker.buy, ticker.sell),
            high=ticker.high,
            low=ticker.low,
            book_buy=list(book.bids),
            book_sell=list(book.asks),
        )


# ============================================
# Helper Functions
# ============================================

def compute_spread(buy: float, sell: float) -> float:
    """
    Spread between best ask and best bid.

    Example:
        >>> compute_spread(100, 101)
        1.0
    """
    return abs(float(sell) - float(buy))
