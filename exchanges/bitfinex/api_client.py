"""
Bitfinex REST API Client

Async HTTP client for the Bitfinex v1 public REST API. Used by the Bitfinex
data source to discover tradable pairs and to fetch order book snapshots;
tickers themselves arrive over the WebSocket stream.

Endpoints Used:
    GET /v1/symbols        - All tradable pairs (lowercase, e.g. "btcusd")
    GET /v1/book/{pair}    - Order book (limit_bids / limit_asks)

Usage:
    async with BitfinexAPIClient() as client:
        pairs = await client.get_symbols()
        book = await client.get_order_book("BTCUSD")
"""

from typing import List

from pydantic import BaseModel, ConfigDict, ValidationError

from core.errors import MalformedResponseError
from core.http_client import BaseAPIClient
from core.schemas import OrderBookSnapshot


class BitfinexBookLevel(BaseModel):
    """One order book level; Bitfinex sends numeric strings."""

    price: float
    amount: float

    model_config = ConfigDict(extra="ignore")


class BitfinexBook(BaseModel):
    """
    Order book response.

    Response Format:
        {
          "bids": [{"price": "574.61", "amount": "0.14", "timestamp": "1472506127.0"}],
          "asks": [{"price": "574.62", "amount": "19.1", "timestamp": "1472506126.0"}]
        }
    """

    bids: List[BitfinexBookLevel]
    asks: List[BitfinexBookLevel]

    model_config = ConfigDict(extra="ignore")


class BitfinexAPIClient(BaseAPIClient):
    """
    Async HTTP client for the Bitfinex v1 public REST API.

    Notes:
        - Every method makes exactly one HTTP request
        - Failures raise ExchangeAPIError or MalformedResponseError
    """

    exchange = "bitfinex"
    BASE_URL = "https://api.bitfinex.com"
    SYMBOLS_PATH = "/v1/symbols"
    BOOK_PATH = "/v1/book"

    async def get_symbols(self) -> List[str]:
        """
        Fetch every tradable pair.

        Returns:
            List of pairs as reported (e.g., ["btcusd", "ltcbtc"])

        Raises:
            MalformedResponseError: If the body is empty or not a list of strings
        """
        body = await self._get(self.SYMBOLS_PATH)

        if not body or not isinstance(body, list) or not all(isinstance(s, str) for s in body):
            raise MalformedResponseError(f"bitfinex {self.SYMBOLS_PATH}: expected a non-empty list of pairs")

        self.logger.debug(f"Fetched {len(body)} Bitfinex symbols")
        return body

    async def get_order_book(self, pair: str, limit_bids: int = 50, limit_asks: int = 50) -> OrderBookSnapshot:
        """
        Fetch the order book for one pair.

        Args:
            pair: Pair (e.g., "BTCUSD")
            limit_bids: Number of bid levels
            limit_asks: Number of ask levels

        Returns:
            OrderBookSnapshot

        Raises:
            ExchangeAPIError: On transport/HTTP failure
            MalformedResponseError: If the body cannot be decoded
        """
        path = f"{self.BOOK_PATH}/{pair}"
        body = await self._get(path, {"limit_bids": limit_bids, "limit_asks": limit_asks})

        try:
            book = BitfinexBook.model_validate(body)
        except ValidationError as e:
            raise MalformedResponseError(f"bitfinex {path}: {e.error_count()} decode errors") from e

        return OrderBookSnapshot.from_levels(
            pair,
            bids=[(level.price, level.amount) for level in book.bids],
            asks=[(level.price, level.amount) for level in book.asks],
        )
