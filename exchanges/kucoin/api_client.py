"""
Kucoin REST API Client

This module provides an async HTTP client for the Kucoin public market API.
It decodes responses into our schemas right after each fetch.

Endpoints Used:
    GET /v1/market/open/symbols?market=USDT   - Ticker listing for a market
    GET /v1/open/orders?symbol=...&limit=...  - Order book for one pair

Usage:
    async with KucoinAPIClient() as client:
        tickers = await client.get_tickers("USDT")
        book = await client.get_order_book("BTC-USDT", limit=200)
"""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError

from core.errors import MalformedResponseError
from core.http_client import BaseAPIClient
from core.schemas import OrderBookSnapshot, TickerSnapshot


class KucoinTickerRecord(BaseModel):
    """
    One record of the Kucoin ticker listing.

    Response Format:
        {
          "coinType": "BTC",
          "coinTypePair": "USDT",
          "symbol": "BTC-USDT",
          "lastDealPrice": 100.5,
          "buy": 100.0,
          "sell": 101.0,
          "high": 110.0,
          "low": 90.0,
          "vol": 50.0,
          "volValue": 5000.0
        }
    """

    symbol: str
    coinType: Optional[str] = None
    lastDealPrice: Optional[float] = None
    buy: float
    sell: float
    high: float
    low: float
    vol: Optional[float] = None
    volValue: float

    model_config = ConfigDict(extra="ignore")

    def to_snapshot(self) -> TickerSnapshot:
        return TickerSnapshot(
            pair=self.symbol.upper(),
            last_price=self.lastDealPrice,
            buy=self.buy,
            sell=self.sell,
            high=self.high,
            low=self.low,
            volume=self.volValue,
        )


class KucoinAPIClient(BaseAPIClient):
    """
    Async HTTP client for the Kucoin public REST API.

    Example:
        >>> async with KucoinAPIClient() as client:
        ...     tickers = await client.get_tickers()
        ...     print(f"Fetched {len(tickers)} tickers")

    Notes:
        - Every method makes exactly one HTTP request
        - Responses whose "success" flag is not true are malformed
        - Failures raise ExchangeAPIError or MalformedResponseError
    """

    exchange = "kucoin"
    BASE_URL = "https://api.kucoin.com"
    TICKER_PATH = "/v1/market/open/symbols"
    BOOK_PATH = "/v1/open/orders"

    @staticmethod
    def _unwrap(path: str, body: Any) -> Any:
        """Return the data field of a successful Kucoin envelope."""
        if not isinstance(body, dict) or body.get("success") is not True:
            code = body.get("code") if isinstance(body, dict) else None
            raise MalformedResponseError(f"kucoin {path}: unsuccessful response (code={code})")
        return body.get("data")

    # ============================================
    # API Methods
    # ============================================

    async def get_tickers(self, market: str = "USDT") -> Dict[str, TickerSnapshot]:
        """
        Fetch the ticker listing of a whole market.

        Args:
            market: Quote market (e.g., "USDT")

        Returns:
            Dict mapping pair (e.g., "BTC-USDT") to its TickerSnapshot.
            Records that cannot be decoded are skipped with a warning.

        Raises:
            ExchangeAPIError: On transport/HTTP failure
            MalformedResponseError: If success is not true or data is not a list
        """
        body = await self._get(self.TICKER_PATH, {"market": market})
        data = self._unwrap(self.TICKER_PATH, body)

        if not isinstance(data, list):
            raise MalformedResponseError(f"kucoin {self.TICKER_PATH}: data is not a list")

        tickers: Dict[str, TickerSnapshot] = {}
        for item in data:
            try:
                snapshot = KucoinTickerRecord.model_validate(item).to_snapshot()
            except ValidationError as e:
                self.logger.warning(f"Skipping undecodable Kucoin ticker ({e.error_count()} errors): {item!r:.120}")
                continue
            tickers[snapshot.pair] = snapshot

        self.logger.debug(f"Fetched {len(tickers)} Kucoin tickers for market {market}")
        return tickers

    async def get_order_book(self, pair: str, limit: int = 200) -> OrderBookSnapshot:
        """
        Fetch the order book for one pair.

        Args:
            pair: Pair (e.g., "BTC-USDT")
            limit: Depth per side

        Returns:
            OrderBookSnapshot

        Response Format:
            {
              "success": true,
              "data": {
                "BUY":  [[price, amount, volume], ...],
                "SELL": [[price, amount, volume], ...]
              }
            }

        Raises:
            ExchangeAPIError: On transport/HTTP failure
            MalformedResponseError: If the envelope or levels cannot be decoded
        """
        pair = pair.upper()
        body = await self._get(self.BOOK_PATH, {"symbol": pair, "limit": limit})
        data = self._unwrap(self.BOOK_PATH, body)

        if not isinstance(data, dict):
            raise MalformedResponseError(f"kucoin {self.BOOK_PATH}: missing book for {pair}")

        return OrderBookSnapshot.from_levels(
            pair,
            bids=self._levels(pair, data.get("BUY")),
            asks=self._levels(pair, data.get("SELL")),
        )

    @staticmethod
    def _levels(pair: str, raw: Any) -> List[Tuple[float, float]]:
        if raw is None:
            return []
        try:
            return [(float(level[0]), float(level[1])) for level in raw]
        except (TypeError, ValueError, IndexError) as e:
            raise MalformedResponseError(f"kucoin order book for {pair}: bad level ({e})") from e
