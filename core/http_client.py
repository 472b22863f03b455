"""
Base REST Client

Shared aiohttp plumbing for the exchange REST clients:
- Session lifecycle through the async context manager protocol
- One GET request per call (retries are applied by the data sources)
- Classification of failures into ExchangeAPIError / MalformedResponseError
- Request/response logging

Usage:
    class KucoinAPIClient(BaseAPIClient):
        exchange = "kucoin"
        BASE_URL = "https://api.kucoin.com"

    async with KucoinAPIClient() as client:
        body = await client._get("/v1/open/orders", {"symbol": "BTC-USDT"})
"""

import asyncio
import time
from typing import Any, Dict, Optional

import aiohttp

from core.errors import ExchangeAPIError, MalformedResponseError
from core.logging import get_logger, log_api_request, log_api_response


class BaseAPIClient:
    """
    Async HTTP client base for exchange REST APIs.

    Attributes:
        exchange: Exchange name used in logs and errors (set by subclasses)
        BASE_URL: Default API base URL (set by subclasses)
        base_url: Effective base URL
        timeout: Total request timeout in seconds
        session: aiohttp ClientSession, created on __aenter__
    """

    exchange: str = "exchange"
    BASE_URL: str = ""

    def __init__(self, base_url: Optional[str] = None, timeout: float = 10.0):
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.logger = get_logger(f"exchanges.{self.exchange}.api_client")
        self.session: Optional[aiohttp.ClientSession] = None

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        """
        Enter async context - creates HTTP session.

        Returns:
            Self for use in async with statement
        """
        self.session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
        self.logger.debug(f"{type(self).__name__} session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context - closes HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.debug(f"{type(self).__name__} session closed")

    # ============================================
    # HTTP Request Handler
    # ============================================

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Make one GET request.

        Args:
            path: API endpoint path (e.g., "/v1/symbols")
            params: Optional query parameters

        Returns:
            Decoded JSON response

        Raises:
            RuntimeError: If the session is not initialized
            ExchangeAPIError: On non-200 responses, timeouts and connection errors
            MalformedResponseError: If the body is not valid JSON
        """
        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")

        url = f"{self.base_url}{path}"
        log_api_request(self.exchange, path, params)
        started = time.monotonic()

        try:
            async with self.session.get(url, params=params) as resp:
                log_api_response(self.exchange, path, resp.status, time.monotonic() - started)

                if resp.status != 200:
                    text = await resp.text()
                    raise ExchangeAPIError(self.exchange, path, text[:200], status=resp.status)

                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise MalformedResponseError(f"{self.exchange} {path}: invalid JSON ({e})") from e

        except asyncio.TimeoutError as e:
            raise ExchangeAPIError(self.exchange, path, "request timed out") from e
        except aiohttp.ClientError as e:
            raise ExchangeAPIError(self.exchange, path, str(e)) from e
