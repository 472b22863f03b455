"""
Ingestion Error Types

Every failure inside a data source is one of these. None of them is fatal:
the data source logs it and drops the affected pair or cycle.

    IngestionError
    ├── ExchangeAPIError        - network/HTTP failure (non-200, timeout, connection reset)
    ├── MalformedResponseError  - unexpected or undecodable REST response
    └── StreamProtocolError     - unparseable WebSocket frame
"""


class IngestionError(RuntimeError):
    """Base class for all ingestion failures."""


class ExchangeAPIError(IngestionError):
    """
    A REST call failed at the transport or HTTP level.

    Attributes:
        exchange: Exchange name
        path: Endpoint path that failed
        status: HTTP status code (None for transport errors)
    """

    def __init__(self, exchange: str, path: str, message: str, status: int = None):
        self.exchange = exchange
        self.path = path
        self.status = status
        status_str = f" (HTTP {status})" if status is not None else ""
        super().__init__(f"{exchange} {path}{status_str}: {message}")


class MalformedResponseError(IngestionError):
    """A REST response was received but could not be decoded into the expected shape."""


class StreamProtocolError(IngestionError):
    """A stream frame could not be decoded into any known message type."""
