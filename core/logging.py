"""
Unified Logging Configuration

This module sets up a centralized logging system for the ingestion service.
All modules should import and use the logger from this module instead of
using print() statements.

Usage:
    from core.logging import logger, get_logger

    logger.info("Service starting")

    log = get_logger(__name__)
    log.debug("Fetched 14 order books")

Log Levels (from most to least verbose):
    DEBUG    - Per-request and per-message detail (e.g., "Updated ticker for BTCUSD")
    INFO     - Lifecycle events (e.g., "Kucoin data source started")
    WARNING  - Recoverable anomalies (e.g., "Dropping ticker for unknown channel")
    ERROR    - Failed cycles or pairs (e.g., "Order book fetch failed after 5 attempts")
    CRITICAL - Not used by the ingestion core; nothing here is fatal

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.
"""

import logging
import sys
from typing import Optional


ROOT_LOGGER_NAME = "ingestion"


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include module name in log messages

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Application started")
        2024-01-01 12:00:00 [INFO] ingestion: Application started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True
    )

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level if hasattr(settings, 'log_level') else "INFO"
except ImportError:
    # If settings not available yet (during initial import), use INFO
    log_level = "INFO"

# Create the global logger instance
logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module or component.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Child of the application logger

    Example:
        # In exchanges/kucoin/api_client.py:
        logger = get_logger(__name__)  # "ingestion.exchanges.kucoin.api_client"
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_log_level(level: str) -> None:
    """
    Change the log level at runtime.

    Args:
        level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(exchange: str, endpoint: str, params: dict = None) -> None:
    """
    Log an API request with consistent formatting.

    Example:
        >>> log_api_request("kucoin", "/v1/open/orders", {"symbol": "BTC-USDT", "limit": 200})
        [DEBUG] API Request: kucoin /v1/open/orders | Params: {'symbol': 'BTC-USDT', 'limit': 200}
    """
    if params:
        logger.debug(f"API Request: {exchange} {endpoint} | Params: {params}")
    else:
        logger.debug(f"API Request: {exchange} {endpoint}")


def log_api_response(exchange: str, endpoint: str, status: int, response_time: float = None) -> None:
    """
    Log an API response with status and timing information.

    Example:
        >>> log_api_response("bitfinex", "/v1/symbols", 200, 0.342)
        [DEBUG] API Response: bitfinex /v1/symbols | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {exchange} {endpoint} | Status: {status}{time_str}")


def log_websocket_event(exchange: str, event: str, pair: str = None, details: str = None) -> None:
    """
    Log a WebSocket event with consistent formatting.

    Example:
        >>> log_websocket_event("bitfinex", "connected")
        [INFO] WebSocket: bitfinex connected

        >>> log_websocket_event("bitfinex", "error", details="Connection reset")
        [ERROR] WebSocket: bitfinex error | Connection reset
    """
    pair_str = f" | Pair: {pair}" if pair else ""
    details_str = f" | {details}" if details else ""

    level = logging.ERROR if event == "error" else logging.INFO
    logger.log(level, f"WebSocket: {exchange} {event}{pair_str}{details_str}")


logger.debug("Logging system initialized")
