"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Validates all required settings
- Provides type-safe access to configuration values
- Converts comma-separated strings to lists (sources, pairs)
- Handles optional settings with sensible defaults

Usage:
    from core.config import settings

    # Access configuration values
    print(settings.kucoin_base_url)
    print(settings.kucoin_pairs_list)  # Returns a list of strings

Note:
    Data sources never read this module directly. The SourceManager reads
    the settings once and passes plain values to each data source constructor.
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


SUPPORTED_SOURCES = ("kucoin", "bitfinex")
SUPPORTED_PRODUCERS = ("event_bus", "logging")


class Settings(BaseSettings):
    """
    Application Settings

    This class defines all configuration parameters for the application.
    Values are automatically loaded from environment variables or .env file.

    Attributes:
        enabled_sources: Comma-separated data sources to run (kucoin, bitfinex)
        kucoin_*: Polling data source endpoints, pairs, interval and retry budgets
        bitfinex_*: Streaming data source endpoints, quote currency, interval,
                    retry budgets and reconnect delays
        producer_backend: Sink the batches are handed to (event_bus, logging)
        producer_topic: Event bus topic the normalized batches are published on
        app_host: Host address for FastAPI server
        app_port: Port number for FastAPI server
        environment: Current environment (development, production)
        log_level: Logging level
        request_timeout: Timeout for HTTP requests in seconds
    """

    # ============================================
    # Data Sources
    # ============================================

    enabled_sources: str = Field(
        default="kucoin,bitfinex",
        description="Comma-separated list of data sources to run"
    )

    # ============================================
    # Kucoin (Polling) Configuration
    # ============================================

    kucoin_base_url: str = Field(
        default="https://api.kucoin.com",
        description="Kucoin REST API base URL"
    )

    kucoin_market: str = Field(
        default="USDT",
        description="Quote market used for the ticker listing"
    )

    kucoin_pairs: str = Field(
        default=(
            "BTC-USDT,ETH-USDT,BCH-USDT,NEO-USDT,KCS-USDT,CS-USDT,ACT-USDT,"
            "HSR-USDT,LYM-USDT,TKY-USDT,XRB-USDT,DRGN-USDT,LTC-USDT,EOS-USDT"
        ),
        description="Comma-separated list of tracked Kucoin pairs"
    )

    kucoin_interval: float = Field(
        default=120.0,
        description="Seconds between Kucoin fetch cycles"
    )

    kucoin_book_depth: int = Field(
        default=200,
        description="Order book depth requested per pair"
    )

    kucoin_ticker_retry_attempts: int = Field(default=10, description="Ticker fetch attempts")
    kucoin_ticker_retry_delay: float = Field(default=1.0, description="Seconds between ticker attempts")
    kucoin_book_retry_attempts: int = Field(default=5, description="Order book fetch attempts per pair")
    kucoin_book_retry_delay: float = Field(default=1.0, description="Seconds between order book attempts")

    kucoin_book_settle_delay: float = Field(
        default=1.0,
        description="Pause after every order book attempt to respect rate limits (seconds)"
    )

    # ============================================
    # Bitfinex (Streaming) Configuration
    # ============================================

    bitfinex_base_url: str = Field(
        default="https://api.bitfinex.com",
        description="Bitfinex REST API base URL"
    )

    bitfinex_ws_url: str = Field(
        default="wss://api.bitfinex.com/ws",
        description="Bitfinex WebSocket URL"
    )

    bitfinex_quote_currency: str = Field(
        default="USD",
        description="Only pairs quoted in this currency are subscribed"
    )

    bitfinex_interval: float = Field(
        default=120.0,
        description="Seconds between Bitfinex emission cycles"
    )

    bitfinex_book_limit: int = Field(
        default=50,
        description="Bids/asks requested per order book"
    )

    bitfinex_symbols_retry_attempts: int = Field(default=10, description="Symbols fetch attempts")
    bitfinex_symbols_retry_delay: float = Field(default=1.0, description="Seconds between symbols attempts")
    bitfinex_book_retry_attempts: int = Field(default=2, description="Order book fetch attempts per pair")
    bitfinex_book_retry_delay: float = Field(default=1.0, description="Seconds between order book attempts")

    bitfinex_reconnect_delay: float = Field(
        default=5.0,
        description="Initial delay before reconnecting after an unexpected close (seconds)"
    )

    bitfinex_max_reconnect_delay: float = Field(
        default=60.0,
        description="Maximum delay between reconnection attempts (seconds)"
    )

    # ============================================
    # Producer Configuration
    # ============================================

    producer_backend: str = Field(
        default="event_bus",
        description="Sink for normalized batches (event_bus, logging)"
    )

    producer_topic: str = Field(
        default="tickers",
        description="Event bus topic for normalized ticker records"
    )

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    app_port: int = Field(
        default=8000,
        description="FastAPI server port"
    )

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    request_timeout: float = Field(
        default=10.0,
        description="HTTP request timeout in seconds"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        # Look for .env file in the project root
        env_file=".env",
        # Ignore extra fields in .env that aren't defined here
        extra="ignore",
        # Case-insensitive environment variable matching
        case_sensitive=False
    )

    # ============================================
    # Custom Properties
    # ============================================

    @property
    def enabled_sources_list(self) -> List[str]:
        """
        Convert comma-separated sources string to a list.

        Example:
            >>> settings.enabled_sources_list
            ['kucoin', 'bitfinex']
        """
        return [s.strip().lower() for s in self.enabled_sources.split(",") if s.strip()]

    @property
    def kucoin_pairs_list(self) -> List[str]:
        """
        Convert comma-separated Kucoin pairs string to a list.

        Example:
            >>> settings.kucoin_pairs_list[:2]
            ['BTC-USDT', 'ETH-USDT']
        """
        return [p.strip().upper() for p in self.kucoin_pairs.split(",") if p.strip()]


# ============================================
# Global Settings Instance
# ============================================

# Create a single instance of settings to be imported throughout the application
settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings on application startup.

    Args:
        config: Settings to validate (defaults to the global settings)

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # Import logger here to avoid circular import
    # (logging.py imports config.py, so we can't import at module level)
    from core.logging import logger

    config = config or settings

    if not config.enabled_sources_list:
        raise ValueError("ENABLED_SOURCES must contain at least one data source")

    for source in config.enabled_sources_list:
        if source not in SUPPORTED_SOURCES:
            raise ValueError(
                f"Unknown data source: '{source}'. "
                f"Must be one of: {', '.join(SUPPORTED_SOURCES)}"
            )

    if "kucoin" in config.enabled_sources_list and not config.kucoin_pairs_list:
        raise ValueError("KUCOIN_PAIRS must contain at least one pair")

    for name in ("kucoin_interval", "bitfinex_interval", "request_timeout"):
        if getattr(config, name) <= 0:
            raise ValueError(f"{name.upper()} must be positive")

    for name in (
        "kucoin_ticker_retry_attempts",
        "kucoin_book_retry_attempts",
        "bitfinex_symbols_retry_attempts",
        "bitfinex_book_retry_attempts",
    ):
        if getattr(config, name) < 1:
            raise ValueError(f"{name.upper()} must be at least 1")

    for name in (
        "kucoin_ticker_retry_delay",
        "kucoin_book_retry_delay",
        "kucoin_book_settle_delay",
        "bitfinex_symbols_retry_delay",
        "bitfinex_book_retry_delay",
        "bitfinex_reconnect_delay",
        "bitfinex_max_reconnect_delay",
    ):
        if getattr(config, name) < 0:
            raise ValueError(f"{name.upper()} cannot be negative")

    if config.producer_backend.lower() not in SUPPORTED_PRODUCERS:
        raise ValueError(
            f"Unknown producer backend: '{config.producer_backend}'. "
            f"Must be one of: {', '.join(SUPPORTED_PRODUCERS)}"
        )

    if not (1 <= config.app_port <= 65535):
        raise ValueError(f"Invalid port number: {config.app_port}. Must be between 1 and 65535")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"Data sources: {', '.join(config.enabled_sources_list)}")
    logger.info(f"Kucoin pairs: {', '.join(config.kucoin_pairs_list)}")
    logger.info(f"Producer: {config.producer_backend} (topic '{config.producer_topic}')")
    logger.info(f"Bitfinex quote currency: {config.bitfinex_quote_currency}")
    logger.info(f"Server: {config.app_host}:{config.app_port}")
    logger.info(f"Log level: {config.log_level.upper()}")
