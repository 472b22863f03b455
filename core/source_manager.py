"""
Source Manager — Central Registry for Data Sources

This module builds the configured data sources and manages their lifecycle.

Design Benefits:
    - Single source of truth for which exchanges are ingested
    - The only place that reads Settings: data sources receive plain values
    - Centralized start/stop, where one failing source never blocks the others
    - Health reporting for the HTTP layer

Example Usage:
    # In app/main.py (FastAPI lifespan)
    manager = SourceManager(producer=EventBusProducer())
    await manager.start_all()
    ...
    await manager.stop_all()
"""

from typing import Any, Dict, List, Optional

from core.config import Settings, settings as default_settings
from core.data_source import DataSource, Producer
from core.logging import logger
from core.retry import RetryPolicy


def build_source(name: str, producer: Producer, config: Settings) -> DataSource:
    """
    Create one data source from settings.

    Args:
        name: Source name ("kucoin" or "bitfinex")
        producer: Sink the source emits to
        config: Application settings

    Returns:
        DataSource: The configured (not yet started) source

    Raises:
        ValueError: If the source name is unknown
    """
    # Import here to avoid circular imports
    # Each exchange module imports from core, so we can't import at module level
    from exchanges.kucoin import KucoinDataSource
    from exchanges.bitfinex import BitfinexDataSource

    name = name.lower()

    if name == "kucoin":
        return KucoinDataSource(
            producer,
            pairs=config.kucoin_pairs_list,
            interval=config.kucoin_interval,
            market=config.kucoin_market,
            book_depth=config.kucoin_book_depth,
            ticker_retry=RetryPolicy(
                attempts=config.kucoin_ticker_retry_attempts,
                delay=config.kucoin_ticker_retry_delay,
            ),
            book_retry=RetryPolicy(
                attempts=config.kucoin_book_retry_attempts,
                delay=config.kucoin_book_retry_delay,
            ),
            settle_delay=config.kucoin_book_settle_delay,
            base_url=config.kucoin_base_url,
            timeout=config.request_timeout,
        )

    if name == "bitfinex":
        return BitfinexDataSource(
            producer,
            interval=config.bitfinex_interval,
            quote_currency=config.bitfinex_quote_currency,
            book_limit=config.bitfinex_book_limit,
            symbols_retry=RetryPolicy(
                attempts=config.bitfinex_symbols_retry_attempts,
                delay=config.bitfinex_symbols_retry_delay,
            ),
            book_retry=RetryPolicy(
                attempts=config.bitfinex_book_retry_attempts,
                delay=config.bitfinex_book_retry_delay,
            ),
            reconnect_delay=config.bitfinex_reconnect_delay,
            max_reconnect_delay=config.bitfinex_max_reconnect_delay,
            base_url=config.bitfinex_base_url,
            ws_url=config.bitfinex_ws_url,
            timeout=config.request_timeout,
        )

    raise ValueError(f"Data source '{name}' is not supported")


class SourceManager:
    """
    Central Manager for Data Sources

    Attributes:
        sources: Dictionary mapping source names to instances
                 Example: {"kucoin": KucoinDataSource(...), "bitfinex": BitfinexDataSource(...)}

    Example:
        >>> manager = SourceManager(producer=LoggingProducer())
        >>> await manager.start_all()
        >>> manager.status_all()
        {'kucoin': {'state': 'running', ...}, 'bitfinex': {...}}
        >>> await manager.stop_all()
    """

    def __init__(
        self,
        producer: Producer,
        config: Optional[Settings] = None,
        sources: Optional[List[DataSource]] = None,
    ):
        """
        Build the registry.

        Args:
            producer: Sink shared by every source
            config: Settings to build sources from (defaults to global settings)
            sources: Pre-built sources; when given, config is not used
        """
        self.producer = producer

        if sources is None:
            config = config or default_settings
            sources = [build_source(name, producer, config) for name in config.enabled_sources_list]

        self.sources: Dict[str, DataSource] = {source.name: source for source in sources}

        logger.info(f"SourceManager initialized with {len(self.sources)} source(s): {', '.join(self.sources)}")

    # ============================================
    # Source Retrieval Methods
    # ============================================

    def get_source(self, name: str) -> DataSource:
        """
        Get a data source by name.

        Raises:
            ValueError: If the source is not registered
        """
        name = name.lower()

        if name not in self.sources:
            available = ", ".join(self.sources.keys())
            raise ValueError(
                f"Data source '{name}' is not registered. "
                f"Available sources: {available}"
            )

        return self.sources[name]

    def list_sources(self) -> List[str]:
        return list(self.sources.keys())

    # ============================================
    # Lifecycle Management
    # ============================================

    async def start_all(self) -> None:
        """Start every source. A source that fails to start is logged and skipped."""
        logger.info("Starting all data sources...")

        for name, source in self.sources.items():
            try:
                await source.start()
                logger.info(f"✓ {source.display_name} started")
            except Exception as e:
                logger.error(f"✗ Failed to start {name}: {e}")

    async def stop_all(self) -> None:
        """Stop every source. Errors are logged and the remaining sources still stop."""
        logger.info("Stopping all data sources...")

        for name, source in self.sources.items():
            try:
                await source.stop()
                logger.info(f"✓ {source.display_name} stopped")
            except Exception as e:
                logger.error(f"✗ Error stopping {name}: {e}")

        logger.info("All data sources stopped")

    # ============================================
    # Health
    # ============================================

    def status_all(self) -> Dict[str, Dict[str, Any]]:
        return {name: source.status() for name, source in self.sources.items()}

    def is_healthy(self) -> bool:
        """True when every registered source is running."""
        return all(source.is_running for source in self.sources.values())

    def __repr__(self) -> str:
        return f"<SourceManager(sources={list(self.sources.keys())})>"

    def __len__(self) -> int:
        return len(self.sources)
