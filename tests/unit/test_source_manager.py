"""
Unit Tests for the Source Manager

Run with:
    pytest tests/unit/test_source_manager.py -v
"""

import pytest

from core.config import Settings
from core.data_source import SourceState
from core.source_manager import SourceManager, build_source
from exchanges.bitfinex import BitfinexDataSource
from exchanges.kucoin import KucoinDataSource
from tests.unit.fakes import StubSource


class TestBuildSources:

    def test_builds_enabled_sources_from_settings(self, producer):
        config = Settings(
            enabled_sources="kucoin,bitfinex",
            kucoin_pairs="BTC-USDT,ETH-USDT",
            kucoin_interval=30,
            kucoin_book_retry_attempts=3,
            bitfinex_quote_currency="eur",
            bitfinex_book_retry_attempts=4,
        )

        manager = SourceManager(producer, config=config)

        assert manager.list_sources() == ["kucoin", "bitfinex"]
        kucoin = manager.get_source("kucoin")
        bitfinex = manager.get_source("BITFINEX")
        assert isinstance(kucoin, KucoinDataSource)
        assert isinstance(bitfinex, BitfinexDataSource)
        assert kucoin.pairs == ["BTC-USDT", "ETH-USDT"]
        assert kucoin.interval == 30
        assert kucoin.book_retry.attempts == 3
        assert bitfinex.quote_currency == "EUR"
        assert bitfinex.book_retry.attempts == 4
        assert kucoin.producer is producer
        assert bitfinex.producer is producer

    def test_only_enabled_sources_are_built(self, producer):
        manager = SourceManager(producer, config=Settings(enabled_sources="bitfinex"))
        assert len(manager) == 1
        assert manager.list_sources() == ["bitfinex"]

    def test_unknown_source(self, producer):
        with pytest.raises(ValueError):
            build_source("binance", producer, Settings())

    def test_get_unregistered_source(self, producer):
        manager = SourceManager(producer, sources=[StubSource(producer, "kucoin")])
        with pytest.raises(ValueError, match="not registered"):
            manager.get_source("bitfinex")


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_failure_does_not_block_others(self, producer):
        broken = StubSource(producer, "kucoin", fail_start=True)
        healthy = StubSource(producer, "bitfinex")
        manager = SourceManager(producer, sources=[broken, healthy])

        await manager.start_all()

        assert broken.started == 1
        assert healthy.is_running
        assert not manager.is_healthy()

    @pytest.mark.asyncio
    async def test_stop_failure_does_not_block_others(self, producer):
        broken = StubSource(producer, "kucoin", fail_stop=True)
        healthy = StubSource(producer, "bitfinex")
        manager = SourceManager(producer, sources=[broken, healthy])

        await manager.start_all()
        assert manager.is_healthy()
        await manager.stop_all()

        assert broken.stopped == 1
        assert healthy.state == SourceState.STOPPED

    def test_status_all(self, producer):
        manager = SourceManager(producer, sources=[StubSource(producer, "kucoin")])

        status = manager.status_all()

        assert status["kucoin"]["state"] == "idle"
        assert "SourceManager" in repr(manager)
