"""
In-Process Producers

Concrete sinks for normalized batches.

    - EventBusProducer: publishes every record on the application event bus,
      where the /ws/tickers endpoint (or any other subscriber) picks it up.
    - LoggingProducer: logs a one-line summary per batch.

Both return immediately: produce() never waits on a consumer.
"""

from typing import Optional, Sequence

from core.data_source import Producer
from core.logging import get_logger
from core.schemas import NormalizedPayload
from services.event_bus import EventBus, bus


class EventBusProducer(Producer):
    """
    Publish each payload of a batch as one event on the event bus.

    Event Format:
        {"type": "ticker", "tag": "KUCOIN", **payload.model_dump(mode="json")}

    Example:
        >>> producer = EventBusProducer(topic="tickers")
        >>> queue = await bus.subscribe("tickers")
        >>> producer.produce(batch, "KUCOIN")
    """

    def __init__(self, topic: str = "tickers", event_bus: Optional[EventBus] = None) -> None:
        self.topic = topic
        self.bus = event_bus or bus
        self.published = 0
        self._logger = get_logger(__name__)

    def produce(self, batch: Sequence[NormalizedPayload], tag: Optional[str] = None) -> None:
        if not batch:
            self._logger.debug(f"Empty {tag} batch, nothing to publish")
            return

        for payload in batch:
            self.bus.publish_nowait(self.topic, {"type": "ticker", "tag": tag, **payload.model_dump(mode="json")})

        self.published += len(batch)
        self._logger.debug(f"Published {len(batch)} {tag} records on '{self.topic}'")


class LoggingProducer(Producer):
    """Log batch size, tag and pairs. Useful for dry runs."""

    def __init__(self) -> None:
        self._logger = get_logger(__name__)

    def produce(self, batch: Sequence[NormalizedPayload], tag: Optional[str] = None) -> None:
        pairs = ", ".join(payload.pair for payload in batch)
        self._logger.info(f"[{tag}] batch of {len(batch)}: {pairs}")


def build_producer(backend: str = "event_bus", topic: str = "tickers") -> Producer:
    """
    Create the sink selected by the producer_backend setting.

    Raises:
        ValueError: If the backend is unknown
    """
    backend = backend.lower()

    if backend == "event_bus":
        return EventBusProducer(topic=topic)
    if backend == "logging":
        return LoggingProducer()

    raise ValueError(f"Unknown producer backend: '{backend}'")
