"""Event envelope + publisher helpers.

Every event leaving the service is wrapped in `EventEnvelope` and handed to an
`EventPublisher`. Kafka is the production sink; `LogOnlyBus` only records the
envelope in the logs.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Protocol
from uuid import uuid4

from aiokafka import AIOKafkaProducer
from pydantic import BaseModel, Field

from payrelay.common.config import CommonSettings
from payrelay.common.logging import logger


class EventEnvelope(BaseModel):
    """Canonical event shape sent across topics."""

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str
    aggregate_id: str
    occurred_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    trace_id: str
    payload: dict[str, Any]


class EventPublisher(Protocol):
    """Anything able to deliver an envelope to a topic."""

    async def publish(self, topic: str, event: EventEnvelope) -> None: ...

    async def close(self) -> None: ...


class KafkaBus:
    """Lazy Kafka producer wrapper."""

    def __init__(self, bootstrap_servers: str) -> None:
        self.bootstrap_servers = bootstrap_servers
        self._producer: AIOKafkaProducer | None = None
        self._lock = asyncio.Lock()

    async def producer(self) -> AIOKafkaProducer:
        # Only a started producer is cached; a failed start is retried on the next publish.
        async with self._lock:
            if self._producer is None:
                producer = AIOKafkaProducer(bootstrap_servers=self.bootstrap_servers)
                try:
                    await producer.start()
                except Exception:
                    await producer.stop()
                    raise
                self._producer = producer
            return self._producer

    async def publish(self, topic: str, event: EventEnvelope) -> None:
        producer = await self.producer()
        await producer.send_and_wait(
            topic,
            json.dumps(event.model_dump()).encode("utf-8"),
            key=event.aggregate_id.encode("utf-8"),
        )

    async def close(self) -> None:
        if self._producer:
            await self._producer.stop()
            self._producer = None


class LogOnlyBus:
    """Publisher that writes envelopes to the log instead of a broker."""

    async def publish(self, topic: str, event: EventEnvelope) -> None:
        logger.info(
            "event_logged topic=%s event_type=%s aggregate_id=%s payload=%s",
            topic,
            event.event_type,
            event.aggregate_id,
            json.dumps(event.payload),
        )

    async def close(self) -> None:
        return None


def build_publisher(settings: CommonSettings) -> EventPublisher:
    """Pick the configured event sink."""

    if settings.event_sink == "log":
        return LogOnlyBus()
    return KafkaBus(settings.kafka_bootstrap_servers)
