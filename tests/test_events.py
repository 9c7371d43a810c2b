"""Tests for event sinks and publisher selection."""

import json
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from payrelay.common.events import EventEnvelope, KafkaBus, LogOnlyBus, build_publisher


def make_envelope() -> EventEnvelope:
    return EventEnvelope(
        event_type="payment.succeeded",
        aggregate_id="ord-1",
        trace_id="trace-1",
        payload={"stripePaymentId": "ch_1", "orderId": "ord-1", "receiptUrl": "https://r"},
    )


def test_build_publisher_follows_event_sink(settings):
    assert isinstance(build_publisher(settings), LogOnlyBus)

    kafka = build_publisher(settings.model_copy(update={"event_sink": "kafka"}))

    assert isinstance(kafka, KafkaBus)
    assert kafka.bootstrap_servers == settings.kafka_bootstrap_servers


@pytest.mark.asyncio
async def test_kafka_bus_starts_producer_once_and_sends_json():
    producer = MagicMock()
    producer.start = AsyncMock()
    producer.send_and_wait = AsyncMock()
    producer.stop = AsyncMock()
    envelope = make_envelope()

    with patch("payrelay.common.events.AIOKafkaProducer", return_value=producer) as producer_cls:
        bus = KafkaBus("localhost:9092")
        await bus.publish("payment.succeeded", envelope)
        await bus.publish("payment.succeeded", envelope)
        await bus.close()

    producer_cls.assert_called_once_with(bootstrap_servers="localhost:9092")
    producer.start.assert_awaited_once()
    producer.stop.assert_awaited_once()
    topic, raw = producer.send_and_wait.await_args.args
    assert topic == "payment.succeeded"
    assert json.loads(raw)["payload"]["orderId"] == "ord-1"
    assert producer.send_and_wait.await_args.kwargs["key"] == b"ord-1"


@pytest.mark.asyncio
async def test_kafka_bus_retries_start_after_failed_start():
    broken = MagicMock()
    broken.start = AsyncMock(side_effect=ConnectionError("broker unreachable"))
    broken.stop = AsyncMock()
    broken.send_and_wait = AsyncMock()
    healthy = MagicMock()
    healthy.start = AsyncMock()
    healthy.send_and_wait = AsyncMock()
    envelope = make_envelope()

    with patch("payrelay.common.events.AIOKafkaProducer", side_effect=[broken, healthy]) as producer_cls:
        bus = KafkaBus("localhost:9092")
        with pytest.raises(ConnectionError):
            await bus.publish("payment.succeeded", envelope)
        await bus.publish("payment.succeeded", envelope)

    assert producer_cls.call_count == 2
    broken.send_and_wait.assert_not_awaited()
    broken.stop.assert_awaited_once()
    healthy.start.assert_awaited_once()
    healthy.send_and_wait.assert_awaited_once()


@pytest.mark.asyncio
async def test_kafka_bus_close_without_publish_is_noop():
    with patch("payrelay.common.events.AIOKafkaProducer") as producer_cls:
        await KafkaBus("localhost:9092").close()

    producer_cls.assert_not_called()


@pytest.mark.asyncio
async def test_log_only_bus_records_payload(caplog):
    caplog.set_level(logging.INFO, logger="payrelay")

    await LogOnlyBus().publish("payment.succeeded", make_envelope())

    assert any("event_logged topic=payment.succeeded" in r.getMessage() for r in caplog.records)
