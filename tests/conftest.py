"""Shared fixtures: settings, a recording bus, Stripe doubles, signing."""

import hashlib
import hmac
import json
import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import stripe
from fastapi.testclient import TestClient

from payrelay.common.config import CommonSettings
from payrelay.common.logging import event_id_ctx, order_id_ctx
from payrelay.services.payments.main import create_app
from payrelay.services.payments.service import PaymentsService
from payrelay.services.payments.webhooks import WebhookDispatcher


ENDPOINT_SECRET = "whsec_test_secret123"
SUCCESS_URL = "https://shop.test/payments/success"
CANCEL_URL = "https://shop.test/payments/cancel"
CHECKOUT_URL = "https://checkout.stripe.com/c/pay/cs_test_1"


class RecordingBus:
    """In-memory publisher that remembers every envelope."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.attempts = 0
        self.published = []
        self.log_context = []
        self.closed = False

    async def publish(self, topic, event) -> None:
        self.attempts += 1
        self.log_context.append((event_id_ctx.get(), order_id_ctx.get()))
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.published.append((topic, event))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> CommonSettings:
    return CommonSettings(
        _env_file=None,
        service_name="payments-test",
        stripe_secret_key="sk_test_abc123",
        stripe_endpoint_secret=ENDPOINT_SECRET,
        stripe_success_url=SUCCESS_URL,
        stripe_cancel_url=CANCEL_URL,
        event_sink="log",
        tracing_enabled=False,
    )


@pytest.fixture
def bus() -> RecordingBus:
    return RecordingBus()


@pytest.fixture
def stripe_client() -> MagicMock:
    """Stripe client double.

    Session creation returns a canned session; `construct_event` runs the
    real Stripe signature check so webhook tests verify actual HMACs.
    """

    client = MagicMock()
    client.checkout.sessions.create.return_value = SimpleNamespace(
        id="cs_test_1",
        url=CHECKOUT_URL,
        success_url=SUCCESS_URL,
        cancel_url=CANCEL_URL,
    )
    client.construct_event.side_effect = (
        lambda payload, sig_header, secret, tolerance: stripe.Webhook.construct_event(
            payload, sig_header, secret, tolerance
        )
    )
    return client


@pytest.fixture
def payments(stripe_client, settings) -> PaymentsService:
    return PaymentsService(stripe_client, settings)


@pytest.fixture
def dispatcher(stripe_client, bus, settings) -> WebhookDispatcher:
    return WebhookDispatcher(stripe_client, bus, settings)


@pytest.fixture
def app(settings, stripe_client, bus):
    return create_app(settings=settings, stripe_client=stripe_client, publisher=bus)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def sign(payload: bytes, secret: str = ENDPOINT_SECRET, timestamp: int | None = None) -> str:
    """Produce a `stripe-signature` header the way Stripe does."""

    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def event_body(event_type: str = "charge.succeeded", charge: dict | None = None) -> bytes:
    """Compact JSON body of a provider event."""

    if charge is None:
        charge = {
            "id": "ch_1",
            "object": "charge",
            "metadata": {"orderId": "ord-1"},
            "receipt_url": "https://r",
        }
    return json.dumps(
        {"id": "evt_1", "object": "event", "type": event_type, "data": {"object": charge}},
        separators=(",", ":"),
    ).encode("utf-8")


@pytest.fixture
def signed_event():
    """Return (body, header) for a freshly signed event."""

    def _make(event_type: str = "charge.succeeded", charge: dict | None = None):
        body = event_body(event_type, charge)
        return body, sign(body)

    return _make


@pytest.fixture
def signer():
    return sign
