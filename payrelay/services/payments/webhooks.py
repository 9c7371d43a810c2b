"""Stripe webhook verification and dispatch.

Each call is a pure function of (raw body, signature header, settings) to an
HTTP response plus at most one scheduled emission. Every authenticated call
is acknowledged with 200, handled or not, because any other status makes
Stripe redeliver. Emission runs after the acknowledgement and its failures
are logged, never reported back to Stripe. Nothing is deduplicated: a
redelivered `charge.succeeded` emits again, so consumers key on
`stripePaymentId`.
"""

from collections.abc import Sequence

import stripe
from pydantic import ValidationError
from starlette.background import BackgroundTask
from starlette.responses import JSONResponse, PlainTextResponse, Response
from stripe import StripeClient

from payrelay.common.config import CommonSettings
from payrelay.common.events import EventEnvelope, EventPublisher
from payrelay.common.logging import event_id_ctx, logger, order_id_ctx, trace_id_ctx
from payrelay.common.metrics import (
    event_publish_failures_total,
    events_published_total,
    webhook_events_total,
    webhook_rejections_total,
)
from payrelay.services.payments.schemas import (
    ChargeSucceededEvent,
    PaymentConfirmedMessage,
    webhook_event_adapter,
)


MISSING_SIGNATURE_MESSAGE = "Missing or invalid Stripe signature"
PAYMENT_SUCCEEDED = "payment.succeeded"


def single_signature(header: str | Sequence[str] | None) -> str | None:
    """Return the header value when exactly one non-empty string was sent."""

    if isinstance(header, (list, tuple)):
        if len(header) != 1:
            return None
        header = header[0]
    if not isinstance(header, str) or not header.strip():
        return None
    return header


class WebhookDispatcher:
    """Authenticates Stripe callbacks and relays confirmed charges."""

    def __init__(
        self,
        stripe_client: StripeClient,
        publisher: EventPublisher,
        settings: CommonSettings,
    ) -> None:
        self.stripe_client = stripe_client
        self.publisher = publisher
        self.settings = settings
        self.service_name = settings.service_name

    def _reject(self, reason: str, body: str) -> Response:
        webhook_rejections_total.labels(service=self.service_name, reason=reason).inc()
        logger.warning("webhook_rejected reason=%s detail=%s", reason, body)
        return PlainTextResponse(body, status_code=400)

    async def handle(self, raw_body: bytes, signature_header: str | Sequence[str] | None) -> Response:
        """Verify, decode and dispatch one webhook call."""

        signature = single_signature(signature_header)
        if signature is None:
            return self._reject("missing_signature", MISSING_SIGNATURE_MESSAGE)

        try:
            self.stripe_client.construct_event(
                raw_body,
                signature,
                self.settings.stripe_endpoint_secret,
                tolerance=self.settings.stripe_webhook_tolerance_seconds,
            )
        except stripe.SignatureVerificationError as exc:
            return self._reject("invalid_signature", f"Webhook Error: {exc}")
        except ValueError as exc:
            return self._reject("invalid_payload", f"Webhook Error: {exc}")

        try:
            event = webhook_event_adapter.validate_json(raw_body)
        except ValidationError as exc:
            # Verified, so it came from Stripe; a non-2xx would only trigger redelivery.
            webhook_events_total.labels(
                service=self.service_name,
                event_type="unknown",
                result="undecodable",
            ).inc()
            logger.warning("webhook_undecodable error=%s", exc.errors()[0]["msg"])
            return JSONResponse({"signature": signature})

        background = None
        token = event_id_ctx.set(event.id or "")
        try:
            if isinstance(event, ChargeSucceededEvent):
                background = self._charge_succeeded(event)
            else:
                webhook_events_total.labels(
                    service=self.service_name,
                    event_type=event.type,
                    result="ignored",
                ).inc()
                logger.info("event not handled event_type=%s", event.type)
        finally:
            event_id_ctx.reset(token)

        return JSONResponse({"signature": signature}, background=background)

    def _charge_succeeded(self, event: ChargeSucceededEvent) -> BackgroundTask:
        charge = event.data.object
        if not charge.metadata.order_id:
            logger.warning("charge_without_order_id stripe_payment_id=%s", charge.id)

        message = PaymentConfirmedMessage.from_charge(charge)
        webhook_events_total.labels(
            service=self.service_name,
            event_type=event.type,
            result="emitted",
        ).inc()
        logger.info(
            "payment_confirmed stripe_payment_id=%s order_id=%s",
            message.stripe_payment_id,
            message.order_id,
        )
        return BackgroundTask(
            self.emit_payment_confirmed,
            message,
            trace_id_ctx.get() or event.id,
            event.id,
        )

    async def emit_payment_confirmed(
        self,
        message: PaymentConfirmedMessage,
        trace_id: str,
        event_id: str = "",
    ) -> bool:
        """Hand one confirmation to the bus; failures are logged and dropped."""

        topic = self.settings.payment_succeeded_topic
        envelope = EventEnvelope(
            event_type=PAYMENT_SUCCEEDED,
            aggregate_id=message.order_id or message.stripe_payment_id,
            trace_id=trace_id,
            payload=message.to_wire(),
        )
        event_token = event_id_ctx.set(event_id)
        order_token = order_id_ctx.set(message.order_id or "")
        try:
            try:
                await self.publisher.publish(topic, envelope)
            except Exception as exc:
                event_publish_failures_total.labels(service=self.service_name, topic=topic).inc()
                logger.exception(
                    "payment_confirmed_publish_failed topic=%s order_id=%s stripe_payment_id=%s error=%s",
                    topic,
                    message.order_id,
                    message.stripe_payment_id,
                    exc,
                )
                return False
            events_published_total.labels(service=self.service_name, topic=topic).inc()
            logger.info(
                "payment_confirmed_published topic=%s envelope_id=%s order_id=%s",
                topic,
                envelope.event_id,
                message.order_id,
            )
            return True
        finally:
            order_id_ctx.reset(order_token)
            event_id_ctx.reset(event_token)
