"""Checkout session builder.

Translates an internal order into Stripe's checkout-session request and
reduces the created session to the URLs callers need.
"""

from time import perf_counter
from typing import Any

import stripe
from stripe import StripeClient

from payrelay.common.config import CommonSettings
from payrelay.common.logging import logger, order_id_ctx
from payrelay.common.metrics import (
    checkout_session_failures_total,
    checkout_sessions_created_total,
    provider_latency_seconds,
)
from payrelay.services.payments.pricing import to_minor_units
from payrelay.services.payments.schemas import PaymentSessionRequest, PaymentSessionResponse


def build_stripe_client(settings: CommonSettings) -> StripeClient:
    """Create the process-wide Stripe client from settings."""

    return StripeClient(settings.stripe_secret_key)


def build_line_items(req: PaymentSessionRequest) -> list[dict[str, Any]]:
    """One Stripe line item per request item, order preserved."""

    currency = req.currency.lower()
    return [
        {
            "price_data": {
                "currency": currency,
                "product_data": {"name": item.name},
                "unit_amount": to_minor_units(item.price),
            },
            "quantity": item.quantity,
        }
        for item in req.items
    ]


class PaymentsService:
    """Creates one-time-payment checkout sessions at Stripe."""

    def __init__(self, stripe_client: StripeClient, settings: CommonSettings) -> None:
        self.stripe_client = stripe_client
        self.settings = settings
        self.service_name = settings.service_name

    def session_params(self, req: PaymentSessionRequest) -> dict[str, Any]:
        return {
            "payment_intent_data": {"metadata": {"orderId": req.order_id}},
            "line_items": build_line_items(req),
            "mode": "payment",
            "success_url": self.settings.stripe_success_url,
            "cancel_url": self.settings.stripe_cancel_url,
        }

    def create_payment_session(self, req: PaymentSessionRequest) -> PaymentSessionResponse:
        """Create a hosted checkout session for `req`.

        Issues exactly one provider call. `stripe.StripeError` is re-raised
        unchanged so the caller sees the provider's own failure.
        """

        token = order_id_ctx.set(req.order_id)
        try:
            params = self.session_params(req)
            started = perf_counter()
            try:
                session = self.stripe_client.checkout.sessions.create(params=params)
            except stripe.StripeError as exc:
                checkout_session_failures_total.labels(
                    service=self.service_name,
                    error_type=type(exc).__name__,
                ).inc()
                logger.error(
                    "checkout_session_failed order_id=%s error_type=%s error=%s",
                    req.order_id,
                    type(exc).__name__,
                    exc,
                )
                raise
            finally:
                provider_latency_seconds.labels(
                    service=self.service_name,
                    operation="checkout.sessions.create",
                ).observe(max(0.0, perf_counter() - started))

            checkout_sessions_created_total.labels(service=self.service_name).inc()
            logger.info(
                "checkout_session_created order_id=%s session_id=%s items=%s",
                req.order_id,
                session.id,
                len(params["line_items"]),
            )
            return PaymentSessionResponse(
                cancel_url=session.cancel_url,
                success_url=session.success_url,
                url=session.url,
            )
        finally:
            order_id_ctx.reset(token)
