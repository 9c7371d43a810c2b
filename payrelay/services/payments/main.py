"""HTTP surface for checkout session creation and Stripe webhooks."""

from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

import stripe
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response
from stripe import StripeClient

from payrelay.common.config import CommonSettings, get_settings
from payrelay.common.events import EventPublisher, build_publisher
from payrelay.common.logging import configure_logging, logger, trace_id_ctx
from payrelay.common.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    metrics_response,
)
from payrelay.common.startup import log_startup_config
from payrelay.common.tracing import configure_tracing
from payrelay.services.payments.schemas import PaymentSessionRequest, PaymentSessionResponse
from payrelay.services.payments.service import PaymentsService, build_stripe_client
from payrelay.services.payments.webhooks import WebhookDispatcher


STARTUP_FIELDS = [
    "log_level",
    "stripe_secret_key",
    "stripe_endpoint_secret",
    "stripe_success_url",
    "stripe_cancel_url",
    "stripe_webhook_tolerance_seconds",
    "kafka_bootstrap_servers",
    "payment_succeeded_topic",
    "event_sink",
    "tracing_enabled",
]

router = APIRouter(prefix="/payments", tags=["payments"])


def get_payments_service(request: Request) -> PaymentsService:
    return request.app.state.payments


def get_dispatcher(request: Request) -> WebhookDispatcher:
    return request.app.state.dispatcher


@router.post("/create-payment-session", response_model=PaymentSessionResponse)
def create_payment_session(
    req: PaymentSessionRequest,
    payments: PaymentsService = Depends(get_payments_service),
):
    """Create a Stripe-hosted checkout session for one order."""

    return payments.create_payment_session(req)


@router.post("/webhook", include_in_schema=False)
async def stripe_webhook(request: Request, dispatcher: WebhookDispatcher = Depends(get_dispatcher)) -> Response:
    """Receive Stripe callbacks; the body is read raw for signature checks."""

    raw_body = await request.body()
    return await dispatcher.handle(raw_body, request.headers.getlist("stripe-signature"))


@router.get("/success")
def payment_success():
    """Landing endpoint for the checkout success redirect."""

    return {"ok": True, "message": "Payment successful"}


@router.get("/cancel")
def payment_cancel():
    """Landing endpoint for the checkout cancel redirect."""

    return {"ok": False, "message": "Payment cancelled"}


async def stripe_error_handler(_: Request, exc: stripe.StripeError) -> JSONResponse:
    """Surface provider failures to the session-creation caller."""

    status_code = 400 if isinstance(exc, stripe.InvalidRequestError) else 502
    return JSONResponse(status_code=status_code, content={"detail": exc.user_message or str(exc)})


def create_app(
    settings: CommonSettings | None = None,
    stripe_client: StripeClient | None = None,
    publisher: EventPublisher | None = None,
) -> FastAPI:
    """Build the service with explicitly injected collaborators."""

    settings = settings or get_settings()
    stripe_client = stripe_client or build_stripe_client(settings)
    publisher = publisher or build_publisher(settings)
    log_startup_config(settings, STARTUP_FIELDS)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Close the event publisher with app lifecycle."""

        yield
        await publisher.close()

    app = FastAPI(title="PayRelay Payments", lifespan=lifespan)
    app.state.settings = settings
    app.state.publisher = publisher
    app.state.payments = PaymentsService(stripe_client, settings)
    app.state.dispatcher = WebhookDispatcher(stripe_client, publisher, settings)
    configure_tracing(app, settings)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Record request count and latency, and bind the correlation id."""

        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        token = trace_id_ctx.set(request.headers.get("x-correlation-id") or str(uuid4()))
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()
            trace_id_ctx.reset(token)

    app.add_exception_handler(stripe.StripeError, stripe_error_handler)
    app.include_router(router)

    @app.get("/health")
    def health():
        """Container health probe endpoint."""

        return {"ok": True}

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    logger.info("app_created service=%s event_sink=%s", settings.service_name, settings.event_sink)
    return app


def build_default_app() -> FastAPI:
    """Process entrypoint: environment settings + JSON logging."""

    settings = get_settings()
    configure_logging(settings.service_name, settings.log_level)
    return create_app(settings)
