"""Prometheus metric definitions for the payments service."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
checkout_sessions_created_total = Counter(
    "checkout_sessions_created_total",
    "Checkout sessions created at the provider",
    ["service"],
)
checkout_session_failures_total = Counter(
    "checkout_session_failures_total",
    "Checkout session creations rejected by the provider",
    ["service", "error_type"],
)
provider_latency_seconds = Histogram(
    "provider_latency_seconds",
    "Provider API call latency seconds",
    ["service", "operation"],
)
webhook_events_total = Counter(
    "webhook_events_total",
    "Verified webhook events by type and dispatch result",
    ["service", "event_type", "result"],
)
webhook_rejections_total = Counter(
    "webhook_rejections_total",
    "Webhook calls rejected before dispatch",
    ["service", "reason"],
)
events_published_total = Counter(
    "events_published_total",
    "Events handed to the message bus",
    ["service", "topic"],
)
event_publish_failures_total = Counter(
    "event_publish_failures_total",
    "Events that could not be handed to the message bus",
    ["service", "topic"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
