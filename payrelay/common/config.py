"""Central environment-driven settings for the payments service.

The process loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`); tests build their own `CommonSettings`.
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "payments"
    log_level: str = "INFO"
    stripe_secret_key: str
    stripe_endpoint_secret: str
    stripe_success_url: str
    stripe_cancel_url: str
    stripe_webhook_tolerance_seconds: int = 300
    kafka_bootstrap_servers: str = "kafka:9092"
    payment_succeeded_topic: str = "payment.succeeded"
    event_sink: Literal["kafka", "log"] = "kafka"
    tracing_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def get_settings() -> CommonSettings:
    """Load settings from the environment."""

    return CommonSettings()
