"""Startup-time helpers for safe config logging."""

from pydantic_settings import BaseSettings

from payrelay.common.logging import logger


SECRET_MARKERS = ("key", "secret", "password", "token")


def redacted_config(settings: BaseSettings, fields: list[str]) -> dict[str, str]:
    """Return selected settings with secret-like fields masked."""

    config = {}
    for name in fields:
        value = getattr(settings, name, None)
        if value is None:
            config[name] = "<unset>"
        elif any(marker in name.lower() for marker in SECRET_MARKERS):
            config[name] = "<redacted>"
        else:
            config[name] = str(value)
    return config


def log_startup_config(settings: BaseSettings, fields: list[str]) -> None:
    """Log the effective configuration for quick troubleshooting."""

    config = {"service": getattr(settings, "service_name", "unknown-service")}
    config.update(redacted_config(settings, fields))
    logger.info("startup_config=%s", config)
