"""Sentry error tracking configuration."""
import os
from typing import Optional, Dict, Any

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.redis import RedisIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.utils.logger import get_logger

logger = get_logger(__name__)


class SentrySettings(BaseSettings):
    """Sentry configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    dsn: Optional[str] = Field(None, alias="SENTRY_DSN")
    environment: str = Field("development", alias="SENTRY_ENVIRONMENT")
    release: Optional[str] = Field(None, alias="SENTRY_RELEASE")
    traces_sample_rate: float = Field(0.1, alias="SENTRY_TRACES_SAMPLE_RATE")
    send_default_pii: bool = Field(False, alias="SENTRY_SEND_DEFAULT_PII")
    enable_before_send_filter: bool = Field(True, alias="SENTRY_ENABLE_BEFORE_SEND_FILTER")

    sensitive_headers: str = Field(
        "authorization,cookie,if-match,x-auth-token",
        alias="SENTRY_SENSITIVE_HEADERS",
    )
    # Claim descriptions and expert reports can hold personal or medical details
    sensitive_keys: str = Field(
        "password,secret,token,description,report,phone",
        alias="SENTRY_SENSITIVE_KEYS",
    )

    enable_alerts: bool = Field(True, alias="SENTRY_ENABLE_ALERTS")
    alert_on_client_errors: bool = Field(False, alias="SENTRY_ALERT_ON_CLIENT_ERRORS")
    alert_on_warnings: bool = Field(False, alias="SENTRY_ALERT_ON_WARNINGS")

    enable_sqlalchemy_integration: bool = Field(True, alias="SENTRY_ENABLE_SQLALCHEMY_INTEGRATION")
    enable_redis_integration: bool = Field(True, alias="SENTRY_ENABLE_REDIS_INTEGRATION")


settings = SentrySettings()


def init_sentry() -> None:
    """
    Initialize Sentry error tracking.

    Called from ``app.core.setup.setup_application`` right after environment
    variables are loaded. Sentry stays disabled when ``SENTRY_DSN`` is unset
    and during tests.
    """
    if not settings.dsn:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return

    if os.getenv("TESTING") == "true":
        logger.info("Skipping Sentry initialization in test environment")
        return

    integrations = [LoggingIntegration(level=None, event_level=None)]
    if settings.enable_sqlalchemy_integration:
        integrations.append(SqlalchemyIntegration())
    if settings.enable_redis_integration:
        integrations.append(RedisIntegration())

    sentry_sdk.init(
        dsn=settings.dsn,
        environment=settings.environment,
        release=settings.release,
        traces_sample_rate=settings.traces_sample_rate,
        send_default_pii=settings.send_default_pii,
        integrations=integrations,
        before_send=filter_sensitive_data if settings.enable_before_send_filter else None,
    )

    logger.info(
        "Sentry initialized",
        environment=settings.environment,
        release=settings.release,
        filter_enabled=settings.enable_before_send_filter,
    )


def _split(value: str) -> list:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


def filter_sensitive_data(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Strip credentials and claimant details from Sentry events.

    Removes configured request headers, reduces the user context to its id and
    username, and drops extra-context keys matching a sensitive pattern.
    """
    sensitive_headers = _split(settings.sensitive_headers)
    sensitive_keys = _split(settings.sensitive_keys)

    headers = event.get("request", {}).get("headers")
    if headers:
        for header_key in [h for h in headers if h.lower() in sensitive_headers]:
            headers.pop(header_key, None)

    if "user" in event:
        event["user"] = {
            "id": event["user"].get("id"),
            "username": event["user"].get("username"),
        }

    extra = event.get("extra")
    if extra:
        for key_to_remove in [k for k in extra if any(s in k.lower() for s in sensitive_keys)]:
            extra.pop(key_to_remove, None)

    return event


def capture_exception(
    exception: Exception,
    level: str = "error",
    context: Optional[Dict[str, Any]] = None,
    tags: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """
    Capture an exception to Sentry with additional context.

    Returns:
        Event ID if Sentry is configured, None otherwise
    """
    with sentry_sdk.new_scope() as scope:
        scope.set_level(level)
        for key, value in (context or {}).items():
            scope.set_context(key, value if isinstance(value, dict) else {"value": value})
        for key, value in (tags or {}).items():
            scope.set_tag(key, value)
        return sentry_sdk.capture_exception(exception)


def set_user_context(user_id: Optional[str] = None, username: Optional[str] = None, **kwargs) -> None:
    """Attach the authenticated user to subsequent Sentry events."""
    sentry_sdk.set_user({"id": user_id, "username": username, **kwargs})


def clear_user_context() -> None:
    """Clear user context from Sentry."""
    sentry_sdk.set_user(None)


def add_breadcrumb(
    message: str,
    category: str = "default",
    level: str = "info",
    data: Optional[Dict[str, Any]] = None,
) -> None:
    """Add a breadcrumb to Sentry."""
    sentry_sdk.add_breadcrumb(message=message, category=category, level=level, data=data or {})
