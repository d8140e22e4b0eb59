"""
Sentry Error Tracking Integration

Production error tracking with sensitive data scrubbing.

PRIVACY: User-authored text, sync payloads and credentials are stripped
before any event leaves the process.
"""

import re
from typing import Any, Optional

import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from astral import __version__
from astral.config.logging_config import get_logger
from astral.config.settings import Settings

logger = get_logger(__name__)

SENSITIVE_PATTERNS = [
    r"token[\"']?\s*[:=]\s*[\"']?[^\"'\s,}]+",
    r"secret[\"']?\s*[:=]\s*[\"']?[^\"'\s,}]+",
    r"bearer\s+[a-zA-Z0-9\-._~+/]+=*",
    r"authorization[\"']?\s*[:=]\s*[\"']?[^\"'\s,}]+",
]

# Keys whose values are dropped entirely
SENSITIVE_KEYS = frozenset({
    "token",
    "secret",
    "api_key",
    "authorization",
    "bearer",
    "credential",
    "idempotency_key",
    "text",
    "payload",
    "content",
    "context",
})


def _scrub_string(value: str) -> str:
    result = value
    for pattern in SENSITIVE_PATTERNS:
        result = re.sub(pattern, "[REDACTED]", result, flags=re.IGNORECASE)
    return result


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return _scrub_dict(value)
    if isinstance(value, list):
        return [_scrub(item) for item in value]
    if isinstance(value, str):
        return _scrub_string(value)
    return value


def _scrub_dict(data: dict) -> dict:
    """Recursively scrub sensitive data from dictionary."""
    result = {}
    for key, value in data.items():
        key_lower = str(key).lower().replace("-", "_")
        if any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
            result[key] = "[REDACTED]"
        else:
            result[key] = _scrub(value)
    return result


def before_send(event: dict, hint: dict) -> Optional[dict]:
    """Strip request bodies, headers, breadcrumbs and extras of sensitive values."""
    request = event.get("request")
    if isinstance(request, dict):
        if "data" in request:
            # Request bodies carry user text and payloads
            request["data"] = "[REDACTED]"
        if isinstance(request.get("headers"), dict):
            request["headers"] = _scrub_dict(request["headers"])

    for breadcrumb in event.get("breadcrumbs", {}).get("values", []):
        if isinstance(breadcrumb.get("data"), dict):
            breadcrumb["data"] = _scrub_dict(breadcrumb["data"])

    if isinstance(event.get("extra"), dict):
        event["extra"] = _scrub_dict(event["extra"])

    return event


def before_breadcrumb(breadcrumb: dict, hint: dict) -> Optional[dict]:
    if breadcrumb.get("category") == "sql" and "message" in breadcrumb:
        breadcrumb["message"] = _scrub_string(breadcrumb["message"])
    return breadcrumb


def init_sentry(settings: Settings) -> bool:
    """
    Initialize Sentry error tracking when a DSN is configured.

    Returns:
        True when Sentry was initialized
    """
    dsn = settings.sentry.dsn.get_secret_value()
    if not dsn:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return False

    release = f"astral-core@{__version__}"
    sentry_sdk.init(
        dsn=dsn,
        environment=settings.env,
        release=release,
        traces_sample_rate=settings.sentry.traces_sample_rate,
        before_send=before_send,
        before_breadcrumb=before_breadcrumb,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            AsyncioIntegration(),
            LoggingIntegration(level=None, event_level=None),
        ],
        send_default_pii=False,
        attach_stacktrace=True,
        max_breadcrumbs=50,
    )
    logger.info("Sentry initialized", environment=settings.env, release=release)
    return True


def capture_exception_with_context(
    exception: Exception,
    correlation_id: Optional[str] = None,
    extra: Optional[dict] = None,
) -> Optional[str]:
    """
    Capture exception with scrubbed context.

    Returns:
        Sentry event ID
    """
    with sentry_sdk.new_scope() as scope:
        if correlation_id:
            scope.set_tag("correlation_id", correlation_id)
        if extra:
            for key, value in _scrub_dict(extra).items():
                scope.set_extra(key, value)
        return sentry_sdk.capture_exception(exception)
