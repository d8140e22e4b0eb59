"""
Astral Logging Configuration

structlog setup shared by the crisis, offline and API layers.

Log entries may describe what happened to a user's text or sync item
(risk level, queue size, outcome) but never carry the text or item
itself. Two redaction rules run on every entry:
- credential keys are matched by substring (api_token, Authorization)
- user content keys are matched exactly, so derived fields such as
  text_hash stay readable

Development renders to the console; staging and production emit JSON.
"""

import logging
import sys
from typing import Any

import structlog

from astral import __version__
from astral.config.settings import Settings

REDACTED = "[REDACTED]"

# Substrings of keys that hold credentials
CREDENTIAL_MARKERS: frozenset[str] = frozenset({
    "password",
    "token",
    "secret",
    "api_key",
    "apikey",
    "authorization",
    "bearer",
    "credential",
    "dsn",
})

# Keys whose values are authored by the user or derived from their text
USER_CONTENT_KEYS: frozenset[str] = frozenset({
    "text",
    "raw_text",
    "payload",
    "content",
    "context",
    "body",
    "matched_keywords",
})

# Libraries that log request lines or SQL at INFO
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "aiosqlite", "sqlalchemy.engine")


def _is_sensitive(key: str) -> bool:
    key_lower = key.lower()
    if key_lower in USER_CONTENT_KEYS:
        return True
    return any(marker in key_lower for marker in CREDENTIAL_MARKERS)


def _redact_sensitive_data(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """
    structlog processor that replaces sensitive values with a marker.

    Nested dicts and lists are walked so a payload tucked inside
    an extra field is caught too. The event message itself is kept.
    """
    def redact(key: str, value: Any) -> Any:
        if key != "event" and _is_sensitive(key):
            return REDACTED
        if isinstance(value, dict):
            return {k: redact(str(k), v) for k, v in value.items()}
        if isinstance(value, list):
            return [redact(key, item) for item in value]
        return value

    return {key: redact(key, value) for key, value in event_dict.items()}


def _add_service_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    event_dict["service"] = "astral-core"
    event_dict["version"] = __version__
    return event_dict


def get_processors(is_development: bool) -> list[Any]:
    """Processor chain; redaction runs before any renderer sees the entry."""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _redact_sensitive_data,
        _add_service_context,
    ]

    if is_development:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.extend([
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ])

    return processors


def configure_logging(settings: Settings) -> None:
    """
    Configure structlog and the stdlib root logger.

    Called once from the API lifespan or by an embedding host before
    the ResilienceCore is initialized.

    Args:
        settings: Provides env (renderer choice) and log_level
    """
    structlog.configure(
        processors=get_processors(settings.env == "development"),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_correlation_id(correlation_id: str) -> None:
    """Tag every entry logged while handling the current request."""
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
