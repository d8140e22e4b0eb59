"""Monitoring infrastructure package."""

from astral.infrastructure.monitoring.sentry_integration import (
    before_send,
    capture_exception_with_context,
    init_sentry,
)

__all__ = [
    "init_sentry",
    "before_send",
    "capture_exception_with_context",
]
