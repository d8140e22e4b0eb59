"""
Astral Error Taxonomy

Exception types for the crisis and offline core.

ARCHITECTURE: Only sync item failures are user-visible, and only
after exhausting retries. Every other failure is converted into a
safe result at the public boundary of the component that hit it.
"""

from typing import Optional


class AstralError(Exception):
    """Base exception for all core errors."""

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InputRejected(AstralError):
    """Text too short or invalid for analysis. Handled locally."""


class ProbeUnavailable(AstralError):
    """A platform capability API is missing. Resolved via safe defaults."""

    def __init__(self, probe: str, reason: str = "") -> None:
        super().__init__(f"Probe '{probe}' unavailable: {reason or 'not supported'}", {"probe": probe})
        self.probe = probe
        self.reason = reason


class TransientSyncFailure(AstralError):
    """Network or submit error during flush. Retried with backoff."""


class TerminalSyncFailure(AstralError):
    """Retry ceiling exceeded or request permanently rejected."""

    def __init__(self, item_id: str, reason: str) -> None:
        super().__init__(f"Sync item {item_id} failed permanently: {reason}", {"item_id": item_id})
        self.item_id = item_id
        self.reason = reason


class PersistenceFailure(AstralError):
    """Durable storage read/write error."""


class StorageError(PersistenceFailure):
    """Raised by key-value store implementations."""
