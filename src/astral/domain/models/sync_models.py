"""
Sync Queue Models

Data models for queued offline operations and flush outcomes.

The persisted item schema (id, type, payload, priority, timestamps,
retry_count) is the only structure that must stay stable across
releases. Changes require a schema_version bump and a migration in
the sync queue loader.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Optional
from uuid import uuid4

SYNC_SCHEMA_VERSION = 1

# Lower is more urgent. Crisis-related work always syncs first.
PAYLOAD_PRIORITIES: dict[str, int] = {
    "crisis-contact": 1,
    "safety-plan": 1,
    "mood-entry": 2,
    "assessment": 2,
    "medication": 3,
    "appointment": 3,
    "journal-entry": 4,
    "goal": 5,
    "therapy-note": 5,
    "user-preference": 6,
}

DEFAULT_PAYLOAD_PRIORITY = 5


def priority_for_type(payload_type: str) -> int:
    """Default priority for a payload type tag."""
    return PAYLOAD_PRIORITIES.get(payload_type, DEFAULT_PAYLOAD_PRIORITY)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SubmitOutcome(StrEnum):
    """Result of submitting one item to the remote endpoint."""

    SUCCESS = "success"
    """Remote acknowledged the item. It is removed."""

    TRANSIENT = "transient"
    """Retryable failure. The item stays queued with backoff."""

    TERMINAL = "terminal"
    """Permanent rejection. The item is removed and reported."""


@dataclass
class SyncQueueItem:
    """
    A pending offline operation.

    Ordered by (priority, created_at, sequence); FIFO within a priority.
    Mutated only by the owning SyncQueue.
    """

    payload_type: str
    payload: dict[str, Any]
    priority: int = DEFAULT_PAYLOAD_PRIORITY
    item_id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    sequence: int = 0
    retry_count: int = 0
    max_retries: int = 5
    language: str = "en"
    context: dict[str, Any] = field(default_factory=dict)
    next_attempt_at: Optional[datetime] = None
    last_error: Optional[str] = None

    @classmethod
    def create(
        cls,
        payload_type: str,
        payload: dict[str, Any],
        priority: Optional[int] = None,
        **kwargs: Any,
    ) -> "SyncQueueItem":
        """Build an item, deriving priority from the payload type when omitted."""
        return cls(
            payload_type=payload_type,
            payload=payload,
            priority=priority if priority is not None else priority_for_type(payload_type),
            **kwargs,
        )

    @property
    def sort_key(self) -> tuple[int, datetime, int]:
        return (self.priority, self.created_at, self.sequence)

    def is_due(self, now: datetime) -> bool:
        return self.next_attempt_at is None or self.next_attempt_at <= now

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.item_id,
            "type": self.payload_type,
            "payload": self.payload,
            "priority": self.priority,
            "created_at": self.created_at.isoformat(),
            "sequence": self.sequence,
            "retry_count": self.retry_count,
            "max_retries": self.max_retries,
            "language": self.language,
            "context": self.context,
            "next_attempt_at": self.next_attempt_at.isoformat() if self.next_attempt_at else None,
            "last_error": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncQueueItem":
        payload_type = data["type"]
        return cls(
            item_id=str(data["id"]),
            payload_type=payload_type,
            payload=data.get("payload") or {},
            priority=int(data.get("priority", priority_for_type(payload_type))),
            created_at=_parse_ts(data.get("created_at")) or datetime.now(timezone.utc),
            sequence=int(data.get("sequence", 0)),
            retry_count=int(data.get("retry_count", 0)),
            max_retries=int(data.get("max_retries", 5)),
            language=data.get("language", "en"),
            context=data.get("context") or {},
            next_attempt_at=_parse_ts(data.get("next_attempt_at")),
            last_error=data.get("last_error"),
        )


@dataclass(frozen=True)
class SyncFailure:
    """User-visible notice for an item removed without delivery."""

    item_id: str
    payload_type: str
    reason: str
    retry_count: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "type": self.payload_type,
            "reason": self.reason,
            "retry_count": self.retry_count,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class FlushResult:
    """
    Outcome of one flush pass.

    Attributes:
        succeeded: Ids acknowledged by the remote endpoint
        failed: Terminal failures removed during this pass
        remaining: Items left in the queue after the pass
        aborted: Pass stopped early because the host went offline
        skipped: Items not attempted because their backoff had not elapsed
        retried: Ids that failed transiently and were kept
    """

    succeeded: list[str] = field(default_factory=list)
    failed: list[SyncFailure] = field(default_factory=list)
    remaining: int = 0
    aborted: bool = False
    skipped: int = 0
    retried: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": list(self.succeeded),
            "failed": [f.to_dict() for f in self.failed],
            "remaining": self.remaining,
            "aborted": self.aborted,
            "skipped": self.skipped,
            "retried": list(self.retried),
        }
