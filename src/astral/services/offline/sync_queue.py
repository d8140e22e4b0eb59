"""
Sync Queue

Durable, priority-ordered queue of pending offline operations with
retry/backoff and at-least-once delivery.

Guarantees:
- enqueue() persists before returning
- flush() processes items by (priority, created_at, sequence)
- an item is removed exactly once: on success, on terminal rejection,
  or when its retry count reaches the ceiling
- concurrent flush() calls share one running pass; no item is sent twice
- a pass aborts between items when the host goes offline

PERSISTENCE: Storage failures switch the queue to memory-only mode
for the rest of the session. The queue keeps working; durability is
lost and a degraded flag is surfaced.
"""

import asyncio
import bisect
import json
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

from astral.config.logging_config import get_logger
from astral.domain.errors import StorageError, TerminalSyncFailure, TransientSyncFailure
from astral.domain.models.sync_models import (
    SYNC_SCHEMA_VERSION,
    FlushResult,
    SubmitOutcome,
    SyncFailure,
    SyncQueueItem,
    priority_for_type,
)
from astral.infrastructure.metrics import (
    SYNC_FLUSH_DURATION,
    track_queue_state,
    track_sync_outcome,
)
from astral.infrastructure.storage.key_value_store import KeyValueStore
from astral.services.offline.submitter import SyncSubmitter

logger = get_logger(__name__)

STORAGE_KEY = "sync_queue"

Clock = Callable[[], datetime]
FailureListener = Callable[[SyncFailure], None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff policy.

    The delay after the n-th consecutive failure (n starting at 1)
    is min(max_delay, base_delay * multiplier ** (n - 1)).
    """

    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 60.0
    max_retries: int = 5

    def delay_for(self, retry_count: int) -> float:
        """
        Backoff delay in seconds for an item that has now failed retry_count times.
        """
        exponent = max(0, retry_count - 1)
        return min(self.max_delay, self.base_delay * self.multiplier ** exponent)


def _migrate_legacy_item(raw: dict[str, Any], index: int) -> dict[str, Any]:
    """Convert a schema version 0 item (bare list entry) to the current shape."""
    payload_type = raw.get("type", "unknown")
    metadata = raw.get("metadata") or {}
    return {
        "id": raw["id"],
        "type": payload_type,
        "payload": raw.get("payload", raw.get("data")) or {},
        "priority": raw.get("priority", priority_for_type(payload_type)),
        "created_at": raw.get("created_at") or raw.get("timestamp"),
        "sequence": index,
        "retry_count": raw.get("retry_count", raw.get("retryCount", metadata.get("retryCount", 0))),
        "max_retries": raw.get("max_retries", raw.get("maxRetries", 5)),
        "language": raw.get("language", "en"),
        "context": raw.get("context") or {},
    }


class SyncQueue:
    """
    Durable retrying sync queue.

    Owned by the OfflineService. Items are mutated only through this
    class; callers receive copies.

    Usage:
        queue = SyncQueue(store, submitter, policy, is_online=monitor.check_online)
        await queue.load()
        await queue.enqueue(SyncQueueItem.create("mood-entry", {...}))
        result = await queue.flush()
    """

    def __init__(
        self,
        store: KeyValueStore,
        submitter: SyncSubmitter,
        policy: Optional[RetryPolicy] = None,
        is_online: Optional[Callable[[], bool]] = None,
        clock: Optional[Clock] = None,
        on_terminal_failure: Optional[FailureListener] = None,
    ) -> None:
        self._store = store
        self._submitter = submitter
        self._policy = policy or RetryPolicy()
        self._is_online = is_online or (lambda: True)
        self._clock = clock or utcnow
        self._on_terminal_failure = on_terminal_failure
        self._items: list[SyncQueueItem] = []
        self._sequence = 0
        self._persist_lock = asyncio.Lock()
        self._flush_task: Optional[asyncio.Task] = None
        self._periodic_task: Optional[asyncio.Task] = None
        self._degraded = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def is_flushing(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    def set_failure_listener(self, listener: Optional[FailureListener]) -> None:
        self._on_terminal_failure = listener

    def size(self) -> int:
        return len(self._items)

    def items(self) -> list[SyncQueueItem]:
        """Copies of queued items in flush order."""
        return [SyncQueueItem.from_dict(item.to_dict()) for item in self._items]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self) -> int:
        """
        Load persisted items, migrating older schemas.

        Returns:
            Number of items in the queue after loading
        """
        try:
            raw = await self._store.get(STORAGE_KEY)
        except StorageError as e:
            self._enter_degraded("load", e)
            return self.size()

        loaded = self._deserialize(raw)
        known = {item.item_id for item in self._items}
        for item in loaded:
            if item.item_id not in known:
                self._items.append(item)
        self._items.sort(key=lambda i: i.sort_key)
        self._sequence = max((i.sequence for i in self._items), default=0)

        if isinstance(raw, list) and raw:
            logger.info("Migrated legacy sync queue", items=len(loaded), schema_version=SYNC_SCHEMA_VERSION)
            await self._persist()

        track_queue_state(self.size(), self._degraded)
        logger.info("Sync queue loaded", items=self.size())
        return self.size()

    def _deserialize(self, raw: Any) -> list[SyncQueueItem]:
        if raw is None:
            return []
        legacy = isinstance(raw, list)
        if legacy:
            records = raw
        elif isinstance(raw, dict):
            version = raw.get("schema_version", 0)
            if isinstance(version, int) and version > SYNC_SCHEMA_VERSION:
                logger.warning(
                    "Sync queue written by a newer schema",
                    schema_version=version,
                    supported=SYNC_SCHEMA_VERSION,
                )
            records = raw.get("items", [])
            if not isinstance(records, list):
                logger.warning("Ignoring malformed sync queue items", kind=type(records).__name__)
                return []
        else:
            logger.warning("Ignoring unrecognized sync queue document", kind=type(raw).__name__)
            return []

        items = []
        for index, record in enumerate(records):
            try:
                if legacy:
                    record = _migrate_legacy_item(record, index)
                items.append(SyncQueueItem.from_dict(record))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning("Dropping unreadable sync queue record", error_type=type(e).__name__)
        return items

    async def _persist(self) -> None:
        async with self._persist_lock:
            # Serialize inside the lock so the last write reflects the latest state
            document = {
                "schema_version": SYNC_SCHEMA_VERSION,
                "items": [item.to_dict() for item in self._items],
            }
            if not self._degraded:
                try:
                    await self._store.set(STORAGE_KEY, document)
                except StorageError as e:
                    self._enter_degraded("write", e)
        track_queue_state(self.size(), self._degraded)

    def _enter_degraded(self, operation: str, error: StorageError) -> None:
        if not self._degraded:
            logger.warning(
                "Sync queue persistence failed, continuing in memory only",
                operation=operation,
                error=error.message,
            )
        self._degraded = True
        track_queue_state(self.size(), True)

    # ------------------------------------------------------------------
    # Queue operations
    # ------------------------------------------------------------------

    async def enqueue(self, item: SyncQueueItem) -> str:
        """
        Add an item and persist the queue before returning.

        Returns:
            The item id

        Raises:
            ValueError: Payload or context is not JSON serializable;
                the queue is left unchanged
        """
        if any(existing.item_id == item.item_id for existing in self._items):
            return item.item_id

        try:
            json.dumps(item.to_dict())
        except (TypeError, ValueError) as e:
            logger.warning(
                "Rejected unserializable sync item",
                payload_type=item.payload_type,
                error_type=type(e).__name__,
            )
            raise ValueError(f"Sync item {item.item_id} is not JSON serializable") from e

        self._sequence += 1
        item.sequence = self._sequence
        bisect.insort(self._items, item, key=lambda i: i.sort_key)
        await self._persist()

        logger.debug(
            "Sync item enqueued",
            item_id=item.item_id,
            payload_type=item.payload_type,
            priority=item.priority,
            queue_size=self.size(),
        )
        return item.item_id

    async def flush(self) -> FlushResult:
        """
        Attempt delivery of due items.

        A call made while a pass is running joins that pass and
        receives the same result.
        """
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.get_running_loop().create_task(self._run_flush())
        return await asyncio.shield(self._flush_task)

    async def _run_flush(self) -> FlushResult:
        started = time.perf_counter()
        result = FlushResult()
        now = self._clock()
        batch = list(self._items)

        for item in batch:
            if not self._is_online():
                result.aborted = True
                logger.info("Sync flush aborted, host offline", remaining=self.size())
                break
            if not any(existing is item for existing in self._items):
                continue
            if not item.is_due(now):
                result.skipped += 1
                continue

            outcome, error = await self._submit(item)
            track_sync_outcome(outcome.value)

            if outcome == SubmitOutcome.SUCCESS:
                self._remove(item)
                result.succeeded.append(item.item_id)
            elif outcome == SubmitOutcome.TERMINAL:
                self._remove(item)
                result.failed.append(self._report_failure(item, error or "rejected by remote endpoint"))
            else:
                item.retry_count += 1
                item.last_error = error or "transient failure"
                if item.retry_count >= item.max_retries:
                    self._remove(item)
                    track_sync_outcome("exhausted")
                    result.failed.append(
                        self._report_failure(item, f"retry limit reached: {item.last_error}")
                    )
                else:
                    delay = self._policy.delay_for(item.retry_count)
                    item.next_attempt_at = now + timedelta(seconds=delay)
                    result.retried.append(item.item_id)

            await self._persist()

        result.remaining = self.size()
        SYNC_FLUSH_DURATION.observe(time.perf_counter() - started)
        if result.succeeded or result.failed or result.retried:
            logger.info(
                "Sync flush complete",
                succeeded=len(result.succeeded),
                failed=len(result.failed),
                retried=len(result.retried),
                skipped=result.skipped,
                remaining=result.remaining,
                aborted=result.aborted,
            )
        return result

    async def _submit(self, item: SyncQueueItem) -> tuple[SubmitOutcome, Optional[str]]:
        try:
            return await self._submitter.submit(item), None
        except TerminalSyncFailure as e:
            return SubmitOutcome.TERMINAL, e.reason
        except TransientSyncFailure as e:
            return SubmitOutcome.TRANSIENT, e.message
        except Exception as e:
            logger.warning(
                "Sync submitter raised, treating as transient",
                item_id=item.item_id,
                error_type=type(e).__name__,
            )
            return SubmitOutcome.TRANSIENT, f"{type(e).__name__}: {e}"

    def _remove(self, item: SyncQueueItem) -> bool:
        for index, existing in enumerate(self._items):
            if existing is item:
                del self._items[index]
                return True
        return False

    def _report_failure(self, item: SyncQueueItem, reason: str) -> SyncFailure:
        failure = SyncFailure(
            item_id=item.item_id,
            payload_type=item.payload_type,
            reason=reason,
            retry_count=item.retry_count,
        )
        logger.error(
            "Sync item failed permanently",
            item_id=item.item_id,
            payload_type=item.payload_type,
            retry_count=item.retry_count,
            reason=reason,
        )
        if self._on_terminal_failure is not None:
            try:
                self._on_terminal_failure(failure)
            except Exception as e:
                logger.error("Sync failure listener raised", error_type=type(e).__name__)
        return failure

    # ------------------------------------------------------------------
    # Periodic flush
    # ------------------------------------------------------------------

    def start(self, interval: float, flush: Optional[Callable[[], Awaitable[Any]]] = None) -> None:
        """
        Start flushing every interval seconds while online.

        Args:
            interval: Seconds between passes
            flush: Coroutine function run for each pass, defaults to flush()
        """
        if self._periodic_task is not None and not self._periodic_task.done():
            return
        self._periodic_task = asyncio.get_running_loop().create_task(self._periodic(interval, flush or self.flush))

    async def stop(self) -> None:
        """Stop the periodic flush and wait for a running pass to finish."""
        if self._periodic_task is not None:
            self._periodic_task.cancel()
            await asyncio.gather(self._periodic_task, return_exceptions=True)
            self._periodic_task = None
        if self._flush_task is not None:
            await asyncio.gather(self._flush_task, return_exceptions=True)

    async def _periodic(self, interval: float, flush: Callable[[], Awaitable[Any]]) -> None:
        while True:
            await asyncio.sleep(interval)
            if not self._items or not self._is_online():
                continue
            try:
                await flush()
            except Exception as e:
                logger.error("Periodic sync flush failed", error_type=type(e).__name__)
