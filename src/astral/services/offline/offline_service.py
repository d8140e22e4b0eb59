"""
Offline Service

Single in-process owner of the sync queue and the offline resource
cache. All mutation of either goes through this class.

Flush triggers:
- announced transition to online
- a flap that settles online after a pass was cut short
- periodic timer
- explicit force_sync()

Every trigger goes through force_sync(), so last_sync_at and status
listeners see each pass.
"""

import asyncio
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from astral.config.logging_config import get_logger
from astral.domain.errors import StorageError
from astral.domain.models.capability_models import (
    OfflineCapabilities,
    OfflineStatus,
    OptimizationStrategy,
    StorageEstimate,
)
from astral.domain.models.resource_models import CrisisResource
from astral.domain.models.sync_models import FlushResult, SyncFailure, SyncQueueItem
from astral.infrastructure.storage.key_value_store import KeyValueStore
from astral.services.capability.probe import DeviceCapabilityProbe
from astral.services.offline.network_monitor import NetworkStatusMonitor
from astral.services.offline.resource_cache import OfflineCapabilityCache
from astral.services.offline.sync_queue import SyncQueue

logger = get_logger(__name__)

StatusListener = Callable[[OfflineStatus], None]

MAX_VISIBLE_ERRORS = 20


class OfflineService:
    """
    Offline resilience manager.

    Usage:
        service = OfflineService(store, queue, cache, monitor, probe)
        await service.initialize(strategy)
        await service.add_to_sync_queue("mood-entry", {"mood": 3})
        await service.shutdown()
    """

    def __init__(
        self,
        store: KeyValueStore,
        queue: SyncQueue,
        cache: OfflineCapabilityCache,
        monitor: NetworkStatusMonitor,
        probe: Optional[DeviceCapabilityProbe] = None,
        quota_bytes: int = 50 * 1024 * 1024,
        flush_interval: float = 30.0,
        usage_refresh_interval: float = 30.0,
        flush_on_enqueue: bool = True,
    ) -> None:
        self._store = store
        self._queue = queue
        self._cache = cache
        self._monitor = monitor
        self._probe = probe
        self._quota_bytes = quota_bytes
        self._flush_interval = flush_interval
        self._usage_refresh_interval = usage_refresh_interval
        self._flush_on_enqueue = flush_on_enqueue

        self._reported_storage: Optional[StorageEstimate] = None
        self._used_bytes = 0
        self._errors: deque[str] = deque(maxlen=MAX_VISIBLE_ERRORS)
        self._last_sync_at: Optional[datetime] = None
        self._resync_pending = False
        self._listeners: list[StatusListener] = []
        self._background: set[asyncio.Task] = set()
        self._refresh_task: Optional[asyncio.Task] = None
        self._unsubscribe_monitor: Optional[Callable[[], None]] = None
        self._unsubscribe_settled: Optional[Callable[[], None]] = None

        self._queue.set_failure_listener(self._on_terminal_failure)

    @property
    def queue(self) -> SyncQueue:
        return self._queue

    @property
    def cache(self) -> OfflineCapabilityCache:
        return self._cache

    @property
    def monitor(self) -> NetworkStatusMonitor:
        return self._monitor

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self, strategy: Optional[OptimizationStrategy] = None) -> None:
        """Load persisted state, populate the cache and start timers."""
        await self._queue.load()
        await self._cache.load()
        if strategy is not None:
            await self._cache.populate(strategy)
        await self.refresh_storage()
        self._unsubscribe_monitor = self._monitor.subscribe(self._on_network_change)
        self._unsubscribe_settled = self._monitor.subscribe_settled(self._on_network_settled)
        self._queue.start(self._flush_interval, self.force_sync)
        self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_loop())
        logger.info(
            "Offline service started",
            queue_size=self._queue.size(),
            cached_resources=len(self._cache.cached_ids()),
            degraded=self.degraded,
        )

    async def shutdown(self) -> None:
        if self._unsubscribe_monitor is not None:
            self._unsubscribe_monitor()
            self._unsubscribe_monitor = None
        if self._unsubscribe_settled is not None:
            self._unsubscribe_settled()
            self._unsubscribe_settled = None
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            await asyncio.gather(self._refresh_task, return_exceptions=True)
            self._refresh_task = None
        await self._queue.stop()
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        logger.info("Offline service stopped", queue_size=self._queue.size())

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def degraded(self) -> bool:
        return self._queue.degraded or self._cache.degraded

    def capabilities(self) -> OfflineCapabilities:
        features = self._probe.features() if self._probe is not None else {}
        if self._reported_storage is not None:
            estimated = self._reported_storage.quota_bytes
            used = self._reported_storage.usage_bytes
        else:
            estimated = self._quota_bytes
            used = self._used_bytes
        return OfflineCapabilities(
            is_online=self._monitor.is_online,
            has_indexed_db=features.get("indexed_db", False),
            has_storage=features.get("storage", True),
            has_service_worker=features.get("service_worker", False),
            estimated_storage=estimated,
            used_storage=used,
            supports_pwa=features.get("pwa", False),
        )

    def status(self) -> OfflineStatus:
        return OfflineStatus(
            capabilities=self.capabilities(),
            queue_size=self._queue.size(),
            is_syncing=self._queue.is_flushing,
            degraded=self.degraded,
            last_online_at=self._monitor.last_online_at,
            last_sync_at=self._last_sync_at,
            errors=tuple(self._errors),
        )

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """
        Register a status listener.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_reported_storage(self, estimate: Optional[StorageEstimate]) -> None:
        """Use a host-reported storage estimate instead of the local store usage."""
        self._reported_storage = estimate
        self._publish()

    async def refresh_storage(self) -> OfflineStatus:
        """Recompute storage usage from the local store."""
        try:
            self._used_bytes = await self._store.usage_bytes()
        except StorageError as e:
            logger.warning("Storage usage refresh failed", error=e.message)
        status = self.status()
        self._publish(status)
        return status

    # ------------------------------------------------------------------
    # Sync queue
    # ------------------------------------------------------------------

    async def add_to_sync_queue(
        self,
        payload_type: str,
        payload: dict[str, Any],
        priority: Optional[int] = None,
        language: str = "en",
        context: Optional[dict[str, Any]] = None,
    ) -> str:
        """
        Queue an operation for delivery. Persisted before returning.

        Returns:
            Item id

        Raises:
            ValueError: Payload or context is not JSON serializable
        """
        item = SyncQueueItem.create(
            payload_type,
            payload,
            priority=priority,
            max_retries=self._queue.policy.max_retries,
            language=language,
            context=context or {},
        )
        item_id = await self._queue.enqueue(item)
        self._publish()
        if self._flush_on_enqueue and self._monitor.is_online:
            self._spawn(self._flush_quietly())
        return item_id

    async def force_sync(self) -> FlushResult:
        """Flush now. Offline hosts get an aborted result without any attempt."""
        if not self._monitor.is_online:
            self._resync_pending = self._queue.size() > 0
            return FlushResult(remaining=self._queue.size(), aborted=True)
        result = await self._queue.flush()
        self._resync_pending = result.aborted
        self._last_sync_at = datetime.now(timezone.utc)
        self._publish()
        return result

    def pending_items(self) -> list[SyncQueueItem]:
        return self._queue.items()

    # ------------------------------------------------------------------
    # Resource cache
    # ------------------------------------------------------------------

    def get_crisis_resources(
        self,
        resource_type: Optional[str] = None,
        language: Optional[str] = None,
    ) -> list[CrisisResource]:
        return self._cache.get_resources(resource_type=resource_type, language=language)

    def is_feature_available(self, feature: str) -> bool:
        return self._cache.is_feature_available(feature)

    async def clear_offline_data(self) -> int:
        """
        Drop cached non-crisis content and visible errors.

        Crisis resources stay cached and pending sync items are kept.

        Returns:
            Number of resources removed
        """
        removed = await self._cache.clear()
        self._errors.clear()
        await self.refresh_storage()
        return removed

    async def update_offline_resources(self, catalogue_path: Optional[str] = None) -> bool:
        """Reload the resource catalogue and repopulate the cache."""
        updated = await self._cache.reload_catalogue(catalogue_path)
        if not updated:
            self._errors.append("Offline resources could not be updated")
        await self.refresh_storage()
        return updated

    async def apply_strategy(self, strategy: OptimizationStrategy) -> None:
        await self._cache.populate(strategy)
        await self.refresh_storage()

    def on_strategy_change(self, strategy: OptimizationStrategy) -> None:
        """Strategy listener: repopulate the cache in the background."""
        self._spawn(self.apply_strategy(strategy))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _on_network_change(self, online: bool) -> None:
        if online:
            logger.info("Back online, flushing sync queue", queue_size=self._queue.size())
            await self._flush_quietly()
        await self.refresh_storage()

    def _on_network_settled(self, online: bool) -> None:
        if online and self._resync_pending and self._queue.size():
            logger.info("Connection settled, resuming sync flush", queue_size=self._queue.size())
            self._resync_pending = False
            self._spawn(self._flush_quietly())

    async def _flush_quietly(self) -> None:
        try:
            await self.force_sync()
        except Exception as e:
            logger.error("Background sync flush failed", error_type=type(e).__name__)

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self._usage_refresh_interval)
            await self.refresh_storage()

    def _on_terminal_failure(self, failure: SyncFailure) -> None:
        self._errors.append(f"Could not sync {failure.payload_type} ({failure.item_id}): {failure.reason}")
        self._publish()

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _publish(self, status: Optional[OfflineStatus] = None) -> None:
        if not self._listeners:
            return
        status = status or self.status()
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as e:
                logger.error("Offline status listener failed", error_type=type(e).__name__)
