"""
Resilience Core

Composition root for crisis detection and offline resilience.
Constructs every component once, wires observers and exposes the
operations the UI layer calls.

ARCHITECTURE: Components are explicit instances owned here. Nothing
is a module-level singleton, so tests build a core with in-memory
storage and fake collaborators.
"""

from typing import Any, Callable, Optional
from uuid import UUID

from astral.config.logging_config import get_logger
from astral.config.settings import Settings
from astral.domain.enums.risk_level import ActionStatus, RiskLevel
from astral.domain.models.capability_models import OfflineStatus, OptimizationStrategy
from astral.domain.models.crisis_models import (
    AnalysisContext,
    CrisisAnalysisResult,
    EscalationAction,
)
from astral.domain.models.resource_models import CrisisResource
from astral.domain.models.sync_models import FlushResult
from astral.infrastructure.storage.connection import StorageManager
from astral.infrastructure.storage.key_value_store import KeyValueStore, SqlKeyValueStore
from astral.services.capability.platform import (
    HostPlatformSignals,
    PlatformSignals,
    ReportedPlatformSignals,
)
from astral.services.capability.probe import DeviceCapabilityProbe
from astral.services.capability.strategy import AdaptiveStrategySelector
from astral.services.crisis.analyzer import CrisisAnalyzer
from astral.services.crisis.detection_service import CrisisDetectionService, DetectionState
from astral.services.crisis.escalation import EscalationCallback, EscalationStateMachine
from astral.services.crisis.keyword_rules import DEFAULT_RULESET, KeywordRuleset
from astral.services.offline.network_monitor import NetworkStatusMonitor
from astral.services.offline.offline_service import OfflineService
from astral.services.offline.resource_cache import OfflineCapabilityCache
from astral.services.offline.submitter import HttpSyncSubmitter, SyncSubmitter
from astral.services.offline.sync_queue import Clock, RetryPolicy, SyncQueue

logger = get_logger(__name__)

ALERT_RESOURCE_LIMIT = 5


def load_ruleset(path: Optional[str]) -> KeywordRuleset:
    """Load a custom ruleset, falling back to the built-in tables."""
    if not path:
        return DEFAULT_RULESET
    try:
        return KeywordRuleset.from_file(path)
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.error(
            "Failed to load keyword ruleset, using built-in rules",
            path=path,
            error_type=type(e).__name__,
        )
        return DEFAULT_RULESET


class ResilienceCore:
    """
    Crisis detection and offline resilience core.

    Usage:
        core = ResilienceCore(get_settings())
        await core.initialize()
        result = await core.analyze("some text")
        await core.shutdown()
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[KeyValueStore] = None,
        submitter: Optional[SyncSubmitter] = None,
        signals: Optional[PlatformSignals] = None,
        on_escalation_required: Optional[EscalationCallback] = None,
        clock: Optional[Clock] = None,
        watch_connectivity: bool = False,
    ) -> None:
        self._settings = settings
        self._watch_connectivity = watch_connectivity
        self._initialized = False

        # Storage
        self._storage_manager: Optional[StorageManager] = None
        if store is None:
            self._storage_manager = StorageManager(settings.storage.url, echo=False)
            store = SqlKeyValueStore(self._storage_manager)
        self._store = store

        # Network boundary
        self._owns_submitter = submitter is None
        if submitter is None:
            submitter = HttpSyncSubmitter(
                settings.sync.endpoint_url,
                token=settings.sync.api_token.get_secret_value() or None,
                timeout=settings.sync.request_timeout_seconds,
            )
        self._submitter = submitter

        # Capability
        self._probe = DeviceCapabilityProbe(signals or HostPlatformSignals())
        self._selector = AdaptiveStrategySelector(
            debounce_ms=settings.crisis.debounce_ms,
            constrained_debounce_ms=settings.crisis.constrained_debounce_ms,
        )

        # Offline
        self._monitor = NetworkStatusMonitor(
            coalesce_window=settings.network.coalesce_window_ms / 1000,
        )
        self._cache = OfflineCapabilityCache(
            store,
            country_code=settings.resources.default_country,
            language=settings.resources.default_language,
        )
        self._queue = SyncQueue(
            store,
            submitter,
            policy=RetryPolicy(
                base_delay=settings.sync.base_delay_seconds,
                multiplier=settings.sync.backoff_multiplier,
                max_delay=settings.sync.max_delay_seconds,
                max_retries=settings.sync.max_retries,
            ),
            is_online=self._monitor.check_online,
            clock=clock,
        )
        self._offline = OfflineService(
            store,
            self._queue,
            self._cache,
            self._monitor,
            probe=self._probe,
            quota_bytes=settings.storage.quota_bytes,
            flush_interval=settings.sync.flush_interval_seconds,
            usage_refresh_interval=settings.storage.usage_refresh_seconds,
        )

        # Crisis
        self._analyzer = CrisisAnalyzer(
            ruleset=load_ruleset(settings.crisis.ruleset_path),
            min_length=settings.crisis.min_analysis_length,
        )
        self._escalation = EscalationStateMachine(
            alert_threshold=RiskLevel.from_label(settings.crisis.alert_threshold),
            history_size=settings.crisis.history_size,
            on_escalation_required=on_escalation_required,
            resource_provider=self._alert_resources,
        )
        self._detection = CrisisDetectionService(
            self._analyzer,
            self._escalation,
            debounce_ms=settings.crisis.debounce_ms,
            constrained_debounce_ms=settings.crisis.constrained_debounce_ms,
        )

        self._selector.subscribe(self._detection.apply_strategy)
        self._selector.subscribe(self._offline.on_strategy_change)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Start storage, probe capabilities and load offline state.

        Storage failures do not stop startup; the queue and cache run
        in memory-only mode instead.
        """
        if self._initialized:
            logger.warning("Resilience core already initialized")
            return

        if self._storage_manager is not None:
            try:
                await self._storage_manager.initialize()
            except Exception as e:
                logger.warning(
                    "Local storage unavailable, continuing in memory only",
                    error_type=type(e).__name__,
                )

        snapshot = self._probe.run()
        strategy = self._selector.select(snapshot.thresholds)
        self._detection.apply_strategy(strategy)
        await self._offline.initialize(strategy)

        if self._watch_connectivity:
            self._monitor.watch(self._submitter.ping, self._settings.network.check_interval_seconds)

        self._initialized = True
        logger.info(
            "Resilience core initialized",
            ruleset_version=self._analyzer.ruleset.version,
            cache_strategy=strategy.cache_strategy.value,
            queue_size=self._queue.size(),
        )

    async def shutdown(self) -> None:
        await self._detection.close()
        await self._offline.shutdown()
        await self._monitor.close()
        if self._owns_submitter:
            await self._submitter.close()
        if self._storage_manager is not None:
            await self._storage_manager.close()
        self._initialized = False
        logger.info("Resilience core shut down")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @property
    def detection(self) -> CrisisDetectionService:
        return self._detection

    @property
    def offline(self) -> OfflineService:
        return self._offline

    @property
    def monitor(self) -> NetworkStatusMonitor:
        return self._monitor

    @property
    def probe(self) -> DeviceCapabilityProbe:
        return self._probe

    @property
    def selector(self) -> AdaptiveStrategySelector:
        return self._selector

    @property
    def current_strategy(self) -> OptimizationStrategy:
        return self._selector.current

    # ------------------------------------------------------------------
    # Crisis operations
    # ------------------------------------------------------------------

    async def analyze(
        self,
        text: str,
        context: Optional[AnalysisContext] = None,
    ) -> CrisisAnalysisResult:
        return await self._detection.analyze(text, context)

    def analyze_debounced(self, text: str, context: Optional[AnalysisContext] = None) -> int:
        return self._detection.analyze_debounced(text, context)

    def detection_state(self) -> DetectionState:
        return self._detection.state

    def dismiss_alert(self) -> None:
        self._detection.dismiss_alert()

    def take_actions(self) -> list[EscalationAction]:
        return self._detection.take_actions()

    def mark_action(self, action_id: UUID, status: ActionStatus) -> bool:
        return self._detection.mark_action(action_id, status)

    def set_escalation_callback(self, callback: Optional[EscalationCallback]) -> None:
        self._escalation.set_escalation_callback(callback)

    def subscribe_detection(self, listener: Callable[[DetectionState], None]) -> Callable[[], None]:
        return self._detection.subscribe(listener)

    # ------------------------------------------------------------------
    # Offline operations
    # ------------------------------------------------------------------

    def get_crisis_resources(
        self,
        resource_type: Optional[str] = None,
        language: Optional[str] = None,
    ) -> list[CrisisResource]:
        return self._offline.get_crisis_resources(resource_type, language)

    async def add_to_sync_queue(
        self,
        payload_type: str,
        payload: dict[str, Any],
        priority: Optional[int] = None,
        language: str = "en",
        context: Optional[dict[str, Any]] = None,
    ) -> str:
        return await self._offline.add_to_sync_queue(payload_type, payload, priority, language, context)

    async def force_sync(self) -> FlushResult:
        return await self._offline.force_sync()

    async def clear_offline_data(self) -> int:
        return await self._offline.clear_offline_data()

    async def update_offline_resources(self, catalogue_path: Optional[str] = None) -> bool:
        return await self._offline.update_offline_resources(
            catalogue_path or self._settings.resources.catalogue_path
        )

    def offline_status(self) -> OfflineStatus:
        return self._offline.status()

    def subscribe_offline(self, listener: Callable[[OfflineStatus], None]) -> Callable[[], None]:
        return self._offline.subscribe(listener)

    def is_feature_available(self, feature: str) -> bool:
        return self._offline.is_feature_available(feature)

    def report_network_status(self, online: bool) -> None:
        self._monitor.report(online)

    def report_capabilities(self, report: dict[str, Any]) -> OptimizationStrategy:
        """
        Re-probe using signals reported by the UI host.

        Returns:
            The resulting optimization strategy
        """
        self._probe.use_signals(ReportedPlatformSignals.from_report(report))
        snapshot = self._probe.run(force=True)
        if "storage_estimate" not in snapshot.data.unavailable:
            self._offline.set_reported_storage(snapshot.data.storage)
        return self._selector.select(snapshot.thresholds)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _alert_resources(self, level: RiskLevel) -> list[CrisisResource]:
        """Crisis resources attached to an alert of the given level."""
        if level >= RiskLevel.HIGH:
            types = ("hotline", "text")
        elif level == RiskLevel.MEDIUM:
            types = ("hotline", "technique")
        else:
            types = ("technique",)
        resources = [
            r for r in self._cache.get_resources(crisis_only=True)
            if r.resource_type in types
        ]
        return resources[:ALERT_RESOURCE_LIMIT]
