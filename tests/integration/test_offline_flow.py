"""
Integration Tests - Offline Flow

Exercises the assembled resilience core: crisis detection while
offline, queued delivery after reconnection and strategy changes
reported by the host.
"""

from astral.config import Settings
from astral.domain.enums.risk_level import RiskLevel
from astral.domain.models.capability_models import CacheStrategy
from astral.domain.models.sync_models import SubmitOutcome
from astral.infrastructure.storage.key_value_store import InMemoryKeyValueStore
from astral.services.orchestration import ResilienceCore
from conftest import FailingStore, FakeSubmitter, fast_device_signals


class TestOfflineFlow:
    """End-to-end offline behaviour of the assembled core."""

    async def test_initialized_with_capable_device(self, core: ResilienceCore) -> None:
        """Test startup on a capable online device."""
        assert core.is_initialized
        assert core.current_strategy.cache_strategy == CacheStrategy.MODERATE
        assert core.offline_status().is_online

    async def test_crisis_detection_works_offline(self, core: ResilienceCore) -> None:
        """Test crisis detection and resources with no connectivity."""
        core.report_network_status(False)
        escalations = []
        core.set_escalation_callback(lambda result, actions: escalations.append((result, actions)))

        result = await core.analyze("I want to end it all tonight")

        alert = core.detection_state().alert
        assert result.risk_level == RiskLevel.CRITICAL
        assert alert is not None
        assert alert.emergency_mode
        assert alert.resources
        assert {r.resource_type for r in alert.resources} <= {"hotline", "text"}
        assert len(escalations) == 1
        assert core.get_crisis_resources(resource_type="hotline")

    async def test_queued_items_delivered_after_reconnect(self, core: ResilienceCore, submitter: FakeSubmitter) -> None:
        """Test that reconnecting delivers queued items in priority order."""
        core.report_network_status(False)
        journal = await core.add_to_sync_queue("journal-entry", {"body": "today"})
        contact = await core.add_to_sync_queue("crisis-contact", {"number": "988"})

        offline_result = await core.force_sync()
        assert offline_result.aborted
        assert core.offline_status().queue_size == 2

        core.report_network_status(True)
        await core.monitor.drain()

        assert submitter.calls == [contact, journal]
        assert core.offline_status().queue_size == 0

    async def test_online_enqueue_is_delivered(self, core: ResilienceCore, submitter: FakeSubmitter) -> None:
        """Test delivery of an item queued while online."""
        item_id = await core.add_to_sync_queue("mood-entry", {"mood": 4})

        await core.force_sync()

        assert submitter.calls == [item_id]
        assert core.offline_status().queue_size == 0

    async def test_dismiss_and_take_actions(self, core: ResilienceCore) -> None:
        """Test alert dismissal and action hand-off."""
        await core.analyze("I want to end it all tonight")

        actions = core.take_actions()
        core.dismiss_alert()
        core.dismiss_alert()

        assert actions
        assert core.take_actions() == []
        assert core.detection_state().alert is None

    async def test_reported_slow_connection_switches_strategy(self, core: ResilienceCore) -> None:
        """Test that a slow connection report switches to aggressive caching."""
        strategy = core.report_capabilities({
            "hardware_concurrency": 8,
            "connection": {"effective_type": "3g", "downlink": 0.7, "rtt": 400},
            "storage": {"quota": 2000, "usage": 500},
        })
        await core.offline.shutdown()

        assert strategy.cache_strategy == CacheStrategy.AGGRESSIVE
        assert core.current_strategy is strategy
        assert core.offline.cache.strategy == CacheStrategy.AGGRESSIVE
        assert core.offline_status().capabilities.storage_usage_percentage == 25.0
        assert core.is_feature_available("crisis-hotline")

    async def test_queue_survives_restart(self, test_settings: Settings) -> None:
        """Test that pending items outlive a restart."""
        store = InMemoryKeyValueStore()
        offline_submitter = FakeSubmitter(default=SubmitOutcome.TRANSIENT)

        first = ResilienceCore(test_settings, store=store, submitter=offline_submitter, signals=fast_device_signals())
        await first.initialize()
        first.report_network_status(False)
        item_id = await first.add_to_sync_queue("safety-plan", {"steps": ["call"]})
        await first.shutdown()

        submitter = FakeSubmitter()
        second = ResilienceCore(test_settings, store=store, submitter=submitter, signals=fast_device_signals())
        await second.initialize()
        try:
            await second.force_sync()
            assert submitter.calls == [item_id]
        finally:
            await second.shutdown()

    async def test_storage_failure_degrades_without_losing_crisis_support(self, test_settings: Settings, submitter: FakeSubmitter) -> None:
        """Test degraded mode keeps crisis support."""
        resilience = ResilienceCore(
            test_settings,
            store=FailingStore(fail_reads=True, fail_writes=True),
            submitter=submitter,
            signals=fast_device_signals(),
        )
        await resilience.initialize()
        try:
            resilience.report_network_status(False)
            await resilience.add_to_sync_queue("mood-entry", {"mood": 2})
            result = await resilience.analyze("I want to end it all tonight")

            assert resilience.offline_status().degraded
            assert resilience.offline_status().queue_size == 1
            assert result.risk_level == RiskLevel.CRITICAL
            assert resilience.is_feature_available("crisis-hotline")
            assert resilience.get_crisis_resources()
        finally:
            await resilience.shutdown()

    async def test_observers_follow_state_changes(self, core: ResilienceCore) -> None:
        """Test detection and offline observers until unsubscribed."""
        detection_states = []
        offline_statuses = []
        stop_detection = core.subscribe_detection(detection_states.append)
        stop_offline = core.subscribe_offline(offline_statuses.append)

        await core.analyze("I feel hopeless and so alone lately")
        core.report_network_status(False)
        await core.add_to_sync_queue("goal", {"title": "walk"})
        stop_detection()
        stop_offline()
        core.dismiss_alert()
        await core.add_to_sync_queue("goal", {"title": "read"})

        assert detection_states[-1].alert is not None
        assert not detection_states[-1].is_analyzing
        assert offline_statuses[-1].queue_size == 1
