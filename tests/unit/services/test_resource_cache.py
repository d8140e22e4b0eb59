"""
Unit Tests for Offline Capability Cache

Crisis resources must be available under every strategy, device
condition and storage failure.
"""

import json
from pathlib import Path

import pytest

from astral.domain.models.capability_models import CacheStrategy, CapabilityThresholds
from astral.services.capability.strategy import AdaptiveStrategySelector
from astral.services.offline.resource_cache import OfflineCapabilityCache
from astral.services.offline.resource_catalogue import BUILT_IN_CATALOGUE, CRISIS_FEATURES
from astral.infrastructure.storage.key_value_store import InMemoryKeyValueStore
from conftest import FailingStore

NON_CRISIS_COUNT = sum(1 for r in BUILT_IN_CATALOGUE if not r.crisis)


@pytest.fixture
def cache(store: InMemoryKeyValueStore) -> OfflineCapabilityCache:
    """Cache for a US user over the in-memory store."""
    return OfflineCapabilityCache(store, country_code="US")


class TestCrisisAvailability:
    """Crisis resources are always present."""

    def test_crisis_features_available_before_population(self, cache: OfflineCapabilityCache) -> None:
        """Test that crisis features need no population step."""
        for feature in CRISIS_FEATURES:
            assert cache.is_feature_available(feature)
        assert cache.get_resources(resource_type="hotline")

    @pytest.mark.parametrize("strategy", list(CacheStrategy))
    async def test_crisis_features_available_under_every_strategy(
        self, cache: OfflineCapabilityCache, strategy: CacheStrategy
    ) -> None:
        """Test crisis availability for each strategy."""
        await cache.populate(strategy)

        assert cache.is_feature_available("crisis-hotline")
        assert cache.is_feature_available("safety-plan")
        assert "us-988" in cache.cached_ids()

    async def test_constrained_device_keeps_crisis_hotline(self, cache: OfflineCapabilityCache) -> None:
        """Test that the most constrained device keeps the hotline."""
        thresholds = CapabilityThresholds(
            low_end_device=True,
            slow_connection=True,
            low_battery=True,
            high_memory_usage=True,
        )
        strategy = AdaptiveStrategySelector().derive(thresholds)

        await cache.populate(strategy)

        assert cache.is_feature_available("crisis-hotline")
        assert strategy.offline_crisis_support

    async def test_storage_failure_keeps_crisis_resources(self) -> None:
        """Test that a broken store still serves crisis resources."""
        cache = OfflineCapabilityCache(FailingStore(fail_reads=True, fail_writes=True))

        await cache.load()
        await cache.populate(CacheStrategy.MINIMAL)

        assert cache.degraded
        assert cache.is_feature_available("crisis-hotline")
        assert cache.get_resources(resource_type="hotline")

    async def test_clear_keeps_crisis_resources(self, cache: OfflineCapabilityCache) -> None:
        """Test that clearing removes only non-crisis entries."""
        await cache.populate(CacheStrategy.AGGRESSIVE)

        removed = await cache.clear()

        assert removed == NON_CRISIS_COUNT
        assert not cache.is_feature_available("journaling")
        assert cache.is_feature_available("crisis-hotline")
        assert all(r.crisis for r in cache.get_resources())


class TestStrategies:
    """What each cache strategy keeps."""

    async def test_minimal_caches_crisis_only(self, cache: OfflineCapabilityCache) -> None:
        """Test that MINIMAL keeps crisis content only."""
        await cache.populate(CacheStrategy.MINIMAL)

        assert not cache.is_feature_available("mood-tracking")
        assert all(r.crisis for r in cache.get_resources())

    async def test_moderate_caches_high_priority_pages_and_techniques(self, cache: OfflineCapabilityCache) -> None:
        """Test what MODERATE adds."""
        await cache.populate(CacheStrategy.MODERATE)

        assert cache.is_feature_available("mood-tracking")
        assert not cache.is_feature_available("wellness-content")
        assert "technique-progressive-relaxation" in cache.cached_ids()

    async def test_aggressive_caches_everything(self, cache: OfflineCapabilityCache) -> None:
        """Test that AGGRESSIVE caches the whole catalogue."""
        await cache.populate(CacheStrategy.AGGRESSIVE)

        assert cache.cached_ids() == {r.resource_id for r in BUILT_IN_CATALOGUE}
        assert cache.is_feature_available("journaling")

    def test_unknown_feature_unavailable(self, cache: OfflineCapabilityCache) -> None:
        """Test that an unknown feature is unavailable."""
        assert not cache.is_feature_available("video-chat")


class TestQueries:
    """Resource lookups."""

    def test_resources_filtered_to_jurisdiction(self, cache: OfflineCapabilityCache) -> None:
        """Test that other countries' hotlines are hidden."""
        ids = {r.resource_id for r in cache.get_resources(resource_type="hotline")}

        assert {"us-emergency", "us-988"} <= ids
        assert "gb-samaritans" not in ids
        assert "intl-iasp" in ids or "intl-befrienders" in ids

    def test_other_jurisdiction(self, store: InMemoryKeyValueStore) -> None:
        """Test lookups for a GB user."""
        cache = OfflineCapabilityCache(store, country_code="gb")

        ids = {r.resource_id for r in cache.get_resources(resource_type="hotline")}

        assert "gb-samaritans" in ids
        assert "us-988" not in ids

    def test_resources_sorted_by_priority(self, cache: OfflineCapabilityCache) -> None:
        """Test ascending priority order."""
        priorities = [r.priority for r in cache.get_resources()]

        assert priorities == sorted(priorities)

    def test_language_falls_back_to_all(self, cache: OfflineCapabilityCache) -> None:
        """Test that an unmatched language returns all languages."""
        assert cache.get_resources(resource_type="hotline", language="fr")


class TestPersistence:
    """Stored cache state and catalogue reloads."""

    async def test_cached_resources_survive_reload(self, store: InMemoryKeyValueStore) -> None:
        """Test that cached ids and strategy are restored."""
        first = OfflineCapabilityCache(store)
        await first.populate(CacheStrategy.AGGRESSIVE)

        second = OfflineCapabilityCache(store)
        await second.load()

        assert "page-journal" in second.cached_ids()
        assert second.strategy == CacheStrategy.AGGRESSIVE

    async def test_reload_catalogue_from_file(self, cache: OfflineCapabilityCache, tmp_path: Path) -> None:
        """Test that file entries join the built-in crisis entries."""
        path = tmp_path / "catalogue.json"
        path.write_text(json.dumps({
            "resources": [
                {
                    "id": "us-local-warmline",
                    "type": "hotline",
                    "title": "Local Warmline",
                    "content": "555-0100",
                    "priority": 2,
                    "crisis": True,
                    "features": ["crisis-hotline"],
                    "country_code": "US",
                },
            ],
        }))
        await cache.populate(CacheStrategy.AGGRESSIVE)

        assert await cache.reload_catalogue(path)

        ids = cache.cached_ids()
        assert "us-local-warmline" in ids
        assert "us-988" in ids
        assert "page-journal" not in ids

    async def test_reload_catalogue_bad_file(self, cache: OfflineCapabilityCache, tmp_path: Path) -> None:
        """Test that a malformed file is rejected and crisis content stays."""
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        assert not await cache.reload_catalogue(path)
        assert cache.is_feature_available("crisis-hotline")
