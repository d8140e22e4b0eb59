"""
Offline Capability Cache

Resource cache for crisis-critical content with an availability
index queried by feature name.

SAFETY-CRITICAL: Crisis-tagged resources are cached unconditionally.
No cache strategy, device threshold or clear() call removes them,
and crisis features always report as available.
"""

from pathlib import Path
from typing import Optional, Sequence, Union

from astral.config.logging_config import get_logger
from astral.domain.errors import StorageError
from astral.domain.models.capability_models import CacheStrategy, OptimizationStrategy
from astral.domain.models.resource_models import CrisisResource
from astral.infrastructure.metrics import track_cached_resources
from astral.infrastructure.storage.key_value_store import KeyValueStore
from astral.services.offline.resource_catalogue import (
    BUILT_IN_CATALOGUE,
    CRISIS_FEATURES,
    load_catalogue,
)

logger = get_logger(__name__)

STORAGE_KEY = "offline_resources"

# Highest priority value cached for pages under the moderate strategy
MODERATE_PAGE_PRIORITY = 3


def eligible(resource: CrisisResource, strategy: CacheStrategy) -> bool:
    """
    Whether a resource is cached under a strategy.

    Crisis resources are always eligible.
    """
    if resource.crisis:
        return True
    if strategy == CacheStrategy.AGGRESSIVE:
        return True
    if strategy == CacheStrategy.MODERATE:
        if resource.resource_type == "technique":
            return True
        return resource.resource_type == "page" and resource.priority <= MODERATE_PAGE_PRIORITY
    return False


class OfflineCapabilityCache:
    """
    Crisis resource cache.

    Crisis resources are seeded at construction so they are available
    before any storage I/O completes.

    Usage:
        cache = OfflineCapabilityCache(store, country_code="US")
        await cache.load()
        await cache.populate(strategy)
        cache.is_feature_available("crisis-hotline")
    """

    def __init__(
        self,
        store: KeyValueStore,
        catalogue: Sequence[CrisisResource] = BUILT_IN_CATALOGUE,
        country_code: str = "US",
        language: str = "en",
    ) -> None:
        self._store = store
        self._catalogue: dict[str, CrisisResource] = {r.resource_id: r for r in catalogue}
        self._country = country_code.upper()
        self._language = language
        self._strategy = CacheStrategy.MINIMAL
        self._cached: dict[str, CrisisResource] = {}
        self._degraded = False
        self._seed_crisis()

    @property
    def strategy(self) -> CacheStrategy:
        return self._strategy

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def country_code(self) -> str:
        return self._country

    def cached_ids(self) -> set[str]:
        return set(self._cached)

    def usage_bytes(self) -> int:
        return sum(r.estimated_size() for r in self._cached.values())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_feature_available(self, feature: str) -> bool:
        """Whether a feature can be used offline."""
        if feature in CRISIS_FEATURES:
            return True
        return any(feature in r.features for r in self._cached.values())

    def get_resources(
        self,
        resource_type: Optional[str] = None,
        language: Optional[str] = None,
        crisis_only: bool = False,
    ) -> list[CrisisResource]:
        """
        Cached resources for the configured jurisdiction.

        Language filtering falls back to all languages rather than
        returning an empty crisis list.

        Args:
            resource_type: Optional type filter (hotline, text, technique, ...)
            language: Optional language code
            crisis_only: Only crisis-tagged resources

        Returns:
            Resources ordered by priority then title
        """
        resources = [
            r for r in self._cached.values()
            if r.country_code in (self._country, "INTL")
            and (resource_type is None or r.resource_type == resource_type)
            and (not crisis_only or r.crisis)
        ]
        if language:
            localized = [r for r in resources if r.language == language]
            if localized:
                resources = localized
        return sorted(resources, key=lambda r: (r.priority, r.title))

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    async def populate(self, strategy: Union[OptimizationStrategy, CacheStrategy]) -> int:
        """
        Cache resources for a strategy.

        Returns:
            Number of cached resources
        """
        if isinstance(strategy, OptimizationStrategy):
            strategy = strategy.cache_strategy
        self._strategy = strategy
        self._cached = {
            rid: resource
            for rid, resource in self._catalogue.items()
            if eligible(resource, strategy)
        }
        self._seed_crisis()
        await self._persist()
        logger.info(
            "Offline cache populated",
            cache_strategy=strategy.value,
            cached=len(self._cached),
        )
        return len(self._cached)

    async def load(self) -> int:
        """Restore cached resources from storage."""
        try:
            raw = await self._store.get(STORAGE_KEY)
        except StorageError as e:
            self._mark_degraded("load", e)
            return len(self._cached)

        if isinstance(raw, dict):
            try:
                self._strategy = CacheStrategy(raw.get("strategy", self._strategy.value))
            except ValueError:
                logger.warning("Unknown persisted cache strategy", strategy=raw.get("strategy"))
            for record in raw.get("resources", []):
                try:
                    resource = CrisisResource.from_dict(record)
                except (KeyError, TypeError, ValueError):
                    logger.warning("Dropping unreadable cached resource")
                    continue
                self._cached.setdefault(resource.resource_id, resource)
        self._seed_crisis()
        self._track()
        return len(self._cached)

    async def clear(self) -> int:
        """
        Drop cached non-crisis resources.

        Returns:
            Number of resources removed
        """
        before = len(self._cached)
        self._cached = {rid: r for rid, r in self._cached.items() if r.crisis}
        self._seed_crisis()
        await self._persist()
        removed = before - len(self._cached)
        logger.info("Offline cache cleared", removed=removed, retained=len(self._cached))
        return removed

    async def reload_catalogue(self, path: Optional[Union[str, Path]] = None) -> bool:
        """
        Replace the catalogue and repopulate with the current strategy.

        Entries in the file override built-in entries with the same id.
        Built-in crisis resources are kept unless overridden.

        Returns:
            False when the file could not be read
        """
        if path is not None:
            try:
                custom = load_catalogue(path)
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.error("Failed to load resource catalogue", path=str(path), error_type=type(e).__name__)
                return False
            catalogue = {r.resource_id: r for r in BUILT_IN_CATALOGUE if r.crisis}
            catalogue.update({r.resource_id: r for r in custom})
            self._catalogue = catalogue
        await self.populate(self._strategy)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _seed_crisis(self) -> None:
        for rid, resource in self._catalogue.items():
            if resource.crisis:
                self._cached[rid] = resource

    async def _persist(self) -> None:
        self._track()
        if self._degraded:
            return
        document = {
            "strategy": self._strategy.value,
            "resources": [r.to_dict() for r in self._cached.values()],
        }
        try:
            await self._store.set(STORAGE_KEY, document)
        except StorageError as e:
            self._mark_degraded("write", e)

    def _mark_degraded(self, operation: str, error: StorageError) -> None:
        if not self._degraded:
            logger.warning(
                "Offline cache persistence failed, continuing in memory only",
                operation=operation,
                error=error.message,
            )
        self._degraded = True

    def _track(self) -> None:
        crisis = sum(1 for r in self._cached.values() if r.crisis)
        track_cached_resources(crisis, len(self._cached) - crisis)
