"""
Adaptive Strategy Selector

Maps capability thresholds to an OptimizationStrategy and broadcasts
changes to registered listeners.

SAFETY: prioritize_crisis_features and offline_crisis_support are
read-only properties of every strategy. Nothing here can turn them off.
"""

from typing import Callable, Optional

from astral.config.logging_config import get_logger
from astral.domain.models.capability_models import (
    CacheStrategy,
    CapabilityThresholds,
    ImageQuality,
    OptimizationStrategy,
)
from astral.infrastructure.metrics import track_strategy_change

logger = get_logger(__name__)

StrategyListener = Callable[[OptimizationStrategy], None]


class AdaptiveStrategySelector:
    """
    Strategy selection with observer notification.

    Rules:
    - reduced animations on low-end devices or slow connections
    - slow connections cache aggressively so less is fetched later
    - low battery or high memory pressure (on a usable connection)
      cache minimally
    - image quality: low on low-end devices, medium on slow
      connections, otherwise high
    - constrained devices analyze input with a longer debounce window
    """

    def __init__(self, debounce_ms: int = 500, constrained_debounce_ms: int = 1000) -> None:
        self._debounce_ms = debounce_ms
        self._constrained_debounce_ms = constrained_debounce_ms
        self._current = OptimizationStrategy(analysis_debounce_ms=debounce_ms)
        self._listeners: list[StrategyListener] = []

    @property
    def current(self) -> OptimizationStrategy:
        return self._current

    def subscribe(self, listener: StrategyListener) -> Callable[[], None]:
        """
        Register a strategy listener.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def derive(self, thresholds: CapabilityThresholds) -> OptimizationStrategy:
        """Compute the strategy for thresholds without side effects."""
        if thresholds.slow_connection:
            cache = CacheStrategy.AGGRESSIVE
        elif thresholds.low_battery or thresholds.high_memory_usage:
            cache = CacheStrategy.MINIMAL
        else:
            cache = CacheStrategy.MODERATE

        if thresholds.low_end_device:
            quality = ImageQuality.LOW
        elif thresholds.slow_connection:
            quality = ImageQuality.MEDIUM
        else:
            quality = ImageQuality.HIGH

        constrained = thresholds.low_end_device or thresholds.high_memory_usage
        return OptimizationStrategy(
            reduced_animations=thresholds.low_end_device or thresholds.slow_connection,
            lazy_load_images=True,
            cache_strategy=cache,
            image_quality=quality,
            preload_critical=not thresholds.slow_connection,
            reduced_data_usage=thresholds.slow_connection or thresholds.low_battery,
            analysis_debounce_ms=self._constrained_debounce_ms if constrained else self._debounce_ms,
        )

    def select(self, thresholds: CapabilityThresholds) -> OptimizationStrategy:
        """
        Recompute the strategy and notify listeners if it changed.

        Returns:
            The current strategy
        """
        strategy = self.derive(thresholds)
        if strategy == self._current:
            return self._current

        previous: Optional[OptimizationStrategy] = self._current
        self._current = strategy
        track_strategy_change(strategy.cache_strategy.value)
        logger.info(
            "Optimization strategy changed",
            cache_strategy=strategy.cache_strategy.value,
            previous_cache_strategy=previous.cache_strategy.value if previous else None,
            reduced_animations=strategy.reduced_animations,
            image_quality=strategy.image_quality.value,
        )
        for listener in list(self._listeners):
            try:
                listener(strategy)
            except Exception as e:
                logger.error("Strategy listener failed", error_type=type(e).__name__)
        return strategy
