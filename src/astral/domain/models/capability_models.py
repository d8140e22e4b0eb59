"""
Capability Models

Platform probe results, derived thresholds, optimization strategy
and offline status snapshots.

SAFETY: Crisis support flags on OptimizationStrategy are read-only
and always true. No strategy may disable crisis features.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Available(Generic[T]):
    """A platform API answered with a value."""

    value: T


@dataclass(frozen=True)
class Unavailable:
    """A platform API is missing or failed."""

    reason: str = "not supported"


ProbeResult = Union[Available[T], Unavailable]


def value_or(result: "ProbeResult[T]", default: T) -> T:
    """Unwrap a probe result, falling back to a default."""
    if isinstance(result, Available):
        return result.value
    return default


@dataclass(frozen=True)
class MemoryInfo:
    used_bytes: int
    total_bytes: int
    limit_bytes: Optional[int] = None

    @property
    def usage_ratio(self) -> float:
        denominator = self.total_bytes
        if self.limit_bytes:
            denominator = min(denominator, self.limit_bytes) if denominator else self.limit_bytes
        if denominator <= 0:
            return 0.0
        return self.used_bytes / denominator


@dataclass(frozen=True)
class ConnectionInfo:
    effective_type: str = "4g"
    downlink_mbps: float = 10.0
    rtt_ms: float = 50.0
    save_data: bool = False


@dataclass(frozen=True)
class BatteryInfo:
    level: float = 1.0
    charging: bool = True


@dataclass(frozen=True)
class StorageEstimate:
    quota_bytes: int = 0
    usage_bytes: int = 0


@dataclass(frozen=True)
class DeviceProbeData:
    """Raw probe readings with safe defaults already applied."""

    hardware_concurrency: int
    memory: MemoryInfo
    connection: ConnectionInfo
    battery: BatteryInfo
    storage: StorageEstimate
    user_agent: str = ""
    connection_known: bool = True
    unavailable: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class CapabilityThresholds:
    """Derived booleans consumed by strategy selection only."""

    low_end_device: bool = False
    slow_connection: bool = False
    low_battery: bool = False
    high_memory_usage: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {
            "low_end_device": self.low_end_device,
            "slow_connection": self.slow_connection,
            "low_battery": self.low_battery,
            "high_memory_usage": self.high_memory_usage,
        }


@dataclass(frozen=True)
class CapabilitySnapshot:
    data: DeviceProbeData
    thresholds: CapabilityThresholds
    taken_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class CacheStrategy(StrEnum):
    AGGRESSIVE = "aggressive"
    """Cache every catalogue resource."""

    MODERATE = "moderate"
    """Crisis resources, techniques and high-priority pages."""

    MINIMAL = "minimal"
    """Crisis resources only."""


class ImageQuality(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class OptimizationStrategy:
    """Operational strategy derived from capability thresholds."""

    reduced_animations: bool = False
    lazy_load_images: bool = True
    cache_strategy: CacheStrategy = CacheStrategy.MODERATE
    image_quality: ImageQuality = ImageQuality.HIGH
    preload_critical: bool = True
    reduced_data_usage: bool = False
    analysis_debounce_ms: int = 500

    @property
    def prioritize_crisis_features(self) -> bool:
        return True

    @property
    def offline_crisis_support(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "reduced_animations": self.reduced_animations,
            "lazy_load_images": self.lazy_load_images,
            "cache_strategy": self.cache_strategy.value,
            "image_quality": self.image_quality.value,
            "preload_critical": self.preload_critical,
            "reduced_data_usage": self.reduced_data_usage,
            "analysis_debounce_ms": self.analysis_debounce_ms,
            "prioritize_crisis_features": self.prioritize_crisis_features,
            "offline_crisis_support": self.offline_crisis_support,
        }


@dataclass(frozen=True)
class OfflineCapabilities:
    """Storage feature flags and usage, recomputed on status changes."""

    is_online: bool = True
    has_indexed_db: bool = False
    has_storage: bool = False
    has_service_worker: bool = False
    estimated_storage: int = 0
    used_storage: int = 0
    supports_pwa: bool = False

    @property
    def storage_usage_percentage(self) -> float:
        if self.estimated_storage <= 0:
            return 0.0
        return min(100.0, self.used_storage / self.estimated_storage * 100.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_online": self.is_online,
            "has_indexed_db": self.has_indexed_db,
            "has_storage": self.has_storage,
            "has_service_worker": self.has_service_worker,
            "estimated_storage": self.estimated_storage,
            "used_storage": self.used_storage,
            "supports_pwa": self.supports_pwa,
            "storage_usage_percentage": round(self.storage_usage_percentage, 2),
        }


@dataclass(frozen=True)
class OfflineStatus:
    """What the UI layer is told about offline operation."""

    capabilities: OfflineCapabilities
    queue_size: int = 0
    is_syncing: bool = False
    degraded: bool = False
    last_online_at: Optional[datetime] = None
    last_sync_at: Optional[datetime] = None
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_online(self) -> bool:
        return self.capabilities.is_online

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_online": self.is_online,
            "capabilities": self.capabilities.to_dict(),
            "storage_usage_percentage": round(self.capabilities.storage_usage_percentage, 2),
            "queue_size": self.queue_size,
            "is_syncing": self.is_syncing,
            "degraded": self.degraded,
            "last_online_at": self.last_online_at.isoformat() if self.last_online_at else None,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "errors": list(self.errors),
        }
