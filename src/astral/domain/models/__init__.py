"""Domain models package."""

from astral.domain.models.capability_models import (
    Available,
    BatteryInfo,
    CacheStrategy,
    CapabilitySnapshot,
    CapabilityThresholds,
    ConnectionInfo,
    DeviceProbeData,
    ImageQuality,
    MemoryInfo,
    OfflineCapabilities,
    OfflineStatus,
    OptimizationStrategy,
    ProbeResult,
    StorageEstimate,
    Unavailable,
    value_or,
)
from astral.domain.models.crisis_models import (
    AnalysisContext,
    CrisisAlert,
    CrisisAnalysisResult,
    EscalationAction,
    hash_text,
)
from astral.domain.models.resource_models import CrisisResource
from astral.domain.models.sync_models import (
    FlushResult,
    SubmitOutcome,
    SyncFailure,
    SyncQueueItem,
    priority_for_type,
)

__all__ = [
    "AnalysisContext",
    "Available",
    "BatteryInfo",
    "CacheStrategy",
    "CapabilitySnapshot",
    "CapabilityThresholds",
    "ConnectionInfo",
    "CrisisAlert",
    "CrisisAnalysisResult",
    "CrisisResource",
    "DeviceProbeData",
    "EscalationAction",
    "FlushResult",
    "ImageQuality",
    "MemoryInfo",
    "OfflineCapabilities",
    "OfflineStatus",
    "OptimizationStrategy",
    "ProbeResult",
    "StorageEstimate",
    "SubmitOutcome",
    "SyncFailure",
    "SyncQueueItem",
    "Unavailable",
    "hash_text",
    "priority_for_type",
    "value_or",
]
