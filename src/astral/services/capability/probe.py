"""
Device Capability Probe

Point-in-time assessment of device, memory, network and battery
characteristics, reduced to CapabilityThresholds for the strategy
selector.

Unavailable signals never raise. They are logged at warning level and
replaced with safe defaults: 2 cores, full battery, zero memory and
storage usage, and a connection assumed slow so crisis content is
cached conservatively.
"""

from typing import Callable, Optional, TypeVar

from astral.config.logging_config import get_logger
from astral.domain.errors import ProbeUnavailable
from astral.domain.models.capability_models import (
    Available,
    BatteryInfo,
    CapabilitySnapshot,
    CapabilityThresholds,
    ConnectionInfo,
    DeviceProbeData,
    MemoryInfo,
    ProbeResult,
    StorageEstimate,
)
from astral.infrastructure.metrics import track_probe_unavailable
from astral.services.capability.platform import PlatformSignals

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_CORES = 2
LOW_END_CORES = 4
SLOW_EFFECTIVE_TYPES = frozenset({"slow-2g", "2g", "3g"})
SLOW_DOWNLINK_MBPS = 1.5
SLOW_RTT_MS = 300.0
LOW_BATTERY_LEVEL = 0.2
HIGH_MEMORY_RATIO = 0.8

LOW_END_UA_PATTERNS = (
    "android 4",
    "android 5",
    "android 6",
    "iphone 6",
    "iphone 7",
    "iphone se",
    "samsung sm-j",
    "lg-k",
    "moto e",
    "redmi",
    "nokia",
)


def derive_thresholds(data: DeviceProbeData) -> CapabilityThresholds:
    """
    Reduce raw probe data to threshold booleans.

    Args:
        data: Probe readings with defaults applied

    Returns:
        CapabilityThresholds
    """
    user_agent = data.user_agent.lower()
    low_end = data.hardware_concurrency < LOW_END_CORES or any(
        pattern in user_agent for pattern in LOW_END_UA_PATTERNS
    )

    conn = data.connection
    slow = (
        not data.connection_known
        or conn.effective_type in SLOW_EFFECTIVE_TYPES
        or (conn.downlink_mbps > 0 and conn.downlink_mbps < SLOW_DOWNLINK_MBPS)
        or conn.rtt_ms > SLOW_RTT_MS
    )

    return CapabilityThresholds(
        low_end_device=low_end,
        slow_connection=slow,
        low_battery=data.battery.level < LOW_BATTERY_LEVEL,
        high_memory_usage=data.memory.usage_ratio > HIGH_MEMORY_RATIO,
    )


class DeviceCapabilityProbe:
    """
    Capability probe over a PlatformSignals source.

    The first run is cached; pass force=True to re-probe.

    Usage:
        probe = DeviceCapabilityProbe(HostPlatformSignals())
        snapshot = probe.run()
        snapshot.thresholds.slow_connection
    """

    def __init__(self, signals: PlatformSignals) -> None:
        self._signals = signals
        self._snapshot: Optional[CapabilitySnapshot] = None

    @property
    def signals(self) -> PlatformSignals:
        return self._signals

    @property
    def snapshot(self) -> Optional[CapabilitySnapshot]:
        return self._snapshot

    def use_signals(self, signals: PlatformSignals) -> None:
        """Swap the signal source. The next run() re-probes."""
        self._signals = signals
        self._snapshot = None

    def run(self, force: bool = False) -> CapabilitySnapshot:
        """
        Probe the platform.

        Args:
            force: Ignore the cached snapshot

        Returns:
            CapabilitySnapshot with raw data and thresholds
        """
        if self._snapshot is not None and not force:
            return self._snapshot

        unavailable: set[str] = set()
        cores = self._read("hardware_concurrency", self._signals.hardware_concurrency, DEFAULT_CORES, unavailable)
        memory = self._read("memory", self._signals.memory, MemoryInfo(0, 0), unavailable)
        connection = self._read("connection", self._signals.connection, ConnectionInfo(), unavailable)
        battery = self._read("battery", self._signals.battery, BatteryInfo(level=1.0, charging=True), unavailable)
        storage = self._read("storage_estimate", self._signals.storage_estimate, StorageEstimate(), unavailable)
        user_agent = self._read("user_agent", self._signals.user_agent, "", unavailable)

        data = DeviceProbeData(
            hardware_concurrency=max(1, int(cores)),
            memory=memory,
            connection=connection,
            battery=battery,
            storage=storage,
            user_agent=user_agent,
            connection_known="connection" not in unavailable,
            unavailable=frozenset(unavailable),
        )
        self._snapshot = CapabilitySnapshot(data=data, thresholds=derive_thresholds(data))
        logger.info(
            "Device capabilities probed",
            **self._snapshot.thresholds.to_dict(),
            unavailable=sorted(unavailable),
        )
        return self._snapshot

    def features(self) -> dict[str, bool]:
        try:
            return self._signals.features()
        except Exception as e:
            logger.warning("Feature detection failed", error_type=type(e).__name__)
            return {}

    def _read(
        self,
        name: str,
        reader: Callable[[], ProbeResult],
        default: T,
        unavailable: set[str],
    ) -> T:
        try:
            result = reader()
            if isinstance(result, Available):
                return result.value
            raise ProbeUnavailable(name, result.reason)
        except ProbeUnavailable as e:
            reason = e.reason
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"

        logger.warning("Capability probe unavailable, using default", probe=name, reason=reason)
        track_probe_unavailable(name)
        unavailable.add(name)
        return default
