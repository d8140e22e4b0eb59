"""Capability services package - platform probing and strategy selection."""

from astral.services.capability.platform import (
    HostPlatformSignals,
    PlatformSignals,
    ReportedPlatformSignals,
)
from astral.services.capability.probe import DeviceCapabilityProbe, derive_thresholds
from astral.services.capability.strategy import AdaptiveStrategySelector

__all__ = [
    "PlatformSignals",
    "HostPlatformSignals",
    "ReportedPlatformSignals",
    "DeviceCapabilityProbe",
    "derive_thresholds",
    "AdaptiveStrategySelector",
]
