"""
Platform Signals

Explicit probe results for optional platform capabilities. Every
signal returns Available(value) or Unavailable(reason); callers never
duck-type for missing APIs.
"""

import os
import platform
import shutil
from abc import ABC, abstractmethod
from typing import Any, Optional

import psutil

from astral.domain.models.capability_models import (
    Available,
    BatteryInfo,
    ConnectionInfo,
    MemoryInfo,
    ProbeResult,
    StorageEstimate,
    Unavailable,
)

FEATURE_KEYS = ("indexed_db", "storage", "service_worker", "pwa")


class PlatformSignals(ABC):
    """Read-only platform capability signals."""

    @abstractmethod
    def hardware_concurrency(self) -> ProbeResult[int]:
        """Logical CPU count."""

    @abstractmethod
    def memory(self) -> ProbeResult[MemoryInfo]:
        """Memory usage."""

    @abstractmethod
    def connection(self) -> ProbeResult[ConnectionInfo]:
        """Effective network type, downlink and round-trip time."""

    @abstractmethod
    def battery(self) -> ProbeResult[BatteryInfo]:
        """Battery level and charging state."""

    @abstractmethod
    def storage_estimate(self) -> ProbeResult[StorageEstimate]:
        """Storage quota and usage."""

    @abstractmethod
    def user_agent(self) -> ProbeResult[str]:
        """Client identification string."""

    @abstractmethod
    def features(self) -> dict[str, bool]:
        """Storage and offline feature flags, keyed by FEATURE_KEYS."""


class HostPlatformSignals(PlatformSignals):
    """
    Signals read from the host machine via psutil.

    Hosts have no effective-network-type API; pass a ConnectionInfo
    when one is known, otherwise the connection is unavailable.
    """

    def __init__(
        self,
        storage_path: str = ".",
        connection: Optional[ConnectionInfo] = None,
    ) -> None:
        self._storage_path = storage_path
        self._connection = connection

    def hardware_concurrency(self) -> ProbeResult[int]:
        count = psutil.cpu_count(logical=True) or os.cpu_count()
        if not count:
            return Unavailable("cpu count not reported")
        return Available(count)

    def memory(self) -> ProbeResult[MemoryInfo]:
        try:
            vm = psutil.virtual_memory()
        except (OSError, RuntimeError) as e:
            return Unavailable(f"virtual memory unavailable: {e}")
        return Available(MemoryInfo(used_bytes=vm.total - vm.available, total_bytes=vm.total))

    def connection(self) -> ProbeResult[ConnectionInfo]:
        if self._connection is None:
            return Unavailable("no network information API")
        return Available(self._connection)

    def battery(self) -> ProbeResult[BatteryInfo]:
        sensors_battery = getattr(psutil, "sensors_battery", None)
        if sensors_battery is None:
            return Unavailable("battery sensors not supported")
        try:
            reading = sensors_battery()
        except (OSError, RuntimeError) as e:
            return Unavailable(f"battery read failed: {e}")
        if reading is None:
            return Unavailable("no battery installed")
        return Available(BatteryInfo(level=reading.percent / 100.0, charging=bool(reading.power_plugged)))

    def storage_estimate(self) -> ProbeResult[StorageEstimate]:
        try:
            usage = shutil.disk_usage(self._storage_path)
        except OSError as e:
            return Unavailable(f"disk usage unavailable: {e}")
        return Available(StorageEstimate(quota_bytes=usage.total, usage_bytes=usage.used))

    def user_agent(self) -> ProbeResult[str]:
        return Available(f"python/{platform.python_version()} ({platform.platform()})")

    def features(self) -> dict[str, bool]:
        return {"indexed_db": False, "storage": True, "service_worker": False, "pwa": False}


class ReportedPlatformSignals(PlatformSignals):
    """
    Signals reported by the UI host.

    Missing values are Unavailable, so the probe applies its safe
    defaults exactly as it would for a missing platform API.
    """

    def __init__(
        self,
        hardware_concurrency: Optional[int] = None,
        memory: Optional[MemoryInfo] = None,
        connection: Optional[ConnectionInfo] = None,
        battery: Optional[BatteryInfo] = None,
        storage: Optional[StorageEstimate] = None,
        user_agent: Optional[str] = None,
        features: Optional[dict[str, bool]] = None,
    ) -> None:
        self._hardware_concurrency = hardware_concurrency
        self._memory = memory
        self._connection = connection
        self._battery = battery
        self._storage = storage
        self._user_agent = user_agent
        self._features = {key: bool((features or {}).get(key, False)) for key in FEATURE_KEYS}

    @classmethod
    def from_report(cls, report: dict[str, Any]) -> "ReportedPlatformSignals":
        """
        Build from a loosely-typed report.

        Expected keys (all optional): hardware_concurrency, memory
        {used, total, limit}, connection {effective_type, downlink, rtt,
        save_data}, battery {level, charging}, storage {quota, usage},
        user_agent, features {indexed_db, storage, service_worker, pwa}.
        """
        memory = report.get("memory")
        connection = report.get("connection")
        battery = report.get("battery")
        storage = report.get("storage")
        return cls(
            hardware_concurrency=report.get("hardware_concurrency"),
            memory=MemoryInfo(
                used_bytes=int(memory.get("used", 0)),
                total_bytes=int(memory.get("total", 0)),
                limit_bytes=memory.get("limit"),
            ) if memory else None,
            connection=ConnectionInfo(
                effective_type=str(connection.get("effective_type", "4g")),
                downlink_mbps=float(connection.get("downlink", 10.0)),
                rtt_ms=float(connection.get("rtt", 50.0)),
                save_data=bool(connection.get("save_data", False)),
            ) if connection else None,
            battery=BatteryInfo(
                level=float(battery.get("level", 1.0)),
                charging=bool(battery.get("charging", True)),
            ) if battery else None,
            storage=StorageEstimate(
                quota_bytes=int(storage.get("quota", 0)),
                usage_bytes=int(storage.get("usage", 0)),
            ) if storage else None,
            user_agent=report.get("user_agent"),
            features=report.get("features"),
        )

    def hardware_concurrency(self) -> ProbeResult[int]:
        if not self._hardware_concurrency:
            return Unavailable("not reported")
        return Available(int(self._hardware_concurrency))

    def memory(self) -> ProbeResult[MemoryInfo]:
        return Available(self._memory) if self._memory else Unavailable("not reported")

    def connection(self) -> ProbeResult[ConnectionInfo]:
        return Available(self._connection) if self._connection else Unavailable("not reported")

    def battery(self) -> ProbeResult[BatteryInfo]:
        return Available(self._battery) if self._battery else Unavailable("not reported")

    def storage_estimate(self) -> ProbeResult[StorageEstimate]:
        return Available(self._storage) if self._storage else Unavailable("not reported")

    def user_agent(self) -> ProbeResult[str]:
        return Available(self._user_agent) if self._user_agent else Unavailable("not reported")

    def features(self) -> dict[str, bool]:
        return dict(self._features)
