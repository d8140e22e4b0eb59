"""Tests configuration and fixtures."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest

from astral.config import Settings
from astral.domain.errors import StorageError
from astral.domain.models.capability_models import (
    BatteryInfo,
    ConnectionInfo,
    MemoryInfo,
    StorageEstimate,
)
from astral.domain.models.sync_models import SubmitOutcome, SyncQueueItem
from astral.infrastructure.storage.key_value_store import InMemoryKeyValueStore
from astral.services.capability.platform import ReportedPlatformSignals
from astral.services.offline.submitter import SyncSubmitter
from astral.services.orchestration import ResilienceCore


class FakeSubmitter(SyncSubmitter):
    """
    Scripted submitter.

    Outcomes are consumed in order; once exhausted the default is used.
    Every submitted item id is recorded.
    """

    def __init__(
        self,
        outcomes: Optional[list[SubmitOutcome]] = None,
        default: SubmitOutcome = SubmitOutcome.SUCCESS,
        delay: float = 0.0,
    ) -> None:
        self.outcomes = list(outcomes or [])
        self.default = default
        self.delay = delay
        self.calls: list[str] = []
        self.before_submit = None

    async def submit(self, item: SyncQueueItem) -> SubmitOutcome:
        self.calls.append(item.item_id)
        if self.before_submit is not None:
            self.before_submit(item)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.outcomes:
            return self.outcomes.pop(0)
        return self.default


class FailingStore(InMemoryKeyValueStore):
    """Store whose reads and/or writes raise StorageError."""

    def __init__(self, fail_reads: bool = False, fail_writes: bool = True) -> None:
        super().__init__()
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    async def get(self, key):
        if self.fail_reads:
            raise StorageError("read failed")
        return await super().get(key)

    async def set(self, key, value):
        if self.fail_writes:
            raise StorageError("write failed")
        await super().set(key, value)


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def fast_device_signals() -> ReportedPlatformSignals:
    """A capable device on a fast connection."""
    return ReportedPlatformSignals(
        hardware_concurrency=8,
        memory=MemoryInfo(used_bytes=2_000, total_bytes=10_000),
        connection=ConnectionInfo(effective_type="4g", downlink_mbps=20.0, rtt_ms=40.0),
        battery=BatteryInfo(level=0.9, charging=False),
        storage=StorageEstimate(quota_bytes=1_000_000, usage_bytes=100_000),
        user_agent="Mozilla/5.0 (X11; Linux x86_64)",
        features={"indexed_db": True, "storage": True, "service_worker": True, "pwa": True},
    )


@pytest.fixture
def test_settings() -> Settings:
    """Settings with short windows suited to tests."""
    settings = Settings(env="development", debug=True)
    settings.crisis.debounce_ms = 50
    settings.crisis.constrained_debounce_ms = 100
    settings.network.coalesce_window_ms = 0
    settings.sync.base_delay_seconds = 1.0
    settings.sync.max_retries = 3
    settings.sync.flush_interval_seconds = 3600
    settings.storage.usage_refresh_seconds = 3600
    return settings


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    """Fresh in-memory store."""
    return InMemoryKeyValueStore()


@pytest.fixture
def submitter() -> FakeSubmitter:
    """Submitter that accepts everything."""
    return FakeSubmitter()


@pytest.fixture
def clock() -> FakeClock:
    """Clock that only moves when advanced."""
    return FakeClock()


@pytest.fixture
async def core(
    test_settings: Settings,
    store: InMemoryKeyValueStore,
    submitter: FakeSubmitter,
) -> AsyncGenerator[ResilienceCore, None]:
    """Initialized resilience core over in-memory storage and a fake submitter."""
    resilience = ResilienceCore(
        test_settings,
        store=store,
        submitter=submitter,
        signals=fast_device_signals(),
    )
    await resilience.initialize()
    yield resilience
    await resilience.shutdown()
