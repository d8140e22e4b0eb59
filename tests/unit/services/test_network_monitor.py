"""
Unit Tests for Network Status Monitor

Tests immediate raw state, coalesced notification and listener handling.
"""

import asyncio

import pytest

from astral.services.offline.network_monitor import NetworkStatusMonitor


@pytest.fixture
def monitor() -> NetworkStatusMonitor:
    """Monitor with a short coalesce window."""
    return NetworkStatusMonitor(coalesce_window=0.05)


class TestRawState:
    """Raw connectivity state."""

    async def test_report_updates_state_immediately(self, monitor: NetworkStatusMonitor) -> None:
        """Test that the raw state flips before anything is announced."""
        monitor.report(False)

        assert not monitor.is_online
        assert not monitor.check_online()
        assert monitor.announced_online
        assert monitor.last_offline_at is not None

        await monitor.close()


class TestCoalescing:
    """Flap suppression."""

    async def test_flapping_within_window_is_not_announced(self, monitor: NetworkStatusMonitor) -> None:
        """Test that a signal returning to its announced state stays silent."""
        events = []
        monitor.subscribe(events.append)

        for online in (False, True, False, True):
            monitor.report(online)
            await asyncio.sleep(0.005)
        await asyncio.sleep(0.1)

        assert events == []
        assert monitor.is_online

    async def test_settled_change_is_announced_once(self, monitor: NetworkStatusMonitor) -> None:
        """Test that repeated reports of one change announce it once."""
        events = []
        monitor.subscribe(events.append)

        monitor.report(False)
        monitor.report(False)
        await asyncio.sleep(0.1)

        assert events == [False]
        assert not monitor.announced_online

    async def test_zero_window_announces_synchronously(self) -> None:
        """Test that a zero window announces inside report()."""
        monitor = NetworkStatusMonitor(coalesce_window=0)
        events = []
        monitor.subscribe(events.append)

        monitor.report(False)
        monitor.report(True)

        assert events == [False, True]

    async def test_recovered_flap_reaches_settled_listeners(self, monitor: NetworkStatusMonitor) -> None:
        """Test that a flap ending where it started is reported only as settled."""
        changes = []
        settled = []
        monitor.subscribe(changes.append)
        monitor.subscribe_settled(settled.append)

        monitor.report(False)
        await asyncio.sleep(0.01)
        monitor.report(True)
        await asyncio.sleep(0.1)

        assert changes == []
        assert settled == [True]

    async def test_settled_listeners_skip_real_transitions(self, monitor: NetworkStatusMonitor) -> None:
        """Test that an announced change does not also count as settled."""
        settled = []
        monitor.subscribe_settled(settled.append)

        monitor.report(False)
        await asyncio.sleep(0.1)

        assert settled == []


class TestListeners:
    """Listener scheduling and isolation."""

    async def test_coroutine_listener_runs_as_task(self) -> None:
        """Test that coroutine listeners run and can be drained."""
        monitor = NetworkStatusMonitor(coalesce_window=0)
        seen = []

        async def on_change(online: bool) -> None:
            await asyncio.sleep(0)
            seen.append(online)

        monitor.subscribe(on_change)
        monitor.report(False)
        await monitor.drain()

        assert seen == [False]

    async def test_failing_listener_does_not_block_others(self) -> None:
        """Test that one raising listener does not stop the rest."""
        monitor = NetworkStatusMonitor(coalesce_window=0)
        seen = []

        def explode(online: bool) -> None:
            raise RuntimeError("listener failed")

        monitor.subscribe(explode)
        monitor.subscribe(seen.append)
        monitor.report(False)

        assert seen == [False]

    async def test_unsubscribe(self) -> None:
        """Test that unsubscribing is idempotent."""
        monitor = NetworkStatusMonitor(coalesce_window=0)
        seen = []
        unsubscribe = monitor.subscribe(seen.append)

        unsubscribe()
        unsubscribe()
        monitor.report(False)

        assert seen == []


class TestWatch:
    """Polling for hosts without connectivity events."""

    async def test_watch_reports_check_results(self) -> None:
        """Test that poll results are fed into report()."""
        monitor = NetworkStatusMonitor(coalesce_window=0)
        results = iter([False, False, True])

        async def check() -> bool:
            return next(results, True)

        monitor.watch(check, interval=0.01)
        await asyncio.sleep(0.005)
        assert not monitor.is_online

        await asyncio.sleep(0.05)
        assert monitor.is_online
        await monitor.close()

    async def test_failing_check_counts_as_offline(self) -> None:
        """Test that a raising check is treated as no connectivity."""
        monitor = NetworkStatusMonitor(coalesce_window=0)

        async def check() -> bool:
            raise OSError("no route")

        monitor.watch(check, interval=0.01)
        await asyncio.sleep(0.005)

        assert not monitor.is_online
        await monitor.close()
