"""
Network Status Monitor

Tracks online/offline transitions from host connectivity signals.

The raw state flips immediately so an in-flight flush can stop
between items. Listener notification is coalesced: a transition is
announced only once the signal has been quiet for the coalesce
window, so a flapping network triggers at most one flush.
"""

import asyncio
import inspect
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Union

from astral.config.logging_config import get_logger
from astral.infrastructure.metrics import track_network_transition

logger = get_logger(__name__)

NetworkListener = Callable[[bool], Union[None, Awaitable[None]]]
ConnectivityCheck = Callable[[], Awaitable[bool]]


class NetworkStatusMonitor:
    """
    Connectivity state with flap suppression.

    Usage:
        monitor = NetworkStatusMonitor(coalesce_window=0.3)
        unsubscribe = monitor.subscribe(on_change)
        monitor.report(False)
    """

    def __init__(self, coalesce_window: float = 0.3, initial_online: bool = True) -> None:
        self._window = coalesce_window
        self._online = initial_online
        self._announced = initial_online
        self._last_online_at: Optional[datetime] = datetime.now(timezone.utc) if initial_online else None
        self._last_offline_at: Optional[datetime] = None
        self._listeners: list[NetworkListener] = []
        self._settled_listeners: list[NetworkListener] = []
        self._settle_handle: Optional[asyncio.TimerHandle] = None
        self._listener_tasks: set[asyncio.Task] = set()
        self._watch_task: Optional[asyncio.Task] = None

    @property
    def is_online(self) -> bool:
        """Raw connectivity, updated immediately on every report."""
        return self._online

    @property
    def announced_online(self) -> bool:
        """Last state announced to listeners."""
        return self._announced

    @property
    def last_online_at(self) -> Optional[datetime]:
        return self._last_online_at

    @property
    def last_offline_at(self) -> Optional[datetime]:
        return self._last_offline_at

    def check_online(self) -> bool:
        return self._online

    def subscribe(self, listener: NetworkListener) -> Callable[[], None]:
        """
        Register a transition listener. Coroutine listeners are scheduled as tasks.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def subscribe_settled(self, listener: NetworkListener) -> Callable[[], None]:
        """
        Register a listener for signals that settle back to the announced state.

        A flap that recovers inside the coalesce window announces nothing;
        these listeners still learn that the signal has gone quiet.

        Returns:
            Callable that removes the listener
        """
        self._settled_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._settled_listeners:
                self._settled_listeners.remove(listener)

        return unsubscribe

    def report(self, online: bool) -> None:
        """
        Record a connectivity signal from the host.

        Must be called from the event loop thread.
        """
        online = bool(online)
        if online != self._online:
            now = datetime.now(timezone.utc)
            if online:
                self._last_online_at = now
            else:
                self._last_offline_at = now
            logger.debug("Connectivity signal", online=online)
        self._online = online

        if self._settle_handle is not None:
            self._settle_handle.cancel()
            self._settle_handle = None

        if self._window <= 0:
            self._settle()
            return
        loop = asyncio.get_running_loop()
        self._settle_handle = loop.call_later(self._window, self._settle)

    def _settle(self) -> None:
        self._settle_handle = None
        if self._online == self._announced:
            self._notify(self._settled_listeners, self._online)
            return
        self._announced = self._online
        track_network_transition(self._announced)
        logger.info("Network status changed", online=self._announced)
        self._notify(self._listeners, self._announced)

    def _notify(self, listeners: list[NetworkListener], online: bool) -> None:
        for listener in list(listeners):
            try:
                outcome = listener(online)
            except Exception as e:
                logger.error("Network listener failed", error_type=type(e).__name__)
                continue
            if inspect.isawaitable(outcome):
                task = asyncio.ensure_future(outcome)
                self._listener_tasks.add(task)
                task.add_done_callback(self._on_listener_done)

    def _on_listener_done(self, task: asyncio.Task) -> None:
        self._listener_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Network listener failed",
                error_type=type(task.exception()).__name__,
            )

    async def drain(self) -> None:
        """Wait for running coroutine listeners."""
        while self._listener_tasks:
            await asyncio.gather(*list(self._listener_tasks), return_exceptions=True)

    def watch(self, check: ConnectivityCheck, interval: float) -> None:
        """Poll a connectivity check for hosts without connectivity events."""
        if self._watch_task is not None and not self._watch_task.done():
            return
        self._watch_task = asyncio.get_running_loop().create_task(self._poll(check, interval))

    async def _poll(self, check: ConnectivityCheck, interval: float) -> None:
        while True:
            try:
                online = await check()
            except Exception as e:
                logger.warning("Connectivity check failed", error_type=type(e).__name__)
                online = False
            if online != self._online:
                self.report(online)
            await asyncio.sleep(interval)

    async def close(self) -> None:
        if self._settle_handle is not None:
            self._settle_handle.cancel()
            self._settle_handle = None
        if self._watch_task is not None:
            self._watch_task.cancel()
            await asyncio.gather(self._watch_task, return_exceptions=True)
            self._watch_task = None
        await self.drain()
