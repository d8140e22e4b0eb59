"""
Debouncer

Collapses bursts of calls into the last call within a window.

Only the sleeping timer is cancellable. Once the window elapses the
scheduled coroutine runs to completion; callers that need ordering
guard results with their own sequence numbers.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from astral.config.logging_config import get_logger

logger = get_logger(__name__)


class Debouncer:
    """
    Single-timer async debouncer.

    Usage:
        debouncer = Debouncer(delay=0.5)
        debouncer.schedule(lambda: service.analyze(text))
    """

    def __init__(self, delay: float) -> None:
        self._delay = delay
        self._sequence = 0
        self._timer: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def delay(self) -> float:
        return self._delay

    @delay.setter
    def delay(self, value: float) -> None:
        if value < 0:
            raise ValueError("Debounce delay must be non-negative")
        self._delay = value

    @property
    def sequence(self) -> int:
        """Sequence number of the most recently scheduled call."""
        return self._sequence

    @property
    def has_pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def schedule(self, fn: Callable[[], Awaitable[object]]) -> int:
        """
        Schedule fn after the debounce window, superseding any pending call.

        Must be called from within a running event loop.

        Returns:
            Sequence number of this call
        """
        self.cancel_pending()
        self._sequence += 1
        task = asyncio.get_running_loop().create_task(self._fire(self._sequence, fn))
        self._timer = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return self._sequence

    def cancel_pending(self) -> bool:
        """
        Cancel the sleeping timer, if any.

        Returns:
            True when a pending call was cancelled
        """
        if self._timer is None or self._timer.done():
            self._timer = None
            return False
        self._timer.cancel()
        self._timer = None
        return True

    async def wait(self) -> None:
        """Wait for the pending call and any in-flight work to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _fire(self, sequence: int, fn: Callable[[], Awaitable[object]]) -> None:
        await asyncio.sleep(self._delay)
        # Past this point the call is in flight and no longer cancellable
        if self._timer is asyncio.current_task():
            self._timer = None
        try:
            await fn()
        except Exception as e:
            logger.error(
                "Debounced call failed",
                sequence=sequence,
                error_type=type(e).__name__,
            )
