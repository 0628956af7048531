"""
Cancelable one-shot tasks on the running event loop.

A :class:`ScheduledTask` wraps an ``asyncio.Task`` that sleeps on a
:class:`~honeyguard.util.clock.Clock` and then awaits a callback. Cancelling
it before the delay elapses guarantees the callback never runs; cancelling
after the callback started does not interrupt platform calls already in
flight, because the handle is detached once the callback begins.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from honeyguard.util.clock import Clock
from honeyguard.util.logger import get_logger

logger = get_logger("scheduled_task")


class ScheduledTask:
    """Handle for a callback scheduled to run after a delay."""

    def __init__(
        self,
        delay_seconds: float,
        callback: Callable[[], Awaitable[None]],
        *,
        clock: Clock,
        name: str = "honeyguard-scheduled-task",
    ) -> None:
        self.delay_seconds = delay_seconds
        self.name = name
        self._callback = callback
        self._clock = clock
        self._started = False
        self._cancelled = False
        self._task: asyncio.Task[None] = asyncio.get_running_loop().create_task(self._run(), name=name)

    @property
    def started(self) -> bool:
        """True once the delay elapsed and the callback began running."""
        return self._started

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> bool:
        """
        Cancel the task if its callback has not started yet.

        Safe to call any number of times.

        Returns:
            bool: True if this call prevented the callback from running.
        """
        if self._started or self._cancelled or self._task.done():
            return False
        self._cancelled = True
        self._task.cancel()
        return True

    async def wait(self) -> None:
        """Wait for the task to finish, swallowing its cancellation."""
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _run(self) -> None:
        await self._clock.sleep(self.delay_seconds)
        if self._cancelled:
            return
        self._started = True
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("[SCHEDULED TASK] Callback for %s failed", self.name)
