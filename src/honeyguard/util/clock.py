"""
Time source shared by every timer in Honeyguard.

Registry timers, onboarding settle delays and the periodic sweeps all read
the current time and sleep through a :class:`Clock` so tests can swap in a
fake that advances on demand.
"""

from __future__ import annotations

import asyncio
import datetime


class Clock:
    """Wall clock in UTC backed by ``asyncio.sleep``."""

    def now(self) -> datetime.datetime:
        return datetime.datetime.now(datetime.timezone.utc)

    def timestamp(self) -> int:
        """Current time as whole unix seconds."""
        return int(self.now().timestamp())

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(seconds, 0))


SYSTEM_CLOCK = Clock()
