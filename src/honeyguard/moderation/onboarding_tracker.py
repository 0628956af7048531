"""
Tracking of members inside the onboarding window.

A member enters the tracker when they join and leaves it when onboarding
completes: primarily when the platform clears their rules-screening gate,
or, as a fallback, when they send their first message. Completion waits a
short settle delay, re-fetches the member so the role set is current, and
then hands the member to the completion callback exactly once.

A periodic sweep drops records that never saw a completion signal, so
members who join and leave without accepting the rules cannot accumulate.
"""

from __future__ import annotations

import asyncio
import datetime
from typing import Awaitable, Callable, Dict, List

import discord
from discord.ext import tasks

from honeyguard.datatypes.discord_datatypes import GuildID, RoleID, UserID
from honeyguard.datatypes.event_datatypes import OnboardingCompleted
from honeyguard.datatypes.punishment_datatypes import OnboardingRecord
from honeyguard.scheduler.scheduled_task import ScheduledTask
from honeyguard.util.clock import Clock, SYSTEM_CLOCK
from honeyguard.util.logger import get_logger

logger = get_logger("onboarding_tracker")

RULES_GATE_SETTLE_SECONDS = 5.0
FIRST_MESSAGE_SETTLE_SECONDS = 10.0
SWEEP_INTERVAL_SECONDS = 5 * 60
MAX_RECORD_AGE_SECONDS = 15 * 60

MemberFetcher = Callable[[GuildID, UserID], Awaitable[discord.Member | None]]
CompletionCallback = Callable[[OnboardingCompleted], Awaitable[None]]


class OnboardingTracker:
    """
    Per-member state machine ``Joined -> RulesAccepted -> (removed)``.

    Attributes:
        records (Dict): Maps ``(user_id, guild_id)`` to the member's record.
    """

    def __init__(
        self,
        fetch_member: MemberFetcher,
        on_complete: CompletionCallback | None = None,
        *,
        clock: Clock = SYSTEM_CLOCK,
        rules_gate_settle_seconds: float = RULES_GATE_SETTLE_SECONDS,
        first_message_settle_seconds: float = FIRST_MESSAGE_SETTLE_SECONDS,
        sweep_interval_seconds: float = SWEEP_INTERVAL_SECONDS,
        max_record_age_seconds: float = MAX_RECORD_AGE_SECONDS,
    ) -> None:
        self.records: Dict[tuple[UserID, GuildID], OnboardingRecord] = {}
        self._fetch_member = fetch_member
        self._on_complete = on_complete
        self._clock = clock
        self.rules_gate_settle_seconds = rules_gate_settle_seconds
        self.first_message_settle_seconds = first_message_settle_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self.max_record_age = datetime.timedelta(seconds=max_record_age_seconds)
        self._settle_tasks: Dict[tuple[UserID, GuildID], ScheduledTask] = {}
        self._sweep_loop: tasks.Loop | None = None

    def set_completion_callback(self, on_complete: CompletionCallback) -> None:
        self._on_complete = on_complete

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic sweep. Calling it twice is harmless."""
        if self._sweep_loop is None:
            self._sweep_loop = tasks.loop(seconds=self.sweep_interval_seconds)(self._sweep_tick)
        if not self._sweep_loop.is_running():
            self._sweep_loop.start()
            logger.info("[ONBOARDING] Sweep started (interval=%.0fs)", self.sweep_interval_seconds)

    def stop(self) -> None:
        """Stop the sweep and drop any settle delays that have not fired."""
        if self._sweep_loop is not None:
            self._sweep_loop.cancel()
        for task in self._settle_tasks.values():
            task.cancel()
        self._settle_tasks.clear()
        logger.info("[ONBOARDING] Stopped")

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def on_member_join(self, user_id: UserID, guild_id: GuildID) -> OnboardingRecord:
        """Start tracking a member, replacing any stale record for them."""
        key = (UserID(user_id), GuildID(guild_id))
        stale = self._settle_tasks.pop(key, None)
        if stale is not None:
            stale.cancel()
        record = OnboardingRecord(user_id=key[0], guild_id=key[1], joined_at=self._clock.now())
        self.records[key] = record
        logger.info("[ONBOARDING] %s joined guild %s - pending rules agreement", key[0], key[1])
        return record

    def on_rules_gate_cleared(self, user_id: UserID, guild_id: GuildID) -> bool:
        """
        Mark a member's rules as accepted and arm the completion check.

        Returns:
            bool: True if a tracked member transitioned to accepted.
        """
        return self._accept(user_id, guild_id, self.rules_gate_settle_seconds, "rules agreement")

    def on_first_message(self, user_id: UserID, guild_id: GuildID) -> bool:
        """Fallback completion signal for members whose gate event never arrived."""
        return self._accept(user_id, guild_id, self.first_message_settle_seconds, "first message")

    def watch_completion(self, user_id: UserID, guild_id: GuildID) -> bool:
        """
        Arm the rules-gate completion check for a member with no open record.

        Used when the gate clears for a member whose record was swept or
        never existed (joined before a restart).

        Returns:
            bool: False if a completion check is already armed.
        """
        return self._accept(user_id, guild_id, self.rules_gate_settle_seconds, "rules agreement", track_missing=True)

    def forget(self, user_id: UserID, guild_id: GuildID) -> bool:
        """Stop tracking a member without running the completion callback."""
        key = (UserID(user_id), GuildID(guild_id))
        task = self._settle_tasks.pop(key, None)
        if task is not None:
            task.cancel()
        return self.records.pop(key, None) is not None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_onboarding(self, user_id: UserID, guild_id: GuildID) -> bool:
        record = self.records.get((UserID(user_id), GuildID(guild_id)))
        return record is not None and not record.rules_accepted

    def has_pending_completion(self, user_id: UserID, guild_id: GuildID) -> bool:
        """True while a completion check is armed and has not handed the member on yet."""
        key = (UserID(user_id), GuildID(guild_id))
        task = self._settle_tasks.get(key)
        return key in self.records and task is not None and not task.started

    def list_records(self, guild_id: GuildID | None = None) -> List[OnboardingRecord]:
        records = self.records.values()
        if guild_id is not None:
            guild_id = GuildID(guild_id)
            records = [r for r in records if r.guild_id == guild_id]
        return sorted(records, key=lambda r: r.joined_at)

    def count(self) -> int:
        return len(self.records)

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def sweep(self) -> int:
        """Remove unaccepted records older than the maximum age. Returns the count."""
        cutoff = self._clock.now() - self.max_record_age
        expired = [
            key for key, record in self.records.items()
            if not record.rules_accepted and record.joined_at < cutoff
        ]
        for key in expired:
            del self.records[key]
        if expired:
            logger.debug("[ONBOARDING] Swept %d stale record(s)", len(expired))
        return len(expired)

    async def _sweep_tick(self) -> None:
        try:
            self.sweep()
        except Exception:
            logger.exception("[ONBOARDING] Sweep failed")

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def _accept(
        self,
        user_id: UserID,
        guild_id: GuildID,
        settle_seconds: float,
        signal: str,
        *,
        track_missing: bool = False,
    ) -> bool:
        key = (UserID(user_id), GuildID(guild_id))
        record = self.records.get(key)
        if record is None and track_missing:
            record = OnboardingRecord(user_id=key[0], guild_id=key[1], joined_at=self._clock.now())
            self.records[key] = record
        if record is None or record.rules_accepted:
            return False

        record.rules_accepted = True
        logger.info(
            "[ONBOARDING] %s completed onboarding via %s in guild %s - checking in %.0fs",
            key[0], signal, key[1], settle_seconds,
        )
        self._settle_tasks[key] = ScheduledTask(
            settle_seconds,
            lambda: self._complete(key, record),
            clock=self._clock,
            name=f"honeyguard-onboarding-{key[1]}-{key[0]}",
        )
        return True

    async def _complete(self, key: tuple[UserID, GuildID], record: OnboardingRecord) -> None:
        self._settle_tasks.pop(key, None)

        # Remove before the callback so a second signal cannot fire it again
        if self.records.get(key) is not record:
            logger.debug("[ONBOARDING] Record for %s vanished during settle delay", key[0])
            return
        del self.records[key]

        member = await self._fetch_member(key[1], key[0])
        if member is None:
            logger.info("[ONBOARDING] %s left guild %s before the completion check", key[0], key[1])
            return

        if self._on_complete is None:
            logger.error("[ONBOARDING] No completion callback set for %s", key[0])
            return

        event = OnboardingCompleted(
            member=member,
            role_ids=frozenset(RoleID(role.id) for role in member.roles),
        )
        try:
            await self._on_complete(event)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("[ONBOARDING] Completion callback failed for %s", key[0])
