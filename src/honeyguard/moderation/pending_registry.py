"""
In-memory table of punishments that are recorded but not yet executed.

Entries are keyed by ``(user_id, guild_id)``; scheduling a new entry for a
key always cancels the previous one first, so at most one timer per key is
ever armed. An entry may be *intent-only* (no timer), in which case it only
serves as a record for operators and as a cancellation point until the
onboarding completion callback consumes it.
"""

from __future__ import annotations

import datetime
from typing import Awaitable, Callable, Dict, List

from honeyguard.datatypes.discord_datatypes import GuildID, RoleID, UserID
from honeyguard.datatypes.punishment_datatypes import PendingPunishment, PunishmentKind
from honeyguard.scheduler.scheduled_task import ScheduledTask
from honeyguard.util.clock import Clock, SYSTEM_CLOCK
from honeyguard.util.logger import get_logger

logger = get_logger("pending_registry")

ExpiryCallback = Callable[[PendingPunishment], Awaitable[None]]


class PendingPunishmentRegistry:
    """
    Registry of pending punishments with cancelable timers.

    Attributes:
        entries (Dict): Maps ``(user_id, guild_id)`` to the live entry.
    """

    def __init__(self, on_expire: ExpiryCallback | None = None, *, clock: Clock = SYSTEM_CLOCK) -> None:
        self.entries: Dict[tuple[UserID, GuildID], PendingPunishment] = {}
        self._on_expire = on_expire
        self._clock = clock

    def set_expiry_callback(self, on_expire: ExpiryCallback) -> None:
        """Set the coroutine run when a timer fires (wired after construction)."""
        self._on_expire = on_expire

    def schedule(
        self,
        user_id: UserID,
        guild_id: GuildID,
        role_id: RoleID,
        kind: PunishmentKind,
        duration: datetime.timedelta,
        delay_seconds: float | None,
        *,
        member_joined_at: datetime.datetime | None = None,
    ) -> PendingPunishment:
        """
        Record a pending punishment, replacing any existing one for the key.

        Args:
            delay_seconds: Seconds until the expiry callback runs, or ``None``
                to record intent only without arming a timer.

        Returns:
            PendingPunishment: The stored entry; its ``handle`` cancels the timer.
        """
        key = (UserID(user_id), GuildID(guild_id))
        self._cancel_key(key)

        now = self._clock.now()
        entry = PendingPunishment(
            user_id=key[0],
            guild_id=key[1],
            role_id=RoleID(role_id),
            member_joined_at=member_joined_at,
            scheduled_at=None if delay_seconds is None else now + datetime.timedelta(seconds=delay_seconds),
            kind=kind,
            duration=duration,
        )

        if delay_seconds is not None:
            entry.handle = ScheduledTask(
                delay_seconds,
                lambda: self._fire(entry),
                clock=self._clock,
                name=f"honeyguard-pending-{key[1]}-{key[0]}",
            )

        self.entries[key] = entry
        logger.debug(
            "[REGISTRY] Recorded pending %s for %s in guild %s (role %s, delay=%s)",
            kind, key[0], key[1], entry.role_id, delay_seconds,
        )
        return entry

    def get(self, user_id: UserID, guild_id: GuildID) -> PendingPunishment | None:
        return self.entries.get((UserID(user_id), GuildID(guild_id)))

    def cancel(self, user_id: UserID, guild_id: GuildID) -> bool:
        """
        Cancel and remove the entry for a key.

        Safe to call when nothing is pending.

        Returns:
            bool: True if an entry was removed.
        """
        cancelled = self._cancel_key((UserID(user_id), GuildID(guild_id)))
        if cancelled:
            logger.info("[REGISTRY] Cancelled pending punishment for %s in guild %s", user_id, guild_id)
        return cancelled

    def list_by_guild(self, guild_id: GuildID) -> List[PendingPunishment]:
        """Snapshot of the entries for one guild, soonest first."""
        guild_id = GuildID(guild_id)
        far_future = datetime.datetime.max.replace(tzinfo=datetime.timezone.utc)
        return sorted(
            (entry for entry in self.entries.values() if entry.guild_id == guild_id),
            key=lambda entry: entry.scheduled_at or far_future,
        )

    def cancel_all(self) -> int:
        """Clear every timer without executing anything. Used at shutdown."""
        count = len(self.entries)
        for entry in self.entries.values():
            if entry.handle is not None:
                entry.handle.cancel()
        self.entries.clear()
        logger.info("[REGISTRY] Cleared %d pending punishment(s)", count)
        return count

    def __len__(self) -> int:
        return len(self.entries)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _cancel_key(self, key: tuple[UserID, GuildID]) -> bool:
        entry = self.entries.pop(key, None)
        if entry is None:
            return False
        if entry.handle is not None:
            entry.handle.cancel()
        return True

    async def _fire(self, entry: PendingPunishment) -> None:
        try:
            if self.entries.get(entry.key) is not entry:
                # Superseded or cancelled while the timer was waking up
                return
            if self._on_expire is None:
                logger.error("[REGISTRY] No expiry callback set; dropping %s for %s", entry.kind, entry.user_id)
                return
            await self._on_expire(entry)
        finally:
            if self.entries.get(entry.key) is entry:
                del self.entries[entry.key]
