"""
Execution of honeypot punishments against the platform.

The three ``execute_*`` methods check permissions and role hierarchy, call
the platform primitive, and (for temporary bans) persist the ban record.
They return an :class:`ExecutionResult` instead of raising for permission
or platform failures; logging those outcomes is the caller's job.
"""

from __future__ import annotations

import datetime

import discord

from honeyguard.database.database import Database
from honeyguard.datatypes.discord_datatypes import GuildID, RoleID, UserID
from honeyguard.datatypes.punishment_datatypes import ExecutionResult, FailureKind, PunishmentKind
from honeyguard.ui.action_embed import create_ban_dm_embed
from honeyguard.util import discord_utils
from honeyguard.util.clock import Clock, SYSTEM_CLOCK
from honeyguard.util.logger import get_logger

logger = get_logger("moderation_executor")

DEFAULT_BAN_PURGE_SECONDS = 86400


class ModerationExecutor:
    """Applies timeouts, temporary bans and permanent bans."""

    def __init__(
        self,
        database: Database,
        *,
        appeal_contact: str,
        ban_purge_seconds: int = DEFAULT_BAN_PURGE_SECONDS,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        self.database = database
        self.appeal_contact = appeal_contact
        self.ban_purge_seconds = ban_purge_seconds
        self._clock = clock

    async def execute_timeout(
        self,
        member: discord.Member,
        role_id: RoleID,
        duration: datetime.timedelta,
        reason: str,
    ) -> ExecutionResult:
        kind = PunishmentKind.TIMEOUT
        if not discord_utils.bot_can_timeout(member):
            return ExecutionResult.failed(kind, FailureKind.MISSING_PERMISSION, "Bot lacks Moderate Members permission")
        if not discord_utils.is_punishable(member):
            return ExecutionResult.failed(kind, FailureKind.NOT_PUNISHABLE, f"Cannot timeout {member}: role hierarchy")

        try:
            await discord_utils.timeout_member(member, duration, reason)
        except discord.HTTPException as exc:
            return ExecutionResult.failed(kind, FailureKind.PLATFORM, f"Timeout failed: {exc}")

        logger.info("[EXECUTOR] Timed out %s (%s) for %s - role %s", member, member.id, duration, role_id)
        return ExecutionResult.ok(kind)

    async def execute_temp_ban(
        self,
        member: discord.Member,
        role_id: RoleID,
        duration: datetime.timedelta,
        reason: str,
    ) -> ExecutionResult:
        kind = PunishmentKind.TEMPORARY_BAN
        failure = self._ban_precondition(member, kind)
        if failure is not None:
            return failure

        await self._notify_ban(member, reason)
        try:
            await discord_utils.ban_member(member, reason, self.ban_purge_seconds)
        except discord.HTTPException as exc:
            return ExecutionResult.failed(kind, FailureKind.PLATFORM, f"Ban failed: {exc}")

        banned_at = self._clock.now()
        unban_at = banned_at + duration
        try:
            record_id = await self.database.add_temp_ban(
                UserID(member.id),
                GuildID(member.guild.id),
                RoleID(role_id),
                unban_at,
                reason,
                banned_at=banned_at,
            )
        except Exception as exc:
            # The ban stands; only the automatic unban is lost
            return ExecutionResult.failed(kind, FailureKind.PERSISTENCE, f"Banned but failed to record unban time: {exc}")

        logger.info("[EXECUTOR] Temp-banned %s (%s) until %s - role %s", member, member.id, unban_at.isoformat(), role_id)
        return ExecutionResult.ok(kind, record_id=record_id, unban_at=unban_at)

    async def execute_ban(self, member: discord.Member, reason: str) -> ExecutionResult:
        kind = PunishmentKind.PERMANENT_BAN
        failure = self._ban_precondition(member, kind)
        if failure is not None:
            return failure

        await self._notify_ban(member, reason)
        try:
            await discord_utils.ban_member(member, reason, self.ban_purge_seconds)
        except discord.HTTPException as exc:
            return ExecutionResult.failed(kind, FailureKind.PLATFORM, f"Ban failed: {exc}")

        logger.info("[EXECUTOR] Permanently banned %s (%s): %s", member, member.id, reason)
        return ExecutionResult.ok(kind)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _ban_precondition(self, member: discord.Member, kind: PunishmentKind) -> ExecutionResult | None:
        if not discord_utils.bot_can_ban(member):
            return ExecutionResult.failed(kind, FailureKind.MISSING_PERMISSION, "Bot lacks Ban Members permission")
        if not discord_utils.is_punishable(member):
            return ExecutionResult.failed(kind, FailureKind.NOT_PUNISHABLE, f"Cannot ban {member}: role hierarchy")
        return None

    async def _notify_ban(self, member: discord.Member, reason: str) -> None:
        embed = create_ban_dm_embed(member.guild.name, reason, self.appeal_contact)
        if await discord_utils.send_dm(member, embed):
            logger.debug("[EXECUTOR] Sent ban DM to %s", member)
