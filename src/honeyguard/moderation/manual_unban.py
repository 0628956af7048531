"""
Operator-driven unban and remediation.

A manual unban lifts the platform ban and also clears everything the
honeypot core still holds for that member: the pending punishment, the
active temporary-ban rows and, if the member is still around, the trigger
roles themselves.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List

import discord

from honeyguard.configuration.app_configuration import HoneypotSettings
from honeyguard.database.database import Database
from honeyguard.datatypes.discord_datatypes import GuildID, RoleID, UserID
from honeyguard.moderation.pending_registry import PendingPunishmentRegistry
from honeyguard.util import discord_utils
from honeyguard.util.logger import get_logger

logger = get_logger("manual_unban")

DEFAULT_UNBAN_REASON = "Manual unban by moderator"
ROLE_REMOVAL_REASON = "Manual honeypot role removal"

_MENTION_PATTERN = re.compile(r"^<@!?(\d+)>$")
_SNOWFLAKE_PATTERN = re.compile(r"^\d{17,20}$")


@dataclass
class UnbanResult:
    """Per-step outcome of a manual unban, reported back to the operator."""

    success: bool = False
    was_actually_banned: bool = False
    removed_from_database: bool = False
    cancelled_pending: bool = False
    removed_roles: List[RoleID] = field(default_factory=list)
    error: str | None = None


def parse_user_input(raw: str) -> UserID:
    """
    Accept a raw id or a user mention and return the id.

    Raises:
        ValueError: If the input is neither.
    """
    raw = raw.strip()
    match = _MENTION_PATTERN.match(raw)
    candidate = match.group(1) if match else raw
    if not _SNOWFLAKE_PATTERN.match(candidate):
        raise ValueError("Invalid user ID or mention format")
    return UserID(candidate)


class ManualUnbanService:
    """Lifts bans and removes trigger roles on behalf of a moderator."""

    def __init__(
        self,
        settings: HoneypotSettings,
        database: Database,
        registry: PendingPunishmentRegistry,
    ) -> None:
        self.settings = settings
        self.database = database
        self.registry = registry

    async def unban_user(
        self,
        guild: discord.Guild,
        user_id: UserID,
        moderator_id: UserID,
        reason: str | None = None,
    ) -> UnbanResult:
        """
        Unban ``user_id`` and clear the honeypot state held for them.

        A user who was not banned is not an error; any other platform error
        stops the process before the database is touched.
        """
        result = UnbanResult()
        user_id = UserID(user_id)
        guild_id = GuildID(guild.id)

        try:
            result.was_actually_banned = await discord_utils.unban_user(guild, user_id, reason or DEFAULT_UNBAN_REASON)
        except discord.HTTPException as exc:
            logger.error("[MANUAL UNBAN] Failed to unban %s in %s: %s", user_id, guild.name, exc)
            result.error = f"Failed to unban from Discord: {exc}"
            return result

        if not result.was_actually_banned:
            logger.info("[MANUAL UNBAN] %s was not banned in %s", user_id, guild.name)

        result.cancelled_pending = self.registry.cancel(user_id, guild_id)

        try:
            removed = await self.database.deactivate_ban_by_user(user_id, guild_id)
        except Exception as exc:
            logger.error("[MANUAL UNBAN] Failed to deactivate temp bans for %s: %s", user_id, exc)
            result.error = f"Failed to update the temporary ban records: {exc}"
            return result
        result.removed_from_database = removed > 0

        try:
            member = await guild.fetch_member(user_id.to_int())
        except discord.NotFound:
            member = None
        except discord.HTTPException as exc:
            logger.warning("[MANUAL UNBAN] Could not fetch %s to remove roles: %s", user_id, exc)
            member = None

        if member is not None:
            result.removed_roles = await self.remove_trigger_roles(member)

        result.success = True
        logger.info("[MANUAL UNBAN] Completed for %s by moderator %s: %s", user_id, moderator_id, result)
        return result

    async def remove_trigger_roles(self, member: discord.Member) -> List[RoleID]:
        """
        Remove every configured trigger role the member holds.

        Individual role failures are logged and skipped. A pending punishment
        is cancelled when at least one role was removed.
        """
        removed: List[RoleID] = []
        for role in list(member.roles):
            role_id = RoleID(role.id)
            if not self.settings.is_trigger_role(role_id):
                continue
            try:
                await member.remove_roles(role, reason=ROLE_REMOVAL_REASON)
            except discord.HTTPException as exc:
                logger.error("[MANUAL UNBAN] Failed to remove role %s from %s: %s", role_id, member, exc)
                continue
            removed.append(role_id)
            logger.info("[MANUAL UNBAN] Removed honeypot role %s from %s", role.name, member)

        if removed:
            self.registry.cancel(UserID(member.id), GuildID(member.guild.id))
        return removed
