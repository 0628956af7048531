"""
Notification sink: human-readable moderation log entries in a Discord channel.

Every method is fire-and-forget. When no log channel is configured, or it
cannot be fetched, the methods return immediately; send failures are logged
and never propagate to the caller.
"""

from __future__ import annotations

import datetime
from typing import Iterable

import discord

from honeyguard.datatypes.discord_datatypes import RoleID, UserID
from honeyguard.ui import action_embed
from honeyguard.util.logger import get_logger

logger = get_logger("notification_service")


class NotificationService:
    """Posts log embeds to the configured moderation log channel."""

    def __init__(self, bot: discord.Client, log_channel_id: int | None) -> None:
        self.bot = bot
        self.log_channel_id = log_channel_id
        self.log_channel: discord.abc.Messageable | None = None

    @property
    def enabled(self) -> bool:
        return self.log_channel is not None

    async def initialize(self) -> None:
        """Resolve the log channel. Logging stays disabled if that fails."""
        if not self.log_channel_id:
            logger.info("[NOTIFICATIONS] No log channel configured, Discord logging disabled")
            return
        try:
            channel = self.bot.get_channel(self.log_channel_id) or await self.bot.fetch_channel(self.log_channel_id)
        except Exception as exc:
            logger.error("[NOTIFICATIONS] Failed to fetch log channel %s: %s", self.log_channel_id, exc)
            return

        if isinstance(channel, (discord.TextChannel, discord.Thread)):
            self.log_channel = channel
            logger.info("[NOTIFICATIONS] Discord logging enabled in #%s", channel.name)
        else:
            logger.warning("[NOTIFICATIONS] Log channel %s is not a text channel", self.log_channel_id)

    async def set_log_channel(self, channel: discord.abc.Messageable) -> None:
        self.log_channel = channel

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    async def log_timeout(self, member: discord.Member, role_id: RoleID, duration: datetime.timedelta, reason: str) -> None:
        await self._send(action_embed.create_timeout_log_embed(member, role_id, duration, reason), "timeout")

    async def log_temp_ban(
        self,
        member: discord.Member,
        role_id: RoleID,
        duration: datetime.timedelta,
        unban_at: datetime.datetime,
        reason: str,
    ) -> None:
        await self._send(action_embed.create_tempban_log_embed(member, role_id, duration, unban_at, reason), "temp ban")

    async def log_permanent_ban(self, member: discord.Member, reason: str) -> None:
        await self._send(action_embed.create_permanent_ban_log_embed(member, reason), "permanent ban")

    async def log_unban(
        self,
        user_id: UserID,
        reason: str,
        *,
        automatic: bool,
        moderator_id: UserID | None = None,
    ) -> None:
        if not self.enabled:
            return
        user_label = await self._describe_user(user_id, "Unknown User")
        moderator_label = None
        if not automatic and moderator_id is not None:
            moderator_label = f"{await self._describe_user(moderator_id, 'Unknown Moderator')} ({moderator_id})"
        embed = action_embed.create_unban_log_embed(
            user_label, user_id, reason, automatic=automatic, moderator_label=moderator_label,
        )
        await self._send(embed, "unban")

    async def log_role_removal(self, member: discord.Member, role_ids: Iterable[RoleID], moderator_id: UserID) -> None:
        if not self.enabled:
            return
        moderator_label = f"{await self._describe_user(moderator_id, 'Unknown Moderator')} ({moderator_id})"
        await self._send(action_embed.create_role_removal_log_embed(member, role_ids, moderator_label), "role removal")

    async def log_onboarding_complete(self, member: discord.Member, trigger_role_ids: list[RoleID]) -> None:
        await self._send(action_embed.create_onboarding_log_embed(member, trigger_role_ids), "onboarding")

    async def log_error(self, error: str, context: str | None = None) -> None:
        await self._send(action_embed.create_error_log_embed(error, context), "error")

    async def log_startup(self, summary: str) -> None:
        if not self.enabled:
            return
        try:
            await self.log_channel.send(summary)
        except Exception as exc:
            logger.error("[NOTIFICATIONS] Failed to send startup message: %s", exc)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _send(self, embed: discord.Embed, label: str) -> None:
        if self.log_channel is None:
            return
        try:
            await self.log_channel.send(embed=embed)
        except Exception as exc:
            logger.error("[NOTIFICATIONS] Failed to send %s log: %s", label, exc)

    async def _describe_user(self, user_id: UserID, fallback: str) -> str:
        try:
            user = await self.bot.fetch_user(UserID(user_id).to_int())
            return str(user)
        except Exception:
            return fallback
