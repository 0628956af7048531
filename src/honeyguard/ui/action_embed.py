"""
Embed creation utilities for punishment DMs and log-channel entries.

Every builder is synchronous and side-effect free; sending is left to the
notification service and the moderation executor.
"""

import datetime
from typing import Iterable

import discord

from honeyguard.datatypes.discord_datatypes import RoleID, UserID
from honeyguard.util import discord_utils

# Brand colours
DM_COLOR = discord.Color(0xFFD6E4)
TIMEOUT_COLOR = discord.Color(0xFFA500)
TEMPBAN_COLOR = discord.Color(0xFF4444)
PERMANENT_BAN_COLOR = discord.Color(0x8B0000)
UNBAN_COLOR = discord.Color(0x00FF00)
ROLE_REMOVAL_COLOR = discord.Color(0x00AAFF)
ERROR_COLOR = discord.Color(0xFF0000)

# Embed field values are capped by Discord
FIELD_LIMIT = 1024


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _user_field(member: discord.abc.User) -> str:
    return f"{member} ({member.id})"


def _role_mentions(role_ids: Iterable[RoleID]) -> str:
    return ", ".join(f"<@&{role_id}>" for role_id in role_ids) or "None"


def _with_avatar(embed: discord.Embed, user: discord.abc.User) -> discord.Embed:
    avatar = getattr(user, "display_avatar", None)
    if avatar is not None:
        embed.set_thumbnail(url=avatar.url)
    return embed


def create_ban_dm_embed(guild_name: str, reason: str, appeal_contact: str) -> discord.Embed:
    """The direct message sent to a member just before they are banned."""
    embed = discord.Embed(
        title=f"You were banned from {guild_name}",
        description=(
            "If you feel this ban was in error, please send an email to "
            f"**{appeal_contact}** to appeal your ban"
        ),
        color=DM_COLOR,
        timestamp=_now(),
    )
    embed.add_field(name="Reason:", value=reason, inline=False)
    return embed


def create_timeout_log_embed(
    member: discord.Member,
    role_id: RoleID,
    duration: datetime.timedelta,
    reason: str,
) -> discord.Embed:
    embed = discord.Embed(title="⏱️ User Timed Out (Honeypot)", color=TIMEOUT_COLOR, timestamp=_now())
    embed.add_field(name="User", value=_user_field(member), inline=True)
    embed.add_field(name="Duration", value=discord_utils.format_duration(int(duration.total_seconds())), inline=True)
    embed.add_field(name="Role", value=f"<@&{role_id}>", inline=True)
    embed.add_field(name="Reason", value=reason, inline=False)
    embed.set_footer(text="Honeypot Timeout")
    return _with_avatar(embed, member)


def create_tempban_log_embed(
    member: discord.Member,
    role_id: RoleID,
    duration: datetime.timedelta,
    unban_at: datetime.datetime,
    reason: str,
) -> discord.Embed:
    embed = discord.Embed(title="🔨 User Temporarily Banned (Honeypot)", color=TEMPBAN_COLOR, timestamp=_now())
    embed.add_field(name="User", value=_user_field(member), inline=True)
    embed.add_field(name="Duration", value=discord_utils.format_duration(int(duration.total_seconds())), inline=True)
    embed.add_field(name="Unban Date", value=f"<t:{int(unban_at.timestamp())}:F>", inline=True)
    embed.add_field(name="Role", value=f"<@&{role_id}>", inline=True)
    embed.add_field(name="Reason", value=reason, inline=False)
    embed.set_footer(text="Honeypot Temp Ban")
    return _with_avatar(embed, member)


def create_permanent_ban_log_embed(member: discord.Member, reason: str) -> discord.Embed:
    embed = discord.Embed(title="🔨 User Permanently Banned (Honeypot)", color=PERMANENT_BAN_COLOR, timestamp=_now())
    embed.add_field(name="User", value=_user_field(member), inline=True)
    embed.add_field(name="Type", value="Permanent Ban", inline=True)
    embed.add_field(name="Trigger", value="Honeypot Channel Message", inline=True)
    embed.add_field(name="Reason", value=reason, inline=False)
    embed.set_footer(text="Honeypot Permanent Ban")
    return _with_avatar(embed, member)


def create_unban_log_embed(
    user_label: str,
    user_id: UserID,
    reason: str,
    *,
    automatic: bool,
    moderator_label: str | None = None,
) -> discord.Embed:
    embed = discord.Embed(
        title="🔓 Automatic Unban" if automatic else "🔓 Manual Unban",
        color=UNBAN_COLOR,
        timestamp=_now(),
    )
    embed.add_field(name="User", value=f"{user_label} ({user_id})", inline=True)
    embed.add_field(name="Type", value="Automatic" if automatic else "Manual", inline=True)
    embed.add_field(name="Reason", value=reason, inline=False)
    if not automatic and moderator_label:
        embed.add_field(name="Moderator", value=moderator_label, inline=True)
    embed.set_footer(text="Honeypot Auto Unban" if automatic else "Honeypot Manual Unban")
    return embed


def create_role_removal_log_embed(
    member: discord.Member,
    role_ids: Iterable[RoleID],
    moderator_label: str,
) -> discord.Embed:
    embed = discord.Embed(title="➖ Honeypot Roles Removed", color=ROLE_REMOVAL_COLOR, timestamp=_now())
    embed.add_field(name="User", value=_user_field(member), inline=True)
    embed.add_field(name="Moderator", value=moderator_label, inline=True)
    embed.add_field(name="Roles Removed", value=_role_mentions(role_ids), inline=False)
    embed.set_footer(text="Honeypot Role Removal")
    return _with_avatar(embed, member)


def create_onboarding_log_embed(member: discord.Member, trigger_role_ids: list[RoleID]) -> discord.Embed:
    had_roles = bool(trigger_role_ids)
    embed = discord.Embed(
        title="🎯 Onboarding Completed",
        color=TEMPBAN_COLOR if had_roles else UNBAN_COLOR,
        timestamp=_now(),
    )
    embed.add_field(name="User", value=_user_field(member), inline=True)
    embed.add_field(name="Status", value="🚨 Had Honeypot Roles" if had_roles else "✅ Clean", inline=True)
    if had_roles:
        embed.add_field(name="Honeypot Roles Found", value=_role_mentions(trigger_role_ids), inline=False)
    embed.set_footer(text="Honeypot Onboarding")
    return _with_avatar(embed, member)


def create_error_log_embed(error: str, context: str | None = None) -> discord.Embed:
    embed = discord.Embed(title="❌ Bot Error", color=ERROR_COLOR, timestamp=_now())
    embed.add_field(name="Error", value=error[:FIELD_LIMIT] or "Unknown error", inline=False)
    if context:
        embed.add_field(name="Context", value=context[:FIELD_LIMIT], inline=False)
    embed.set_footer(text="Honeypot Error")
    return embed
