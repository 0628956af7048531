"""
discord_utils.py
================

Low-level Discord helpers for Honeyguard.

Stateless wrappers around the platform's moderation primitives: permission
and hierarchy predicates, timeout/ban/unban calls, best-effort message
deletion and DMs, and member lookups. Higher-level services decide what to
do; these functions only talk to Discord.
"""

import datetime

import discord

from honeyguard.datatypes.discord_datatypes import GuildID, UserID
from honeyguard.util.logger import get_logger

logger = get_logger("discord_utils")


# ==========================================
# Permission predicates
# ==========================================

def _bot_member(member: discord.Member) -> discord.Member | None:
    return getattr(member.guild, "me", None)


def is_punishable(member: discord.Member) -> bool:
    """
    Whether the bot outranks ``member`` in the role hierarchy.

    The guild owner is never punishable, and neither is anyone whose top
    role is at or above the bot's.
    """
    me = _bot_member(member)
    if me is None:
        return False
    if member.guild.owner_id == member.id or member.id == me.id:
        return False
    return member.top_role < me.top_role


def bot_can_timeout(member: discord.Member) -> bool:
    """Whether the bot holds Moderate Members in the member's guild."""
    me = _bot_member(member)
    return me is not None and me.guild_permissions.moderate_members


def bot_can_ban(member: discord.Member) -> bool:
    """Whether the bot holds Ban Members in the member's guild."""
    me = _bot_member(member)
    return me is not None and me.guild_permissions.ban_members


def has_permissions(application_context: discord.ApplicationContext, **required_permissions) -> bool:
    """
    Check if the command issuer has all specified permissions in the guild.

    Args:
        application_context (discord.ApplicationContext): The command context.
        **required_permissions: Permission flags to check.

    Returns:
        bool: True if all permissions are present, False otherwise.
    """
    if not isinstance(application_context.author, discord.Member):
        return False
    return all(getattr(application_context.author.guild_permissions, permission_name, False) for permission_name in required_permissions)


# ==========================================
# Moderation primitives
# ==========================================

async def timeout_member(member: discord.Member, duration: datetime.timedelta, reason: str) -> None:
    until = discord.utils.utcnow() + duration
    await member.timeout(until, reason=reason)


async def ban_member(member: discord.Member, reason: str, delete_message_seconds: int) -> None:
    await member.ban(reason=reason, delete_message_seconds=delete_message_seconds)


async def unban_user(guild: discord.Guild, user_id: UserID, reason: str) -> bool:
    """
    Lift a ban.

    Returns:
        bool: False when the user was not banned; other platform errors propagate.
    """
    try:
        await guild.unban(discord.Object(id=UserID(user_id).to_int()), reason=reason)
    except discord.NotFound:
        return False
    return True


# ==========================================
# Best-effort helpers
# ==========================================

async def safe_delete_message(message: discord.Message) -> bool:
    """
    Attempt to delete a Discord message, suppressing recoverable errors.

    Returns:
        bool: True if deletion succeeded, False otherwise.
    """
    try:
        await message.delete()
        return True
    except discord.NotFound:
        return False
    except discord.Forbidden:
        logger.warning("No permission to delete message %s", message.id)
    except Exception as exc:
        logger.error("Error deleting message %s: %s", message.id, exc)
    return False


async def send_dm(user: discord.abc.Messageable, embed: discord.Embed) -> bool:
    """Send an embed by DM; closed DMs or any other failure return False."""
    try:
        await user.send(embed=embed)
        return True
    except discord.Forbidden:
        logger.debug("Cannot send DM to user %s: DMs disabled", getattr(user, "id", "?"))
    except Exception as exc:
        logger.warning("Error sending DM to %s: %s", getattr(user, "id", "?"), exc)
    return False


async def fetch_member(bot: discord.Client, guild_id: GuildID, user_id: UserID) -> discord.Member | None:
    """
    Fetch a member's live state from the API (not the cache).

    Returns:
        discord.Member | None: None if the guild is unknown or the user left.
    """
    guild = bot.get_guild(GuildID(guild_id).to_int())
    if guild is None:
        logger.warning("Guild %s not found while fetching member %s", guild_id, user_id)
        return None
    try:
        return await guild.fetch_member(UserID(user_id).to_int())
    except discord.NotFound:
        return None


def format_duration(seconds: int) -> str:
    """Convert a duration in seconds to a human-readable string."""
    if seconds < 60:
        return f"{seconds} secs"
    elif seconds < 3600:
        return f"{seconds // 60} mins"
    elif seconds < 86400:
        hours = seconds // 3600
        return f"{hours} hour{'s' if hours != 1 else ''}"
    else:
        days = seconds // 86400
        return f"{days} day{'s' if days != 1 else ''}"
