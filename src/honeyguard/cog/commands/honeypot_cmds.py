"""
Honeypot cog: operator commands for inspecting and undoing honeypot actions.

Slash commands:
- /tempbans: active temporary bans with their unban times
- /pending: punishments recorded but not yet executed
- /onboarding: members still inside the onboarding window
- /honeypot_unban: lift a ban and clear the honeypot state for a user
- /remove_honeypot_roles: strip trigger roles from a member

Every command requires the Ban Members permission and replies ephemerally.
"""

import discord
from discord import Option
from discord.ext import commands

from honeyguard.bot.runtime import HoneyguardRuntime
from honeyguard.datatypes.discord_datatypes import GuildID, UserID
from honeyguard.moderation.manual_unban import UnbanResult, parse_user_input
from honeyguard.util.discord_utils import format_duration, has_permissions
from honeyguard.util.logger import get_logger

logger = get_logger("honeypot_commands")

LIST_LIMIT = 20


def format_unban_result(user_id: UserID, result: UnbanResult) -> str:
    """Render a manual unban outcome as one line per step."""
    if not result.success:
        return f"❌ Unban of `{user_id}` failed: {result.error or 'unknown error'}"

    lines = [f"🔓 Unban completed for `{user_id}`"]
    lines.append("• Discord ban lifted" if result.was_actually_banned else "• User was not banned on Discord")
    if result.removed_from_database:
        lines.append("• Temporary ban record closed")
    if result.cancelled_pending:
        lines.append("• Pending punishment cancelled")
    if result.removed_roles:
        lines.append("• Removed roles: " + ", ".join(f"<@&{role_id}>" for role_id in result.removed_roles))
    return "\n".join(lines)


class HoneypotCommandsCog(commands.Cog):
    """Slash commands for moderators working with the honeypot."""

    def __init__(self, bot: discord.Bot, runtime: HoneyguardRuntime) -> None:
        self.bot = bot
        self.runtime = runtime
        logger.info("[HONEYPOT CMDS] Honeypot commands cog loaded")

    async def _check_permissions(self, ctx: discord.ApplicationContext) -> bool:
        if not ctx.guild_id:
            await ctx.respond("This command can only be used in a server.", ephemeral=True)
            return False
        if not has_permissions(ctx, ban_members=True):
            await ctx.respond("You need the Ban Members permission to use this command.", ephemeral=True)
            return False
        return True

    @commands.slash_command(name="tempbans", description="List active honeypot temporary bans in this server.")
    async def tempbans(self, ctx: discord.ApplicationContext) -> None:
        if not await self._check_permissions(ctx):
            return
        await ctx.defer(ephemeral=True)

        try:
            records = await self.runtime.database.get_active_temp_bans(GuildID(ctx.guild_id))
        except Exception as exc:
            logger.error("[HONEYPOT CMDS] Failed to list temp bans: %s", exc)
            await ctx.send_followup("Failed to read temporary bans from the database.")
            return

        if not records:
            await ctx.send_followup("No active temporary bans.")
            return

        lines = [
            f"• <@{record.user_id}> (`{record.user_id}`) - unban <t:{record.unban_at}:R>"
            for record in records[:LIST_LIMIT]
        ]
        if len(records) > LIST_LIMIT:
            lines.append(f"... and {len(records) - LIST_LIMIT} more")
        await ctx.send_followup(f"**Active temporary bans ({len(records)})**\n" + "\n".join(lines))

    @commands.slash_command(name="pending", description="List honeypot punishments that have not run yet.")
    async def pending(self, ctx: discord.ApplicationContext) -> None:
        if not await self._check_permissions(ctx):
            return

        entries = self.runtime.registry.list_by_guild(GuildID(ctx.guild_id))
        if not entries:
            await ctx.respond("No pending punishments.", ephemeral=True)
            return

        lines = []
        for entry in entries[:LIST_LIMIT]:
            when = (
                f"fires <t:{int(entry.scheduled_at.timestamp())}:R>"
                if entry.scheduled_at else "waits for onboarding"
            )
            lines.append(
                f"• <@{entry.user_id}> - {entry.kind} "
                f"({format_duration(int(entry.duration.total_seconds()))}) for <@&{entry.role_id}>, {when}"
            )
        await ctx.respond(f"**Pending punishments ({len(entries)})**\n" + "\n".join(lines), ephemeral=True)

    @commands.slash_command(name="onboarding", description="List members who have not finished onboarding.")
    async def onboarding(self, ctx: discord.ApplicationContext) -> None:
        if not await self._check_permissions(ctx):
            return

        records = self.runtime.tracker.list_records(GuildID(ctx.guild_id))
        if not records:
            await ctx.respond("Nobody is onboarding right now.", ephemeral=True)
            return

        lines = [
            f"• <@{record.user_id}> joined <t:{int(record.joined_at.timestamp())}:R>"
            + (" - rules accepted, checking roles" if record.rules_accepted else "")
            for record in records[:LIST_LIMIT]
        ]
        await ctx.respond(f"**Onboarding ({len(records)})**\n" + "\n".join(lines), ephemeral=True)

    @commands.slash_command(name="honeypot_unban", description="Unban a user and clear their honeypot state.")
    async def honeypot_unban(
        self,
        ctx: discord.ApplicationContext,
        user: Option(str, "User ID or mention to unban.", required=True),  # type: ignore
        reason: Option(str, "Reason for the unban.", default=None),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return
        await ctx.defer(ephemeral=True)

        try:
            user_id = parse_user_input(user)
        except ValueError as exc:
            await ctx.send_followup(str(exc))
            return

        moderator_id = UserID(ctx.user.id)
        result = await self.runtime.manual_unban.unban_user(ctx.guild, user_id, moderator_id, reason)
        if result.success:
            await self.runtime.notifier.log_unban(
                user_id,
                reason or "Manual unban by moderator",
                automatic=False,
                moderator_id=moderator_id,
            )
        await ctx.send_followup(format_unban_result(user_id, result))

    @commands.slash_command(name="remove_honeypot_roles", description="Remove all honeypot roles from a member.")
    async def remove_honeypot_roles(
        self,
        ctx: discord.ApplicationContext,
        member: Option(discord.Member, "Member to clean up.", required=True),  # type: ignore
    ) -> None:
        if not await self._check_permissions(ctx):
            return
        await ctx.defer(ephemeral=True)

        removed = await self.runtime.manual_unban.remove_trigger_roles(member)
        if not removed:
            await ctx.send_followup(f"{member.mention} has no honeypot roles.")
            return

        await self.runtime.notifier.log_role_removal(member, removed, UserID(ctx.user.id))
        roles = ", ".join(f"<@&{role_id}>" for role_id in removed)
        await ctx.send_followup(f"Removed {roles} from {member.mention}.")


def setup(bot: discord.Bot, runtime: HoneyguardRuntime) -> None:
    """Register the HoneypotCommandsCog with the bot."""
    bot.add_cog(HoneypotCommandsCog(bot, runtime))
