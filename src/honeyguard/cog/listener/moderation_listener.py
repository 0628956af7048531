"""Gateway listener translating member and message events for the coordinator.

The cog holds no state of its own: every callback is turned into a tagged
event or a tracker signal and handed to the :class:`ModerationCoordinator`.
"""

import discord
from discord.ext import commands

from honeyguard.bot.runtime import HoneyguardRuntime
from honeyguard.datatypes.discord_datatypes import GuildID, UserID
from honeyguard.datatypes.event_datatypes import MessageCreated, RoleChanged
from honeyguard.util.logger import get_logger

logger = get_logger("moderation_listener")


def rules_gate_cleared(before: discord.Member, after: discord.Member) -> bool:
    """True when the member just passed the guild's membership screening."""
    return bool(getattr(before, "pending", False)) and not getattr(after, "pending", False)


class ModerationListenerCog(commands.Cog):
    """Feeds member joins, updates, leaves and messages into the honeypot core."""

    def __init__(self, bot: discord.Bot, runtime: HoneyguardRuntime) -> None:
        self.bot = bot
        self.coordinator = runtime.coordinator
        logger.info("[MODERATION LISTENER] Moderation listener cog loaded")

    @commands.Cog.listener(name="on_member_join")
    async def on_member_join(self, member: discord.Member) -> None:
        if member.bot:
            return
        self.coordinator.handle_member_joined(member)

    @commands.Cog.listener(name="on_member_update")
    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        if after.bot:
            return

        # Roles first: a trigger granted in the same update as the gate
        # clearing must be seen while the member still counts as onboarding.
        if before.roles != after.roles:
            await self.coordinator.dispatch(RoleChanged.from_members(before, after))

        if rules_gate_cleared(before, after):
            self.coordinator.handle_rules_gate_cleared(after)

    @commands.Cog.listener(name="on_member_remove")
    async def on_member_remove(self, member: discord.Member) -> None:
        self.coordinator.handle_member_left(UserID(member.id), GuildID(member.guild.id))

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is None:
            return
        await self.coordinator.dispatch(MessageCreated(message))


def setup(bot: discord.Bot, runtime: HoneyguardRuntime) -> None:
    """Register the ModerationListenerCog with the bot."""
    bot.add_cog(ModerationListenerCog(bot, runtime))
