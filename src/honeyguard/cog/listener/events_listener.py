"""Event listener Cog for Honeyguard.

Handles bot lifecycle events: starts the runtime services once the gateway
is ready and stops them when the cog is unloaded.
"""

import discord
from discord.ext import commands

from honeyguard.bot.runtime import HoneyguardRuntime
from honeyguard.util.logger import get_logger

logger = get_logger("events_listener")


class EventsListenerCog(commands.Cog):
    """Handles Discord bot lifecycle events."""

    def __init__(self, bot: discord.Bot, runtime: HoneyguardRuntime) -> None:
        self.bot = bot
        self.runtime = runtime
        logger.info("[EVENTS LISTENER] Events listener cog loaded")

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self) -> None:
        if not self.bot.user:
            logger.warning("[EVENTS LISTENER] Bot partially connected - user info not yet available.")
            return

        await self.bot.change_presence(
            status=discord.Status.online,
            activity=discord.Activity(type=discord.ActivityType.watching, name="the honeypots"),
        )
        logger.info("Bot connected as %s (ID: %s)", self.bot.user, self.bot.user.id)

        settings = self.runtime.settings
        if not settings.trigger_roles:
            logger.warning("[EVENTS LISTENER] No honeypot roles configured")
        if not settings.trigger_channels:
            logger.warning("[EVENTS LISTENER] No honeypot channels configured")

        await self.runtime.start()


def setup(bot: discord.Bot, runtime: HoneyguardRuntime) -> None:
    """Register the EventsListenerCog with the bot."""
    bot.add_cog(EventsListenerCog(bot, runtime))
