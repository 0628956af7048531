"""
Service wiring for a running Honeyguard bot.

:class:`HoneyguardRuntime` owns every long-lived service and is passed to
the cogs by constructor injection. ``start`` runs once the gateway is ready;
``shutdown`` tears things down in dependency order: in-memory timers
first, then the expiry sweep, then the database, then the Discord
connection.
"""

from __future__ import annotations

import discord

from honeyguard.configuration.app_configuration import HoneypotSettings
from honeyguard.database.database import Database
from honeyguard.datatypes.discord_datatypes import GuildID, UserID
from honeyguard.moderation.manual_unban import ManualUnbanService
from honeyguard.moderation.moderation_coordinator import ModerationCoordinator
from honeyguard.moderation.moderation_executor import ModerationExecutor
from honeyguard.moderation.onboarding_tracker import OnboardingTracker
from honeyguard.moderation.pending_registry import PendingPunishmentRegistry
from honeyguard.scheduler.expiry_scheduler import ExpiryScheduler
from honeyguard.services.notification_service import NotificationService
from honeyguard.util import discord_utils
from honeyguard.util.clock import Clock, SYSTEM_CLOCK
from honeyguard.util.logger import get_logger

logger = get_logger("runtime")


class HoneyguardRuntime:
    """Container for the honeypot services with an explicit lifecycle."""

    def __init__(
        self,
        bot: discord.Client,
        settings: HoneypotSettings,
        database: Database,
        *,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        self.bot = bot
        self.settings = settings
        self.database = database
        self.clock = clock

        self.notifier = NotificationService(bot, settings.log_channel_id)
        self.registry = PendingPunishmentRegistry(clock=clock)
        self.tracker = OnboardingTracker(
            self.fetch_member,
            clock=clock,
            rules_gate_settle_seconds=settings.rules_gate_settle_seconds,
            first_message_settle_seconds=settings.first_message_settle_seconds,
            sweep_interval_seconds=settings.onboarding_sweep_seconds,
            max_record_age_seconds=settings.onboarding_max_age_seconds,
        )
        self.executor = ModerationExecutor(
            database,
            appeal_contact=settings.appeal_contact,
            ban_purge_seconds=settings.ban_purge_seconds,
            clock=clock,
        )
        self.coordinator = ModerationCoordinator(
            settings,
            self.registry,
            self.tracker,
            self.executor,
            database,
            self.notifier,
            fetch_member=self.fetch_member,
        )
        self.manual_unban = ManualUnbanService(settings, database, self.registry)
        self.expiry = ExpiryScheduler(
            bot,
            database,
            self.notifier,
            clock=clock,
            interval_seconds=settings.expiry_interval_seconds,
        )

        self._started = False
        self._shut_down = False

    async def fetch_member(self, guild_id: GuildID, user_id: UserID) -> discord.Member | None:
        return await discord_utils.fetch_member(self.bot, guild_id, user_id)

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Start the background work. ``on_ready`` fires on every reconnect, so repeats are ignored."""
        if self._started:
            return
        self._started = True

        await self.notifier.initialize()
        self.tracker.start()
        self.expiry.start()

        summary = (
            f"🍯 Honeypot bot online: watching {len(self.settings.trigger_roles)} role(s) "
            f"and {len(self.settings.trigger_channels)} channel(s)"
        )
        logger.info("[RUNTIME] %s", summary)
        await self.notifier.log_startup(summary)

    async def shutdown(self) -> None:
        """Stop every service in dependency order. Safe to call more than once."""
        if self._shut_down:
            return
        self._shut_down = True

        self.coordinator.shutdown()

        try:
            await self.expiry.stop()
        except Exception:
            logger.exception("[RUNTIME] Error while stopping the expiry sweep")

        try:
            await self.database.shutdown()
        except Exception:
            logger.exception("[RUNTIME] Error while closing the database")

        if not self.bot.is_closed():
            try:
                await self.bot.close()
                logger.info("[RUNTIME] Discord bot connection closed.")
            except Exception:
                logger.exception("[RUNTIME] Error while closing the Discord bot")

        logger.info("[RUNTIME] Shutdown complete.")
