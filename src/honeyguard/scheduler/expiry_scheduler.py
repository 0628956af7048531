"""Periodic sweep that lifts expired temporary bans.

Every tick reads the active ``temp_bans`` rows whose unban time has passed,
asks Discord to unban each user, and marks the row inactive once the unban
was attempted. A persistence error aborts the current tick only; the next
tick starts again from the database.
"""

from __future__ import annotations

import asyncio

import discord

from honeyguard.database.database import Database
from honeyguard.repositories.temporary_ban_repo import TempBanRecord
from honeyguard.services.notification_service import NotificationService
from honeyguard.util import discord_utils
from honeyguard.util.clock import Clock, SYSTEM_CLOCK
from honeyguard.util.logger import get_logger

logger = get_logger("expiry_scheduler")

EXPIRY_INTERVAL_SECONDS = 60.0
AUTO_UNBAN_REASON = "Honeypot temporary ban expired"


class ExpiryScheduler:
    """
    Background task lifting temporary bans once ``unban_at`` has passed.

    Args:
        bot: Client used to resolve guilds.
        database: Store holding the temporary ban records.
        notifier: Sink for the automatic unban log entries.
        interval_seconds: Seconds between two sweeps.
    """

    def __init__(
        self,
        bot: discord.Client,
        database: Database,
        notifier: NotificationService,
        *,
        clock: Clock = SYSTEM_CLOCK,
        interval_seconds: float = EXPIRY_INTERVAL_SECONDS,
    ) -> None:
        self.bot = bot
        self.database = database
        self.notifier = notifier
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background sweep if not already running."""
        if self.running:
            logger.warning("[EXPIRY] Sweep already running")
            return
        logger.info("[EXPIRY] Starting expiry sweep (interval=%.1fs)", self.interval_seconds)
        self._task = asyncio.create_task(self._run_loop(), name="honeyguard-expiry-sweep")

    async def stop(self) -> None:
        """Cancel the sweep and wait for it to finish. Safe to call repeatedly."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("[EXPIRY] Expiry sweep stopped")

    async def _run_loop(self) -> None:
        try:
            while True:
                await self.tick()
                await self._clock.sleep(self.interval_seconds)
        except asyncio.CancelledError:
            logger.debug("[EXPIRY] Sweep cancelled")
            raise

    async def tick(self) -> int:
        """One sweep with the outer error boundary. Returns the number of rows closed."""
        try:
            return await self.run_once()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("[EXPIRY] Sweep aborted, retrying next tick: %s", exc)
            return 0

    async def run_once(self) -> int:
        """
        Process every expired record once.

        Persistence errors propagate so the caller can abort the tick.

        Returns:
            int: Number of records marked inactive.
        """
        expired = await self.database.get_expired_bans(self._clock.now())
        if not expired:
            return 0

        logger.info("[EXPIRY] Found %d expired temporary ban(s)", len(expired))
        closed = 0
        for record in expired:
            if await self._lift(record):
                closed += 1
        return closed

    async def _lift(self, record: TempBanRecord) -> bool:
        guild = self.bot.get_guild(record.guild_id.to_int())
        if guild is None:
            # Nothing was attempted; keep the row so a later tick can retry
            logger.warning("[EXPIRY] Guild %s not available, skipping ban #%d", record.guild_id, record.id)
            return False

        try:
            was_banned = await discord_utils.unban_user(guild, record.user_id, AUTO_UNBAN_REASON)
        except discord.HTTPException as exc:
            was_banned = False
            logger.error("[EXPIRY] Unban of %s in %s failed, closing ban #%d anyway: %s", record.user_id, guild.name, record.id, exc)
        else:
            if was_banned:
                logger.info("[EXPIRY] Unbanned %s from %s (ban #%d)", record.user_id, guild.name, record.id)
            else:
                logger.info("[EXPIRY] %s was no longer banned in %s (ban #%d)", record.user_id, guild.name, record.id)

        await self.database.deactivate_ban(record.id)

        if was_banned:
            await self.notifier.log_unban(record.user_id, AUTO_UNBAN_REASON, automatic=True)
        return True
