"""
The honeypot state machine.

Gateway callbacks arrive as tagged events (:class:`RoleChanged`,
:class:`MessageCreated`, :class:`OnboardingCompleted`) and go through
:meth:`ModerationCoordinator.dispatch`. The coordinator decides whether a
trigger is punished now or deferred until the member finishes onboarding,
keeps the pending registry consistent, and reports every outcome to the
notification sink.

Transition table:

    RoleChanged, trigger role removed      -> cancel pending, deactivate tempbans
    RoleChanged, trigger role added
        member onboarding                  -> record intent, wait for completion
        member not onboarding              -> punish now
    MessageCreated in a trigger channel    -> delete message, permanent ban
    MessageCreated elsewhere               -> first-message onboarding signal
    OnboardingCompleted                    -> consume intent, punish from live roles
"""

from __future__ import annotations

import asyncio
import datetime
from typing import Awaitable, Callable, Iterable

import discord

from honeyguard.configuration.app_configuration import HoneypotSettings
from honeyguard.database.database import Database
from honeyguard.datatypes.discord_datatypes import ChannelID, GuildID, RoleID, UserID
from honeyguard.datatypes.event_datatypes import (
    MessageCreated,
    ModerationEvent,
    OnboardingCompleted,
    RoleChanged,
)
from honeyguard.datatypes.punishment_datatypes import (
    ExecutionResult,
    FailureKind,
    PendingPunishment,
    PunishmentKind,
    TriggerRole,
)
from honeyguard.moderation.moderation_executor import ModerationExecutor
from honeyguard.moderation.onboarding_tracker import OnboardingTracker
from honeyguard.moderation.pending_registry import PendingPunishmentRegistry
from honeyguard.services.notification_service import NotificationService
from honeyguard.util import discord_utils
from honeyguard.util.logger import get_logger

logger = get_logger("moderation_coordinator")

MemberFetcher = Callable[[GuildID, UserID], Awaitable[discord.Member | None]]


def most_severe(triggers: Iterable[TriggerRole]) -> TriggerRole | None:
    """Pick the trigger with the longest punishment; several grants collapse into one."""
    return max(triggers, key=lambda trigger: trigger.duration_days, default=None)


class ModerationCoordinator:
    """Routes moderation events to the registry, the tracker and the executor."""

    def __init__(
        self,
        settings: HoneypotSettings,
        registry: PendingPunishmentRegistry,
        tracker: OnboardingTracker,
        executor: ModerationExecutor,
        database: Database,
        notifier: NotificationService,
        *,
        fetch_member: MemberFetcher,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.tracker = tracker
        self.executor = executor
        self.database = database
        self.notifier = notifier
        self._fetch_member = fetch_member

        self.registry.set_expiry_callback(self._execute_pending)
        self.tracker.set_completion_callback(self.handle_onboarding_completed)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def dispatch(self, event: ModerationEvent) -> bool:
        """
        Handle one event. Never raises except for cancellation.

        Returns:
            bool: True if the event hit a honeypot trigger. For messages this
            also means no other handler should process it.
        """
        try:
            match event:
                case RoleChanged():
                    return await self.handle_role_changed(event)
                case MessageCreated():
                    return await self.handle_message_created(event)
                case OnboardingCompleted():
                    return await self.handle_onboarding_completed(event)
                case _:
                    logger.warning("[COORDINATOR] Ignoring unknown event %r", event)
                    return False
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("[COORDINATOR] Failed to handle %s", type(event).__name__)
            await self.notifier.log_error(str(exc), f"Handling {type(event).__name__}")
            return False

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def handle_member_joined(self, member: discord.Member) -> None:
        self.tracker.on_member_join(UserID(member.id), GuildID(member.guild.id))

    def handle_rules_gate_cleared(self, member: discord.Member) -> bool:
        """
        Forward the rules-gate signal to the tracker.

        A member with a recorded intent but no open record (swept, or joined
        before a restart) still gets a completion check.
        """
        user_id = UserID(member.id)
        guild_id = GuildID(member.guild.id)
        if self.tracker.on_rules_gate_cleared(user_id, guild_id):
            return True

        entry = self.registry.get(user_id, guild_id)
        if entry is None or (entry.handle is not None and entry.handle.started):
            return False
        logger.info("[COORDINATOR] %s cleared the rules gate untracked with a pending %s", member, entry.kind)
        return self.tracker.watch_completion(user_id, guild_id)

    def handle_member_left(self, user_id: UserID, guild_id: GuildID) -> None:
        """Drop in-memory state for a member who left; persisted tempbans stay."""
        forgotten = self.tracker.forget(user_id, guild_id)
        cancelled = self.registry.cancel(user_id, guild_id)
        if forgotten or cancelled:
            logger.debug("[COORDINATOR] %s left guild %s, cleared in-memory state", user_id, guild_id)

    # ------------------------------------------------------------------
    # Role changes
    # ------------------------------------------------------------------

    async def handle_role_changed(self, event: RoleChanged) -> bool:
        member = event.member
        user_id = UserID(member.id)
        guild_id = GuildID(member.guild.id)
        acted = False

        removed = sorted((r for r in event.removed if self.settings.is_trigger_role(r)), key=RoleID.to_int)
        if removed:
            await self._remediate(user_id, guild_id, removed)
            acted = True

        added = [self.settings.trigger_roles[r] for r in event.added if self.settings.is_trigger_role(r)]
        trigger = most_severe(added)
        if trigger is None:
            return acted

        # A completion check that is still settling re-reads roles, so it covers this grant
        if self.tracker.is_onboarding(user_id, guild_id) or self.tracker.has_pending_completion(user_id, guild_id):
            self._defer(member, trigger)
            return True

        logger.info("[COORDINATOR] %s received honeypot role %s", member, trigger.role_id)
        await self._punish(member, trigger.role_id, trigger.kind, trigger.duration)
        return True

    async def _remediate(self, user_id: UserID, guild_id: GuildID, role_ids: list[RoleID]) -> None:
        cancelled = self.registry.cancel(user_id, guild_id)
        deactivated = await self.database.deactivate_ban_by_user(user_id, guild_id)
        logger.info(
            "[COORDINATOR] Honeypot role(s) %s removed from %s: cancelled_pending=%s, deactivated_bans=%d",
            ", ".join(str(r) for r in role_ids), user_id, cancelled, deactivated,
        )

    def _defer(self, member: discord.Member, trigger: TriggerRole) -> None:
        fallback = self.settings.pending_fallback_seconds
        self.registry.schedule(
            UserID(member.id),
            GuildID(member.guild.id),
            trigger.role_id,
            trigger.kind,
            trigger.duration,
            fallback if fallback > 0 else None,
            member_joined_at=getattr(member, "joined_at", None),
        )
        logger.info(
            "[COORDINATOR] %s got honeypot role %s during onboarding - deferring %s until rules are accepted",
            member, trigger.role_id, trigger.kind,
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def handle_message_created(self, event: MessageCreated) -> bool:
        message = event.message
        author = message.author
        if author.bot or message.guild is None or not isinstance(author, discord.Member):
            return False

        user_id = UserID(author.id)
        guild_id = GuildID(message.guild.id)

        if not self.settings.is_trigger_channel(ChannelID(message.channel.id)):
            self.tracker.on_first_message(user_id, guild_id)
            return False

        logger.warning("[COORDINATOR] %s posted in honeypot channel #%s", author, message.channel)
        await discord_utils.safe_delete_message(message)

        # The ban supersedes any deferred role punishment
        self.tracker.forget(user_id, guild_id)
        self.registry.cancel(user_id, guild_id)

        reason = self.settings.reason("channel")
        result = await self.executor.execute_ban(author, reason)
        if result.success:
            await self.notifier.log_permanent_ban(author, reason)
        else:
            await self._report_failure(result, author)
        return True

    # ------------------------------------------------------------------
    # Onboarding completion
    # ------------------------------------------------------------------

    async def handle_onboarding_completed(self, event: OnboardingCompleted) -> bool:
        """Punish from the member's live roles once onboarding has finished."""
        member = event.member
        user_id = UserID(member.id)
        guild_id = GuildID(member.guild.id)

        # Completion replaces any recorded intent or fallback timer
        self.registry.cancel(user_id, guild_id)

        held = [self.settings.trigger_roles[r] for r in event.role_ids if self.settings.is_trigger_role(r)]
        held.sort(key=lambda trigger: trigger.role_id.to_int())
        await self.notifier.log_onboarding_complete(member, [trigger.role_id for trigger in held])

        trigger = most_severe(held)
        if trigger is None:
            logger.info("[COORDINATOR] %s completed onboarding without honeypot roles", member)
            return False

        logger.info("[COORDINATOR] %s completed onboarding holding honeypot role %s", member, trigger.role_id)
        await self._punish(member, trigger.role_id, trigger.kind, trigger.duration)
        return True

    async def _execute_pending(self, entry: PendingPunishment) -> None:
        """Registry timer callback: re-check live state, then punish."""
        member = await self._fetch_member(entry.guild_id, entry.user_id)
        # A completion check may have consumed the entry while the fetch was in flight
        if self.registry.get(entry.user_id, entry.guild_id) is not entry:
            logger.info("[COORDINATOR] Pending %s for %s was cancelled while it fired", entry.kind, entry.user_id)
            return
        if member is None:
            logger.info("[COORDINATOR] %s left guild %s before pending %s fired", entry.user_id, entry.guild_id, entry.kind)
            return

        if entry.role_id not in {RoleID(role.id) for role in member.roles}:
            logger.info("[COORDINATOR] %s no longer holds role %s, pending %s dropped", member, entry.role_id, entry.kind)
            return

        # The timer won; stop the onboarding check from punishing again
        self.tracker.forget(entry.user_id, entry.guild_id)
        await self._punish(member, entry.role_id, entry.kind, entry.duration)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _punish(
        self,
        member: discord.Member,
        role_id: RoleID,
        kind: PunishmentKind,
        duration: datetime.timedelta,
    ) -> ExecutionResult:
        if kind is PunishmentKind.TIMEOUT:
            reason = self.settings.reason("role_timeout")
            result = await self.executor.execute_timeout(member, role_id, duration, reason)
            if result.success:
                await self.notifier.log_timeout(member, role_id, duration, reason)
        else:
            reason = self.settings.reason("role_tempban")
            result = await self.executor.execute_temp_ban(member, role_id, duration, reason)
            if result.success:
                await self.notifier.log_temp_ban(member, role_id, duration, result.unban_at, reason)

        if not result.success:
            await self._report_failure(result, member)
        return result

    async def _report_failure(self, result: ExecutionResult, member: discord.abc.User) -> None:
        logger.error("[COORDINATOR] %s for %s (%s) failed: %s", result.kind, member, member.id, result.error)
        context = f"{result.kind} for {member} ({member.id})"
        if result.failure is FailureKind.PERSISTENCE:
            context += " - the ban was applied but will not be lifted automatically"
        await self.notifier.log_error(result.error or "Unknown error", context)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def shutdown(self) -> None:
        """Drop every pending timer and settle delay without executing them."""
        self.registry.cancel_all()
        self.tracker.stop()
