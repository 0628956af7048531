"""
Punishment types and in-memory records for the honeypot moderation core.

This module defines the punishment kinds, the immutable trigger
configuration, the pending/onboarding records held by the in-memory
services, and the ``ExecutionResult`` returned by every execution function.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from honeyguard.datatypes.discord_datatypes import ChannelID, GuildID, RoleID, UserID

if TYPE_CHECKING:
    from honeyguard.scheduler.scheduled_task import ScheduledTask


# Longest timeout the platform accepts
MAX_TIMEOUT_DAYS = 28


class PunishmentKind(Enum):
    """Enumeration of punishments the core can apply."""

    TIMEOUT = "timeout"
    TEMPORARY_BAN = "tempban"
    PERMANENT_BAN = "ban"

    def __str__(self) -> str:
        return self.value


class FailureKind(Enum):
    """Why an execution function did not apply its punishment."""

    MISSING_PERMISSION = "missing_permission"
    NOT_PUNISHABLE = "not_punishable"
    PLATFORM = "platform"
    PERSISTENCE = "persistence"


@dataclass(frozen=True, slots=True)
class TriggerRole:
    """A honeypot role and the punishment length attached to it."""

    role_id: RoleID
    duration_days: int

    @property
    def duration(self) -> datetime.timedelta:
        return datetime.timedelta(days=self.duration_days)

    @property
    def kind(self) -> PunishmentKind:
        # Imported lazily so the policy module stays the single source of truth
        from honeyguard.moderation.punishment_policy import classify

        return classify(self.duration_days)


@dataclass(frozen=True, slots=True)
class TriggerChannel:
    """A honeypot channel; any message posted there is a permanent ban."""

    channel_id: ChannelID

    @property
    def kind(self) -> PunishmentKind:
        return PunishmentKind.PERMANENT_BAN


@dataclass(slots=True)
class PendingPunishment:
    """
    A punishment recorded but not yet executed.

    Attributes:
        user_id: Member the punishment targets.
        guild_id: Guild the member belongs to.
        role_id: Trigger role that caused it.
        member_joined_at: When the member joined, if known.
        scheduled_at: When the timer fires; ``None`` for intent-only entries
            that wait for onboarding completion instead of a timer.
        kind: Punishment that will be applied.
        duration: Punishment length.
        handle: Cancelable timer, ``None`` for intent-only entries.
    """

    user_id: UserID
    guild_id: GuildID
    role_id: RoleID
    member_joined_at: datetime.datetime | None
    scheduled_at: datetime.datetime | None
    kind: PunishmentKind
    duration: datetime.timedelta
    handle: "ScheduledTask | None" = field(default=None, repr=False, compare=False)

    @property
    def key(self) -> tuple[UserID, GuildID]:
        return (self.user_id, self.guild_id)


@dataclass(slots=True)
class OnboardingRecord:
    """A member between joining and accepting the rules."""

    user_id: UserID
    guild_id: GuildID
    joined_at: datetime.datetime
    rules_accepted: bool = False


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """
    Outcome of a punishment execution.

    Execution functions never raise for permission or platform failures;
    they return a failed result and leave logging to the caller.
    """

    kind: PunishmentKind
    success: bool
    failure: FailureKind | None = None
    error: str | None = None
    record_id: int | None = None
    unban_at: datetime.datetime | None = None

    @classmethod
    def ok(
        cls,
        kind: PunishmentKind,
        *,
        record_id: int | None = None,
        unban_at: datetime.datetime | None = None,
    ) -> "ExecutionResult":
        return cls(kind=kind, success=True, record_id=record_id, unban_at=unban_at)

    @classmethod
    def failed(cls, kind: PunishmentKind, failure: FailureKind, error: str) -> "ExecutionResult":
        return cls(kind=kind, success=False, failure=failure, error=error)
