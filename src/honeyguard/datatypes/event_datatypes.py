"""
Events consumed by the moderation coordinator.

Gateway callbacks are translated into one of these variants by the listener
cog and handed to ``ModerationCoordinator.dispatch``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import discord

from honeyguard.datatypes.discord_datatypes import RoleID


@dataclass(frozen=True, slots=True)
class RoleChanged:
    """A member's role set changed."""

    member: discord.Member
    old_role_ids: frozenset[RoleID]
    new_role_ids: frozenset[RoleID]

    @property
    def added(self) -> frozenset[RoleID]:
        return self.new_role_ids - self.old_role_ids

    @property
    def removed(self) -> frozenset[RoleID]:
        return self.old_role_ids - self.new_role_ids

    @classmethod
    def from_members(cls, before: discord.Member, after: discord.Member) -> "RoleChanged":
        return cls(
            member=after,
            old_role_ids=frozenset(RoleID(role.id) for role in before.roles),
            new_role_ids=frozenset(RoleID(role.id) for role in after.roles),
        )


@dataclass(frozen=True, slots=True)
class MessageCreated:
    """A message was posted in a guild channel."""

    message: discord.Message


@dataclass(frozen=True, slots=True)
class OnboardingCompleted:
    """A member finished onboarding; ``role_ids`` were fetched after the settle delay."""

    member: discord.Member
    role_ids: frozenset[RoleID]


ModerationEvent = Union[RoleChanged, MessageCreated, OnboardingCompleted]
