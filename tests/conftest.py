"""
Pytest configuration and fixtures for Honeyguard tests.
"""

import asyncio
import datetime
import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from honeyguard.util.clock import Clock  # noqa: E402


START_TIME = datetime.datetime(2024, 1, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)


class FakeClock(Clock):
    """Clock whose time only moves when a test calls :meth:`advance`."""

    def __init__(self, start: datetime.datetime = START_TIME) -> None:
        self._now = start
        self._sleepers: list[tuple[datetime.datetime, asyncio.Future]] = []

    def now(self) -> datetime.datetime:
        return self._now

    async def sleep(self, seconds: float) -> None:
        deadline = self._now + datetime.timedelta(seconds=max(seconds, 0))
        if deadline <= self._now:
            await asyncio.sleep(0)
            return
        future = asyncio.get_running_loop().create_future()
        entry = (deadline, future)
        self._sleepers.append(entry)
        try:
            await future
        finally:
            if entry in self._sleepers:
                self._sleepers.remove(entry)

    @property
    def sleeper_count(self) -> int:
        return len(self._sleepers)

    async def settle(self, rounds: int = 10) -> None:
        """Let every ready task run until it blocks again."""
        for _ in range(rounds):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        """Move time forward and wake every sleeper whose deadline passed."""
        await self.settle()
        self._now += datetime.timedelta(seconds=seconds)
        for _ in range(3):
            for deadline, future in list(self._sleepers):
                if deadline <= self._now and not future.done():
                    future.set_result(None)
            await self.settle()


@pytest.fixture
def clock():
    return FakeClock()


# ---------------------------------------------------------------------------
# Discord fakes
# ---------------------------------------------------------------------------

class FakeRole:
    """Role stand-in ordered by position like ``discord.Role``."""

    def __init__(self, role_id: int, position: int = 1, name: str | None = None) -> None:
        self.id = role_id
        self.position = position
        self.name = name or f"role-{role_id}"

    def __lt__(self, other: "FakeRole") -> bool:
        return self.position < other.position

    def __repr__(self) -> str:
        return f"FakeRole({self.id})"


def make_guild(guild_id: int = 1000, *, owner_id: int = 1, can_ban: bool = True, can_timeout: bool = True):
    """Guild whose bot member sits at role position 10."""
    me = SimpleNamespace(
        id=999,
        top_role=FakeRole(9999, position=10),
        guild_permissions=SimpleNamespace(ban_members=can_ban, moderate_members=can_timeout),
    )
    guild = SimpleNamespace(
        id=guild_id,
        name=f"guild-{guild_id}",
        owner_id=owner_id,
        me=me,
        unban=AsyncMock(),
        fetch_member=AsyncMock(),
    )
    return guild


def make_member(user_id: int, guild, role_ids=(), *, bot: bool = False, position: int = 1, pending: bool = False):
    roles = [FakeRole(role_id, position=position) for role_id in role_ids]
    member = MagicMock(spec=discord.Member, name=f"member-{user_id}")
    member.id = user_id
    member.bot = bot
    member.guild = guild
    member.roles = roles
    member.top_role = max(roles, default=FakeRole(0, position=0))
    member.pending = pending
    member.joined_at = START_TIME
    member.timeout = AsyncMock()
    member.ban = AsyncMock()
    member.send = AsyncMock()
    member.remove_roles = AsyncMock()
    member.__str__.return_value = f"user-{user_id}"
    return member


def make_message(author, guild, channel_id: int, message_id: int = 5000):
    message = MagicMock(name=f"message-{message_id}")
    message.id = message_id
    message.author = author
    message.guild = guild
    message.channel = SimpleNamespace(id=channel_id, name=f"channel-{channel_id}")
    message.delete = AsyncMock()
    return message


@pytest.fixture
def guild():
    return make_guild()
