from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from honeyguard.configuration.app_configuration import HoneypotSettings, parse_role_config
from honeyguard.datatypes.discord_datatypes import GuildID, RoleID, UserID
from honeyguard.datatypes.punishment_datatypes import PunishmentKind
from honeyguard.moderation.manual_unban import ManualUnbanService, UnbanResult, parse_user_input
from honeyguard.moderation.pending_registry import PendingPunishmentRegistry

from conftest import make_guild, make_member

SETTINGS = HoneypotSettings(trigger_roles=parse_role_config({"500": 7, "600": 90}))
USER = UserID(123456789012345678)
MODERATOR = UserID(1)


@pytest.fixture
def database():
    db = MagicMock()
    db.deactivate_ban_by_user = AsyncMock(return_value=1)
    return db


@pytest.fixture
def registry(clock):
    return PendingPunishmentRegistry(AsyncMock(), clock=clock)


@pytest.fixture
def service(database, registry):
    return ManualUnbanService(SETTINGS, database, registry)


def test_parse_user_input_accepts_ids_and_mentions():
    assert parse_user_input("123456789012345678") == USER
    assert parse_user_input("<@123456789012345678>") == USER
    assert parse_user_input(" <@!123456789012345678> ") == USER


@pytest.mark.parametrize("raw", ["", "abc", "12345", "<@abc>", "<#123456789012345678>"])
def test_parse_user_input_rejects_garbage(raw):
    with pytest.raises(ValueError):
        parse_user_input(raw)


@pytest.mark.asyncio
async def test_full_unban_clears_everything(service, database, registry):
    guild = make_guild(1000)
    member = make_member(USER.to_int(), guild, role_ids=[500, 42])
    guild.fetch_member.return_value = member
    registry.schedule(USER, GuildID(1000), RoleID(500), PunishmentKind.TIMEOUT, SETTINGS.trigger_roles[RoleID(500)].duration, None)

    result = await service.unban_user(guild, USER, MODERATOR, "appeal accepted")

    assert result.success
    assert result.was_actually_banned
    assert result.cancelled_pending
    assert result.removed_from_database
    assert result.removed_roles == [RoleID(500)]
    assert result.error is None
    guild.unban.assert_awaited_once()
    assert guild.unban.await_args.kwargs["reason"] == "appeal accepted"
    database.deactivate_ban_by_user.assert_awaited_once_with(USER, GuildID(1000))
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_user_not_banned_is_not_an_error(service, database):
    guild = make_guild(1000)
    guild.unban.side_effect = discord.NotFound(MagicMock(), "Unknown Ban")
    guild.fetch_member.side_effect = discord.NotFound(MagicMock(), "Unknown Member")
    database.deactivate_ban_by_user.return_value = 0

    result = await service.unban_user(guild, USER, MODERATOR)

    assert result.success
    assert not result.was_actually_banned
    assert not result.removed_from_database
    assert not result.cancelled_pending
    assert result.removed_roles == []


@pytest.mark.asyncio
async def test_platform_error_stops_before_database(service, database):
    guild = make_guild(1000)
    guild.unban.side_effect = discord.Forbidden(MagicMock(), "Missing Permissions")

    result = await service.unban_user(guild, USER, MODERATOR)

    assert not result.success
    assert "Failed to unban from Discord" in result.error
    database.deactivate_ban_by_user.assert_not_awaited()


@pytest.mark.asyncio
async def test_database_error_is_reported(service, database):
    guild = make_guild(1000)
    database.deactivate_ban_by_user.side_effect = RuntimeError("database is locked")

    result = await service.unban_user(guild, USER, MODERATOR)

    assert not result.success
    assert result.was_actually_banned
    assert "database is locked" in result.error


@pytest.mark.asyncio
async def test_remove_trigger_roles_skips_failures(service, registry):
    guild = make_guild(1000)
    member = make_member(10, guild, role_ids=[500, 600, 42])

    async def remove_roles(role, reason=None):
        if role.id == 600:
            raise discord.Forbidden(MagicMock(), "Missing Permissions")

    member.remove_roles.side_effect = remove_roles
    registry.schedule(UserID(10), GuildID(1000), RoleID(600), PunishmentKind.TEMPORARY_BAN, SETTINGS.trigger_roles[RoleID(600)].duration, None)

    removed = await service.remove_trigger_roles(member)

    assert removed == [RoleID(500)]
    assert member.remove_roles.await_count == 2
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_remove_trigger_roles_without_any(service, registry):
    member = make_member(10, make_guild(1000), role_ids=[42])
    registry.schedule(UserID(10), GuildID(1000), RoleID(600), PunishmentKind.TEMPORARY_BAN, SETTINGS.trigger_roles[RoleID(600)].duration, None)

    assert await service.remove_trigger_roles(member) == []
    member.remove_roles.assert_not_awaited()
    assert len(registry) == 1


def test_unban_result_defaults():
    result = UnbanResult()
    assert not result.success
    assert result.removed_roles == []
