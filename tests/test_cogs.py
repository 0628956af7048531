from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from honeyguard.cog.commands.honeypot_cmds import HoneypotCommandsCog, format_unban_result
from honeyguard.cog.listener.events_listener import EventsListenerCog
from honeyguard.cog.listener.moderation_listener import ModerationListenerCog, rules_gate_cleared
from honeyguard.configuration.app_configuration import HoneypotSettings
from honeyguard.datatypes.discord_datatypes import GuildID, RoleID, UserID
from honeyguard.datatypes.event_datatypes import MessageCreated, RoleChanged
from honeyguard.moderation.manual_unban import UnbanResult

from conftest import FakeRole, make_guild, make_member, make_message


def make_runtime():
    coordinator = MagicMock()
    coordinator.dispatch = AsyncMock(return_value=True)
    return SimpleNamespace(
        coordinator=coordinator,
        settings=HoneypotSettings(),
        start=AsyncMock(),
        registry=MagicMock(),
        tracker=MagicMock(),
        database=MagicMock(),
        notifier=MagicMock(log_unban=AsyncMock(), log_role_removal=AsyncMock()),
        manual_unban=MagicMock(unban_user=AsyncMock(), remove_trigger_roles=AsyncMock()),
    )


def make_ctx(*, ban_members=True, guild_id=1000):
    author = MagicMock(spec=discord.Member)
    author.guild_permissions = SimpleNamespace(ban_members=ban_members)
    return SimpleNamespace(
        guild_id=guild_id,
        guild=make_guild(guild_id),
        author=author,
        user=SimpleNamespace(id=1),
        respond=AsyncMock(),
        defer=AsyncMock(),
        send_followup=AsyncMock(),
    )


# ---------------------------------------------------------------------------
# Moderation listener
# ---------------------------------------------------------------------------

def test_rules_gate_cleared():
    assert rules_gate_cleared(SimpleNamespace(pending=True), SimpleNamespace(pending=False))
    assert not rules_gate_cleared(SimpleNamespace(pending=False), SimpleNamespace(pending=False))
    assert not rules_gate_cleared(SimpleNamespace(pending=True), SimpleNamespace(pending=True))


@pytest.mark.asyncio
async def test_member_join_skips_bots():
    runtime = make_runtime()
    cog = ModerationListenerCog(SimpleNamespace(), runtime)
    guild = make_guild()

    await cog.on_member_join(make_member(10, guild, bot=True))
    runtime.coordinator.handle_member_joined.assert_not_called()

    member = make_member(11, guild)
    await cog.on_member_join(member)
    runtime.coordinator.handle_member_joined.assert_called_once_with(member)


@pytest.mark.asyncio
async def test_member_update_dispatches_roles_before_gate():
    runtime = make_runtime()
    calls = []
    runtime.coordinator.dispatch.side_effect = lambda event: calls.append(("dispatch", event))
    runtime.coordinator.handle_rules_gate_cleared.side_effect = lambda member: calls.append(("gate", member))
    cog = ModerationListenerCog(SimpleNamespace(), runtime)
    guild = make_guild()
    before = make_member(10, guild, pending=True)
    after = make_member(10, guild, role_ids=[500], pending=False)

    await cog.on_member_update(before, after)

    assert [name for name, _ in calls] == ["dispatch", "gate"]
    event = calls[0][1]
    assert isinstance(event, RoleChanged)
    assert event.added == frozenset({RoleID(500)})


@pytest.mark.asyncio
async def test_member_update_without_role_change_only_signals_gate():
    runtime = make_runtime()
    cog = ModerationListenerCog(SimpleNamespace(), runtime)
    guild = make_guild()
    before = make_member(10, guild, pending=True)
    after = make_member(10, guild, pending=False)
    after.roles = before.roles

    await cog.on_member_update(before, after)

    runtime.coordinator.dispatch.assert_not_awaited()
    runtime.coordinator.handle_rules_gate_cleared.assert_called_once_with(after)


@pytest.mark.asyncio
async def test_member_remove_forgets_state():
    runtime = make_runtime()
    cog = ModerationListenerCog(SimpleNamespace(), runtime)

    await cog.on_member_remove(make_member(10, make_guild(1000)))

    runtime.coordinator.handle_member_left.assert_called_once_with(UserID(10), GuildID(1000))


@pytest.mark.asyncio
async def test_message_dispatch_ignores_bots_and_dms():
    runtime = make_runtime()
    cog = ModerationListenerCog(SimpleNamespace(), runtime)
    guild = make_guild()

    await cog.on_message(make_message(make_member(10, guild, bot=True), guild, 1))
    await cog.on_message(make_message(make_member(11, guild), None, 1))
    runtime.coordinator.dispatch.assert_not_awaited()

    message = make_message(make_member(12, guild), guild, 1)
    await cog.on_message(message)
    runtime.coordinator.dispatch.assert_awaited_once_with(MessageCreated(message))


# ---------------------------------------------------------------------------
# Events listener
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_on_ready_starts_runtime():
    runtime = make_runtime()
    bot = SimpleNamespace(user=SimpleNamespace(id=999), change_presence=AsyncMock())
    cog = EventsListenerCog(bot, runtime)

    await cog.on_ready()

    bot.change_presence.assert_awaited_once()
    runtime.start.assert_awaited_once()


@pytest.mark.asyncio
async def test_on_ready_without_user_waits():
    runtime = make_runtime()
    cog = EventsListenerCog(SimpleNamespace(user=None, change_presence=AsyncMock()), runtime)

    await cog.on_ready()

    runtime.start.assert_not_awaited()


# ---------------------------------------------------------------------------
# Honeypot commands
# ---------------------------------------------------------------------------

def test_format_unban_result_lists_steps():
    result = UnbanResult(
        success=True,
        was_actually_banned=True,
        removed_from_database=True,
        cancelled_pending=True,
        removed_roles=[RoleID(500)],
    )
    text = format_unban_result(UserID(10), result)

    assert "Discord ban lifted" in text
    assert "Temporary ban record closed" in text
    assert "Pending punishment cancelled" in text
    assert "<@&500>" in text


def test_format_unban_result_failure():
    text = format_unban_result(UserID(10), UnbanResult(error="nope"))
    assert text.startswith("❌")
    assert "nope" in text


@pytest.mark.asyncio
async def test_commands_require_ban_members():
    runtime = make_runtime()
    cog = HoneypotCommandsCog(SimpleNamespace(), runtime)
    ctx = make_ctx(ban_members=False)

    await HoneypotCommandsCog.pending.callback(cog, ctx)

    assert "Ban Members" in ctx.respond.await_args.args[0]
    runtime.registry.list_by_guild.assert_not_called()


@pytest.mark.asyncio
async def test_commands_reject_direct_messages():
    cog = HoneypotCommandsCog(SimpleNamespace(), make_runtime())
    ctx = make_ctx(guild_id=None)

    await HoneypotCommandsCog.onboarding.callback(cog, ctx)

    assert "server" in ctx.respond.await_args.args[0]


@pytest.mark.asyncio
async def test_tempbans_lists_records():
    runtime = make_runtime()
    records = [SimpleNamespace(user_id="10", unban_at=1704110400)]
    runtime.database.get_active_temp_bans = AsyncMock(return_value=records)
    cog = HoneypotCommandsCog(SimpleNamespace(), runtime)
    ctx = make_ctx()

    await HoneypotCommandsCog.tempbans.callback(cog, ctx)

    runtime.database.get_active_temp_bans.assert_awaited_once_with(GuildID(1000))
    text = ctx.send_followup.await_args.args[0]
    assert "Active temporary bans (1)" in text
    assert "<t:1704110400:R>" in text


@pytest.mark.asyncio
async def test_honeypot_unban_rejects_bad_input():
    runtime = make_runtime()
    cog = HoneypotCommandsCog(SimpleNamespace(), runtime)
    ctx = make_ctx()

    await HoneypotCommandsCog.honeypot_unban.callback(cog, ctx, "not-a-user", None)

    runtime.manual_unban.unban_user.assert_not_awaited()
    assert "Invalid" in ctx.send_followup.await_args.args[0]


@pytest.mark.asyncio
async def test_honeypot_unban_logs_success():
    runtime = make_runtime()
    runtime.manual_unban.unban_user.return_value = UnbanResult(success=True, was_actually_banned=True)
    cog = HoneypotCommandsCog(SimpleNamespace(), runtime)
    ctx = make_ctx()

    await HoneypotCommandsCog.honeypot_unban.callback(cog, ctx, "<@123456789012345678>", "appeal")

    runtime.manual_unban.unban_user.assert_awaited_once_with(
        ctx.guild, UserID(123456789012345678), UserID(1), "appeal"
    )
    runtime.notifier.log_unban.assert_awaited_once()
    assert runtime.notifier.log_unban.await_args.kwargs["automatic"] is False


@pytest.mark.asyncio
async def test_remove_honeypot_roles_reports_nothing_to_do():
    runtime = make_runtime()
    runtime.manual_unban.remove_trigger_roles.return_value = []
    cog = HoneypotCommandsCog(SimpleNamespace(), runtime)
    ctx = make_ctx()
    member = make_member(10, ctx.guild)

    await HoneypotCommandsCog.remove_honeypot_roles.callback(cog, ctx, member)

    runtime.notifier.log_role_removal.assert_not_awaited()
    assert "no honeypot roles" in ctx.send_followup.await_args.args[0]
