from unittest.mock import AsyncMock, MagicMock

import pytest

from honeyguard.bot.runtime import HoneyguardRuntime
from honeyguard.configuration.app_configuration import HoneypotSettings, parse_channel_config, parse_role_config


def make_bot():
    bot = MagicMock()
    bot.is_closed = MagicMock(return_value=False)
    bot.close = AsyncMock()
    return bot


def make_database():
    database = MagicMock()
    database.get_expired_bans = AsyncMock(return_value=[])
    database.shutdown = AsyncMock()
    return database


@pytest.fixture
def settings():
    return HoneypotSettings(
        trigger_roles=parse_role_config({"500": 7}),
        trigger_channels=parse_channel_config([700]),
    )


@pytest.mark.asyncio
async def test_start_is_idempotent(settings, clock):
    runtime = HoneyguardRuntime(make_bot(), settings, make_database(), clock=clock)

    await runtime.start()
    await runtime.start()
    await clock.settle()

    assert runtime.started
    assert runtime.expiry.running
    assert runtime.database.get_expired_bans.await_count == 1

    await runtime.shutdown()


@pytest.mark.asyncio
async def test_shutdown_closes_everything_once(settings, clock):
    bot = make_bot()
    database = make_database()
    runtime = HoneyguardRuntime(bot, settings, database, clock=clock)
    await runtime.start()

    await runtime.shutdown()
    await runtime.shutdown()

    assert not runtime.expiry.running
    database.shutdown.assert_awaited_once()
    bot.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_shutdown_continues_after_database_error(settings, clock):
    bot = make_bot()
    database = make_database()
    database.shutdown.side_effect = RuntimeError("already closed")
    runtime = HoneyguardRuntime(bot, settings, database, clock=clock)

    await runtime.shutdown()

    bot.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_fetch_member_uses_bot_guild(settings, clock):
    bot = make_bot()
    bot.get_guild = MagicMock(return_value=None)
    runtime = HoneyguardRuntime(bot, settings, make_database(), clock=clock)

    assert await runtime.fetch_member(1000, 10) is None
    bot.get_guild.assert_called_once_with(1000)
