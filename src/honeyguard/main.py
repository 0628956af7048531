"""
Honeyguard
==========

A Discord bot that punishes accounts taking honeypot roles or posting in
honeypot channels, while letting new members finish onboarding first.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. HONEYGUARD_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("HONEYGUARD_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()

import asyncio
import discord
from dotenv import load_dotenv

from honeyguard.bot.runtime import HoneyguardRuntime
from honeyguard.configuration.app_configuration import AppConfig
from honeyguard.database.database import Database
from honeyguard.util.logger import get_logger, handle_exception


logger = get_logger("main")


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Intents for member joins/updates (roles, screening) and message content."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.members = True
    return intents


def load_cogs(bot: discord.Bot, runtime: HoneyguardRuntime) -> None:
    """Register all operational cogs with the bot."""
    from honeyguard.cog.commands import honeypot_cmds
    from honeyguard.cog.listener import events_listener, moderation_listener

    events_listener.setup(bot, runtime)
    moderation_listener.setup(bot, runtime)
    honeypot_cmds.setup(bot, runtime)

    logger.info("All cogs loaded successfully.")


async def start_bot(bot: discord.Bot, token: str) -> None:
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def async_main() -> int:
    """Bootstrap configuration, database and bot, returning an exit code."""
    token = load_environment()

    app_config = AppConfig(BASE_DIR / "config" / "app_config.yml")
    settings = app_config.honeypot
    logger.info(
        "Loaded %d honeypot role(s) and %d honeypot channel(s)",
        len(settings.trigger_roles), len(settings.trigger_channels),
    )

    database = Database(app_config.database_path)
    try:
        logger.info("Initializing database...")
        await database.initialize()
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        return 1

    try:
        bot = discord.Bot(intents=build_intents())
        runtime = HoneyguardRuntime(bot, settings, database)
        load_cogs(bot, runtime)
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        await database.shutdown()
        return 1

    exit_code = 0
    try:
        await start_bot(bot, token)
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await runtime.shutdown()

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process code."""
    os.chdir(BASE_DIR)
    sys.excepthook = handle_exception
    logger.info("Starting Honeyguard…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
