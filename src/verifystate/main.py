"""
verifystate entrypoint
======================

Boots the verification state bot: reads the token and the YAML config,
opens the SQLite database, initializes the verification store, registers the
coordinator Cog on a py-cord bot and runs until Discord disconnects or the
process is interrupted. The bot and the database are always closed on the
way out.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Directory holding ``.env``, ``config/`` and ``data/``.

    ``VERIFYSTATE_HOME`` wins when set. A frozen build uses the directory of
    the executable; a source checkout uses the repository root.
    """
    if home := os.getenv("VERIFYSTATE_HOME"):
        return Path(home).resolve()
    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent
    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()

import asyncio
import discord
from dotenv import load_dotenv

from verifystate.configuration.app_configuration import AppConfig
from verifystate.database.db_connection import ConnectionManager
from verifystate.database.table_store import TableStore
from verifystate.util.logger import get_logger
from verifystate.verification import coordinator
from verifystate.verification.verification_store import VerificationStore

logger = get_logger("main")


def load_environment() -> str:
    """Read ``.env`` and return ``DISCORD_BOT_TOKEN``; exit with status 1 without it."""
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("DISCORD_BOT_TOKEN is not set, refusing to start")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Guild, member and message events are all the coordinator listens to."""
    intents = discord.Intents.default()
    intents.guilds = True
    intents.members = True
    intents.messages = True
    return intents


def create_bot(store: VerificationStore) -> discord.Bot:
    bot = discord.Bot(intents=build_intents())
    coordinator.setup(bot, store)
    logger.info("Verification coordinator registered")
    return bot


async def initialize_store(config: AppConfig, connection: ConnectionManager) -> VerificationStore:
    """Open the configured database and return an initialized store on it.

    Raises
    ------
    ValueError
        If the configuration names no table. Nothing is opened in that case.
    StorageFailure
        If the verification table cannot be checked or created.
    """
    settings = config.ensure_database_section()
    await connection.open(settings.path)

    store = VerificationStore(TableStore(connection), settings.table_name)
    await store.initialize()
    return store


async def start_bot(bot: discord.Bot, token: str) -> None:
    logger.info("Connecting to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Connection to Discord cancelled")
    finally:
        logger.info("Disconnected from Discord")


async def shutdown_runtime(bot: discord.Bot | None, connection: ConnectionManager) -> None:
    """Close the bot, then the database. Failures are logged so both get a chance."""
    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
        except Exception as exc:
            logger.exception("Closing the Discord bot failed: %s", exc)
        else:
            logger.info("Discord bot closed")

    try:
        await connection.close()
    except Exception as exc:
        logger.exception("Closing the database failed: %s", exc)

    logger.info("Shutdown complete")


async def async_main() -> int:
    """Run one bot session and return the process exit code."""
    token = load_environment()
    config = AppConfig(BASE_DIR / "config" / "app_config.yml")
    connection = ConnectionManager()

    try:
        store = await initialize_store(config, connection)
        bot = create_bot(store)
    except Exception as exc:
        logger.critical("Startup failed: %s", exc)
        await connection.close()
        return 1

    try:
        await start_bot(bot, token)
    except Exception as exc:
        logger.critical("Discord bot stopped with an error: %s", exc)
        return 1
    finally:
        await shutdown_runtime(bot, connection)
    return 0


def main() -> int:
    """Console script entrypoint."""
    logger.info("Starting verifystate…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")
        return 0
    except SystemExit as exit_exc:
        return exit_exc.code if isinstance(exit_exc.code, int) else 1
    except Exception as exc:
        logger.critical("Unexpected error: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
