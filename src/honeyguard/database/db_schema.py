"""
Database schema initialization.

Timestamps are INTEGER unix seconds so expiry comparisons are plain integer
comparisons with no timezone parsing.
"""

import aiosqlite
from honeyguard.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates the tables and indexes the bot needs."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create or update all database tables and indexes.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS temp_bans (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                guild_id TEXT NOT NULL,
                role_id TEXT NOT NULL,
                banned_at INTEGER NOT NULL,
                unban_at INTEGER NOT NULL,
                reason TEXT NOT NULL,
                active INTEGER NOT NULL DEFAULT 1
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        # Expiry sweep only ever looks at active rows
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_temp_bans_active_unban "
            "ON temp_bans(unban_at) WHERE active = 1"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_temp_bans_user "
            "ON temp_bans(guild_id, user_id, active)"
        )

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
