"""
Database coordinator for the temporary-ban store.

The :class:`Database` owns the connection manager, initialises the schema,
and exposes the store operations the moderation core relies on. Every
write goes through a serialised transaction; reads share the connection.

Lifecycle:
    1. ``await database.initialize()`` at startup
    2. store operations
    3. ``await database.shutdown()`` after every consumer has stopped
"""

from __future__ import annotations

import datetime
import math
from pathlib import Path
from typing import List

from honeyguard.database.db_connection import ConnectionManager
from honeyguard.database.db_schema import SchemaManager
from honeyguard.datatypes.discord_datatypes import GuildID, RoleID, UserID
from honeyguard.repositories.temporary_ban_repo import TempBanRecord, tempban_repo
from honeyguard.util.clock import Clock, SYSTEM_CLOCK
from honeyguard.util.logger import get_logger

logger = get_logger("database")

DB_PATH = Path("./data/honeyguard.db").resolve()


def _to_unix(moment: datetime.datetime, *, round_up: bool = False) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=datetime.timezone.utc)
    timestamp = moment.timestamp()
    return math.ceil(timestamp) if round_up else math.floor(timestamp)


class Database:
    """Persistence store for temporary bans."""

    def __init__(self, db_path: Path = DB_PATH, *, clock: Clock = SYSTEM_CLOCK) -> None:
        self.db_path = db_path
        self.connection_manager = ConnectionManager()
        self._clock = clock

    async def initialize(self) -> None:
        """Open the connection and create the schema."""
        await self.connection_manager.open(self.db_path)
        await SchemaManager.initialize_schema(self.connection_manager.connection)
        logger.info("[DATABASE] Ready at %s", self.db_path)

    async def shutdown(self) -> None:
        await self.connection_manager.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_temp_ban(
        self,
        user_id: UserID,
        guild_id: GuildID,
        role_id: RoleID,
        unban_at: datetime.datetime,
        reason: str,
        *,
        banned_at: datetime.datetime | None = None,
    ) -> int:
        """
        Persist an active temporary ban and return its id.

        Earlier active rows for the same user and guild are deactivated in the
        same transaction, so at most one row per key is ever active.
        """
        banned_at = banned_at or self._clock.now()
        async with self.connection_manager.transaction() as conn:
            superseded = await tempban_repo.deactivate_by_user(conn, user_id, guild_id)
            ban_id = await tempban_repo.insert(
                conn,
                user_id=user_id,
                guild_id=guild_id,
                role_id=role_id,
                banned_at=_to_unix(banned_at),
                unban_at=_to_unix(unban_at, round_up=True),
                reason=reason,
            )
        if superseded:
            logger.debug("[DATABASE] Superseded %d active tempban(s) for %s", superseded, user_id)
        logger.debug("[DATABASE] Recorded tempban #%d for %s in guild %s", ban_id, user_id, guild_id)
        return ban_id

    async def deactivate_ban(self, ban_id: int) -> None:
        async with self.connection_manager.transaction() as conn:
            await tempban_repo.deactivate(conn, ban_id)

    async def deactivate_ban_by_user(self, user_id: UserID, guild_id: GuildID) -> int:
        async with self.connection_manager.transaction() as conn:
            return await tempban_repo.deactivate_by_user(conn, user_id, guild_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_expired_bans(self, now: datetime.datetime | None = None) -> List[TempBanRecord]:
        """Active bans whose unban time is at or before ``now``."""
        cutoff = _to_unix(now or self._clock.now())
        async with self.connection_manager.read() as conn:
            return await tempban_repo.get_expired(conn, cutoff)

    async def get_active_temp_bans(self, guild_id: GuildID) -> List[TempBanRecord]:
        async with self.connection_manager.read() as conn:
            return await tempban_repo.get_active_for_guild(conn, guild_id)

    async def get_temp_ban_by_user(self, user_id: UserID, guild_id: GuildID) -> TempBanRecord | None:
        async with self.connection_manager.read() as conn:
            return await tempban_repo.get_active_for_user(conn, user_id, guild_id)

    async def get_temp_ban(self, ban_id: int) -> TempBanRecord | None:
        async with self.connection_manager.read() as conn:
            return await tempban_repo.get_by_id(conn, ban_id)
