"""
Persistent storage for temporary bans.

Rows are never deleted by the bot: lifting or cancelling a ban flips
``active`` to 0 so the history stays available to operators.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import List

import aiosqlite

from honeyguard.datatypes.discord_datatypes import GuildID, RoleID, UserID

_COLUMNS = "id, user_id, guild_id, role_id, banned_at, unban_at, reason, active"


@dataclass
class TempBanRecord:
    """A single row from the ``temp_bans`` table."""
    id: int
    user_id: UserID
    guild_id: GuildID
    role_id: RoleID
    banned_at: int  # unix seconds (UTC)
    unban_at: int   # unix seconds (UTC)
    reason: str
    active: bool

    @property
    def unban_at_datetime(self) -> datetime.datetime:
        return datetime.datetime.fromtimestamp(self.unban_at, tz=datetime.timezone.utc)

    @property
    def banned_at_datetime(self) -> datetime.datetime:
        return datetime.datetime.fromtimestamp(self.banned_at, tz=datetime.timezone.utc)

    @classmethod
    def from_row(cls, row: aiosqlite.Row) -> "TempBanRecord":
        return cls(
            id=row["id"],
            user_id=UserID(row["user_id"]),
            guild_id=GuildID(row["guild_id"]),
            role_id=RoleID(row["role_id"]),
            banned_at=row["banned_at"],
            unban_at=row["unban_at"],
            reason=row["reason"],
            active=bool(row["active"]),
        )


class TemporaryBanRepo:
    """Low-level CRUD for the ``temp_bans`` table."""

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    async def insert(
        conn: aiosqlite.Connection,
        user_id: UserID,
        guild_id: GuildID,
        role_id: RoleID,
        banned_at: int,
        unban_at: int,
        reason: str,
    ) -> int:
        """Insert an active tempban row and return its id."""
        cursor = await conn.execute(
            """
            INSERT INTO temp_bans (user_id, guild_id, role_id, banned_at, unban_at, reason, active)
            VALUES (?, ?, ?, ?, ?, ?, 1)
            """,
            (str(user_id), str(guild_id), str(role_id), banned_at, unban_at, reason),
        )
        return cursor.lastrowid

    @staticmethod
    async def deactivate(conn: aiosqlite.Connection, ban_id: int) -> None:
        await conn.execute("UPDATE temp_bans SET active = 0 WHERE id = ?", (ban_id,))

    @staticmethod
    async def deactivate_by_user(
        conn: aiosqlite.Connection,
        user_id: UserID,
        guild_id: GuildID,
    ) -> int:
        """Deactivate every active row for the user; returns how many changed."""
        cursor = await conn.execute(
            "UPDATE temp_bans SET active = 0 WHERE user_id = ? AND guild_id = ? AND active = 1",
            (str(user_id), str(guild_id)),
        )
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def get_expired(conn: aiosqlite.Connection, now: int) -> List[TempBanRecord]:
        """Return active rows where ``unban_at <= now`` (unix seconds), oldest first."""
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM temp_bans WHERE active = 1 AND unban_at <= ? ORDER BY unban_at ASC",
            (now,),
        )
        rows = await cursor.fetchall()
        return [TempBanRecord.from_row(row) for row in rows]

    @staticmethod
    async def get_active_for_guild(conn: aiosqlite.Connection, guild_id: GuildID) -> List[TempBanRecord]:
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM temp_bans WHERE guild_id = ? AND active = 1 ORDER BY unban_at ASC",
            (str(guild_id),),
        )
        rows = await cursor.fetchall()
        return [TempBanRecord.from_row(row) for row in rows]

    @staticmethod
    async def get_active_for_user(
        conn: aiosqlite.Connection,
        user_id: UserID,
        guild_id: GuildID,
    ) -> TempBanRecord | None:
        cursor = await conn.execute(
            f"SELECT {_COLUMNS} FROM temp_bans "
            "WHERE user_id = ? AND guild_id = ? AND active = 1 "
            "ORDER BY banned_at DESC, id DESC LIMIT 1",
            (str(user_id), str(guild_id)),
        )
        row = await cursor.fetchone()
        return TempBanRecord.from_row(row) if row is not None else None

    @staticmethod
    async def get_by_id(conn: aiosqlite.Connection, ban_id: int) -> TempBanRecord | None:
        cursor = await conn.execute(f"SELECT {_COLUMNS} FROM temp_bans WHERE id = ?", (ban_id,))
        row = await cursor.fetchone()
        return TempBanRecord.from_row(row) if row is not None else None


# Module-level singleton
tempban_repo = TemporaryBanRepo()
