"""SQLite-backed zombies stats repository."""

from __future__ import annotations

import asyncio
import json
import secrets
import sqlite3
import time
from typing import TYPE_CHECKING, Any

import structlog

from shared.dal.errors import NotFoundError, PersistenceError
from shared.dal.stats_repository import StatsRepository, resolve_order_field
from shared.db.connection import MATCHES_TABLE, PLAYER_STATS_TABLE
from shared.db.rows import (
    MATCH_COLUMNS,
    PLAYER_STATS_COLUMNS,
    format_timestamp,
    match_from_row,
    match_to_row,
    player_stats_from_row,
    player_stats_to_row,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from structlog.typing import FilteringBoundLogger

    from shared.dal.models import MatchUpdate, PlayerStats, ZombieMatch
    from shared.db.connection import Database

logger = structlog.get_logger()

_INSERT_MATCH_SQL = (
    f"INSERT INTO {MATCHES_TABLE} ({', '.join(MATCH_COLUMNS)}) "  # noqa: S608
    f"VALUES ({', '.join(f':{c}' for c in MATCH_COLUMNS)})"
)

# first_seen is only written by the insert branch.
_UPSERT_PLAYER_STATS_SQL = (
    f"INSERT INTO {PLAYER_STATS_TABLE} ({', '.join(PLAYER_STATS_COLUMNS)}) "  # noqa: S608
    f"VALUES ({', '.join(f':{c}' for c in PLAYER_STATS_COLUMNS)}) "
    "ON CONFLICT(player_guid) DO UPDATE SET "
    + ", ".join(f"{c} = excluded.{c}" for c in PLAYER_STATS_COLUMNS if c not in {"player_guid", "first_seen"})
)

# MatchUpdate field -> (column, encoder)
_MATCH_UPDATE_COLUMNS: dict[str, tuple[str, Any]] = {
    "round": ("round", lambda v: v),
    "max_round": ("max_round", lambda v: v),
    "end_time": ("end_time", format_timestamp),
    "stats": ("stats", json.dumps),
}


def generate_match_id() -> str:
    """Time-ordered id with a random suffix to avoid same-millisecond collisions."""
    return f"zm_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class SqliteStatsRepository(StatsRepository):
    """SQLite implementation of StatsRepository.

    All statements share the Database connection and run under an asyncio
    lock, committing before the lock is released, so each operation is
    atomic with respect to the others. sqlite3 errors are surfaced as
    PersistenceError.
    """

    def __init__(self, db: Database, *, log: FilteringBoundLogger | None = None) -> None:
        self._db = db
        self._lock = asyncio.Lock()
        self._log = log or logger

    # --- matches ---

    async def create_match(self, match: ZombieMatch) -> ZombieMatch:
        """Insert a new match row, assigning an id when the match has none.

        Does not check for an existing active match on the same server.
        """
        if match.match_id is None:
            match = match.model_copy(update={"match_id": generate_match_id()})
        async with self._lock:
            self._execute_write(_INSERT_MATCH_SQL, match_to_row(match), action="create match")
        self._log.info("match created", match_id=match.match_id, server_id=match.server_id, map_name=match.map_name)
        return match

    async def get_match(self, match_id: str) -> ZombieMatch | None:
        async with self._lock:
            row = self._fetch_one(f"SELECT * FROM {MATCHES_TABLE} WHERE match_id = ?", (match_id,))  # noqa: S608
        return match_from_row(row) if row is not None else None

    async def get_active_matches(self, server_id: str) -> list[ZombieMatch]:
        """Return the server's matches that have no end time, newest first."""
        async with self._lock:
            rows = self._fetch_all(
                f"SELECT * FROM {MATCHES_TABLE} WHERE server_id = ? AND end_time IS NULL ORDER BY start_time DESC",  # noqa: S608
                (server_id,),
            )
        return [match_from_row(row) for row in rows]

    async def update_match(self, match_id: str, update: MatchUpdate) -> ZombieMatch:
        """Patch only the fields set on the update and return the stored result.

        Raises NotFoundError when the match does not exist. An empty update
        returns the current match unchanged.
        """
        changes = update.changes()
        async with self._lock:
            select_sql = f"SELECT * FROM {MATCHES_TABLE} WHERE match_id = ?"  # noqa: S608
            if self._fetch_one(select_sql, (match_id,)) is None:
                raise NotFoundError(f"Match not found: {match_id}")

            if changes:
                assignments = []
                params: dict[str, Any] = {"match_id": match_id}
                for field, value in changes.items():
                    column, encode = _MATCH_UPDATE_COLUMNS[field]
                    assignments.append(f"{column} = :{column}")
                    params[column] = encode(value) if value is not None else None
                self._execute_write(
                    f"UPDATE {MATCHES_TABLE} SET {', '.join(assignments)} WHERE match_id = :match_id",  # noqa: S608
                    params,
                    action="update match",
                )

            row = self._fetch_one(select_sql, (match_id,))
        if row is None:  # pragma: no cover - matches are never deleted
            raise NotFoundError(f"Match not found: {match_id}")
        if changes:
            self._log.debug("match updated", match_id=match_id, fields=sorted(changes))
        return match_from_row(row)

    async def get_recent_matches(self, limit: int = 10) -> list[ZombieMatch]:
        """Return the most recent matches, ordered by start_time descending."""
        async with self._lock:
            rows = self._fetch_all(
                f"SELECT * FROM {MATCHES_TABLE} ORDER BY start_time DESC LIMIT ?",  # noqa: S608
                (limit,),
            )
        return [match_from_row(row) for row in rows]

    # --- player stats ---

    async def get_player_stats(self, guid: str) -> PlayerStats | None:
        async with self._lock:
            row = self._fetch_one(f"SELECT * FROM {PLAYER_STATS_TABLE} WHERE player_guid = ?", (guid,))  # noqa: S608
        return player_stats_from_row(row) if row is not None else None

    async def player_exists(self, guid: str) -> bool:
        async with self._lock:
            row = self._fetch_one(f"SELECT 1 FROM {PLAYER_STATS_TABLE} WHERE player_guid = ?", (guid,))  # noqa: S608
        return row is not None

    async def save_player_stats(self, stats: PlayerStats) -> PlayerStats:
        """Insert or update a player's cumulative record in a single statement.

        An existing row keeps its original first_seen. Returns the record as stored.
        """
        async with self._lock:
            self._execute_write(_UPSERT_PLAYER_STATS_SQL, player_stats_to_row(stats), action="save player stats")
            row = self._fetch_one(f"SELECT * FROM {PLAYER_STATS_TABLE} WHERE player_guid = ?", (stats.guid,))  # noqa: S608
        if row is None:  # pragma: no cover - the upsert above guarantees the row
            raise PersistenceError(f"Player stats vanished after save: {stats.guid}")
        return player_stats_from_row(row)

    async def get_top_players(self, limit: int = 10, order_by: str = "kills") -> list[PlayerStats]:
        """Return up to limit players, best first, by an allow-listed column.

        Unknown order fields fall back to kills; the column name never comes
        from caller input directly.
        """
        column = resolve_order_field(order_by)
        async with self._lock:
            rows = self._fetch_all(
                f"SELECT * FROM {PLAYER_STATS_TABLE} ORDER BY {column} DESC, player_guid ASC LIMIT ?",  # noqa: S608
                (limit,),
            )
        return [player_stats_from_row(row) for row in rows]

    # --- helpers (callers hold self._lock) ---

    def _execute_write(self, sql: str, params: Sequence[Any] | dict[str, Any], *, action: str) -> sqlite3.Cursor:
        conn = self._db.connection
        try:
            cursor = conn.execute(sql, params)
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            self._log.exception("stats write failed", action=action)
            raise PersistenceError(f"Failed to {action}") from exc
        return cursor

    def _fetch_one(self, sql: str, params: Sequence[Any]) -> sqlite3.Row | None:
        try:
            return self._db.connection.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            self._log.exception("stats read failed")
            raise PersistenceError("Failed to read zombies stats") from exc

    def _fetch_all(self, sql: str, params: Sequence[Any]) -> list[sqlite3.Row]:
        try:
            return self._db.connection.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            self._log.exception("stats read failed")
            raise PersistenceError("Failed to read zombies stats") from exc
