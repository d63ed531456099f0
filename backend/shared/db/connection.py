"""SQLite database connection and schema management."""

import os
import sqlite3
from pathlib import Path

import structlog

from shared.dal.errors import PersistenceError

logger = structlog.get_logger()

_DB_FILE_PERMISSIONS = 0o600

MATCHES_TABLE = "zombies_matches"
PLAYER_STATS_TABLE = "zombies_player_stats"

_SCHEMA_SQL = f"""\
CREATE TABLE IF NOT EXISTS {MATCHES_TABLE} (
    match_id TEXT PRIMARY KEY,
    server_id TEXT NOT NULL,
    map_name TEXT NOT NULL,
    round INTEGER DEFAULT 0,
    max_round INTEGER DEFAULT 0,
    start_time TEXT NOT NULL,
    end_time TEXT,
    player_guids TEXT,
    stats TEXT
);

CREATE INDEX IF NOT EXISTS idx_zombies_matches_server
    ON {MATCHES_TABLE} (server_id);

CREATE INDEX IF NOT EXISTS idx_zombies_matches_map
    ON {MATCHES_TABLE} (map_name);

CREATE TABLE IF NOT EXISTS {PLAYER_STATS_TABLE} (
    player_guid TEXT PRIMARY KEY,
    player_name TEXT NOT NULL,
    kills INTEGER DEFAULT 0,
    deaths INTEGER DEFAULT 0,
    downs INTEGER DEFAULT 0,
    revives INTEGER DEFAULT 0,
    headshot_kills INTEGER DEFAULT 0,
    score INTEGER DEFAULT 0,
    matches_played INTEGER DEFAULT 0,
    highest_round INTEGER DEFAULT 0,
    total_rounds INTEGER DEFAULT 0,
    perks INTEGER DEFAULT 0,
    power_ups INTEGER DEFAULT 0,
    first_seen TEXT NOT NULL,
    last_seen TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_zombies_player_stats_name
    ON {PLAYER_STATS_TABLE} (player_name);
"""


class Database:
    """SQLite database wrapper that provisions the zombies stats schema on connect."""

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Return the active connection or raise if disconnected."""
        if self._conn is None:
            raise RuntimeError("Database is not connected")
        return self._conn

    @property
    def path(self) -> str:
        return self._path

    def connect(self) -> None:
        """Open the database, apply pragmas, create schema, and harden file permissions.

        Schema creation is idempotent, so connecting to an existing file is safe.
        """
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA busy_timeout=5000")
            self._conn.executescript(_SCHEMA_SQL)
        except sqlite3.Error as exc:
            logger.exception("failed to initialize zombies stats schema", path=self._path)
            self.close()
            raise PersistenceError(f"Failed to initialize database at {self._path}") from exc

        self._harden_permissions()
        logger.info("zombies stats schema ready", path=self._path)

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _harden_permissions(self) -> None:
        """Set restrictive file permissions on POSIX systems (best effort).

        Covers the WAL/SHM sibling files too, since they hold database content.
        """
        if os.name != "posix" or self._path == ":memory:":  # pragma: no cover
            return
        for suffix in ("", "-wal", "-shm"):
            p = Path(self._path + suffix)
            if p.exists():
                try:
                    p.chmod(_DB_FILE_PERMISSIONS)
                except OSError:
                    logger.warning("could not set file permissions", permissions=oct(_DB_FILE_PERMISSIONS), path=str(p))
