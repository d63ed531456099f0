"""Conversion between zombies stats models and their SQLite row representation.

Participant lists and match stats are stored as JSON text. Decoding is
lenient: a stored column that fails to parse degrades to an empty structure
and a warning is logged, rather than making the whole row unreadable.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog

from shared.dal.errors import MalformedDataWarning
from shared.dal.models import PlayerStats, ZombieMatch

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Mapping
    from datetime import datetime

logger = structlog.get_logger()

MATCH_COLUMNS = (
    "match_id",
    "server_id",
    "map_name",
    "round",
    "max_round",
    "start_time",
    "end_time",
    "player_guids",
    "stats",
)

PLAYER_STATS_COLUMNS = (
    "player_guid",
    "player_name",
    "kills",
    "deaths",
    "downs",
    "revives",
    "headshot_kills",
    "score",
    "matches_played",
    "highest_round",
    "total_rounds",
    "perks",
    "power_ups",
    "first_seen",
    "last_seen",
)


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def decode_json_column(raw: str | None, expected: type[list] | type[dict]) -> Any:  # noqa: ANN401
    """Decode a JSON text column, requiring the result to be of the expected container type.

    NULL and empty strings decode to an empty container. Raises
    MalformedDataWarning for unparseable text or a mismatched top-level type.
    """
    if not raw:
        return expected()
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        raise MalformedDataWarning(f"invalid JSON: {exc}") from exc
    if not isinstance(value, expected):
        raise MalformedDataWarning(f"expected {expected.__name__}, got {type(value).__name__}")
    return value


def _lenient_json_column(row: Mapping[str, Any], column: str, expected: type[list] | type[dict]) -> Any:  # noqa: ANN401
    try:
        return decode_json_column(row[column], expected)
    except MalformedDataWarning as warning:
        logger.warning(
            "malformed stored field, using empty default",
            column=column,
            match_id=row["match_id"],
            reason=str(warning),
        )
        return expected()


def match_to_row(match: ZombieMatch) -> dict[str, Any]:
    return {
        "match_id": match.match_id,
        "server_id": match.server_id,
        "map_name": match.map_name,
        "round": match.round,
        "max_round": match.max_round,
        "start_time": format_timestamp(match.start_time),
        "end_time": format_timestamp(match.end_time),
        "player_guids": json.dumps(match.player_guids),
        "stats": json.dumps(match.stats),
    }


def match_from_row(row: sqlite3.Row | Mapping[str, Any]) -> ZombieMatch:
    return ZombieMatch(
        match_id=row["match_id"],
        server_id=row["server_id"],
        map_name=row["map_name"],
        round=row["round"] or 0,
        max_round=row["max_round"] or 0,
        start_time=row["start_time"],
        end_time=row["end_time"] or None,
        player_guids=_lenient_json_column(row, "player_guids", list),
        stats=_lenient_json_column(row, "stats", dict),
    )


def player_stats_to_row(stats: PlayerStats) -> dict[str, Any]:
    return {
        "player_guid": stats.guid,
        "player_name": stats.name,
        "kills": stats.kills,
        "deaths": stats.deaths,
        "downs": stats.downs,
        "revives": stats.revives,
        "headshot_kills": stats.headshot_kills,
        "score": stats.score,
        "matches_played": stats.matches_played,
        "highest_round": stats.highest_round,
        "total_rounds": stats.total_rounds,
        "perks": stats.perks,
        "power_ups": stats.power_ups,
        "first_seen": format_timestamp(stats.first_seen),
        "last_seen": format_timestamp(stats.last_seen),
    }


def player_stats_from_row(row: sqlite3.Row | Mapping[str, Any]) -> PlayerStats:
    return PlayerStats(
        guid=row["player_guid"],
        name=row["player_name"],
        kills=row["kills"] or 0,
        deaths=row["deaths"] or 0,
        downs=row["downs"] or 0,
        revives=row["revives"] or 0,
        headshot_kills=row["headshot_kills"] or 0,
        score=row["score"] or 0,
        matches_played=row["matches_played"] or 0,
        highest_round=row["highest_round"] or 0,
        total_rounds=row["total_rounds"] or 0,
        perks=row["perks"] or 0,
        power_ups=row["power_ups"] or 0,
        first_seen=row["first_seen"],
        last_seen=row["last_seen"],
    )
