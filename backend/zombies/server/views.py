"""JSON view models for matches and player stats."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

    from shared.dal.models import PlayerStats, ZombieMatch


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def match_summary(match: ZombieMatch) -> dict[str, Any]:
    return {
        "id": match.match_id,
        "serverId": match.server_id,
        "mapName": match.map_name,
        "round": match.round,
        "maxRound": match.max_round,
        "startTime": _iso(match.start_time),
        "endTime": _iso(match.end_time),
        "duration": match.duration,
        "playerGuids": match.player_guids,
        "stats": match.stats,
        "playerCount": match.player_count,
        "active": match.is_active,
    }


def player_summary(stats: PlayerStats) -> dict[str, Any]:
    """Cumulative counters grouped for display, with derived ratios computed on read."""
    return {
        "guid": stats.guid,
        "name": stats.name,
        "stats": {
            "kills": stats.kills,
            "deaths": stats.deaths,
            "downs": stats.downs,
            "revives": stats.revives,
            "headshotKills": stats.headshot_kills,
            "score": stats.score,
            "kdRatio": stats.kill_death_ratio,
            "headshotPercentage": stats.headshot_percentage,
            "avgKillsPerMatch": stats.avg_kills_per_match,
        },
        "matches": {
            "played": stats.matches_played,
            "highestRound": stats.highest_round,
            "totalRounds": stats.total_rounds,
        },
        "items": {
            "perks": stats.perks,
            "powerUps": stats.power_ups,
        },
        "firstSeen": _iso(stats.first_seen),
        "lastSeen": _iso(stats.last_seen),
    }
