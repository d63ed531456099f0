"""Abstract interface for zombies match and player stats persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.dal.models import MatchUpdate, PlayerStats, ZombieMatch

# Columns get_top_players may order by. Anything else falls back to kills.
TOP_PLAYER_ORDER_FIELDS: dict[str, str] = {
    "kills": "kills",
    "score": "score",
    "matches_played": "matches_played",
    "matchesPlayed": "matches_played",
    "highest_round": "highest_round",
    "highestRound": "highest_round",
}
DEFAULT_TOP_PLAYER_ORDER = "kills"


def resolve_order_field(order_by: str | None) -> str:
    """Map a requested ordering onto an allow-listed column name."""
    if order_by is None:
        return DEFAULT_TOP_PLAYER_ORDER
    return TOP_PLAYER_ORDER_FIELDS.get(order_by, DEFAULT_TOP_PLAYER_ORDER)


class StatsRepository(ABC):
    """Abstract interface for zombies stats persistence.

    Every operation is individually atomic. Multi-step sequences (such as
    finalizing a match and updating each participant) are not, and callers
    are responsible for serializing them.
    """

    @abstractmethod
    async def create_match(self, match: ZombieMatch) -> ZombieMatch: ...

    @abstractmethod
    async def get_match(self, match_id: str) -> ZombieMatch | None: ...

    @abstractmethod
    async def get_active_matches(self, server_id: str) -> list[ZombieMatch]: ...

    @abstractmethod
    async def update_match(self, match_id: str, update: MatchUpdate) -> ZombieMatch: ...

    @abstractmethod
    async def get_recent_matches(self, limit: int = 10) -> list[ZombieMatch]: ...

    @abstractmethod
    async def get_player_stats(self, guid: str) -> PlayerStats | None: ...

    @abstractmethod
    async def player_exists(self, guid: str) -> bool: ...

    @abstractmethod
    async def save_player_stats(self, stats: PlayerStats) -> PlayerStats: ...

    @abstractmethod
    async def get_top_players(self, limit: int = 10, order_by: str = "kills") -> list[PlayerStats]: ...
