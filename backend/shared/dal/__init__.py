"""Data access layer: repository interfaces, persistence models, and errors."""

from shared.dal.errors import (
    ConflictError,
    MalformedDataWarning,
    NotFoundError,
    PersistenceError,
    ValidationError,
    ZombieStatsError,
)
from shared.dal.models import MatchUpdate, PlayerMatchDelta, PlayerStats, ZombieMatch
from shared.dal.stats_repository import StatsRepository

__all__ = [
    "ConflictError",
    "MalformedDataWarning",
    "MatchUpdate",
    "NotFoundError",
    "PersistenceError",
    "PlayerMatchDelta",
    "PlayerStats",
    "StatsRepository",
    "ValidationError",
    "ZombieMatch",
    "ZombieStatsError",
]
