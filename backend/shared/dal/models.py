"""Persistence models for zombies matches and cumulative player stats."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_validator

UNKNOWN_PLAYER_NAME = "Unknown Player"


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _as_utc(value: datetime | None) -> datetime | None:
    """Normalize to UTC; naive timestamps are taken to already be UTC.

    Stored timestamps are ISO text ordered lexically, so every value must share one offset.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class ZombieMatch(BaseModel, frozen=True):
    """State of one zombies match at a point in time."""

    match_id: str | None = None  # assigned by the repository on create
    server_id: str
    map_name: str = ""
    round: NonNegativeInt = 0
    max_round: NonNegativeInt = 0
    start_time: datetime = Field(default_factory=utc_now)
    end_time: datetime | None = None  # None while the match is active
    player_guids: list[str] = Field(default_factory=list)
    # verbatim payload reported at match end; stats["players"][guid] holds per-player deltas
    stats: dict[str, Any] = Field(default_factory=dict)

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_timezone(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    @property
    def duration(self) -> int:
        """Whole seconds between start and end, 0 while the match is active."""
        if self.end_time is None:
            return 0
        return int((self.end_time - self.start_time).total_seconds())

    @property
    def player_count(self) -> int:
        return len(self.player_guids)


class PlayerMatchDelta(BaseModel, frozen=True):
    """Per-player results of a single match, as reported in the match stats payload.

    Missing counters default to 0. Unknown keys are kept as extras so the
    payload survives for auditing even when this model does not interpret it.
    """

    model_config = ConfigDict(extra="allow")

    name: str | None = None
    kills: NonNegativeInt = 0
    deaths: NonNegativeInt = 0
    downs: NonNegativeInt = 0
    revives: NonNegativeInt = 0
    headshots: NonNegativeInt = 0
    score: NonNegativeInt = 0
    perks: NonNegativeInt = 0
    powerups: NonNegativeInt = 0
    round: NonNegativeInt = 0


class MatchUpdate(BaseModel, frozen=True):
    """Partial update applied to a stored match. Unset fields are left untouched."""

    round: NonNegativeInt | None = None
    max_round: NonNegativeInt | None = None
    end_time: datetime | None = None
    stats: dict[str, Any] | None = None

    @field_validator("end_time")
    @classmethod
    def _normalize_timezone(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)

    def changes(self) -> dict[str, Any]:
        """Return only the fields that were explicitly provided."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class PlayerStats(BaseModel, frozen=True):
    """All-time cumulative zombies record for one player."""

    guid: str
    name: str = UNKNOWN_PLAYER_NAME
    kills: NonNegativeInt = 0
    deaths: NonNegativeInt = 0
    downs: NonNegativeInt = 0
    revives: NonNegativeInt = 0
    headshot_kills: NonNegativeInt = 0
    score: NonNegativeInt = 0
    matches_played: NonNegativeInt = 0
    highest_round: NonNegativeInt = 0
    total_rounds: NonNegativeInt = 0
    perks: NonNegativeInt = 0
    power_ups: NonNegativeInt = 0
    first_seen: datetime = Field(default_factory=utc_now)
    last_seen: datetime = Field(default_factory=utc_now)

    @field_validator("first_seen", "last_seen")
    @classmethod
    def _normalize_timezone(cls, v: datetime) -> datetime:
        return _as_utc(v)  # type: ignore[return-value]

    @property
    def kill_death_ratio(self) -> float:
        # with no deaths the raw kill count stands in for the ratio
        if self.deaths == 0:
            return self.kills
        return round(self.kills / self.deaths, 2)

    @property
    def headshot_percentage(self) -> float:
        if self.kills == 0:
            return 0
        return round(self.headshot_kills / self.kills * 100, 2)

    @property
    def avg_kills_per_match(self) -> float:
        if self.matches_played == 0:
            return 0
        return round(self.kills / self.matches_played, 2)

    def apply_match_delta(self, delta: PlayerMatchDelta, now: datetime | None = None) -> PlayerStats:
        """Fold one match's per-player results into the cumulative counters.

        Must be applied once per player per match: total_rounds counts
        applications, not rounds played.
        """
        return self.model_copy(
            update={
                "kills": self.kills + delta.kills,
                "deaths": self.deaths + delta.deaths,
                "downs": self.downs + delta.downs,
                "revives": self.revives + delta.revives,
                "headshot_kills": self.headshot_kills + delta.headshots,
                "score": self.score + delta.score,
                "perks": self.perks + delta.perks,
                "power_ups": self.power_ups + delta.powerups,
                "highest_round": max(self.highest_round, delta.round),
                "total_rounds": self.total_rounds + 1,
                "last_seen": now or utc_now(),
            },
        )

    def record_match_completion(self, round_reached: int, now: datetime | None = None) -> PlayerStats:
        return self.model_copy(
            update={
                "matches_played": self.matches_played + 1,
                "highest_round": max(self.highest_round, round_reached),
                "last_seen": now or utc_now(),
            },
        )
