"""Match lifecycle orchestration and per-player stat aggregation."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

import pydantic
import structlog
from pydantic import BaseModel, Field, JsonValue, NonNegativeInt

from shared.dal.errors import ConflictError, NotFoundError, ValidationError
from shared.dal.models import (
    UNKNOWN_PLAYER_NAME,
    MatchUpdate,
    PlayerMatchDelta,
    PlayerStats,
    ZombieMatch,
    utc_now,
)
from zombies.events import MatchCreatedEvent, MatchEndedEvent
from zombies.locks import KeyedLock

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from shared.dal.stats_repository import StatsRepository
    from zombies.events import DomainEvent, EventPublisher

logger = structlog.get_logger()


class MatchStartData(BaseModel, frozen=True):
    server_id: str = Field(min_length=1)
    map_name: str = ""
    start_time: datetime | None = None
    player_guids: list[str] = Field(default_factory=list)


class MatchEndData(BaseModel, frozen=True):
    """Results reported when a match ends.

    A missing round keeps the match's current round. stats must hold only JSON
    values and is stored verbatim; stats["players"] maps each guid to that player's per-match counters.
    """

    round: NonNegativeInt | None = None
    end_time: datetime | None = None
    stats: dict[str, JsonValue] = Field(default_factory=dict)


def _parse_player_deltas(stats: dict[str, Any]) -> dict[str, PlayerMatchDelta]:
    players = stats.get("players") or {}
    if not isinstance(players, dict):
        raise ValidationError("stats.players must be a mapping of player guid to match stats")
    deltas: dict[str, PlayerMatchDelta] = {}
    for guid, raw in players.items():
        try:
            deltas[guid] = PlayerMatchDelta.model_validate(raw)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid match stats for player {guid}: {exc}") from exc
    return deltas


class MatchOrchestrator:
    """Drive the per-server match state machine and fold results into player records.

    A server is in one of three states, always derived from storage:
    no active match, one active match, or (after finalize) back to no active
    match with the finished match kept as history. Lifecycle operations for
    one server are serialized; player read-modify-write cycles are serialized
    per guid so concurrent finalizations on different servers cannot lose
    increments.

    Finalization is not atomic across participants. If a player's update
    fails, the error propagates and players earlier in the list keep their
    new totals.
    """

    def __init__(
        self,
        repository: StatsRepository,
        publisher: EventPublisher,
        *,
        log: FilteringBoundLogger | None = None,
    ) -> None:
        self._repo = repository
        self._publisher = publisher
        self._log = log or logger
        self._server_locks = KeyedLock()
        self._player_locks = KeyedLock()

    async def create_match(
        self,
        server_id: str,
        map_name: str = "",
        start_time: datetime | None = None,
        player_guids: list[str] | None = None,
    ) -> ZombieMatch:
        """Start a new match for a server at round 1.

        Raises ConflictError if the server already has an active match.
        """
        try:
            data = MatchStartData(
                server_id=server_id,
                map_name=map_name,
                start_time=start_time,
                player_guids=player_guids or [],
            )
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid match start data: {exc}") from exc

        async with self._server_locks.hold(data.server_id):
            active = await self._repo.get_active_matches(data.server_id)
            if active:
                raise ConflictError(
                    f"Server {data.server_id} already has an active match: {active[0].match_id}",
                )
            match = ZombieMatch(
                server_id=data.server_id,
                map_name=data.map_name,
                round=1,
                start_time=data.start_time or utc_now(),
                player_guids=data.player_guids,
            )
            saved = await self._repo.create_match(match)

        self._publish(
            MatchCreatedEvent(
                match_id=saved.match_id,
                server_id=saved.server_id,
                map_name=saved.map_name,
                player_count=saved.player_count,
            ),
        )
        return saved

    async def get_active_match(self, server_id: str) -> ZombieMatch | None:
        """Return the server's newest active match, warning if more than one exists."""
        matches = await self._repo.get_active_matches(server_id)
        if len(matches) > 1:
            self._log.warning(
                "multiple active matches for server, using newest",
                server_id=server_id,
                count=len(matches),
                match_ids=[m.match_id for m in matches],
            )
        return matches[0] if matches else None

    async def finalize_match(self, server_id: str, end_data: MatchEndData | dict[str, Any]) -> ZombieMatch:
        """Close the server's active match and update every participant's cumulative stats.

        Raises NotFoundError when the server has no active match and
        ValidationError when the payload is malformed; in both cases nothing
        is written.
        """
        if not server_id:
            raise ValidationError("server_id is required")
        if not isinstance(end_data, MatchEndData):
            try:
                end_data = MatchEndData.model_validate(end_data)
            except pydantic.ValidationError as exc:
                raise ValidationError(f"Invalid match end data: {exc}") from exc
        deltas = _parse_player_deltas(end_data.stats)

        async with self._server_locks.hold(server_id):
            active = await self.get_active_match(server_id)
            if active is None or active.match_id is None:
                raise NotFoundError(f"No active match found for server {server_id}")

            final_round = end_data.round if end_data.round else active.round
            updated = await self._repo.update_match(
                active.match_id,
                MatchUpdate(
                    end_time=end_data.end_time or utc_now(),
                    round=final_round,
                    max_round=max(final_round, active.max_round),
                    stats=end_data.stats,
                ),
            )

            for guid in active.player_guids:
                await self._aggregate_player(guid, deltas.get(guid), final_round or 1)

        self._log.info(
            "match finalized",
            match_id=updated.match_id,
            server_id=server_id,
            round=updated.round,
            players=updated.player_count,
        )
        self._publish(
            MatchEndedEvent(
                match_id=updated.match_id,
                server_id=updated.server_id,
                map_name=updated.map_name,
                round=updated.round,
                duration=updated.duration,
                player_count=updated.player_count,
            ),
        )
        return updated

    async def get_match(self, match_id: str) -> ZombieMatch | None:
        return await self._repo.get_match(match_id)

    async def get_player_stats(self, guid: str) -> PlayerStats | None:
        return await self._repo.get_player_stats(guid)

    async def get_top_players(self, limit: int = 10, order_by: str = "kills") -> list[PlayerStats]:
        return await self._repo.get_top_players(limit, order_by)

    async def get_recent_matches(self, limit: int = 10) -> list[ZombieMatch]:
        return await self._repo.get_recent_matches(limit)

    # --- private helpers ---

    async def _aggregate_player(self, guid: str, delta: PlayerMatchDelta | None, final_round: int) -> PlayerStats:
        """Fold one finished match into a player's record: fetch, apply, record, upsert."""
        if delta is None:
            delta = PlayerMatchDelta()
        if delta.round == 0:
            delta = delta.model_copy(update={"round": final_round})

        async with self._player_locks.hold(guid):
            now = utc_now()
            stats = await self._repo.get_player_stats(guid)
            if stats is None:
                stats = PlayerStats(guid=guid, name=delta.name or UNKNOWN_PLAYER_NAME, first_seen=now, last_seen=now)
            elif delta.name:
                stats = stats.model_copy(update={"name": delta.name})

            stats = stats.apply_match_delta(delta, now=now)
            stats = stats.record_match_completion(final_round, now=now)
            saved = await self._repo.save_player_stats(stats)

        self._log.debug("player stats updated", guid=guid, kills=saved.kills, matches_played=saved.matches_played)
        return saved

    def _publish(self, event: DomainEvent) -> None:
        try:
            self._publisher.publish(event.name, event.payload())
        except Exception:
            self._log.exception("event publisher failed", event_name=event.name, match_id=event.match_id)
