"""Shared fixtures for zombies tests."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import pytest

from shared.db import Database, SqliteStatsRepository
from zombies.orchestrator import MatchOrchestrator

if TYPE_CHECKING:
    from pathlib import Path

    from shared.dal.models import PlayerStats, ZombieMatch


class RecordingPublisher:
    """EventPublisher that keeps every published event in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def publish(self, name: str, payload: dict[str, Any]) -> None:
        self.events.append((name, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


class YieldingStatsRepository(SqliteStatsRepository):
    """Yields to the event loop after each lookup so concurrent callers interleave."""

    async def get_active_matches(self, server_id: str) -> list[ZombieMatch]:
        matches = await super().get_active_matches(server_id)
        await asyncio.sleep(0)
        return matches

    async def get_player_stats(self, guid: str) -> PlayerStats | None:
        stats = await super().get_player_stats(guid)
        await asyncio.sleep(0)
        return stats


@pytest.fixture
def db(tmp_path: Path):
    database = Database(tmp_path / "zombies.db")
    database.connect()
    yield database
    database.close()


@pytest.fixture
def repo(db: Database) -> SqliteStatsRepository:
    return SqliteStatsRepository(db)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def orchestrator(repo: SqliteStatsRepository, publisher: RecordingPublisher) -> MatchOrchestrator:
    return MatchOrchestrator(repo, publisher)


@pytest.fixture
def interleaving_orchestrator(db: Database, publisher: RecordingPublisher) -> MatchOrchestrator:
    return MatchOrchestrator(YieldingStatsRepository(db), publisher)
