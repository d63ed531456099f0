"""Domain events published on match lifecycle transitions, and the sinks that receive them."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.dal.models import utc_now

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

logger = structlog.get_logger()

MATCH_CREATED = "match.created"
MATCH_ENDED = "match.ended"


class DomainEvent(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    name: ClassVar[str]

    match_id: str
    server_id: str
    map_name: str
    player_count: int
    timestamp: datetime = Field(default_factory=utc_now)

    def payload(self) -> dict[str, Any]:
        """Return the wire payload: camelCase keys, JSON-compatible values."""
        return self.model_dump(mode="json", by_alias=True)


class MatchCreatedEvent(DomainEvent):
    name: ClassVar[str] = MATCH_CREATED


class MatchEndedEvent(DomainEvent):
    name: ClassVar[str] = MATCH_ENDED

    round: int
    duration: int


class EventPublisher(Protocol):
    """Fire-and-forget sink for domain events. Must never block the caller."""

    def publish(self, name: str, payload: dict[str, Any]) -> None: ...


class LoggingEventPublisher:
    """Write every published event to the structured log."""

    def __init__(self, log: FilteringBoundLogger | None = None) -> None:
        self._log = log or logger

    def publish(self, name: str, payload: dict[str, Any]) -> None:
        self._log.info("domain event", event_name=name, payload=payload)


class QueueEventPublisher:
    """Buffer events in a bounded in-process queue for live consumers.

    When the queue is full the oldest event is dropped, so publishing never
    waits for a slow or absent consumer.
    """

    def __init__(self, maxsize: int = 1000) -> None:
        if maxsize <= 0:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self._queue: asyncio.Queue[tuple[str, dict[str, Any]]] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def publish(self, name: str, payload: dict[str, Any]) -> None:
        if self._queue.full():
            dropped_name, _ = self._queue.get_nowait()
            self.dropped += 1
            logger.warning("event queue full, dropped oldest event", dropped_event=dropped_name)
        self._queue.put_nowait((name, payload))

    async def get(self) -> tuple[str, dict[str, Any]]:
        """Wait for the next event."""
        return await self._queue.get()

    def drain(self) -> list[tuple[str, dict[str, Any]]]:
        """Remove and return every buffered event without waiting."""
        events = []
        while not self._queue.empty():
            events.append(self._queue.get_nowait())
        return events

    def __len__(self) -> int:
        return self._queue.qsize()
