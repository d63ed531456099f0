"""Read-only HTTP surface over zombies match history and player stats."""

from __future__ import annotations

import contextlib
import os
from http import HTTPStatus
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route

from shared.dal.errors import NotFoundError, PersistenceError, ValidationError, ZombieStatsError
from shared.db import Database, SqliteStatsRepository
from shared.logging import setup_logging
from zombies.events import QueueEventPublisher
from zombies.orchestrator import MatchOrchestrator
from zombies.server.settings import ZombiesServerSettings
from zombies.server.views import match_summary, player_summary

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request
    from starlette.responses import Response

    from zombies.events import EventPublisher

logger = structlog.get_logger()

APP_VERSION = os.environ.get("APP_VERSION", "dev")

_ERROR_STATUS: dict[type[ZombieStatsError], HTTPStatus] = {
    NotFoundError: HTTPStatus.NOT_FOUND,
    ValidationError: HTTPStatus.UNPROCESSABLE_ENTITY,
    PersistenceError: HTTPStatus.INTERNAL_SERVER_ERROR,
}


def _success(data: object) -> JSONResponse:
    return JSONResponse({"success": True, "data": data})


def _failure(message: str, status: HTTPStatus) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status)


async def _stats_error_handler(_request: Request, exc: Exception) -> Response:
    """Translate stats errors into the {success, error} envelope."""
    status = HTTPStatus.INTERNAL_SERVER_ERROR
    for error_type in type(exc).__mro__:
        if error_type in _ERROR_STATUS:
            status = _ERROR_STATUS[error_type]  # type: ignore[index]
            break
    if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
        logger.error("stats request failed", error=str(exc), error_type=type(exc).__name__)
    return _failure(str(exc), status)


def _parse_limit(request: Request) -> int:
    """Read ?limit=, falling back to the default and clamping to [1, max_page_size]."""
    settings: ZombiesServerSettings = request.app.state.settings
    try:
        limit = int(request.query_params.get("limit", settings.default_page_size))
    except ValueError:
        limit = settings.default_page_size
    if limit < 1:
        limit = settings.default_page_size
    return min(limit, settings.max_page_size)


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION})


async def recent_matches(request: Request) -> JSONResponse:
    """GET /matches/recent - most recent matches, newest first."""
    orchestrator: MatchOrchestrator = request.app.state.orchestrator
    matches = await orchestrator.get_recent_matches(_parse_limit(request))
    return _success([match_summary(m) for m in matches])


async def get_match(request: Request) -> JSONResponse:
    """GET /matches/{match_id}"""
    orchestrator: MatchOrchestrator = request.app.state.orchestrator
    match = await orchestrator.get_match(request.path_params["match_id"])
    if match is None:
        return _failure("Match not found", HTTPStatus.NOT_FOUND)
    return _success(match_summary(match))


async def active_match(request: Request) -> JSONResponse:
    """GET /matches/active/{server_id} - the match currently running on a server."""
    orchestrator: MatchOrchestrator = request.app.state.orchestrator
    match = await orchestrator.get_active_match(request.path_params["server_id"])
    if match is None:
        return _failure("No active match", HTTPStatus.NOT_FOUND)
    return _success(match_summary(match))


async def top_players(request: Request) -> JSONResponse:
    """GET /players/top - leaderboard ordered by ?orderBy= (kills when unrecognized)."""
    orchestrator: MatchOrchestrator = request.app.state.orchestrator
    order_by = request.query_params.get("orderBy", "kills")
    players = await orchestrator.get_top_players(_parse_limit(request), order_by)
    return _success([player_summary(p) for p in players])


async def get_player(request: Request) -> JSONResponse:
    """GET /players/{guid}"""
    orchestrator: MatchOrchestrator = request.app.state.orchestrator
    stats = await orchestrator.get_player_stats(request.path_params["guid"])
    if stats is None:
        return _failure("Player stats not found", HTTPStatus.NOT_FOUND)
    return _success(player_summary(stats))


def create_app(
    settings: ZombiesServerSettings | None = None,
    publisher: EventPublisher | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = ZombiesServerSettings()
    if publisher is None:
        publisher = QueueEventPublisher(settings.event_queue_size)

    # literal paths are listed before their parameterized siblings
    routes = [
        Route("/health", health, methods=["GET"], name="health"),
        Route("/matches/recent", recent_matches, methods=["GET"], name="recent_matches"),
        Route("/matches/active/{server_id}", active_match, methods=["GET"], name="active_match"),
        Route("/matches/{match_id}", get_match, methods=["GET"], name="get_match"),
        Route("/players/top", top_players, methods=["GET"], name="top_players"),
        Route("/players/{guid}", get_player, methods=["GET"], name="get_player"),
    ]

    db = Database(settings.database_path)
    db.connect()
    repository = SqliteStatsRepository(db)
    orchestrator = MatchOrchestrator(repository, publisher)

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:  # pragma: no cover
        yield
        db.close()

    app = Starlette(
        routes=routes,
        lifespan=lifespan,
        exception_handlers={ZombieStatsError: _stats_error_handler},
    )
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )

    app.state.db = db
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.state.publisher = publisher

    logger.info("zombies stats server ready", database=settings.database_path)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory zombies.server.app:get_app."""
    settings = ZombiesServerSettings()
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)
