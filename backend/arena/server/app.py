from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from arena.messaging.router import MessageRouter
from arena.server.settings import ArenaServerSettings
from arena.server.websocket import websocket_endpoint
from arena.session.manager import SessionManager
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.websockets import WebSocket


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "timestamp": datetime.now(UTC).isoformat()})


async def status(request: Request) -> JSONResponse:
    session_manager: SessionManager = request.app.state.session_manager
    return JSONResponse(
        {
            "status": "ok",
            "rooms": session_manager.room_count,
            "playing": session_manager.playing_count,
            "max_rooms": session_manager.max_rooms,
        },
    )


def create_app(
    settings: ArenaServerSettings | None = None,
    session_manager: SessionManager | None = None,
    message_router: MessageRouter | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = ArenaServerSettings()

    if session_manager is None:
        session_manager = SessionManager(
            game_settings=settings.game_settings(),
            base_url=settings.base_url,
            max_rooms=settings.max_rooms,
            room_ttl_seconds=settings.room_ttl_seconds,
            room_sweep_interval_seconds=settings.room_sweep_interval_seconds,
        )

    if message_router is None:
        message_router = MessageRouter(session_manager)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, message_router)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        session_manager.start_room_reaper()
        logger.info("arena server ready")
        yield
        await session_manager.shutdown()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.session_manager = session_manager
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (uvicorn --factory)."""
    settings = ArenaServerSettings()
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)
