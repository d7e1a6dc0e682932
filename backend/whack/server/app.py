from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from shared.build_info import APP_VERSION
from shared.logging import setup_logging
from whack.messaging.router import MessageRouter
from whack.server.settings import GameServerSettings
from whack.server.websocket import websocket_endpoint
from whack.session.groups import GroupBroadcaster
from whack.session.registry import SessionRegistry

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request
    from starlette.websockets import WebSocket


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION})


async def status(request: Request) -> JSONResponse:
    registry: SessionRegistry = request.app.state.registry
    return JSONResponse(
        {
            "status": "ok",
            "version": APP_VERSION,
            "sessions": registry.session_count,
            "active_sessions": registry.active_session_count,
            "players": registry.player_count,
            "connections": registry.groups.connection_count,
            "max_sessions": registry.max_sessions,
        },
    )


def create_app(
    settings: GameServerSettings | None = None,
    registry: SessionRegistry | None = None,
    message_router: MessageRouter | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = GameServerSettings()

    if registry is None:
        registry = SessionRegistry(
            GroupBroadcaster(),
            settings=settings.session_settings(),
            empty_grace_seconds=settings.empty_session_grace_seconds,
            max_sessions=settings.max_sessions,
        )

    if message_router is None:
        message_router = MessageRouter(registry)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(
            websocket,
            message_router,
            rate_limit_rate=settings.rate_limit_rate,
            rate_limit_burst=settings.rate_limit_burst,
        )

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        yield
        registry.shutdown()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.registry = registry

    logger.info("whack server ready", max_sessions=settings.max_sessions)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    settings = GameServerSettings()
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)
