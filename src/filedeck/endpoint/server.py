"""FastAPI application exposing the command and search streams.

Each WebSocket route opens a duplex channel, builds the caller's
context, and hands both to its handler for the life of the connection.
The handler's status is translated into the channel's close code:

    GET /health               -> {"status": "ok", "version": "..."}
    WS  /api/command/{path}   <- "git status"     -> output chunks
    WS  /api/search/{path}    <- "case:insensitive readme" -> paths
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

import uvicorn
from fastapi import FastAPI, WebSocket, status
from pydantic import BaseModel

from filedeck import __version__
from filedeck.config.settings import Settings, load_settings
from filedeck.domain.models import HandlerResult, UserContext
from filedeck.endpoint.command import run_command
from filedeck.search.engine import run_search
from filedeck.transport.channel import DuplexChannel, TransportError, open_channel
from filedeck.utils.logging import setup_logging

logger = logging.getLogger(__name__)

ContextProvider = Callable[[WebSocket], UserContext]


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = __version__


def create_app(
    settings: Settings | None = None,
    context_provider: ContextProvider | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Service settings. Defaults to ``Settings()``.
        context_provider: Builds the caller's context for a connection.
            Defaults to the user configured in settings.
    """
    settings = settings or Settings()

    if context_provider is None:
        def context_provider(websocket: WebSocket) -> UserContext:
            return settings.user

    app = FastAPI(
        title="filedeck",
        description="Command and search streams for a web file manager",
        version=__version__,
    )

    app.state.settings = settings
    app.state.transport = settings.transport
    app.state.context_provider = context_provider

    @app.get("/health")
    async def health_check() -> HealthResponse:
        return HealthResponse()

    @app.websocket("/api/command/{path:path}")
    async def command_stream(websocket: WebSocket, path: str) -> None:
        flush_interval = app.state.settings.command.flush_interval

        async def handler(context: UserContext, channel: DuplexChannel, request_path: str):
            return await run_command(context, channel, request_path, flush_interval)

        await _serve(app, websocket, "/" + path, handler)

    @app.websocket("/api/search/{path:path}")
    async def search_stream(websocket: WebSocket, path: str) -> None:
        await _serve(app, websocket, "/" + path, run_search)

    return app


async def _serve(
    app: FastAPI,
    websocket: WebSocket,
    request_path: str,
    handler: Callable[[UserContext, DuplexChannel, str], Awaitable[HandlerResult]],
) -> None:
    """Run a handler on a fresh channel and close it per the result."""
    transport = app.state.transport
    context = app.state.context_provider(websocket)
    try:
        async with open_channel(websocket, transport) as channel:
            try:
                result = await handler(context, channel, request_path)
            except Exception as e:
                result = HandlerResult(status.HTTP_500_INTERNAL_SERVER_ERROR, e)
            if result.status >= 500:
                logger.error(
                    "%s %s failed with %d: %s",
                    websocket.url.path, request_path, result.status, result.error,
                    exc_info=result.error,
                )
                await channel.close(transport.error_close_code)
            else:
                logger.debug("%s finished with status %d", websocket.url.path, result.status)
                await channel.close(transport.normal_close_code)
    except TransportError as e:
        logger.error("Could not open channel for %s: %s", websocket.url.path, e)


def main() -> None:
    """Entry point for running the server standalone."""
    settings = load_settings()
    setup_logging(settings.logging)
    app = create_app(settings)
    uvicorn.run(app, host=settings.server.host, port=settings.server.port, log_config=None)


if __name__ == "__main__":
    main()
