"""HTTP transport for the MCP server.

The Starlette application served by uvicorn exposes:
- /mcp: session-aware gateway in front of per-session MCP transports
- /health: liveness check with the number of active sessions
- /: server information

Each new session gets its own MCP server instance and streamable HTTP app.
The app's lifespan runs in a task owned by the gateway and lasts until the
session is closed by the client, evicted for inactivity or the server stops.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, AsyncIterator, Callable

import anyio
from starlette.applications import Starlette
from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.types import Message, Receive, Scope, Send

from . import __version__
from .dispatcher import PROMPT_DEFINITIONS, TOOL_DEFINITIONS
from .sessions import SessionRegistry

if TYPE_CHECKING:
    from anyio.abc import TaskGroup

    from .context import AppContext

logger = logging.getLogger(__name__)

MCP_PATH = "/mcp"
SESSION_HEADER = "mcp-session-id"
SERVER_ID = "luzia-mcp"


@dataclass
class SessionTransport:
    """A per-session ASGI app together with the signal that stops it."""

    app: Starlette
    closed: anyio.Event = field(default_factory=anyio.Event)

    def close(self) -> None:
        self.closed.set()


def _without_session_header(scope: Scope) -> Scope:
    headers = [
        (key, value)
        for key, value in scope["headers"]
        if key.lower() != SESSION_HEADER.encode("latin-1")
    ]
    return {**scope, "headers": headers}


class SessionGateway:
    """ASGI endpoint routing requests to the transport of their session."""

    def __init__(
        self,
        app_factory: Callable[[], Starlette],
        registry: SessionRegistry[SessionTransport],
        *,
        sweep_interval: float,
    ) -> None:
        self._app_factory = app_factory
        self.registry = registry
        self._sweep_interval = sweep_interval
        self._task_group: TaskGroup | None = None
        self._sweep_scope: anyio.CancelScope | None = None

    @asynccontextmanager
    async def running(self) -> AsyncIterator[None]:
        """Own the session tasks for the lifetime of the HTTP server."""
        async with anyio.create_task_group() as task_group:
            self._task_group = task_group
            await task_group.start(self._sweep_idle_sessions)
            try:
                yield
            finally:
                if self._sweep_scope is not None:
                    self._sweep_scope.cancel()
                for session in self.registry.drain():
                    session.transport.close()
                self._task_group = None
        logger.info("All MCP sessions closed")

    async def _sweep_idle_sessions(self, *, task_status=anyio.TASK_STATUS_IGNORED) -> None:
        with anyio.CancelScope() as scope:
            self._sweep_scope = scope
            task_status.started()
            while True:
                await anyio.sleep(self._sweep_interval)
                self.evict_idle()

    async def _serve(self, transport: SessionTransport, *, task_status=anyio.TASK_STATUS_IGNORED) -> None:
        async with transport.app.router.lifespan_context(transport.app):
            task_status.started()
            await transport.closed.wait()

    async def _open_transport(self) -> SessionTransport:
        if self._task_group is None:
            raise RuntimeError("Session gateway is not running")
        transport = SessionTransport(app=self._app_factory())
        await self._task_group.start(self._serve, transport)
        return transport

    def close_session(self, session_id: str) -> bool:
        session = self.registry.remove(session_id)
        if session is None:
            return False
        session.transport.close()
        logger.info(f"Session closed: {session_id} (active={len(self.registry)})")
        return True

    def evict_idle(self) -> int:
        expired = self.registry.expired()
        for session in expired:
            logger.info(f"Evicting idle session {session.session_id}")
            self.close_session(session.session_id)
        return len(expired)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        session_id = Headers(scope=scope).get(SESSION_HEADER)
        session = self.registry.get(session_id)
        if session is not None:
            await self._forward(session.session_id, session.transport, scope, receive, send)
            return

        if self.registry.is_full:
            logger.warning(f"Refusing new session: {len(self.registry)} sessions active")
            response = JSONResponse(
                {
                    "jsonrpc": "2.0",
                    "error": {"code": -32000, "message": "Too many active sessions"},
                    "id": None,
                },
                status_code=503,
            )
            await response(scope, receive, send)
            return

        if session_id:
            logger.info(f"Unknown session {session_id}; starting a new session")
        await self._start_session(scope, receive, send)

    async def _start_session(self, scope: Scope, receive: Receive, send: Send) -> None:
        transport = await self._open_transport()
        registered: list[str] = []

        async def send_and_register(message: Message) -> None:
            if message["type"] == "http.response.start" and message["status"] < 400:
                new_id = Headers(raw=message.get("headers", [])).get(SESSION_HEADER)
                if new_id and new_id not in self.registry:
                    self.registry.insert(new_id, transport)
                    registered.append(new_id)
                    logger.info(f"Session initialized: {new_id} (active={len(self.registry)})")
            await send(message)

        try:
            await transport.app(_without_session_header(scope), receive, send_and_register)
        finally:
            if not registered:
                transport.close()

    async def _forward(
        self,
        session_id: str,
        transport: SessionTransport,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        status = 500

        async def send_and_track(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        self.registry.begin_request(session_id)
        try:
            await transport.app(scope, receive, send_and_track)
        finally:
            self.registry.end_request(session_id)

        if scope["method"] == "DELETE" and status < 400:
            self.close_session(session_id)
        elif status == 404:
            # The transport no longer knows this session
            self.close_session(session_id)


def create_http_app(context: AppContext, mcp_app_factory: Callable[[], Starlette]) -> Starlette:
    """Build the Starlette application served for the HTTP transport.

    Args:
        context: Application context holding settings and the API client
        mcp_app_factory: Builds a fresh MCP streamable HTTP app for a new session

    Returns:
        Starlette app with the MCP gateway, health and info routes
    """
    settings = context.settings
    registry: SessionRegistry[SessionTransport] = SessionRegistry(
        idle_timeout=settings.session_idle_timeout,
        max_sessions=settings.max_sessions,
    )
    gateway = SessionGateway(
        mcp_app_factory,
        registry,
        sweep_interval=settings.session_sweep_interval,
    )

    async def health(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "server": SERVER_ID,
                "version": __version__,
                "activeSessions": len(registry),
                "apiUrl": settings.api_url,
            }
        )

    async def info(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "name": "Luzia MCP Server",
                "version": __version__,
                "description": "MCP server exposing cryptocurrency pricing data from the Luzia API",
                "transport": "streamable-http",
                "endpoints": {"mcp": MCP_PATH, "health": "/health"},
                "tools": [definition.name for definition in TOOL_DEFINITIONS],
                "prompts": [definition.name for definition in PROMPT_DEFINITIONS],
            }
        )

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with gateway.running():
            yield

    app = Starlette(
        routes=[
            Route("/", info, methods=["GET"]),
            Route("/health", health, methods=["GET"]),
            Route(MCP_PATH, gateway),
        ],
        lifespan=lifespan,
    )
    app.state.gateway = gateway
    return app
