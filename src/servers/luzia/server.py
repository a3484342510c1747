"""FastMCP server for the Luzia cryptocurrency pricing API.

This server provides:
- Tools: get_ticker, get_tickers, get_history, get_exchanges, get_markets
- Prompts: analyze_price_movement, analyze_ohlcv, compare_exchanges
- Resources: luzia://exchanges and luzia://ticker/{exchange}/{symbol}

Every request is routed through the Dispatcher, so FastMCP only carries the
protocol. The transport is stdio by default; ``--http`` (or
LUZIA_TRANSPORT_TYPE=http) serves the session gateway with uvicorn.
See config.py for available settings.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Callable

import uvicorn
from fastmcp import FastMCP
from fastmcp.exceptions import NotFoundError
from fastmcp.prompts import Prompt, PromptArgument, PromptResult
from fastmcp.resources import ResourceContent, ResourceResult
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext
from fastmcp.tools import Tool, ToolResult
from pydantic import PrivateAttr
from starlette.applications import Starlette

from . import __version__
from .config import Settings, load_settings
from .context import AppContext
from .dispatcher import Dispatcher, PromptDefinition, ToolDefinition
from .http_app import MCP_PATH, create_http_app
from .logging_config import configure_logging
from .resources import EXCHANGES_URI, TICKER_URI_TEMPLATE
from .schemas import ResourceResponse

logger = logging.getLogger(__name__)

SERVER_NAME = "luzia-crypto"


class DispatchedTool(Tool):
    """Tool whose arguments are validated and executed by the Dispatcher."""

    _dispatcher: Dispatcher = PrivateAttr()

    def __init__(self, dispatcher: Dispatcher, **kwargs: Any):
        super().__init__(**kwargs)
        self._dispatcher = dispatcher

    @classmethod
    def from_definition(cls, dispatcher: Dispatcher, definition: ToolDefinition) -> DispatchedTool:
        return cls(
            dispatcher,
            name=definition.name,
            description=definition.description,
            parameters=definition.input_schema(),
        )

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        response = await self._dispatcher.call_tool(self.name, arguments)
        return ToolResult(content=response.text, is_error=response.is_error)


class DispatchedPrompt(Prompt):
    """Prompt rendered by the Dispatcher as a single user message."""

    _dispatcher: Dispatcher = PrivateAttr()

    def __init__(self, dispatcher: Dispatcher, **kwargs: Any):
        super().__init__(**kwargs)
        self._dispatcher = dispatcher

    @classmethod
    def from_definition(cls, dispatcher: Dispatcher, definition: PromptDefinition) -> DispatchedPrompt:
        return cls(
            dispatcher,
            name=definition.name,
            description=definition.description,
            arguments=[
                PromptArgument(
                    name=argument.name,
                    description=argument.description,
                    required=argument.required,
                )
                for argument in definition.arguments()
            ],
        )

    async def render(self, arguments: dict[str, Any] | None = None) -> str:
        response = await self._dispatcher.get_prompt(self.name, arguments)
        return response.text


def _resource_result(response: ResourceResponse) -> ResourceResult:
    return ResourceResult([ResourceContent(response.text, mime_type=response.mime_type)])


class UnknownNameMiddleware(Middleware):
    """Route unregistered resource URIs and prompt names to the Dispatcher.

    They read as an `Unknown resource` body or an `Unknown prompt` message
    instead of a protocol error.
    """

    def __init__(self, dispatcher: Dispatcher) -> None:
        self._dispatcher = dispatcher

    async def on_read_resource(
        self,
        context: MiddlewareContext[Any],
        call_next: CallNext[Any, ResourceResult],
    ) -> ResourceResult:
        try:
            return await call_next(context)
        except NotFoundError:
            uri = str(context.message.uri)
            logger.warning(f"Unknown resource requested: {uri}")
            return _resource_result(await self._dispatcher.read_resource(uri))

    async def on_get_prompt(
        self,
        context: MiddlewareContext[Any],
        call_next: CallNext[Any, PromptResult],
    ) -> PromptResult:
        try:
            return await call_next(context)
        except NotFoundError:
            response = await self._dispatcher.get_prompt(context.message.name, context.message.arguments)
            return PromptResult(response.text, description=response.description)


def create_server(context: AppContext) -> FastMCP:
    """Build a FastMCP server bound to the given application context."""

    dispatcher = Dispatcher(context)
    app = FastMCP(
        name=SERVER_NAME,
        instructions=(
            "Cryptocurrency market data from the Luzia pricing API: live tickers, "
            "OHLCV history, exchanges and markets, plus analysis prompts. "
            "Symbols use the BASE/QUOTE form, e.g. BTC/USDT."
        ),
        version=__version__,
    )
    app.add_middleware(UnknownNameMiddleware(dispatcher))

    for tool_definition in dispatcher.list_tools():
        app.add_tool(DispatchedTool.from_definition(dispatcher, tool_definition))

    for prompt_definition in dispatcher.list_prompts():
        app.add_prompt(DispatchedPrompt.from_definition(dispatcher, prompt_definition))

    [exchanges_resource] = dispatcher.list_resources()
    [ticker_template] = dispatcher.list_resource_templates()

    @app.resource(
        EXCHANGES_URI,
        name=exchanges_resource.name,
        description=exchanges_resource.description,
        mime_type=exchanges_resource.mime_type,
    )
    async def exchanges() -> ResourceResult:
        return _resource_result(await dispatcher.read_resource(EXCHANGES_URI))

    @app.resource(
        TICKER_URI_TEMPLATE,
        name=ticker_template.name,
        description=ticker_template.description,
        mime_type=ticker_template.mime_type,
    )
    async def ticker(exchange: str, symbol: str) -> ResourceResult:
        uri = TICKER_URI_TEMPLATE.format(exchange=exchange, symbol=symbol)
        return _resource_result(await dispatcher.read_resource(uri))

    return app


def session_app_factory(context: AppContext) -> Callable[[], Starlette]:
    """Return a factory building one FastMCP streamable HTTP app per session."""

    def build() -> Starlette:
        return create_server(context).http_app(
            path=MCP_PATH,
            session_idle_timeout=context.settings.session_idle_timeout,
        )

    return build


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="luzia-mcp",
        description="MCP server for cryptocurrency market data from the Luzia API.",
    )
    transport = parser.add_mutually_exclusive_group()
    transport.add_argument(
        "--stdio",
        dest="transport",
        action="store_const",
        const="stdio",
        help="Serve MCP over stdin/stdout.",
    )
    transport.add_argument(
        "--http",
        dest="transport",
        action="store_const",
        const="http",
        help="Serve MCP over streamable HTTP.",
    )
    return parser


def print_banner(settings: Settings) -> None:
    base = f"http://{settings.http_host}:{settings.http_port}"
    sys.stderr.write(
        "\n".join(
            [
                "",
                f"Luzia MCP Server v{__version__} ({settings.environment})",
                f"  MCP endpoint: {base}{MCP_PATH}",
                f"  Health check: {base}/health",
                f"  Pricing API:  {settings.api_url}",
                "",
                "",
            ]
        )
    )


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the MCP server.

    Loads settings (exiting on invalid configuration), configures logging and
    starts the server on the transport chosen by the command line or settings.
    """
    args = build_parser().parse_args(argv)
    settings = load_settings()
    configure_logging(settings)

    transport = args.transport or settings.transport_type
    context = AppContext.from_settings(settings)

    if transport == "stdio":
        logger.info(f"Starting {SERVER_NAME} on stdio (api={settings.api_url})")
        create_server(context).run(transport="stdio", show_banner=False)
        return

    if settings.environment != "test":
        print_banner(settings)
    logger.info(f"Starting {SERVER_NAME} on http://{settings.http_host}:{settings.http_port}{MCP_PATH}")
    uvicorn.run(
        create_http_app(context, session_app_factory(context)),
        host=settings.http_host,
        port=settings.http_port,
        log_level=settings.log_level.lower(),
        lifespan="on",
    )


if __name__ == "__main__":
    main()
