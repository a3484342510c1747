"""Routing of MCP requests to tool, prompt and resource handlers.

The dispatcher is transport independent: it validates arguments against each
handler's pydantic model, invokes the handler with the shared API client and
always returns a response object. Unknown names and invalid arguments become
flagged responses instead of exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from pydantic import BaseModel, ValidationError

from . import prompts, resources, tools
from .schemas import (
    AnalyzeOhlcvInput,
    AnalyzePriceMovementInput,
    CompareExchangesInput,
    GetExchangesInput,
    GetHistoryInput,
    GetMarketsInput,
    GetTickerInput,
    GetTickersInput,
    PromptResponse,
    ResourceResponse,
    ToolResponse,
)
from .validation import describe_validation_error

if TYPE_CHECKING:
    from .api_client import LuziaApiClient
    from .context import AppContext

logger = logging.getLogger(__name__)

ToolHandler = Callable[["LuziaApiClient", Any], Awaitable[ToolResponse]]
PromptHandler = Callable[["LuziaApiClient", Any], Awaitable[PromptResponse]]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler

    def input_schema(self) -> dict[str, Any]:
        return self.input_model.model_json_schema()


@dataclass(frozen=True)
class PromptArgument:
    name: str
    description: str | None
    required: bool


@dataclass(frozen=True)
class PromptDefinition:
    name: str
    description: str
    input_model: type[BaseModel]
    handler: PromptHandler

    def arguments(self) -> list[PromptArgument]:
        return [
            PromptArgument(name=name, description=field.description, required=field.is_required())
            for name, field in self.input_model.model_fields.items()
        ]


@dataclass(frozen=True)
class ResourceDefinition:
    uri: str
    name: str
    description: str
    mime_type: str


TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="get_ticker",
        description=(
            "Get the current price, bid/ask, 24h statistics and volume for one "
            "trading pair on one exchange."
        ),
        input_model=GetTickerInput,
        handler=tools.get_ticker,
    ),
    ToolDefinition(
        name="get_tickers",
        description=(
            "List current tickers as a table, optionally filtered by exchange and "
            "trading pairs, sorted by volume."
        ),
        input_model=GetTickersInput,
        handler=tools.get_tickers,
    ),
    ToolDefinition(
        name="get_history",
        description=(
            "Get OHLCV candles for a trading pair with a period summary and the "
            "most recent candles."
        ),
        input_model=GetHistoryInput,
        handler=tools.get_history,
    ),
    ToolDefinition(
        name="get_exchanges",
        description="List the supported cryptocurrency exchanges and their status.",
        input_model=GetExchangesInput,
        handler=tools.get_exchanges,
    ),
    ToolDefinition(
        name="get_markets",
        description=(
            "List active trading pairs on an exchange grouped by quote currency, "
            "optionally filtered by quote currency."
        ),
        input_model=GetMarketsInput,
        handler=tools.get_markets,
    ),
)

PROMPT_DEFINITIONS: tuple[PromptDefinition, ...] = (
    PromptDefinition(
        name="analyze_price_movement",
        description="Analyze the current price action of a trading pair on one exchange.",
        input_model=AnalyzePriceMovementInput,
        handler=prompts.analyze_price_movement,
    ),
    PromptDefinition(
        name="analyze_ohlcv",
        description="Analyze OHLCV candles of a trading pair over a lookback period.",
        input_model=AnalyzeOhlcvInput,
        handler=prompts.analyze_ohlcv,
    ),
    PromptDefinition(
        name="compare_exchanges",
        description="Compare the price of a trading pair across several exchanges.",
        input_model=CompareExchangesInput,
        handler=prompts.compare_exchanges,
    ),
)

RESOURCE_DEFINITIONS: tuple[ResourceDefinition, ...] = (
    ResourceDefinition(
        uri=resources.EXCHANGES_URI,
        name="Supported exchanges",
        description="Identifiers of the exchanges supported by the pricing API.",
        mime_type=resources.JSON_MIME_TYPE,
    ),
)

RESOURCE_TEMPLATE_DEFINITIONS: tuple[ResourceDefinition, ...] = (
    ResourceDefinition(
        uri=resources.TICKER_URI_TEMPLATE,
        name="Ticker",
        description="Current ticker of a pair on an exchange; write the symbol as BASE-QUOTE.",
        mime_type=resources.JSON_MIME_TYPE,
    ),
)


class Dispatcher:
    """Name-keyed routing table over the registered handlers."""

    def __init__(
        self,
        context: AppContext,
        tool_definitions: tuple[ToolDefinition, ...] = TOOL_DEFINITIONS,
        prompt_definitions: tuple[PromptDefinition, ...] = PROMPT_DEFINITIONS,
    ) -> None:
        self.context = context
        self._tools = {definition.name: definition for definition in tool_definitions}
        self._prompts = {definition.name: definition for definition in prompt_definitions}

    def list_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def list_prompts(self) -> list[PromptDefinition]:
        return list(self._prompts.values())

    def list_resources(self) -> list[ResourceDefinition]:
        return list(RESOURCE_DEFINITIONS)

    def list_resource_templates(self) -> list[ResourceDefinition]:
        return list(RESOURCE_TEMPLATE_DEFINITIONS)

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResponse:
        """Validate arguments and run the named tool.

        Args:
            name: Registered tool name
            arguments: Raw arguments from the client

        Returns:
            ToolResponse; flagged when the tool is unknown, the arguments are
            invalid or the handler failed unexpectedly
        """
        definition = self._tools.get(name)
        if definition is None:
            logger.warning(f"Unknown tool requested: {name}")
            return ToolResponse(text=f"Unknown tool: {name}", is_error=True)

        try:
            params = definition.input_model.model_validate(arguments or {})
        except ValidationError as exc:
            return ToolResponse(text=f"Invalid input: {describe_validation_error(exc)}", is_error=True)

        try:
            return await definition.handler(self.context.client, params)
        except Exception as exc:
            logger.exception(f"Tool {name} failed unexpectedly")
            return ToolResponse(text=f"Error in {name}: {exc}", is_error=True)

    async def get_prompt(self, name: str, arguments: dict[str, Any] | None = None) -> PromptResponse:
        """Validate arguments and render the named prompt."""
        definition = self._prompts.get(name)
        if definition is None:
            logger.warning(f"Unknown prompt requested: {name}")
            return PromptResponse(text=f"Unknown prompt: {name}", is_error=True)

        try:
            params = definition.input_model.model_validate(arguments or {})
        except ValidationError as exc:
            return PromptResponse(
                text=f"Invalid input: {describe_validation_error(exc)}",
                is_error=True,
            )

        try:
            return await definition.handler(self.context.client, params)
        except Exception as exc:
            logger.exception(f"Prompt {name} failed unexpectedly")
            return PromptResponse(text=f"Error generating {name}: {exc}", is_error=True)

    async def read_resource(self, uri: str) -> ResourceResponse:
        return await resources.read_resource(self.context.client, uri)
