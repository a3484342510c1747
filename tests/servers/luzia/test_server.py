from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
from conftest import make_ticker
from fastmcp import Client

from servers.luzia import server
from servers.luzia.exceptions import ApiError
from servers.luzia.schemas import Exchange


@pytest.fixture
def mcp_app(app_context):
    return server.create_server(app_context)


async def test_tools_are_listed_with_schemas(mcp_app):
    async with Client(mcp_app) as client:
        listed = {tool.name: tool for tool in await client.list_tools()}

    assert set(listed) == {"get_ticker", "get_tickers", "get_history", "get_exchanges", "get_markets"}
    assert listed["get_tickers"].input_schema["properties"]["limit"]["maximum"] == 50
    assert listed["get_history"].input_schema["required"] == ["exchange", "symbol"]


async def test_call_tool_returns_markdown(mcp_app, mock_client):
    mock_client.get_ticker.return_value = make_ticker()

    async with Client(mcp_app) as client:
        result = await client.call_tool(
            "get_ticker",
            {"exchange": "binance", "symbol": "BTC/USDT"},
            raise_on_error=False,
        )

    assert result.is_error is False
    assert result.content[0].text.startswith("## BTC/USDT on BINANCE")


async def test_call_tool_failure_is_flagged(mcp_app, mock_client):
    mock_client.get_ticker.side_effect = ApiError(429, "Too Many Requests")

    async with Client(mcp_app) as client:
        result = await client.call_tool(
            "get_ticker",
            {"exchange": "binance", "symbol": "BTC/USDT"},
            raise_on_error=False,
        )

    assert result.is_error is True
    assert result.content[0].text == "Rate limit exceeded. Please try again later."


async def test_unknown_tool_is_flagged(mcp_app):
    async with Client(mcp_app) as client:
        result = await client.call_tool("get_weather", {}, raise_on_error=False)

    assert result.is_error is True


async def test_unknown_resource_reads_as_text(mcp_app, mock_client):
    async with Client(mcp_app) as client:
        contents = await client.read_resource("luzia://weather/today")

    assert contents[0].text == "Unknown resource: luzia://weather/today"
    assert contents[0].mime_type == "text/plain"
    mock_client.get_ticker.assert_not_called()


async def test_unknown_prompt_renders_message(mcp_app):
    async with Client(mcp_app) as client:
        result = await client.get_prompt("no_such_prompt", {})

    assert len(result.messages) == 1
    assert result.messages[0].content.text == "Unknown prompt: no_such_prompt"


async def test_prompt_with_missing_argument_renders_message(mcp_app, mock_client):
    async with Client(mcp_app) as client:
        result = await client.get_prompt("analyze_price_movement", {"exchange": "binance"})

    assert result.messages[0].content.text.startswith("Invalid input: symbol:")
    mock_client.get_ticker.assert_not_called()


async def test_prompts_are_listed_with_arguments(mcp_app):
    async with Client(mcp_app) as client:
        listed = {prompt.name: prompt for prompt in await client.list_prompts()}

    assert set(listed) == {"analyze_price_movement", "analyze_ohlcv", "compare_exchanges"}
    arguments = {argument.name: argument.required for argument in listed["compare_exchanges"].arguments}
    assert arguments == {"symbol": True, "exchanges": False}


async def test_get_prompt_renders_single_user_message(mcp_app, mock_client):
    mock_client.get_ticker.return_value = make_ticker()

    async with Client(mcp_app) as client:
        result = await client.get_prompt(
            "analyze_price_movement",
            {"exchange": "binance", "symbol": "BTC/USDT"},
        )

    assert len(result.messages) == 1
    assert result.messages[0].role == "user"
    assert result.messages[0].content.text.startswith("# Price Movement Analysis: BTC/USDT on BINANCE")


async def test_read_exchanges_resource(mcp_app, mock_client):
    mock_client.get_exchanges.return_value = [Exchange(id="binance", name="Binance", status="operational")]

    async with Client(mcp_app) as client:
        contents = await client.read_resource("luzia://exchanges")

    assert json.loads(contents[0].text) == {"exchanges": ["binance"]}


async def test_read_ticker_resource_template(mcp_app, mock_client):
    mock_client.get_ticker.return_value = make_ticker()

    async with Client(mcp_app) as client:
        contents = await client.read_resource("luzia://ticker/binance/BTC-USDT")

    mock_client.get_ticker.assert_awaited_once_with("binance", "BTC/USDT")
    assert json.loads(contents[0].text)["symbol"] == "BTC/USDT"


def test_parser_selects_transport():
    parser = server.build_parser()

    assert parser.parse_args([]).transport is None
    assert parser.parse_args(["--stdio"]).transport == "stdio"
    assert parser.parse_args(["--http"]).transport == "http"
    with pytest.raises(SystemExit):
        parser.parse_args(["--stdio", "--http"])


def test_main_runs_stdio_by_default(monkeypatch):
    monkeypatch.setenv("LUZIA_API_KEY", "test-key")
    monkeypatch.delenv("LUZIA_TRANSPORT_TYPE", raising=False)
    fake_app = MagicMock()
    monkeypatch.setattr(server, "create_server", MagicMock(return_value=fake_app))
    monkeypatch.setattr(server, "configure_logging", MagicMock())
    monkeypatch.setattr(server.uvicorn, "run", MagicMock())

    server.main([])

    fake_app.run.assert_called_once_with(transport="stdio", show_banner=False)
    server.uvicorn.run.assert_not_called()


def test_main_serves_http_when_requested(monkeypatch):
    monkeypatch.setenv("LUZIA_API_KEY", "test-key")
    monkeypatch.setenv("LUZIA_ENVIRONMENT", "test")
    monkeypatch.setenv("LUZIA_HTTP_PORT", "50123")
    monkeypatch.setattr(server, "configure_logging", MagicMock())
    run = MagicMock()
    monkeypatch.setattr(server.uvicorn, "run", run)

    server.main(["--http"])

    run.assert_called_once()
    kwargs = run.call_args.kwargs
    assert kwargs["port"] == 50123
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["lifespan"] == "on"
    assert hasattr(run.call_args.args[0].state, "gateway")
