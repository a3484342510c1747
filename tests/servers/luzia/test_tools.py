from __future__ import annotations

import httpx
import pytest
from conftest import make_candle, make_ticker

from servers.luzia import tools
from servers.luzia.exceptions import ApiError
from servers.luzia.schemas import (
    Exchange,
    GetExchangesInput,
    GetHistoryInput,
    GetMarketsInput,
    GetTickerInput,
    GetTickersInput,
    Market,
    MarketPage,
    OhlcvResponse,
    TickerPage,
)


async def test_get_ticker_success(mock_client):
    mock_client.get_ticker.return_value = make_ticker()

    response = await tools.get_ticker(mock_client, GetTickerInput(exchange="Binance", symbol="btc/usdt"))

    mock_client.get_ticker.assert_awaited_once_with("binance", "BTC/USDT")
    assert response.is_error is False
    assert "## BTC/USDT on BINANCE" in response.text
    assert "- **Last**: 65,000.00" in response.text
    assert "- **Change**: +0.78% 📈 (+500.00)" in response.text
    assert "- **Quote Volume**: 80.00M" in response.text
    assert "*Last updated: 2024-05-01T12:00:00.000Z*" in response.text


async def test_get_ticker_missing_fields_render_as_not_available(mock_client):
    mock_client.get_ticker.return_value = make_ticker(bid=None, ask=None, timestamp=None)

    response = await tools.get_ticker(mock_client, GetTickerInput(exchange="binance", symbol="BTC/USDT"))

    assert "- **Bid**: N/A" in response.text
    assert "- **Ask**: N/A" in response.text
    assert "*Last updated: N/A*" in response.text


async def test_get_ticker_not_found_is_flagged(mock_client):
    mock_client.get_ticker.return_value = None

    response = await tools.get_ticker(mock_client, GetTickerInput(exchange="binance", symbol="FAKE/USDT"))

    assert response.is_error is True
    assert response.text.startswith("Ticker not found for FAKE/USDT on binance.")


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (ApiError(429, "Too Many Requests", "Slow down"), "Rate limit exceeded. Please try again later."),
        (ApiError(503, "Service Unavailable"), "Service unavailable: Service Unavailable"),
        (ApiError(401, "Unauthorized", "Invalid API key"), "Authentication failed: Invalid API key"),
        (ApiError(500, "Internal Server Error", "database down"), "API error: database down"),
    ],
)
async def test_get_ticker_upstream_errors(mock_client, error, expected):
    mock_client.get_ticker.side_effect = error

    response = await tools.get_ticker(mock_client, GetTickerInput(exchange="binance", symbol="BTC/USDT"))

    assert response.is_error is True
    assert response.text == expected


async def test_transport_failure_names_the_tool(mock_client):
    mock_client.get_tickers_filtered.side_effect = httpx.ConnectError("connection refused")

    response = await tools.get_tickers(mock_client, GetTickersInput())

    assert response.is_error is True
    assert response.text == "Error in get_tickers: connection refused"


async def test_listing_not_found_is_flagged(mock_client):
    mock_client.get_markets.side_effect = ApiError(404, "Not Found", "Exchange not supported")

    response = await tools.get_markets(mock_client, GetMarketsInput(exchange="nowhere"))

    assert response.is_error is True
    assert response.text == "Not found: Exchange not supported"


async def test_get_tickers_table(mock_client):
    mock_client.get_tickers_filtered.return_value = TickerPage(
        tickers=[
            make_ticker(),
            make_ticker(symbol="ETH/USDT", last=0.5, changePercent=-1.2, quoteVolume=2_500_000_000),
        ],
        total=42,
    )

    response = await tools.get_tickers(
        mock_client,
        GetTickersInput(exchange="binance", symbols=["BTC/USDT", "ETH/USDT"], limit=2),
    )

    mock_client.get_tickers_filtered.assert_awaited_once_with(
        exchange="binance", symbols=["BTC/USDT", "ETH/USDT"], limit=2
    )
    assert response.is_error is False
    assert "## Cryptocurrency Tickers (2 of 42)" in response.text
    assert "| BTC/USDT | binance | $65,000 | 🟢 +0.78% | $80.00M |" in response.text
    assert "| ETH/USDT | binance | $0.500000 | 🔴 -1.20% | $2.50B |" in response.text
    assert "*Showing top 2 by volume*" in response.text


async def test_get_tickers_empty_is_informational(mock_client):
    mock_client.get_tickers_filtered.return_value = TickerPage(tickers=[], total=0)

    response = await tools.get_tickers(mock_client, GetTickersInput())

    assert response.is_error is False
    assert response.text == "No tickers found matching the specified criteria."


async def test_get_history_summary_and_truncation(mock_client):
    candles = [make_candle(1_700_000_000_000 + i * 3_600_000, 100 + i, 101 + i, volume=10) for i in range(15)]
    candles[3] = make_candle(candles[3].timestamp, 103, 104, high=500)
    mock_client.get_history.return_value = OhlcvResponse(
        exchange="binance", symbol="BTC/USDT", interval="1h", candles=candles, count=15
    )

    response = await tools.get_history(
        mock_client,
        GetHistoryInput(exchange="Binance", symbol="btc/usdt", interval="1h", limit=15),
    )

    mock_client.get_history.assert_awaited_once_with(
        "binance", "BTC/USDT", interval="1h", start=None, end=None, limit=15
    )
    text = response.text
    assert response.is_error is False
    assert "## BTC/USDT OHLCV on BINANCE" in text
    assert "**Candles:** 15" in text
    assert "- **Open**: 100.00" in text
    assert "- **Close**: 115.00" in text
    assert "- **Period Change**: +15.00%" in text
    assert "- **Period High**: 500.00 (2023-11-15 01:13:20Z)" in text
    assert "### Candle Data (most recent 10)" in text
    assert "*Showing 10 of 15 candles*" in text

    rows = [line for line in text.splitlines() if line.startswith("| 2023")]
    assert len(rows) == 10
    # Newest first
    assert rows[0].startswith("| 2023-11-15 12:13:20Z | 114.00")


async def test_get_history_empty_is_informational(mock_client):
    mock_client.get_history.return_value = OhlcvResponse(exchange="binance", symbol="BTC/USDT", candles=[])

    response = await tools.get_history(mock_client, GetHistoryInput(exchange="binance", symbol="BTC/USDT"))

    assert response.is_error is False
    assert response.text.startswith("No candle data found for BTC/USDT on binance with interval 1h.")


async def test_get_exchanges_lists_status(mock_client):
    mock_client.get_exchanges.return_value = [
        Exchange(id="binance", name="Binance", status="operational", website_url="https://binance.com"),
        Exchange(id="kraken", name="Kraken", status="maintenance"),
    ]

    response = await tools.get_exchanges(mock_client, GetExchangesInput())

    text = response.text
    assert "Found **2** active exchanges:" in text
    assert "### Binance (`binance`)" in text
    assert "- **Status**: 🟢 operational" in text
    assert "- **Status**: 🟠 maintenance" in text
    assert "- **Website**: https://binance.com" in text
    assert text.count("- **Website**") == 1


async def test_get_exchanges_empty_is_informational(mock_client):
    mock_client.get_exchanges.return_value = []

    response = await tools.get_exchanges(mock_client, GetExchangesInput())

    assert response.is_error is False
    assert response.text == "No exchanges are currently available."


async def test_get_markets_groups_by_quote(mock_client):
    mock_client.get_markets.return_value = MarketPage(
        markets=[
            Market(symbol="BTC/USDT", exchange="binance", base="BTC", quote="USDT"),
            Market(symbol="ETH/BTC", exchange="binance", base="ETH", quote="BTC"),
            Market(symbol="ETH/USDT", exchange="binance", base="ETH", quote="USDT"),
        ],
        total=1200,
    )

    response = await tools.get_markets(mock_client, GetMarketsInput(exchange="Binance", limit=3))

    mock_client.get_markets.assert_awaited_once_with("binance", quote=None, active=True, limit=3)
    text = response.text
    assert "## Markets on BINANCE" in text
    assert "Showing **3** of **1200** available markets." in text
    assert "### USDT Pairs (2)\n`BTC/USDT`, `ETH/USDT`" in text
    assert "### BTC Pairs (1)\n`ETH/BTC`" in text
    assert text.index("USDT Pairs") < text.index("BTC Pairs")


async def test_get_markets_empty_mentions_quote(mock_client):
    mock_client.get_markets.return_value = MarketPage(markets=[], total=0)

    response = await tools.get_markets(mock_client, GetMarketsInput(exchange="kraken", quote="DOGE"))

    assert response.is_error is False
    assert response.text == 'No markets found for exchange "kraken" with quote currency "DOGE".'
