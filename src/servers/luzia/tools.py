"""Tool handlers for the Luzia pricing API.

This module provides five tools:
- get_ticker: Current price snapshot for one pair on one exchange
- get_tickers: Table of tickers, optionally filtered by exchange and pairs
- get_history: OHLCV candles with a period summary
- get_exchanges: Supported exchanges and their status
- get_markets: Trading pairs listed on an exchange, grouped by quote currency

Handlers receive already validated arguments, make exactly one upstream call
and always answer with a ``ToolResponse``; upstream failures become flagged
text rather than exceptions. Empty listings are informational, while a missing
single ticker is reported as an error.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .formatting import (
    format_change,
    format_percent,
    format_price,
    format_text,
    format_timestamp,
    format_trend,
    format_usd,
    format_volume,
)
from .outcomes import Found, NotFound, capture, render_failure, render_not_found
from .schemas import (
    Exchange,
    GetExchangesInput,
    GetHistoryInput,
    GetMarketsInput,
    GetTickerInput,
    GetTickersInput,
    MarketPage,
    OhlcvResponse,
    Ticker,
    TickerPage,
    ToolResponse,
)
from .validation import DEFAULT_INTERVAL

if TYPE_CHECKING:
    from .api_client import LuziaApiClient

logger = logging.getLogger(__name__)

HISTORY_TABLE_ROWS = 10


def format_ticker(ticker: Ticker) -> str:
    """Render a single ticker as a markdown block."""
    return "\n".join(
        [
            f"## {ticker.symbol} on {ticker.exchange.upper()}",
            "",
            "### Current Price",
            f"- **Last**: {format_price(ticker.last)}",
            f"- **Bid**: {format_price(ticker.bid)}",
            f"- **Ask**: {format_price(ticker.ask)}",
            "",
            "### 24h Statistics",
            f"- **High**: {format_price(ticker.high)}",
            f"- **Low**: {format_price(ticker.low)}",
            f"- **Open**: {format_price(ticker.open)}",
            f"- **Change**: {format_change(ticker.change, ticker.change_percent)}",
            "",
            "### Volume",
            f"- **Base Volume**: {format_volume(ticker.volume)}",
            f"- **Quote Volume**: {format_volume(ticker.quote_volume)}",
            "",
            f"*Last updated: {format_text(ticker.timestamp)}*",
        ]
    )


def format_ticker_table(page: TickerPage) -> str:
    lines = [
        f"## Cryptocurrency Tickers ({len(page.tickers)} of {page.total})",
        "",
        "| Symbol | Exchange | Price | 24h Change | Volume |",
        "|--------|----------|-------|------------|--------|",
    ]
    for ticker in page.tickers:
        lines.append(
            f"| {ticker.symbol} | {ticker.exchange} | {format_usd(ticker.last)} "
            f"| {format_trend(ticker.change_percent)} "
            f"| {format_volume(ticker.quote_volume, prefix='$')} |"
        )
    lines.extend(["", f"*Showing top {len(page.tickers)} by volume*"])
    return "\n".join(lines)


def format_history(history: OhlcvResponse, symbol: str, exchange: str, interval: str | None) -> str:
    """Render an OHLCV series as a summary followed by the latest candles."""
    candles = history.candles
    first, last = candles[0], candles[-1]

    # First occurrence wins on ties
    high_candle = max(candles, key=lambda c: c.high)
    low_candle = min(candles, key=lambda c: c.low)
    total_volume = sum(c.volume for c in candles)
    quote_volumes = [c.quote_volume for c in candles if c.quote_volume is not None]

    change_percent = None
    if first.open:
        change_percent = (last.close - first.open) / first.open * 100

    lines = [
        f"## {symbol} OHLCV on {exchange.upper()}",
        "",
        f"**Interval:** {history.interval or interval or DEFAULT_INTERVAL} | "
        f"**Candles:** {len(candles)} | "
        f"**Range:** {format_timestamp(first.timestamp)} to {format_timestamp(last.timestamp)}",
        "",
        "### Summary",
        f"- **Open**: {format_price(first.open)}",
        f"- **Close**: {format_price(last.close)}",
        f"- **Period Change**: {format_percent(change_percent)}",
        f"- **Period High**: {format_price(high_candle.high)} ({format_timestamp(high_candle.timestamp)})",
        f"- **Period Low**: {format_price(low_candle.low)} ({format_timestamp(low_candle.timestamp)})",
        f"- **Total Volume**: {format_volume(total_volume)}",
    ]
    if quote_volumes:
        lines.append(f"- **Total Quote Volume**: {format_volume(sum(quote_volumes), prefix='$')}")

    recent = candles[-HISTORY_TABLE_ROWS:]
    lines.extend(
        [
            "",
            f"### Candle Data (most recent {len(recent)})",
            "",
            "| Time | Open | High | Low | Close | Volume |",
            "|------|------|------|-----|-------|--------|",
        ]
    )
    for candle in reversed(recent):
        lines.append(
            f"| {format_timestamp(candle.timestamp)} | {format_price(candle.open)} "
            f"| {format_price(candle.high)} | {format_price(candle.low)} "
            f"| {format_price(candle.close)} | {format_volume(candle.volume)} |"
        )
    if len(candles) > HISTORY_TABLE_ROWS:
        lines.extend(["", f"*Showing {HISTORY_TABLE_ROWS} of {len(candles)} candles*"])
    return "\n".join(lines)


def format_exchanges(exchanges: list[Exchange]) -> str:
    lines = [
        "## Supported Cryptocurrency Exchanges",
        "",
        f"Found **{len(exchanges)}** active exchanges:",
        "",
    ]
    for exchange in exchanges:
        icon = "🟢" if exchange.status == "operational" else "🟠"
        lines.append(f"### {exchange.name} (`{exchange.id}`)")
        lines.append(f"- **Status**: {icon} {exchange.status}")
        if exchange.website_url:
            lines.append(f"- **Website**: {exchange.website_url}")
        lines.append("")
    lines.extend(
        [
            "---",
            "*Use `get_ticker` or `get_tickers` to fetch price data from these exchanges.*",
        ]
    )
    return "\n".join(lines)


def format_markets(page: MarketPage, exchange: str, quote: str | None) -> str:
    """Render markets grouped by quote currency in first-seen order."""
    grouped: dict[str, list[str]] = {}
    for market in page.markets:
        grouped.setdefault(market.quote, []).append(market.symbol)

    summary = f"Showing **{len(page.markets)}** of **{page.total}** available markets"
    if quote:
        summary += f" (filtered by {quote.upper()})"

    lines = [f"## Markets on {exchange.upper()}", "", f"{summary}.", ""]
    for quote_currency, symbols in grouped.items():
        lines.append(f"### {quote_currency} Pairs ({len(symbols)})")
        lines.append(", ".join(f"`{symbol}`" for symbol in symbols))
        lines.append("")
    lines.extend(
        [
            "---",
            "*Use `get_ticker` with any of these symbols to get real-time price data.*",
        ]
    )
    return "\n".join(lines)


async def get_ticker(client: LuziaApiClient, params: GetTickerInput) -> ToolResponse:
    """Fetch the current price snapshot of one trading pair on one exchange.

    Args:
        client: Pricing API client
        params: Validated exchange and symbol

    Returns:
        ToolResponse with the ticker markdown, or a flagged message when the
        pair is unknown or the upstream call failed
    """
    exchange = params.exchange.lower()
    symbol = params.symbol.upper()
    logger.info(f"Fetching ticker: exchange={exchange}, symbol={symbol}")

    outcome = await capture(client.get_ticker(exchange, symbol))
    if isinstance(outcome, Found):
        return ToolResponse(text=format_ticker(outcome.value))
    if isinstance(outcome, NotFound):
        return ToolResponse(
            text=(
                f"Ticker not found for {params.symbol} on {params.exchange}. "
                "The symbol may not be available or the exchange may be temporarily unavailable."
            ),
            is_error=True,
        )
    return ToolResponse(text=render_failure(outcome, "get_ticker"), is_error=True)


async def get_tickers(client: LuziaApiClient, params: GetTickersInput) -> ToolResponse:
    """List tickers, optionally limited to one exchange and a set of pairs.

    Args:
        client: Pricing API client
        params: Validated filters and row limit (1-50)

    Returns:
        ToolResponse with a markdown table, or an informational message when
        nothing matches
    """
    logger.info(
        f"Fetching tickers: exchange={params.exchange}, symbols={params.symbols}, limit={params.limit}"
    )
    outcome = await capture(
        client.get_tickers_filtered(
            exchange=params.exchange,
            symbols=params.symbols,
            limit=params.limit,
        )
    )
    if isinstance(outcome, Found):
        if not outcome.value.tickers:
            return ToolResponse(text="No tickers found matching the specified criteria.")
        return ToolResponse(text=format_ticker_table(outcome.value))
    if isinstance(outcome, NotFound):
        return ToolResponse(text=render_not_found(outcome), is_error=True)
    return ToolResponse(text=render_failure(outcome, "get_tickers"), is_error=True)


async def get_history(client: LuziaApiClient, params: GetHistoryInput) -> ToolResponse:
    """Fetch OHLCV candles and summarize the period.

    Args:
        client: Pricing API client
        params: Validated pair, interval, epoch millisecond range and limit

    Returns:
        ToolResponse with a summary and the most recent candles, or an
        informational message when the series is empty
    """
    exchange = params.exchange.lower()
    symbol = params.symbol.upper()
    logger.info(
        f"Fetching history: exchange={exchange}, symbol={symbol}, interval={params.interval}, "
        f"start={params.start}, end={params.end}, limit={params.limit}"
    )
    outcome = await capture(
        client.get_history(
            exchange,
            symbol,
            interval=params.interval,
            start=params.start,
            end=params.end,
            limit=params.limit,
        )
    )
    if isinstance(outcome, Found):
        if not outcome.value.candles:
            return ToolResponse(
                text=(
                    f"No candle data found for {params.symbol} on {params.exchange} "
                    f"with interval {params.interval or DEFAULT_INTERVAL}. "
                    "The symbol may not have history data yet or the time range may be empty."
                )
            )
        return ToolResponse(text=format_history(outcome.value, symbol, exchange, params.interval))
    if isinstance(outcome, NotFound):
        return ToolResponse(text=render_not_found(outcome), is_error=True)
    return ToolResponse(text=render_failure(outcome, "get_history"), is_error=True)


async def get_exchanges(client: LuziaApiClient, params: GetExchangesInput) -> ToolResponse:
    """List the exchanges supported by the pricing API with their status."""
    logger.info("Fetching exchanges")
    outcome = await capture(client.get_exchanges())
    if isinstance(outcome, Found):
        if not outcome.value:
            return ToolResponse(text="No exchanges are currently available.")
        return ToolResponse(text=format_exchanges(outcome.value))
    if isinstance(outcome, NotFound):
        return ToolResponse(text=render_not_found(outcome), is_error=True)
    return ToolResponse(text=render_failure(outcome, "get_exchanges"), is_error=True)


async def get_markets(client: LuziaApiClient, params: GetMarketsInput) -> ToolResponse:
    """List active trading pairs on an exchange grouped by quote currency.

    Args:
        client: Pricing API client
        params: Validated exchange, optional quote currency and limit (1-100)

    Returns:
        ToolResponse with grouped markets, or an informational message when
        the exchange lists none
    """
    exchange = params.exchange.lower()
    logger.info(f"Fetching markets: exchange={exchange}, quote={params.quote}, limit={params.limit}")
    outcome = await capture(
        client.get_markets(exchange, quote=params.quote, active=True, limit=params.limit)
    )
    if isinstance(outcome, Found):
        if not outcome.value.markets:
            text = f'No markets found for exchange "{params.exchange}"'
            if params.quote:
                text += f' with quote currency "{params.quote}"'
            return ToolResponse(text=f"{text}.")
        return ToolResponse(text=format_markets(outcome.value, exchange, params.quote))
    if isinstance(outcome, NotFound):
        return ToolResponse(text=render_not_found(outcome), is_error=True)
    return ToolResponse(text=render_failure(outcome, "get_markets"), is_error=True)
