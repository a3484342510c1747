"""Prompt handlers that turn market data into analysis briefs.

Each prompt fetches the data it needs, embeds it into a markdown brief and
closes with a fixed list of questions for the assistant to answer:
- analyze_price_movement: one ticker
- analyze_ohlcv: one OHLCV series over a lookback period
- compare_exchanges: one pair across several exchanges, fetched sequentially

Missing data degrades to an explanatory brief instead of an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from .exceptions import LuziaValidationError
from .formatting import (
    format_percent,
    format_price,
    format_text,
    format_timestamp,
    format_volume,
)
from .outcomes import Failed, Found, NotFound, capture, render_failure
from .schemas import (
    AnalyzeOhlcvInput,
    AnalyzePriceMovementInput,
    CompareExchangesInput,
    OhlcvCandle,
    PromptResponse,
    Ticker,
)
from .validation import DEFAULT_INTERVAL, normalize_period, parse_exchange_list, parse_period

if TYPE_CHECKING:
    from .api_client import LuziaApiClient

logger = logging.getLogger(__name__)

OHLCV_TABLE_ROWS = 20
VOLUME_SPIKE_FACTOR = 2


@dataclass(frozen=True)
class ExchangeQuote:
    exchange: str
    ticker: Ticker | None


@dataclass(frozen=True)
class PriceSpread:
    lowest_price: float
    lowest_exchange: str
    highest_price: float
    highest_exchange: str
    difference: float
    difference_percent: float | None


@dataclass(frozen=True)
class CandleStats:
    count: int
    first_open: float
    last_close: float
    change_percent: float | None
    high: OhlcvCandle
    low: OhlcvCandle
    total_volume: float
    average_volume: float
    volume_spikes: int
    bullish: int
    bearish: int


def compare_prices(quotes: list[ExchangeQuote]) -> PriceSpread | None:
    """Compute the price spread across exchanges that reported a last price.

    The first exchange in list order wins ties for both extremes. Returns None
    when no exchange has a usable price.
    """
    priced = [
        (quote.exchange, quote.ticker.last)
        for quote in quotes
        if quote.ticker is not None and quote.ticker.last is not None
    ]
    if not priced:
        return None

    lowest = highest = priced[0]
    for exchange, price in priced[1:]:
        if price < lowest[1]:
            lowest = (exchange, price)
        if price > highest[1]:
            highest = (exchange, price)

    difference = highest[1] - lowest[1]
    return PriceSpread(
        lowest_price=lowest[1],
        lowest_exchange=lowest[0],
        highest_price=highest[1],
        highest_exchange=highest[0],
        difference=difference,
        difference_percent=difference / lowest[1] * 100 if lowest[1] else None,
    )


def summarize_candles(candles: list[OhlcvCandle]) -> CandleStats:
    """Aggregate a non-empty candle series ordered by timestamp."""
    first, last = candles[0], candles[-1]
    total_volume = sum(c.volume for c in candles)
    average_volume = total_volume / len(candles)
    bullish = sum(1 for c in candles if c.close >= c.open)

    return CandleStats(
        count=len(candles),
        first_open=first.open,
        last_close=last.close,
        change_percent=(last.close - first.open) / first.open * 100 if first.open else None,
        high=max(candles, key=lambda c: c.high),
        low=min(candles, key=lambda c: c.low),
        total_volume=total_volume,
        average_volume=average_volume,
        volume_spikes=sum(1 for c in candles if c.volume > average_volume * VOLUME_SPIKE_FACTOR),
        bullish=bullish,
        bearish=len(candles) - bullish,
    )


def _now_ms() -> int:
    return int(datetime.now(tz=timezone.utc).timestamp() * 1000)


def _share(part: int, whole: int) -> str:
    return f"{part / whole * 100:.1f}%" if whole else "N/A"


def build_price_brief(ticker: Ticker, symbol: str, exchange: str) -> str:
    spread = "N/A"
    if ticker.bid and ticker.ask:
        spread = f"{(ticker.ask - ticker.bid) / ticker.ask * 100:.4f}%"
    day_range = "N/A"
    if ticker.high and ticker.low:
        day_range = f"{(ticker.high - ticker.low) / ticker.low * 100:.2f}%"
    return "\n".join(
        [
            f"# Price Movement Analysis: {symbol} on {exchange.upper()}",
            "",
            f"Please analyze the following market data for {symbol} and provide insights.",
            "",
            "## Current Price Data",
            f"- **Last Price**: {format_price(ticker.last)}",
            f"- **Bid**: {format_price(ticker.bid)}",
            f"- **Ask**: {format_price(ticker.ask)}",
            f"- **Bid-Ask Spread**: {spread}",
            "",
            "## 24-Hour Statistics",
            f"- **Open**: {format_price(ticker.open)}",
            f"- **High**: {format_price(ticker.high)}",
            f"- **Low**: {format_price(ticker.low)}",
            f"- **Change**: {format_percent(ticker.change_percent)} ({format_price(ticker.change)})",
            f"- **24h Range**: {day_range}",
            "",
            "## Volume",
            f"- **Base Volume**: {format_volume(ticker.volume)}",
            f"- **Quote Volume**: {format_volume(ticker.quote_volume, prefix='$')}",
            "",
            "## Analysis Request",
            "Based on this data, please provide:",
            "1. **Trend Assessment**: Is the price trending up, down, or sideways, and how strong is the momentum?",
            "2. **Key Levels**: Which support and resistance levels stand out from the 24h high and low?",
            "3. **Volume Analysis**: Is the trading volume significant and what does it say about market interest?",
            "4. **Spread Analysis**: What does the bid-ask spread indicate about liquidity?",
            "5. **Risk Considerations**: Which risks should a trader watch for right now?",
            "",
            f"*Data timestamp: {format_text(ticker.timestamp)}*",
        ]
    )


def build_ohlcv_brief(
    candles: list[OhlcvCandle],
    symbol: str,
    exchange: str,
    interval: str,
    period: str,
) -> str:
    stats = summarize_candles(candles)
    lines = [
        f"# OHLCV Analysis: {symbol} on {exchange.upper()}",
        "",
        f"**Interval:** {interval} | **Period:** {period} | **Candles:** {stats.count}",
        "",
        "## Summary Statistics",
        f"- **Period Open**: {format_price(stats.first_open)}",
        f"- **Period Close**: {format_price(stats.last_close)}",
        f"- **Period Change**: {format_percent(stats.change_percent)}",
        f"- **Period High**: {format_price(stats.high.high)} at {format_timestamp(stats.high.timestamp)}",
        f"- **Period Low**: {format_price(stats.low.low)} at {format_timestamp(stats.low.timestamp)}",
        f"- **Total Volume**: {format_volume(stats.total_volume)}",
        f"- **Average Volume**: {format_volume(stats.average_volume)}",
        f"- **Volume Spikes (>{VOLUME_SPIKE_FACTOR}x avg)**: {stats.volume_spikes}",
        f"- **Bullish Candles**: {stats.bullish} ({_share(stats.bullish, stats.count)})",
        f"- **Bearish Candles**: {stats.bearish} ({_share(stats.bearish, stats.count)})",
        "",
        f"## Recent Candles (last {min(stats.count, OHLCV_TABLE_ROWS)})",
        "",
        "| Time | Open | High | Low | Close | Volume |",
        "|------|------|------|-----|-------|--------|",
    ]
    for candle in candles[-OHLCV_TABLE_ROWS:]:
        lines.append(
            f"| {format_timestamp(candle.timestamp)} | {format_price(candle.open)} "
            f"| {format_price(candle.high)} | {format_price(candle.low)} "
            f"| {format_price(candle.close)} | {format_volume(candle.volume)} |"
        )
    lines.extend(
        [
            "",
            "## Analysis Request",
            "Based on this OHLCV data, please provide:",
            "1. **Trend Analysis**: What is the overall trend over this period and where did it change?",
            "2. **Support & Resistance**: Which price levels acted as support or resistance?",
            "3. **Volume Analysis**: Do the volume spikes line up with significant price moves?",
            "4. **Candlestick Patterns**: Are there notable patterns such as engulfing candles, dojis or hammers?",
            "5. **Momentum**: Is momentum building or fading toward the end of the period?",
            "6. **Key Observations**: What else stands out that a trader should know?",
        ]
    )
    return "\n".join(lines)


def build_comparison_brief(symbol: str, quotes: list[ExchangeQuote], spread: PriceSpread | None) -> str:
    base_asset = symbol.split("/")[0]
    lines = [
        f"# Exchange Comparison: {symbol}",
        "",
        f"Please compare {symbol} across the following exchanges.",
        "",
        "## Price Comparison",
        "",
        "| Exchange | Last Price | Bid | Ask | 24h Change | Volume | Status |",
        "|----------|------------|-----|-----|------------|--------|--------|",
    ]
    for quote in quotes:
        ticker = quote.ticker
        if ticker is None:
            lines.append(f"| {quote.exchange} | N/A | N/A | N/A | N/A | N/A | ❌ unavailable |")
            continue
        lines.append(
            f"| {quote.exchange} | {format_price(ticker.last)} | {format_price(ticker.bid)} "
            f"| {format_price(ticker.ask)} | {format_percent(ticker.change_percent)} "
            f"| {format_volume(ticker.quote_volume, prefix='$')} | ✅ available |"
        )

    lines.extend(["", "## Spread Analysis"])
    if spread is None:
        lines.append("- No exchange reported a last price, so no spread can be computed.")
    else:
        percent = "N/A" if spread.difference_percent is None else f"{spread.difference_percent:.3f}%"
        lines.extend(
            [
                f"- **Lowest Price**: {format_price(spread.lowest_price)} on {spread.lowest_exchange}",
                f"- **Highest Price**: {format_price(spread.highest_price)} on {spread.highest_exchange}",
                f"- **Price Difference**: {format_price(spread.difference)} ({percent})",
            ]
        )
    unavailable = [quote.exchange for quote in quotes if quote.ticker is None]
    if unavailable:
        lines.append(f"- **Unavailable Exchanges**: {', '.join(unavailable)}")

    lines.extend(
        [
            "",
            "## Analysis Request",
            "Based on this comparison, please provide:",
            "1. **Arbitrage Opportunity**: Is the spread large enough to profit from after trading fees, "
            "withdrawal fees and transfer times?",
            f"2. **Best Execution**: Which exchange offers the best price to buy {base_asset}, and which to sell it?",
            "3. **Liquidity Comparison**: Which exchange has the deepest liquidity based on volume and spread?",
            "4. **Risk Assessment**: What risks come with trading across these exchanges?",
            "5. **Recommendations**: Where would you trade and why?",
        ]
    )
    return "\n".join(lines)


async def analyze_price_movement(
    client: LuziaApiClient, params: AnalyzePriceMovementInput
) -> PromptResponse:
    """Build a price movement brief for one pair on one exchange."""
    exchange = params.exchange.lower()
    symbol = params.symbol.upper()
    logger.info(f"Generating price movement brief: exchange={exchange}, symbol={symbol}")

    outcome = await capture(client.get_ticker(exchange, symbol))
    if isinstance(outcome, Found):
        return PromptResponse(
            text=build_price_brief(outcome.value, symbol, exchange),
            description=f"Price movement analysis for {symbol} on {exchange}",
        )
    if isinstance(outcome, NotFound):
        return PromptResponse(
            text=(
                f"Unable to fetch data for {symbol} on {exchange}. "
                "Please verify the symbol and exchange are correct and try again."
            )
        )
    return PromptResponse(
        text=f"Error generating price analysis: {render_failure(outcome, 'analyze_price_movement')}",
        is_error=True,
    )


async def analyze_ohlcv(client: LuziaApiClient, params: AnalyzeOhlcvInput) -> PromptResponse:
    """Build a candle-series brief over a lookback window ending now.

    Args:
        client: Pricing API client
        params: Pair, optional interval (default 1h) and period such as
            ``24h``, ``7d`` or ``90m`` (default 24h)

    Returns:
        PromptResponse with statistics, recent candles and analysis questions
    """
    exchange = params.exchange.lower()
    symbol = params.symbol.upper()
    interval = params.interval or DEFAULT_INTERVAL
    period = normalize_period(params.period)

    end = _now_ms()
    start = end - parse_period(period)
    logger.info(
        f"Generating OHLCV brief: exchange={exchange}, symbol={symbol}, interval={interval}, period={period}"
    )

    outcome = await capture(
        client.get_history(exchange, symbol, interval=interval, start=start, end=end)
    )
    if isinstance(outcome, Failed):
        return PromptResponse(
            text=f"Error generating OHLCV analysis: {render_failure(outcome, 'analyze_ohlcv')}",
            is_error=True,
        )
    if isinstance(outcome, NotFound) or not outcome.value.candles:
        return PromptResponse(
            text=(
                f"Unable to fetch OHLCV data for {symbol} on {exchange} "
                f"with interval {interval} over the last {period}. "
                "The symbol may not have history data yet or the period may be empty."
            )
        )
    return PromptResponse(
        text=build_ohlcv_brief(outcome.value.candles, symbol, exchange, interval, period),
        description=f"OHLCV analysis for {symbol} on {exchange} ({interval}, {period})",
    )


async def compare_exchanges(client: LuziaApiClient, params: CompareExchangesInput) -> PromptResponse:
    """Build a cross-exchange comparison brief for one pair.

    Exchanges are queried one after another in the order given. An exchange
    that fails or lacks the pair is listed as unavailable and left out of the
    spread.
    """
    symbol = params.symbol.upper()
    try:
        exchanges = parse_exchange_list(params.exchanges)
    except LuziaValidationError as exc:
        return PromptResponse(text=f"Invalid input: {exc}", is_error=True)

    logger.info(f"Generating exchange comparison: symbol={symbol}, exchanges={exchanges}")
    quotes: list[ExchangeQuote] = []
    for exchange in exchanges:
        outcome = await capture(client.get_ticker(exchange, symbol))
        if isinstance(outcome, Found):
            quotes.append(ExchangeQuote(exchange, outcome.value))
            continue
        if isinstance(outcome, Failed):
            logger.warning(f"Skipping {exchange} in comparison: {outcome.kind.value}: {outcome.message}")
        quotes.append(ExchangeQuote(exchange, None))

    if all(quote.ticker is None for quote in quotes):
        return PromptResponse(
            text=(
                f"Unable to fetch {symbol} data from any of the specified exchanges "
                f"({', '.join(exchanges)}). Please verify the symbol is correct and "
                "that the exchanges list it."
            )
        )

    return PromptResponse(
        text=build_comparison_brief(symbol, quotes, compare_prices(quotes)),
        description=f"Exchange comparison for {symbol}",
    )
