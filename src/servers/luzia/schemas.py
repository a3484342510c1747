from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _BaseModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=False,
    )


# Upstream pricing API payloads


class Ticker(_BaseModel):
    symbol: str
    exchange: str
    last: float | None = None
    bid: float | None = None
    ask: float | None = None
    high: float | None = None
    low: float | None = None
    open: float | None = None
    volume: float | None = None
    quote_volume: float | None = Field(default=None, alias="quoteVolume")
    change: float | None = None
    change_percent: float | None = Field(default=None, alias="changePercent")
    timestamp: str | None = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _epoch_to_iso(cls, value: object) -> object:
        # Some exchanges report epoch milliseconds instead of ISO strings
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                moment = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                return str(value)
            return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return value


class OhlcvCandle(_BaseModel):
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    quote_volume: float | None = Field(default=None, alias="quoteVolume")
    trades: int | None = None


class OhlcvResponse(_BaseModel):
    exchange: str
    symbol: str
    interval: str | None = None
    candles: list[OhlcvCandle] = Field(default_factory=list)
    count: int = 0
    start: int | None = None
    end: int | None = None


class Exchange(_BaseModel):
    id: str
    name: str
    status: str
    website_url: str | None = Field(default=None, alias="websiteUrl")


class ExchangeList(_BaseModel):
    exchanges: list[Exchange] = Field(default_factory=list)


class MarketPrecision(_BaseModel):
    price: float | None = None
    amount: float | None = None


class MarketRange(_BaseModel):
    min: float | None = None
    max: float | None = None


class MarketLimits(_BaseModel):
    amount: MarketRange | None = None
    price: MarketRange | None = None
    cost: MarketRange | None = None


class Market(_BaseModel):
    symbol: str
    exchange: str
    base: str
    quote: str
    active: bool = True
    precision: MarketPrecision | None = None
    limits: MarketLimits | None = None


class TickerPage(_BaseModel):
    tickers: list[Ticker] = Field(default_factory=list)
    total: int = 0
    limit: int | None = None
    offset: int | None = None


class MarketPage(_BaseModel):
    markets: list[Market] = Field(default_factory=list)
    total: int = 0
    limit: int | None = None
    offset: int | None = None


# Tool and prompt arguments

HistoryInterval = Literal["1m", "5m", "15m", "1h", "1d"]

ExchangeId = Annotated[
    str,
    Field(
        min_length=1,
        description="Exchange identifier.",
        examples=["binance", "coinbase", "kraken"],
    ),
]
TradingSymbol = Annotated[
    str,
    Field(
        min_length=1,
        description="Trading pair in BASE/QUOTE form.",
        examples=["BTC/USDT", "ETH/USD"],
    ),
]


class GetTickerInput(_BaseModel):
    exchange: ExchangeId
    symbol: TradingSymbol


class GetTickersInput(_BaseModel):
    exchange: ExchangeId | None = None
    symbols: list[str] | None = Field(
        default=None,
        description="Trading pairs to include, e.g. ['BTC/USDT', 'ETH/USDT'].",
    )
    limit: int = Field(
        default=20,
        ge=1,
        le=50,
        description="Maximum number of tickers to return (1-50).",
    )


class GetHistoryInput(_BaseModel):
    exchange: ExchangeId
    symbol: TradingSymbol
    interval: HistoryInterval | None = Field(
        default=None,
        description="Candle interval; the pricing API defaults to 1h.",
    )
    start: int | None = Field(
        default=None,
        description="Range start as epoch milliseconds.",
    )
    end: int | None = Field(
        default=None,
        description="Range end as epoch milliseconds.",
    )
    limit: int | None = Field(
        default=None,
        ge=1,
        le=500,
        description="Maximum number of candles to return (1-500).",
    )


class GetExchangesInput(_BaseModel):
    pass


class GetMarketsInput(_BaseModel):
    exchange: ExchangeId
    quote: str | None = Field(
        default=None,
        min_length=1,
        description="Only include markets quoted in this currency, e.g. USDT.",
    )
    limit: int = Field(
        default=50,
        ge=1,
        le=100,
        description="Maximum number of markets to return (1-100).",
    )


class AnalyzePriceMovementInput(_BaseModel):
    exchange: ExchangeId
    symbol: TradingSymbol


class AnalyzeOhlcvInput(_BaseModel):
    exchange: ExchangeId
    symbol: TradingSymbol
    interval: HistoryInterval | None = Field(
        default=None,
        description="Candle interval (default 1h).",
    )
    period: str | None = Field(
        default=None,
        description="Lookback window such as 24h, 7d or 90m (default 24h).",
    )


class CompareExchangesInput(_BaseModel):
    symbol: TradingSymbol
    exchanges: str | None = Field(
        default=None,
        description="Comma-separated exchange ids (default binance,coinbase,kraken).",
    )


# Handler results


class ToolResponse(_BaseModel):
    text: str
    is_error: bool = False


class PromptResponse(_BaseModel):
    text: str
    description: str | None = None
    is_error: bool = False


class ResourceResponse(_BaseModel):
    uri: str
    text: str
    mime_type: str = "text/plain"
