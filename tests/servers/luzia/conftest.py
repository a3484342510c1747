from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from servers.luzia.api_client import LuziaApiClient, reset_api_client
from servers.luzia.config import Settings, get_settings
from servers.luzia.context import AppContext
from servers.luzia.schemas import OhlcvCandle, Ticker


def make_ticker(**overrides: Any) -> Ticker:
    payload: dict[str, Any] = {
        "symbol": "BTC/USDT",
        "exchange": "binance",
        "last": 65000.0,
        "bid": 64990.0,
        "ask": 65010.0,
        "high": 66000.0,
        "low": 64000.0,
        "open": 64500.0,
        "volume": 1234.5,
        "quoteVolume": 80_000_000.0,
        "change": 500.0,
        "changePercent": 0.78,
        "timestamp": "2024-05-01T12:00:00.000Z",
    }
    payload.update(overrides)
    return Ticker.model_validate(payload)


def make_candle(timestamp: int, open_: float, close: float, volume: float = 100.0, **extra: Any) -> OhlcvCandle:
    return OhlcvCandle(
        timestamp=timestamp,
        open=open_,
        high=extra.pop("high", max(open_, close) + 1),
        low=extra.pop("low", min(open_, close) - 1),
        close=close,
        volume=volume,
        **extra,
    )


@pytest.fixture
def mock_client() -> MagicMock:
    """Pricing API client whose async methods are AsyncMocks."""
    return MagicMock(spec=LuziaApiClient)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        api_key="test-key",
        api_url="https://api.luzia.test",
        environment="test",
    )


@pytest.fixture
def app_context(mock_client: MagicMock, test_settings: Settings) -> AppContext:
    return AppContext.for_testing(mock_client, settings=test_settings)


@pytest.fixture(autouse=True)
def _isolate_cached_state():
    get_settings.cache_clear()
    reset_api_client()
    yield
    get_settings.cache_clear()
    reset_api_client()
