"""HTTP client for the Luzia pricing API.

Every outbound request goes through ``LuziaApiClient._request`` which:
- injects the bearer token (except on the public exchanges listing)
- drops unset query parameters
- turns any non-2xx answer into a classified ``ApiError``

Trading pairs are written ``BASE/QUOTE`` by users and ``BASE-QUOTE`` in
upstream URLs; ``symbol_to_url`` and ``symbol_from_url`` convert between them.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Mapping

import httpx

from .exceptions import ApiError
from .schemas import Exchange, ExchangeList, MarketPage, OhlcvResponse, Ticker, TickerPage

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger(__name__)

API_PREFIX = "/v1"


def symbol_to_url(symbol: str) -> str:
    """Convert ``BTC/USDT`` to the URL form ``BTC-USDT``."""
    return symbol.replace("/", "-", 1)


def symbol_from_url(symbol: str) -> str:
    """Convert the URL form ``BTC-USDT`` back to ``BTC/USDT``."""
    return symbol.replace("-", "/", 1)


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class LuziaApiClient:
    """Async client for the Luzia pricing API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def __repr__(self) -> str:
        return f"LuziaApiClient(base_url={self.base_url!r})"

    async def _request(
        self,
        path: str,
        *,
        auth: bool = True,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        query = {
            key: _query_value(value)
            for key, value in (params or {}).items()
            if value is not None
        }
        headers = {"Content-Type": "application/json"}
        if auth:
            headers["Authorization"] = f"Bearer {self._api_key}"

        logger.debug(f"GET {path} params={query}")
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            response = await client.get(f"{API_PREFIX}{path}", params=query, headers=headers)

        if not response.is_success:
            error = self._to_api_error(response)
            logger.warning(
                f"Pricing API request failed: path={path}, status={error.status}, "
                f"message={error.message}, details={error.details}"
            )
            raise error

        return response.json()

    @staticmethod
    def _to_api_error(response: httpx.Response) -> ApiError:
        message = response.reason_phrase or f"HTTP {response.status_code}"
        details: str | None = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("error") or message
            details = body.get("message")
        return ApiError(response.status_code, str(message), None if details is None else str(details))

    async def get_ticker(self, exchange: str, symbol: str) -> Ticker | None:
        """Fetch one ticker, returning None when the pair is unknown upstream."""
        path = f"/ticker/{exchange.lower()}/{symbol_to_url(symbol)}"
        try:
            data = await self._request(path)
        except ApiError as exc:
            if exc.is_not_found():
                return None
            raise
        return Ticker.model_validate(data)

    async def get_tickers(
        self,
        exchange: str,
        *,
        limit: int | None = None,
        offset: int | None = None,
    ) -> TickerPage:
        """List every ticker of one exchange."""
        data = await self._request(
            f"/tickers/{exchange.lower()}",
            params={"limit": limit, "offset": offset},
        )
        return TickerPage.model_validate(data)

    async def get_tickers_filtered(
        self,
        *,
        exchange: str | None = None,
        symbols: list[str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> TickerPage:
        """List tickers across exchanges, optionally narrowed by exchange and pairs."""
        params: dict[str, Any] = {
            "exchange": exchange.lower() if exchange else None,
            "symbols": None,
            "limit": limit,
            "offset": offset,
        }
        if symbols:
            params["symbols"] = ",".join(symbol_to_url(s.upper()) for s in symbols)
        data = await self._request("/tickers", params=params)
        return TickerPage.model_validate(data)

    async def get_history(
        self,
        exchange: str,
        symbol: str,
        *,
        interval: str | None = None,
        start: int | None = None,
        end: int | None = None,
        limit: int | None = None,
    ) -> OhlcvResponse:
        """Fetch OHLCV candles for one pair."""
        data = await self._request(
            f"/history/{exchange.lower()}/{symbol_to_url(symbol)}",
            params={"interval": interval, "start": start, "end": end, "limit": limit},
        )
        return OhlcvResponse.model_validate(data)

    async def get_exchanges(self) -> list[Exchange]:
        """List supported exchanges. This endpoint is public."""
        data = await self._request("/exchanges", auth=False)
        return ExchangeList.model_validate(data).exchanges

    async def get_markets(
        self,
        exchange: str,
        *,
        base: str | None = None,
        quote: str | None = None,
        active: bool | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> MarketPage:
        """List trading pairs listed on an exchange."""
        data = await self._request(
            f"/markets/{exchange.lower()}",
            params={
                "base": base.upper() if base else None,
                "quote": quote.upper() if quote else None,
                "active": active,
                "limit": limit,
                "offset": offset,
            },
        )
        return MarketPage.model_validate(data)


@lru_cache(maxsize=1)
def _shared_client(base_url: str, api_key: str, timeout: float) -> LuziaApiClient:
    return LuziaApiClient(base_url, api_key, timeout=timeout)


def get_api_client(settings: Settings) -> LuziaApiClient:
    """Return the process-wide client for the configured API."""

    return _shared_client(settings.api_url, settings.api_key, settings.request_timeout)


def reset_api_client() -> None:
    """Discard the shared client so the next call builds a fresh one."""

    _shared_client.cache_clear()
