"""Readable MCP resources.

Two URI shapes are recognized:
- ``luzia://exchanges``: exchange ids, live-fetched with a static fallback
- ``luzia://ticker/{exchange}/{symbol}``: one ticker as JSON, with the
  symbol written in URL form (``BTC-USDT``)

Anything else reads as an ``Unknown resource`` text body.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING

import httpx

from .api_client import symbol_from_url
from .exceptions import ApiError
from .outcomes import Found, NotFound, capture
from .schemas import ResourceResponse

if TYPE_CHECKING:
    from .api_client import LuziaApiClient

logger = logging.getLogger(__name__)

EXCHANGES_URI = "luzia://exchanges"
TICKER_URI_TEMPLATE = "luzia://ticker/{exchange}/{symbol}"
TICKER_URI_PATTERN = re.compile(r"^luzia://ticker/([^/]+)/([^/]+)$")

FALLBACK_EXCHANGES = ("binance", "coinbase", "kraken")

JSON_MIME_TYPE = "application/json"
TEXT_MIME_TYPE = "text/plain"


async def read_exchanges(client: LuziaApiClient) -> ResourceResponse:
    """Return the supported exchange ids as JSON."""
    try:
        exchange_ids = [exchange.id for exchange in await client.get_exchanges()]
    except (ApiError, httpx.HTTPError, ValueError) as exc:
        logger.warning(f"Falling back to the default exchange list: {exc}")
        exchange_ids = list(FALLBACK_EXCHANGES)

    return ResourceResponse(
        uri=EXCHANGES_URI,
        text=json.dumps({"exchanges": exchange_ids}, indent=2),
        mime_type=JSON_MIME_TYPE,
    )


async def read_ticker(client: LuziaApiClient, exchange: str, url_symbol: str) -> ResourceResponse:
    """Return one ticker as JSON, or a plain-text notice when it is unavailable."""
    uri = TICKER_URI_TEMPLATE.format(exchange=exchange, symbol=url_symbol)
    symbol = symbol_from_url(url_symbol)

    outcome = await capture(client.get_ticker(exchange, symbol))
    if isinstance(outcome, Found):
        return ResourceResponse(
            uri=uri,
            text=outcome.value.model_dump_json(by_alias=True, indent=2),
            mime_type=JSON_MIME_TYPE,
        )
    if isinstance(outcome, NotFound):
        return ResourceResponse(uri=uri, text=f"Ticker not found for {symbol} on {exchange}")
    return ResourceResponse(uri=uri, text=f"Error fetching ticker for {symbol} on {exchange}")


async def read_resource(client: LuziaApiClient, uri: str) -> ResourceResponse:
    """Route a resource URI to its reader."""
    if uri == EXCHANGES_URI:
        return await read_exchanges(client)

    match = TICKER_URI_PATTERN.match(uri)
    if match is not None:
        exchange, url_symbol = match.groups()
        return await read_ticker(client, exchange, url_symbol)

    return ResourceResponse(uri=uri, text=f"Unknown resource: {uri}", mime_type=TEXT_MIME_TYPE)
