from __future__ import annotations

import re

from pydantic import ValidationError

from .exceptions import LuziaValidationError

PERIOD_PATTERN = re.compile(r"^(\d+)(m|h|d)$")

PERIOD_UNIT_MS = {
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
}

DEFAULT_PERIOD = "24h"
DEFAULT_INTERVAL = "1h"
DEFAULT_COMPARE_EXCHANGES = ("binance", "coinbase", "kraken")


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten pydantic errors into ``field: message`` pairs."""

    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])
    return ", ".join(messages)


def normalize_period(period: str | None) -> str:
    """Return a valid lookback such as ``24h`` or ``7d``, falling back to 24 hours."""

    candidate = (period or "").strip().lower()
    if PERIOD_PATTERN.fullmatch(candidate):
        return candidate
    return DEFAULT_PERIOD


def parse_period(period: str | None) -> int:
    """Convert a lookback into milliseconds."""

    amount, unit = PERIOD_PATTERN.fullmatch(normalize_period(period)).groups()
    return int(amount) * PERIOD_UNIT_MS[unit]


def parse_exchange_list(raw_exchanges: str | None) -> list[str]:
    """Split a comma-separated exchange list, defaulting to the major venues."""

    if not raw_exchanges or not raw_exchanges.strip():
        return list(DEFAULT_COMPARE_EXCHANGES)

    exchanges = [item.strip().lower() for item in raw_exchanges.split(",")]
    exchanges = [item for item in exchanges if item]
    if not exchanges:
        raise LuziaValidationError("At least one exchange must be listed.")
    return exchanges
