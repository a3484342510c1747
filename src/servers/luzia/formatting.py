"""Number and time formatting for markdown output.

Every formatter accepts ``None`` (rendered as ``N/A``) as well as zero,
negative, very large, NaN and infinite values without raising.
"""

from __future__ import annotations

from datetime import datetime, timezone

NOT_AVAILABLE = "N/A"


def format_decimal(value: float, min_digits: int, max_digits: int) -> str:
    """Group thousands and keep between ``min_digits`` and ``max_digits`` decimals."""

    text = f"{value:,.{max_digits}f}"
    if "." not in text:
        return text
    whole, fraction = text.split(".", 1)
    fraction = fraction.rstrip("0").ljust(min_digits, "0")
    return f"{whole}.{fraction}" if fraction else whole


def format_price(value: float | None) -> str:
    if value is None:
        return NOT_AVAILABLE
    return format_decimal(value, 2, 8)


def format_usd(value: float | None) -> str:
    """Compact dollar price for tables."""
    if value is None:
        return NOT_AVAILABLE
    if value >= 1000:
        return f"${format_decimal(value, 0, 2)}"
    if value >= 1:
        return f"${value:.2f}"
    return f"${value:.6f}"


def format_volume(value: float | None, prefix: str = "") -> str:
    if value is None:
        return NOT_AVAILABLE
    if value >= 1e9:
        return f"{prefix}{value / 1e9:.2f}B"
    if value >= 1e6:
        return f"{prefix}{value / 1e6:.2f}M"
    if value >= 1e3:
        return f"{prefix}{value / 1e3:.2f}K"
    return f"{prefix}{value:.2f}"


def format_percent(value: float | None, digits: int = 2) -> str:
    if value is None:
        return NOT_AVAILABLE
    if value == 0:
        value = 0.0  # no "+-0.00%"
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.{digits}f}%"


def format_change(change: float | None, change_percent: float | None) -> str:
    """Percent move with a direction arrow and the absolute change."""
    if change_percent is None:
        return NOT_AVAILABLE
    arrow = "📈" if change_percent >= 0 else "📉"
    amount = format_price(change)
    if change is not None and change >= 0:
        amount = f"+{amount}"
    return f"{format_percent(change_percent)} {arrow} ({amount})"


def format_trend(change_percent: float | None) -> str:
    """Coloured marker and percent move for table cells."""
    if change_percent is None:
        return NOT_AVAILABLE
    marker = "🟢" if change_percent >= 0 else "🔴"
    return f"{marker} {format_percent(change_percent)}"


def format_timestamp(epoch_ms: float | None) -> str:
    """Render epoch milliseconds as ``YYYY-MM-DD HH:MM:SSZ`` in UTC."""
    if epoch_ms is None:
        return NOT_AVAILABLE
    try:
        moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return str(epoch_ms)
    return moment.strftime("%Y-%m-%d %H:%M:%SZ")


def format_text(value: str | None) -> str:
    return value if value else NOT_AVAILABLE
