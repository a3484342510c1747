from __future__ import annotations

import math

import pytest

from servers.luzia.formatting import (
    format_change,
    format_percent,
    format_price,
    format_text,
    format_timestamp,
    format_trend,
    format_usd,
    format_volume,
)

ODD_VALUES = [None, 0, 0.0, -0.0, -42.5, 1e20, -1e20, math.inf, -math.inf, math.nan]


@pytest.mark.parametrize("value", ODD_VALUES)
def test_formatters_never_raise(value):
    for formatter in (format_price, format_usd, format_volume, format_percent, format_trend, format_timestamp):
        assert isinstance(formatter(value), str)
    assert isinstance(format_change(value, value), str)


@pytest.mark.parametrize(
    "formatter",
    [format_price, format_usd, format_volume, format_percent, format_trend, format_timestamp, format_text],
)
def test_missing_values_render_as_not_available(formatter):
    assert formatter(None) == "N/A"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (1234.5, "1,234.50"),
        (0.00012345, "0.00012345"),
        (65000, "65,000.00"),
        (0, "0.00"),
        (-3.14159, "-3.14159"),
    ],
)
def test_format_price(value, expected):
    assert format_price(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (65000.5, "$65,000.5"),
        (1000, "$1,000"),
        (1.5, "$1.50"),
        (0.5, "$0.500000"),
    ],
)
def test_format_usd(value, expected):
    assert format_usd(value) == expected


@pytest.mark.parametrize(
    ("value", "prefix", "expected"),
    [
        (1_500_000, "", "1.50M"),
        (2_500_000_000, "$", "$2.50B"),
        (12_346, "", "12.35K"),
        (999, "", "999.00"),
    ],
)
def test_format_volume(value, prefix, expected):
    assert format_volume(value, prefix=prefix) == expected


def test_format_percent_is_signed():
    assert format_percent(2.5) == "+2.50%"
    assert format_percent(-1.234) == "-1.23%"
    assert format_percent(0) == "+0.00%"
    assert format_percent(-0.0) == "+0.00%"
    assert format_percent(1.23456, digits=3) == "+1.235%"


def test_format_change_shows_direction():
    assert format_change(100, 2.5) == "+2.50% 📈 (+100.00)"
    assert format_change(-100, -2.5) == "-2.50% 📉 (-100.00)"
    assert format_change(None, 1.0) == "+1.00% 📈 (N/A)"
    assert format_change(5, None) == "N/A"


def test_format_trend_marks_direction():
    assert format_trend(3.0) == "🟢 +3.00%"
    assert format_trend(-0.5) == "🔴 -0.50%"


def test_format_timestamp_uses_utc():
    assert format_timestamp(1_700_000_000_000) == "2023-11-14 22:13:20Z"
    assert format_timestamp(0) == "1970-01-01 00:00:00Z"


def test_format_timestamp_falls_back_to_raw_value():
    assert format_timestamp(1e20) == str(1e20)


def test_format_text():
    assert format_text("") == "N/A"
    assert format_text("2024-05-01T12:00:00.000Z") == "2024-05-01T12:00:00.000Z"
