"""Tests for price-history payload normalization."""

from __future__ import annotations

import math
from datetime import date

import pytest

from rating_backtest.market.exceptions import ParseError
from rating_backtest.market.normalizer import (
    extract_rows,
    normalize_constituents,
    normalize_daily_bars,
    normalize_market_caps,
    parse_date,
    to_float,
)


class TestExtractRows:
    def test_bare_list(self):
        assert extract_rows([{"a": 1}, "junk"]) == [{"a": 1}]

    def test_historical_wrapper(self):
        assert extract_rows({"symbol": "NVDA", "historical": [{"a": 1}]}) == [{"a": 1}]

    def test_empty_object_is_no_rows(self):
        assert extract_rows({}) == []

    def test_object_without_rows_raises(self):
        with pytest.raises(ParseError):
            extract_rows({"Error Message": "Invalid API KEY"})

    def test_scalar_raises(self):
        with pytest.raises(ParseError):
            extract_rows("nope")


class TestScalars:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("1.5", 1.5), (2, 2.0), (None, None), ("abc", None), (True, None), (math.inf, None)],
    )
    def test_to_float(self, value, expected):
        assert to_float(value) == expected

    def test_to_float_nan(self):
        assert to_float(float("nan")) is None

    def test_parse_date_takes_leading_iso(self):
        assert parse_date("2024-03-01 00:00:00") == date(2024, 3, 1)

    def test_parse_date_rejects_garbage(self):
        assert parse_date("03/01/2024") is None
        assert parse_date(None) is None


class TestNormalizeDailyBars:
    def test_sorted_and_close_fallbacks(self):
        payload = [
            {"date": "2024-01-03", "adjClose": 11.0},
            {"date": "2024-01-02", "close": 10.0, "high": 10.5, "low": 9.5},
            {"date": "2024-01-04", "price": 12.0},
        ]
        points = normalize_daily_bars(payload)
        assert [p.date for p in points] == [date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 4)]
        assert [p.close for p in points] == [10.0, 11.0, 12.0]
        assert points[0].high == 10.5
        assert points[1].high is None

    def test_close_preferred_over_adj_close(self):
        points = normalize_daily_bars([{"date": "2024-01-02", "close": 10.0, "adjClose": 9.0}])
        assert points[0].close == 10.0

    def test_drops_bad_rows(self):
        payload = [
            {"date": "2024-01-02", "close": "NaN"},
            {"date": None, "close": 1.0},
            {"close": 1.0},
            {"date": "2024-01-03", "close": 5.0},
        ]
        assert [p.close for p in normalize_daily_bars(payload)] == [5.0]

    def test_duplicate_dates_last_wins(self):
        payload = [
            {"date": "2024-01-02", "close": 1.0},
            {"date": "2024-01-02", "close": 2.0},
        ]
        points = normalize_daily_bars(payload)
        assert len(points) == 1
        assert points[0].close == 2.0


class TestNormalizeMarketCaps:
    def test_field_fallbacks(self):
        payload = [
            {"symbol": "aapl", "marketCap": 3e12},
            {"symbol": "MSFT", "marketcap": 2.9e12},
            {"symbol": "NVDA", "market_cap": 2.5e12, "date": "2024-05-01"},
            {"symbol": "BAD", "marketCap": None},
        ]
        caps = normalize_market_caps(payload)
        assert [c.symbol for c in caps] == ["AAPL", "MSFT", "NVDA"]
        assert caps[2].as_of == date(2024, 5, 1)

    def test_default_symbol_for_single_symbol_series(self):
        caps = normalize_market_caps([{"date": "2024-01-02", "marketCap": 1e9}], default_symbol="xom")
        assert caps[0].symbol == "XOM"


class TestNormalizeConstituents:
    def test_uppercases_and_keeps_sector(self):
        payload = [{"symbol": "nvda", "sector": "Technology"}, {"symbol": "XOM"}, {"name": "x"}]
        result = normalize_constituents(payload)
        assert [(c.symbol, c.sector) for c in result] == [("NVDA", "Technology"), ("XOM", "")]
