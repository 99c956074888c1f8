"""Tests for PriceSeriesStore lookups."""

from __future__ import annotations

from datetime import date

import pytest

from rating_backtest.backtesting.store import PriceSeriesStore
from tests.factories import make_series


@pytest.fixture
def store() -> PriceSeriesStore:
    s = PriceSeriesStore()
    s.put(
        "nvda",
        make_series(
            [
                (date(2024, 1, 10), 30.0, 31.0, 29.0),
                (date(2024, 1, 2), 10.0, 11.0, 9.0),
                (date(2024, 1, 5), 20.0, 22.0, 19.0),
            ]
        ),
    )
    return s


class TestCloseOnOrBefore:
    def test_before_first_point_is_none(self, store):
        assert store.close_on_or_before("NVDA", date(2024, 1, 1)) is None

    def test_exactly_first_point(self, store):
        assert store.close_on_or_before("NVDA", date(2024, 1, 2)) == 10.0

    def test_between_points_takes_earlier(self, store):
        assert store.close_on_or_before("NVDA", date(2024, 1, 7)) == 20.0

    def test_exactly_last_point(self, store):
        assert store.close_on_or_before("NVDA", date(2024, 1, 10)) == 30.0

    def test_after_last_point(self, store):
        assert store.close_on_or_before("NVDA", date(2025, 1, 1)) == 30.0

    def test_unknown_ticker(self, store):
        assert store.close_on_or_before("AAPL", date(2024, 1, 5)) is None

    def test_empty_series(self):
        s = PriceSeriesStore()
        s.put("XOM", [])
        assert "XOM" in s
        assert s.close_on_or_before("XOM", date(2024, 1, 5)) is None


class TestOtherLookups:
    def test_put_sorts_and_uppercases(self, store):
        assert store.tickers() == ["NVDA"]
        assert [p.date.day for p in store.get("nvda")] == [2, 5, 10]

    def test_get_returns_copy(self, store):
        store.get("NVDA").clear()
        assert len(store.get("NVDA")) == 3

    def test_close_on_exact_only(self, store):
        assert store.close_on("NVDA", date(2024, 1, 5)) == 20.0
        assert store.close_on("NVDA", date(2024, 1, 6)) is None

    def test_first_close_from_searches_forward(self, store):
        assert store.first_close_from("NVDA", date(2024, 1, 6), 7) == (30.0, date(2024, 1, 10))

    def test_first_close_from_respects_lookahead(self, store):
        assert store.first_close_from("NVDA", date(2024, 1, 6), 3) == (None, None)

    def test_window_inclusive(self, store):
        points = store.window("NVDA", date(2024, 1, 2), date(2024, 1, 5))
        assert [p.close for p in points] == [10.0, 20.0]
