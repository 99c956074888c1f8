"""Tests for run request / selector / target config schemas."""

from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError

from rating_backtest.backtesting.schemas import (
    DEFAULT_TARGET_TICKERS,
    RunRequest,
    SelectorConfig,
    TargetBacktestConfig,
)
from rating_backtest.common.config import get_settings


class TestSelectorConfig:
    def test_defaults(self):
        config = SelectorConfig()
        assert config.type == "return"
        assert config.top_n == 50
        assert config.sectors == []

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(0, 50), ("", 50), (None, 50), (-5, 1), (9999, 500), ("25", 25)],
    )
    def test_top_n_clamped(self, raw, expected):
        assert SelectorConfig(topN=raw).top_n == expected

    @pytest.fixture
    def top_n_env(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_TOP_N", "20")
        monkeypatch.setenv("MAX_TOP_N", "100")
        get_settings.cache_clear()
        yield
        monkeypatch.undo()
        get_settings.cache_clear()

    @pytest.mark.parametrize(("raw", "expected"), [(None, 20), (0, 20), (250, 100), (40, 40)])
    def test_top_n_follows_settings(self, top_n_env, raw, expected):
        assert SelectorConfig(topN=raw).top_n == expected

    def test_default_top_n_follows_settings(self, top_n_env):
        assert SelectorConfig().top_n == 20

    def test_camel_aliases_and_blank_dates(self):
        config = SelectorConfig.model_validate(
            {"type": "return", "from": "2024-01-01", "to": "", "asOf": ""}
        )
        assert config.from_date == date(2024, 1, 1)
        assert config.to_date is None
        assert config.as_of is None

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            SelectorConfig(type="momentum")


class TestRunRequest:
    def test_from_wire_shape(self):
        request = RunRequest.model_validate(
            {
                "startDate": "2024-01-01",
                "endDate": "2024-12-01",
                "interval": "quarter",
                "selector": {"type": "mcap_asof", "asOf": "2024-01-01", "topN": 10},
            }
        )
        assert request.interval == "quarter"
        assert request.selector.as_of == date(2024, 1, 1)
        assert request.selector.top_n == 10

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError, match="end_date"):
            RunRequest(start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))

    def test_missing_dates_rejected(self):
        with pytest.raises(ValidationError):
            RunRequest.model_validate({"interval": "month"})


class TestTargetBacktestConfig:
    def test_defaults(self):
        config = TargetBacktestConfig()
        assert config.tickers == DEFAULT_TARGET_TICKERS
        assert config.start_date == date(2024, 1, 1)
        assert config.end_date == date(2025, 11, 1)
        assert config.lookahead_days is None

    def test_ticker_string_split_and_uppercased(self):
        assert TargetBacktestConfig(tickers=" nvda, aapl ,,").tickers == ["NVDA", "AAPL"]

    def test_default_list_not_shared(self):
        config = TargetBacktestConfig()
        config.tickers.append("XOM")
        assert "XOM" not in TargetBacktestConfig().tickers
