"""Tests for the exception hierarchy and context redaction."""

from __future__ import annotations

import pytest

from rating_backtest.backtesting.exceptions import (
    BacktestError,
    InsufficientDataError,
    InvalidRunRequestError,
    RunCancelledError,
    RunFailedError,
)
from rating_backtest.common.exceptions import ConfigurationError, RatingBacktestError
from rating_backtest.common.schemas import UsageSummary
from rating_backtest.market.exceptions import FetchError, MarketDataError, ParseError
from rating_backtest.oracle.exceptions import DecisionError, OracleError


class TestRatingBacktestError:
    def test_message_without_context(self):
        assert str(RatingBacktestError("boom")) == "boom"

    def test_context_rendered(self):
        err = RatingBacktestError("boom", context={"ticker": "NVDA"})
        assert "ticker" in str(err)
        assert err.context == {"ticker": "NVDA"}

    def test_secret_context_redacted(self):
        err = RatingBacktestError("boom", context={"apikey": "s3cret", "path": "x"})
        rendered = str(err)
        assert "s3cret" not in rendered
        assert "[REDACTED]" in rendered


class TestHierarchy:
    @pytest.mark.parametrize(
        ("cls", "base"),
        [
            (ConfigurationError, RatingBacktestError),
            (FetchError, MarketDataError),
            (ParseError, MarketDataError),
            (DecisionError, OracleError),
            (InvalidRunRequestError, BacktestError),
            (InsufficientDataError, InvalidRunRequestError),
            (RunCancelledError, BacktestError),
        ],
    )
    def test_subclassing(self, cls, base):
        assert issubclass(cls, base)

    def test_cancelled_not_a_failure(self):
        assert not issubclass(RunCancelledError, RunFailedError)


class TestDecisionError:
    def test_carries_fields_and_truncates_body(self):
        err = DecisionError("NVDA", "2024-01-01", 502, "x" * 500)
        assert err.ticker == "NVDA"
        assert err.date == "2024-01-01"
        assert err.status == 502
        assert len(err.body) == 200
        assert "502" in str(err)


class TestRunErrorsCarryUsage:
    def test_cancelled_default_message(self):
        err = RunCancelledError()
        assert str(err) == "Run cancelled"
        assert err.usage is None

    def test_failed_with_usage(self):
        usage = UsageSummary(calls=3, cost=0.01)
        err = RunFailedError("bad", usage=usage)
        assert err.usage.calls == 3
