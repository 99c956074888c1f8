"""Backtesting module — scoring rating calls against realized prices.

Two modes share one fetch/selection substrate:
    - run-test: directional BUY/SELL hit rates over period boundaries
    - target backtest: monthly banded scoring against close and intramonth range

Both run under a RunController that allows one active run at a time and
supports cooperative cancellation.
"""

from __future__ import annotations

from rating_backtest.backtesting.exceptions import (
    InvalidRunRequestError,
    RunAlreadyActiveError,
    RunCancelledError,
    RunFailedError,
)
from rating_backtest.backtesting.pipeline import run_hit_test, run_target_backtest
from rating_backtest.backtesting.run_control import RunContext, RunController

__all__ = [
    "InvalidRunRequestError",
    "RunAlreadyActiveError",
    "RunCancelledError",
    "RunContext",
    "RunController",
    "RunFailedError",
    "run_hit_test",
    "run_target_backtest",
]
