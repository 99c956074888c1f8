"""Backtesting-specific exceptions.

Cancellation and the single-active-run rejection are distinguished
signals, not faults: callers match on RunCancelledError and
RunAlreadyActiveError explicitly and must never fold them into a generic
error handler.
"""

from __future__ import annotations

from rating_backtest.common.exceptions import RatingBacktestError
from rating_backtest.common.schemas import UsageSummary


class BacktestError(RatingBacktestError):
    """General backtesting error."""


class InvalidRunRequestError(BacktestError):
    """Run parameters failed validation; the run never started."""


class InsufficientDataError(InvalidRunRequestError):
    """Fewer than two period boundaries, so no evaluation period exists."""


class RunAlreadyActiveError(BacktestError):
    """A run was requested while another one is still active."""


class RunCancelledError(BacktestError):
    """The active run observed its cancellation flag and unwound.

    Attributes:
        usage: Usage accumulated before the cancellation was observed.
            Filled in by the pipeline when the run is finalized.
    """

    def __init__(
        self,
        message: str = "Run cancelled",
        context: dict | None = None,
        usage: UsageSummary | None = None,
    ) -> None:
        super().__init__(message, context)
        self.usage = usage


class RunFailedError(BacktestError):
    """An unexpected failure ended the run; partial usage is attached."""

    def __init__(
        self,
        message: str,
        context: dict | None = None,
        usage: UsageSummary | None = None,
    ) -> None:
        super().__init__(message, context)
        self.usage = usage
