"""Decision-oracle exceptions."""

from __future__ import annotations

from rating_backtest.common.exceptions import RatingBacktestError


class OracleError(RatingBacktestError):
    """Base exception for all decision-oracle errors."""


class DecisionError(OracleError):
    """The oracle answered a decision request with a non-2xx status.

    Carries the ticker, date, HTTP status and a short body snippet so the
    failing call can be identified from the run's error report.
    """

    def __init__(
        self,
        ticker: str,
        date: str,
        status: int | None,
        body: str = "",
    ) -> None:
        self.ticker = ticker
        self.date = date
        self.status = status
        self.body = body[:200]
        super().__init__(
            f"Analyzer {status} for {ticker} @ {date}",
            context={"ticker": ticker, "date": date, "status": status, "body": self.body},
        )


class OracleConnectionError(OracleError):
    """Network failure or timeout talking to the oracle."""
