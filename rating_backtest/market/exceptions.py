"""Market-data exceptions.

Raised by the price-history API client. Callers in the backtesting layer
catch MarketDataError per ticker and degrade to an empty result.
"""

from __future__ import annotations

from rating_backtest.common.exceptions import RatingBacktestError


class MarketDataError(RatingBacktestError):
    """Base exception for all market-data errors."""


class FetchError(MarketDataError):
    """Raised when an API fetch fails after all retries."""


class ParseError(MarketDataError):
    """Raised when an API response has unexpected structure."""
