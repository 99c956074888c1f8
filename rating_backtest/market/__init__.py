"""Market data — price-history API client, payload normalization, rate limiting.

Fetches daily bars, market capitalizations and the S&P 500 constituent list
from Financial Modeling Prep.
"""

from __future__ import annotations

from rating_backtest.market.exceptions import FetchError, MarketDataError, ParseError
from rating_backtest.market.fmp import FmpClient

__all__ = ["FetchError", "FmpClient", "MarketDataError", "ParseError"]
