"""Decision oracle — rating calls from the analyzer service.

Orchestrates: HTTP call → response parsing → rating normalization → memoized cache.
"""

from __future__ import annotations

from rating_backtest.oracle.client import OracleClient, parse_decision
from rating_backtest.oracle.exceptions import DecisionError, OracleConnectionError, OracleError
from rating_backtest.oracle.provider import DecisionProvider

__all__ = [
    "DecisionError",
    "DecisionProvider",
    "OracleClient",
    "OracleConnectionError",
    "OracleError",
    "parse_decision",
]
