"""Memoizing decision provider.

Sits in front of OracleClient and guarantees at most one external call per
distinct (ticker, date) for the lifetime of the provider instance. The
provider is created once per process and injected into each run; it is
never a module-level global.

Concurrent callers asking for the same key while the first call is in
flight wait on a per-key lock and then read the cached result. Failed
calls are not cached, so a later run may retry them.

Usage accounting: when a fresh decision carries usage telemetry (even an
empty dict) it is folded into the requesting run's accumulator. Cache
hits add nothing.
"""

from __future__ import annotations

import asyncio
from datetime import date
from typing import TYPE_CHECKING

from rating_backtest.common.logging import get_logger
from rating_backtest.common.metrics import DECISION_CACHE_TOTAL
from rating_backtest.common.schemas import Decision
from rating_backtest.oracle.client import OracleClient

if TYPE_CHECKING:
    from rating_backtest.backtesting.run_control import RunContext

logger = get_logger("ORACLE")

DecisionKey = tuple[str, date]


class DecisionProvider:
    """Unbounded (ticker, date) → Decision cache backed by the oracle.

    Args:
        client: Oracle client used on cache misses.
    """

    def __init__(self, client: OracleClient) -> None:
        self.client = client
        self._cache: dict[DecisionKey, Decision] = {}
        self._inflight: dict[DecisionKey, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def peek(self, ticker: str, day: date) -> Decision | None:
        """Return the cached decision without calling the oracle."""
        return self._cache.get((ticker.upper(), day))

    def clear(self) -> None:
        """Drop every cached decision."""
        self._cache.clear()

    async def get_decision(
        self,
        ticker: str,
        day: date,
        run: RunContext | None = None,
    ) -> Decision:
        """Return the decision for (ticker, date), calling the oracle on a miss.

        Args:
            ticker: Ticker symbol (case-insensitive).
            day: Decision date.
            run: Run whose usage accumulator receives fresh telemetry.

        Raises:
            DecisionError: The oracle answered non-2xx.
            OracleConnectionError: The oracle could not be reached.
        """
        key = (ticker.upper(), day)
        cached = self._cache.get(key)
        if cached is not None:
            DECISION_CACHE_TOTAL.labels(result="hit").inc()
            return cached

        lock = self._inflight.setdefault(key, asyncio.Lock())
        async with lock:
            cached = self._cache.get(key)
            if cached is not None:
                DECISION_CACHE_TOTAL.labels(result="hit").inc()
                return cached

            DECISION_CACHE_TOTAL.labels(result="miss").inc()
            try:
                decision = await self.client.analyze(key[0], day)
            finally:
                if self._inflight.get(key) is lock:
                    del self._inflight[key]
            self._cache[key] = decision

        if run is not None and decision.usage is not None:
            run.usage.apply(decision.usage)

        logger.debug(
            "Decision cached",
            extra={
                "data": {
                    "ticker": key[0],
                    "date": day.isoformat(),
                    "rating": decision.rating,
                    "cache_size": len(self._cache),
                }
            },
        )
        return decision
