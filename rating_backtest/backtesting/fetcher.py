"""Parallel price-series fetcher.

Populates a PriceSeriesStore with the full daily history of every chosen
ticker. Work is spread over `settings.price_workers` workers sharing one
index. A ticker whose fetch fails (network error, bad status, malformed
payload) gets an empty series and the batch continues; only cancellation
stops the batch.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from rating_backtest.backtesting.run_control import RunContext
from rating_backtest.backtesting.store import PriceSeriesStore
from rating_backtest.backtesting.workers import run_worker_pool
from rating_backtest.common.config import get_settings
from rating_backtest.common.logging import get_logger
from rating_backtest.common.schemas import PricePoint
from rating_backtest.market.exceptions import MarketDataError

logger = get_logger("FETCH")


class PriceHistorySource(Protocol):
    async def get_daily_history(self, symbol: str) -> list[PricePoint]: ...


class PriceSeriesFetcher:
    """Fetches full histories for many tickers under bounded concurrency.

    Args:
        source: Anything with `get_daily_history(symbol)` (normally FmpClient).
        workers: Pool size. Defaults to settings.price_workers.
    """

    def __init__(self, source: PriceHistorySource, workers: int | None = None) -> None:
        self.source = source
        self.workers = workers or get_settings().price_workers

    async def fetch_all(
        self,
        tickers: Iterable[str],
        run: RunContext,
        store: PriceSeriesStore | None = None,
    ) -> PriceSeriesStore:
        """Fetch every ticker's history into a store.

        Args:
            tickers: Symbols to fetch; duplicates are fetched once.
            run: Active run; checked before each ticker is claimed.
            store: Store to fill. A new one is created when omitted.

        Returns:
            The filled store. Every requested ticker has an entry, empty
            when its fetch failed.

        Raises:
            RunCancelledError: The run was cancelled mid-batch.
        """
        store = store if store is not None else PriceSeriesStore()
        unique = list(dict.fromkeys(t.upper() for t in tickers))
        failures: list[str] = []

        async def fetch_one(ticker: str) -> None:
            try:
                points = await self.source.get_daily_history(ticker)
            except MarketDataError as exc:
                logger.warning(
                    "Price history unavailable, continuing with empty series",
                    extra={"data": {"ticker": ticker, "error": str(exc)}},
                )
                failures.append(ticker)
                points = []
            store.put(ticker, points)

        await run_worker_pool(unique, fetch_one, self.workers, run)

        logger.info(
            "Price histories fetched",
            extra={
                "data": {
                    "tickers": len(unique),
                    "failed": len(failures),
                    "workers": self.workers,
                }
            },
        )
        return store
