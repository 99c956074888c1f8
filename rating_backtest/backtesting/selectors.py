"""Universe selection: reduce the S&P 500 (or a manual list) to the tickers under test.

Strategies:
  - manual       operator-supplied list, uppercased, duplicates pass through, no topN
  - return       trailing return over [from, to] from first/last close in window
  - mcap_latest  latest market cap, queried in batches of settings.mcap_batch_size
  - mcap_asof    market cap on or before asOf from each ticker's dated series

Ranked strategies sort descending by score and truncate to topN. A ticker
whose lookup fails is left out of the ranking rather than failing the run.
Every strategy checks the run's cancellation flag between per-ticker or
per-chunk operations.

Usage:
    selector = UniverseSelector(fmp)
    universe = await fetch_universe(fmp, sectors=["Energy"])
    chosen = await selector.select("return", universe, config, run, start, end)
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Awaitable, Callable
from datetime import date

from rating_backtest.backtesting.exceptions import InvalidRunRequestError
from rating_backtest.backtesting.run_control import RunContext
from rating_backtest.backtesting.schemas import RankedTicker, SectorCount, SelectorConfig
from rating_backtest.backtesting.workers import run_worker_pool
from rating_backtest.common.config import get_settings
from rating_backtest.common.logging import get_logger
from rating_backtest.common.schemas import Constituent, MarketCap
from rating_backtest.market.exceptions import MarketDataError
from rating_backtest.market.fmp import FmpClient

logger = get_logger("SELECT")

_MANUAL_SPLIT = re.compile(r"[\s,]+")


# ─── Pure Helpers ───


def parse_manual_tickers(raw: str | list[str]) -> list[str]:
    """Split a whitespace/comma-separated list into uppercase symbols."""
    parts = raw if isinstance(raw, list) else _MANUAL_SPLIT.split(raw)
    tickers: list[str] = []
    for part in parts:
        for symbol in _MANUAL_SPLIT.split(str(part)):
            if symbol:
                tickers.append(symbol.upper())
    return tickers


def rank_top(scores: list[RankedTicker], top_n: int) -> list[RankedTicker]:
    """Highest score first; ties keep their input order."""
    return sorted(scores, key=lambda r: r.score, reverse=True)[:top_n]


def trailing_return(closes: list[float]) -> float | None:
    """(last - first) / first, or None when the window has no usable close."""
    if not closes or closes[0] <= 0:
        return None
    return (closes[-1] - closes[0]) / closes[0]


def market_cap_as_of(series: list[MarketCap], as_of: date) -> float | None:
    """Latest capitalization dated on or before as_of."""
    dated = sorted((m for m in series if m.as_of is not None), key=lambda m: m.as_of)
    for entry in reversed(dated):
        if entry.as_of <= as_of:
            return entry.market_cap
    return None


def filter_by_sectors(constituents: list[Constituent], sectors: list[str]) -> list[Constituent]:
    """Keep constituents whose sector is listed (case-insensitive); empty means all."""
    wanted = {s.strip().lower() for s in sectors if s.strip()}
    if not wanted:
        return list(constituents)
    return [c for c in constituents if c.sector.strip().lower() in wanted]


# ─── Universe ───


async def fetch_universe(fmp: FmpClient, sectors: list[str] | None = None) -> list[str]:
    """S&P 500 symbols, optionally reduced to the given sectors."""
    constituents = await fmp.get_sp500_constituents()
    selected = filter_by_sectors(constituents, sectors or [])
    symbols = list(dict.fromkeys(c.symbol for c in selected))
    logger.info(
        "Universe loaded",
        extra={
            "data": {
                "constituents": len(constituents),
                "selected": len(symbols),
                "sectors": sectors or [],
            }
        },
    )
    return symbols


async def list_sectors(fmp: FmpClient) -> list[SectorCount]:
    """Distinct S&P 500 sectors with member counts, sorted by name."""
    constituents = await fmp.get_sp500_constituents()
    counts = Counter(c.sector for c in constituents if c.sector)
    return [SectorCount(sector=s, count=n) for s, n in sorted(counts.items())]


# ─── Selector ───


class UniverseSelector:
    """Strategy registry over the price-history API.

    Args:
        fmp: Price-history client used by the ranked strategies.
        workers: Per-ticker ranking pool size. Defaults to settings.ranking_workers.
        batch_size: Market-cap batch size. Defaults to settings.mcap_batch_size.
    """

    def __init__(
        self,
        fmp: FmpClient,
        workers: int | None = None,
        batch_size: int | None = None,
    ) -> None:
        settings = get_settings()
        self.fmp = fmp
        self.workers = workers or settings.ranking_workers
        self.batch_size = batch_size or settings.mcap_batch_size
        self._strategies: dict[
            str,
            Callable[[list[str], SelectorConfig, RunContext, date, date], Awaitable[list[str]]],
        ] = {
            "manual": self._manual,
            "return": self._by_return,
            "mcap_latest": self._by_mcap_latest,
            "mcap_asof": self._by_mcap_asof,
        }

    @property
    def strategies(self) -> list[str]:
        return list(self._strategies)

    async def select(
        self,
        strategy: str,
        universe: list[str],
        config: SelectorConfig,
        run: RunContext,
        start_date: date,
        end_date: date,
    ) -> list[str]:
        """Run one strategy and return the chosen tickers in rank order.

        Args:
            strategy: Registered strategy name.
            universe: Candidate symbols (ignored by "manual").
            config: Selector parameters (window, asOf, topN, tickers).
            run: Active run; checked between units of work.
            start_date: Run start, the default window start.
            end_date: Run end, the default window end and asOf.

        Raises:
            InvalidRunRequestError: Unknown strategy, or a manual list with no tickers.
            RunCancelledError: The run was cancelled.
        """
        handler = self._strategies.get(strategy)
        if handler is None:
            raise InvalidRunRequestError(
                f"Unknown selector type: {strategy}",
                context={"selector": strategy, "known": self.strategies},
            )

        run.raise_if_cancelled()
        chosen = await handler(universe, config, run, start_date, end_date)

        logger.info(
            "Tickers selected",
            extra={
                "data": {
                    "strategy": strategy,
                    "universe": len(universe),
                    "chosen": len(chosen),
                    "top_n": config.top_n,
                }
            },
        )
        return chosen

    # ─── Strategies ───

    async def _manual(
        self,
        universe: list[str],
        config: SelectorConfig,
        run: RunContext,
        start_date: date,
        end_date: date,
    ) -> list[str]:
        tickers = parse_manual_tickers(config.tickers)
        if not tickers:
            raise InvalidRunRequestError("Manual selector requires at least one ticker")
        return tickers

    async def _by_return(
        self,
        universe: list[str],
        config: SelectorConfig,
        run: RunContext,
        start_date: date,
        end_date: date,
    ) -> list[str]:
        window_start = config.from_date or start_date
        window_end = config.to_date or end_date
        scores: list[RankedTicker] = []

        async def score(symbol: str) -> None:
            try:
                points = await self.fmp.get_daily_history(symbol, window_start, window_end)
            except MarketDataError as exc:
                logger.warning(
                    "Return ranking skipped ticker",
                    extra={"data": {"ticker": symbol, "error": str(exc)}},
                )
                return
            closes = [p.close for p in points if window_start <= p.date <= window_end]
            value = trailing_return(closes)
            if value is not None:
                scores.append(RankedTicker(symbol=symbol, score=value))

        await run_worker_pool(universe, score, self.workers, run)
        # Workers finish in arbitrary order; restore universe order before the stable sort
        order = {s: i for i, s in enumerate(universe)}
        scores.sort(key=lambda r: order[r.symbol])
        return [r.symbol for r in rank_top(scores, config.top_n)]

    async def _by_mcap_latest(
        self,
        universe: list[str],
        config: SelectorConfig,
        run: RunContext,
        start_date: date,
        end_date: date,
    ) -> list[str]:
        latest: dict[str, float] = {}
        for offset in range(0, len(universe), self.batch_size):
            run.raise_if_cancelled()
            chunk = universe[offset : offset + self.batch_size]
            try:
                caps = await self.fmp.get_market_caps(chunk)
            except MarketDataError as exc:
                logger.warning(
                    "Market-cap batch failed, skipping chunk",
                    extra={"data": {"offset": offset, "size": len(chunk), "error": str(exc)}},
                )
                continue
            for cap in caps:
                latest[cap.symbol.upper()] = cap.market_cap

        scores = [RankedTicker(symbol=s, score=latest[s]) for s in universe if s in latest]
        return [r.symbol for r in rank_top(scores, config.top_n)]

    async def _by_mcap_asof(
        self,
        universe: list[str],
        config: SelectorConfig,
        run: RunContext,
        start_date: date,
        end_date: date,
    ) -> list[str]:
        as_of = config.as_of or end_date
        found: dict[str, float] = {}

        async def score(symbol: str) -> None:
            try:
                series = await self.fmp.get_historical_market_cap(symbol)
            except MarketDataError as exc:
                logger.warning(
                    "Historical market cap unavailable",
                    extra={"data": {"ticker": symbol, "error": str(exc)}},
                )
                return
            value = market_cap_as_of(series, as_of)
            if value is not None:
                found[symbol] = value

        await run_worker_pool(universe, score, self.workers, run)
        scores = [RankedTicker(symbol=s, score=found[s]) for s in universe if s in found]
        return [r.symbol for r in rank_top(scores, config.top_n)]
