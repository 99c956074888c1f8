"""Directional hit evaluator.

For every chosen ticker and every adjacent boundary pair (d0, d1):

  1. Obtain the decision as of d0.
  2. p0 = close on or before d0, p1 = close on or before d1.
  3. BUY  -> actionable; hit iff both prices exist and p1 > p0.
     SELL -> actionable; hit iff both prices exist and p1 < p0.
     HOLD / UNKNOWN -> recorded, not actionable.
  4. Aggregate per ticker and overall (see metrics.HitCounter).

Decisions for all (ticker, d0) keys are prefetched concurrently into the
provider's cache first; scoring then walks tickers and periods in order,
so output rows are deterministic regardless of worker completion order.

Usage:
    result = await evaluate_hits(chosen, boundaries, store, provider, run)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from rating_backtest.backtesting.metrics import HitCounter
from rating_backtest.backtesting.periods import boundary_pairs
from rating_backtest.backtesting.run_control import RunContext
from rating_backtest.backtesting.schemas import DetailRow, HitStats, SummaryRow
from rating_backtest.backtesting.store import PriceSeriesStore
from rating_backtest.backtesting.workers import run_worker_pool
from rating_backtest.common.config import get_settings
from rating_backtest.common.logging import get_logger
from rating_backtest.common.schemas import Decision
from rating_backtest.oracle.provider import DecisionProvider

logger = get_logger("BACKTEST")


@dataclass
class HitEvaluation:
    """Output of the directional evaluator."""

    details: list[DetailRow] = field(default_factory=list)
    summary: list[SummaryRow] = field(default_factory=list)
    overall: HitStats = field(default_factory=HitStats)


def score_period(
    ticker: str,
    d0: date,
    d1: date,
    decision: Decision,
    store: PriceSeriesStore,
) -> DetailRow:
    """Score one (ticker, period) against the stored prices.

    Returns:
        DetailRow with hit "HIT"/"MISS" for BUY/SELL, "" otherwise.
    """
    p0 = store.close_on_or_before(ticker, d0)
    p1 = store.close_on_or_before(ticker, d1)
    has_prices = p0 is not None and p1 is not None

    if decision.rating == "BUY":
        hit = "HIT" if has_prices and p1 > p0 else "MISS"
    elif decision.rating == "SELL":
        hit = "HIT" if has_prices and p1 < p0 else "MISS"
    else:
        hit = ""

    return DetailRow(
        ticker=ticker,
        date=d0,
        next_date=d1,
        rating=decision.rating,
        target_price=decision.target_price,
        p0=p0,
        p1=p1,
        hit=hit,
    )


async def evaluate_hits(
    chosen: list[str],
    boundaries: list[date],
    store: PriceSeriesStore,
    provider: DecisionProvider,
    run: RunContext,
    decision_workers: int | None = None,
) -> HitEvaluation:
    """Score every (ticker, period) and aggregate hit statistics.

    Args:
        chosen: Tickers under test, in report order.
        boundaries: Sorted period boundaries (at least two).
        store: Filled price store; read only.
        provider: Decision provider (memoized).
        run: Active run; checked before each ticker and period.
        decision_workers: Prefetch pool size. Defaults to settings.decision_workers.

    Raises:
        RunCancelledError: The run was cancelled.
        DecisionError: The oracle rejected a decision request.
    """
    pairs = boundary_pairs(boundaries)
    workers = decision_workers or get_settings().decision_workers

    keys = [(ticker, d0) for ticker in chosen for d0, _ in pairs]

    async def prefetch(key: tuple[str, date]) -> None:
        await provider.get_decision(key[0], key[1], run)

    await run_worker_pool(keys, prefetch, workers, run)

    result = HitEvaluation()
    overall = HitCounter()

    for ticker in chosen:
        run.raise_if_cancelled()
        counter = HitCounter()

        for d0, d1 in pairs:
            run.raise_if_cancelled()
            decision = await provider.get_decision(ticker, d0, run)
            row = score_period(ticker, d0, d1, decision, store)
            counter.record(decision.rating, row.hit == "HIT")
            result.details.append(row)

        overall.merge(counter)
        result.summary.append(counter.to_summary(ticker))

    result.overall = overall.to_stats()

    logger.info(
        "Directional evaluation complete",
        extra={
            "data": {
                "tickers": len(chosen),
                "periods": len(pairs),
                "actionable": result.overall.actionable,
                "hits": result.overall.hits,
                "hit_rate": result.overall.hit_rate,
            }
        },
    )
    return result
