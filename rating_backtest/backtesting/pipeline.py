"""Run pipelines: the run-test (directional hit) and the target backtest.

Both pipelines share the same lifecycle:

  1. Validate parameters. Failures raise InvalidRunRequestError and the
     run never starts.
  2. controller.start() (RunAlreadyActiveError if another run is active).
  3. Do the work; every stage checks the run's cancellation flag.
  4. On every exit path: finalize the run, record run metrics, and attach
     the accumulated usage to the result or to the raised error.

Cancellation surfaces as RunCancelledError; any other failure is wrapped
in RunFailedError. Both carry the partial usage summary.

Usage:
    controller = RunController()
    async with FmpClient() as fmp, OracleClient() as oracle:
        provider = DecisionProvider(oracle)
        result = await run_hit_test(request, controller, fmp, provider)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import date
from typing import TypeVar

from pydantic import ValidationError

from rating_backtest.backtesting.evaluator import evaluate_hits
from rating_backtest.backtesting.exceptions import (
    InvalidRunRequestError,
    RunCancelledError,
    RunFailedError,
)
from rating_backtest.backtesting.fetcher import PriceSeriesFetcher
from rating_backtest.backtesting.periods import build_boundaries
from rating_backtest.backtesting.run_control import RunContext, RunController
from rating_backtest.backtesting.schemas import (
    RunRequest,
    RunResult,
    TargetBacktestConfig,
    TargetBacktestResult,
)
from rating_backtest.backtesting.selectors import (
    UniverseSelector,
    fetch_universe,
    parse_manual_tickers,
)
from rating_backtest.backtesting.target_eval import evaluate_targets
from rating_backtest.common.logging import get_logger, run_id_var
from rating_backtest.common.metrics import RUN_DURATION_SECONDS, RUNS_TOTAL
from rating_backtest.common.schemas import UsageSummary
from rating_backtest.market.fmp import FmpClient
from rating_backtest.oracle.provider import DecisionProvider

logger = get_logger("RUN")

T = TypeVar("T")


def _validate(model: type[T], payload: object, label: str) -> T:
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise InvalidRunRequestError(
            f"Invalid {label}",
            context={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


async def _run_managed(
    controller: RunController,
    label: str,
    body: Callable[[RunContext], Awaitable[T]],
) -> tuple[RunContext, T, UsageSummary]:
    """Execute body inside a started run and finalize it on every exit path.

    Returns:
        (run, body result, usage summary computed after finalization)

    Raises:
        RunAlreadyActiveError: Another run is active; nothing was started.
        RunCancelledError: The run was cancelled; `usage` is attached.
        RunFailedError: Any other failure; `usage` is attached.
    """
    run = controller.start()
    token = run_id_var.set(run.id)
    outcome = "failed"
    try:
        result = await body(run)
        outcome = "completed"
    except RunCancelledError as exc:
        outcome = "cancelled"
        controller.finalize(run)
        exc.usage = run.usage_summary()
        exc.context.setdefault("run_id", run.id)
        logger.info("Run cancelled", extra={"data": {"run_id": run.id, "label": label}})
        raise
    except Exception as exc:
        controller.finalize(run)
        usage = run.usage_summary()
        logger.error(
            "Run failed",
            extra={
                "data": {
                    "run_id": run.id,
                    "label": label,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                }
            },
        )
        raise RunFailedError(
            f"{label} failed: {exc}",
            context={"run_id": run.id, "error_type": type(exc).__name__},
            usage=usage,
        ) from exc
    finally:
        if not run.finalized:
            controller.finalize(run)
        RUNS_TOTAL.labels(outcome=outcome).inc()
        RUN_DURATION_SECONDS.observe(run.finished_at - run.started_at)
        run_id_var.reset(token)

    return run, result, run.usage_summary()


async def run_hit_test(
    request: RunRequest | dict,
    controller: RunController,
    fmp: FmpClient,
    provider: DecisionProvider,
    selector: UniverseSelector | None = None,
) -> RunResult:
    """Select tickers, fetch prices, and score directional hit rates.

    Args:
        request: Run parameters (model or camelCase dict).
        controller: Owner of the single-active-run slot.
        fmp: Price-history client.
        provider: Shared decision cache.
        selector: Strategy registry. Built over `fmp` when omitted.

    Returns:
        RunResult with boundaries, chosen tickers, overall/summary/detail
        rows and the run's usage.

    Raises:
        InvalidRunRequestError: Bad parameters; the run never started.
        RunAlreadyActiveError: Another run is active.
        RunCancelledError: The run was cancelled.
        RunFailedError: An unexpected failure ended the run.
    """
    req = _validate(RunRequest, request, "run request")
    boundaries = build_boundaries(req.start_date, req.end_date, req.interval)
    sel = req.selector
    if sel.type == "manual" and not parse_manual_tickers(sel.tickers):
        raise InvalidRunRequestError("Manual selector requires at least one ticker")

    selector = selector or UniverseSelector(fmp)

    async def body(run: RunContext) -> RunResult:
        logger.info(
            "Run-test started",
            extra={
                "data": {
                    "start_date": req.start_date.isoformat(),
                    "end_date": req.end_date.isoformat(),
                    "interval": req.interval,
                    "selector": sel.type,
                    "boundaries": len(boundaries),
                }
            },
        )
        universe = [] if sel.type == "manual" else await fetch_universe(fmp, sel.sectors)
        chosen = await selector.select(
            sel.type, universe, sel, run, req.start_date, req.end_date
        )
        store = await PriceSeriesFetcher(fmp).fetch_all(chosen, run)
        evaluation = await evaluate_hits(chosen, boundaries, store, provider, run)
        return RunResult(
            run_id=run.id,
            selector=sel,
            boundaries=boundaries,
            chosen=chosen,
            overall=evaluation.overall,
            summary=evaluation.summary,
            details=evaluation.details,
            usage=UsageSummary(),
        )

    _, result, usage = await _run_managed(controller, "run-test", body)
    return result.model_copy(update={"usage": usage})


async def run_target_backtest(
    config: TargetBacktestConfig | dict,
    controller: RunController,
    fmp: FmpClient,
    provider: DecisionProvider,
    skip: set[tuple[str, date]] | None = None,
) -> TargetBacktestResult:
    """Run the monthly banded/target backtest for the configured tickers.

    Args:
        config: Tickers, baseline range, lookahead and oracle-reset switch.
        controller: Owner of the single-active-run slot.
        fmp: Price-history client.
        provider: Shared decision cache.
        skip: (ticker, baseline) pairs already processed; not re-run.

    Raises:
        InvalidRunRequestError: Bad parameters; the run never started.
        RunAlreadyActiveError: Another run is active.
        RunCancelledError: The run was cancelled.
        RunFailedError: An unexpected failure ended the run.
    """
    cfg = _validate(TargetBacktestConfig, config, "target backtest config")
    if cfg.end_date < cfg.start_date:
        raise InvalidRunRequestError(
            "end_date must be >= start_date",
            context={"start_date": cfg.start_date.isoformat(), "end_date": cfg.end_date.isoformat()},
        )
    if not cfg.tickers:
        raise InvalidRunRequestError("Target backtest requires at least one ticker")

    async def body(run: RunContext) -> list:
        logger.info(
            "Target backtest started",
            extra={
                "data": {
                    "tickers": cfg.tickers,
                    "start_date": cfg.start_date.isoformat(),
                    "end_date": cfg.end_date.isoformat(),
                    "skip": len(skip or ()),
                }
            },
        )
        store = await PriceSeriesFetcher(fmp).fetch_all(cfg.tickers, run)
        return await evaluate_targets(cfg, store, provider, run, skip=skip)

    run, rows, usage = await _run_managed(controller, "target backtest", body)
    return TargetBacktestResult(run_id=run.id, config=cfg, rows=rows, usage=usage)
