"""Banded / target evaluator for the long-horizon backtest.

For each ticker and each monthly baseline date:

  1. Classify the free-text rating as bullish / bearish / neutral (or None).
  2. Pick a tolerance band: the widest of band_pct / |upper_pct| / |lower_pct|
     supplied with the decision, else 7% for the small-cap segment, else 5%.
  3. actual = first close found searching forward from baseline + 1 month,
     up to `lookahead_days` days.
  4. month high / low / midpoint over every bar in the calendar month after
     the baseline (high/low fall back to close when a bar lacks them).
  5. Hit flags:
       close_hit      actual vs baseline (>= bullish, <= bearish, within band neutral)
       range_mid_hit  range midpoint vs baseline, same rule
       intramonth_hit month high >= target (bullish), month low <= target (bearish)
  6. Neutral calls also get hold_accuracy (= close_hit) and hold_drift_flag
     (|actual - baseline| / baseline > drift threshold, independent of band).

Any missing input makes the derived value None rather than a numeric
default. Baseline price and the month range are rounded to 2 decimals
before the hit flags are computed, so every flag agrees with the values
reported in the row.
"""

from __future__ import annotations

from datetime import date

from rating_backtest.backtesting.periods import add_months, iter_dates, month_window
from rating_backtest.backtesting.run_control import RunContext
from rating_backtest.backtesting.schemas import TargetBacktestConfig, TargetRow
from rating_backtest.backtesting.store import PriceSeriesStore
from rating_backtest.common.config import get_settings
from rating_backtest.common.logging import get_logger
from rating_backtest.common.schemas import Decision, Direction
from rating_backtest.market.exceptions import MarketDataError
from rating_backtest.oracle.exceptions import OracleError
from rating_backtest.oracle.provider import DecisionProvider
from rating_backtest.oracle.ratings import classify_direction

logger = get_logger("BACKTEST")

SMALL_CAP_SEGMENT = "small_cap"


def _round2(value: float | None) -> float | None:
    return round(value, 2) if value is not None else None


def resolve_band_pct(
    decision: Decision,
    default_pct: float | None = None,
    small_cap_pct: float | None = None,
) -> float:
    """Tolerance band (fraction) for scoring neutral calls."""
    band = decision.target_band
    if band is not None:
        candidates = [
            band.band_pct,
            abs(band.upper_pct) if band.upper_pct is not None else None,
            abs(band.lower_pct) if band.lower_pct is not None else None,
        ]
        candidates = [v for v in candidates if v is not None and v > 0]
        if candidates:
            return max(candidates)

    settings = get_settings()
    if (decision.segment or "").lower() == SMALL_CAP_SEGMENT:
        return small_cap_pct if small_cap_pct is not None else settings.small_cap_band_pct
    return default_pct if default_pct is not None else settings.default_band_pct


def directional_hit(
    direction: Direction | None,
    price: float | None,
    baseline: float | None,
    band_pct: float,
) -> bool | None:
    """Compare a realized price with the baseline under the call's direction."""
    if price is None or baseline is None:
        return None
    if direction == "bullish":
        return price >= baseline
    if direction == "bearish":
        return price <= baseline
    if direction == "neutral":
        if baseline == 0:
            return None
        return abs((price - baseline) / baseline) <= band_pct
    return None


def intramonth_hit(
    direction: Direction | None,
    target: float | None,
    month_high: float | None,
    month_low: float | None,
) -> bool | None:
    """Whether the target was touched at any point in the forward month."""
    if target is None:
        return None
    if direction == "bullish":
        return month_high >= target if month_high is not None else None
    if direction == "bearish":
        return month_low <= target if month_low is not None else None
    return None


def month_range(
    store: PriceSeriesStore,
    ticker: str,
    baseline: date,
) -> tuple[float | None, float | None, float | None]:
    """High, low and midpoint over the calendar month after baseline."""
    first, last = month_window(baseline)
    highs: list[float] = []
    lows: list[float] = []
    for point in store.window(ticker, first, last):
        highs.append(point.high if point.high is not None else point.close)
        lows.append(point.low if point.low is not None else point.close)
    if not highs:
        return None, None, None
    month_high, month_low = max(highs), min(lows)
    return month_high, month_low, (month_high + month_low) / 2


def score_target_row(
    ticker: str,
    baseline_date: date,
    decision: Decision,
    store: PriceSeriesStore,
    lookahead_days: int | None = None,
) -> TargetRow:
    """Build one banded-mode row from a decision and the stored prices."""
    settings = get_settings()
    lookahead = settings.actual_lookahead_days if lookahead_days is None else lookahead_days

    direction = classify_direction(decision.raw_rating)
    band_pct = resolve_band_pct(decision)
    target = decision.target_price

    baseline_price = decision.baseline_price
    if baseline_price is None:
        baseline_price = store.close_on_or_before(ticker, baseline_date)
    baseline_price = _round2(baseline_price)

    next_date = add_months(baseline_date, 1)
    actual, actual_date = store.first_close_from(ticker, next_date, lookahead)
    # Flags compare the same 2 dp values the row reports
    month_high, month_low, range_mid = (
        _round2(v) for v in month_range(store, ticker, baseline_date)
    )

    delta = None
    if actual is not None and target:
        delta = (actual - target) / target * 100

    close_hit = directional_hit(direction, _round2(actual), baseline_price, band_pct)

    hold_drift_flag = False
    if direction == "neutral" and actual is not None and baseline_price:
        hold_drift_flag = (
            abs((actual - baseline_price) / baseline_price) > settings.hold_drift_threshold_pct
        )

    return TargetRow(
        ticker=ticker,
        baseline_date=baseline_date,
        next_date=next_date,
        rating=decision.raw_rating,
        target=_round2(target),
        actual=_round2(actual),
        actual_date=actual_date,
        delta=_round2(delta),
        rationale=decision.rationale,
        baseline_price=baseline_price,
        month_high=month_high,
        month_low=month_low,
        range_mid=range_mid,
        close_hit=close_hit,
        range_mid_hit=directional_hit(direction, range_mid, baseline_price, band_pct),
        intramonth_hit=intramonth_hit(direction, target, month_high, month_low),
        hold_accuracy=close_hit if direction == "neutral" else None,
        hold_band_pct=band_pct,
        hold_drift_flag=hold_drift_flag,
    )


async def evaluate_targets(
    config: TargetBacktestConfig,
    store: PriceSeriesStore,
    provider: DecisionProvider,
    run: RunContext,
    skip: set[tuple[str, date]] | None = None,
) -> list[TargetRow]:
    """Score every (ticker, monthly baseline) pair in order.

    A pair whose decision or price lookup fails is logged and skipped;
    the remaining pairs still run. Cancellation aborts immediately.

    Args:
        config: Tickers, baseline range and lookahead.
        store: Prices for every ticker in config.tickers; read only.
        provider: Decision provider; its client also serves reset-cache.
        run: Active run; checked before each pair.
        skip: (ticker, baseline) pairs already processed by an earlier pass.

    Raises:
        RunCancelledError: The run was cancelled.
    """
    settings = get_settings()
    reset = settings.reset_oracle_cache if config.reset_oracle_cache is None else config.reset_oracle_cache
    baselines = list(iter_dates(config.start_date, config.end_date, "month"))
    done = skip or set()
    rows: list[TargetRow] = []

    for ticker in config.tickers:
        for baseline in baselines:
            run.raise_if_cancelled()
            if (ticker, baseline) in done:
                continue
            try:
                if reset and provider.peek(ticker, baseline) is None:
                    await provider.client.reset_cache(ticker, baseline)
                decision = await provider.get_decision(ticker, baseline, run)
                row = score_target_row(ticker, baseline, decision, store, config.lookahead_days)
            except (OracleError, MarketDataError) as exc:
                logger.warning(
                    "Target backtest pair failed, skipping",
                    extra={
                        "data": {
                            "ticker": ticker,
                            "baseline_date": baseline.isoformat(),
                            "error": str(exc),
                        }
                    },
                )
                continue

            rows.append(row)
            logger.info(
                "Target backtest row stored",
                extra={
                    "data": {
                        "ticker": ticker,
                        "baseline_date": baseline.isoformat(),
                        "target": row.target,
                        "actual": row.actual,
                        "actual_date": row.actual_date,
                    }
                },
            )

    return rows
