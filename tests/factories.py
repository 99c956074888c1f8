"""Test data factories for generating realistic test data.

Usage:
    from tests.factories import make_decision, make_series

    series = make_series([(date(2024, 1, 2), 100.0), (date(2024, 2, 1), 110.0)])
    decision = make_decision(rating="BUY", target_price=120.0)
"""

from __future__ import annotations

from datetime import date, timedelta

from rating_backtest.common.schemas import Decision, PricePoint, TargetBand


def make_series(
    points: list[tuple[date, float]] | list[tuple[date, float, float, float]],
) -> list[PricePoint]:
    """Build PricePoints from (date, close) or (date, close, high, low) tuples."""
    series = []
    for point in points:
        if len(point) == 4:
            day, close, high, low = point
            series.append(PricePoint(date=day, close=close, high=high, low=low))
        else:
            day, close = point
            series.append(PricePoint(date=day, close=close))
    return series


def make_daily_series(
    start: date,
    closes: list[float],
) -> list[PricePoint]:
    """One point per calendar day starting at `start`."""
    return [
        PricePoint(date=start + timedelta(days=i), close=close) for i, close in enumerate(closes)
    ]


def make_decision(
    rating: str = "BUY",
    target_price: float | None = 120.0,
    raw_rating: str | None = None,
    band_pct: float | None = None,
    **overrides,
) -> Decision:
    """Create a Decision with sensible defaults.

    raw_rating defaults to the normalized rating text. Pass band_pct to
    attach a TargetBand; any other Decision field can be overridden.
    """
    fields = {
        "rating": rating,
        "target_price": target_price,
        "raw_rating": raw_rating if raw_rating is not None else rating,
    }
    if band_pct is not None:
        fields["target_band"] = TargetBand(band_pct=band_pct)
    fields.update(overrides)
    return Decision(**fields)


def make_analyze_payload(
    rating: str = "Buy",
    target_price: float | None = 120.0,
    usage: dict | None = None,
) -> dict:
    """A realistic /api/analyze response body."""
    payload: dict = {
        "analysis": {
            "action": {"rating": rating, "target_price": target_price},
            "profile": {"segment": "large_cap"},
        },
        "inputs": {"price": {"value": 100.0}},
    }
    if usage is not None:
        payload["llm_usage"] = usage
    return payload
