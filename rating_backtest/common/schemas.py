"""Pydantic schemas shared across modules.

Defines the data shapes that flow between the market-data layer, the
decision oracle and the backtesting engine. Run-level request and output
models live in rating_backtest.backtesting.schemas.
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# ─── Enumerations ───

Rating = Literal["BUY", "SELL", "HOLD", "UNKNOWN"]
Direction = Literal["bullish", "bearish", "neutral"]
Interval = Literal["week", "month", "quarter"]
SelectorType = Literal["manual", "return", "mcap_latest", "mcap_asof"]


# ─── Market Data ───


class PricePoint(BaseModel):
    """One daily bar. high/low are optional and only used for range scans."""

    model_config = ConfigDict(frozen=True)

    date: date
    close: float
    high: float | None = None
    low: float | None = None


class Constituent(BaseModel):
    """A member of the broad ticker universe."""

    symbol: str
    sector: str = ""


class MarketCap(BaseModel):
    """Market capitalization for one symbol."""

    symbol: str
    market_cap: float
    as_of: date | None = None


# ─── Decision Oracle ───


class TargetBand(BaseModel):
    """Tolerance band supplied with a decision (fractions, e.g. 0.05 = 5%)."""

    band_pct: float | None = None
    upper_pct: float | None = None
    lower_pct: float | None = None


class Decision(BaseModel):
    """A normalized rating call for one (ticker, date).

    Immutable once created; the decision cache hands the same instance to
    every caller.
    """

    model_config = ConfigDict(frozen=True)

    rating: Rating = "UNKNOWN"
    target_price: float | None = None
    usage: dict | None = None
    raw_rating: str | None = None
    target_band: TargetBand | None = None
    segment: str | None = None
    baseline_price: float | None = None
    rationale: str = ""


# ─── Usage Telemetry ───


class UsageSummary(BaseModel):
    """Token/cost usage accumulated over one run."""

    prompt: int = 0
    completion: int = 0
    total: int = 0
    cost: float = Field(default=0.0, ge=0.0)
    calls: int = 0
    duration_ms: int = 0
