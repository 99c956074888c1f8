"""Pydantic schemas for backtest run requests and results.

Field names are snake_case in Python and camelCase on the wire
(`model_dump(by_alias=True)`), matching the run invocation surface:

    {"startDate": "2024-01-01", "endDate": "2024-12-01", "interval": "month",
     "selector": {"type": "return", "from": "", "to": "", "asOf": "",
                  "topN": 50, "sectors": [], "tickers": ""}}

Ratios (hit rates) are fractions in [0, 1], or None when the denominator
is zero.
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from rating_backtest.common.config import get_settings
from rating_backtest.common.schemas import Rating, SelectorType, UsageSummary

MIN_TOP_N = 1


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _blank_to_none(value: object) -> object:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ─── Run Request ───


class SelectorConfig(_CamelModel):
    """How to reduce the universe to the tickers under test."""

    type: SelectorType = "return"
    from_date: date | None = Field(default=None, alias="from")
    to_date: date | None = Field(default=None, alias="to")
    as_of: date | None = None
    top_n: int = Field(default_factory=lambda: get_settings().default_top_n)
    sectors: list[str] = []
    tickers: str | list[str] = ""

    @field_validator("from_date", "to_date", "as_of", mode="before")
    @classmethod
    def blank_dates_are_unset(cls, v: object) -> object:
        return _blank_to_none(v)

    @field_validator("top_n", mode="before")
    @classmethod
    def clamp_top_n(cls, v: object) -> int:
        """Clamp into [1, max_top_n]; blank or zero means default_top_n."""
        settings = get_settings()
        if v is None or v == "" or v == 0:
            return settings.default_top_n
        return max(MIN_TOP_N, min(int(v), settings.max_top_n))


class RunRequest(_CamelModel):
    """Parameters of one run-test invocation."""

    start_date: date
    end_date: date
    interval: str = "month"
    selector: SelectorConfig = Field(default_factory=SelectorConfig)

    @model_validator(mode="after")
    def validate_date_range(self) -> RunRequest:
        """Ensure end_date >= start_date."""
        if self.end_date < self.start_date:
            msg = f"end_date ({self.end_date}) must be >= start_date ({self.start_date})"
            raise ValueError(msg)
        return self


# ─── Selection ───


class RankedTicker(BaseModel):
    """A ticker with the score it was ranked by (return or market cap)."""

    symbol: str
    score: float


class SectorCount(BaseModel):
    """One S&P 500 sector and how many constituents it has."""

    sector: str
    count: int


# ─── Directional Hit Mode Output ───


class DetailRow(_CamelModel):
    """One (ticker, period) evaluation."""

    ticker: str
    date: date
    next_date: date
    rating: Rating
    target_price: float | None = None
    p0: float | None = None
    p1: float | None = None
    hit: Literal["HIT", "MISS", ""] = ""


class HitStats(_CamelModel):
    """Hit counts and rates; actionable == buy + sell, hits == buy_hits + sell_hits."""

    actionable: int = 0
    hits: int = 0
    hit_rate: float | None = None
    buy: int = 0
    buy_hits: int = 0
    buy_hit_rate: float | None = None
    sell: int = 0
    sell_hits: int = 0
    sell_hit_rate: float | None = None


class SummaryRow(HitStats):
    """Per-ticker hit statistics."""

    ticker: str


class RunResult(_CamelModel):
    """Complete output of a run-test."""

    run_id: str
    selector: SelectorConfig
    boundaries: list[date]
    chosen: list[str]
    overall: HitStats
    summary: list[SummaryRow] = []
    details: list[DetailRow] = []
    usage: UsageSummary


# ─── Banded / Target Mode ───


DEFAULT_TARGET_TICKERS = ["NVDA", "AAPL", "MSFT", "AMZN", "GOOGL"]


class TargetBacktestConfig(_CamelModel):
    """Configuration for the long-horizon banded/target backtest."""

    tickers: list[str] = Field(default_factory=lambda: list(DEFAULT_TARGET_TICKERS))
    start_date: date = date(2024, 1, 1)
    end_date: date = date(2025, 11, 1)
    lookahead_days: int | None = Field(default=None, ge=0, le=31)
    reset_oracle_cache: bool | None = None

    @field_validator("tickers", mode="before")
    @classmethod
    def split_tickers(cls, v: object) -> object:
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("tickers")
    @classmethod
    def upper_tickers(cls, v: list[str]) -> list[str]:
        return [s.upper() for s in v]


class TargetRow(_CamelModel):
    """One (ticker, baseline month) evaluation in banded mode."""

    ticker: str
    baseline_date: date
    next_date: date
    rating: str | None = None
    target: float | None = None
    actual: float | None = None
    actual_date: date | None = None
    delta: float | None = None
    rationale: str = ""
    baseline_price: float | None = None
    month_high: float | None = None
    month_low: float | None = None
    range_mid: float | None = None
    close_hit: bool | None = None
    range_mid_hit: bool | None = None
    intramonth_hit: bool | None = None
    hold_accuracy: bool | None = None
    hold_band_pct: float | None = None
    hold_drift_flag: bool = False


class TargetBacktestResult(_CamelModel):
    """Complete output of a banded/target backtest."""

    run_id: str
    config: TargetBacktestConfig
    rows: list[TargetRow] = []
    usage: UsageSummary
