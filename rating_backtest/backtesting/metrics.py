"""Hit-rate aggregation for the directional evaluator.

Counts are accumulated in a mutable HitCounter while a ticker's periods
are scored, then projected into immutable HitStats / SummaryRow schemas.
Rates are None (not 0.0) when their denominator is zero.

Usage:
    counter = HitCounter()
    counter.record("BUY", hit=True)
    stats = counter.to_stats()
"""

from __future__ import annotations

from dataclasses import dataclass

from rating_backtest.backtesting.schemas import HitStats, SummaryRow
from rating_backtest.common.schemas import Rating


def _rate(hits: int, total: int) -> float | None:
    return hits / total if total else None


@dataclass
class HitCounter:
    """Running BUY/SELL hit counts."""

    buy: int = 0
    buy_hits: int = 0
    sell: int = 0
    sell_hits: int = 0

    @property
    def actionable(self) -> int:
        return self.buy + self.sell

    @property
    def hits(self) -> int:
        return self.buy_hits + self.sell_hits

    def record(self, rating: Rating, hit: bool) -> None:
        """Count one period. HOLD and UNKNOWN are not actionable and ignored."""
        if rating == "BUY":
            self.buy += 1
            self.buy_hits += int(hit)
        elif rating == "SELL":
            self.sell += 1
            self.sell_hits += int(hit)

    def merge(self, other: HitCounter) -> None:
        self.buy += other.buy
        self.buy_hits += other.buy_hits
        self.sell += other.sell
        self.sell_hits += other.sell_hits

    def to_stats(self) -> HitStats:
        return HitStats(**self._fields())

    def to_summary(self, ticker: str) -> SummaryRow:
        return SummaryRow(ticker=ticker, **self._fields())

    def _fields(self) -> dict:
        return {
            "actionable": self.actionable,
            "hits": self.hits,
            "hit_rate": _rate(self.hits, self.actionable),
            "buy": self.buy,
            "buy_hits": self.buy_hits,
            "buy_hit_rate": _rate(self.buy_hits, self.buy),
            "sell": self.sell,
            "sell_hits": self.sell_hits,
            "sell_hit_rate": _rate(self.sell_hits, self.sell),
        }
