"""In-memory per-run price series store.

Maps ticker → chronologically sorted PricePoints. Each ticker's series is
written by exactly one fetch worker, then only read. Lookups never mutate
the stored series.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from collections.abc import Iterable
from datetime import date, timedelta

from rating_backtest.common.schemas import PricePoint


class PriceSeriesStore:
    """Ticker → sorted PriceSeries with point and range lookups."""

    def __init__(self) -> None:
        self._series: dict[str, list[PricePoint]] = {}
        self._dates: dict[str, list[date]] = {}

    def __contains__(self, ticker: str) -> bool:
        return ticker.upper() in self._series

    def __len__(self) -> int:
        return len(self._series)

    def tickers(self) -> list[str]:
        return list(self._series)

    def put(self, ticker: str, points: Iterable[PricePoint]) -> None:
        """Store a ticker's series, enforcing strictly increasing dates.

        Points are sorted by date; for repeated dates the last one wins.
        """
        by_date = {p.date: p for p in points}
        ordered = [by_date[d] for d in sorted(by_date)]
        key = ticker.upper()
        self._series[key] = ordered
        self._dates[key] = [p.date for p in ordered]

    def get(self, ticker: str) -> list[PricePoint]:
        """Return a copy of the series (empty if unknown)."""
        return list(self._series.get(ticker.upper(), []))

    def close_on_or_before(self, ticker: str, target: date) -> float | None:
        """Close of the latest point with date <= target, or None.

        Binary search over the ticker's sorted dates.
        """
        key = ticker.upper()
        dates = self._dates.get(key)
        if not dates:
            return None
        idx = bisect_right(dates, target)
        if idx == 0:
            return None
        return self._series[key][idx - 1].close

    def close_on(self, ticker: str, target: date) -> float | None:
        """Close on exactly `target`, or None."""
        key = ticker.upper()
        dates = self._dates.get(key)
        if not dates:
            return None
        idx = bisect_right(dates, target)
        if idx and dates[idx - 1] == target:
            return self._series[key][idx - 1].close
        return None

    def first_close_from(
        self,
        ticker: str,
        target: date,
        lookahead_days: int,
    ) -> tuple[float | None, date | None]:
        """Search forward day by day from target for the first available close.

        Checks target, target+1, ..., target+lookahead_days.

        Returns:
            (close, date) of the first hit, or (None, None).
        """
        for offset in range(lookahead_days + 1):
            day = target + timedelta(days=offset)
            close = self.close_on(ticker, day)
            if close is not None:
                return close, day
        return None, None

    def window(self, ticker: str, start: date, end: date) -> list[PricePoint]:
        """Points with start <= date <= end, in order."""
        key = ticker.upper()
        dates = self._dates.get(key)
        if not dates:
            return []
        lo = bisect_left(dates, start)
        hi = bisect_right(dates, end)
        return self._series[key][lo:hi]
