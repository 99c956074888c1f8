"""Calendar helpers: period boundaries and month arithmetic.

Boundaries are generated as start + k * interval (k = 0, 1, ...) while the
result does not pass `end`. Month steps are computed from `start` each time,
so a Jan-31 start yields Feb-29, Mar-31, Apr-30 rather than drifting to the
29th for the rest of the series.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta

from rating_backtest.backtesting.exceptions import InsufficientDataError
from rating_backtest.common.schemas import Interval

_MONTHS_PER_STEP = {"month": 1, "quarter": 3}


def add_months(day: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def month_window(day: date) -> tuple[date, date]:
    """First and last day of the calendar month following `day`."""
    first = add_months(day.replace(day=1), 1)
    last = first.replace(day=calendar.monthrange(first.year, first.month)[1])
    return first, last


def iter_dates(start: date, end: date, interval: Interval | str = "month"):
    """Yield start + k * interval while <= end.

    Unknown interval names fall back to "month".
    """
    k = 0
    while True:
        if interval == "week":
            current = start + timedelta(weeks=k)
        else:
            current = add_months(start, k * _MONTHS_PER_STEP.get(interval, 1))
        if current > end:
            return
        yield current
        k += 1


def build_boundaries(start: date, end: date, interval: Interval | str = "month") -> list[date]:
    """Generate period boundaries from start to end inclusive.

    Raises:
        InsufficientDataError: Fewer than two boundaries (no full period).
    """
    boundaries = list(iter_dates(start, end, interval))
    if len(boundaries) < 2:
        raise InsufficientDataError(
            "At least two boundaries are required (start + next period)",
            context={
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
                "interval": interval,
                "boundaries": len(boundaries),
            },
        )
    return boundaries


def boundary_pairs(boundaries: list[date]) -> list[tuple[date, date]]:
    """Consecutive (d0, d1) pairs; len(result) == len(boundaries) - 1."""
    return list(zip(boundaries[:-1], boundaries[1:], strict=True))
