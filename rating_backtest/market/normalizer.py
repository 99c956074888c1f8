"""Normalize raw price-history API payloads into typed records.

FMP endpoints return either a bare list or an object wrapping the rows in
a `historical` key, and the close-like field varies by endpoint
(`close`, `adjClose`, `price`). Everything is funneled through here so
the rest of the engine only sees PricePoint / MarketCap / Constituent.
"""

from __future__ import annotations

import math
from datetime import date

from rating_backtest.common.schemas import Constituent, MarketCap, PricePoint
from rating_backtest.market.exceptions import ParseError


def extract_rows(payload: object) -> list[dict]:
    """Return the row list from a list or {"historical": [...]} payload.

    Raises:
        ParseError: If the payload is neither shape.
    """
    if isinstance(payload, list):
        rows = payload
    elif isinstance(payload, dict):
        rows = payload.get("historical")
        if rows is None:
            # FMP answers unknown symbols with an empty object
            if not payload:
                return []
            raise ParseError(
                "Unexpected payload: object without 'historical' rows",
                context={"keys": sorted(payload.keys())[:10]},
            )
        if not isinstance(rows, list):
            raise ParseError("Unexpected payload: 'historical' is not a list")
    else:
        raise ParseError(
            "Unexpected payload type",
            context={"type": type(payload).__name__},
        )
    return [r for r in rows if isinstance(r, dict)]


def to_float(value: object) -> float | None:
    """Coerce to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_date(value: object) -> date | None:
    """Parse the leading YYYY-MM-DD of a date string, or None."""
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value) < 10:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _first_float(row: dict, *keys: str) -> float | None:
    for key in keys:
        number = to_float(row.get(key))
        if number is not None:
            return number
    return None


def normalize_daily_bars(payload: object) -> list[PricePoint]:
    """Convert a daily-bar payload into a sorted, de-duplicated series.

    Rows without a parsable date or a finite close are dropped. Dates are
    strictly increasing in the result; when a date repeats, the last row
    in payload order wins.

    Args:
        payload: Raw JSON from a historical-price endpoint.

    Returns:
        PricePoints sorted ascending by date.
    """
    by_date: dict[date, PricePoint] = {}
    for row in extract_rows(payload):
        day = parse_date(row.get("date"))
        close = _first_float(row, "close", "adjClose", "price")
        if day is None or close is None:
            continue
        by_date[day] = PricePoint(
            date=day,
            close=close,
            high=to_float(row.get("high")),
            low=to_float(row.get("low")),
        )
    return [by_date[d] for d in sorted(by_date)]


def normalize_market_caps(payload: object, default_symbol: str | None = None) -> list[MarketCap]:
    """Convert market-cap rows, dropping rows without a symbol or finite value.

    Args:
        payload: Raw JSON from a market-cap endpoint.
        default_symbol: Symbol to assume for rows that omit one (single-symbol
            endpoints).
    """
    caps: list[MarketCap] = []
    for row in extract_rows(payload):
        symbol = row.get("symbol") or default_symbol
        cap = _first_float(row, "marketCap", "marketcap", "market_cap")
        if not symbol or cap is None:
            continue
        caps.append(
            MarketCap(
                symbol=str(symbol).upper(),
                market_cap=cap,
                as_of=parse_date(row.get("date")),
            )
        )
    return caps


def normalize_constituents(payload: object) -> list[Constituent]:
    """Convert index-constituent rows into upper-cased Constituents."""
    return [
        Constituent(symbol=str(row["symbol"]).upper(), sector=row.get("sector") or "")
        for row in extract_rows(payload)
        if row.get("symbol")
    ]
