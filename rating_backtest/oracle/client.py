"""Decision-oracle HTTP client.

The oracle is the analyzer service that produces a rating call for a
(ticker, date). One POST per decision:

    POST {analyzer_base_url}/api/analyze        {"ticker": "NVDA", "date": "2024-03-01"}
    POST {analyzer_base_url}/api/reset-cache    {"ticker": "NVDA", "date": "2024-03-01"}

Response field names vary between analyzer versions, so parse_decision()
tolerates several shapes (see its docstring). Non-2xx answers are hard
failures for that call and raise DecisionError.

Usage:
    async with OracleClient() as oracle:
        decision = await oracle.analyze("NVDA", date(2024, 3, 1))
"""

from __future__ import annotations

from datetime import date

import httpx

from rating_backtest.common.config import get_settings
from rating_backtest.common.logging import get_logger
from rating_backtest.common.metrics import EXTERNAL_CALLS_TOTAL
from rating_backtest.common.schemas import Decision, TargetBand
from rating_backtest.market.normalizer import to_float
from rating_backtest.oracle.exceptions import DecisionError, OracleConnectionError
from rating_backtest.oracle.ratings import normalize_rating

logger = get_logger("ORACLE")


def _dig(payload: object, *path: str) -> object:
    """Walk nested dicts, returning None on any missing step."""
    node = payload
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def _first_present(*values: object) -> object:
    for value in values:
        if value is not None:
            return value
    return None


def parse_decision(payload: object) -> Decision:
    """Build a Decision from an /api/analyze response body.

    Lookup order:
      rating:   analysis.action.rating, analysis.rating, analysis.action (str), analysis (str)
      target:   analysis.action.target_price, analysis.target_price
      usage:    llm_usage, analysis.__usage
      price:    inputs.price.value, fetched.finnhub_summary.quote.c
    """
    action = _dig(payload, "analysis", "action")
    raw_rating = _first_present(
        _dig(action, "rating"),
        _dig(payload, "analysis", "rating"),
        action if isinstance(action, str) else None,
        _dig(payload, "analysis") if isinstance(_dig(payload, "analysis"), str) else None,
    )
    raw_rating = raw_rating if isinstance(raw_rating, str) else None

    target = to_float(
        _first_present(
            _dig(action, "target_price"),
            _dig(payload, "analysis", "target_price"),
        )
    )

    usage = _first_present(_dig(payload, "llm_usage"), _dig(payload, "analysis", "__usage"))

    band_raw = _dig(action, "target_band")
    band = None
    if isinstance(band_raw, dict):
        band = TargetBand(
            band_pct=to_float(band_raw.get("band_pct")),
            upper_pct=to_float(band_raw.get("upper_pct")),
            lower_pct=to_float(band_raw.get("lower_pct")),
        )

    segment = _dig(payload, "analysis", "profile", "segment")
    rationale = _dig(action, "rationale")

    return Decision(
        rating=normalize_rating(raw_rating),
        target_price=target,
        usage=usage if isinstance(usage, dict) else None,
        raw_rating=raw_rating,
        target_band=band,
        segment=segment if isinstance(segment, str) else None,
        baseline_price=to_float(
            _first_present(
                _dig(payload, "inputs", "price", "value"),
                _dig(payload, "fetched", "finnhub_summary", "quote", "c"),
            )
        ),
        rationale=rationale if isinstance(rationale, str) else "",
    )


class OracleClient:
    """Async client for the analyzer service.

    Args:
        base_url: Analyzer root URL. Defaults to settings.analyzer_base_url.
        timeout: Per-request upper bound in seconds.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.analyzer_base_url).rstrip("/")
        self.client = httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.request_timeout_seconds,
        )

    async def __aenter__(self) -> OracleClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()

    async def _post(self, path: str, ticker: str, day: date) -> httpx.Response:
        try:
            return await self.client.post(
                f"{self.base_url}{path}",
                json={"ticker": ticker, "date": day.isoformat()},
            )
        except httpx.RequestError as exc:
            EXTERNAL_CALLS_TOTAL.labels(api="oracle", outcome="network_error").inc()
            raise OracleConnectionError(
                f"Network error calling analyzer: {type(exc).__name__}",
                context={"path": path, "ticker": ticker, "date": day.isoformat()},
            ) from exc

    async def analyze(self, ticker: str, day: date) -> Decision:
        """Request a rating decision for one (ticker, date).

        Raises:
            DecisionError: Non-2xx response.
            OracleConnectionError: Network failure or timeout.
        """
        response = await self._post("/api/analyze", ticker, day)
        if not response.is_success:
            EXTERNAL_CALLS_TOTAL.labels(api="oracle", outcome="http_error").inc()
            raise DecisionError(ticker, day.isoformat(), response.status_code, response.text)

        EXTERNAL_CALLS_TOTAL.labels(api="oracle", outcome="success").inc()
        try:
            payload = response.json()
        except ValueError:
            logger.warning(
                "Analyzer returned non-JSON body, treating as empty decision",
                extra={"data": {"ticker": ticker, "date": day.isoformat(), "body": response.text[:200]}},
            )
            payload = {}

        decision = parse_decision(payload)
        logger.debug(
            "Decision received",
            extra={
                "data": {
                    "ticker": ticker,
                    "date": day.isoformat(),
                    "rating": decision.rating,
                    "target_price": decision.target_price,
                }
            },
        )
        return decision

    async def reset_cache(self, ticker: str, day: date) -> None:
        """Ask the analyzer to drop its own cached analysis for (ticker, date).

        Raises:
            DecisionError: Non-2xx response.
        """
        response = await self._post("/api/reset-cache", ticker, day)
        if not response.is_success:
            raise DecisionError(ticker, day.isoformat(), response.status_code, response.text)
