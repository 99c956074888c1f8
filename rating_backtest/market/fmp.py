"""Price-history API client (Financial Modeling Prep, stable endpoints).

Wraps the endpoints the backtest engine needs with rate limiting, a fixed
per-call timeout and a small bounded retry budget with linear backoff.

Key endpoints used:
  - /sp500-constituent                  -> Universe (symbol + sector)
  - /historical-price-eod/full          -> Daily bars for one symbol
  - /market-capitalization-batch        -> Latest market cap, comma-joined symbols
  - /historical-market-capitalization   -> Dated market-cap series for one symbol

Usage:
    from rating_backtest.market.fmp import FmpClient

    async with FmpClient() as fmp:
        series = await fmp.get_daily_history("NVDA")
"""

from __future__ import annotations

import asyncio
from datetime import date

import httpx

from rating_backtest.common.config import get_settings
from rating_backtest.common.exceptions import ConfigurationError
from rating_backtest.common.logging import get_logger
from rating_backtest.common.metrics import EXTERNAL_CALLS_TOTAL
from rating_backtest.common.schemas import Constituent, MarketCap, PricePoint
from rating_backtest.market.exceptions import FetchError, ParseError
from rating_backtest.market.normalizer import (
    normalize_constituents,
    normalize_daily_bars,
    normalize_market_caps,
)
from rating_backtest.market.rate_limiter import RateLimiter

logger = get_logger("FETCH")


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class FmpClient:
    """Async price-history API client with retry, timeout and rate limiting.

    One instance is shared by every worker in a run; httpx.AsyncClient is
    safe for concurrent use within one event loop.

    Args:
        api_key: FMP API key. Defaults to settings.fmp_api_key.
        base_url: API root. Defaults to settings.fmp_base_url.
        max_retries: Retries after the initial attempt.
        retry_delay: Base delay in seconds; attempt N waits N * retry_delay.
        timeout: Per-request upper bound in seconds.
        limiter: Rate limiter shared across calls.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        timeout: float | None = None,
        limiter: RateLimiter | None = None,
    ) -> None:
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.fmp_api_key
        if not self.api_key:
            raise ConfigurationError("FMP_API_KEY is not set")
        self.base_url = (base_url or settings.fmp_base_url).rstrip("/")
        self.max_retries = settings.fmp_max_retries if max_retries is None else max_retries
        self.retry_delay = (
            settings.fmp_retry_delay_seconds if retry_delay is None else retry_delay
        )
        self.limiter = limiter or RateLimiter(settings.fmp_rate_limit_per_second)
        self.client = httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.request_timeout_seconds,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> FmpClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()

    # ─── Core Request Method ───

    async def _get(self, path: str, params: dict | None = None) -> object:
        """GET an endpoint with bounded retry.

        Retries on 429, 5xx, timeouts and network errors. Other non-2xx
        statuses fail immediately.

        Args:
            path: Endpoint path without leading slash.
            params: Query parameters; None/empty values are dropped.

        Returns:
            Parsed JSON payload.

        Raises:
            FetchError: Non-retryable status or retries exhausted.
            ParseError: Response body is not JSON.
        """
        url = f"{self.base_url}/{path}"
        query = {k: str(v) for k, v in (params or {}).items() if v is not None and v != ""}
        query["apikey"] = self.api_key

        for attempt in range(self.max_retries + 1):
            await self.limiter.acquire()
            try:
                response = await self.client.get(url, params=query)
            except httpx.RequestError as exc:
                if attempt < self.max_retries:
                    wait = self.retry_delay * (attempt + 1)
                    logger.warning(
                        "Network error, retrying",
                        extra={
                            "data": {
                                "path": path,
                                "error": type(exc).__name__,
                                "attempt": attempt + 1,
                                "wait_seconds": wait,
                            }
                        },
                    )
                    await asyncio.sleep(wait)
                    continue
                EXTERNAL_CALLS_TOTAL.labels(api="fmp", outcome="network_error").inc()
                raise FetchError(
                    f"Network error fetching {path} after {attempt + 1} attempts: "
                    f"{type(exc).__name__}",
                    context={"path": path, "symbol": query.get("symbol")},
                ) from exc

            if response.is_success:
                EXTERNAL_CALLS_TOTAL.labels(api="fmp", outcome="success").inc()
                try:
                    return response.json()
                except ValueError as exc:
                    raise ParseError(
                        f"Non-JSON response from {path}",
                        context={"path": path, "body": response.text[:200]},
                    ) from exc

            status_code = response.status_code
            if _is_retryable_status(status_code) and attempt < self.max_retries:
                wait = self.retry_delay * (attempt + 1)
                logger.warning(
                    f"FMP returned {status_code}, retrying",
                    extra={
                        "data": {
                            "path": path,
                            "status_code": status_code,
                            "attempt": attempt + 1,
                            "wait_seconds": wait,
                        }
                    },
                )
                await asyncio.sleep(wait)
                continue

            EXTERNAL_CALLS_TOTAL.labels(api="fmp", outcome="http_error").inc()
            raise FetchError(
                f"HTTP {status_code} fetching {path} after {attempt + 1} attempts",
                context={
                    "path": path,
                    "status": status_code,
                    "symbol": query.get("symbol") or query.get("symbols", "")[:50],
                    "body": response.text[:200],
                },
            )

        # Should never reach here, but just in case
        raise FetchError(f"All retries exhausted for {path}")

    # ─── Universe ───

    async def get_sp500_constituents(self) -> list[Constituent]:
        """Fetch the S&P 500 constituent list with sectors."""
        payload = await self._get("sp500-constituent")
        constituents = normalize_constituents(payload)
        logger.info(
            "S&P 500 constituents fetched",
            extra={"data": {"count": len(constituents)}},
        )
        return constituents

    # ─── Prices ───

    async def get_daily_history(
        self,
        symbol: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[PricePoint]:
        """Fetch daily bars for one symbol, sorted ascending.

        Args:
            symbol: Ticker symbol.
            start: Optional first date (inclusive).
            end: Optional last date (inclusive).
        """
        payload = await self._get(
            "historical-price-eod/full",
            {
                "symbol": symbol,
                "from": start.isoformat() if start else None,
                "to": end.isoformat() if end else None,
            },
        )
        return normalize_daily_bars(payload)

    # ─── Market Capitalization ───

    async def get_market_caps(self, symbols: list[str]) -> list[MarketCap]:
        """Fetch latest market caps for one batch of symbols.

        The caller is responsible for keeping the batch within the
        upstream request-size limit (settings.mcap_batch_size).
        """
        if not symbols:
            return []
        payload = await self._get("market-capitalization-batch", {"symbols": ",".join(symbols)})
        return normalize_market_caps(payload)

    async def get_historical_market_cap(self, symbol: str) -> list[MarketCap]:
        """Fetch the full dated market-cap series for one symbol (unsorted)."""
        payload = await self._get("historical-market-capitalization", {"symbol": symbol})
        return normalize_market_caps(payload, default_symbol=symbol)
