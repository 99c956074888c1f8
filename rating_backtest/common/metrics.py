"""Prometheus metrics definitions for the rating backtest engine.

All metric objects are centralized here as module-level singletons.
Import what you need from anywhere in the codebase:

    from rating_backtest.common.metrics import EXTERNAL_CALLS_TOTAL

Exposition is left to the embedding process (e.g. prometheus_client's
start_http_server or an ASGI mount).
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# ─── External API Metrics ───

EXTERNAL_CALLS_TOTAL = Counter(
    "rating_backtest_external_calls_total",
    "Total external API calls",
    labelnames=["api", "outcome"],
)

# ─── Decision Cache Metrics ───

DECISION_CACHE_TOTAL = Counter(
    "rating_backtest_decision_cache_total",
    "Decision cache lookups",
    labelnames=["result"],
)

# ─── Run Metrics ───

RUNS_TOTAL = Counter(
    "rating_backtest_runs_total",
    "Backtest run outcomes",
    labelnames=["outcome"],
)

RUN_DURATION_SECONDS = Histogram(
    "rating_backtest_run_duration_seconds",
    "Backtest run duration in seconds",
    buckets=(1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 900.0, 1800.0, 3600.0),
)
