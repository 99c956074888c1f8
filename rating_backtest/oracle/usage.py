"""Token and cost usage accumulated from decision-oracle responses.

The oracle reports LLM usage in a loose shape; any field may be missing:

    {"prompt_tokens": 812, "completion_tokens": 140, "total_tokens": 952,
     "total_cost": 0.0031, "input_cost": 0.0024, "output_cost": 0.0007}

Totals are derived from whichever parts are present. One accumulator is
owned by each RunContext. Updates never await, so concurrent tasks on the
same event loop cannot interleave inside apply().
"""

from __future__ import annotations

import time

from rating_backtest.common.schemas import UsageSummary
from rating_backtest.market.normalizer import to_float


class UsageAccumulator:
    """Additive, append-only usage counters for one run."""

    def __init__(self) -> None:
        self.prompt: float = 0
        self.completion: float = 0
        self.total: float = 0
        self.cost: float = 0.0
        self.calls: int = 0

    def apply(self, usage: dict | None) -> None:
        """Fold one response's usage into the counters.

        A non-dict or missing usage is ignored. Otherwise the call count is
        incremented by one even if no numeric field is present.
        """
        if not isinstance(usage, dict):
            return

        prompt = to_float(usage.get("prompt_tokens"))
        completion = to_float(usage.get("completion_tokens"))
        total = to_float(usage.get("total_tokens"))
        total_cost = to_float(usage.get("total_cost"))
        input_cost = to_float(usage.get("input_cost"))
        output_cost = to_float(usage.get("output_cost"))

        if prompt is not None:
            self.prompt += prompt
        if completion is not None:
            self.completion += completion

        if total is not None:
            self.total += total
        elif prompt is not None or completion is not None:
            self.total += (prompt or 0) + (completion or 0)

        if total_cost is not None:
            self.cost += total_cost
        elif input_cost is not None or output_cost is not None:
            self.cost += (input_cost or 0.0) + (output_cost or 0.0)

        self.calls += 1

    def summarize(
        self,
        started_at: float,
        finished_at: float | None = None,
    ) -> UsageSummary:
        """Snapshot the counters.

        Args:
            started_at: Run start, as a time.time() timestamp.
            finished_at: Run end; defaults to now for in-progress runs.
        """
        end = finished_at if finished_at is not None else time.time()
        return UsageSummary(
            prompt=int(self.prompt),
            completion=int(self.completion),
            total=int(self.total),
            cost=round(max(self.cost, 0.0), 6),
            calls=self.calls,
            duration_ms=max(0, int((end - started_at) * 1000)),
        )
