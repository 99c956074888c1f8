"""Fixed-size async worker pool over a shared work index.

Each worker loops: check cancellation, claim the next index, process it.
Claiming is `next(counter)` on a shared itertools.count with no await in
between, so on a single event loop no two workers ever receive the same
index. Completion order is arbitrary; the pool returns only after every
worker has joined.

If any worker raises (including RunCancelledError), the remaining workers
are cancelled and awaited before the exception propagates.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from rating_backtest.backtesting.run_control import RunContext

T = TypeVar("T")


async def run_worker_pool(
    items: Sequence[T],
    handler: Callable[[T], Awaitable[None]],
    size: int,
    run: RunContext | None = None,
) -> None:
    """Process every item with at most `size` concurrent handlers.

    Args:
        items: Units of work, addressed by index.
        handler: Coroutine function called once per item. Handles its own
            per-item failures; anything it raises aborts the pool.
        size: Number of workers (at least 1).
        run: Run whose cancellation flag is checked before each claim.

    Raises:
        RunCancelledError: The run was cancelled before all items were claimed.
    """
    if not items:
        if run is not None:
            run.raise_if_cancelled()
        return

    counter = itertools.count()
    total = len(items)

    async def worker() -> None:
        while True:
            if run is not None:
                run.raise_if_cancelled()
            index = next(counter)
            if index >= total:
                return
            await handler(items[index])

    tasks = [asyncio.create_task(worker()) for _ in range(max(1, min(size, total)))]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
