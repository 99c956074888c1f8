"""Single-active-run control and cooperative cancellation.

State transitions:
    start()     -> new RunContext becomes active
                   (rejected with RunAlreadyActiveError if one is active)
    cancel()    -> active run's cancelled flag goes False -> True (never back)
    finalize()  -> finished_at stamped; active slot cleared if ctx is active

Every long-running loop calls `run.raise_if_cancelled()` before claiming
the next unit of work. In-flight external calls are not aborted; they are
simply not followed by new ones.

The controller guards its slot with a threading.Lock, so start/cancel may
be called from a request thread while the run executes on an event loop.

Usage:
    controller = RunController()
    run = controller.start()
    try:
        ...
        run.raise_if_cancelled()
    finally:
        controller.finalize(run)
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field

from rating_backtest.backtesting.exceptions import RunAlreadyActiveError, RunCancelledError
from rating_backtest.common.logging import get_logger
from rating_backtest.common.schemas import UsageSummary
from rating_backtest.oracle.usage import UsageAccumulator

logger = get_logger("RUN")


@dataclass
class RunContext:
    """State for one run. `cancelled` is monotonic."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    usage: UsageAccumulator = field(default_factory=UsageAccumulator)
    _cancelled: bool = field(default=False, repr=False)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def finalized(self) -> bool:
        return self.finished_at is not None

    def cancel(self) -> bool:
        """Set the cancelled flag. Returns True only on the False -> True flip."""
        if self._cancelled:
            return False
        self._cancelled = True
        return True

    def raise_if_cancelled(self) -> None:
        """Abort the current operation if the run was cancelled.

        Raises:
            RunCancelledError: The cancelled flag is set.
        """
        if self._cancelled:
            raise RunCancelledError(context={"run_id": self.id})

    def usage_summary(self) -> UsageSummary:
        return self.usage.summarize(self.started_at, self.finished_at)


class RunController:
    """Owns the process-wide single-active-run slot."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: RunContext | None = None
        self._last: RunContext | None = None

    @property
    def active(self) -> RunContext | None:
        return self._active

    def start(self) -> RunContext:
        """Create and activate a new run.

        Raises:
            RunAlreadyActiveError: An unfinalized run is already active.
        """
        with self._lock:
            if self._active is not None and not self._active.finalized:
                raise RunAlreadyActiveError(
                    "A run is already in progress; stop it or wait for it to finish",
                    context={"run_id": self._active.id},
                )
            ctx = RunContext()
            self._active = ctx

        logger.info("Run started", extra={"data": {"run_id": ctx.id}})
        return ctx

    def cancel(self) -> bool:
        """Request cancellation of the active run, without waiting for it.

        Returns:
            True if an active run exists and is now flagged cancelled,
            False if there was nothing to cancel.
        """
        with self._lock:
            ctx = self._active
            if ctx is None or ctx.finalized:
                return False
            flipped = ctx.cancel()

        if flipped:
            logger.info("Run cancellation requested", extra={"data": {"run_id": ctx.id}})
        return True

    def finalize(self, ctx: RunContext) -> None:
        """Stamp finished_at and release the active slot if ctx holds it.

        Safe to call more than once; must be called on every exit path.
        """
        with self._lock:
            if ctx.finished_at is None:
                ctx.finished_at = time.time()
            if self._active is ctx:
                self._active = None
            self._last = ctx

        logger.info(
            "Run finalized",
            extra={
                "data": {
                    "run_id": ctx.id,
                    "cancelled": ctx.cancelled,
                    "duration_seconds": round(ctx.finished_at - ctx.started_at, 3),
                }
            },
        )

    def status(self) -> dict:
        """Snapshot for status reporting: the active run, else the last one."""
        with self._lock:
            ctx = self._active or self._last
            running = self._active is not None
        if ctx is None:
            return {"running": False, "run_id": None}
        return {
            "running": running,
            "run_id": ctx.id,
            "cancelled": ctx.cancelled,
            "started_at": ctx.started_at,
            "finished_at": ctx.finished_at,
            "usage": ctx.usage_summary().model_dump(),
        }
