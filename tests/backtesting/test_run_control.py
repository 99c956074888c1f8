"""Tests for RunContext and the single-active-run controller."""

from __future__ import annotations

import pytest

from rating_backtest.backtesting.exceptions import RunAlreadyActiveError, RunCancelledError
from rating_backtest.backtesting.run_control import RunContext, RunController


class TestRunContext:
    def test_cancel_flips_once(self):
        run = RunContext()
        assert run.cancel() is True
        assert run.cancel() is False
        assert run.cancelled is True

    def test_raise_if_cancelled(self):
        run = RunContext()
        run.raise_if_cancelled()
        run.cancel()
        with pytest.raises(RunCancelledError) as exc_info:
            run.raise_if_cancelled()
        assert exc_info.value.context["run_id"] == run.id

    def test_unique_ids(self):
        assert RunContext().id != RunContext().id


class TestRunController:
    def test_second_start_rejected_while_active(self, controller):
        controller.start()
        with pytest.raises(RunAlreadyActiveError):
            controller.start()

    def test_start_allowed_after_finalize(self, controller):
        first = controller.start()
        controller.finalize(first)
        second = controller.start()
        assert second.id != first.id
        assert controller.active is second

    def test_cancel_without_run(self, controller):
        assert controller.cancel() is False

    def test_cancel_active_run(self, controller):
        run = controller.start()
        assert controller.cancel() is True
        assert run.cancelled is True
        # idempotent: still reports an active run was cancelled
        assert controller.cancel() is True

    def test_cancel_after_finalize_returns_false(self, controller):
        run = controller.start()
        assert controller.cancel() is True
        controller.finalize(run)
        assert controller.cancel() is False

    def test_finalize_stamps_and_is_idempotent(self, controller):
        run = controller.start()
        controller.finalize(run)
        finished = run.finished_at
        assert finished is not None
        controller.finalize(run)
        assert run.finished_at == finished
        assert controller.active is None

    def test_finalize_stale_context_keeps_active_slot(self, controller):
        stale = RunContext()
        active = controller.start()
        controller.finalize(stale)
        assert controller.active is active

    def test_status_reports_active_then_last(self, controller):
        assert controller.status() == {"running": False, "run_id": None}
        run = controller.start()
        assert controller.status()["running"] is True
        assert controller.status()["run_id"] == run.id
        controller.finalize(run)
        status = controller.status()
        assert status["running"] is False
        assert status["run_id"] == run.id
        assert status["finished_at"] == run.finished_at
