# tests/unit/pipeline/test_progress.py - v1
"""Tests for pipeline/progress.py - two-stage progress estimate."""

from __future__ import annotations

import pytest

from assessflow.core.models import Run
from assessflow.pipeline.progress import estimate
from assessflow.pipeline.registry import PhaseRegistry

T0 = 1_000.0


def _run() -> Run:
    registry = PhaseRegistry.default()
    return Run(
        run_id="r1",
        started_at=T0,
        phases=registry.new_phases(),
        gating_key=registry.gating.key,
    )


def _set(run: Run, key: str, state: str, started_at: float | None = None) -> None:
    phase = run.phases[key]
    phase.state = state
    phase.started_at = started_at


def _finish_gating(run: Run) -> None:
    _set(run, "company", "completed", started_at=T0)


class TestEstimate:
    def test_no_run(self):
        result = estimate(None, now=T0)
        assert result.percentage == 0
        assert result.remaining_seconds == 0
        assert result.total_count == 0

    def test_not_started(self):
        result = estimate(_run(), now=T0 + 10)
        assert result.percentage == 0
        assert result.remaining_seconds == 390
        assert result.estimated_total_seconds == 400
        assert result.completed_count == 0
        assert result.total_count == 6

    def test_gating_active(self):
        run = _run()
        _set(run, "company", "active", started_at=T0)
        result = estimate(run, now=T0 + 75)
        assert result.percentage == pytest.approx(18.75)
        assert result.current_phase == "Company Analysis"
        assert result.elapsed_seconds == 75

    def test_gating_overdue_is_clamped(self):
        run = _run()
        _set(run, "company", "active", started_at=T0)
        result = estimate(run, now=T0 + 1_000)
        assert result.percentage == pytest.approx(37.5)
        assert result.remaining_seconds == 0

    def test_cohort_longest_elapsed(self):
        run = _run()
        _finish_gating(run)
        for key in ["team", "funding", "competitive", "market", "iprisk"]:
            _set(run, key, "active", started_at=T0 + 150)
        result = estimate(run, now=T0 + 250)
        assert result.percentage == pytest.approx(62.5)
        assert result.completed_count == 1

    def test_terminal_cohort_phase_credit(self):
        run = _run()
        _finish_gating(run)
        _set(run, "team", "completed", started_at=T0 + 150)
        for key in ["funding", "competitive", "market", "iprisk"]:
            _set(run, key, "active", started_at=T0 + 240)
        result = estimate(run, now=T0 + 250)
        assert result.percentage == pytest.approx((150 + 125) / 400 * 100)

    def test_capped_until_finished(self):
        run = _run()
        _finish_gating(run)
        for key in ["team", "funding", "competitive", "market"]:
            _set(run, key, "completed", started_at=T0 + 150)
        _set(run, "iprisk", "active", started_at=T0 + 150)
        result = estimate(run, now=T0 + 10_000)
        assert result.percentage == 95

    def test_finished_with_errors_is_full(self):
        run = _run()
        _finish_gating(run)
        for key in ["team", "funding", "competitive", "market"]:
            _set(run, key, "completed", started_at=T0 + 150)
        _set(run, "iprisk", "error", started_at=T0 + 150)
        result = estimate(run, now=T0 + 300)
        assert result.percentage == 100
        assert result.completed_count == 5
        assert result.current_phase is None

    def test_current_phase_lists_active(self):
        run = _run()
        _finish_gating(run)
        _set(run, "team", "active", started_at=T0 + 150)
        _set(run, "market", "active", started_at=T0 + 150)
        result = estimate(run, now=T0 + 160)
        assert result.current_phase == "Researcher Aptitude, Market Opportunity"
