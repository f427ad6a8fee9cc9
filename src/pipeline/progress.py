# src/pipeline/progress.py - v1
"""Wall-clock progress estimate for a run.

Two-stage model: the gating phase runs alone, then the cohort runs
concurrently, so the expected total is the gating estimate plus the
slowest cohort estimate. Display only; nothing in the scheduler reads it.
"""

from __future__ import annotations

from dataclasses import dataclass

from assessflow.core.models import Run

MAX_PERCENT_UNTIL_DONE = 95.0
# Credit given to a finished cohort phase, as a share of the cohort max.
TERMINAL_COHORT_CREDIT = 0.5


@dataclass(frozen=True)
class ProgressEstimate:
    """Snapshot of estimated progress."""

    percentage: float
    remaining_seconds: float
    completed_count: int
    total_count: int
    elapsed_seconds: float = 0.0
    estimated_total_seconds: float = 0.0
    current_phase: str | None = None


def estimate(run: Run | None, now: float) -> ProgressEstimate:
    """Estimate completion of ``run`` at time ``now`` (epoch seconds)."""
    if run is None:
        return ProgressEstimate(
            percentage=0.0, remaining_seconds=0.0, completed_count=0, total_count=0
        )

    gating = run.gating
    cohort = run.cohort
    gating_duration = gating.estimated_duration_s
    cohort_max = max((p.estimated_duration_s for p in cohort), default=0.0)
    total_duration = gating_duration + cohort_max

    contribution = 0.0
    if gating.state == "completed":
        contribution += gating_duration
        if all(p.is_terminal for p in cohort):
            contribution += cohort_max
        else:
            longest = 0.0
            for phase in cohort:
                if phase.state == "active" and phase.started_at is not None:
                    longest = max(longest, now - phase.started_at)
                elif phase.is_terminal:
                    longest = max(longest, cohort_max * TERMINAL_COHORT_CREDIT)
            contribution += min(longest, cohort_max)
    elif gating.state == "active" and gating.started_at is not None:
        contribution += min(now - gating.started_at, gating_duration)

    if run.is_finished:
        percentage = 100.0
    elif total_duration > 0:
        percentage = min(MAX_PERCENT_UNTIL_DONE, contribution / total_duration * 100)
    else:
        percentage = 0.0

    elapsed = max(0.0, now - run.started_at)
    active_names = [p.display_name for p in run.active_phases]

    return ProgressEstimate(
        percentage=percentage,
        remaining_seconds=max(0.0, total_duration - elapsed),
        completed_count=run.completed_count,
        total_count=run.total_count,
        elapsed_seconds=elapsed,
        estimated_total_seconds=total_duration,
        current_phase=", ".join(active_names) if active_names else None,
    )
