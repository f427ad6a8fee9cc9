# src/logging/context.py - v1
"""Contextual logging support: attach run_id, assessment key and phase to records.

Context variables are task-local under asyncio, so each cohort phase task
carries its own ``phase`` value while sharing the run-level fields.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_assessment_key: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "assessment_key", default=None
)
_phase: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "phase", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    assessment_key: str | None = None
    phase: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        assessment_key=_assessment_key.get(),
        phase=_phase.get(),
    )


def set_run_context(run_id: str, assessment_key: str | None = None) -> None:
    """Set run-level context (called once per run start)."""
    _run_id.set(run_id)
    if assessment_key is not None:
        _assessment_key.set(assessment_key)


def set_assessment_context(assessment_key: str | None) -> None:
    """Set the assessment identity for persistence log lines."""
    _assessment_key.set(assessment_key)


def set_phase_context(phase: str | None) -> None:
    """Set phase-level context (called inside each phase task)."""
    _phase.set(phase)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _assessment_key.set(None)
    _phase.set(None)
