# src/core/models.py - v1
"""Core domain models: phases, runs, analysis inputs and results.

Phase and Run are mutable runtime values owned by one orchestrator
instance. Inputs and results are pydantic models so they can be
checkpointed and archived as JSON.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field

PhaseState = Literal["pending", "active", "completed", "error"]
RunOutcome = Literal["complete", "partial_complete", "error", "cancelled"]

TERMINAL_STATES: frozenset[str] = frozenset({"completed", "error"})


class PhaseSpec(BaseModel):
    """Static declaration of one analysis phase."""

    model_config = {"frozen": True}

    key: str
    display_name: str
    estimated_duration_s: float = Field(ge=0)
    gating: bool = False


@dataclass
class Phase:
    """Runtime state of one phase within a run."""

    spec: PhaseSpec
    state: PhaseState = "pending"
    started_at: float | None = None
    ended_at: float | None = None
    result: Any = None
    failure: Exception | None = None
    task: asyncio.Task[Any] | None = field(default=None, repr=False)

    @property
    def key(self) -> str:
        return self.spec.key

    @property
    def display_name(self) -> str:
        return self.spec.display_name

    @property
    def estimated_duration_s(self) -> float:
        return self.spec.estimated_duration_s

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def duration_s(self) -> float | None:
        """Wall-clock duration once the phase has ended."""
        if self.started_at is None or self.ended_at is None:
            return None
        return self.ended_at - self.started_at

    def reset(self) -> None:
        """Return the phase to its initial pending state."""
        self.state = "pending"
        self.started_at = None
        self.ended_at = None
        self.result = None
        self.failure = None
        self.task = None


@dataclass
class Run:
    """One execution of the full phase set for one input."""

    run_id: str
    started_at: float
    phases: dict[str, Phase]
    gating_key: str
    analysis_input: AnalysisInput | None = None
    company_description: str | None = None
    cancelled: bool = False
    outcome: RunOutcome | None = None

    @property
    def gating(self) -> Phase:
        return self.phases[self.gating_key]

    @property
    def cohort(self) -> list[Phase]:
        return [p for k, p in self.phases.items() if k != self.gating_key]

    @property
    def completed_count(self) -> int:
        return sum(1 for p in self.phases.values() if p.state == "completed")

    @property
    def total_count(self) -> int:
        return len(self.phases)

    @property
    def is_finished(self) -> bool:
        return all(p.is_terminal for p in self.phases.values())

    @property
    def failed_phases(self) -> list[str]:
        return [k for k, p in self.phases.items() if p.state == "error"]

    @property
    def active_phases(self) -> list[Phase]:
        return [p for p in self.phases.values() if p.state == "active"]


class DocumentRef(BaseModel):
    """An attached company document."""

    file_name: str
    content: bytes = b""
    mime_type: str = "application/octet-stream"


class AnalysisInput(BaseModel):
    """Input to a run: a normalized company URL, a document, or both."""

    url: str | None = None
    document: DocumentRef | None = None

    @property
    def has_url(self) -> bool:
        return bool(self.url and self.url.strip())

    @property
    def has_document(self) -> bool:
        return self.document is not None

    @property
    def file_name(self) -> str | None:
        return self.document.file_name if self.document else None


class CompanyResult(BaseModel):
    """Result of the gating phase.

    ``full`` is the structured payload for display. ``short`` is the
    short-form description every cohort phase consumes.
    """

    full: dict[str, Any] = Field(default_factory=dict)
    short: str = ""

    @property
    def venture_name(self) -> str | None:
        overview = self.full.get("company_overview") or {}
        name = overview.get("name") if isinstance(overview, dict) else None
        return name or None


class AnalysisResults(BaseModel):
    """Result set of a run, one slot per dimension."""

    company: dict[str, Any] | None = None
    team: Any = None
    funding: Any = None
    competitive: Any = None
    market: Any = None
    iprisk: Any = None
    company_description: str | None = None
    duration_s: float = 0.0

    def ai_data(self) -> dict[str, Any]:
        """Per-dimension payloads, without run metadata."""
        return {
            "company": self.company,
            "team": self.team,
            "funding": self.funding,
            "competitive": self.competitive,
            "market": self.market,
            "iprisk": self.iprisk,
        }
