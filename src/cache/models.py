# src/cache/models.py - v1
"""Persistence models: checkpoint, archived assessment and their summaries."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

CHECKPOINT_VERSION = "2.1"
SUPPORTED_MAJOR = "2"

CheckpointStatus = Literal["idle", "in_progress", "complete"]


class CompanyInputRecord(BaseModel):
    """What the operator submitted for this assessment."""

    url: str | None = None
    operator_name: str | None = None
    file_name: str | None = None


class OperatorScore(BaseModel):
    """An operator-entered score for one dimension."""

    score: int = Field(ge=1, le=9)
    justification: str


class Checkpoint(BaseModel):
    """Durable snapshot of the current run for reload recovery."""

    model_config = {"extra": "ignore"}

    version: str = CHECKPOINT_VERSION
    timestamp: float = 0.0
    status: CheckpointStatus = "idle"
    company_input: CompanyInputRecord | None = None
    completed_phases: dict[str, Any] = Field(default_factory=dict)
    operator_scores: dict[str, OperatorScore] = Field(default_factory=dict)
    operator_name: str | None = None
    external_row_id: str | None = None
    assessment_key: str | None = None
    final_recommendation: str = ""
    custom_venture_name: str | None = None


class ArchivedAssessment(BaseModel):
    """A past assessment kept for later retrieval, keyed by identity."""

    model_config = {"extra": "ignore"}

    key: str = ""
    timestamp: float | None = None
    company_input: CompanyInputRecord | None = None
    external_row_id: str | None = None
    operator_scores: dict[str, OperatorScore] = Field(default_factory=dict)
    ai_data: dict[str, Any] = Field(default_factory=dict)
    venture_name: str = "Unknown Venture"
    operator_name: str = "Unknown"

    @property
    def has_full_data(self) -> bool:
        """True when at least one dimension carries AI evidence."""
        return any(v is not None for v in self.ai_data.values())


class ArchiveSummary(BaseModel):
    """Lightweight listing entry for an archived assessment."""

    key: str
    venture_name: str
    operator_name: str
    timestamp: float
    has_full_data: bool
    company_url: str = ""
    file_name: str = ""
    external_row_id: str | None = None

    @property
    def date(self) -> str:
        return datetime.fromtimestamp(self.timestamp).strftime("%Y-%m-%d")


class ProgressSummary(BaseModel):
    """Checkpoint progress, as shown in a resume prompt."""

    company_url: str
    operator_name: str
    completed_count: int
    total_phases: int
    percentage: int
    timestamp: float
    status: CheckpointStatus
    completed_phases: dict[str, Any] = Field(default_factory=dict)
    operator_scores: dict[str, OperatorScore] = Field(default_factory=dict)


class RestoredState(BaseModel):
    """What a host needs to rebuild its view after a reload."""

    company_input: CompanyInputRecord | None = None
    completed_phases: dict[str, Any] = Field(default_factory=dict)
    operator_scores: dict[str, OperatorScore] = Field(default_factory=dict)
