# src/pipeline/registry.py - v1
"""Phase registry: ordered phase declarations shared by scheduler and progress.

Validates that keys are unique and that exactly one phase is the gating
phase. Every other phase belongs to the parallel cohort.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterator

from assessflow.config.phases import GATING_PHASE, PHASE_DEFINITIONS
from assessflow.core.errors import AssessflowError, UnknownPhaseError
from assessflow.core.models import Phase, PhaseSpec

if TYPE_CHECKING:
    from assessflow.config.settings import Settings

logger = logging.getLogger(__name__)


class RegistryError(AssessflowError):
    """Raised when phase declarations are inconsistent."""


class PhaseRegistry:
    """Ordered, validated set of phase declarations."""

    def __init__(self, specs: list[PhaseSpec]) -> None:
        if not specs:
            raise RegistryError("At least one phase is required")

        keys = [s.key for s in specs]
        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            raise RegistryError(f"Duplicate phase keys: {duplicates}")

        gating = [s.key for s in specs if s.gating]
        if len(gating) != 1:
            raise RegistryError(
                f"Exactly one gating phase is required, found {gating or 'none'}"
            )

        self._specs: dict[str, PhaseSpec] = {s.key: s for s in specs}
        self._gating_key = gating[0]

    @classmethod
    def default(cls, estimates: dict[str, float] | None = None) -> PhaseRegistry:
        """Build the six-phase registry, optionally overriding estimates."""
        estimates = estimates or {}
        specs = [
            PhaseSpec(
                key=key,
                display_name=name,
                estimated_duration_s=estimates.get(key, duration),
                gating=key == GATING_PHASE,
            )
            for key, name, duration in PHASE_DEFINITIONS
        ]
        return cls(specs)

    @classmethod
    def from_settings(cls, settings: Settings) -> PhaseRegistry:
        return cls.default(estimates=dict(settings.phase_estimates))

    @property
    def keys(self) -> list[str]:
        return list(self._specs)

    @property
    def gating(self) -> PhaseSpec:
        return self._specs[self._gating_key]

    @property
    def cohort(self) -> list[PhaseSpec]:
        return [s for k, s in self._specs.items() if k != self._gating_key]

    @property
    def cohort_keys(self) -> list[str]:
        return [s.key for s in self.cohort]

    @property
    def cohort_max_duration_s(self) -> float:
        """Wall-clock contribution of the cohort: its slowest member."""
        return max((s.estimated_duration_s for s in self.cohort), default=0.0)

    @property
    def total_estimated_duration_s(self) -> float:
        return self.gating.estimated_duration_s + self.cohort_max_duration_s

    def get(self, key: str) -> PhaseSpec:
        """Get a phase declaration by key.

        Raises:
            UnknownPhaseError: If the key is not registered.
        """
        try:
            return self._specs[key]
        except KeyError:
            raise UnknownPhaseError(key) from None

    def new_phases(self) -> dict[str, Phase]:
        """Fresh pending Phase values, in declaration order."""
        return {key: Phase(spec=spec) for key, spec in self._specs.items()}

    def __contains__(self, key: object) -> bool:
        return key in self._specs

    def __iter__(self) -> Iterator[PhaseSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)
