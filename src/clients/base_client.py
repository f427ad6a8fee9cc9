# src/clients/base_client.py - v1
"""Remote analysis client interfaces.

One client per dimension. Clients raise RemoteCallError for any failure,
including their own call-level timeouts and cancellation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from assessflow.core.models import AnalysisInput, CompanyResult

if TYPE_CHECKING:
    from assessflow.pipeline.cancellation import CancellationToken


class BaseCompanyClient(ABC):
    """Client for the gating company analysis."""

    @abstractmethod
    async def analyze(
        self, analysis_input: AnalysisInput, cancel_token: CancellationToken
    ) -> CompanyResult:
        """Analyze a company from its URL and/or attached document."""


class BaseAnalysisClient(ABC):
    """Client for one cohort dimension, driven by the short description."""

    @property
    @abstractmethod
    def dimension(self) -> str:
        """Phase key this client serves (team, funding, ...)."""

    @abstractmethod
    async def analyze(self, description: str, cancel_token: CancellationToken) -> Any:
        """Analyze one dimension from the company's short description."""
