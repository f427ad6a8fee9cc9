# src/clients/client_factory.py - v1
"""Factory for the six remote analysis clients."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from assessflow.clients.base_client import BaseAnalysisClient, BaseCompanyClient
from assessflow.clients.workflow_client import (
    CompanyWorkflowClient,
    DimensionWorkflowClient,
    WorkflowTransport,
)
from assessflow.config.phases import GATING_PHASE, PHASE_DEFINITIONS
from assessflow.config.settings import ConfigurationError, Settings


@dataclass
class AnalysisClients:
    """The gating client plus one client per cohort dimension."""

    company: BaseCompanyClient
    cohort: dict[str, BaseAnalysisClient]
    transport: WorkflowTransport | None = None

    async def aclose(self) -> None:
        if self.transport is not None:
            await self.transport.aclose()


def create_clients(
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> AnalysisClients:
    """Build workflow clients from settings.

    Raises:
        ConfigurationError: If the workflow base URL is not configured.
    """
    if not settings.workflow_base_url:
        raise ConfigurationError("WORKFLOW_BASE_URL must be set to run analyses")

    transport = WorkflowTransport(
        base_url=settings.workflow_base_url,
        api_key=settings.workflow_api_key,
        workflow_ids=settings.workflow_ids_map,
        http_client=http_client,
    )
    timeouts = settings.phase_timeouts

    cohort: dict[str, BaseAnalysisClient] = {
        key: DimensionWorkflowClient(key, transport, timeout_s=timeouts[key])
        for key, _, _ in PHASE_DEFINITIONS
        if key != GATING_PHASE
    }
    return AnalysisClients(
        company=CompanyWorkflowClient(transport, timeout_s=timeouts[GATING_PHASE]),
        cohort=cohort,
        transport=transport,
    )
