# tests/conftest.py - v1
"""Shared test fixtures for all unit and integration tests.

Provides scripted fake analysis clients, a manual clock, in-memory
storage and a ready-wired orchestrator. No network I/O.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from assessflow.cache.checkpoint_store import CheckpointStore
from assessflow.clients.base_client import BaseAnalysisClient, BaseCompanyClient
from assessflow.core.models import AnalysisInput, CompanyResult
from assessflow.pipeline.orchestrator import AnalysisOrchestrator
from assessflow.pipeline.registry import PhaseRegistry
from assessflow.storage.memory_storage import MemoryStorage

COHORT_KEYS = ["team", "funding", "competitive", "market", "iprisk"]

SHORT_DESCRIPTION = (
    "Acme Robotics builds autonomous warehouse robots for mid-size "
    "logistics operators."
)


# === FAKE CLIENTS ===


class FakeCompanyClient(BaseCompanyClient):
    """Gating client returning a canned CompanyResult.

    Args:
        result: Result to return.
        errors: Exceptions raised by successive calls before succeeding.
        gate: If set, each call waits on it before answering.
    """

    def __init__(
        self,
        result: CompanyResult | None = None,
        errors: list[Exception] | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.result = result or CompanyResult(
            full={
                "company_overview": {
                    "name": "Acme Robotics",
                    "downstream_summary": SHORT_DESCRIPTION,
                }
            },
            short=SHORT_DESCRIPTION,
        )
        self.errors = list(errors or [])
        self.gate = gate
        self.calls: list[AnalysisInput] = []

    async def analyze(self, analysis_input, cancel_token):
        self.calls.append(analysis_input)
        if self.gate is not None:
            await self.gate.wait()
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class FakeDimensionClient(BaseAnalysisClient):
    """Cohort client returning ``{"dimension": key, "score": 7}``."""

    def __init__(
        self,
        key: str,
        errors: list[Exception] | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self._key = key
        self.errors = list(errors or [])
        self.gate = gate
        self.calls: list[str] = []

    @property
    def dimension(self) -> str:
        return self._key

    async def analyze(self, description, cancel_token):
        self.calls.append(description)
        if self.gate is not None:
            await self.gate.wait()
        if self.errors:
            raise self.errors.pop(0)
        return {"dimension": self._key, "score": 7}


class ManualClock:
    """Epoch clock advanced explicitly by tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class EventRecorder:
    """Listener collecting events in delivery order."""

    def __init__(self) -> None:
        self.events: list[Any] = []

    def __call__(self, event) -> None:
        self.events.append(event)

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.events]

    def of(self, name: str) -> list[Any]:
        return [e for e in self.events if e.name == name]


# === FIXTURES ===


@pytest.fixture
def registry() -> PhaseRegistry:
    return PhaseRegistry.default()


@pytest.fixture
def company_client() -> FakeCompanyClient:
    return FakeCompanyClient()


@pytest.fixture
def cohort_clients() -> dict[str, FakeDimensionClient]:
    return {key: FakeDimensionClient(key) for key in COHORT_KEYS}


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def orchestrator(registry, company_client, cohort_clients, recorder) -> AnalysisOrchestrator:
    orch = AnalysisOrchestrator(registry, company_client, cohort_clients)
    orch.subscribe(recorder)
    return orch


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(memory_storage, clock) -> CheckpointStore:
    return CheckpointStore(memory_storage, clock=clock)


@pytest.fixture
def url_input() -> AnalysisInput:
    return AnalysisInput(url="acme-robotics.com")
