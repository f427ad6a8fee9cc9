# tests/integration/pipeline/test_int_scenarios.py - v1
"""End-to-end scenarios: real workflow clients over an httpx MockTransport,
orchestrator, session and file-backed checkpoint store.

Covers:
- URL-only run: overview_ready, then exactly the five cohort phases go active
- Gating timeout: run ends in error, no cohort phase leaves pending
- One cohort failure: partial_complete with well-formed sibling results
- Reload recovery from a file-backed checkpoint
- Archive retention across 52 assessments
"""

from __future__ import annotations

import json

import httpx
import pytest

from assessflow.cache.checkpoint_store import CheckpointStore
from assessflow.cache.models import ArchivedAssessment
from assessflow.clients.client_factory import create_clients
from assessflow.config.settings import Settings
from assessflow.core.errors import RemoteCallError
from assessflow.core.models import AnalysisInput
from assessflow.pipeline.orchestrator import AnalysisOrchestrator
from assessflow.pipeline.registry import PhaseRegistry
from assessflow.pipeline.session import AssessmentSession
from assessflow.storage.file_storage import FileStorage

pytestmark = pytest.mark.integration

COHORT = ["team", "funding", "competitive", "market", "iprisk"]
SUMMARY = "Acme Robotics builds autonomous warehouse robots for logistics operators."


def _settings(tmp_path) -> Settings:
    ids = ",".join(
        ["company_url=wf-company-url", "company_file=wf-company-file"]
        + [f"{key}=wf-{key}" for key in COHORT]
    )
    return Settings(
        _env_file=None,
        storage_backend="json",
        storage_root=tmp_path / "state",
        workflow_base_url="https://workflows.example.com/v1",
        workflow_api_key="test-key",
        workflow_ids=ids,
    )


def _handler(failing: dict[str, str] | None = None):
    """Workflow API double. ``failing`` maps workflow id to 'timeout' or 'error'."""
    failing = failing or {}

    def handle(request: httpx.Request) -> httpx.Response:
        workflow_id = request.url.path.rsplit("/", 1)[-1]
        mode = failing.get(workflow_id)
        if mode == "timeout":
            raise httpx.ReadTimeout("read timed out", request=request)
        if mode == "error":
            return httpx.Response(500, text="internal error")
        if workflow_id.startswith("wf-company"):
            overview = {"company_overview": {"name": "Acme Robotics", "downstream_summary": SUMMARY}}
            return httpx.Response(200, json={"outputs": {"out-0": json.dumps(overview)}})
        dimension = workflow_id.removeprefix("wf-")
        return httpx.Response(
            200,
            json={"outputs": {"out-0": json.dumps({"dimension": dimension, "score": 6})}},
        )

    return handle


def _build(settings: Settings, failing: dict[str, str] | None = None):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(_handler(failing)))
    clients = create_clients(settings, http_client=http_client)
    orchestrator = AnalysisOrchestrator(
        PhaseRegistry.from_settings(settings), clients.company, clients.cohort
    )
    store = CheckpointStore(FileStorage(root=settings.storage_root))
    return clients, orchestrator, AssessmentSession(orchestrator, store), store


class TestScenarios:
    @pytest.mark.asyncio
    async def test_url_only_run_fans_out_after_overview(self, tmp_path):
        settings = _settings(tmp_path)
        clients, orchestrator, session, store = _build(settings)
        events = []
        orchestrator.subscribe(events.append)

        run = await session.run(AnalysisInput(url="acme-robotics.com"), "Alice")

        names = [e.name for e in events]
        overview_at = names.index("overview_ready")
        activated = [e.phase for e in events[overview_at:] if e.name == "phase_start"]
        assert activated == COHORT
        assert run.outcome == "complete"
        assert (await store.get_checkpoint()).status == "complete"

        await session.close()
        await clients.aclose()

    @pytest.mark.asyncio
    async def test_gating_timeout_ends_in_error(self, tmp_path):
        settings = _settings(tmp_path)
        clients, orchestrator, session, store = _build(
            settings, failing={"wf-company-url": "timeout"}
        )
        states: list[tuple[str, str]] = []
        orchestrator.subscribe(lambda e: states.append((e.name, e.phase or "")))

        with pytest.raises(RemoteCallError, match="timed out"):
            await session.run(AnalysisInput(url="acme-robotics.com"), "Alice")

        run = orchestrator.run
        assert run.outcome == "error"
        assert all(run.phases[key].state == "pending" for key in COHORT)
        assert not any(name == "phase_start" and phase in COHORT for name, phase in states)

        await session.close()
        await clients.aclose()

    @pytest.mark.asyncio
    async def test_single_cohort_failure_is_partial(self, tmp_path):
        settings = _settings(tmp_path)
        clients, orchestrator, session, store = _build(
            settings, failing={"wf-market": "error"}
        )
        partial = []
        orchestrator.subscribe(partial.append, names=["partial_complete"])

        run = await session.run(AnalysisInput(url="acme-robotics.com"), "Alice")

        assert run.outcome == "partial_complete"
        assert partial[0].data["failed_phases"] == ["market"]
        results = orchestrator.get_results()
        for key in ["team", "funding", "competitive", "iprisk"]:
            assert getattr(results, key) == {"out-0": {"dimension": key, "score": 6}}
        assert results.market is None

        await session.close()
        await clients.aclose()

    @pytest.mark.asyncio
    async def test_reload_recovers_checkpoint(self, tmp_path):
        root = tmp_path / "state"
        before = CheckpointStore(FileStorage(root=root))
        await before.set_company_input("https://acme-robotics.com", "Alice")
        await before.checkpoint("company", {"full": {}, "short": SUMMARY})
        await before.checkpoint("team", {"out-0": {"score": 6}})
        await before.checkpoint("market", {"out-0": {"score": 4}})

        after = CheckpointStore(FileStorage(root=root))
        assert await after.has_incomplete_run() is True
        restored = await after.restore()
        assert set(restored.completed_phases) == {"company", "team", "market"}
        assert restored.completed_phases["market"] == {"out-0": {"score": 4}}
        assert restored.company_input.operator_name == "Alice"

    @pytest.mark.asyncio
    async def test_archive_retention(self, tmp_path):
        now = [1_700_000_000.0]
        store = CheckpointStore(FileStorage(root=tmp_path / "state"), clock=lambda: now[0])

        for i in range(52):
            now[0] += 1
            snapshot = ArchivedAssessment(ai_data={"team": {"score": i}}, venture_name=f"V{i}")
            assert await store.archive(f"venture-{i:02d}_alice", snapshot) is True

        keys = [s.key for s in await store.list_archived()]
        assert len(keys) == 50
        assert "venture-00_alice" not in keys
        assert "venture-01_alice" not in keys
        assert keys[0] == "venture-51_alice"
