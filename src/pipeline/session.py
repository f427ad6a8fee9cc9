# src/pipeline/session.py - v1
"""Host binding between the orchestrator and the checkpoint store.

Lifecycle events are delivered synchronously, while storage writes are
async. The session queues each relevant event and one worker task drains
the queue in order, so checkpoint writes happen in transition order and
never block the scheduler:

  - phase_complete    -> checkpoint the phase, archive progress so far
  - partial_complete  -> archive the partial result set
  - complete          -> mark the checkpoint complete, archive
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from assessflow.cache.checkpoint_store import CheckpointStore
from assessflow.cache.models import RestoredState
from assessflow.core.errors import AlreadyRunningError
from assessflow.core.models import AnalysisInput, Run
from assessflow.logging.context import set_assessment_context
from assessflow.pipeline.events import LifecycleEvent
from assessflow.pipeline.orchestrator import AnalysisOrchestrator

logger = logging.getLogger(__name__)

PERSISTED_EVENTS = ("phase_complete", "partial_complete", "complete")


class AssessmentSession:
    """Persists a run's progress as it happens.

    Args:
        orchestrator: The scheduler whose events are persisted.
        store: Checkpoint and archive store.
    """

    def __init__(self, orchestrator: AnalysisOrchestrator, store: CheckpointStore) -> None:
        self._orchestrator = orchestrator
        self._store = store
        self._queue: asyncio.Queue[LifecycleEvent] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._assessment_key: str | None = None
        self._starting = False
        self._unsubscribe = orchestrator.subscribe(self._on_event, names=PERSISTED_EVENTS)

    @property
    def assessment_key(self) -> str | None:
        return self._assessment_key

    @property
    def orchestrator(self) -> AnalysisOrchestrator:
        return self._orchestrator

    @property
    def store(self) -> CheckpointStore:
        return self._store

    async def run(self, analysis_input: AnalysisInput, operator_name: str) -> Run:
        """Start a fresh assessment and persist it until the run settles.

        The saved checkpoint is only replaced once the input is accepted and
        no other run is in flight.

        Raises:
            AlreadyRunningError: If this session or its orchestrator is busy.
            InvalidInputError: If neither a valid URL nor a document is given.
        """
        if self._starting or self._orchestrator.is_running:
            raise AlreadyRunningError("Analysis already in progress")
        analysis_input = self._orchestrator.validate_input(analysis_input)

        self._starting = True
        try:
            await self._store.clear()
            self._assessment_key = await self._store.set_company_input(
                analysis_input.url, operator_name, analysis_input.file_name
            )
            set_assessment_context(self._assessment_key)
            logger.info("Assessment %s started by %s", self._assessment_key, operator_name)

            try:
                return await self._orchestrator.start(analysis_input)
            finally:
                await self.flush()
        finally:
            self._starting = False

    async def retry(self, phase_key: str) -> Any:
        """Retry one failed phase and persist its outcome."""
        try:
            return await self._orchestrator.retry_phase(phase_key)
        finally:
            await self.flush()

    async def resume_cohort(self) -> Run:
        try:
            return await self._orchestrator.resume_cohort()
        finally:
            await self.flush()

    async def pending_resume(self) -> RestoredState | None:
        """State of an interrupted assessment, if one is worth resuming."""
        await self._store.migrate_if_needed()
        if not await self._store.has_incomplete_run():
            return None
        return await self._store.restore()

    async def discard_resume(self) -> None:
        await self._store.clear()

    async def flush(self) -> None:
        """Wait until every queued event has been persisted."""
        await self._queue.join()

    async def close(self) -> None:
        await self.flush()
        self._unsubscribe()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    # ── Internal ─────────────────────────────────────────────────

    def _on_event(self, event: LifecycleEvent) -> None:
        self._queue.put_nowait(event)
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._persist(event)
            except Exception:
                logger.exception("Failed to persist event %s", event.name)
            finally:
                self._queue.task_done()

    async def _persist(self, event: LifecycleEvent) -> None:
        if event.name == "phase_complete" and event.phase:
            await self._store.checkpoint(event.phase, event.data.get("data"))
            await self._archive_progress()
        elif event.name == "complete":
            await self._store.mark_complete()
            await self._archive_progress()
        elif event.name == "partial_complete":
            await self._archive_progress()

    async def _archive_progress(self) -> None:
        results = self._orchestrator.get_results()
        await self._store.archive_current(results.ai_data())
