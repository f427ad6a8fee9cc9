# src/pipeline/orchestrator.py - v1
"""Analysis orchestrator: gating phase, parallel cohort, recovery.

Drives one run at a time:
  1. Gating phase: company overview, produces the short description.
  2. Cohort: every other phase, launched concurrently once the gating
     phase has completed, joined all-settled.

A failed phase never aborts its siblings. Each failed phase can be
retried on its own without touching any other phase's state.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from assessflow.clients.base_client import BaseAnalysisClient, BaseCompanyClient
from assessflow.core.errors import (
    AlreadyRunningError,
    InvalidInputError,
    PhaseNotRetryableError,
    PhaseOrderError,
    RemoteCallError,
    UnknownPhaseError,
)
from assessflow.core.models import AnalysisInput, AnalysisResults, Phase, PhaseState, Run
from assessflow.core.validators import UrlValidation, validate_url
from assessflow.logging.context import set_phase_context, set_run_context
from assessflow.pipeline.cancellation import CancellationToken
from assessflow.pipeline.events import (
    EventBus,
    EventName,
    LifecycleEvent,
    Listener,
    Subscription,
)
from assessflow.pipeline.progress import ProgressEstimate, estimate
from assessflow.pipeline.registry import PhaseRegistry, RegistryError

logger = logging.getLogger(__name__)


def generate_run_id(started_at: float) -> str:
    """Run id: ``{yyyymmdd_hhmmss}_{5 hex chars}``."""
    stamp = datetime.fromtimestamp(started_at, tz=timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{stamp}_{uuid.uuid4().hex[:5]}"


class AnalysisOrchestrator:
    """Schedules the phases of one run and reports every transition.

    Args:
        registry: Phase declarations.
        company_client: Client for the gating phase.
        cohort_clients: Phase key -> client, one per cohort phase.
        event_bus: Optional shared bus; a private one is created otherwise.
        url_validator: URL check applied by ``start()``.
        clock: Epoch-seconds clock, injectable for tests.
    """

    def __init__(
        self,
        registry: PhaseRegistry,
        company_client: BaseCompanyClient,
        cohort_clients: dict[str, BaseAnalysisClient],
        event_bus: EventBus | None = None,
        url_validator: Callable[[Any], UrlValidation] = validate_url,
        clock: Callable[[], float] = time.time,
    ) -> None:
        missing = [k for k in registry.cohort_keys if k not in cohort_clients]
        if missing:
            raise RegistryError(f"No client registered for phases: {missing}")

        self._registry = registry
        self._company_client = company_client
        self._cohort_clients = dict(cohort_clients)
        self._events = event_bus or EventBus()
        self._validate_url = url_validator
        self._clock = clock

        self._run: Run | None = None
        self._token: CancellationToken | None = None
        self._running = False

    # ── Public API ───────────────────────────────────────────────

    @property
    def registry(self) -> PhaseRegistry:
        return self._registry

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def run(self) -> Run | None:
        return self._run

    @property
    def is_running(self) -> bool:
        return self._running

    def subscribe(
        self, listener: Listener, names: Iterable[EventName] | None = None
    ) -> Subscription:
        return self._events.subscribe(listener, names)

    def validate_input(self, analysis_input: AnalysisInput) -> AnalysisInput:
        """Check an input as ``start()`` would and return it normalized.

        Raises:
            InvalidInputError: If neither a valid URL nor a document is given.
        """
        has_url = analysis_input.has_url
        if not has_url and not analysis_input.has_document:
            raise InvalidInputError("Either a company URL or document is required")
        if not has_url:
            return analysis_input.model_copy(update={"url": None})

        validation = self._validate_url(analysis_input.url)
        if not validation.valid:
            raise InvalidInputError(validation.error or "Invalid URL")
        return analysis_input.model_copy(update={"url": validation.url})

    async def start(self, analysis_input: AnalysisInput) -> Run:
        """Run the gating phase, then the whole cohort.

        Returns the run once every phase has settled, or once the run was
        cancelled. Cohort failures do not raise; they are reported through
        ``partial_complete`` and ``run.failed_phases``.

        Raises:
            AlreadyRunningError: If a run is already in flight.
            InvalidInputError: If neither a valid URL nor a document is given.
            RemoteCallError: If the gating phase fails.
        """
        if self._running:
            raise AlreadyRunningError("Analysis already in progress")
        analysis_input = self.validate_input(analysis_input)

        started_at = self._clock()
        run = Run(
            run_id=generate_run_id(started_at),
            started_at=started_at,
            phases=self._registry.new_phases(),
            gating_key=self._registry.gating.key,
            analysis_input=analysis_input,
        )
        self._run = run
        self._token = CancellationToken()
        self._running = True
        set_run_context(run.run_id)

        logger.info(
            "Starting analysis run %s (url=%s, file=%s)",
            run.run_id,
            analysis_input.url,
            analysis_input.file_name,
        )
        self._emit(
            run,
            "start",
            data={
                "url": analysis_input.url,
                "has_file": analysis_input.has_document,
                "file_name": analysis_input.file_name,
            },
        )

        try:
            try:
                await self.execute_phase(run.gating_key)
            except RemoteCallError as exc:
                if run.cancelled:
                    run.outcome = "cancelled"
                    return run
                run.outcome = "error"
                logger.error("Gating phase failed, run %s aborted: %s", run.run_id, exc)
                self._emit(run, "error", phase=run.gating_key, data={"error": str(exc)})
                raise

            self._emit(
                run,
                "overview_ready",
                phase=run.gating_key,
                data={"company_description": run.company_description},
            )
            await self._run_cohort(run)
            return run
        finally:
            if self._run is run:
                self._running = False
            set_phase_context(None)

    def execute_phase(self, key: str) -> asyncio.Task[Any] | asyncio.Future[Any]:
        """Launch one phase and return its in-flight operation.

        Calling this for an active phase returns the same operation, so a
        phase is never executed twice concurrently. A terminal phase gets a
        settled future carrying its existing outcome.

        Raises:
            UnknownPhaseError: If ``key`` is not a registered phase.
            PhaseOrderError: If a cohort phase is requested before the
                gating phase has completed.
        """
        run = self._require_run(key)
        phase = run.phases.get(key)
        if phase is None:
            raise UnknownPhaseError(key)

        if phase.state == "active" and phase.task is not None:
            return phase.task
        if phase.is_terminal:
            return _settled(phase)
        if key != run.gating_key and run.gating.state != "completed":
            raise PhaseOrderError(key, run.gating_key)

        phase.state = "active"
        phase.started_at = self._clock()
        phase.ended_at = None
        phase.failure = None
        phase.result = None
        self._emit(
            run,
            "phase_start",
            phase=key,
            data={
                "name": phase.display_name,
                "estimated_duration_s": phase.estimated_duration_s,
            },
        )
        task = asyncio.create_task(self._run_phase(run, phase), name=f"phase:{key}")
        task.add_done_callback(_consume_exception)
        phase.task = task
        return task

    async def retry_phase(self, key: str) -> Any:
        """Re-execute one failed phase, leaving every other phase untouched.

        Returns the phase result.

        Raises:
            UnknownPhaseError: If ``key`` is not a registered phase.
            PhaseNotRetryableError: If the phase is not in the error state.
            RemoteCallError: If the retried call fails again.
        """
        if key not in self._registry:
            raise UnknownPhaseError(key)
        run = self._run
        if run is None:
            raise PhaseNotRetryableError(key, "pending")
        phase = run.phases[key]
        if phase.state != "error":
            raise PhaseNotRetryableError(key, phase.state)

        if self._token is None or self._token.is_cancelled:
            self._token = CancellationToken()
            run.cancelled = False

        logger.info("Retrying phase %s", key)
        phase.reset()
        result = await self.execute_phase(key)

        if key == run.gating_key:
            if run.outcome == "error":
                run.outcome = None
            self._emit(
                run,
                "overview_ready",
                phase=key,
                data={"company_description": run.company_description},
            )
        elif (
            not self._running
            and run.outcome != "complete"
            and all(p.state == "completed" for p in run.phases.values())
        ):
            run.outcome = "complete"
            self._emit(run, "complete", data={"results": self.get_results()})
        return result

    async def resume_cohort(self) -> Run:
        """Launch every pending cohort phase of the current run.

        Used after a retried gating phase succeeds.

        Raises:
            AlreadyRunningError: If a run is already in flight.
            PhaseOrderError: If the gating phase has not completed.
        """
        run = self._require_run(self._registry.gating.key)
        if self._running:
            raise AlreadyRunningError("Analysis already in progress")
        if run.gating.state != "completed":
            raise PhaseOrderError(self._registry.cohort_keys[0], run.gating_key)

        self._running = True
        try:
            await self._run_cohort(run)
            return run
        finally:
            if self._run is run:
                self._running = False

    def cancel(self) -> bool:
        """Cancel the in-flight run.

        Active phases end in the error state with a cancelled failure.
        Returns False when there is nothing to cancel.
        """
        run = self._run
        if run is None or self._token is None:
            return False
        active = [p.key for p in run.active_phases]
        if not self._running and not active:
            return False

        run.cancelled = True
        self._token.cancel("cancelled")
        logger.info("Analysis run %s cancelled", run.run_id)
        self._emit(
            run,
            "cancelled",
            phase=active[0] if active else None,
            data={"active_phases": active},
        )
        return True

    def reset(self) -> None:
        """Drop the current run. Its in-flight calls are cancelled silently."""
        if self._token is not None:
            self._token.cancel("reset")
        if self._run is not None:
            self._run.cancelled = True
        self._run = None
        self._token = None
        self._running = False

    # ── Queries ──────────────────────────────────────────────────

    def get_results(self) -> AnalysisResults:
        """Current result set; phases without a result are None."""
        run = self._run
        if run is None:
            return AnalysisResults()

        values: dict[str, Any] = {}
        for key, phase in run.phases.items():
            if phase.state != "completed":
                continue
            if key == run.gating_key:
                values["company"] = getattr(phase.result, "full", phase.result)
            elif key in AnalysisResults.model_fields:
                values[key] = phase.result

        return AnalysisResults(
            **values,
            company_description=run.company_description,
            duration_s=max(0.0, self._clock() - run.started_at),
        )

    def get_partial_results(self) -> dict[str, Any]:
        """Results of completed phases only, keyed by phase."""
        if self._run is None:
            return {}
        return {
            key: phase.result
            for key, phase in self._run.phases.items()
            if phase.state == "completed"
        }

    def get_phase_status(self, key: str) -> PhaseState:
        if key not in self._registry:
            raise UnknownPhaseError(key)
        if self._run is None:
            return "pending"
        return self._run.phases[key].state

    def get_phase(self, key: str) -> Phase | None:
        if self._run is None:
            return None
        return self._run.phases.get(key)

    def completed_count(self) -> int:
        return self._run.completed_count if self._run else 0

    def is_complete(self) -> bool:
        return self._run is not None and all(
            p.state == "completed" for p in self._run.phases.values()
        )

    def active_phase_names(self) -> list[str]:
        if self._run is None:
            return []
        return [p.display_name for p in self._run.active_phases]

    def progress(self, now: float | None = None) -> ProgressEstimate:
        return estimate(self._run, self._clock() if now is None else now)

    # ── Internal ─────────────────────────────────────────────────

    def _require_run(self, key: str) -> Run:
        if self._run is None:
            raise PhaseOrderError(key, self._registry.gating.key)
        return self._run

    async def _run_cohort(self, run: Run) -> None:
        if run.cancelled:
            run.outcome = "cancelled"
            return

        tasks = [
            self.execute_phase(p.key)
            for p in run.cohort
            if p.state in ("pending", "active")
        ]
        logger.info("Launching %d cohort phases", len(tasks))
        await asyncio.gather(*tasks, return_exceptions=True)
        # A phase retried while its siblings ran holds a newer task.
        while True:
            in_flight = [p.task for p in run.cohort if p.state == "active" and p.task]
            if not in_flight:
                break
            await asyncio.gather(*in_flight, return_exceptions=True)

        failures = sum(1 for p in run.cohort if p.state == "error")
        logger.info(
            "Cohort settled: %d succeeded, %d failed", len(run.cohort) - failures, failures
        )
        self._settle(run)

    def _settle(self, run: Run) -> None:
        if run.cancelled:
            run.outcome = "cancelled"
            return

        results = self.get_results()
        if all(p.state == "completed" for p in run.phases.values()):
            run.outcome = "complete"
            logger.info("Analysis run %s complete (%.1fs)", run.run_id, results.duration_s)
            self._emit(run, "complete", data={"results": results})
        else:
            failed = run.failed_phases
            run.outcome = "partial_complete"
            logger.warning("Analysis run %s partially complete, failed: %s", run.run_id, failed)
            self._emit(
                run,
                "partial_complete",
                data={"results": results, "failed_phases": failed},
            )

    async def _run_phase(self, run: Run, phase: Phase) -> Any:
        key = phase.key
        token = self._token or CancellationToken()
        set_phase_context(key)
        try:
            if key == run.gating_key:
                if run.analysis_input is None:
                    raise RemoteCallError("No analysis input for this run", phase=key)
                result = await token.guard(
                    self._company_client.analyze(run.analysis_input, token), phase=key
                )
                if not result.short:
                    raise RemoteCallError("Company description not available", phase=key)
                run.company_description = result.short
            else:
                if not run.company_description:
                    raise RemoteCallError("Company description not available", phase=key)
                client = self._cohort_clients[key]
                result = await token.guard(
                    client.analyze(run.company_description, token), phase=key
                )
        except Exception as exc:
            error = exc if isinstance(exc, RemoteCallError) else RemoteCallError(
                str(exc) or type(exc).__name__, phase=key
            )
            phase.state = "error"
            phase.failure = error
            phase.ended_at = self._clock()
            logger.warning("Phase %s failed: %s", key, error)
            self._emit(
                run,
                "phase_error",
                phase=key,
                data={
                    "name": phase.display_name,
                    "error": str(error),
                    "can_retry": True,
                    "cancelled": error.cancelled,
                },
            )
            if error is exc:
                raise
            raise error from exc
        finally:
            set_phase_context(None)

        phase.result = result
        phase.state = "completed"
        phase.ended_at = self._clock()
        logger.info("Phase %s completed (%.1fs)", key, phase.duration_s or 0.0)
        self._emit(
            run,
            "phase_complete",
            phase=key,
            data={
                "name": phase.display_name,
                "duration_s": phase.duration_s,
                "data": result,
                "completed_count": run.completed_count,
                "total_count": run.total_count,
            },
        )
        return result

    def _emit(
        self,
        run: Run,
        name: EventName,
        phase: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        # Events of a run dropped by reset() are not delivered.
        if run is not self._run:
            return
        self._events.emit(
            LifecycleEvent(name=name, run_id=run.run_id, phase=phase, data=data or {})
        )


def _settled(phase: Phase) -> asyncio.Future[Any]:
    future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
    if phase.state == "completed":
        future.set_result(phase.result)
    else:
        future.set_exception(
            phase.failure or RemoteCallError("Phase failed", phase=phase.key)
        )
        future.add_done_callback(_consume_exception)
    return future


def _consume_exception(future: asyncio.Future[Any]) -> None:
    if not future.cancelled():
        future.exception()
