# src/cache/checkpoint_store.py - v1
"""Checkpoint and archive persistence over a durable key-value backend.

Two namespaces share one backend:
  - ``current_checkpoint``: a single slot holding the in-flight run.
  - ``archived_assessments``: a mapping of identity key to past assessment,
    bounded by a retention cap and evicted oldest-by-timestamp first.

Persistence is best-effort relative to the analysis itself. Storage faults
are logged and reported as a False return, never raised to the caller.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

from pydantic import BaseModel, ValidationError

from assessflow.cache.identity import derive_key, file_stem, host_from_url
from assessflow.cache.models import (
    CHECKPOINT_VERSION,
    SUPPORTED_MAJOR,
    ArchivedAssessment,
    ArchiveSummary,
    Checkpoint,
    CompanyInputRecord,
    OperatorScore,
    ProgressSummary,
    RestoredState,
)
from assessflow.core.errors import (
    InvalidInputError,
    StorageCorruptionError,
    StorageQuotaError,
)
from assessflow.core.validators import validate_score
from assessflow.storage.base_storage import BaseKeyValueStorage

logger = logging.getLogger(__name__)

CHECKPOINT_KEY = "currentCheckpoint"
ARCHIVE_KEY = "archivedAssessments"

DEFAULT_RETENTION = 50
DEFAULT_PRUNE_TARGET = 20
DEFAULT_TOTAL_PHASES = 6
UNKNOWN_VENTURE = "Unknown Venture"


class CheckpointStore:
    """Versioned checkpoint slot plus a retention-bounded archive.

    Args:
        storage: Durable key-value backend.
        key_prefix: Namespace prefix for the two owned keys.
        retention: Maximum number of archived assessments.
        prune_target: Entries kept when a write hits the storage quota.
        total_phases: Phase count of a full run.
        clock: Returns the current time as epoch seconds.
    """

    def __init__(
        self,
        storage: BaseKeyValueStorage,
        key_prefix: str = "assessflow",
        retention: int = DEFAULT_RETENTION,
        prune_target: int = DEFAULT_PRUNE_TARGET,
        total_phases: int = DEFAULT_TOTAL_PHASES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._checkpoint_key = f"{key_prefix}_{CHECKPOINT_KEY}"
        self._archive_key = f"{key_prefix}_{ARCHIVE_KEY}"
        self._retention = retention
        self._prune_target = prune_target
        self._total_phases = total_phases
        self._clock = clock

    # ------------------------------------------------------------------
    # Current checkpoint
    # ------------------------------------------------------------------

    async def checkpoint(self, phase_key: str, phase_data: Any) -> bool:
        """Merge one phase's result into the current checkpoint.

        Last write wins per phase key. Sets status to ``in_progress``.
        """
        state = await self.get_checkpoint() or self._empty_checkpoint()
        state.completed_phases[phase_key] = _to_jsonable(phase_data)
        state.timestamp = self._clock()
        state.status = "in_progress"
        saved = await self._save_checkpoint(state)
        if saved:
            logger.debug("Checkpoint saved: %s", phase_key)
        return saved

    async def has_incomplete_run(self) -> bool:
        """True if an in-progress checkpoint is worth offering to resume."""
        state = await self.get_checkpoint()
        if state is None or state.status != "in_progress":
            return False
        completed = len(state.completed_phases)
        return 0 < completed < self._total_phases

    async def mark_complete(self) -> bool:
        """Flip the current checkpoint's status to ``complete``."""
        state = await self.get_checkpoint()
        if state is None:
            return False
        state.status = "complete"
        state.timestamp = self._clock()
        return await self._save_checkpoint(state)

    async def clear(self) -> None:
        """Discard the current checkpoint."""
        await self._storage.remove(self._checkpoint_key)
        logger.info("Checkpoint cleared")

    async def get_checkpoint(self) -> Checkpoint | None:
        """Read, version-check and, if needed, migrate the checkpoint."""
        try:
            raw = await self._storage.get(self._checkpoint_key)
        except StorageCorruptionError as e:
            logger.error("Unreadable checkpoint, discarding: %s", e)
            await self.clear()
            return None
        if not raw:
            return None

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("checkpoint is not an object")
        except ValueError as e:
            logger.error("Unreadable checkpoint, discarding: %s", e)
            await self.clear()
            return None

        version = str(data.get("version") or "2.0")
        if version.split(".")[0] != SUPPORTED_MAJOR:
            logger.warning(
                "Checkpoint version %s not supported, discarding", version
            )
            await self.clear()
            return None

        try:
            state = Checkpoint.model_validate(data)
        except ValidationError as e:
            logger.error("Invalid checkpoint content, discarding: %s", e)
            await self.clear()
            return None

        if version != CHECKPOINT_VERSION:
            state = _migrate_checkpoint(state, version)
            await self._save_checkpoint(state)
            logger.info("Migrated checkpoint from %s to %s", version, CHECKPOINT_VERSION)

        return state

    async def migrate_if_needed(self) -> None:
        """Upgrade an older checkpoint in place (run once at startup)."""
        await self.get_checkpoint()

    async def set_company_input(
        self,
        url: str | None,
        operator_name: str | None,
        file_name: str | None = None,
    ) -> str:
        """Record the submitted input and derive the assessment key.

        Returns:
            The derived assessment identity key.
        """
        state = await self.get_checkpoint() or self._empty_checkpoint()
        state.company_input = CompanyInputRecord(
            url=url, operator_name=operator_name, file_name=file_name
        )
        state.operator_name = operator_name
        state.status = "in_progress"
        state.timestamp = self._clock()
        state.assessment_key = derive_key(url, operator_name, file_name)
        await self._save_checkpoint(state)
        return state.assessment_key

    async def get_company_input(self) -> CompanyInputRecord | None:
        state = await self.get_checkpoint()
        return state.company_input if state else None

    async def save_operator_score(
        self, dimension: str, score: int, justification: str
    ) -> bool:
        """Validate and store an operator score for one dimension.

        Raises:
            InvalidInputError: If the score or justification is invalid.
        """
        validation = validate_score(score, justification)
        if not validation.valid:
            raise InvalidInputError("; ".join(validation.errors))

        state = await self.get_checkpoint()
        if state is None:
            return False
        state.operator_scores[dimension] = OperatorScore(
            score=score, justification=justification.strip()
        )
        state.timestamp = self._clock()
        return await self._save_checkpoint(state)

    async def get_operator_scores(self) -> dict[str, OperatorScore]:
        state = await self.get_checkpoint()
        return dict(state.operator_scores) if state else {}

    async def save_final_recommendation(self, text: str) -> bool:
        return await self._update(final_recommendation=text)

    async def get_final_recommendation(self) -> str:
        state = await self.get_checkpoint()
        return state.final_recommendation if state else ""

    async def save_custom_venture_name(self, name: str | None) -> bool:
        return await self._update(custom_venture_name=name or None)

    async def get_custom_venture_name(self) -> str | None:
        state = await self.get_checkpoint()
        return state.custom_venture_name if state else None

    async def save_external_row_id(self, row_id: str | None) -> bool:
        """Remember the spreadsheet row backing this assessment."""
        saved = await self._update(external_row_id=row_id)
        if saved:
            logger.info("External row id saved: %s", row_id)
        return saved

    async def get_external_row_id(self) -> str | None:
        state = await self.get_checkpoint()
        return state.external_row_id if state else None

    async def get_assessment_key(self) -> str | None:
        state = await self.get_checkpoint()
        return state.assessment_key if state else None

    async def get_completed_phases(self) -> dict[str, Any]:
        state = await self.get_checkpoint()
        return dict(state.completed_phases) if state else {}

    async def is_phase_complete(self, phase_key: str) -> bool:
        state = await self.get_checkpoint()
        return bool(state and state.completed_phases.get(phase_key))

    async def get_progress_summary(self) -> ProgressSummary | None:
        state = await self.get_checkpoint()
        if state is None:
            return None
        company_input = state.company_input or CompanyInputRecord()
        completed = len(state.completed_phases)
        return ProgressSummary(
            company_url=company_input.url or "Unknown",
            operator_name=company_input.operator_name or state.operator_name or "",
            completed_count=completed,
            total_phases=self._total_phases,
            percentage=round(completed / self._total_phases * 100),
            timestamp=state.timestamp,
            status=state.status,
            completed_phases=state.completed_phases,
            operator_scores=state.operator_scores,
        )

    async def restore(self) -> RestoredState | None:
        """Return the recorded input, phase data and scores for resuming."""
        state = await self.get_checkpoint()
        if state is None:
            return None
        return RestoredState(
            company_input=state.company_input,
            completed_phases=state.completed_phases,
            operator_scores=state.operator_scores,
        )

    # ------------------------------------------------------------------
    # Archive
    # ------------------------------------------------------------------

    async def archive(self, identity_key: str, snapshot: ArchivedAssessment) -> bool:
        """Upsert an archived assessment, evicting the oldest over retention.

        Returns:
            False when the write was abandoned after a quota retry.
        """
        archive = await self._load_archive()
        timestamp = snapshot.timestamp if snapshot.timestamp is not None else self._clock()
        archive[identity_key] = snapshot.model_copy(
            update={"key": identity_key, "timestamp": timestamp}
        )
        archive = _keep_most_recent(archive, self._retention)
        saved = await self._save_archive(archive)
        if saved:
            logger.info("Assessment archived: %s", identity_key)
        return saved

    async def archive_current(
        self,
        ai_data: dict[str, Any],
        venture_name: str | None = None,
    ) -> bool:
        """Archive the current checkpoint's assessment with the given results."""
        state = await self.get_checkpoint()
        if state is None or not state.assessment_key:
            logger.warning("Cannot archive assessment: no assessment key")
            return False

        company_input = state.company_input
        snapshot = ArchivedAssessment(
            key=state.assessment_key,
            timestamp=self._clock(),
            company_input=company_input,
            external_row_id=state.external_row_id,
            operator_scores=state.operator_scores,
            ai_data={k: _to_jsonable(v) for k, v in ai_data.items()},
            venture_name=(
                venture_name
                or state.custom_venture_name
                or extract_venture_name(ai_data, company_input)
            ),
            operator_name=(
                state.operator_name
                or (company_input.operator_name if company_input else None)
                or "Unknown"
            ),
        )
        return await self.archive(state.assessment_key, snapshot)

    async def list_archived(self) -> list[ArchiveSummary]:
        """Summaries of archived assessments, most recent first."""
        archive = await self._load_archive()
        summaries = [
            ArchiveSummary(
                key=entry.key or key,
                venture_name=entry.venture_name or "Unknown",
                operator_name=entry.operator_name or "Unknown",
                timestamp=entry.timestamp or 0.0,
                has_full_data=entry.has_full_data,
                company_url=(entry.company_input.url or "") if entry.company_input else "",
                file_name=(entry.company_input.file_name or "") if entry.company_input else "",
                external_row_id=entry.external_row_id,
            )
            for key, entry in archive.items()
        ]
        summaries.sort(key=lambda s: s.timestamp, reverse=True)
        return summaries

    async def load_archived(self, identity_key: str) -> ArchivedAssessment | None:
        archive = await self._load_archive()
        return archive.get(identity_key)

    async def has_archived(self, identity_key: str) -> bool:
        archive = await self._load_archive()
        return identity_key in archive

    async def delete_archived(self, identity_key: str) -> bool:
        """Remove one archived assessment. Returns False if it was absent."""
        archive = await self._load_archive()
        if identity_key not in archive:
            return False
        del archive[identity_key]
        saved = await self._save_archive(archive)
        if saved:
            logger.info("Assessment deleted from archive: %s", identity_key)
        return saved

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _empty_checkpoint(self) -> Checkpoint:
        return Checkpoint(timestamp=self._clock())

    async def _update(self, **fields: Any) -> bool:
        state = await self.get_checkpoint()
        if state is None:
            return False
        for name, value in fields.items():
            setattr(state, name, value)
        state.timestamp = self._clock()
        return await self._save_checkpoint(state)

    async def _save_checkpoint(self, state: Checkpoint) -> bool:
        state.version = CHECKPOINT_VERSION
        try:
            await self._storage.set(self._checkpoint_key, state.model_dump_json())
        except (StorageQuotaError, OSError) as e:
            logger.error("Error saving checkpoint: %s", e)
            return False
        return True

    async def _load_archive(self) -> dict[str, ArchivedAssessment]:
        try:
            raw = await self._storage.get(self._archive_key)
            if not raw:
                return {}
            return _parse_archive(self._archive_key, raw)
        except StorageCorruptionError as e:
            logger.error("Archive unreadable (possible corruption): %s", e)
            try:
                await self._storage.remove(self._archive_key)
            except OSError as remove_error:
                logger.error("Could not clear corrupted archive: %s", remove_error)
            else:
                logger.warning("Cleared corrupted archive")
            return {}

    async def _save_archive(self, archive: dict[str, ArchivedAssessment]) -> bool:
        try:
            await self._storage.set(self._archive_key, _dump_archive(archive))
            return True
        except StorageQuotaError:
            logger.warning(
                "Archive quota exceeded, pruning to %d most recent entries",
                self._prune_target,
            )
        except OSError as e:
            logger.error("Error saving archive: %s", e)
            return False

        pruned = _keep_most_recent(archive, self._prune_target)
        try:
            await self._storage.set(self._archive_key, _dump_archive(pruned))
        except (StorageQuotaError, OSError) as e:
            logger.error(
                "Still cannot save archive after pruning (%d entries): %s",
                len(pruned), e,
            )
            return False
        return True


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def extract_venture_name(
    ai_data: dict[str, Any],
    company_input: CompanyInputRecord | None = None,
) -> str:
    """Best display name: company overview name, host, file stem, or fallback."""
    company = ai_data.get("company")
    if isinstance(company, BaseModel):
        company = company.model_dump()
    if isinstance(company, dict):
        full = company.get("full", company)
        overview = full.get("company_overview") if isinstance(full, dict) else None
        if isinstance(overview, dict) and overview.get("name"):
            return str(overview["name"])

    if company_input is not None:
        if company_input.url:
            return host_from_url(company_input.url) or company_input.url
        if company_input.file_name:
            return file_stem(company_input.file_name)

    return UNKNOWN_VENTURE


def _migrate_checkpoint(state: Checkpoint, from_version: str) -> Checkpoint:
    """Additive migration within the supported major series."""
    logger.debug("Upgrading checkpoint fields from version %s", from_version)
    return state.model_copy(
        update={
            "version": CHECKPOINT_VERSION,
            "external_row_id": state.external_row_id or None,
            "assessment_key": state.assessment_key or None,
        }
    )


def _keep_most_recent(
    archive: dict[str, ArchivedAssessment], limit: int
) -> dict[str, ArchivedAssessment]:
    """Drop the oldest-by-timestamp entries beyond ``limit``."""
    if len(archive) <= limit:
        return archive
    ordered = sorted(archive.items(), key=lambda kv: kv[1].timestamp or 0.0)
    evicted = [key for key, _ in ordered[: len(archive) - limit]]
    logger.info("Evicting %d archived assessments: %s", len(evicted), evicted)
    return dict(ordered[len(archive) - limit :])


def _parse_archive(key: str, raw: str) -> dict[str, ArchivedAssessment]:
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise StorageCorruptionError(key, str(e)) from e
    if not isinstance(data, dict):
        raise StorageCorruptionError(key, "archive is not an object")
    try:
        return {k: ArchivedAssessment.model_validate(v) for k, v in data.items()}
    except ValidationError as e:
        raise StorageCorruptionError(key, str(e)) from e


def _dump_archive(archive: dict[str, ArchivedAssessment]) -> str:
    return json.dumps({k: v.model_dump(mode="json") for k, v in archive.items()})


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value
