# src/core/errors.py - v1
"""Error taxonomy for orchestration and persistence.

Orchestration errors are raised to the caller. Storage errors are raised
by storage backends and handled inside the checkpoint store; they never
abort an analysis run.
"""

from __future__ import annotations


class AssessflowError(Exception):
    """Base class for all package errors."""


class InvalidInputError(AssessflowError):
    """No usable input was supplied (no URL and no document, or bad URL)."""


class AlreadyRunningError(AssessflowError):
    """A second run was requested while one is still in flight."""


class UnknownPhaseError(AssessflowError):
    """A phase key is not present in the registry."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Unknown phase: {key}")


class PhaseNotRetryableError(AssessflowError):
    """Retry was requested for a phase that is not in error state."""

    def __init__(self, key: str, state: str) -> None:
        self.key = key
        self.state = state
        super().__init__(f"Phase {key} is not in error state (state={state})")


class RemoteCallError(AssessflowError):
    """A single phase's remote call failed.

    Covers transport failures, non-2xx responses, malformed payloads,
    call-level timeouts and cancellation. Scoped to one phase.
    """

    def __init__(
        self,
        message: str,
        phase: str | None = None,
        status_code: int | None = None,
        cancelled: bool = False,
    ) -> None:
        self.message = message
        self.phase = phase
        self.status_code = status_code
        self.cancelled = cancelled
        super().__init__(message)


class StorageCorruptionError(AssessflowError):
    """Stored content for a namespace could not be parsed."""

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Corrupted content under {key!r}: {reason}")


class StorageQuotaError(AssessflowError):
    """A write was rejected because the storage quota would be exceeded."""

    def __init__(self, key: str, size: int, quota: int) -> None:
        self.key = key
        self.size = size
        self.quota = quota
        super().__init__(
            f"Write of {size} bytes to {key!r} exceeds quota of {quota} bytes"
        )


class PhaseOrderError(AssessflowError):
    """A cohort phase was requested before the gating phase completed."""

    def __init__(self, key: str, gating_key: str) -> None:
        self.key = key
        self.gating_key = gating_key
        super().__init__(
            f"Phase {key} cannot start before {gating_key} has completed"
        )
