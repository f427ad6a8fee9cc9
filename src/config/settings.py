# src/config/settings.py - v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for storage, workflow endpoints, phase estimates
and logging. Cross-field rules are checked in validate_config_consistency.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from assessflow.core.errors import AssessflowError


class ConfigurationError(AssessflowError):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Durable storage ===
    storage_backend: Literal["memory", "json", "sqlite", "redis"] = "json"
    storage_root: Path = Path("~/.assessflow/state")
    storage_redis_url: str = ""
    storage_key_prefix: str = "assessflow"
    storage_quota_bytes: int | None = 5 * 1024 * 1024

    # === Archive ===
    archive_retention: int = 50
    archive_prune_target: int = 20

    # === Hosted workflows ===
    workflow_base_url: str = ""
    workflow_api_key: str = ""
    # Comma-separated name=id pairs, e.g. "company_url=abc,team=def"
    workflow_ids: str = ""

    # Per-dimension call timeouts (seconds)
    timeout_company_s: float = 600.0
    timeout_team_s: float = 600.0
    timeout_funding_s: float = 600.0
    timeout_competitive_s: float = 480.0
    timeout_market_s: float = 700.0
    timeout_iprisk_s: float = 600.0

    # === Phase estimates (seconds, display only) ===
    estimate_company_s: int = 150
    estimate_team_s: int = 70
    estimate_funding_s: int = 60
    estimate_competitive_s: int = 160
    estimate_market_s: int = 250
    estimate_iprisk_s: int = 60

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("storage_quota_bytes")
    @classmethod
    def validate_quota(cls, v: int | None) -> int | None:  # noqa: N805
        if v is not None and v <= 0:
            raise ValueError("storage_quota_bytes must be > 0 or unset")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.storage_backend == "redis" and not self.storage_redis_url:
            errors.append("STORAGE_REDIS_URL must be set when STORAGE_BACKEND=redis")

        if self.archive_retention < 1:
            errors.append("ARCHIVE_RETENTION must be >= 1")

        if not 0 < self.archive_prune_target <= self.archive_retention:
            errors.append(
                "ARCHIVE_PRUNE_TARGET must be > 0 and <= ARCHIVE_RETENTION"
            )

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def workflow_ids_map(self) -> dict[str, str]:
        """Parse comma-separated name=id workflow pairs."""
        pairs: dict[str, str] = {}
        for item in self.workflow_ids.split(","):
            name, sep, workflow_id = item.partition("=")
            if sep and name.strip() and workflow_id.strip():
                pairs[name.strip()] = workflow_id.strip()
        return pairs

    @property
    def phase_estimates(self) -> dict[str, int]:
        """Estimated duration per phase key."""
        return {
            "company": self.estimate_company_s,
            "team": self.estimate_team_s,
            "funding": self.estimate_funding_s,
            "competitive": self.estimate_competitive_s,
            "market": self.estimate_market_s,
            "iprisk": self.estimate_iprisk_s,
        }

    @property
    def phase_timeouts(self) -> dict[str, float]:
        """Call-level timeout per phase key."""
        return {
            "company": self.timeout_company_s,
            "team": self.timeout_team_s,
            "funding": self.timeout_funding_s,
            "competitive": self.timeout_competitive_s,
            "market": self.timeout_market_s,
            "iprisk": self.timeout_iprisk_s,
        }


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-session config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
