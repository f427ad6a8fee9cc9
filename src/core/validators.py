# src/core/validators.py - v1
"""Input validation: company URL shape and operator score entries."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import urlsplit

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)

MIN_SCORE = 1
MAX_SCORE = 9
MIN_JUSTIFICATION_CHARS = 20
MAX_JUSTIFICATION_CHARS = 2000


@dataclass(frozen=True)
class UrlValidation:
    """Outcome of URL validation."""

    valid: bool
    url: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class ScoreValidation:
    """Outcome of operator score validation."""

    valid: bool
    errors: list[str] = field(default_factory=list)


def validate_url(raw: object) -> UrlValidation:
    """Validate and normalize a company website URL.

    A missing scheme is replaced with ``https://``. The host must contain
    at least one dot.
    """
    if not raw or not isinstance(raw, str):
        return UrlValidation(valid=False, error="URL is required")

    trimmed = raw.strip()
    if not trimmed:
        return UrlValidation(valid=False, error="URL cannot be empty")

    candidate = trimmed if _SCHEME_RE.match(trimmed) else f"https://{trimmed}"

    try:
        hostname = urlsplit(candidate).hostname
    except ValueError:
        return UrlValidation(valid=False, error="Invalid URL format")

    if not hostname or "." not in hostname:
        return UrlValidation(valid=False, error="Invalid domain name")

    return UrlValidation(valid=True, url=candidate)


def validate_score(score: object, justification: object) -> ScoreValidation:
    """Validate an operator-entered score and its justification."""
    errors: list[str] = []

    if (
        not isinstance(score, int)
        or isinstance(score, bool)
        or not MIN_SCORE <= score <= MAX_SCORE
    ):
        errors.append(f"Score must be between {MIN_SCORE} and {MAX_SCORE}")

    if not justification or not isinstance(justification, str):
        errors.append("Justification is required")
    else:
        trimmed = justification.strip()
        if len(trimmed) < MIN_JUSTIFICATION_CHARS:
            errors.append(
                f"Justification must be at least {MIN_JUSTIFICATION_CHARS} characters"
            )
        if len(trimmed) > MAX_JUSTIFICATION_CHARS:
            errors.append(
                f"Justification must be less than {MAX_JUSTIFICATION_CHARS} characters"
            )

    return ScoreValidation(valid=not errors, errors=errors)
