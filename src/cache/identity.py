# src/cache/identity.py - v1
"""Assessment identity: a stable archive key for "this company, this operator".

The key is ``<identifier>_<operator>`` where the identifier is the URL's
host name (leading ``www.`` removed) or, without a URL, the normalized
file stem. Distinct companies that normalize to the same identifier under
the same operator share a key and overwrite each other's archive entry.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_EXTENSION_RE = re.compile(r"\.[^/.]+$")
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)

UNKNOWN_OPERATOR = "unknown"


def derive_key(
    url: str | None,
    operator_name: str | None,
    file_name: str | None = None,
) -> str:
    """Compute the assessment identity key.

    Pure function: identical logical inputs always yield the same key,
    e.g. ``https://Example.com/`` and ``example.com``.

    Args:
        url: Company URL, with or without scheme.
        operator_name: Name of the operator running the assessment.
        file_name: Attached document name, used when no URL is given.

    Returns:
        Identity key string.
    """
    identifier = ""
    if url:
        identifier = host_from_url(url) or _slug(url, replacement="")
    elif file_name:
        identifier = file_stem_slug(file_name)

    operator = _slug(operator_name or UNKNOWN_OPERATOR)
    return f"{identifier}_{operator}"


def host_from_url(url: str) -> str | None:
    """Return the lowercased host with a leading ``www.`` removed."""
    candidate = url.strip()
    if not _SCHEME_RE.match(candidate):
        candidate = f"https://{candidate}"
    try:
        hostname = urlsplit(candidate).hostname
    except ValueError:
        return None
    if not hostname:
        return None
    return hostname.removeprefix("www.")


def file_stem_slug(file_name: str) -> str:
    """Strip the extension, lowercase, and hyphenate non-alphanumerics."""
    return _slug(_EXTENSION_RE.sub("", file_name))


def file_stem(file_name: str) -> str:
    """File name without its extension."""
    return _EXTENSION_RE.sub("", file_name)


def _slug(value: str, replacement: str = "-") -> str:
    return _NON_ALNUM_RE.sub(replacement, value.lower())
