# src/config/phases.py - v1
"""Declarative phase configuration.

The first entry is the gating phase; every other entry belongs to the
parallel cohort started once the gating phase completes.
"""

from __future__ import annotations

GATING_PHASE: str = "company"

# (key, display name, default estimated duration in seconds)
PHASE_DEFINITIONS: list[tuple[str, str, int]] = [
    ("company", "Company Analysis", 150),
    ("team", "Researcher Aptitude", 70),
    ("funding", "Sector Funding Activity", 60),
    ("competitive", "Competitive Winnability", 160),
    ("market", "Market Opportunity", 250),
    ("iprisk", "IP Landscape", 60),
]

# Hosted workflow used for the gating phase, by input combination.
# Cohort phases use a workflow named after the phase key.
COMPANY_WORKFLOW_URL = "company_url"
COMPANY_WORKFLOW_FILE = "company_file"
COMPANY_WORKFLOW_BOTH = "company_both"
