"""Prompt templates filled with the organisation profile."""
from __future__ import annotations

import re
from datetime import date
from typing import Iterable, Optional

from funding_finder.constants import (
    AUDIT_PROMPT,
    CORRECTIONS_BLOCK,
    ENRICHMENT_PROMPT,
    LANGUAGE_NAMES,
    MODE_HINTS,
    SEARCH_PROMPT,
    Sector,
)
from funding_finder.models import ASBLProfile

_PLACEHOLDER_RE = re.compile(r"\{([a-z_]+)\}")

# Raw model output embedded in the audit prompt is capped to keep the request small.
MAX_AUDIT_INPUT_CHARS = 30000


def fill(template: str, **values: str) -> str:
    """Single-pass placeholder substitution; inserted text is never re-scanned."""
    return _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), template)


def _profile_values(profile: ASBLProfile) -> dict:
    return {
        "name": profile.name,
        "website": profile.website or "n/a",
        "sector": getattr(profile.sector, "value", profile.sector),
        "region": profile.region or "Belgique",
        "description": profile.description or "n/a",
        "budget": profile.budget or "n/a",
    }


def build_search_prompt(
    profile: ASBLProfile,
    mode: str = "deep",
    language: str = "fr",
    corrections: Optional[str] = None,
    today: Optional[date] = None,
) -> str:
    today = today or date.today()
    corrections_text = ""
    if corrections and corrections.strip():
        corrections_text = fill(CORRECTIONS_BLOCK, corrections=corrections.strip())
    return fill(
        SEARCH_PROMPT,
        today=today.isoformat(),
        mode_hint=MODE_HINTS.get(mode, MODE_HINTS["deep"]),
        corrections=corrections_text,
        language=LANGUAGE_NAMES.get(language, LANGUAGE_NAMES["fr"]),
        **_profile_values(profile),
    )


def build_audit_prompt(
    raw_output: str,
    profile: ASBLProfile,
    reasons: Iterable[str] = (),
    today: Optional[date] = None,
) -> str:
    today = today or date.today()
    reasons = list(reasons)
    reasons_text = "\n".join(f"- {r}" for r in reasons) if reasons else "- none"
    raw_output = raw_output or ""
    if len(raw_output) > MAX_AUDIT_INPUT_CHARS:
        raw_output = raw_output[:MAX_AUDIT_INPUT_CHARS] + "\n...[truncated]..."
    return fill(
        AUDIT_PROMPT,
        today=today.isoformat(),
        reasons=reasons_text,
        raw_output=raw_output,
        **_profile_values(profile),
    )


def build_enrichment_prompt(query: str) -> str:
    return fill(
        ENRICHMENT_PROMPT,
        query=query.strip(),
        sectors=", ".join(s.value for s in Sector),
    )
