"""Second-opinion pass: a stricter model prompt approves or sends the search back."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional

from funding_finder.constants import AUDIT_TEMPERATURE, MIN_OPPORTUNITIES
from funding_finder.llm import ModelClient
from funding_finder.models import ASBLProfile
from funding_finder.normalize import FilterReport
from funding_finder.parsing import extract_json
from funding_finder.prompts import build_audit_prompt

logger = logging.getLogger(__name__)


@dataclass
class AuditVerdict:
    approved: bool
    feedback: str = ""
    issues: List[str] = field(default_factory=list)


def assess_reliability(report: FilterReport) -> List[str]:
    """Reasons why a search pass looks untrustworthy; empty when it looks fine."""
    if report.empty_payload:
        return ["The response could not be parsed as the requested JSON object."]

    reasons: List[str] = []
    if report.kept == 0:
        reasons.append("No usable opportunity survived filtering.")
    elif report.kept < MIN_OPPORTUNITIES:
        reasons.append(f"Only {report.kept} opportunities survived filtering (expected at least {MIN_OPPORTUNITIES}).")

    if report.received and report.filtered * 2 > report.received:
        details = []
        if report.stale:
            details.append(f"{report.stale} expired")
        if report.missing_url:
            details.append(f"{report.missing_url} without URL")
        if report.unreachable:
            details.append(f"{report.unreachable} with dead links")
        if report.invalid:
            details.append(f"{report.invalid} malformed")
        if report.duplicates:
            details.append(f"{report.duplicates} duplicated")
        suffix = f" ({', '.join(details)})" if details else ""
        reasons.append(f"{report.filtered} of {report.received} entries were rejected{suffix}.")
    return reasons


class Auditor:
    def __init__(self, client: ModelClient, temperature: float = AUDIT_TEMPERATURE) -> None:
        self.client = client
        self.temperature = temperature

    def review(
        self,
        raw_text: str,
        profile: ASBLProfile,
        reasons: Iterable[str] = (),
        today: Optional[date] = None,
    ) -> AuditVerdict:
        """
        Ask the model to check a research pass.

        Only an explicit ``REFINE`` verdict rejects; an unreadable answer is
        treated as approval. ``ModelCallError`` is left to the caller.
        """
        prompt = build_audit_prompt(raw_text, profile, reasons=reasons, today=today)
        response = self.client.generate(prompt, temperature=self.temperature)
        data = extract_json(response.text)
        if not data:
            logger.warning("Auditor verdict unreadable; accepting the pass")
            return AuditVerdict(approved=True)

        verdict = str(data.get("verdict", "")).strip().upper()
        feedback = data.get("feedback")
        feedback = feedback.strip() if isinstance(feedback, str) else ""
        issues = data.get("issues")
        issues = [str(i).strip() for i in issues if str(i).strip()] if isinstance(issues, list) else []

        approved = verdict != "REFINE"
        logger.info("Auditor verdict: %s (%d issues)", "APPROVED" if approved else "REFINE", len(issues))
        return AuditVerdict(approved=approved, feedback=feedback, issues=issues)
