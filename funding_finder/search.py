"""
Grant search orchestration.

One search is a loop of research passes: prompt the model, parse and clean
its answer, then let the auditor approve it or send back corrections for the
next pass. Model-output problems never raise here; the caller always gets a
``SearchResult`` (possibly ``degraded``).
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from funding_finder.auditor import AuditVerdict, Auditor, assess_reliability
from funding_finder.constants import (
    ENRICH_TEMPERATURE,
    FALLBACK_ENRICHMENT,
    MAX_SEARCH_ATTEMPTS,
    SEARCH_TEMPERATURE,
    THOUGHTS,
)
from funding_finder.links import check_link
from funding_finder.llm import ModelCallError, ModelClient
from funding_finder.models import ASBLProfile, SearchResult
from funding_finder.normalize import (
    LinkChecker,
    format_enterprise_number,
    normalize_profile_data,
    normalize_search_payload,
)
from funding_finder.parsing import extract_json
from funding_finder.prompts import build_enrichment_prompt, build_search_prompt
from funding_finder.storage import LocalStore

logger = logging.getLogger(__name__)

ThoughtCallback = Callable[[str], None]

DEGRADED_SUMMARY = (
    "The search could not be completed because the model service did not answer. "
    "No opportunities could be collected this time."
)
DEGRADED_ADVICE = "Check the API key in the settings and your connection, then run the search again."


def _corrections(verdict: AuditVerdict, reasons: List[str]) -> str:
    lines: List[str] = []
    if verdict.feedback:
        lines.append(verdict.feedback)
    lines.extend(f"- {issue}" for issue in verdict.issues)
    lines.extend(f"- {reason}" for reason in reasons)
    return "\n".join(lines)


class GrantSearchService:
    def __init__(
        self,
        client: ModelClient,
        store: Optional[LocalStore] = None,
        *,
        verify_links: bool = True,
        link_checker: Optional[LinkChecker] = None,
        max_attempts: int = MAX_SEARCH_ATTEMPTS,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.client = client
        self.store = store
        self.auditor = Auditor(client)
        self.verify_links = verify_links
        self.link_checker = link_checker or check_link
        self.max_attempts = max(1, max_attempts)
        self._today = today or date.today

    # ============================
    # ========== SEARCH ==========
    # ============================

    def search_and_refine_grants(
        self,
        profile: ASBLProfile,
        language: str = "fr",
        on_thought: Optional[ThoughtCallback] = None,
    ) -> SearchResult:
        def think(key: str) -> None:
            logger.info(THOUGHTS[key])
            if on_thought is not None:
                on_thought(THOUGHTS[key])

        mode = profile.search_mode
        today = self._today()
        deep = mode == "deep"
        checker = self.link_checker if deep and self.verify_links else None

        warnings: List[str] = []
        corrections: Optional[str] = None
        best: Optional[SearchResult] = None
        best_kept = -1
        attempts = 0

        def finish(result: SearchResult, audit_status: str) -> SearchResult:
            think("finalizing")
            return result.model_copy(update={
                "mode": mode,
                "attempts": attempts,
                "audit_status": audit_status,
                "profile_name": profile.name,
                "warnings": warnings,
            })

        think("analyze")
        for attempt in range(1, self.max_attempts + 1):
            attempts = attempt
            think(f"search_start_{mode}")
            prompt = build_search_prompt(profile, mode=mode, language=language, corrections=corrections, today=today)
            try:
                response = self.client.generate(prompt, temperature=SEARCH_TEMPERATURE)
            except ModelCallError as e:
                logger.error("Search attempt %d failed: %s", attempt, e)
                warnings.append(f"Search attempt {attempt} failed: {e}")
                if best is None:
                    return self._degraded(profile, mode, attempts, warnings)
                return finish(best, "unverified")

            think("filtering")
            result, report = normalize_search_payload(
                extract_json(response.text),
                profile_name=profile.name,
                sources=response.sources,
                today=today,
                require_url=deep,
                link_checker=checker,
            )
            logger.info(
                "Attempt %d: %d received, %d kept (%d stale, %d without URL, %d dead links)",
                attempt, report.received, report.kept, report.stale, report.missing_url, report.unreachable,
            )
            if report.kept >= best_kept:
                best, best_kept = result, report.kept

            reasons = assess_reliability(report)
            if not deep and not reasons:
                return finish(result, "not_required")

            think("audit_start")
            try:
                verdict = self.auditor.review(response.text, profile, reasons=reasons, today=today)
            except ModelCallError as e:
                logger.warning("Auditor unavailable, keeping attempt %d unaudited: %s", attempt, e)
                warnings.append(f"Audit skipped: {e}")
                return finish(result, "skipped")

            if verdict.approved:
                think("audit_ok")
                return finish(result, "approved")

            think("audit_refine")
            corrections = _corrections(verdict, reasons)

        warnings.append(f"The auditor did not approve any of the {attempts} attempts; showing the best one.")
        return finish(best, "unverified")

    def _degraded(self, profile: ASBLProfile, mode: str, attempts: int, warnings: List[str]) -> SearchResult:
        return SearchResult(
            executive_summary=DEGRADED_SUMMARY,
            opportunities=[],
            strategic_advice=DEGRADED_ADVICE,
            profile_name=profile.name,
            mode=mode,
            attempts=attempts,
            audit_status="skipped",
            degraded=True,
            warnings=list(warnings),
        )

    # ================================
    # ========== ENRICHMENT ==========
    # ================================

    def enrich_profile_from_number(self, number: str) -> Dict[str, Any]:
        """
        Fill profile fields from an enterprise number (or a name).

        Successful lookups are cached by canonical number; on failure the
        fallback profile is returned and nothing is cached.
        """
        canonical = format_enterprise_number(number)
        cache_key = canonical.lower()
        if not cache_key:
            return dict(FALLBACK_ENRICHMENT)

        if self.store is not None:
            cached = self.store.get_cached_enrichment(cache_key)
            if cached:
                logger.info("Enrichment data retrieved from cache for %s", cache_key)
                return dict(cached)

        try:
            response = self.client.generate(build_enrichment_prompt(canonical), temperature=ENRICH_TEMPERATURE)
        except ModelCallError as e:
            logger.error("Enrichment failed for %s: %s", canonical, e)
            return dict(FALLBACK_ENRICHMENT)

        data = normalize_profile_data(extract_json(response.text))
        if not data.get("name"):
            logger.warning("Enrichment found no entity for %s", canonical)
            return dict(FALLBACK_ENRICHMENT)

        data["enterprise_number"] = canonical
        data["status"] = "enriched"
        if self.store is not None:
            self.store.cache_enrichment(cache_key, data)
        return data
