import json

from conftest import TODAY, FakeClient, all_reachable, approve, opportunity, payload, refine

from funding_finder.auditor import Auditor, assess_reliability
from funding_finder.constants import FALLBACK_ENRICHMENT, THOUGHTS
from funding_finder.llm import ModelCallError, ModelResponse
from funding_finder.normalize import FilterReport, LinkCheck
from funding_finder.search import GrantSearchService


def make_service(responses, store=None, **kwargs):
    client = FakeClient(responses)
    kwargs.setdefault("link_checker", all_reachable)
    service = GrantSearchService(client, store, today=lambda: TODAY, **kwargs)
    return service, client


GOOD = payload(opportunity("A", 90), opportunity("B", 80), opportunity("C", 70))


# =============================
# ========== AUDITOR ==========
# =============================

def test_reliability_reasons():
    assert assess_reliability(FilterReport(received=3, kept=3)) == []
    assert assess_reliability(FilterReport(empty_payload=True))[0].startswith("The response could not be parsed")
    assert "No usable opportunity" in assess_reliability(FilterReport(received=0, kept=0))[0]
    assert "Only 2" in assess_reliability(FilterReport(received=2, kept=2))[0]
    reasons = assess_reliability(FilterReport(received=8, kept=3, stale=4, missing_url=1))
    assert reasons == ["5 of 8 entries were rejected (4 expired, 1 without URL)."]


def test_auditor_verdicts(profile):
    client = FakeClient([approve(), refine("More EU calls", ["stale"]), "no idea", {"verdict": "maybe"}])
    auditor = Auditor(client)

    assert auditor.review("raw", profile, today=TODAY).approved
    verdict = auditor.review("raw", profile, today=TODAY)
    assert not verdict.approved
    assert verdict.feedback == "More EU calls"
    assert verdict.issues == ["stale"]
    # unreadable or unknown verdicts count as approval
    assert auditor.review("raw", profile, today=TODAY).approved
    assert auditor.review("raw", profile, today=TODAY).approved
    assert "raw" in client.prompts[0]


# ============================
# ========== SEARCH ==========
# ============================

def test_deep_search_approved_first_time(profile):
    thoughts = []
    service, client = make_service([ModelResponse(text=json.dumps(GOOD), sources=[{"web": {"uri": "https://s.be", "title": "S"}}]), approve()])

    result = service.search_and_refine_grants(profile, "fr", on_thought=thoughts.append)

    assert result.audit_status == "approved"
    assert result.attempts == 1
    assert result.mode == "deep"
    assert result.profile_name == profile.name
    assert [o.title for o in result.opportunities] == ["A", "B", "C"]
    assert all(o.url_verified for o in result.opportunities)
    assert result.sources[0].uri == "https://s.be"
    assert thoughts == [
        THOUGHTS["analyze"],
        THOUGHTS["search_start_deep"],
        THOUGHTS["filtering"],
        THOUGHTS["audit_start"],
        THOUGHTS["audit_ok"],
        THOUGHTS["finalizing"],
    ]
    assert len(client.prompts) == 2


def test_refine_feeds_corrections_into_next_attempt(profile):
    service, client = make_service([
        payload(opportunity("A", 90)),
        refine("Look at the King Baudouin Foundation", ["Too few results"]),
        GOOD,
        approve(),
    ])

    result = service.search_and_refine_grants(profile)

    assert result.audit_status == "approved"
    assert result.attempts == 2
    assert len(result.opportunities) == 3
    second_search_prompt = client.prompts[2]
    assert "CORRECTIONS REQUESTED BY THE AUDITOR" in second_search_prompt
    assert "King Baudouin Foundation" in second_search_prompt
    assert "- Too few results" in second_search_prompt
    assert "Only 1 opportunities survived filtering" in second_search_prompt


def test_exhausted_attempts_return_best_candidate(profile):
    service, _ = make_service([
        payload(opportunity("A"), opportunity("B")),
        refine(),
        payload(opportunity("A")),
        refine(),
        payload(opportunity("X"), opportunity("Y")),
        refine(),
    ])

    result = service.search_and_refine_grants(profile)

    assert result.audit_status == "unverified"
    assert result.attempts == 3
    # ties go to the later attempt
    assert [o.title for o in result.opportunities] == ["X", "Y"]
    assert result.warnings


def test_fast_mode_skips_audit_when_reliable(profile):
    profile = profile.model_copy(update={"search_mode": "fast"})
    service, client = make_service([payload(opportunity("A", url=None), opportunity("B"), opportunity("C"))])

    result = service.search_and_refine_grants(profile)

    assert result.audit_status == "not_required"
    assert result.mode == "fast"
    assert len(client.prompts) == 1
    # fast mode keeps entries without a URL and does not check links
    assert len(result.opportunities) == 3
    assert all(o.url_verified is None for o in result.opportunities)


def test_fast_mode_audits_when_unreliable(profile):
    profile = profile.model_copy(update={"search_mode": "fast"})
    service, client = make_service(["Sorry, nothing found.", approve()])

    result = service.search_and_refine_grants(profile)

    assert result.audit_status == "approved"
    assert len(client.prompts) == 2
    assert "could not be parsed" in client.prompts[1]


def test_deep_mode_drops_dead_links(profile):
    def checker(url):
        return LinkCheck(reachable=not url.endswith("/b"))

    service, _ = make_service([GOOD, approve()], link_checker=checker)
    result = service.search_and_refine_grants(profile)
    assert [o.title for o in result.opportunities] == ["A", "C"]


def test_link_verification_can_be_disabled(profile):
    def checker(url):
        raise AssertionError("links must not be checked")

    service, _ = make_service([GOOD, approve()], link_checker=checker, verify_links=False)
    result = service.search_and_refine_grants(profile)
    assert len(result.opportunities) == 3


def test_auditor_failure_accepts_current_candidate(profile):
    service, _ = make_service([GOOD, ModelCallError("auditor down")])

    result = service.search_and_refine_grants(profile)

    assert result.audit_status == "skipped"
    assert len(result.opportunities) == 3
    assert any("Audit skipped" in w for w in result.warnings)
    assert not result.degraded


def test_search_failure_without_candidate_is_degraded(profile):
    service, _ = make_service([ModelCallError("quota exceeded")])

    result = service.search_and_refine_grants(profile)

    assert result.degraded
    assert result.opportunities == []
    assert result.profile_name == profile.name
    assert result.attempts == 1
    assert "quota exceeded" in result.warnings[0]


def test_search_failure_after_a_candidate_returns_it(profile):
    service, _ = make_service([payload(opportunity("A")), refine(), ModelCallError("down")])

    result = service.search_and_refine_grants(profile)

    assert not result.degraded
    assert result.audit_status == "unverified"
    assert [o.title for o in result.opportunities] == ["A"]
    assert result.attempts == 2


def test_language_reaches_the_prompt(profile):
    service, client = make_service([GOOD, approve()])
    service.search_and_refine_grants(profile, "de")
    assert "German" in client.prompts[0]


# ================================
# ========== ENRICHMENT ==========
# ================================

ENTITY = {
    "name": "Centre Culturel Horizon",
    "website": "https://horizon.be",
    "region": "Bruxelles-Capitale",
    "description": "Initiation artistique.",
    "sector": "Culture & Arts",
}


def test_enrichment_caches_by_canonical_number(store):
    service, client = make_service([ENTITY], store=store)

    first = service.enrich_profile_from_number("BE0456789123")
    second = service.enrich_profile_from_number("0456.789.123")

    assert first["name"] == "Centre Culturel Horizon"
    assert first["status"] == "enriched"
    assert first["enterprise_number"] == "0456.789.123"
    assert second == first
    assert len(client.prompts) == 1
    assert "0456.789.123" in client.prompts[0]


def test_enrichment_failure_returns_fallback_and_is_not_cached(store):
    service, client = make_service([ModelCallError("down"), {"website": "x"}, ENTITY], store=store)

    assert service.enrich_profile_from_number("0456789123") == FALLBACK_ENRICHMENT
    assert service.enrich_profile_from_number("0456789123") == FALLBACK_ENRICHMENT
    assert service.enrich_profile_from_number("0456789123")["status"] == "enriched"
    assert len(client.prompts) == 3


def test_enrichment_of_blank_input(store):
    service, client = make_service([], store=store)
    assert service.enrich_profile_from_number("   ") == FALLBACK_ENRICHMENT
    assert client.prompts == []
