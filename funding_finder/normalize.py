"""Coerce parsed model output into the fixed result shape and drop unusable entries."""
from __future__ import annotations

import logging
import math
import re
import unicodedata
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from funding_finder.constants import GRANT_TYPES, ROLLING_DEADLINE, Sector
from funding_finder.models import GrantOpportunity, GroundingSource, SearchResult

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = "Analysis complete."
DEFAULT_ADVICE = "Check the linked sources for details."
DEFAULT_PROVIDER = "Unknown provider"
DEFAULT_DEADLINE = "Not specified"

_TYPE_ALIASES = {
    "subvention": "Subvention",
    "subside": "Subvention",
    "subsidie": "Subvention",
    "grant": "Subvention",
    "appel a projets": "Appel à projets",
    "appel a projet": "Appel à projets",
    "projectoproep": "Appel à projets",
    "call for projects": "Appel à projets",
    "call for proposals": "Appel à projets",
    "mecenat": "Mécénat",
    "sponsoring": "Mécénat",
    "sponsorship": "Mécénat",
    "patronage": "Mécénat",
    "autre": "Autre",
}

_ISO_DATE_RE = re.compile(r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})")
_EU_DATE_RE = re.compile(r"^\s*(\d{1,2})[/.](\d{1,2})[/.](\d{4})\s*$")
_NUMBER_RE = re.compile(r"-?\d+(?:[.,]\d+)?")


@dataclass
class FilterReport:
    received: int = 0
    kept: int = 0
    invalid: int = 0
    stale: int = 0
    missing_url: int = 0
    duplicates: int = 0
    unreachable: int = 0
    empty_payload: bool = False

    @property
    def filtered(self) -> int:
        return self.received - self.kept


@dataclass
class LinkCheck:
    reachable: Optional[bool]
    page_title: Optional[str] = None


LinkChecker = Callable[[str], LinkCheck]


# ==================================
# ========== UTIL HELPERS ==========
# ==================================

def normalize_url(url: str) -> str:
    """Simple normalization for deduplication."""
    parsed = urlparse(url)
    scheme = parsed.scheme or "https"
    netloc = parsed.netloc.lower().replace("www.", "")
    path = parsed.path.rstrip("/")
    qs = ("?" + parsed.query) if parsed.query else ""
    return f"{scheme}://{netloc}{path}{qs}"


def format_enterprise_number(value: str) -> str:
    """
    Canonical BCE/KBO form ``0456.789.123``.

    Nine-digit legacy numbers get their leading zero back; anything that is
    not a 9 or 10 digit number is returned stripped, unchanged.
    """
    cleaned = (value or "").strip()
    digits = re.sub(r"\D", "", cleaned.upper().removeprefix("BE"))
    if len(digits) == 9:
        digits = "0" + digits
    if len(digits) != 10:
        return cleaned
    return f"{digits[:4]}.{digits[4:7]}.{digits[7:]}"


def _fold(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"\s+", " ", stripped).strip().casefold()


def _clean_str(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def coerce_score(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = _NUMBER_RE.search(value)
        if not match:
            return 0
        number = float(match.group().replace(",", "."))
    else:
        return 0
    if not math.isfinite(number):
        return 0
    # 0.85 means 85%
    if 0 < number <= 1 and not number.is_integer():
        number *= 100
    return max(0, min(100, int(round(number))))


def coerce_deadline_date(value: Any) -> str:
    if not isinstance(value, str):
        return ROLLING_DEADLINE
    match = _ISO_DATE_RE.match(value)
    if match:
        year, month, day = (int(g) for g in match.groups())
    else:
        match = _EU_DATE_RE.match(value)
        if not match:
            return ROLLING_DEADLINE
        day, month, year = (int(g) for g in match.groups())
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return ROLLING_DEADLINE


def coerce_grant_type(value: Any) -> str:
    if not isinstance(value, str):
        return "Autre"
    if value in GRANT_TYPES:
        return value
    return _TYPE_ALIASES.get(_fold(value), "Autre")


def coerce_url(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    candidate = value.strip()
    if candidate.lower().startswith("www."):
        candidate = "https://" + candidate
    parsed = urlparse(candidate)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return candidate


def coerce_sector(value: Any) -> str:
    if isinstance(value, str):
        folded = _fold(value)
        for sector in Sector:
            if _fold(sector.value) == folded:
                return sector.value
    return Sector.OTHER.value


# ===================================
# ========== OPPORTUNITIES ==========
# ===================================

def normalize_opportunity(raw: Any) -> Optional[GrantOpportunity]:
    if not isinstance(raw, dict):
        return None
    title = _clean_str(raw.get("title"))
    if not title:
        return None
    return GrantOpportunity(
        title=title,
        provider=_clean_str(raw.get("provider")) or DEFAULT_PROVIDER,
        deadline=_clean_str(raw.get("deadline")) or DEFAULT_DEADLINE,
        deadline_date=coerce_deadline_date(raw.get("deadlineDate", raw.get("deadline_date"))),
        relevance_score=coerce_score(raw.get("relevanceScore", raw.get("relevance_score"))),
        relevance_reason=_clean_str(raw.get("relevanceReason", raw.get("relevance_reason"))),
        type=coerce_grant_type(raw.get("type")),
        url=coerce_url(raw.get("url")),
    )


def is_stale(opportunity: GrantOpportunity, today: date) -> bool:
    return opportunity.deadline_date < today.isoformat()


def _dedupe(items: List[GrantOpportunity], report: FilterReport) -> List[GrantOpportunity]:
    best: Dict[str, GrantOpportunity] = {}
    aliases: Dict[str, str] = {}
    for item in items:
        keys = [f"t:{_fold(item.title)}|{_fold(item.provider)}"]
        if item.url:
            keys.append(f"u:{normalize_url(item.url)}")
        existing_key = next((aliases[k] for k in keys if k in aliases), None)
        if existing_key is None:
            best[keys[0]] = item
            for k in keys:
                aliases[k] = keys[0]
            continue
        report.duplicates += 1
        if item.relevance_score > best[existing_key].relevance_score:
            best[existing_key] = item
        for k in keys:
            aliases.setdefault(k, existing_key)
    return list(best.values())


def sort_opportunities(items: Iterable[GrantOpportunity], by: str = "relevance") -> List[GrantOpportunity]:
    if by == "deadline":
        return sorted(items, key=lambda o: (o.deadline_date, -o.relevance_score))
    return sorted(items, key=lambda o: o.relevance_score, reverse=True)


def filter_opportunities(
    raw_items: Any,
    *,
    today: date,
    require_url: bool = False,
    link_checker: Optional[LinkChecker] = None,
    report: Optional[FilterReport] = None,
) -> Tuple[List[GrantOpportunity], FilterReport]:
    report = report or FilterReport()
    if not isinstance(raw_items, list):
        raw_items = []
    report.received = len(raw_items)

    survivors: List[GrantOpportunity] = []
    for raw in raw_items:
        opportunity = normalize_opportunity(raw)
        if opportunity is None:
            report.invalid += 1
            continue
        if is_stale(opportunity, today):
            report.stale += 1
            logger.debug("Dropping stale opportunity '%s' (%s)", opportunity.title, opportunity.deadline_date)
            continue
        if require_url and not opportunity.url:
            report.missing_url += 1
            logger.debug("Dropping opportunity without URL '%s'", opportunity.title)
            continue
        survivors.append(opportunity)

    # drop dead links before dedupe so a live twin is kept
    if link_checker is not None:
        checked: List[GrantOpportunity] = []
        for opportunity in survivors:
            if not opportunity.url:
                checked.append(opportunity)
                continue
            result = link_checker(opportunity.url)
            if result.reachable is False:
                report.unreachable += 1
                logger.info("Dropping opportunity with dead link '%s' (%s)", opportunity.title, opportunity.url)
                continue
            checked.append(opportunity.model_copy(update={
                "url_verified": result.reachable,
                "page_title": result.page_title,
            }))
        survivors = checked

    survivors = _dedupe(survivors, report)

    report.kept = len(survivors)
    return sort_opportunities(survivors), report


# =============================
# ========== RESULTS ==========
# =============================

def normalize_sources(chunks: Any) -> List[GroundingSource]:
    if not isinstance(chunks, list):
        return []
    seen = set()
    sources: List[GroundingSource] = []
    for chunk in chunks:
        if not isinstance(chunk, dict):
            continue
        web = chunk.get("web") if isinstance(chunk.get("web"), dict) else chunk
        uri = _clean_str(web.get("uri") or web.get("url"))
        if not uri or uri in seen:
            continue
        seen.add(uri)
        sources.append(GroundingSource(uri=uri, title=_clean_str(web.get("title"))))
    return sources


def normalize_search_payload(
    raw: Dict[str, Any],
    *,
    profile_name: str,
    sources: Any = None,
    today: Optional[date] = None,
    require_url: bool = False,
    link_checker: Optional[LinkChecker] = None,
) -> Tuple[SearchResult, FilterReport]:
    """Build a ``SearchResult`` from a parsed payload, applying defaults and filters."""
    today = today or date.today()
    raw = raw if isinstance(raw, dict) else {}
    report = FilterReport(empty_payload=not raw)

    opportunities, report = filter_opportunities(
        raw.get("opportunities"),
        today=today,
        require_url=require_url,
        link_checker=link_checker,
        report=report,
    )

    result = SearchResult(
        executive_summary=_clean_str(raw.get("executiveSummary", raw.get("executive_summary"))) or DEFAULT_SUMMARY,
        opportunities=opportunities,
        strategic_advice=_clean_str(raw.get("strategicAdvice", raw.get("strategic_advice"))) or DEFAULT_ADVICE,
        sources=normalize_sources(sources),
        profile_name=profile_name,
    )
    return result, report


def normalize_profile_data(raw: Any) -> Dict[str, str]:
    """Keep only the string fields the profile form understands; sector always set."""
    data = raw if isinstance(raw, dict) else {}
    normalized: Dict[str, str] = {}
    for key in ("name", "website", "region", "description"):
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            normalized[key] = value.strip()
    normalized["sector"] = coerce_sector(data.get("sector"))
    return normalized
