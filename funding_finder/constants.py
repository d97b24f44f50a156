from enum import Enum

HEADERS = {"User-Agent": "asbl-funding-finder/1.0 (+https://github.com/asbl-funding-finder)"}

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_OPENAI_MODEL = "gpt-4.1"

MAX_RETRIES = 3
BACKOFF_BASE = 1.0
MAX_SEARCH_ATTEMPTS = 3
MIN_OPPORTUNITIES = 3
MAX_HISTORY_ITEMS = 50
LINK_CHECK_TIMEOUT = 10

SEARCH_TEMPERATURE = 0.4
AUDIT_TEMPERATURE = 0.1
ENRICH_TEMPERATURE = 0.1

# deadline_date used by the model (and by us) for rolling or unknown deadlines
ROLLING_DEADLINE = "2099-12-31"


class Sector(str, Enum):
    SOCIAL = "Action Sociale"
    CULTURE = "Culture & Arts"
    ENV = "Environnement & Durable"
    SPORT = "Sport & Loisirs"
    EDUCATION = "Éducation & Jeunesse"
    HEALTH = "Santé & Bien-être"
    TECH = "Technologie & Numérique"
    INTL = "Aide Internationale (Humanitaire)"
    ANIMAL = "Bien-être Animal"
    CIVIC = "Citoyenneté & Démocratie"
    ECONOMY = "Économie Sociale & Emploi"
    HOUSING = "Logement & Habitat"
    HERITAGE = "Patrimoine & Histoire"
    SCIENCE = "Recherche & Science"
    JUSTICE = "Justice & Droits"
    OTHER = "Autre"


GRANT_TYPES = ["Subvention", "Appel à projets", "Mécénat", "Autre"]
BUDGET_RANGES = ["< 10k€", "10k€ - 50k€", "50k€ - 200k€", "> 200k€"]
SEARCH_MODES = ["fast", "deep"]

LANGUAGE_NAMES = {
    "fr": "French",
    "nl": "Dutch",
    "de": "German",
    "ar": "Arabic",
    "en": "English",
}

DEFAULT_PROFILE = {
    "enterprise_number": "",
    "name": "",
    "website": "",
    "sector": Sector.SOCIAL.value,
    "region": "Belgique (Fédéral)",
    "description": "",
    "budget": "< 10k€",
    "search_mode": "deep",
    "status": "base",
}

EXAMPLE_PROFILE = {
    "name": "Centre Culturel Horizon",
    "sector": Sector.CULTURE.value,
    "region": "Bruxelles-Capitale",
    "description": "ASBL active dans l'initiation artistique.",
    "enterprise_number": "0456.789.123",
    "budget": "50k€ - 200k€",
    "website": "https://www.horizon-culture.be",
}

FALLBACK_ENRICHMENT = {
    "name": "ASBL NON ENRICHIE",
    "website": "Non disponible",
    "region": "Non défini",
    "description": "L'enrichissement IA a échoué.",
    "sector": Sector.OTHER.value,
    "status": "base",
}

THOUGHTS = {
    "analyze": "Analysing your profile and sector...",
    "search_start_fast": "Quick scan of the official funding portals...",
    "search_start_deep": "360° investigation: portals, foundations, press, Moniteur belge...",
    "filtering": "Filtering out unofficial sources and expired deadlines...",
    "audit_start": "Sending the report to the auditor for validation...",
    "audit_refine": "The auditor has remarks: refining the search...",
    "audit_ok": "Audit approved! Preparing the final report...",
    "finalizing": "Formatting the summary...",
}

MODE_HINTS = {
    "fast": (
        "QUICK SCAN: concentrate on official public portals (Wallonie/SPW, Fédération "
        "Wallonie-Bruxelles, COCOF, COCOM, Vlaamse overheid, Brussels regional agencies, "
        "federal SPF/FOD) and the European funding & tenders portal."
    ),
    "deep": (
        "360° INVESTIGATION: cover official portals, private and corporate foundations "
        "(Fondation Roi Baudouin / Koning Boudewijnstichting, National Lottery), "
        "municipal and provincial calls, the Moniteur belge / Belgisch Staatsblad, "
        "sector federations and recent press announcements."
    ),
}

SEARCH_PROMPT = """
PERSONA:
You are Charlotte, a friendly and highly competent funding expert for Belgian non-profits (ASBL/VZW).
You speak in the first person and address the user warmly, like a close colleague who wants to help.

TODAY'S DATE: {today}

MISSION:
Audit the funding opportunities available to the following organisation:
- Name: {name}
- Website: {website}
- Sector: {sector}
- Region: {region}
- Mission: {description}
- Annual budget: {budget}

SEARCH STRATEGY:
1. Search everywhere: Local (municipality/province), Regional, Federal and European levels.
2. Check reliability: prefer official sources (ministries, SPW, COCOF, public agencies, recognised foundations).
3. Filter intelligently: only keep what genuinely fits the mission and the budget.
4. Check dates: use web search to confirm each call is ACTIVE or recurring. Never list a call whose deadline is before {today}.
5. Only list opportunities you found a real page for, and give that page's URL.

{mode_hint}
{corrections}
RESPONSE FORMAT (JSON only):
Reply ONLY with a valid JSON object with this structure:
{
  "executiveSummary": "A short friendly paragraph where I summarise my findings.",
  "opportunities": [
    {
      "title": "Name of the funding",
      "provider": "Who gives the money",
      "deadline": "Display text (e.g. '30 October' or 'Rolling')",
      "deadlineDate": "ISO YYYY-MM-DD for sorting. If rolling or unknown use '2099-12-31'.",
      "relevanceScore": 85,
      "relevanceReason": "Why I think this fits you.",
      "type": "Subvention" | "Appel à projets" | "Mécénat" | "Autre",
      "url": "https://... official page of the call"
    }
  ],
  "strategicAdvice": "My best advice to win these funds.",
  "profileName": "{name}"
}

Constraints:
- relevanceScore is an integer from 0 to 100.
- List at least 3 to 5 relevant opportunities.
- Write every text field in {language}.
"""

CORRECTIONS_BLOCK = """
CORRECTIONS REQUESTED BY THE AUDITOR (previous attempt was rejected):
{corrections}
Fix these points in this new attempt.
"""

AUDIT_PROMPT = """
PERSONA:
You are the Challenger, a strict quality auditor for grant research about Belgian non-profits.

TODAY'S DATE: {today}

ORGANISATION:
- Name: {name}
- Sector: {sector}
- Region: {region}
- Mission: {description}
- Annual budget: {budget}

AUTOMATED CHECKS FLAGGED:
{reasons}

Below is the raw output of a colleague's research pass. Check that:
- every opportunity is real, currently open or recurring, and not past {today};
- every opportunity has a plausible official URL;
- the opportunities fit the organisation's sector, region and budget;
- the JSON structure is complete.

=== RESEARCH OUTPUT START ===
{raw_output}
=== RESEARCH OUTPUT END ===

Return ONLY a JSON object:
{
  "verdict": "APPROVED" | "REFINE",
  "feedback": "If REFINE: concrete instructions for the next search attempt.",
  "issues": ["short", "list", "of", "problems"]
}
"""

ENRICHMENT_PROMPT = """
CONTEXT: The user is looking for a Belgian non-profit (ASBL/VZW) or company.
QUERY: "{query}"
TASK: Search for this entity in Belgium (BCE/KBO, Moniteur belge/Belgisch Staatsblad, Companyweb, official website).
Identify: official name, sector, region of the head office, a fluent description of its mission, website.

OUTPUT FORMAT: JSON only.
{
  "name": "Official name",
  "website": "https://...",
  "region": "Region of the head office",
  "description": "Description of the mission (third person)",
  "sector": "The closest sector among: {sectors}"
}
"""
