import logging

import pandas as pd
import streamlit as st

from funding_finder.config import settings
from funding_finder.constants import (
    BUDGET_RANGES, DEFAULT_PROFILE, EXAMPLE_PROFILE, LANGUAGE_NAMES, Sector
)
from funding_finder.llm import get_model_client
from funding_finder.models import ASBLProfile, SearchResult
from funding_finder.normalize import sort_opportunities
from funding_finder.search import GrantSearchService
from funding_finder.storage import LocalStore

logger = logging.getLogger(__name__)

SECTORS = [s.value for s in Sector]

# ==========================================
# ========== SESSION / NAVIGATION ==========
# ==========================================

def init_session():
    if "api_key" not in st.session_state:
        st.session_state.api_key = (
            settings.openai_api_key if settings.llm_provider == "openai" else settings.api_key
        ) or ""
    if "logs" not in st.session_state:
        st.session_state.logs = []
    if "page" not in st.session_state:
        st.session_state.page = "Search"
    if "current_result" not in st.session_state:
        st.session_state.current_result = None
    if "language" not in st.session_state:
        st.session_state.language = "fr"
    if "profile" not in st.session_state:
        st.session_state.profile = get_store().load_profile_draft()


@st.cache_resource
def get_store() -> LocalStore:
    return LocalStore(settings.data_dir, max_history=settings.max_history_items)


def get_service() -> GrantSearchService:
    client = get_model_client(settings, api_key=st.session_state.api_key.strip() or None)
    return GrantSearchService(client, get_store(), verify_links=settings.verify_links)


def _log(msg: str, level: str = "info"):
    st.session_state.logs.append((level, msg))
    {"warning": logger.warning, "error": logger.error}.get(level, logger.info)(msg)
    if level == "error":
        st.error(msg)
    elif level == "warning":
        st.warning(msg)
    elif level == "success":
        st.success(msg)
    else:
        st.write(msg)


def set_sidebar_nav():
    with st.sidebar:
        st.title("ASBL Funding Finder")
        st.caption("Profile → Search → Audit → Results")

        if st.button("🔎 Search", key="nav_search", use_container_width=True):
            st.session_state.page = "Search"

        if st.button("🗂️ History", key="nav_history", use_container_width=True):
            st.session_state.page = "History"

        if st.button("⚙️ Settings", key="nav_settings", use_container_width=True):
            st.session_state.page = "Settings"

        st.markdown("---")
        key_status = "Loaded" if st.session_state.api_key.strip() else "Not set"
        st.metric("API key", key_status)
        st.metric("Searches run", get_store().get_request_count())


# ===============================
# ========== RESULTS ============
# ===============================

def _opportunities_frame(result: SearchResult, sort_by: str) -> pd.DataFrame:
    rows = [
        {
            "relevance_score": o.relevance_score,
            "title": o.title,
            "provider": o.provider,
            "type": o.type,
            "deadline": o.deadline,
            "deadline_date": o.deadline_date,
            "url": o.url or "",
            "verified": {True: "✅", None: "❔"}.get(o.url_verified, ""),
            "relevance_reason": o.relevance_reason,
        }
        for o in sort_opportunities(result.opportunities, by=sort_by)
    ]
    return pd.DataFrame(rows)


def render_result(result: SearchResult, key: str = "current"):
    if result.degraded:
        st.error(result.executive_summary)
    else:
        st.subheader(f"Results for {result.profile_name or 'your organisation'}")
        st.write(result.executive_summary)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Opportunities", len(result.opportunities))
    c2.metric("Mode", result.mode)
    c3.metric("Attempts", result.attempts)
    c4.metric("Audit", result.audit_status)

    for warning in result.warnings:
        st.warning(warning)

    if result.opportunities:
        sort_label = st.radio("Sort by", ["Relevance", "Deadline"], horizontal=True, key=f"sort_{key}")
        df = _opportunities_frame(result, "deadline" if sort_label == "Deadline" else "relevance")
        colcfg = {
            "relevance_score": st.column_config.ProgressColumn("Score", min_value=0, max_value=100, format="%d"),
            "title": st.column_config.TextColumn("Title"),
            "provider": st.column_config.TextColumn("Provider"),
            "type": st.column_config.TextColumn("Type"),
            "deadline": st.column_config.TextColumn("Deadline"),
            "deadline_date": st.column_config.TextColumn("Deadline (ISO)"),
            "url": st.column_config.LinkColumn("Link", display_text="Open"),
            "verified": st.column_config.TextColumn("Link checked"),
            "relevance_reason": st.column_config.TextColumn("Why it fits"),
        }
        st.dataframe(df, use_container_width=True, height=420, column_config=colcfg, hide_index=True)
        st.download_button(
            "Download opportunities (CSV)",
            data=df.to_csv(index=False).encode("utf-8"),
            file_name="funding_opportunities.csv",
            mime="text/csv",
            key=f"dl_{key}",
        )
    else:
        st.info("No opportunity survived the checks this time.")

    st.markdown("**Strategic advice**")
    st.write(result.strategic_advice)

    if result.sources:
        with st.expander(f"Sources ({len(result.sources)})"):
            for src in result.sources:
                st.markdown(f"- [{src.title or src.uri}]({src.uri})")


# ===============================
# ========== UI PAGES ===========
# ===============================

def _autofill(number: str):
    if not number.strip():
        st.warning("Enter an enterprise number (or a name) first.")
        return
    with st.spinner("Looking the organisation up..."):
        data = get_service().enrich_profile_from_number(number)
    if data.get("status") == "enriched":
        st.session_state.profile.update(data)
        _log(f"Profile filled in for {data.get('name')}", "success")
    else:
        _log("Nothing found for this number; please fill the form in manually.", "warning")


def page_search():
    st.title("🔎 Find funding")
    st.caption("Describe your ASBL/VZW; the agent searches, audits and ranks funding opportunities.")

    if not st.session_state.api_key.strip():
        st.warning("No API key set. Go to **Settings** to enter one before searching.")

    profile = st.session_state.profile

    c1, c2 = st.columns([3, 1])
    with c1:
        number = st.text_input("Enterprise number (BCE/KBO) or name", value=profile.get("enterprise_number", ""))
    with c2:
        st.write("")
        st.write("")
        if st.button("✨ Auto-fill", use_container_width=True):
            _autofill(number)
            st.rerun()

    if st.button("Load an example profile"):
        profile.update(EXAMPLE_PROFILE)
        st.rerun()

    with st.form("profile_form"):
        name = st.text_input("Organisation name", value=profile.get("name", ""))
        website = st.text_input("Website", value=profile.get("website", ""))
        sector_value = profile.get("sector", DEFAULT_PROFILE["sector"])
        sector = st.selectbox(
            "Sector", SECTORS, index=SECTORS.index(sector_value) if sector_value in SECTORS else len(SECTORS) - 1
        )
        region = st.text_input("Region", value=profile.get("region", ""))
        description = st.text_area("Mission", value=profile.get("description", ""), height=120)
        budget_value = profile.get("budget", DEFAULT_PROFILE["budget"])
        budget = st.selectbox(
            "Annual budget", BUDGET_RANGES,
            index=BUDGET_RANGES.index(budget_value) if budget_value in BUDGET_RANGES else 0,
        )
        mode = st.radio(
            "Search mode", ["deep", "fast"], horizontal=True,
            index=0 if profile.get("search_mode", "deep") == "deep" else 1,
            format_func=lambda m: "Deep (audited, links checked)" if m == "deep" else "Fast (official portals)",
        )
        language = st.selectbox(
            "Answer language", list(LANGUAGE_NAMES),
            index=list(LANGUAGE_NAMES).index(st.session_state.language),
            format_func=LANGUAGE_NAMES.get,
        )
        go = st.form_submit_button("🚀 Start the search", type="primary", use_container_width=True)

    if not go:
        if st.session_state.current_result is not None:
            render_result(st.session_state.current_result)
        return

    profile.update({
        "enterprise_number": number.strip(), "name": name.strip(), "website": website.strip(),
        "sector": sector, "region": region.strip(), "description": description.strip(),
        "budget": budget, "search_mode": mode,
    })
    st.session_state.language = language
    get_store().save_profile_draft(profile)

    if not name.strip():
        st.error("The organisation name is required.")
        return

    st.session_state.logs = []
    with st.status("Searching...", expanded=True) as status_box:
        result = get_service().search_and_refine_grants(
            ASBLProfile(**profile), language, on_thought=lambda t: _log(t),
        )
        status_box.update(
            label="Search failed" if result.degraded else "Search complete",
            state="error" if result.degraded else "complete",
            expanded=False,
        )

    if not result.degraded:
        get_store().record_search(result)
    st.session_state.current_result = result
    render_result(result)


def page_history():
    st.title("🗂️ History")
    store = get_store()
    items = store.load_history()
    if not items:
        st.info("No searches yet. Use **Search** to run one.")
        return

    b1, b2, b3 = st.columns(3)
    with b1:
        st.download_button(
            "Export (JSON)", data=store.export_history("json").encode("utf-8"),
            file_name="funding_history.json", mime="application/json", use_container_width=True,
        )
    with b2:
        st.download_button(
            "Export (CSV)", data=store.export_history("csv").encode("utf-8"),
            file_name="funding_history.csv", mime="text/csv", use_container_width=True,
        )
    with b3:
        if st.button("Clear history", type="secondary", use_container_width=True):
            store.clear_history()
            st.session_state.current_result = None
            st.rerun()

    for item in items:
        label = f"{item.timestamp[:16].replace('T', ' ')} · {item.profile_name or '?'} · {len(item.opportunities)} opportunities"
        with st.expander(label):
            render_result(item, key=item.id)


def page_settings():
    st.title("⚙️ Settings")
    st.caption(f"Provider: **{settings.llm_provider}** · data directory: `{settings.data_dir}`")

    st.subheader("API Key")
    key = st.text_input("Model API key", value=st.session_state.api_key, type="password", help="Used only in this session.")
    b1, b2 = st.columns([1, 1])
    with b1:
        if st.button("Save to Session", use_container_width=True):
            st.session_state.api_key = key.strip()
            st.success("API key saved to session.")
    with b2:
        if st.button("Clear from Session", type="secondary", use_container_width=True):
            st.session_state.api_key = ""
            st.warning("API key cleared from session.")

    st.subheader("Usage")
    store = get_store()
    st.metric("Searches run", store.get_request_count())
    st.metric("Admin logs waiting for sync", len(store.unsynced_admin_logs()))

    with st.expander("Session log"):
        for level, msg in st.session_state.logs:
            st.text(f"[{level}] {msg}")

# ===============================
# ========== NAV / MAIN =========
# ===============================

def main():
    st.set_page_config(page_title="ASBL Funding Finder", page_icon="🔎", layout="wide")
    logging.basicConfig(level=settings.log_level)
    init_session()
    set_sidebar_nav()

    page = st.session_state.page
    if page == "History":
        page_history()
    elif page == "Settings":
        page_settings()
    else:
        page_search()  # default / main flow

if __name__ == "__main__":
    main()
