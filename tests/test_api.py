import time

import pytest
from conftest import TODAY, FakeClient, all_reachable, approve, opportunity, payload
from fastapi.testclient import TestClient

from api import dependencies
from api.main import create_app
from funding_finder.config import AppConfig
from funding_finder.llm import ModelCallError
from funding_finder.search import GrantSearchService

PROFILE = {
    "name": "Centre Culturel Horizon",
    "sector": "Culture & Arts",
    "region": "Bruxelles-Capitale",
    "description": "Initiation artistique.",
    "budget": "< 10k€",
    "search_mode": "deep",
}

GOOD = payload(opportunity("A", 90), opportunity("B", 80), opportunity("C", 70))


@pytest.fixture
def app_env(store, tmp_path):
    app = create_app()
    config = AppConfig(api_key="k", openai_api_key=None, data_dir=str(tmp_path / "data"))
    client_holder = {"client": FakeClient([])}

    def service():
        return GrantSearchService(client_holder["client"], store, link_checker=all_reachable, today=lambda: TODAY)

    app.dependency_overrides[dependencies.get_settings] = lambda: config
    app.dependency_overrides[dependencies.get_store] = lambda: store
    app.dependency_overrides[dependencies.get_search_service] = service

    def script(*responses):
        client_holder["client"] = FakeClient(responses)

    with TestClient(app) as http:
        yield http, script, store


def test_health(app_env):
    http, _, _ = app_env
    resp = http.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "provider": "gemini", "sheets_enabled": False}


def test_search_records_history_and_stats(app_env):
    http, script, store = app_env
    script(GOOD, approve())

    resp = http.post("/search", json={"profile": PROFILE, "language": "en"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["audit_status"] == "approved"
    assert [o["title"] for o in body["opportunities"]] == ["A", "B", "C"]
    assert body["id"]

    stats = http.get("/stats").json()
    assert stats == {"request_count": 1, "history_size": 1, "unsynced_admin_logs": 1}

    item = http.get(f"/history/{body['id']}")
    assert item.status_code == 200
    assert item.json()["profile_name"] == PROFILE["name"]


def test_search_requires_a_name(app_env):
    http, _, _ = app_env
    resp = http.post("/search", json={"profile": {**PROFILE, "name": "  "}})
    assert resp.status_code == 400


def test_search_rejects_unknown_language(app_env):
    http, _, _ = app_env
    resp = http.post("/search", json={"profile": PROFILE, "language": "xx"})
    assert resp.status_code == 422


def test_search_job_reports_thoughts_and_result(app_env):
    http, script, _ = app_env
    script(GOOD, approve())

    resp = http.post("/search/jobs", json={"profile": PROFILE})
    assert resp.status_code == 202
    job_id = resp.json()["job_id"]

    status = {}
    for _ in range(100):
        status = http.get(f"/search/jobs/{job_id}").json()
        if status["done"]:
            break
        time.sleep(0.05)

    assert status["done"]
    assert status["state"]["status"] == "complete"
    assert status["result"]["audit_status"] == "approved"
    assert len(status["thoughts"]) == 6


def test_degraded_search_is_not_recorded(app_env):
    http, script, store = app_env
    script(ModelCallError("quota exceeded"))

    resp = http.post("/search", json={"profile": PROFILE})

    assert resp.status_code == 200
    body = resp.json()
    assert body["degraded"] is True
    assert body["opportunities"] == []
    assert http.get("/stats").json() == {"request_count": 0, "history_size": 0, "unsynced_admin_logs": 0}
    assert store.load_history() == []


def test_degraded_search_job_ends_in_error(app_env):
    http, script, _ = app_env
    script(ModelCallError("quota exceeded"))

    job_id = http.post("/search/jobs", json={"profile": PROFILE}).json()["job_id"]
    status = {}
    for _ in range(100):
        status = http.get(f"/search/jobs/{job_id}").json()
        if status["done"]:
            break
        time.sleep(0.05)

    assert status["done"]
    assert status["state"]["status"] == "error"
    assert status["error"]
    assert status["result"]["degraded"] is True
    assert http.get("/stats").json()["request_count"] == 0


def test_unknown_job_and_history_item(app_env):
    http, _, _ = app_env
    assert http.get("/search/jobs/nope").status_code == 404
    assert http.get("/history/nope").status_code == 404


def test_history_export_and_clear(app_env):
    http, script, _ = app_env
    script(GOOD, approve())
    http.post("/search", json={"profile": PROFILE})

    csv_resp = http.get("/history/export", params={"fmt": "csv"})
    assert csv_resp.status_code == 200
    assert csv_resp.headers["content-type"].startswith("text/csv")
    assert csv_resp.text.splitlines()[0].startswith("search_id,")
    assert len(csv_resp.text.strip().splitlines()) == 4

    json_resp = http.get("/history/export")
    assert json_resp.json()[0]["profile_name"] == PROFILE["name"]

    assert http.get("/history/export", params={"fmt": "xml"}).status_code == 422

    assert http.delete("/history").status_code == 204
    assert http.get("/history").json() == {"items": []}


def test_profile_enrich_and_draft(app_env):
    http, script, _ = app_env
    script({"name": "Horizon", "sector": "culture & arts", "region": "Bruxelles"})

    enriched = http.post("/profile/enrich", json={"enterprise_number": "0456789123"}).json()
    assert enriched["name"] == "Horizon"
    assert enriched["sector"] == "Culture & Arts"
    assert enriched["enterprise_number"] == "0456.789.123"

    draft = http.put("/profile/draft", json={"name": "Horizon", "search_mode": "fast"}).json()
    assert draft["name"] == "Horizon"
    assert draft["search_mode"] == "fast"
    assert http.get("/profile/draft").json() == draft


def test_admin_sync_not_configured(app_env):
    http, _, _ = app_env
    assert http.post("/admin/sync").status_code == 503


def test_runtime_api_key(app_env, monkeypatch):
    http, _, _ = app_env
    monkeypatch.setattr(dependencies, "_runtime_api_key", None)

    resp = http.post("/settings/api-key", json={"api_key": " runtime "})
    assert resp.json() == {"status": "ok", "api_key_set": True}
    client = dependencies.get_client(AppConfig(api_key="env", openai_api_key=None))
    assert client.api_key == "runtime"

    resp = http.post("/settings/api-key", json={"api_key": ""})
    assert resp.json()["api_key_set"] is False


def test_profile_draft_rejects_unknown_status(app_env):
    http, _, _ = app_env
    assert http.put("/profile/draft", json={"name": "Horizon", "status": "bogus"}).status_code == 422
    assert http.put("/profile/draft", json={"name": "Horizon", "status": "enriched"}).json()["status"] == "enriched"
