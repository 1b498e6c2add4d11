import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from src.backend.crm.integrations.webflow import WebflowClient
from src.backend.crm.main import app, get_webflow_client, get_webflow_config
from src.backend.crm.metrics_counters import WEBFLOW_REQUESTS, sum_counter
from src.backend.crm.models import EventLedger

from conftest import COLLECTIONS, TENANT_ID

DEFAULT_HEADERS = {"X-User-Id": "dev", "X-Role": "worker", "X-Tenant-Id": TENANT_ID}


@pytest.fixture
def client(db, webflow_config, webflow_client):
    app.dependency_overrides[get_webflow_config] = lambda: webflow_config
    app.dependency_overrides[get_webflow_client] = lambda: webflow_client
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_publish_company_response_contract(client, db, make_company, current_doc):
    company = make_company(current_doc)
    before = sum_counter(WEBFLOW_REQUESTS)

    r = client.post("/webflow/publish-company", json={"companyId": company.id}, headers=DEFAULT_HEADERS)

    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["slug"] == "joes-garage"
    assert data["liveUrl"].endswith("/joes-garage")
    assert data["webflowProfileId"]
    assert set(data["synced"]) == {"profiles", "services", "faqs", "scenarios", "locations", "reviews", "service_references"}
    assert data["synced"]["services"]["count"] == 2
    assert data["totalItemsSynced"] == sum(v["count"] for v in data["synced"].values())
    assert data["message"].startswith("Published Joe's Garage")
    assert data["itemErrors"] == [] and data["publishErrors"] == []
    assert sum_counter(WEBFLOW_REQUESTS) > before
    events = db.scalars(select(EventLedger.name)).all()
    assert "webflow.profile.synced" in events


def test_publish_unknown_company_is_404(client):
    r = client.post("/webflow/publish-company", json={"companyId": "nope"}, headers=DEFAULT_HEADERS)
    assert r.status_code == 404
    assert r.json()["error"] == "company_not_found"


def test_publish_requires_company_id(client):
    r = client.post("/webflow/publish-company", json={}, headers=DEFAULT_HEADERS)
    assert r.status_code == 422


def test_profile_upsert_failure_is_502(client, fake_webflow, make_company, current_doc):
    company = make_company(current_doc)
    fake_webflow.fail_create = lambda cid, fields: 500 if cid == COLLECTIONS.profiles else None
    r = client.post("/webflow/publish-company", json={"companyId": company.id}, headers=DEFAULT_HEADERS)
    assert r.status_code == 502
    assert r.json()["error"] == "profile_upsert_failed"


def test_missing_token_is_400(db, monkeypatch, make_company, current_doc):
    monkeypatch.delenv("WEBFLOW_API_TOKEN", raising=False)
    monkeypatch.delenv("WEBFLOW_CMS_SITE_API_TOKEN", raising=False)
    company = make_company(current_doc)
    r = TestClient(app).post("/webflow/publish-company", json={"companyId": company.id}, headers=DEFAULT_HEADERS)
    assert r.status_code == 400
    assert r.json()["error"] == "webflow_not_configured"


def test_viewer_cannot_publish(client, make_company, current_doc):
    company = make_company(current_doc)
    headers = dict(DEFAULT_HEADERS, **{"X-Role": "viewer"})
    r = client.post("/webflow/publish-company", json={"companyId": company.id}, headers=headers)
    assert r.status_code == 403


def test_missing_credentials_are_401(client, monkeypatch):
    monkeypatch.setenv("DEV_AUTH_ALLOW", "0")
    r = client.post("/webflow/sync-content")
    assert r.status_code == 401
    assert r.json()["detail"] == "missing_token"


def test_company_is_scoped_to_caller_tenant(client, make_company, current_doc):
    company = make_company(current_doc, tenant_id="t2")
    r = client.post("/webflow/publish-company", json={"companyId": company.id}, headers=DEFAULT_HEADERS)
    assert r.status_code == 404


def test_sync_content(client, make_company, add_blog, current_doc):
    company = make_company(current_doc)
    assert client.post("/webflow/publish-company", json={"companyId": company.id}, headers=DEFAULT_HEADERS).status_code == 200
    add_blog(company, "Spring maintenance checklist")

    r = client.post("/webflow/sync-content", headers=DEFAULT_HEADERS)

    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert (data["total"], data["synced"], data["failed"]) == (1, 1, 0)
    assert data["message"] == "Synced 1 of 1 blog(s) to Webflow"


def test_migrate_company_data(client, make_company, current_doc):
    company = make_company(current_doc)
    r = client.post("/migrate-company-data", json={"companyId": company.id}, headers=DEFAULT_HEADERS)
    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert "phone" in data["migrated_fields"]
    assert data["media_saved"] == 1


def test_test_connection(client, fake_webflow):
    r = client.get("/webflow/test-connection", headers=DEFAULT_HEADERS)
    assert r.status_code == 200
    assert r.json() == {"connected": True, "collection": "Profiles", "fields": ["name", "slug"]}


def test_test_connection_reports_failure(client, webflow_config):
    rejecting = httpx.MockTransport(lambda request: httpx.Response(401, json={"message": "Not authorized"}))
    bad_client = WebflowClient.from_config(webflow_config, transport=rejecting)
    app.dependency_overrides[get_webflow_client] = lambda: bad_client

    r = client.get("/webflow/test-connection", headers=DEFAULT_HEADERS)

    assert r.status_code == 200
    assert r.json()["connected"] is False
    assert "401" in r.json()["error"]
    bad_client.close()


def test_health_ready_metrics(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/ready").json() == {"status": "ready"}
    r = client.get("/metrics/prometheus")
    assert r.status_code == 200
    assert "webflow_requests_total" in r.text
