from datetime import datetime, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from docwatch.api.dependencies import get_http_client, get_notifier, get_settings, get_text_extractor
from docwatch.config import Settings
from docwatch.core.errors import StoreError
from docwatch.db.session import get_db
from docwatch.main import app
from docwatch.services.email_notify import Notifier
from docwatch.services.result_store import ResultStore
from docwatch.services.types import CheckResult

from conftest import DOC_URL, LINK_TITLE, PAGE_URL, FakeNotifier, mock_client, page_response, pdf_response, text_extractor

PAGE_KEY = "https://embassy.example/rs-sr/service/2339474"


@pytest.fixture
def routes():
    """Responses served to the app's HTTP client; tests may replace entries."""
    return {PAGE_KEY: page_response(), DOC_URL: pdf_response("list\n590698 Petrovic\nend")}


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        source_page_url=PAGE_URL,
        source_link_title=LINK_TITLE,
        search_number="590698",
        check_timezone="UTC",
        scheduled_check_secret="poll-secret",
        cron_secret="cron-secret",
        scheduler_enabled=False,
    )


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def client(session_factory, routes, test_settings, notifier):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_http_client] = lambda: mock_client(routes)
    app.dependency_overrides[get_text_extractor] = lambda: text_extractor
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_status_before_any_check(client):
    body = client.get("/api/automation").json()
    assert body["isRunning"] is True
    assert body["searchNumber"] == "590698"
    assert body["lastCheck"] is None
    assert body["checkHistory"] == []
    assert body["totalChecks"] == 0


def test_check_now_then_status(client, notifier):
    response = client.post("/api/automation", json={"action": "check-now"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["result"]["found"] is True
    assert body["result"]["emailSent"] is True
    assert body["result"]["source"] == "manual"
    assert body["nextCheck"]
    assert len(notifier.events) == 1

    status = client.get("/api/automation").json()
    assert status["totalChecks"] == 1
    assert status["lastResult"]["id"] == body["result"]["id"]
    assert status["cachedDocumentUrl"] == DOC_URL


def test_invalid_action(client):
    response = client.post("/api/automation", json={"action": "explode"})
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_store_result_action(client):
    payload = {"searchNumber": "590698", "matchCount": 1, "source": "cron", "contexts": ["590698"]}
    response = client.post("/api/automation", json={"action": "store-result", "result": payload})
    assert response.status_code == 200
    assert response.json()["result"]["found"] is True

    no_number = client.post("/api/automation", json={"action": "store-result", "result": {"source": "cron"}})
    assert no_number.status_code == 400
    assert no_number.json()["success"] is False


@pytest.mark.parametrize(
    "overrides",
    [
        {"matchCount": [1]},
        {"matchCount": -2},
        {"contexts": "abc"},
        {"contexts": 5},
        {"source": "webhook"},
    ],
)
def test_store_result_rejects_malformed_body(client, overrides):
    payload = {"searchNumber": "590698", "matchCount": 1, "source": "cron", **overrides}
    response = client.post("/api/automation", json={"action": "store-result", "result": payload})
    assert response.status_code == 422
    assert response.headers["content-type"].startswith("application/json")
    assert client.get("/api/automation").json()["totalChecks"] == 0


def test_status_degrades_when_store_down(client, monkeypatch):
    def broken(self):
        raise StoreError("Database unavailable: failed to read status")

    monkeypatch.setattr(ResultStore, "get_status", broken)
    response = client.get("/api/automation")
    assert response.status_code == 200
    body = response.json()
    assert body["degraded"] is True
    assert body["isRunning"] is True
    assert body["searchNumber"] == "590698"


def test_scheduled_check_requires_secret(client):
    assert client.get("/api/scheduled-check").status_code == 401
    wrong = client.get("/api/scheduled-check", headers={"Authorization": "Bearer nope"})
    assert wrong.status_code == 401
    assert wrong.json() == {"success": False, "error": "Unauthorized"}


def test_scheduled_check_runs_once_per_slot(client):
    headers = {"Authorization": "Bearer poll-secret"}
    first = client.get("/api/scheduled-check", headers=headers).json()
    assert first["success"] is True
    assert first["result"]["source"] == "scheduled"

    second = client.get("/api/scheduled-check", headers=headers).json()
    assert second["message"] == "Not yet time for check"
    assert second["minutesUntilNext"] is not None
    assert client.get("/api/automation").json()["totalChecks"] == 1


def test_cron_uses_its_own_secret(client):
    assert client.get("/api/cron/check-pdf", headers={"Authorization": "Bearer poll-secret"}).status_code == 401
    body = client.get("/api/cron/check-pdf", headers={"Authorization": "Bearer cron-secret"}).json()
    assert body["result"]["source"] == "cron"


def test_failed_scheduled_check_reports_error(client, routes):
    routes[PAGE_KEY] = httpx.Response(500)
    body = client.get("/api/scheduled-check", headers={"Authorization": "Bearer poll-secret"}).json()
    assert body["success"] is False
    assert body["error"].startswith("Failed to resolve document URL")


def test_source_endpoint_maps_fetch_error(client, routes):
    assert client.get("/api/source").json()["documentUrl"] == DOC_URL
    routes[PAGE_KEY] = httpx.Response(500)
    response = client.get("/api/source")
    assert response.status_code == 502
    assert response.json()["success"] is False


def test_pdf_checker(client):
    body = client.post("/api/pdf-checker", json={"pdfUrl": DOC_URL, "searchNumber": "590698"}).json()
    assert body["found"] is True
    assert body["matchCount"] == 1
    missing = client.post("/api/pdf-checker", json={"pdfUrl": DOC_URL})
    assert missing.status_code == 400


def test_pdf_url_round_trip(client):
    assert client.get("/api/pdf-url").json()["success"] is False
    assert client.post("/api/pdf-url", json={"pdfUrl": "not a url"}).status_code == 400
    client.post("/api/pdf-url", json={"pdfUrl": "https://embassy.example/manual.pdf"})
    assert client.get("/api/pdf-url").json()["documentUrl"] == "https://embassy.example/manual.pdf"


def test_send_email(client, notifier):
    body = client.post(
        "/api/send-email",
        json={"type": "found", "searchNumber": "590698", "pdfUrl": DOC_URL, "matchCount": 1},
    ).json()
    assert body["success"] is True
    assert body["messageId"]
    assert notifier.events[0].match_count == 1


def test_send_email_unconfigured(client, test_settings):
    app.dependency_overrides[get_notifier] = lambda: Notifier(test_settings)
    response = client.post("/api/send-email", json={"type": "error", "searchNumber": "590698", "error": "x"})
    assert response.status_code == 500
    assert "not configured" in response.json()["error"]


def test_check_now_store_failure_is_503(client, monkeypatch):
    def broken(self, result, *, now=None):
        raise StoreError("Database unavailable: failed to store check result")

    monkeypatch.setattr(ResultStore, "add_result", broken)
    response = client.post("/api/automation", json={"action": "check-now"})
    assert response.status_code == 503
    assert response.json() == {"success": False, "error": "Database unavailable: failed to store check result"}


def test_status_history_capped_at_ten(client, test_settings, session_factory):
    test_settings.history_limit = 25
    session = session_factory()
    try:
        store = ResultStore(session)
        for i in range(12):
            store.add_result(CheckResult(timestamp=datetime.now(timezone.utc), search_number="590698", source="cron"))
    finally:
        session.close()

    body = client.get("/api/automation").json()
    assert len(body["checkHistory"]) == 10
    assert body["totalChecks"] == 12
