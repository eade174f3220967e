"""
Test suite for the HTTP API.

Uses FastAPI ``TestClient`` against ``create_app(gateway=...)`` so no
MongoDB, Gemini or network access is needed.  The client talks HTTPS
because the session cookie is ``Secure``.
"""

import pytest
from fastapi.testclient import TestClient
from google.genai import errors as genai_errors

from alumglass.config.prompt_templates import ERROR_INVALID_REQUEST
from alumglass.config.settings import settings
from alumglass.src.main import create_app

COOKIE = settings.SESSION_COOKIE_NAME


@pytest.fixture
def client(make_gateway) -> TestClient:
    """Provide TestClient for an app wired to in-process fakes."""
    return TestClient(create_app(gateway=make_gateway()), base_url="https://testserver")


class TestWebchat:

    def test_first_request_issues_session_and_second_reuses_it(self, client, session_store):
        first = client.post("/api/webchat", json={"text": "سوال"})

        assert first.status_code == 200
        body = first.json()
        session_id = body["sessionId"]
        assert session_id
        assert first.cookies.get(COOKIE) == session_id

        second = client.post("/api/webchat", json={"text": "سوال دوم"})

        assert second.json()["sessionId"] == session_id
        assert len(session_store.sessions[session_id]) == 4

    def test_cookie_attributes(self, client):
        response = client.post("/api/webchat", json={"text": "سوال"})
        set_cookie = response.headers["set-cookie"].lower()
        for attribute in ("httponly", "secure", "samesite=lax", "path=/", "max-age=2592000"):
            assert attribute in set_cookie

    def test_response_shape(self, client):
        body = client.post("/api/webchat", json={"text": "سوال", "userInfo": {"name": "سارا", "contact": None}}).json()

        assert body["response"] == "پاسخ آزمایشی"
        assert body["astraResults"][0]["metadata"]["doc_name"] == "نشریه ۷۱۴"
        assert body["astraResults"][0]["$similarity"] == pytest.approx(0.9123)

    def test_empty_text_is_400(self, client):
        response = client.post("/api/webchat", json={"text": "  "})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_malformed_body_is_400(self, client):
        response = client.post("/api/webchat", content="{not json", headers={"content-type": "application/json"})
        assert response.status_code == 400
        assert response.json() == {"error": ERROR_INVALID_REQUEST}

    def test_quota_exhaustion_is_429(self, client, genai_clients):
        quota = genai_errors.ClientError(429, {"error": {"code": 429, "message": "Resource exhausted", "status": "RESOURCE_EXHAUSTED"}})
        genai_clients.generate.side_effect = [quota, quota]

        response = client.post("/api/webchat", json={"text": "سوال"})

        assert response.status_code == 429
        assert response.cookies.get(COOKIE)

    def test_embedding_failure_still_200_with_empty_results(self, client, genai_clients):
        genai_clients.embed.side_effect = RuntimeError("embedding backend unreachable")

        response = client.post("/api/webchat", json={"text": "سوال"})

        assert response.status_code == 200
        assert response.json()["astraResults"] == []


class TestWidgetSearch:

    def test_returns_ranked_array(self, client):
        response = client.post("/api/widget-search", json={"text": "شیشه"})

        assert response.status_code == 200
        results = response.json()
        assert [r["metadata"]["doc_name"] for r in results] == ["نشریه ۷۱۴", "مبحث ۱۹"]
        assert "source" not in results[0]

    def test_missing_text_is_400(self, client):
        assert client.post("/api/widget-search", json={}).status_code == 400

    def test_issues_session_cookie(self, client):
        response = client.post("/api/widget-search", json={"text": "شیشه"})
        assert COOKIE in response.cookies
        assert "httponly" in response.headers["set-cookie"].lower()


class TestGetHistory:

    def test_unknown_session_is_404(self, client):
        assert client.get("/api/get-history/sessUNKNOWN00000").status_code == 404

    def test_history_after_chat(self, client):
        session_id = client.post("/api/webchat", json={"text": "سلام", "userInfo": {"name": "سارا"}}).json()["sessionId"]

        body = client.get(f"/api/get-history/{session_id}").json()

        assert [m["role"] for m in body["history"]] == ["user", "assistant"]
        assert body["history"][0]["content"] == "سلام"
        assert body["history"][0]["timestamp"] <= body["history"][1]["timestamp"]
        assert body["userInfo"] == {"name": "سارا", "contact": None}
