"""
API tests for /api/feedback and /api/health.
"""

import json

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from app.main import create_app
from app.services.analysis_providers import OfflineAnalysisProvider, OnlineAnalysisProvider
from app.services.analysis_service import AnalysisService
from app.services.feedback_service import FeedbackService
from app.services.llm_providers.base import LLMProviderError


@pytest.fixture
def client(feedback_service):
    app = create_app(feedback_service=feedback_service)
    with TestClient(app) as c:
        yield c


def _submit(client, text, email=None):
    body = {"text": text}
    if email is not None:
        body["email"] = email
    return client.post("/api/feedback", json=body)


class TestSubmit:

    def test_submit_returns_stored_feedback_with_analysis(self, client):
        response = _submit(client, "The search page is really slow", "user@example.com")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] >= 1
        assert data["text"] == "The search page is really slow"
        assert data["email"] == "user@example.com"
        assert "createdAt" in data
        analysis = data["analysis"]
        assert set(analysis) == {"summary", "sentiment", "tags", "priority", "nextAction"}
        assert analysis["sentiment"] in ("positive", "neutral", "negative")
        assert analysis["priority"] in ("P0", "P1", "P2", "P3")

    def test_empty_email_treated_as_absent(self, client):
        response = _submit(client, "Works fine", "")
        assert response.status_code == 200
        assert response.json()["email"] is None

    @pytest.mark.parametrize(
        "body",
        [
            {"text": ""},
            {"text": "x" * 10_001},
            {"text": "ok", "email": "not-an-email"},
            {"email": "user@example.com"},
        ],
    )
    def test_invalid_body_rejected(self, client, body):
        response = client.post("/api/feedback", json=body)
        assert response.status_code == 422

    def test_max_length_text_accepted(self, client):
        assert _submit(client, "x" * 10_000).status_code == 200

    def test_max_length_follows_settings(self, client, monkeypatch):
        monkeypatch.setattr("app.models.feedback.settings.max_feedback_length", 20)

        assert _submit(client, "x" * 20).status_code == 200
        assert _submit(client, "x" * 21).status_code == 422

    def test_same_text_reuses_cached_analysis(self, client, analysis_service):
        first = _submit(client, "Dark mode please").json()
        second = _submit(client, "  dark MODE please ").json()

        assert first["id"] != second["id"]
        assert first["analysis"] == second["analysis"]
        assert len(analysis_service.cache) == 1


class TestList:

    def test_envelope_shape(self, client):
        _submit(client, "First")
        _submit(client, "Second")

        response = client.get("/api/feedback")

        assert response.status_code == 200
        body = response.json()
        assert body["pagination"] == {"page": 1, "pageSize": 10, "total": 2, "totalPages": 1}
        assert [row["text"] for row in body["data"]] == ["Second", "First"]

    def test_filters_by_sentiment(self, client, seed_feedback):
        seed_feedback([
            ("a", "positive", ["ui"], "s1"),
            ("b", "negative", ["bug"], "s2"),
            ("c", "positive", ["api"], "s3"),
        ])

        body = client.get("/api/feedback", params={"sentiment": "positive"}).json()

        assert body["pagination"]["total"] == 2
        assert {row["text"] for row in body["data"]} == {"a", "c"}

    def test_filters_by_tag_and_search(self, client, seed_feedback):
        seed_feedback([
            ("Checkout fails", "negative", ["bug", "payments"], "Payment failure"),
            ("Checkout is nice", "positive", ["payments"], "Checkout praise"),
        ])

        body = client.get("/api/feedback", params={"tag": "bug", "search": "CHECKOUT"}).json()

        assert body["pagination"]["total"] == 1
        assert body["data"][0]["text"] == "Checkout fails"

    def test_unknown_sentiment_rejected(self, client):
        assert client.get("/api/feedback", params={"sentiment": "angry"}).status_code == 422

    @pytest.mark.parametrize("params", [{"page": 0}, {"pageSize": 0}, {"pageSize": 101}])
    def test_invalid_pagination_is_client_error(self, client, params):
        response = client.get("/api/feedback", params=params)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "FBK-VAL-002"

    def test_page_beyond_addressable_rows_is_client_error(self, client):
        response = client.get("/api/feedback", params={"page": 10**17, "pageSize": 100})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "FBK-VAL-002"

    def test_page_size_100_ok(self, client):
        response = client.get("/api/feedback", params={"pageSize": 100})
        assert response.status_code == 200
        assert response.json()["pagination"]["totalPages"] == 0


class TestGetById:

    def test_get_existing(self, client):
        created = _submit(client, "Great release").json()

        response = client.get(f"/api/feedback/{created['id']}")

        assert response.status_code == 200
        assert response.json() == created

    def test_missing_is_404(self, client):
        response = client.get("/api/feedback/9999")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "FBK-API-001"

    def test_non_positive_id_is_400(self, client):
        assert client.get("/api/feedback/0").status_code == 400

    def test_non_numeric_id_is_422(self, client):
        assert client.get("/api/feedback/abc").status_code == 422


class TestDegradedMode:

    def test_remote_failure_never_reaches_callers(self, store):
        llm = MagicMock()
        llm.generate = AsyncMock(side_effect=LLMProviderError("down", provider="openai"))
        analysis = AnalysisService(provider=OnlineAnalysisProvider(llm), fallback=OfflineAnalysisProvider())
        app = create_app(feedback_service=FeedbackService(analysis, store))

        with TestClient(app) as client:
            assert client.get("/api/health").json()["analysis"]["mode"] == "online"

            for text in ("first", "second", "third"):
                assert _submit(client, text).status_code == 200

            health = client.get("/api/health").json()

        assert llm.generate.await_count == 1
        assert health["status"] == "degraded"
        assert health["analysis"]["mode"] == "offline"

    def test_online_analysis_is_stored(self, store):
        reply = {
            "summary": "Export is missing headers",
            "sentiment": "negative",
            "tags": ["export"],
            "priority": "P2",
            "nextAction": "Add to sprint backlog",
        }
        llm = MagicMock()
        llm.generate = AsyncMock(return_value=json.dumps(reply))
        analysis = AnalysisService(provider=OnlineAnalysisProvider(llm))
        app = create_app(feedback_service=FeedbackService(analysis, store))

        with TestClient(app) as client:
            created = _submit(client, "CSV export has no header row").json()

        assert created["analysis"] == reply


def test_health(client):
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert body["service"] == "feedback-insights"
    assert body["analysis"] == {"mode": "offline", "cache_entries": 0}


def test_request_id_header_echoed(client):
    response = client.get("/api/health", headers={"x-request-id": "req-abc"})
    assert response.headers["x-request-id"] == "req-abc"
    assert response.headers["x-correlation-id"]
