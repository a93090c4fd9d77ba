import pytest
from fastapi.testclient import TestClient

from app.api.conversation import get_conversation_service
from app.api.status import get_status_probe
from app.core.errors import CollaboratorUnavailableError
from app.models.session import ConversationSession
from app.models.status import DependencyStatus
from main import app


class DummyConversationService:
    def __init__(self, error=None):
        self.error = error
        self.sessions = {"known": ConversationSession(session_id="known")}
        self.submitted = []

    async def submit_message(self, session_id, text):
        if self.error:
            raise self.error
        self.submitted.append((session_id, text))
        return {
            "assistant_text": "Welcome",
            "next_step": None,
            "expected_input_kind": "comprehensive_form",
            "session_id": session_id,
            "project_id": None,
        }

    async def get_session(self, session_id):
        return self.sessions.get(session_id)

    async def delete_session(self, session_id):
        return self.sessions.pop(session_id, None) is not None


class DummyProbe:
    def __init__(self):
        self.refreshes = []

    async def get_status(self, force_refresh=False):
        self.refreshes.append(force_refresh)
        return DependencyStatus(available=True, state="healthy", message="AI services are available",
                                can_proceed_with_reports=True, fallback_to_basic_creation=False)


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def _use(service):
    app.dependency_overrides[get_conversation_service] = lambda: service
    return service


def test_submit_message(client):
    service = _use(DummyConversationService())

    response = client.post("/api/v1/conversations/abc/messages", json={"text": "hello"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["expected_input_kind"] == "comprehensive_form"
    assert service.submitted == [("abc", "hello")]


def test_response_carries_correlation_and_timing_headers(client):
    _use(DummyConversationService())

    response = client.post(
        "/api/v1/conversations/abc/messages",
        json={"text": ""},
        headers={"X-Correlation-ID": "COR-1700000000000-abc123xyz"},
    )

    assert response.headers["X-Correlation-ID"] == "COR-1700000000000-abc123xyz"
    assert "X-Process-Time-ms" in response.headers


def test_malformed_correlation_header_is_replaced(client):
    _use(DummyConversationService())

    response = client.post("/api/v1/conversations/abc/messages", json={"text": ""},
                           headers={"X-Correlation-ID": "<script>"})

    assert response.headers["X-Correlation-ID"].startswith("COR-")


def test_message_too_long_is_rejected(client):
    _use(DummyConversationService(error=ValueError("Message is too long")))

    response = client.post("/api/v1/conversations/abc/messages", json={"text": "x"})

    assert response.status_code == 422


def test_store_outage_is_service_unavailable(client):
    _use(DummyConversationService(error=CollaboratorUnavailableError("down")))

    response = client.post("/api/v1/conversations/abc/messages", json={"text": "hello"})

    assert response.status_code == 503


def test_get_and_delete_session(client):
    _use(DummyConversationService())

    assert client.get("/api/v1/conversations/known").json()["data"]["session_id"] == "known"
    assert client.get("/api/v1/conversations/unknown").status_code == 404
    assert client.delete("/api/v1/conversations/known").status_code == 200
    assert client.delete("/api/v1/conversations/known").status_code == 404


def test_dependency_status(client):
    probe = DummyProbe()
    app.dependency_overrides[get_status_probe] = lambda: probe

    response = client.get("/api/v1/status/dependencies?refresh=true")

    assert response.status_code == 200
    assert response.json()["data"]["state"] == "healthy"
    assert probe.refreshes == [True]


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_unhandled_error_returns_reference():
    _use(DummyConversationService(error=RuntimeError("boom")))
    client = TestClient(app, raise_server_exceptions=False)
    try:
        response = client.post(
            "/api/v1/conversations/abc/messages",
            json={"text": "hello"},
            headers={"X-Correlation-ID": "COR-1700000000000-abc123xyz"},
        )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["details"]["reference"].startswith("ERR-")
    assert body["correlation_id"] == "COR-1700000000000-abc123xyz"
