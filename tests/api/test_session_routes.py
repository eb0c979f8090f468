"""
API Tests: Session Routes
=========================
Bearer auth, status, send-otp, control, health, the panel page and rate
limiting, against the real controller wired to in-memory fakes.
"""

import pytest
from fastapi.testclient import TestClient

from whatsapp_service.api.server import create_app
from whatsapp_service.core.logger import get_logger
from whatsapp_service.domain.models.transport_events import OpenEvent
from whatsapp_service.infrastructure.config.settings import (
    AppSettings,
    ServerSettings,
    StatusSettings,
    WhatsAppSettings,
)

TOKEN = "test-service-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}


class StubContainer:
    """Hands prebuilt services to the app lifespan."""

    def __init__(self, settings, controller, publisher):
        self.settings = settings
        self.logger = get_logger("tests.api")
        self._controller = controller
        self._publisher = publisher

    async def create_session_controller(self):
        return self._controller

    async def create_status_publisher(self):
        return self._publisher


def _settings(rate_limit: str = "120/minute") -> AppSettings:
    return AppSettings(
        whatsapp=WhatsAppSettings(service_token=TOKEN),
        server=ServerSettings(rate_limit=rate_limit),
        status=StatusSettings(heartbeat_interval_seconds=60)
    )


@pytest.fixture
def client(controller, publisher):
    app = create_app(StubContainer(_settings(), controller, publisher))
    with TestClient(app) as test_client:
        yield test_client


def _connect(client, transports):
    client.portal.call(transports.latest.emit, OpenEvent(identity="15551234567:2@s.whatsapp.net"))


# ============================================================================
# Auth
# ============================================================================

class TestAuth:

    @pytest.mark.parametrize("path", ["/api/status", "/api/health"])
    def test_missing_token(self, client, path):
        response = client.get(path)

        assert response.status_code == 401
        assert response.json() == {"message": "Unauthorized"}

    def test_wrong_token(self, client):
        response = client.get("/api/status", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    def test_post_routes_require_token(self, client, controller):
        response = client.post("/api/control", json={"action": "restart"})

        assert response.status_code == 401
        assert controller.generation == 1

    def test_empty_configured_token_rejects_everything(self, controller, publisher):
        settings = _settings()
        settings.whatsapp.service_token = ""
        app = create_app(StubContainer(settings, controller, publisher))

        with TestClient(app) as client:
            response = client.get("/api/status", headers={"Authorization": "Bearer anything"})

        assert response.status_code == 401

    def test_panel_is_public(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "/api/control" in response.text


# ============================================================================
# Status / health
# ============================================================================

class TestStatus:

    def test_status_after_startup(self, client):
        response = client.get("/api/status", headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "connecting"
        assert body["qr_code"] is None
        assert body["updated_at"]

    def test_status_missing_row(self, client, status_store):
        status_store.row.clear()

        response = client.get("/api/status", headers=AUTH)

        assert response.json() == {}

    def test_status_store_unreachable(self, client, status_store):
        status_store.fail = True

        response = client.get("/api/status", headers=AUTH)

        assert response.status_code == 500
        assert "message" in response.json()

    def test_health_writes_heartbeat(self, client, status_store):
        writes = len(status_store.writes)

        response = client.get("/api/health", headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert "heartbeat_at" in status_store.writes[writes]


# ============================================================================
# send-otp
# ============================================================================

class TestSendOtp:

    @pytest.mark.parametrize("body", [
        {},
        {"phoneNumber": "15551234567"},
        {"message": "code 1234"},
        {"phoneNumber": "", "message": "code 1234"},
    ])
    def test_missing_fields(self, client, body):
        response = client.post("/api/send-otp", json=body, headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"message": "phoneNumber and message required."}

    def test_not_connected(self, client, status_store):
        writes = len(status_store.writes)

        response = client.post(
            "/api/send-otp", json={"phoneNumber": "15551234567", "message": "code 1234"}, headers=AUTH
        )

        assert response.status_code == 503
        assert response.json() == {"message": "WhatsApp client is not connected."}
        assert len(status_store.writes) == writes

    def test_success(self, client, transports):
        _connect(client, transports)

        response = client.post(
            "/api/send-otp", json={"phoneNumber": "+1 555 123 4567", "message": "code 1234"}, headers=AUTH
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert transports.latest.sent == [("15551234567@s.whatsapp.net", "code 1234")]

    def test_transport_failure(self, client, transports, status_store):
        _connect(client, transports)
        transports.latest.fail_send = True

        response = client.post(
            "/api/send-otp", json={"phoneNumber": "15551234567", "message": "code 1234"}, headers=AUTH
        )

        assert response.status_code == 500
        assert response.json() == {"message": "Failed to send WhatsApp message."}
        assert status_store.row["last_error"] == "socket write failed"


# ============================================================================
# control
# ============================================================================

class TestControl:

    def test_missing_action(self, client):
        response = client.post("/api/control", json={}, headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"message": "Action required."}

    def test_missing_body(self, client):
        response = client.post("/api/control", headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"message": "Action required."}

    def test_bogus_action_changes_nothing(self, client, controller, transports, status_store):
        writes = len(status_store.writes)

        response = client.post("/api/control", json={"action": "bogus"}, headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid action."}
        assert controller.generation == 1
        assert len(transports.created) == 1
        assert len(status_store.writes) == writes

    def test_restart(self, client, controller, transports):
        response = client.post("/api/control", json={"action": "restart"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert controller.generation == 2
        assert len(transports.live) == 1

    def test_logout(self, client, controller, status_store):
        response = client.post("/api/control", json={"action": "logout"}, headers=AUTH)

        assert response.status_code == 200
        assert not controller.has_socket
        assert status_store.row["last_error"] == "Logged out"


# ============================================================================
# Lifespan / rate limiting
# ============================================================================

class TestLifespan:

    def test_startup_and_shutdown(self, controller, publisher, transports):
        app = create_app(StubContainer(_settings(), controller, publisher))

        with TestClient(app):
            assert publisher.heartbeat_running
            assert transports.latest.live

        assert not publisher.heartbeat_running
        assert transports.latest.stopped


class TestRateLimit:

    def test_limit_exceeded(self, controller, publisher):
        app = create_app(StubContainer(_settings(rate_limit="3/minute"), controller, publisher))

        with TestClient(app) as client:
            codes = [client.get("/").status_code for _ in range(4)]
            last = client.get("/")

        assert codes[:3] == [200, 200, 200]
        assert codes[3] == 429
        assert last.json() == {"message": "Too many requests. Please try again later."}
