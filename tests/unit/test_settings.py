"""
Unit Tests: Settings and Wiring
===============================
Environment driven settings, transport factory loading and the container.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import ValidationError

from whatsapp_service.core.logger import get_logger
from whatsapp_service.infrastructure.config.settings import (
    AppSettings,
    ServerSettings,
    WhatsAppSettings,
    get_settings,
)
from whatsapp_service.infrastructure.container import Container
from whatsapp_service.infrastructure.transport.loader import load_transport_factory

# Any importable callable satisfies the loader
STUB_FACTORY_PATH = "whatsapp_service.domain.models.connection_status:utc_now_iso"


class TestSettingsFromEnvironment:

    def test_defaults(self, monkeypatch):
        for name in ("PORT", "SERVER_PORT", "WHATSAPP_SESSION_ID", "STATUS_HEARTBEAT_INTERVAL_SECONDS"):
            monkeypatch.delenv(name, raising=False)

        settings = AppSettings()

        assert settings.server.port == 5055
        assert settings.server.rate_limit == "120/minute"
        assert settings.whatsapp.session_id == "rentalflow"
        assert settings.supabase.storage_bucket == "whatsapp-sessions"
        assert settings.supabase.status_table == "whatsapp_status"
        assert settings.status.heartbeat_interval_seconds == 30.0

    def test_values_from_environment(self, monkeypatch):
        monkeypatch.setenv("WHATSAPP_SERVICE_TOKEN", "secret")
        monkeypatch.setenv("WHATSAPP_SESSION_ID", "tenant-a")
        monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
        monkeypatch.setenv("STATUS_HEARTBEAT_INTERVAL_SECONDS", "5")

        settings = get_settings()

        assert settings.whatsapp.service_token == "secret"
        assert settings.whatsapp.session_id == "tenant-a"
        assert settings.supabase.url == "https://example.supabase.co"
        assert settings.status.heartbeat_interval_seconds == 5.0

    def test_plain_port_variable(self, monkeypatch):
        monkeypatch.delenv("SERVER_PORT", raising=False)
        monkeypatch.setenv("PORT", "8080")

        assert ServerSettings().port == 8080

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_session_id_must_be_single_segment(self):
        with pytest.raises(ValidationError):
            WhatsAppSettings(session_id="a/b")

    def test_session_id_must_not_be_empty(self):
        with pytest.raises(ValidationError):
            WhatsAppSettings(session_id="  ")

    def test_transport_path_format(self):
        with pytest.raises(ValidationError):
            WhatsAppSettings(transport="no_colon_here")

    def test_heartbeat_interval_positive(self, monkeypatch):
        monkeypatch.setenv("STATUS_HEARTBEAT_INTERVAL_SECONDS", "0")

        with pytest.raises(ValidationError):
            AppSettings()


class TestTransportLoader:

    def test_loads_callable(self):
        assert callable(load_transport_factory(STUB_FACTORY_PATH))

    @pytest.mark.parametrize("path", [
        "no_colon",
        "whatsapp_service.core.exceptions:",
        "whatsapp_service.core.exceptions:does_not_exist",
        "whatsapp_service.domain.models.connection_status:LOGGED_OUT_MESSAGE",
    ])
    def test_invalid_paths(self, path):
        with pytest.raises(ValueError):
            load_transport_factory(path)

    def test_missing_module(self):
        with pytest.raises(ImportError):
            load_transport_factory("whatsapp_service.no_such_module:create")


class TestContainer:

    @pytest.fixture
    def settings(self, tmp_path):
        return AppSettings(
            whatsapp=WhatsAppSettings(
                session_id="tenant-a",
                credentials_dir=str(tmp_path / "auth"),
                transport=STUB_FACTORY_PATH
            )
        )

    @pytest.mark.asyncio
    async def test_builds_controller_from_settings(self, settings, tmp_path):
        container = Container(settings, get_logger("tests.container"))
        with patch(
            "whatsapp_service.infrastructure.container.create_supabase_client",
            AsyncMock(return_value=MagicMock())
        ):
            controller = await container.create_session_controller()

        assert controller.credential_store.prefix == "tenant-a"
        assert controller.credential_store.local_dir == tmp_path / "auth"
        assert controller.publisher.row_id == 1
        assert controller.publisher.heartbeat_interval == 30.0

    @pytest.mark.asyncio
    async def test_services_are_singletons(self, settings):
        container = Container(settings, get_logger("tests.container"))
        client_factory = AsyncMock(return_value=MagicMock())
        with patch("whatsapp_service.infrastructure.container.create_supabase_client", client_factory):
            first, second = await asyncio.gather(
                container.create_session_controller(),
                container.create_session_controller()
            )
            publisher = await container.create_status_publisher()

        assert first is second
        assert first.publisher is publisher
        assert client_factory.await_count == 1
