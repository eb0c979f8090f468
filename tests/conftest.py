"""
Shared fixtures: in-memory stores and a scriptable transport.
"""

import asyncio
import io
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from whatsapp_service.application.controllers.session_controller import SessionController
from whatsapp_service.core.exceptions import StoreError
from whatsapp_service.domain.interfaces.storage import IObjectStore, IStatusStore
from whatsapp_service.domain.interfaces.transport import EventCallback, ITransport
from whatsapp_service.domain.services.credential_store import CredentialStoreBridge
from whatsapp_service.domain.services.status_publisher import StatusPublisher
from whatsapp_service.infrastructure.config.settings import get_settings

SESSION_PREFIX = "rentalflow"


# ============================================================================
# Fakes
# ============================================================================

class MemoryObjectStore(IObjectStore):
    """Bucket kept in a dict. Keys listed in ``fail_*`` raise StoreError."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.container_exists = False
        self.fail_downloads = set()
        self.fail_uploads = set()
        self.fail_list = False
        self.upload_calls: List[str] = []
        self.remove_calls: List[List[str]] = []
        self.upload_delay = 0.0
        self._active_uploads = 0
        self.max_concurrent_uploads = 0

    async def ensure_container(self) -> bool:
        if self.container_exists:
            return False
        self.container_exists = True
        return True

    async def list(self, prefix: str) -> List[str]:
        if self.fail_list:
            raise StoreError("list", prefix, "unreachable")
        base = prefix.rstrip("/") + "/"
        return sorted(
            key[len(base):] for key in self.objects
            if key.startswith(base) and "/" not in key[len(base):]
        )

    async def download(self, key: str) -> bytes:
        if key in self.fail_downloads or key not in self.objects:
            raise StoreError("download", key, "not available")
        return self.objects[key]

    async def upload(self, key: str, data: bytes, upsert: bool = True) -> None:
        self.upload_calls.append(key)
        self._active_uploads += 1
        self.max_concurrent_uploads = max(self.max_concurrent_uploads, self._active_uploads)
        try:
            if self.upload_delay:
                await asyncio.sleep(self.upload_delay)
            if key in self.fail_uploads:
                raise StoreError("upload", key, "rejected")
            if not upsert and key in self.objects:
                raise StoreError("upload", key, "already exists")
            self.objects[key] = bytes(data)
        finally:
            self._active_uploads -= 1

    async def remove(self, keys: List[str]) -> None:
        self.remove_calls.append(list(keys))
        for key in keys:
            self.objects.pop(key, None)


class MemoryStatusStore(IStatusStore):
    """
    Single status row kept in a dict, with a log of every write.

    With ``hold_qr_writes`` set, a write carrying a QR code parks until
    ``release`` is set; ``held`` fires once such a write is parked.
    """

    def __init__(self):
        self.row: Dict[str, Any] = {}
        self.writes: List[Dict[str, Any]] = []
        self.fail = False
        self.hold_qr_writes = False
        self.held = asyncio.Event()
        self.release = asyncio.Event()

    async def update(self, row_id: Any, values: Dict[str, Any]) -> None:
        if self.hold_qr_writes and values.get("qr_code"):
            self.held.set()
            await self.release.wait()
        if self.fail:
            raise StoreError("update", str(row_id), "unreachable")
        self.writes.append(dict(values))
        self.row.update(values)
        self.row["id"] = row_id

    async def fetch(self, row_id: Any) -> Optional[Dict[str, Any]]:
        if self.fail:
            raise StoreError("fetch", str(row_id), "unreachable")
        return dict(self.row) if self.row else None


class FakeTransport(ITransport):
    """Records every call. Tests drive lifecycle events with ``emit``."""

    def __init__(self, credentials_dir: Path, on_event: EventCallback,
                 fail_start: bool = False, fail_send: bool = False):
        super().__init__(credentials_dir, on_event)
        self.fail_start = fail_start
        self.fail_send = fail_send
        self.started = False
        self.stopped = False
        self.logged_out = False
        self.sent: List[tuple] = []

    async def start(self) -> None:
        if self.fail_start:
            raise RuntimeError("browser failed to launch")
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    async def logout(self) -> None:
        self.logged_out = True

    async def send_text(self, jid: str, text: str) -> None:
        if self.fail_send:
            raise RuntimeError("socket write failed")
        self.sent.append((jid, text))

    async def emit(self, event) -> None:
        await self.on_event(event)

    @property
    def live(self) -> bool:
        return self.started and not self.stopped


class TransportRecorder:
    """Transport factory that keeps every socket it built."""

    def __init__(self):
        self.created: List[FakeTransport] = []
        self.fail_start = False
        self.fail_send = False

    def __call__(self, credentials_dir: Path, on_event: EventCallback) -> FakeTransport:
        transport = FakeTransport(credentials_dir, on_event, self.fail_start, self.fail_send)
        self.created.append(transport)
        return transport

    @property
    def latest(self) -> FakeTransport:
        return self.created[-1]

    @property
    def live(self) -> List[FakeTransport]:
        return [t for t in self.created if t.live]


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def object_store():
    return MemoryObjectStore()


@pytest.fixture
def status_store():
    return MemoryStatusStore()


@pytest.fixture
def local_dir(tmp_path):
    return tmp_path / "wa_auth"


@pytest.fixture
def credential_store(object_store, local_dir):
    return CredentialStoreBridge(object_store, local_dir, SESSION_PREFIX)


@pytest.fixture
def publisher(status_store):
    return StatusPublisher(status_store, row_id=1, heartbeat_interval=0.01)


@pytest.fixture
def transports():
    return TransportRecorder()


@pytest.fixture
def qr_output():
    return io.StringIO()


@pytest.fixture
def controller(credential_store, publisher, transports, qr_output):
    return SessionController(credential_store, publisher, transports, qr_output=qr_output)
