"""
Neonize Transport Adapter
=========================
WhatsApp multi-device socket backed by the ``neonize`` asyncio client.

The library keeps its whole session (keys, device registration) in one
SQLite database, stored inside the credential folder so the Credential Store
Bridge mirrors it like any other credential file.

Library callbacks are translated into transport events:

- QR code               -> QrEvent
- pair success          -> CredsUpdateEvent
- connected             -> CredsUpdateEvent, OpenEvent
- logged out            -> CloseEvent("logged_out")
- stream replaced / ban -> CloseEvent(<reason>)
- disconnected          -> ConnectionLostEvent
- connect failure       -> AuthFailureEvent

The library reconnects after a network drop by itself, so a disconnect only
records last_error and the next connected callback clears it.
"""

import asyncio
from pathlib import Path
from typing import Any, Optional

from neonize.aioze.client import NewAClient
from neonize.aioze.events import (
    ConnectedEv,
    ConnectFailureEv,
    DisconnectedEv,
    LoggedOutEv,
    PairStatusEv,
    StreamReplacedEv,
    TemporaryBanEv,
)
from neonize.utils import build_jid

from ...core.logger import get_logger
from ...domain.interfaces.transport import EventCallback, ITransport
from ...domain.models.transport_events import (
    AuthFailureEvent,
    CloseEvent,
    ConnectionLostEvent,
    CredsUpdateEvent,
    OpenEvent,
    QrEvent,
)

SESSION_DB_NAME = "session.sqlite3"

logger = get_logger(__name__)


class NeonizeTransport(ITransport):
    """One neonize client bound to one credential folder."""

    def __init__(self, credentials_dir: Path, on_event: EventCallback):
        super().__init__(credentials_dir, on_event)
        self.credentials_dir.mkdir(parents=True, exist_ok=True)
        self._client = NewAClient(str(self.credentials_dir / SESSION_DB_NAME))
        self._run_task: Optional[asyncio.Task] = None
        self._stopping = False
        self._register_handlers()

    def _register_handlers(self) -> None:
        self._client.qr(self._on_qr)
        self._client.event(PairStatusEv)(self._on_pair_status)
        self._client.event(ConnectedEv)(self._on_connected)
        self._client.event(LoggedOutEv)(self._on_logged_out)
        self._client.event(StreamReplacedEv)(self._on_stream_replaced)
        self._client.event(TemporaryBanEv)(self._on_temporary_ban)
        self._client.event(DisconnectedEv)(self._on_disconnected)
        self._client.event(ConnectFailureEv)(self._on_connect_failure)

    async def _emit(self, event) -> None:
        if self._stopping:
            return
        await self.on_event(event)

    # Library callbacks

    async def _on_qr(self, _client: Any, data_qr: bytes) -> None:
        code = data_qr.decode("utf-8") if isinstance(data_qr, (bytes, bytearray)) else str(data_qr)
        await self._emit(QrEvent(code=code))

    async def _on_pair_status(self, _client: Any, event: PairStatusEv) -> None:
        logger.info("neonize.paired", {"user": event.ID.User})
        await self._emit(CredsUpdateEvent())

    async def _on_connected(self, _client: Any, _event: ConnectedEv) -> None:
        me = await self._client.get_me()
        await self._emit(CredsUpdateEvent())
        await self._emit(OpenEvent(identity=f"{me.JID.User}@{me.JID.Server}"))

    async def _on_logged_out(self, _client: Any, event: LoggedOutEv) -> None:
        logger.warning("neonize.logged_out", {"reason": str(event.Reason)})
        await self._emit(CloseEvent(reason="logged_out"))

    async def _on_stream_replaced(self, _client: Any, _event: StreamReplacedEv) -> None:
        await self._emit(CloseEvent(reason="stream_replaced"))

    async def _on_temporary_ban(self, _client: Any, event: TemporaryBanEv) -> None:
        await self._emit(CloseEvent(reason=f"temporary_ban:{event.Code}"))

    async def _on_disconnected(self, _client: Any, _event: DisconnectedEv) -> None:
        await self._emit(ConnectionLostEvent(reason="disconnected"))

    async def _on_connect_failure(self, _client: Any, event: ConnectFailureEv) -> None:
        await self._emit(AuthFailureEvent(message=f"Connect failure ({event.Reason})"))

    # ITransport

    async def start(self) -> None:
        self._stopping = False
        self._run_task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        try:
            await self._client.connect()
            await self._client.idle()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("neonize.run_failed", {"error": str(e)}, exc_info=True)
            await self._emit(CloseEvent(reason=type(e).__name__))

    async def stop(self) -> None:
        self._stopping = True
        try:
            await self._client.disconnect()
        finally:
            task, self._run_task = self._run_task, None
            if task is not None and not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

    async def logout(self) -> None:
        await self._client.logout()

    async def send_text(self, jid: str, text: str) -> None:
        user, _, server = jid.partition("@")
        await self._client.send_message(build_jid(user, server), text)


def create_transport(credentials_dir: Path, on_event: EventCallback) -> NeonizeTransport:
    return NeonizeTransport(credentials_dir, on_event)
