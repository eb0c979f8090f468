"""
Connection State Machine
========================
Interprets the lifecycle events of one transport socket and publishes the
resulting status.

One instance exists per socket generation:

- CONNECTING:   entered on socket creation, re-entered on every new QR code
- CONNECTED:    entered only on a confirmed open event
- DISCONNECTED: entered on close or auth failure; terminal for this socket

A dropped link the transport is already retrying only records last_error.

Handling never raises. Errors are logged so the transport keeps running.
"""

import base64
import io
import sys
from typing import Optional, TextIO

import qrcode

from ...core.logger import StructuredLogger, get_logger
from ..models.connection_status import (
    CONNECTION_LOST_MESSAGE,
    ConnectionStatus,
    classify_close_reason,
    utc_now_iso,
)
from ..models.transport_events import (
    AuthFailureEvent,
    CloseEvent,
    ConnectionLostEvent,
    CredsUpdateEvent,
    OpenEvent,
    QrEvent,
    TransportEvent,
)
from .credential_store import CredentialStoreBridge
from .status_publisher import StatusPublisher


def canonical_number(identity: Optional[str]) -> Optional[str]:
    """
    Extract the phone number from a JID.

    "15551234567:12@s.whatsapp.net" -> "15551234567"
    """
    if not identity:
        return None
    user = str(identity).split("@", 1)[0]
    user = user.split(":", 1)[0].split(".", 1)[0]
    return user or None


def build_qr_data_url(code: str) -> str:
    """Encode a pairing code as a PNG data URL for the control panel."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=4,
    )
    qr.add_data(code)
    qr.make(fit=True)
    img = qr.make_image(fill_color="#000000", back_color="#FFFFFF").convert("RGB")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def render_qr_ascii(code: str, out: TextIO) -> None:
    """Draw a pairing code on a terminal so the operator can scan it from the logs."""
    qr = qrcode.QRCode(border=1)
    qr.add_data(code)
    qr.make(fit=True)
    qr.print_ascii(out=out, invert=True)


class ConnectionStateMachine:
    """Single entry point (``handle``) for the events of one socket generation."""

    def __init__(
        self,
        generation: int,
        publisher: StatusPublisher,
        credential_store: CredentialStoreBridge,
        logger: Optional[StructuredLogger] = None,
        qr_output: Optional[TextIO] = None
    ):
        self.generation = generation
        self.publisher = publisher
        self.credential_store = credential_store
        self.logger = logger or get_logger(__name__)
        self.qr_output = qr_output if qr_output is not None else sys.stdout

        self.status = ConnectionStatus.CONNECTING
        self.connected_number: Optional[str] = None
        self.last_error: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED

    @property
    def is_terminal(self) -> bool:
        return self.status == ConnectionStatus.DISCONNECTED

    def mark_stopped(self, reason: str) -> None:
        """Enter DISCONNECTED without publishing; the controller publishes its own status."""
        self._transition(ConnectionStatus.DISCONNECTED, reason)

    async def _publish(self, updates) -> bool:
        return await self.publisher.publish(updates, generation=self.generation)

    def _transition(self, new_status: ConnectionStatus, reason: str = "") -> None:
        if new_status != self.status:
            self.logger.info("connection.state_transition", {
                "generation": self.generation,
                "from_state": self.status.value,
                "to_state": new_status.value,
                "reason": reason
            })
        self.status = new_status

    async def handle(self, event: TransportEvent) -> None:
        try:
            if isinstance(event, CredsUpdateEvent):
                await self._on_creds_update(event)
            elif self.is_terminal:
                self.logger.warning("connection.event_after_disconnect_ignored", {
                    "generation": self.generation,
                    "event": type(event).__name__
                })
            elif isinstance(event, QrEvent):
                await self._on_qr(event)
            elif isinstance(event, OpenEvent):
                await self._on_open(event)
            elif isinstance(event, CloseEvent):
                await self._on_close(event)
            elif isinstance(event, ConnectionLostEvent):
                await self._on_connection_lost(event)
            elif isinstance(event, AuthFailureEvent):
                await self._on_auth_failure(event)
            else:
                self.logger.warning("connection.unknown_event", {
                    "generation": self.generation,
                    "event": type(event).__name__
                })
        except Exception as e:
            self.logger.error("connection.event_handling_failed", {
                "generation": self.generation,
                "event": type(event).__name__,
                "error": str(e)
            }, exc_info=True)

    async def _on_qr(self, event: QrEvent) -> None:
        self._transition(ConnectionStatus.CONNECTING, "qr_issued")
        try:
            render_qr_ascii(event.code, self.qr_output)
        except (OSError, ValueError) as e:
            self.logger.warning("connection.qr_render_failed", {"error": str(e)})

        await self._publish({
            "status": ConnectionStatus.CONNECTING.value,
            "qr_code": build_qr_data_url(event.code),
            "last_error": None,
        })
        self.logger.info("connection.qr_issued", {"generation": self.generation})

    async def _on_creds_update(self, event: CredsUpdateEvent) -> None:
        # A terminal socket must not re-upload cleared credentials
        if self.is_terminal:
            self.logger.debug("connection.creds_update_after_disconnect_ignored", {
                "generation": self.generation
            })
            return
        await self.credential_store.write_local(event.files)
        report = await self.credential_store.sync()
        self.logger.debug("connection.creds_synced", {
            "generation": self.generation,
            **report.to_dict()
        })

    async def _on_open(self, event: OpenEvent) -> None:
        self.connected_number = canonical_number(event.identity)
        self.last_error = None
        self._transition(ConnectionStatus.CONNECTED, "open")
        await self._publish({
            "status": ConnectionStatus.CONNECTED.value,
            "connected_number": self.connected_number,
            "last_connected_at": utc_now_iso(),
            "qr_code": None,
            "last_error": None,
        })

    async def _on_close(self, event: CloseEvent) -> None:
        self.last_error = classify_close_reason(event.reason)
        self._transition(ConnectionStatus.DISCONNECTED, self.last_error)
        await self._publish({
            "status": ConnectionStatus.DISCONNECTED.value,
            "qr_code": None,
            "last_error": self.last_error,
        })

    async def _on_connection_lost(self, event: ConnectionLostEvent) -> None:
        self.last_error = CONNECTION_LOST_MESSAGE
        self.logger.warning("connection.link_lost", {
            "generation": self.generation,
            "status": self.status.value,
            "reason": event.reason
        })
        await self._publish({"last_error": self.last_error})

    async def _on_auth_failure(self, event: AuthFailureEvent) -> None:
        self.last_error = str(event.message)
        self._transition(ConnectionStatus.DISCONNECTED, "auth_failure")
        await self._publish({
            "status": ConnectionStatus.DISCONNECTED.value,
            "qr_code": None,
            "last_error": self.last_error,
        })
