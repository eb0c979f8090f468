"""
Session Controller
==================
Single entry point for session commands and outgoing messages.

Owns the one transport socket and the generation counter:

- every ``start()`` bumps the generation and binds a fresh state machine to it
- transport callbacks carry the generation they were created with; callbacks
  from a superseded generation are dropped before they reach the state machine
- the status publisher drops writes tagged with a superseded generation

Control commands run under one lock, so the previous socket is fully torn
down before its replacement is constructed.
"""

import asyncio
import re
from enum import Enum
from typing import Optional, TextIO

from ...core.exceptions import (
    InvalidControlActionError,
    MessageSendError,
    NotConnectedError,
    TransportStartError,
)
from ...core.logger import StructuredLogger, get_logger
from ...domain.interfaces.transport import ITransport, TransportFactory
from ...domain.models.connection_status import (
    ConnectionStatus,
    FAILED_TO_START_MESSAGE,
    LOGGED_OUT_MESSAGE,
)
from ...domain.models.transport_events import TransportEvent
from ...domain.services.connection_state_machine import ConnectionStateMachine
from ...domain.services.credential_store import CredentialStoreBridge
from ...domain.services.status_publisher import StatusPublisher


USER_SERVER = "s.whatsapp.net"
LEGACY_USER_SERVER = "c.us"
_RECIPIENT_NOISE = re.compile(r"[\s+\-().]")


class ControlAction(str, Enum):
    """Commands accepted by ``SessionController.control``."""
    RESTART = "restart"
    LOGOUT = "logout"
    CLEAR_SESSION = "clear_session"


def normalize_recipient(recipient: str) -> str:
    """
    Convert a phone number or JID into a user JID.

    "+1 (555) 123-4567"  -> "15551234567@s.whatsapp.net"
    "15551234567@c.us"   -> "15551234567@s.whatsapp.net"
    "120363@g.us"        -> "120363@g.us"
    """
    value = str(recipient or "").strip()
    if "@" in value:
        user, server = value.split("@", 1)
        if server == LEGACY_USER_SERVER:
            server = USER_SERVER
        user = _RECIPIENT_NOISE.sub("", user)
    else:
        user, server = _RECIPIENT_NOISE.sub("", value), USER_SERVER

    if not user:
        raise ValueError(f"Invalid recipient: {recipient!r}")
    return f"{user}@{server}"


class SessionController:
    """Owns the transport socket lifecycle for the single WhatsApp session."""

    def __init__(
        self,
        credential_store: CredentialStoreBridge,
        publisher: StatusPublisher,
        transport_factory: TransportFactory,
        logger: Optional[StructuredLogger] = None,
        qr_output: Optional[TextIO] = None
    ):
        self.credential_store = credential_store
        self.publisher = publisher
        self.transport_factory = transport_factory
        self.logger = logger or get_logger(__name__)
        self.qr_output = qr_output

        self._generation = 0
        self._socket: Optional[ITransport] = None
        self._machine: Optional[ConnectionStateMachine] = None
        self._control_lock = asyncio.Lock()

        self.publisher.bind_generation_source(lambda: self._generation)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def has_socket(self) -> bool:
        return self._socket is not None

    @property
    def is_connected(self) -> bool:
        return self._socket is not None and self._machine is not None and self._machine.is_connected

    @property
    def status(self) -> ConnectionStatus:
        if self._machine is None:
            return ConnectionStatus.DISCONNECTED
        return self._machine.status

    # Lifecycle

    async def start(self) -> bool:
        """Restore credentials and bring up a new socket. Never raises for a transport failure."""
        async with self._control_lock:
            return await self._start_locked()

    async def shutdown(self) -> None:
        """Tear down the socket on process exit and push the final credentials remotely."""
        async with self._control_lock:
            await self._terminate_locked(persist=True)
        self.logger.info("session_controller.shutdown_complete", {"generation": self._generation})

    async def _start_locked(self) -> bool:
        if self._socket is not None:
            await self._terminate_locked(persist=True)

        self._generation += 1
        generation = self._generation
        machine = ConnectionStateMachine(
            generation,
            self.publisher,
            self.credential_store,
            qr_output=self.qr_output
        )
        self._machine = machine

        async def on_event(event: TransportEvent) -> None:
            if generation != self._generation:
                self.logger.debug("session_controller.stale_event_dropped", {
                    "event_generation": generation,
                    "current_generation": self._generation,
                    "event": type(event).__name__
                })
                return
            await machine.handle(event)

        await self.publisher.publish({
            "status": ConnectionStatus.CONNECTING.value,
            "qr_code": None,
            "last_error": None,
        }, generation=generation)

        try:
            await self.credential_store.load()
            socket = await self._open_socket(on_event, generation)
        except (OSError, TransportStartError) as e:
            self.logger.error("session_controller.start_failed", {
                "generation": generation,
                "error": str(e),
                "error_type": type(e).__name__
            }, exc_info=True)
            machine.mark_stopped("start_failed")
            await self.publisher.publish({
                "status": ConnectionStatus.DISCONNECTED.value,
                "qr_code": None,
                "last_error": FAILED_TO_START_MESSAGE,
            }, generation=generation)
            return False

        self._socket = socket
        self.logger.info("session_controller.started", {
            "generation": generation,
            "has_local_credentials": self.credential_store.has_local_credentials()
        })
        return True

    async def _open_socket(self, on_event, generation: int) -> ITransport:
        socket: Optional[ITransport] = None
        try:
            socket = self.transport_factory(self.credential_store.local_dir, on_event)
            await socket.start()
        except Exception as e:
            if socket is not None:
                await self._stop_socket(socket, generation)
            raise TransportStartError(str(e) or type(e).__name__) from e
        return socket

    async def _stop_socket(self, socket: ITransport, generation: int) -> None:
        try:
            await socket.stop()
        except Exception as e:
            self.logger.warning("session_controller.socket_stop_failed", {
                "generation": generation,
                "error": str(e)
            })

    async def _terminate_locked(self, persist: bool = False) -> None:
        """
        Stop the active socket.

        With ``persist``, credential files the socket wrote since its last
        rotation are uploaded once it has stopped. Sessions that ended in a
        logout are never uploaded.
        """
        socket, self._socket = self._socket, None
        machine = self._machine
        logged_out = machine is not None and machine.last_error == LOGGED_OUT_MESSAGE
        if machine is not None:
            machine.mark_stopped("socket_terminated")
        if socket is None:
            return
        await self._stop_socket(socket, self._generation)
        self.logger.info("session_controller.socket_terminated", {"generation": self._generation})

        if persist and not logged_out and self.credential_store.has_local_credentials():
            report = await self.credential_store.sync()
            self.logger.info("session_controller.credentials_persisted", {
                "generation": self._generation,
                **report.to_dict()
            })

    async def _logout_locked(self) -> None:
        socket = self._socket
        if socket is not None:
            try:
                await socket.logout()
            except Exception as e:
                self.logger.warning("session_controller.logout_failed", {
                    "generation": self._generation,
                    "error": str(e)
                })
        await self._terminate_locked()
        await self.publisher.publish({
            "status": ConnectionStatus.DISCONNECTED.value,
            "qr_code": None,
            "last_error": LOGGED_OUT_MESSAGE,
        }, generation=self._generation)
        await self.credential_store.clear()

    # Commands

    async def control(self, action: str) -> None:
        """
        Run a control command.

        - restart: terminate the current socket, upload its credentials, start a new one
        - logout: unlink the device and delete credentials; no restart
        - clear_session: logout, delete local and remote credentials, start fresh pairing

        Raises:
            InvalidControlActionError: unknown action (nothing is touched)
        """
        try:
            parsed = ControlAction(action)
        except ValueError:
            raise InvalidControlActionError(action)

        async with self._control_lock:
            self.logger.info("session_controller.control", {
                "action": parsed.value,
                "generation": self._generation
            })
            if parsed is ControlAction.RESTART:
                await self._terminate_locked(persist=True)
                await self._start_locked()
            elif parsed is ControlAction.LOGOUT:
                await self._logout_locked()
            elif parsed is ControlAction.CLEAR_SESSION:
                await self._logout_locked()
                await self._start_locked()

    async def send_message(self, recipient: str, text: str) -> None:
        """
        Send one text message through the active socket.

        Raises:
            NotConnectedError: no socket, or the socket is not authenticated
            MessageSendError: the transport failed; ``last_error`` is published
        """
        socket, machine = self._socket, self._machine
        if socket is None or machine is None or not machine.is_connected:
            raise NotConnectedError()

        jid = normalize_recipient(recipient)
        try:
            await socket.send_text(jid, text)
        except Exception as e:
            reason = str(e) or type(e).__name__
            self.logger.error("session_controller.send_failed", {
                "recipient": jid,
                "error": reason
            })
            await self.publisher.publish({"last_error": reason}, generation=machine.generation)
            raise MessageSendError(jid, reason) from e

        self.logger.info("session_controller.message_sent", {"recipient": jid})
