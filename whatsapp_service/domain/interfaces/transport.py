"""
Transport Interface - Port for the messaging-protocol client
===========================================================
A transport socket is one live connection to WhatsApp. It reads and writes
its credential files inside ``credentials_dir`` and reports lifecycle changes
by awaiting ``on_event`` with a ``TransportEvent``.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Awaitable, Callable

from ..models.transport_events import TransportEvent

EventCallback = Callable[[TransportEvent], Awaitable[None]]


class ITransport(ABC):
    """Interface for transport sockets. Only the Session Controller holds one."""

    def __init__(self, credentials_dir: Path, on_event: EventCallback):
        self.credentials_dir = Path(credentials_dir)
        self.on_event = on_event

    @abstractmethod
    async def start(self) -> None:
        """Open the connection. Returns once the connect attempt is under way."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Tear the connection down and release library resources."""
        pass

    @abstractmethod
    async def logout(self) -> None:
        """Unlink this device from the account."""
        pass

    @abstractmethod
    async def send_text(self, jid: str, text: str) -> None:
        pass


TransportFactory = Callable[[Path, EventCallback], ITransport]
