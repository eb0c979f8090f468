"""
Transport Events
================
Tagged union of lifecycle events a transport socket emits. Every transport
adapter translates its library callbacks into these, and the connection
state machine consumes them through a single ``handle(event)`` entry point.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Union


@dataclass(frozen=True)
class QrEvent:
    """A new pairing code must be shown to the operator."""
    code: str


@dataclass(frozen=True)
class OpenEvent:
    """Transport confirmed an authenticated connection."""
    identity: str  # JID of the linked account, e.g. "15551234567:12@s.whatsapp.net"


@dataclass(frozen=True)
class CloseEvent:
    """Transport connection closed. ``reason`` is a library code or token."""
    reason: Any


@dataclass(frozen=True)
class ConnectionLostEvent:
    """Link dropped while the transport reconnects on its own. Not terminal."""
    reason: str = ""


@dataclass(frozen=True)
class AuthFailureEvent:
    """Stored credentials were rejected."""
    message: str


@dataclass(frozen=True)
class CredsUpdateEvent:
    """
    Credentials rotated.

    ``files`` maps credential file names to their new contents. It is empty
    when the transport library already wrote its files to the credential
    folder itself.
    """
    files: Dict[str, bytes] = field(default_factory=dict)


TransportEvent = Union[
    QrEvent, OpenEvent, CloseEvent, ConnectionLostEvent, AuthFailureEvent, CredsUpdateEvent
]
