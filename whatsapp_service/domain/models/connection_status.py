"""
Connection Status Models
========================

Shape of the single status row observed by the backend and the control panel.

State Machine (per socket generation):

    [CONNECTING] ──open──► [CONNECTED]
        │  ▲                   │
        │  └──qr (re-enter)    │
        │                      ▼
        └──close/auth fail──► [DISCONNECTED]  (terminal for that socket)
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ConnectionStatus(str, Enum):
    """Externally observable connection states."""
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


# Status row columns a publisher may write
SNAPSHOT_FIELDS = (
    "status",
    "qr_code",
    "connected_number",
    "last_connected_at",
    "last_error",
    "heartbeat_at",
    "updated_at",
)

LOGGED_OUT_MESSAGE = "Logged out"
FAILED_TO_START_MESSAGE = "failed to start"
CONNECTION_LOST_MESSAGE = "Connection lost"

# Close reasons that mean the device was unlinked (numeric code or library token)
LOGGED_OUT_REASONS = frozenset({"401", "logout", "logged_out", "loggedout"})


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def classify_close_reason(reason: Any) -> str:
    """
    Map a transport close reason to the ``last_error`` text.

    Returns "Logged out" for an explicit unlink, otherwise
    "Connection closed (<reason>)".
    """
    token = str(reason).strip()
    if token.lower() in LOGGED_OUT_REASONS:
        return LOGGED_OUT_MESSAGE
    return f"Connection closed ({token})"


@dataclass
class ConnectionSnapshot:
    """Full status row. The publisher writes partial updates of these fields."""
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    qr_code: Optional[str] = None
    connected_number: Optional[str] = None
    last_connected_at: Optional[str] = None
    last_error: Optional[str] = None
    heartbeat_at: Optional[str] = None
    updated_at: Optional[str] = field(default=None)

    @classmethod
    def from_row(cls, row: Optional[Dict[str, Any]]) -> "ConnectionSnapshot":
        row = row or {}
        raw_status = row.get("status") or ConnectionStatus.DISCONNECTED.value
        try:
            status = ConnectionStatus(raw_status)
        except ValueError:
            status = ConnectionStatus.DISCONNECTED
        return cls(
            status=status,
            **{k: row.get(k) for k in SNAPSHOT_FIELDS if k != "status"}
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data
