from .connection_status import (
    ConnectionStatus,
    ConnectionSnapshot,
    classify_close_reason,
    utc_now_iso,
    LOGGED_OUT_MESSAGE,
    FAILED_TO_START_MESSAGE,
    CONNECTION_LOST_MESSAGE,
)
from .transport_events import (
    QrEvent,
    OpenEvent,
    CloseEvent,
    ConnectionLostEvent,
    AuthFailureEvent,
    CredsUpdateEvent,
    TransportEvent,
)

__all__ = [
    'ConnectionStatus',
    'ConnectionSnapshot',
    'classify_close_reason',
    'utc_now_iso',
    'LOGGED_OUT_MESSAGE',
    'FAILED_TO_START_MESSAGE',
    'CONNECTION_LOST_MESSAGE',
    'QrEvent',
    'OpenEvent',
    'CloseEvent',
    'ConnectionLostEvent',
    'AuthFailureEvent',
    'CredsUpdateEvent',
    'TransportEvent',
]
