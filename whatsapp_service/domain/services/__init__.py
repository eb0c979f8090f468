from .credential_store import CredentialStoreBridge, TransferReport
from .status_publisher import StatusPublisher
from .connection_state_machine import ConnectionStateMachine, canonical_number

__all__ = [
    'CredentialStoreBridge',
    'TransferReport',
    'StatusPublisher',
    'ConnectionStateMachine',
    'canonical_number',
]
