"""
Core module for the WhatsApp session service
"""

from .exceptions import (
    WhatsAppServiceError,
    NotConnectedError,
    MessageSendError,
    InvalidControlActionError,
    TransportStartError,
    StoreError,
)
from .logger import StructuredLogger, get_logger

__all__ = [
    'WhatsAppServiceError',
    'NotConnectedError',
    'MessageSendError',
    'InvalidControlActionError',
    'TransportStartError',
    'StoreError',
    'StructuredLogger',
    'get_logger',
]
