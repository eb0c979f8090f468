"""
Core Exceptions - WhatsApp Session Service
==========================================
Centralized exception definitions for the session service.
"""


class WhatsAppServiceError(Exception):
    """Base exception for session service operations."""
    pass


class NotConnectedError(WhatsAppServiceError):
    """
    Raised when a message is sent while no authenticated socket exists.

    HTTP Status: 503 Service Unavailable
    """
    def __init__(self, message: str = None):
        self.message = message or "WhatsApp client is not connected."
        super().__init__(self.message)


class MessageSendError(WhatsAppServiceError):
    """
    Raised when the transport rejects or fails an outgoing message.

    HTTP Status: 500 Internal Server Error
    """
    def __init__(self, recipient: str, reason: str):
        self.recipient = recipient
        self.reason = reason
        self.message = f"Failed to send message to {recipient}: {reason}"
        super().__init__(self.message)


class InvalidControlActionError(WhatsAppServiceError):
    """
    Raised for a control action outside restart / logout / clear_session.

    HTTP Status: 400 Bad Request
    """
    def __init__(self, action):
        self.action = action
        self.message = f"Invalid action: {action!r}"
        super().__init__(self.message)


class TransportStartError(WhatsAppServiceError):
    """Raised when constructing or starting a transport socket fails."""
    def __init__(self, reason: str):
        self.reason = reason
        self.message = f"Transport failed to start: {reason}"
        super().__init__(self.message)


class StoreError(WhatsAppServiceError):
    """
    Raised by storage adapters when a remote call fails.

    Callers in the session core catch it and continue best-effort.
    """
    def __init__(self, operation: str, key: str = None, reason: str = ""):
        self.operation = operation
        self.key = key
        self.reason = reason
        target = f" {key}" if key else ""
        self.message = f"Store {operation}{target} failed: {reason}"
        super().__init__(self.message)
