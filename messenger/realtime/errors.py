class DeliveryError(Exception):
    """Base error for realtime intents; the message is safe to show to the client."""

    def __init__(self, message: str, operation: str = "unknown"):
        super().__init__(message)
        self.message = message
        self.operation = operation


class ValidationFailure(DeliveryError):
    """Malformed or disallowed intent; nothing was persisted."""


class PersistenceFailure(DeliveryError):
    """The store rejected or could not complete the write; nothing was pushed."""
