"""Domain exceptions raised by services and translated by routes."""


class PushupPalError(Exception):
    """Base class for application errors."""


class InvalidLogError(PushupPalError):
    """Raised when a pushup log would violate ``count > 0``."""


class LogNotFoundError(PushupPalError):
    """Raised when a log does not exist or belongs to another user."""

    def __init__(self, log_id: int):
        self.log_id = log_id
        super().__init__(f"Log {log_id} not found")


class RemoteStoreError(PushupPalError):
    """Raised when the remote badge/prestige store cannot be read or written.

    Wraps the underlying driver exception as ``__cause__``.
    """

    def __init__(self, operation: str, user_id: str):
        self.operation = operation
        self.user_id = user_id
        super().__init__(f"Remote store {operation} failed for user {user_id}")
