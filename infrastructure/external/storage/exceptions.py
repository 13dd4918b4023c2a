"""Storage service exceptions."""
from typing import Optional


class StorageError(Exception):
    """Base storage exception."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(StorageError):
    """File or directory not found in storage."""
    pass


class PermissionDeniedError(StorageError):
    """Credentials rejected by the backend."""
    pass


class TransientError(StorageError):
    """Transient error (network, rate limit, server error)."""
    pass


class ConfigurationError(StorageError):
    """Storage configuration error."""
    pass


class ResponseParseError(StorageError):
    """Backend answered with a body that could not be parsed."""
    pass
