"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class PlexSyncError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(PlexSyncError):
    """Raised for issues related to configuration loading or validation."""


class TreeParseError(PlexSyncError):
    """Raised when a message body is not a valid folder tree description."""


class FetchError(PlexSyncError):
    """Raised when a remote object cannot be transferred to its local path."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Failed to download file: {key} ({reason})")
        self.key = key
        self.reason = reason


class BlobNotFoundError(FetchError):
    """Raised when the remote object does not exist in the container."""

    def __init__(self, key: str):
        super().__init__(key, "blob does not exist")


class FileIntegrityError(FetchError):
    """Raised when a downloaded file does not match its declared size."""


class TransportError(PlexSyncError):
    """Raised when the message queue or an outcome channel rejects a request."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status
