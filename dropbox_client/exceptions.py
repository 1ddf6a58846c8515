"""
Exception hierarchy for the Dropbox client.

Every error raised on purpose by this package derives from DropboxClientError,
so callers can catch the whole family with one clause.
"""

from typing import Optional


class DropboxClientError(Exception):
    """Base exception for Dropbox client errors."""
    pass


class AuthenticationError(DropboxClientError):
    """Raised when no usable credentials are available."""
    pass


class AuthInfoLoadError(DropboxClientError):
    """Raised when an auth-info file can't be loaded."""
    pass


class LocalFileNotFoundError(DropboxClientError):
    """Raised when the local source file doesn't exist."""
    pass


class UploadError(DropboxClientError):
    """Raised when a local file upload can't be carried out."""
    pass


class TransientNetworkError(DropboxClientError):
    """Raised on connection failures and timeouts. Safe to retry."""
    pass


class SizeMismatchError(DropboxClientError, ValueError):
    """Raised when the declared byte count doesn't match the stream."""

    def __init__(self, expected: int, actual: int, at_least: bool = False):
        qualifier = "at least " if at_least else ""
        super().__init__(
            f"You passed num_bytes={expected} but the stream had {qualifier}{actual} bytes."
        )
        self.expected = expected
        self.actual = actual


class BadResponseError(DropboxClientError):
    """The server answered, but not in a way we can accept."""
    pass


class ProtocolError(BadResponseError):
    """The server's response contradicts itself or the upload protocol."""
    pass


class SessionLostError(BadResponseError):
    """The server no longer recognizes a chunked upload session."""
    pass


class UnexpectedStatusError(BadResponseError):
    """An HTTP status the called operation doesn't know how to handle."""

    def __init__(self, message: str, status_code: int, body: Optional[bytes] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class InvalidAccessTokenError(UnexpectedStatusError):
    """HTTP 401: the access token was rejected."""
    pass


class ServerError(UnexpectedStatusError):
    """HTTP 5xx."""
    pass


class RetryLaterError(ServerError):
    """HTTP 503 or 429: the server asked us to back off."""
    pass
