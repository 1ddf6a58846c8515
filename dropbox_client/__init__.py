"""
Dropbox API Client Package

A client for the Dropbox HTTP API: account info, downloads, uploads
(single-request and chunked, with retries and offset reconciliation) and
file operations.

Usage:
    from dropbox_client import AppInfo, AccessToken, Config, DropboxClient, WriteMode

    config = Config(AppInfo(key, secret), "my-app/1.0")
    with DropboxClient(config, AccessToken.parse(token)) as client:
        with open("backup.tar", "rb") as f:
            client.upload_file("/Backups/backup.tar", WriteMode.add(), f)

    # Local files, credentials from the environment
    from dropbox_client import upload_file
    upload_file("my_report_2024-01-15_14-30.md", dropbox_folder="/Reports")

    # From command line
    python -m dropbox_client upload my_file.md --folder /Reports
"""

__version__ = "1.0.0"

from .auth import AccessToken, AppInfo, auth_info_from_env, load_auth_info
from .byte_source import ByteSource, StreamByteSource
from .chunked import ChunkedUploadCoordinator, UploadState
from .client import DropboxClient
from .config import Config
from .exceptions import (
    AuthenticationError,
    AuthInfoLoadError,
    BadResponseError,
    DropboxClientError,
    InvalidAccessTokenError,
    LocalFileNotFoundError,
    ProtocolError,
    RetryLaterError,
    ServerError,
    SessionLostError,
    SizeMismatchError,
    TransientNetworkError,
    UnexpectedStatusError,
    UploadError,
)
from .log import configure_logging, logger
from .retry import RetryPolicy, run_with_retry
from .session import AppendOutcome, AppendStatus, ChunkedUploadTransport
from .uploader import DropboxUploader, upload_file
from .write_mode import WriteMode

__all__ = [
    "AccessToken",
    "AppInfo",
    "AppendOutcome",
    "AppendStatus",
    "AuthInfoLoadError",
    "AuthenticationError",
    "BadResponseError",
    "ByteSource",
    "ChunkedUploadCoordinator",
    "ChunkedUploadTransport",
    "Config",
    "DropboxClient",
    "DropboxClientError",
    "DropboxUploader",
    "InvalidAccessTokenError",
    "LocalFileNotFoundError",
    "ProtocolError",
    "RetryLaterError",
    "RetryPolicy",
    "ServerError",
    "SessionLostError",
    "SizeMismatchError",
    "StreamByteSource",
    "TransientNetworkError",
    "UnexpectedStatusError",
    "UploadError",
    "UploadState",
    "WriteMode",
    "auth_info_from_env",
    "configure_logging",
    "load_auth_info",
    "logger",
    "run_with_retry",
    "upload_file",
]
