"""
Dropbox File Uploader

Uploads local files with a DropboxClient, picking credentials up from the
environment. Designed for both CLI usage and CI environments.
"""

import logging
from typing import Any, Dict, Optional

from . import paths
from .auth import auth_info_from_env
from .chunked import UploadState
from .client import DropboxClient
from .config import Config
from .exceptions import (
    AuthenticationError,
    InvalidAccessTokenError,
    LocalFileNotFoundError,
    UploadError,
)
from .write_mode import WriteMode

logger = logging.getLogger(__name__)

CLIENT_IDENTIFIER = "dropbox-client-uploader/1.0"


def format_size(num_bytes: int) -> str:
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"


class DropboxUploader:
    """
    Uploads local files to Dropbox, using chunked uploads for large files.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        chunk_size: Optional[int] = None,
        client: Optional[DropboxClient] = None,
    ):
        """
        Initialize the Dropbox uploader.

        Credentials come from, in order:
          - explicit access_token argument (e.g. from CLI --token)
          - DROPBOX_AUTH_FILE (JSON auth file)
          - DROPBOX_ACCESS_TOKEN (+ DROPBOX_APP_KEY / DROPBOX_APP_SECRET
            for OAuth 1 tokens)

        Args:
            access_token: Explicit token, overriding the environment.
            chunk_size: Bytes per chunk for chunked uploads.
            client: Ready-made client to use instead of building one.
        """
        self._explicit_access_token = access_token
        self._chunk_size = chunk_size
        self._client = client
        self._verified = False

    @property
    def client(self) -> DropboxClient:
        """Lazy initialization of the Dropbox client."""
        if self._client is None:
            app_info, token = auth_info_from_env(access_token=self._explicit_access_token)
            config = Config.from_env(app_info, CLIENT_IDENTIFIER)
            if self._chunk_size:
                config.chunk_size = self._chunk_size
            self._client = DropboxClient(config, token)

        if not self._verified:
            self._verify_connection()
            self._verified = True

        return self._client

    def _verify_connection(self) -> None:
        """Verify the connection and token validity."""
        try:
            account = self._client.get_account_info()
        except InvalidAccessTokenError as e:
            raise AuthenticationError(f"Invalid Dropbox credentials: {e}") from e
        logger.info("✓ Connected as: %s", account.get("display_name", "<unknown>"))

    def upload(
        self,
        local_path: str,
        dropbox_folder: str = "/",
        filename: Optional[str] = None,
        overwrite: bool = True,
    ) -> Dict[str, Any]:
        """
        Upload a file to Dropbox.

        Args:
            local_path: Path to the local file to upload.
            dropbox_folder: Destination folder in Dropbox (default: root).
            filename: Custom filename in Dropbox (default: use original filename).
            overwrite: Whether to overwrite existing files (default: True).

        Returns:
            Metadata of the uploaded file; its "path" is where it ended up.

        Raises:
            LocalFileNotFoundError: If the local file doesn't exist.
            UploadError: If the destination path isn't usable.
            DropboxClientError: If the upload itself fails.
        """
        file_path = paths.resolve_local_path(local_path)

        if not file_path.exists():
            raise LocalFileNotFoundError(f"File not found: {file_path}")
        if not file_path.is_file():
            raise LocalFileNotFoundError(f"Path is not a file: {file_path}")

        dest_filename = filename or file_path.name
        dropbox_path = paths.join(dropbox_folder, dest_filename)
        error = paths.find_error(dropbox_path)
        if error is not None or dropbox_path == "/":
            raise UploadError(f"Bad destination path {dropbox_path!r}: {error or 'is the root'}")

        file_size = file_path.stat().st_size
        logger.info("→ Uploading: %s (%s)", file_path.name, format_size(file_size))
        logger.info("→ Destination: %s", dropbox_path)

        def on_progress(state: UploadState, offset: int) -> None:
            if state is UploadState.UPLOADING and file_size:
                logger.info("  %.0f%% uploaded...", offset / file_size * 100)

        client = self.client
        metadata = client.upload_file(
            dropbox_path,
            WriteMode.from_overwrite(overwrite),
            open(file_path, "rb"),
            num_bytes=file_size,
            on_progress=on_progress,
        )

        logger.info("✓ Upload complete: %s", metadata.get("path", dropbox_path))
        return metadata

    def close(self) -> None:
        """Close the Dropbox client connection."""
        if self._client is not None:
            self._client.close()
            self._client = None
            self._verified = False
            logger.debug("Dropbox client closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def upload_file(
    local_path: str,
    dropbox_folder: str = "/",
    access_token: Optional[str] = None,
    filename: Optional[str] = None,
    overwrite: bool = True,
) -> Dict[str, Any]:
    """
    Convenience function to upload a file to Dropbox.

    Args:
        local_path: Path to the local file to upload.
        dropbox_folder: Destination folder in Dropbox (default: root).
        access_token: Dropbox access token (default: from environment).
        filename: Custom filename (default: use original).
        overwrite: Whether to overwrite existing files (default: True).

    Returns:
        Metadata of the uploaded file.
    """
    with DropboxUploader(access_token) as uploader:
        return uploader.upload(local_path, dropbox_folder, filename, overwrite)
