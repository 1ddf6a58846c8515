"""
Client configuration.
"""

import os
from typing import Mapping, Optional

from .auth import AppInfo

# Constants
DEFAULT_CHUNK_SIZE = 4 * 1024 * 1024  # 4 MB chunks for chunked uploads
DEFAULT_MAX_RETRIES = 3
# Uploads with a known size at or below this go through a single files_put request
CHUNKED_UPLOAD_THRESHOLD = 9863168


class Config:
    """
    Settings shared by every call a DropboxClient makes.

    Args:
        app_info: App key/secret, access type and hosts.
        client_identifier: Sent in the User-Agent, e.g. "report-bot/1.0".
        user_locale: Optional locale for server-generated text (e.g. "en").
        timeout: Per-request timeout in seconds; None waits forever.
        max_retries: Retries after the first attempt for each chunked upload
            request that fails with a network error.
        chunk_size: Bytes per chunk for chunked uploads.
        chunked_upload_threshold: Known-size uploads above this are chunked.
    """

    def __init__(
        self,
        app_info: AppInfo,
        client_identifier: str,
        user_locale: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunked_upload_threshold: int = CHUNKED_UPLOAD_THRESHOLD,
    ):
        if not client_identifier:
            raise ValueError("'client_identifier' must be a non-empty string")
        if not isinstance(max_retries, int) or max_retries < 0:
            raise ValueError(f"'max_retries' must be a non-negative int, got {max_retries!r}")
        if not isinstance(chunk_size, int) or chunk_size <= 0:
            raise ValueError(f"'chunk_size' must be a positive int, got {chunk_size!r}")

        self.app_info = app_info
        self.client_identifier = client_identifier
        self.user_locale = user_locale
        self.timeout = timeout
        self.max_retries = max_retries
        self.chunk_size = chunk_size
        self.chunked_upload_threshold = chunked_upload_threshold

    @classmethod
    def from_env(
        cls,
        app_info: AppInfo,
        client_identifier: str,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Config":
        """
        Build a Config, taking tunables from the environment when present.

        Reads DROPBOX_CHUNK_SIZE, DROPBOX_MAX_RETRIES, DROPBOX_TIMEOUT and
        DROPBOX_LOCALE.
        """
        env = os.environ if environ is None else environ

        timeout = env.get("DROPBOX_TIMEOUT")
        return cls(
            app_info,
            client_identifier,
            user_locale=env.get("DROPBOX_LOCALE") or None,
            timeout=float(timeout) if timeout else None,
            max_retries=_int_from_env(env, "DROPBOX_MAX_RETRIES", DEFAULT_MAX_RETRIES),
            chunk_size=_int_from_env(env, "DROPBOX_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
        )


def _int_from_env(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None
