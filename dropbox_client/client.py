"""
DropboxClient: the object you make API calls with.
"""

import json
import logging
from typing import Any, BinaryIO, Dict, Optional

from . import paths
from .auth import AccessToken
from .byte_source import StreamByteSource
from .chunked import ChunkedUploadCoordinator, ProgressCallback
from .config import Config
from .exceptions import ProtocolError, SizeMismatchError
from .session import AppendOutcome, ChunkedUploadTransport
from .transport import RequestExecutor, parse_json, unexpected_status
from .write_mode import WriteMode

logger = logging.getLogger(__name__)


def _check_nat_or_none(arg_name: str, value) -> None:
    if value is None:
        return
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValueError(f"'{arg_name}' must be a non-negative int or None, got {value!r}")


def _check_non_empty_str(arg_name: str, value) -> None:
    if not isinstance(value, str) or not value:
        raise ValueError(f"'{arg_name}' must be a non-empty string, got {value!r}")


class DropboxClient:
    """
    Makes Dropbox API calls on behalf of one user.

    Args:
        config: Client configuration (app info, hosts, retry and chunk settings).
        access_token: The user's access token.
        executor: Optional RequestExecutor to use instead of building one.

    Most calls map to one request. The exception is uploading, which for
    large or unsized inputs becomes a chunked upload session with retries.
    """

    def __init__(
        self,
        config: Config,
        access_token: AccessToken,
        executor: Optional[RequestExecutor] = None,
    ):
        self.config = config
        self.access_token = access_token
        self.executor = executor or RequestExecutor(config, access_token)

        self.api_host = config.app_info.api_host
        self.content_host = config.app_info.content_host
        self.root = config.app_info.root

        self.chunked_transport = ChunkedUploadTransport(
            self.executor, self.content_host, self.root
        )

    def _file_path(self, base: str, path: str) -> str:
        return paths.api_file_path(base, self.root, path)

    def _coordinator(self, chunk_size: Optional[int] = None) -> ChunkedUploadCoordinator:
        return ChunkedUploadCoordinator(
            self.chunked_transport,
            max_retries=self.config.max_retries,
            chunk_size=chunk_size or self.config.chunk_size,
        )

    # --- Account ---

    def get_account_info(self) -> Dict[str, Any]:
        """Basic account and quota information."""
        response = self.executor.get(self.api_host, "1/account/info")
        if response.status_code != 200:
            raise unexpected_status(response)
        return parse_json(response.body)

    # --- Downloads ---

    def get_file(
        self, path: str, out_stream: BinaryIO, rev: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Download the file at `path` into `out_stream`.

        Args:
            path: The file's Dropbox path.
            out_stream: Writable binary stream for the file contents.
            rev: A specific revision to fetch; None for the latest.

        Returns:
            The file's metadata, or None if there's no file at `path`.
        """
        paths.check_arg_non_root("path", path)
        if rev is not None:
            _check_non_empty_str("rev", rev)

        response = self.executor.get_to_stream(
            self.content_host, self._file_path("1/files", path), {"rev": rev}, out_stream
        )

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise unexpected_status(response)

        header = response.headers.get("x-dropbox-metadata")
        if header is None:
            raise ProtocolError("Missing x-dropbox-metadata header in file download")
        try:
            metadata = json.loads(header)
        except ValueError as e:
            raise ProtocolError(f"Bad JSON in x-dropbox-metadata header: {e}") from e
        return metadata

    # --- Uploads ---

    def upload_file(
        self,
        path: str,
        write_mode: WriteMode,
        in_stream: BinaryIO,
        num_bytes: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """
        Create a file on Dropbox from everything in `in_stream`.

        If `num_bytes` is None or large, this does a chunked upload;
        otherwise a single request. The stream is closed either way.

        Args:
            path: Destination Dropbox path.
            write_mode: What to do if a file already exists there.
            in_stream: Binary stream to upload.
            num_bytes: Stream length if known.
            on_progress: Progress callback for chunked uploads.

        Returns:
            Metadata of the new file.
        """
        try:
            paths.check_arg_non_root("path", path)
            WriteMode.check_arg("write_mode", write_mode)
            _check_nat_or_none("num_bytes", num_bytes)

            if num_bytes is None or num_bytes > self.config.chunked_upload_threshold:
                logger.debug("Uploading to %s with a chunked upload (num_bytes=%s)", path, num_bytes)
                return self._coordinator().upload(
                    path, write_mode, in_stream, num_bytes, on_progress
                )

            # One extra byte tells us whether the stream is longer than declared
            data, _ = StreamByteSource(in_stream).read_chunk(num_bytes + 1)
            if len(data) != num_bytes:
                raise SizeMismatchError(num_bytes, len(data), at_least=len(data) > num_bytes)
            return self._files_put(path, write_mode, data)
        finally:
            in_stream.close()

    def upload_file_from_string(
        self, path: str, write_mode: WriteMode, data: bytes
    ) -> Dict[str, Any]:
        """Create a file on Dropbox with `data` as its contents."""
        paths.check_arg_non_root("path", path)
        WriteMode.check_arg("write_mode", write_mode)
        if isinstance(data, str):
            data = data.encode("utf-8")
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError(f"'data' must be bytes or str, got {type(data).__name__}")

        return self._files_put(path, write_mode, bytes(data))

    def _files_put(self, path: str, write_mode: WriteMode, data: bytes) -> Dict[str, Any]:
        response = self.executor.put(
            self.content_host,
            self._file_path("1/files_put", path),
            write_mode.extra_params(),
            body=data,
        )
        if response.status_code != 200:
            raise unexpected_status(response)
        return parse_json(response.body)

    def upload_file_chunked(
        self,
        path: str,
        write_mode: WriteMode,
        in_stream: BinaryIO,
        num_bytes: Optional[int] = None,
        chunk_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """
        Upload `in_stream` through a chunked upload session.

        Args:
            path: Destination Dropbox path.
            write_mode: What to do if a file already exists there.
            in_stream: Binary stream to upload; closed when this returns or raises.
            num_bytes: If given, the stream must contain exactly this many bytes.
            chunk_size: Bytes per chunk (default: config.chunk_size).
            on_progress: Called with (state, committed_offset).

        Returns:
            Metadata of the new file.
        """
        try:
            paths.check_arg_non_root("path", path)
            WriteMode.check_arg("write_mode", write_mode)
            _check_nat_or_none("num_bytes", num_bytes)
            if chunk_size is not None and (
                not isinstance(chunk_size, int) or chunk_size <= 0
            ):
                raise ValueError(f"'chunk_size' must be a positive int, got {chunk_size!r}")
        except Exception:
            in_stream.close()
            raise

        return self._coordinator(chunk_size).upload(
            path, write_mode, in_stream, num_bytes, on_progress
        )

    def chunked_upload_start(self, data: bytes) -> str:
        """
        Start a chunked upload session with its first chunk.

        Returns:
            The session's upload id, for chunked_upload_continue() and
            chunked_upload_finish(). Sessions expire after about a day.
        """
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError(f"'data' must be bytes, got {type(data).__name__}")
        return self.chunked_transport.start(bytes(data))

    def chunked_upload_continue(
        self, upload_id: str, byte_offset: int, data: bytes
    ) -> AppendOutcome:
        """
        Append a chunk at `byte_offset`, the number of bytes you believe the
        session already holds.

        Returns:
            An AppendOutcome: committed, session unknown, or an offset
            mismatch carrying the server's offset.
        """
        _check_non_empty_str("upload_id", upload_id)
        _check_nat_or_none("byte_offset", byte_offset)
        if byte_offset is None:
            raise ValueError("'byte_offset' must not be None")
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError(f"'data' must be bytes, got {type(data).__name__}")
        return self.chunked_transport.append(upload_id, byte_offset, bytes(data))

    def chunked_upload_finish(
        self, upload_id: str, path: str, write_mode: WriteMode
    ) -> Optional[Dict[str, Any]]:
        """
        Commit a chunked upload session to `path`.

        Returns:
            Metadata of the new file, or None if the server doesn't know `upload_id`.
        """
        _check_non_empty_str("upload_id", upload_id)
        paths.check_arg_non_root("path", path)
        WriteMode.check_arg("write_mode", write_mode)
        return self.chunked_transport.finish(upload_id, path, write_mode)

    # --- File operations ---

    def _fileop(self, op: str, params: Dict[str, Any]) -> Dict[str, Any]:
        params = dict(params, root=self.root)
        response = self.executor.post(self.api_host, f"1/fileops/{op}", params)
        if response.status_code != 200:
            raise unexpected_status(response)
        return parse_json(response.body)

    def copy(self, from_path: str, to_path: str) -> Dict[str, Any]:
        """Copy a file or folder. Returns metadata for the copy."""
        paths.check_arg("from_path", from_path)
        paths.check_arg_non_root("to_path", to_path)
        return self._fileop("copy", {"from_path": from_path, "to_path": to_path})

    def copy_from_copy_ref(self, copy_ref: str, to_path: str) -> Dict[str, Any]:
        """Copy a file identified by a copy_ref (possibly from another user)."""
        _check_non_empty_str("copy_ref", copy_ref)
        paths.check_arg_non_root("to_path", to_path)
        return self._fileop("copy", {"from_copy_ref": copy_ref, "to_path": to_path})

    def create_folder(self, path: str) -> Optional[Dict[str, Any]]:
        """
        Create a folder.

        Returns:
            Metadata for the new folder, or None if something already
            exists at `path`.
        """
        paths.check_arg_non_root("path", path)
        response = self.executor.post(
            self.api_host, "1/fileops/create_folder", {"root": self.root, "path": path}
        )
        if response.status_code == 403:
            return None
        if response.status_code != 200:
            raise unexpected_status(response)
        return parse_json(response.body)

    def delete(self, path: str) -> Dict[str, Any]:
        """Delete a file or folder. Returns its metadata (with is_deleted set)."""
        paths.check_arg_non_root("path", path)
        return self._fileop("delete", {"path": path})

    def move(self, from_path: str, to_path: str) -> Dict[str, Any]:
        """Move a file or folder. Returns metadata at the new location."""
        paths.check_arg_non_root("from_path", from_path)
        paths.check_arg_non_root("to_path", to_path)
        return self._fileop("move", {"from_path": from_path, "to_path": to_path})

    # --- Lifecycle ---

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.executor.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
