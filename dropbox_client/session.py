"""
Wire protocol for chunked upload sessions.

A session is started with the first chunk, extended with more chunks at
explicit byte offsets, and committed to a path. The server tracks the
offset it has received; when our claimed offset disagrees it answers 400
with its own offset so the client can resynchronize.
"""

import enum
import logging
from typing import Any, Dict, Optional, Tuple

from . import paths
from .exceptions import ProtocolError
from .transport import HttpResponse, RequestExecutor, parse_json, unexpected_status
from .write_mode import WriteMode

logger = logging.getLogger(__name__)


class AppendStatus(enum.Enum):
    COMMITTED = "committed"
    SESSION_UNKNOWN = "session_unknown"
    OFFSET_MISMATCH = "offset_mismatch"


class AppendOutcome:
    """
    Result of one append attempt.

    Exactly one of: the chunk was committed, the server doesn't know the
    session, or the server is at a different offset (`server_offset`).
    """

    __slots__ = ("status", "server_offset")

    def __init__(self, status: AppendStatus, server_offset: Optional[int] = None):
        if (status is AppendStatus.OFFSET_MISMATCH) != (server_offset is not None):
            raise ValueError("server_offset is required for, and only for, OFFSET_MISMATCH")
        self.status = status
        self.server_offset = server_offset

    @classmethod
    def committed(cls) -> "AppendOutcome":
        return cls(AppendStatus.COMMITTED)

    @classmethod
    def session_unknown(cls) -> "AppendOutcome":
        return cls(AppendStatus.SESSION_UNKNOWN)

    @classmethod
    def offset_mismatch(cls, server_offset: int) -> "AppendOutcome":
        return cls(AppendStatus.OFFSET_MISMATCH, server_offset)

    def __eq__(self, other):
        return (
            isinstance(other, AppendOutcome)
            and self.status is other.status
            and self.server_offset == other.server_offset
        )

    def __repr__(self):
        if self.status is AppendStatus.OFFSET_MISMATCH:
            return f"AppendOutcome.offset_mismatch({self.server_offset})"
        return f"AppendOutcome.{self.status.value}()"


def _parse_session_state(body: bytes) -> Tuple[str, int]:
    data = parse_json(body)
    if "upload_id" not in data:
        raise ProtocolError(f'Missing field "upload_id": {body[:200]!r}')
    if "offset" not in data:
        raise ProtocolError(f'Missing field "offset": {body[:200]!r}')
    upload_id, offset = data["upload_id"], data["offset"]
    if not isinstance(upload_id, str) or not upload_id:
        raise ProtocolError(f'Bad "upload_id": {upload_id!r}')
    if not isinstance(offset, int) or isinstance(offset, bool) or offset < 0:
        raise ProtocolError(f'Bad "offset": {offset!r}')
    return upload_id, offset


def _offset_correction(response: HttpResponse) -> Optional[Tuple[str, int]]:
    """
    Recognize the server's "you're at the wrong offset" answer.

    That's a 400 whose body is a JSON object with both "upload_id" and
    "offset". Any other 400 is just an error.
    """
    if response.status_code != 400:
        return None
    try:
        data = parse_json(response.body)
    except ProtocolError:
        return None
    if "upload_id" not in data or "offset" not in data:
        return None
    return _parse_session_state(response.body)


class ChunkedUploadTransport:
    """
    The three network calls of a chunked upload.

    Args:
        executor: Signs and sends requests.
        content_host: Host serving upload endpoints.
        root: URL root for the app's access type ("dropbox" or "sandbox").
    """

    def __init__(self, executor: RequestExecutor, content_host: str, root: str):
        self.executor = executor
        self.content_host = content_host
        self.root = root

    def _put_chunk(self, params: Dict[str, Any], data: bytes) -> HttpResponse:
        return self.executor.put(self.content_host, "1/chunked_upload", params, body=data)

    def start(self, data: bytes) -> str:
        """
        Start a session with its first chunk.

        Returns:
            The new session's upload id.

        Raises:
            ProtocolError: If the server doesn't acknowledge exactly `len(data)` bytes.
        """
        response = self._put_chunk({}, data)

        if response.status_code == 404:
            raise ProtocolError("Got a 404, but we didn't send an 'upload_id'")
        if _offset_correction(response) is not None:
            raise ProtocolError("Got an offset-correcting 400 response, but we didn't send an offset")
        if response.status_code != 200:
            raise unexpected_status(response)

        upload_id, offset = _parse_session_state(response.body)
        if offset != len(data):
            raise ProtocolError(
                f"We sent {len(data)} bytes, but server returned an offset of {offset}"
            )

        logger.debug("Chunked upload session %s started with %d bytes", upload_id, offset)
        return upload_id

    def append(self, upload_id: str, offset: int, data: bytes) -> AppendOutcome:
        """
        Append `data` to a session at our believed `offset`.

        Raises:
            ProtocolError: If the server echoes a different upload id, or
                acknowledges an offset other than `offset + len(data)`.
        """
        response = self._put_chunk({"upload_id": upload_id, "offset": offset}, data)

        if response.status_code == 404:
            # Expired (sessions last about a day) or never existed
            return AppendOutcome.session_unknown()

        correction = _offset_correction(response)
        if correction is not None:
            corrected_id, server_offset = correction
            if corrected_id != upload_id:
                raise ProtocolError(
                    f"Corrective 400 upload_id mismatch: us={upload_id!r}, server={corrected_id!r}"
                )
            logger.debug(
                "Offset correction for %s: us=%d, server=%d", upload_id, offset, server_offset
            )
            return AppendOutcome.offset_mismatch(server_offset)

        if response.status_code != 200:
            raise unexpected_status(response)

        returned_id, returned_offset = _parse_session_state(response.body)
        if returned_id != upload_id:
            raise ProtocolError(
                f"upload_id mismatch: us={upload_id!r}, server={returned_id!r}"
            )
        next_offset = offset + len(data)
        if returned_offset != next_offset:
            raise ProtocolError(
                f"next-offset mismatch: us={next_offset}, server={returned_offset}"
            )

        return AppendOutcome.committed()

    def finish(self, upload_id: str, path: str, write_mode: WriteMode) -> Optional[Dict[str, Any]]:
        """
        Commit the session's bytes as a file at `path`.

        Returns:
            Metadata for the new file, or None if the server doesn't know
            the session.
        """
        params = {"upload_id": upload_id}
        params.update(write_mode.extra_params())

        response = self.executor.post(
            self.content_host,
            paths.api_file_path("1/commit_chunked_upload", self.root, path),
            params,
        )

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise unexpected_status(response)

        return parse_json(response.body)
