"""
Chunked uploads of large or unsized streams.

The coordinator reads fixed-size chunks, starts a session with the first
one, appends the rest strictly in order, and commits the session to a
path. A network error during an append leaves us unsure whether the server
got the chunk, so we simply resend at the same offset: if the server did
get (some of) it, it answers with its own offset and we trim the part it
already has instead of uploading it twice.
"""

import enum
import logging
from typing import Any, BinaryIO, Callable, Dict, Optional

from .byte_source import ByteSource, StreamByteSource
from .config import DEFAULT_CHUNK_SIZE, DEFAULT_MAX_RETRIES
from .exceptions import ProtocolError, SessionLostError, SizeMismatchError
from .retry import RetryPolicy
from .session import AppendStatus, ChunkedUploadTransport
from .write_mode import WriteMode

logger = logging.getLogger(__name__)


class UploadState(enum.Enum):
    NOT_STARTED = "not_started"
    STARTED = "started"
    UPLOADING = "uploading"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


ProgressCallback = Callable[[UploadState, int], None]


class ChunkedUploadCoordinator:
    """
    Drives one chunked upload session per call to upload().

    Args:
        transport: Performs the start/append/finish requests.
        max_retries: Retries after the first attempt for each request that
            fails with a network error.
        chunk_size: Bytes read from the stream per chunk.
        retry_delay: Seconds between retries.
    """

    def __init__(
        self,
        transport: ChunkedUploadTransport,
        max_retries: int = DEFAULT_MAX_RETRIES,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        retry_delay: float = 0.0,
    ):
        if not isinstance(chunk_size, int) or chunk_size <= 0:
            raise ValueError(f"'chunk_size' must be a positive int, got {chunk_size!r}")
        self.transport = transport
        self.chunk_size = chunk_size
        self.retry = RetryPolicy(max_retries, retry_delay)

    @property
    def max_retries(self) -> int:
        return self.retry.max_retries

    def upload(
        self,
        path: str,
        write_mode: WriteMode,
        in_stream: BinaryIO,
        expected_total_bytes: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """
        Upload everything in `in_stream` to `path`.

        The stream is closed when this returns or raises.

        Args:
            path: Destination Dropbox path (already validated).
            write_mode: Conflict policy for the destination.
            in_stream: Binary stream to read; this call takes ownership of it.
            expected_total_bytes: If given, the stream must hold exactly this
                many bytes or SizeMismatchError is raised before committing.
            on_progress: Called with (state, committed_offset) on every state
                change and after every committed chunk. An exception from it
                aborts the upload, except on DONE and FAILED, where it is
                only logged.

        Returns:
            Metadata of the newly created file.

        Raises:
            TransientNetworkError: A request kept failing past the retry budget.
            ProtocolError: The server's offsets or ids made no sense.
            SessionLostError: The server forgot our session.
            SizeMismatchError: The stream length differs from expected_total_bytes.
            UnexpectedStatusError: The server answered with an unexpected status.
        """
        source = StreamByteSource(in_stream)
        try:
            return self.upload_from_source(
                path, write_mode, source, expected_total_bytes, on_progress
            )
        finally:
            source.close()

    def upload_from_source(
        self,
        path: str,
        write_mode: WriteMode,
        source: ByteSource,
        expected_total_bytes: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """Same as upload(), reading from a ByteSource the caller closes."""
        state = UploadState.NOT_STARTED
        byte_offset = 0

        def enter(new_state: UploadState) -> None:
            nonlocal state
            logger.debug("Chunked upload to %s: %s -> %s (offset=%d)",
                         path, state.value, new_state.value, byte_offset)
            state = new_state
            if on_progress is not None:
                on_progress(state, byte_offset)

        def enter_final(new_state: UploadState) -> None:
            # The outcome is already decided; a failing callback must not change it
            try:
                enter(new_state)
            except Exception:
                logger.exception("Progress callback failed on %s", new_state.value)

        try:
            chunk, eof = source.read_chunk(self.chunk_size)
            upload_id = self.retry.run(lambda: self.transport.start(chunk))
            byte_offset = len(chunk)
            enter(UploadState.STARTED)

            if not eof:
                enter(UploadState.UPLOADING)
            while not eof:
                chunk, eof = source.read_chunk(self.chunk_size)
                byte_offset = self._append_chunk(upload_id, byte_offset, chunk)
                if on_progress is not None:
                    on_progress(state, byte_offset)

            if expected_total_bytes is not None and byte_offset != expected_total_bytes:
                raise SizeMismatchError(expected_total_bytes, byte_offset)

            enter(UploadState.FINALIZING)
            metadata = self.retry.run(
                lambda: self.transport.finish(upload_id, path, write_mode)
            )
            if metadata is None:
                raise SessionLostError(
                    f"Server forgot upload session {upload_id!r} before it was committed"
                )

            committed = metadata.get("bytes")
            if committed is not None and committed != byte_offset:
                raise ProtocolError(
                    f"Committed file has {committed} bytes, but we uploaded {byte_offset}"
                )

        except BaseException:
            enter_final(UploadState.FAILED)
            raise

        enter_final(UploadState.DONE)
        return metadata

    def _append_chunk(self, upload_id: str, byte_offset: int, chunk: bytes) -> int:
        """
        Append one chunk, reconciling with the server's offset as needed.

        Returns:
            The new committed offset.
        """
        while True:
            outcome = self.retry.run(
                lambda: self.transport.append(upload_id, byte_offset, chunk)
            )

            if outcome.status is AppendStatus.COMMITTED:
                return byte_offset + len(chunk)

            if outcome.status is AppendStatus.SESSION_UNKNOWN:
                # Chunks go up strictly in order, so this shouldn't happen
                raise SessionLostError(f"Server forgot our upload session {upload_id!r}")

            server_offset = outcome.server_offset
            if server_offset == byte_offset:
                raise ProtocolError(
                    f"Corrective offset is the same as ours: {byte_offset}"
                )
            if server_offset < byte_offset:
                # The server lost data it already acknowledged
                raise ProtocolError(
                    f"Server is at an earlier byte offset: us={byte_offset}, server={server_offset}"
                )

            diff = server_offset - byte_offset
            if diff > len(chunk):
                raise ProtocolError(
                    f"Server is more than a chunk ahead: us={byte_offset}, server={server_offset}"
                )

            # The server already has the start of this chunk; send the rest
            logger.info("⚠ Server already has %d bytes of this chunk, resending the rest", diff)
            byte_offset += diff
            chunk = chunk[diff:]
