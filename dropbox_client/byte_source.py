"""
Sequential chunk reads from a binary stream.
"""

from typing import BinaryIO, Protocol, Tuple


class ByteSource(Protocol):
    """Something the chunked uploader can pull bytes from."""

    def read_chunk(self, max_bytes: int) -> Tuple[bytes, bool]:
        """Return up to `max_bytes` bytes and whether the source is now exhausted."""
        ...

    def close(self) -> None:
        ...


class StreamByteSource:
    """
    ByteSource over a readable binary stream of known or unknown length.

    End of stream is detected by reading one byte ahead, so a chunk is only
    reported as the last one when there really is nothing after it. A short
    read from the underlying stream doesn't count as EOF; we keep reading
    until the chunk is full or the stream returns b"".
    """

    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self._pending = b""
        self._eof = False

    @property
    def at_eof(self) -> bool:
        return self._eof and not self._pending

    def _read_exact(self, n: int) -> bytes:
        parts = []
        remaining = n
        while remaining > 0 and not self._eof:
            data = self._stream.read(remaining)
            if not data:
                self._eof = True
                break
            parts.append(data)
            remaining -= len(data)
        return b"".join(parts)

    def read_chunk(self, max_bytes: int) -> Tuple[bytes, bool]:
        if max_bytes <= 0:
            raise ValueError(f"'max_bytes' must be positive, got {max_bytes}")

        head, self._pending = self._pending[:max_bytes], self._pending[max_bytes:]
        chunk = head + self._read_exact(max_bytes - len(head))

        if not self._pending:
            self._pending = self._read_exact(1)

        return chunk, self.at_eof

    def close(self) -> None:
        self._stream.close()
