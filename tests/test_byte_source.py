"""
Tests for chunked reads from streams.
"""

import io

import pytest

from dropbox_client import StreamByteSource

from .conftest import TrackingStream, TrickleStream


def test_eof_reported_with_last_short_chunk():
    source = StreamByteSource(io.BytesIO(b"abcdefghij"))

    assert source.read_chunk(4) == (b"abcd", False)
    assert source.read_chunk(4) == (b"efgh", False)
    assert source.read_chunk(4) == (b"ij", True)


def test_eof_reported_with_last_full_chunk():
    source = StreamByteSource(io.BytesIO(b"abcdefgh"))

    assert source.read_chunk(4) == (b"abcd", False)
    assert source.read_chunk(4) == (b"efgh", True)


def test_empty_stream():
    source = StreamByteSource(io.BytesIO(b""))
    assert source.read_chunk(4) == (b"", True)


def test_read_after_eof_returns_nothing():
    source = StreamByteSource(io.BytesIO(b"ab"))
    source.read_chunk(4)
    assert source.read_chunk(4) == (b"", True)


def test_short_reads_are_filled_up():
    source = StreamByteSource(TrickleStream(b"abcdefghij", step=3))

    assert source.read_chunk(8) == (b"abcdefgh", False)
    assert source.read_chunk(8) == (b"ij", True)


def test_varying_chunk_sizes_keep_order():
    data = bytes(range(100))
    source = StreamByteSource(io.BytesIO(data))

    out = []
    eof = False
    sizes = iter([1, 10, 3, 50, 7, 100])
    while not eof:
        chunk, eof = source.read_chunk(next(sizes))
        out.append(chunk)

    assert b"".join(out) == data


def test_close_closes_stream():
    stream = TrackingStream(b"abc")
    StreamByteSource(stream).close()
    assert stream.was_closed


@pytest.mark.parametrize("size", [0, -5])
def test_rejects_non_positive_size(size):
    with pytest.raises(ValueError):
        StreamByteSource(io.BytesIO(b"abc")).read_chunk(size)
