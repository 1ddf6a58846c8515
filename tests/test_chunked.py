"""
Tests for the chunked upload coordinator.

Run with: pytest tests/ -v
"""

import io

import pytest

from dropbox_client import (
    AppendOutcome,
    ChunkedUploadCoordinator,
    ProtocolError,
    SessionLostError,
    SizeMismatchError,
    TransientNetworkError,
    UploadState,
    WriteMode,
)
from dropbox_client.session import ChunkedUploadTransport

from .conftest import ScriptedTransport, TrackingStream


def payload(n):
    return bytes(i % 251 for i in range(n))


def upload(transport, data, chunk_size=512, **kwargs):
    coordinator = ChunkedUploadCoordinator(transport, max_retries=3, chunk_size=chunk_size)
    return coordinator.upload("/dest.bin", WriteMode.add(), io.BytesIO(data), **kwargs)


# --- Happy path ---

class TestSequentialUpload:

    def test_two_chunks_one_start_one_append_one_finish(self):
        """1024 bytes in 512-byte chunks: start(512), append(512), finish."""
        transport = ScriptedTransport()
        data = payload(1024)

        result = upload(transport, data)

        assert transport.starts == [data[:512]]
        assert transport.appends == [("session-1", 512, data[512:])]
        assert len(transport.finishes) == 1
        assert result["bytes"] == 1024

    def test_exact_multiple_of_chunk_size_sends_no_empty_append(self):
        transport = ScriptedTransport()
        upload(transport, payload(1536))

        assert [len(a[2]) for a in transport.appends] == [512, 512]

    def test_short_last_chunk(self):
        transport = ScriptedTransport()
        data = payload(1300)

        upload(transport, data)

        assert [(a[1], len(a[2])) for a in transport.appends] == [(512, 512), (1024, 276)]
        assert bytes(transport.received) == data

    def test_empty_stream_starts_and_finishes(self):
        transport = ScriptedTransport()

        result = upload(transport, b"")

        assert transport.starts == [b""]
        assert transport.appends == []
        assert result["bytes"] == 0

    def test_stream_smaller_than_one_chunk(self):
        transport = ScriptedTransport()

        upload(transport, b"hello")

        assert transport.starts == [b"hello"]
        assert transport.appends == []
        assert len(transport.finishes) == 1

    @pytest.mark.parametrize("chunk_size", [1, 3, 7, 512])
    @pytest.mark.parametrize("length", [0, 1, 7, 100, 1024])
    def test_all_bytes_arrive_in_order(self, chunk_size, length):
        transport = ScriptedTransport()
        data = payload(length)

        result = upload(transport, data, chunk_size=chunk_size)

        assert bytes(transport.received) == data
        assert result["bytes"] == length

    def test_finish_gets_path_and_write_mode(self):
        transport = ScriptedTransport()
        coordinator = ChunkedUploadCoordinator(transport, chunk_size=4)

        coordinator.upload("/a/b.txt", WriteMode.force(), io.BytesIO(b"12345678"))

        assert transport.finishes == [("session-1", "/a/b.txt", WriteMode.force())]

    def test_default_settings(self):
        coordinator = ChunkedUploadCoordinator(ScriptedTransport())
        assert coordinator.chunk_size == 4 * 1024 * 1024
        assert coordinator.max_retries == 3

    @pytest.mark.parametrize("chunk_size", [0, -1, 1.5])
    def test_rejects_bad_chunk_size(self, chunk_size):
        with pytest.raises(ValueError):
            ChunkedUploadCoordinator(ScriptedTransport(), chunk_size=chunk_size)


# --- Offset reconciliation ---

class TestOffsetReconciliation:

    @pytest.mark.parametrize("k", [1, 100, 511, 512])
    def test_server_ahead_trims_chunk_and_resends_once(self, k):
        """OffsetMismatch(offset + k) leads to exactly one append of chunk[k:]."""
        data = payload(1024)
        transport = ScriptedTransport([AppendOutcome.offset_mismatch(512 + k)])

        result = upload(transport, data)

        assert transport.appends == [
            ("session-1", 512, data[512:]),
            ("session-1", 512 + k, data[512 + k:]),
        ]
        assert len(transport.finishes) == 1
        assert result["path"] == "/dest.bin"

    def test_reconciled_upload_continues_with_next_chunk(self):
        data = payload(2048)
        transport = ScriptedTransport([AppendOutcome.offset_mismatch(600)])

        upload(transport, data)

        offsets = [a[1] for a in transport.appends]
        assert offsets == [512, 600, 1024, 1536]

    def test_server_behind_is_fatal(self):
        transport = ScriptedTransport([AppendOutcome.offset_mismatch(100)])

        with pytest.raises(ProtocolError, match="earlier byte offset"):
            upload(transport, payload(1024))

        assert len(transport.appends) == 1
        assert transport.finishes == []

    def test_mismatch_equal_to_our_offset_is_fatal(self):
        transport = ScriptedTransport([AppendOutcome.offset_mismatch(512)])

        with pytest.raises(ProtocolError, match="same as ours"):
            upload(transport, payload(1024))

        assert len(transport.appends) == 1
        assert transport.finishes == []

    def test_server_more_than_a_chunk_ahead_is_fatal(self):
        transport = ScriptedTransport([AppendOutcome.offset_mismatch(512 + 513)])

        with pytest.raises(ProtocolError, match="more than a chunk ahead"):
            upload(transport, payload(1024))

        assert len(transport.appends) == 1

    def test_session_unknown_is_fatal(self):
        transport = ScriptedTransport([AppendOutcome.session_unknown()])

        with pytest.raises(SessionLostError):
            upload(transport, payload(2048))

        assert len(transport.appends) == 1
        assert transport.finishes == []


# --- Retries ---

class TestRetries:

    def test_three_network_errors_then_success_completes(self):
        errors = [TransientNetworkError("timeout") for _ in range(3)]
        transport = ScriptedTransport(errors)
        data = payload(1024)

        upload(transport, data)

        assert len(transport.appends) == 4
        assert bytes(transport.received) == data

    def test_retry_budget_exhausted_propagates(self):
        errors = [TransientNetworkError(f"timeout {i}") for i in range(4)]
        transport = ScriptedTransport(errors)

        with pytest.raises(TransientNetworkError, match="timeout 3"):
            upload(transport, payload(1024))

        assert len(transport.appends) == 4
        assert transport.finishes == []

    def test_protocol_errors_are_not_retried(self):
        transport = ScriptedTransport([ProtocolError("bad offset")])

        with pytest.raises(ProtocolError):
            upload(transport, payload(1024))

        assert len(transport.appends) == 1

    def test_start_is_retried(self):
        transport = ScriptedTransport()
        calls = []
        real_start = transport.start

        def flaky_start(data):
            calls.append(data)
            if len(calls) < 3:
                raise TransientNetworkError("connection reset")
            return real_start(data)

        transport.start = flaky_start
        upload(transport, payload(100))

        assert len(calls) == 3

    def test_finish_is_retried(self):
        transport = ScriptedTransport()
        real_finish = transport.finish
        attempts = []

        def flaky_finish(*args):
            attempts.append(args)
            if len(attempts) == 1:
                raise TransientNetworkError("timeout")
            return real_finish(*args)

        transport.finish = flaky_finish
        result = upload(transport, payload(100))

        assert len(attempts) == 2
        assert result["bytes"] == 100


# --- Finalizing ---

class TestFinalize:

    def test_expected_size_mismatch_skips_finish(self):
        transport = ScriptedTransport()

        with pytest.raises(SizeMismatchError) as excinfo:
            upload(transport, payload(1000), expected_total_bytes=1024)

        assert transport.finishes == []
        assert excinfo.value.expected == 1024
        assert excinfo.value.actual == 1000

    def test_expected_size_match_finishes(self):
        transport = ScriptedTransport()
        result = upload(transport, payload(1000), expected_total_bytes=1000)
        assert result["bytes"] == 1000

    def test_finish_returning_none_is_session_lost(self):
        transport = ScriptedTransport(finish_result=None)

        with pytest.raises(SessionLostError):
            upload(transport, payload(1024))

    def test_committed_size_disagreeing_with_offset_is_protocol_error(self):
        transport = ScriptedTransport(finish_result={"path": "/dest.bin", "bytes": 12})

        with pytest.raises(ProtocolError, match="12 bytes"):
            upload(transport, payload(1024))


# --- Stream ownership ---

class TestStreamClosing:

    def test_stream_closed_after_success(self):
        stream = TrackingStream(payload(1024))
        coordinator = ChunkedUploadCoordinator(ScriptedTransport(), chunk_size=512)

        coordinator.upload("/x", WriteMode.add(), stream)

        assert stream.was_closed

    def test_stream_closed_after_failure(self):
        stream = TrackingStream(payload(1024))
        transport = ScriptedTransport([AppendOutcome.session_unknown()])
        coordinator = ChunkedUploadCoordinator(transport, chunk_size=512)

        with pytest.raises(SessionLostError):
            coordinator.upload("/x", WriteMode.add(), stream)

        assert stream.was_closed


# --- Progress reporting ---

class TestProgress:

    def test_states_and_offsets_reported(self):
        events = []
        upload(ScriptedTransport(), payload(1100), on_progress=lambda s, o: events.append((s, o)))

        assert events == [
            (UploadState.STARTED, 512),
            (UploadState.UPLOADING, 512),
            (UploadState.UPLOADING, 1024),
            (UploadState.UPLOADING, 1100),
            (UploadState.FINALIZING, 1100),
            (UploadState.DONE, 1100),
        ]

    def test_failure_reported(self):
        events = []
        transport = ScriptedTransport([AppendOutcome.offset_mismatch(0)])

        with pytest.raises(ProtocolError):
            upload(transport, payload(1024), on_progress=lambda s, o: events.append((s, o)))

        assert events[-1] == (UploadState.FAILED, 512)


# --- Against the in-memory server ---

class TestAgainstServer:

    def _coordinator(self, server):
        return ChunkedUploadCoordinator(
            ChunkedUploadTransport(server, "content.example", "dropbox"), chunk_size=512
        )

    def test_response_lost_after_commit_is_reconciled(self, server):
        """The server got the chunk but we didn't hear back; don't send it twice."""
        data = payload(1536)
        server.put_failures = ["commit"]

        result = self._coordinator(server).upload("/big.bin", WriteMode.add(), io.BytesIO(data))

        assert server.files["/big.bin"] == data
        assert result["bytes"] == 1536

    def test_partially_received_chunk_is_completed(self, server):
        data = payload(1536)
        server.put_failures = [("partial", 200)]

        self._coordinator(server).upload("/big.bin", WriteMode.add(), io.BytesIO(data))

        assert server.files["/big.bin"] == data
        resent = server.chunk_puts()[3]
        assert resent[2]["offset"] == 712
        assert resent[3] == data[712:1024]

    def test_dropped_request_is_resent_unchanged(self, server):
        data = payload(1024)
        server.put_failures = ["drop", "drop"]

        self._coordinator(server).upload("/f.bin", WriteMode.add(), io.BytesIO(data))

        assert server.files["/f.bin"] == data
        assert len(server.chunk_puts()) == 4


class TestProgressCallbackErrors:

    def test_callback_error_on_failed_keeps_original_error(self):
        def on_progress(state, offset):
            if state is UploadState.FAILED:
                raise RuntimeError("callback broke")

        transport = ScriptedTransport([AppendOutcome.session_unknown()])

        with pytest.raises(SessionLostError):
            upload(transport, payload(1024), on_progress=on_progress)

    def test_callback_error_on_done_keeps_committed_result(self, caplog):
        states = []

        def on_progress(state, offset):
            states.append(state)
            if state is UploadState.DONE:
                raise RuntimeError("callback broke")

        transport = ScriptedTransport()

        result = upload(transport, payload(1024), on_progress=on_progress)

        assert result["bytes"] == 1024
        assert UploadState.FAILED not in states
        assert "Progress callback failed on done" in caplog.text

    def test_callback_error_mid_upload_aborts(self):
        def on_progress(state, offset):
            if state is UploadState.UPLOADING and offset >= 1024:
                raise KeyboardInterrupt

        transport = ScriptedTransport()

        with pytest.raises(KeyboardInterrupt):
            upload(transport, payload(2048), on_progress=on_progress)

        assert transport.finishes == []
