"""
Shared fixtures: an in-memory Dropbox server and a scriptable chunked
upload transport.
"""

import io
import json
import uuid
from urllib.parse import unquote

import pytest

from dropbox_client import (
    AccessToken,
    AppInfo,
    AppendOutcome,
    Config,
    DropboxClient,
    TransientNetworkError,
)
from dropbox_client.transport import HttpResponse


def json_response(status, payload, headers=None):
    return HttpResponse(status, json.dumps(payload).encode("utf-8"), headers or {})


class FakeDropboxServer:
    """
    Stands in for RequestExecutor, emulating the API endpoints the client
    uses against in-memory state.

    Failures for chunked_upload PUTs can be queued in `put_failures`:
      - "drop": the request never reaches the server
      - "commit": the server stores the chunk, but the response is lost
      - ("partial", n): the server stores the first n bytes, response lost
    """

    def __init__(self):
        self.sessions = {}
        self.files = {}
        self.calls = []
        self.put_failures = []
        self.closed = False

    def _metadata(self, path):
        data = self.files[path]
        return {"path": path, "bytes": len(data), "size": f"{len(data)} bytes", "is_dir": False}

    def _fail(self, params, body):
        failure = self.put_failures.pop(0)
        if failure == "commit":
            self.sessions[params["upload_id"]].extend(body)
        elif isinstance(failure, tuple) and failure[0] == "partial":
            self.sessions[params["upload_id"]].extend(body[: failure[1]])
        raise TransientNetworkError(f"simulated network failure ({failure})")

    def put(self, host, path, params=None, body=b"", content_type="application/octet-stream"):
        params = dict(params or {})
        self.calls.append(("PUT", path, params, bytes(body)))

        if path == "1/chunked_upload":
            if "upload_id" not in params:
                upload_id = uuid.uuid4().hex
                self.sessions[upload_id] = bytearray(body)
                return json_response(200, {"upload_id": upload_id, "offset": len(body)})

            if self.put_failures:
                self._fail(params, body)

            upload_id = params["upload_id"]
            if upload_id not in self.sessions:
                return json_response(404, {"error": "upload_id not found"})
            stored = self.sessions[upload_id]
            if int(params["offset"]) != len(stored):
                return json_response(400, {"upload_id": upload_id, "offset": len(stored)})
            stored.extend(body)
            return json_response(200, {"upload_id": upload_id, "offset": len(stored)})

        if path.startswith("1/files_put/dropbox/"):
            dropbox_path = "/" + unquote(path[len("1/files_put/dropbox/"):])
            self.files[dropbox_path] = bytes(body)
            return json_response(200, self._metadata(dropbox_path))

        return json_response(404, {"error": "no such endpoint"})

    def post(self, host, path, params=None):
        params = dict(params or {})
        self.calls.append(("POST", path, params, None))

        if path.startswith("1/commit_chunked_upload/dropbox/"):
            dropbox_path = "/" + unquote(path[len("1/commit_chunked_upload/dropbox/"):])
            stored = self.sessions.pop(params["upload_id"], None)
            if stored is None:
                return json_response(404, {"error": "upload_id not found"})
            self.files[dropbox_path] = bytes(stored)
            return json_response(200, self._metadata(dropbox_path))

        if path == "1/fileops/create_folder":
            if params["path"] in self.files:
                return json_response(403, {"error": "already exists"})
            self.files[params["path"]] = b""
            return json_response(200, {"path": params["path"], "is_dir": True})

        if path == "1/fileops/delete":
            self.files.pop(params["path"])
            return json_response(200, {"path": params["path"], "is_deleted": True})

        if path in ("1/fileops/copy", "1/fileops/move"):
            data = self.files[params["from_path"]]
            if path.endswith("move"):
                del self.files[params["from_path"]]
            self.files[params["to_path"]] = data
            return json_response(200, self._metadata(params["to_path"]))

        return json_response(404, {"error": "no such endpoint"})

    def get(self, host, path, params=None):
        self.calls.append(("GET", path, dict(params or {}), None))
        if path == "1/account/info":
            return json_response(200, {"display_name": "Test User", "uid": 12345})
        return json_response(404, {"error": "no such endpoint"})

    def get_to_stream(self, host, path, params, out_stream):
        self.calls.append(("GET", path, dict(params or {}), None))
        dropbox_path = "/" + unquote(path[len("1/files/dropbox/"):])
        if dropbox_path not in self.files:
            return json_response(404, {"error": "not found"})
        out_stream.write(self.files[dropbox_path])
        headers = {"x-dropbox-metadata": json.dumps(self._metadata(dropbox_path))}
        return HttpResponse(200, b"", headers)

    def close(self):
        self.closed = True

    def chunk_puts(self):
        return [c for c in self.calls if c[0] == "PUT" and c[1] == "1/chunked_upload"]


class ScriptedTransport:
    """
    A ChunkedUploadTransport double for driving the coordinator directly.

    `append_script` is consumed one entry per append call: an AppendOutcome
    to return, or an exception to raise. Once empty, appends commit.
    """

    def __init__(self, append_script=None, finish_result="auto"):
        self.append_script = list(append_script or [])
        self.finish_result = finish_result
        self.starts = []
        self.appends = []
        self.finishes = []
        self.received = bytearray()
        self.committed_offset = 0

    def start(self, data):
        self.starts.append(bytes(data))
        self.received.extend(data)
        self.committed_offset = len(data)
        return "session-1"

    def append(self, upload_id, offset, data):
        self.appends.append((upload_id, offset, bytes(data)))
        if self.append_script:
            step = self.append_script.pop(0)
            if isinstance(step, BaseException):
                raise step
            return step
        self.received.extend(data)
        self.committed_offset = offset + len(data)
        return AppendOutcome.committed()

    def finish(self, upload_id, path, write_mode):
        self.finishes.append((upload_id, path, write_mode))
        if self.finish_result == "auto":
            return {"path": path, "bytes": self.committed_offset}
        return self.finish_result


class TrickleStream(io.RawIOBase):
    """Returns at most `step` bytes per read, like a pipe or socket."""

    def __init__(self, data, step):
        self._data = data
        self._pos = 0
        self._step = step

    def readable(self):
        return True

    def read(self, n=-1):
        take = self._step if n < 0 else min(n, self._step)
        chunk = self._data[self._pos:self._pos + take]
        self._pos += len(chunk)
        return chunk


class TrackingStream(io.BytesIO):
    """BytesIO that remembers it was closed and can still be inspected."""

    def __init__(self, data=b""):
        super().__init__(data)
        self.was_closed = False

    def close(self):
        self.was_closed = True
        super().close()


@pytest.fixture
def server():
    return FakeDropboxServer()


@pytest.fixture
def config():
    return Config(AppInfo("app-key", "app-secret"), "tests/1.0", chunk_size=512)


@pytest.fixture
def client(config, server):
    return DropboxClient(config, AccessToken("bearer-token"), executor=server)
