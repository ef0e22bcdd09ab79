"""
Test fixtures for the chunked uploader.
"""
import threading
import time
from email import policy
from email.parser import BytesParser
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest.mock import MagicMock

import pytest

from chunk_uploader.events import UploadEvent

# Chunk size in MB giving 10-byte chunks
TEN_BYTES = 0.00001


def make_response(status_code=200, body=""):
    """Build a fake HTTP response."""
    response = MagicMock()
    response.status_code = status_code
    response.text = body
    return response


def wait_for(predicate, timeout=5.0):
    """Poll until predicate() is true or fail the test."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(0.01)
    pytest.fail("Timed out waiting for condition")


class EventRecorder:
    """Collects every event of an upload in order."""

    def __init__(self):
        self.events = []

    @property
    def listeners(self):
        return {kind: self._handler(kind) for kind in UploadEvent}

    def _handler(self, kind):
        def handler(payload=None):
            self.events.append((kind, payload))
        return handler

    def payloads(self, kind):
        return [payload for k, payload in self.events if k is kind]

    def kinds(self):
        return [k for k, _ in self.events]


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def make_file(tmp_path):
    """Factory creating a file with predictable content."""
    def _make_file(size, name="data.bin"):
        path = tmp_path / name
        path.write_bytes(bytes(i % 251 for i in range(size)))
        return path
    return _make_file


@pytest.fixture
def transport():
    """Transport answering 200 to every chunk."""
    mock_transport = MagicMock()
    mock_transport.send.side_effect = lambda *args, **kwargs: make_response(200, "uploaded")
    mock_transport.read_body.side_effect = lambda response: response.text
    return mock_transport


@pytest.fixture
def gate():
    """Event that holds the first transport call until it is set."""
    return threading.Event()


@pytest.fixture
def gated_transport(transport, gate):
    """Transport whose first request blocks until the gate opens."""
    calls = []

    def send(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            assert gate.wait(5), "gate was never opened"
        return make_response(200, "uploaded")

    transport.send.side_effect = send
    return transport


def sent_chunk_numbers(mock_transport):
    """Values of uploader-chunk-number in the order requests were sent."""
    return [int(c.args[1]["uploader-chunk-number"]) for c in mock_transport.send.call_args_list]


class ChunkReceiver(BaseHTTPRequestHandler):
    """Records multipart chunk uploads and answers with scripted statuses."""

    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        raw = self.rfile.read(length)
        message = BytesParser(policy=policy.HTTP).parsebytes(
            b"Content-Type: " + self.headers["Content-Type"].encode() + b"\r\n\r\n" + raw
        )
        fields = {}
        for part in message.iter_parts():
            name = part.get_param("name", header="content-disposition")
            fields[name] = part.get_payload(decode=True)

        server = self.server
        with server.lock:
            server.requests.append({"headers": dict(self.headers), "fields": fields})
            status = server.statuses.pop(0) if server.statuses else 200
            number = len(server.requests)

        body = f"received {number}".encode()
        self.send_response(status)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def chunk_server():
    """Local HTTP server receiving chunk uploads."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), ChunkReceiver)
    server.lock = threading.Lock()
    server.requests = []
    server.statuses = []
    server.url = f"http://127.0.0.1:{server.server_address[1]}/upload"
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
