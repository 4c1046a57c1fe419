"""Shared fixtures: a local collection endpoint and a proxy that answers 408."""

import base64
import json
import math
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
from helpers import WRITE_KEY

from zhuge_analytics import Analytics
from zhuge_analytics.config.settings import UPLOAD_ENDPOINT


class CollectorHandler(BaseHTTPRequestHandler):
    """Accepts batches for ``key``; a batch whose first record has ``eid == "error"`` is rejected."""

    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        payload = json.loads(self.rfile.read(length) or b"{}")
        self.server.received.append({"path": self.path, "headers": {key.lower(): value for key, value in self.headers.items()}, "payload": payload})

        if self.path != UPLOAD_ENDPOINT:
            return self._reply(404, {"return_code": -1, "return_message": "not found"})

        expected = "Basic " + base64.b64encode(f"{WRITE_KEY}:".encode()).decode()
        if self.headers.get("Authorization") != expected:
            return self._reply(401, {"return_code": -401, "return_message": "unauthorized"})

        data = payload.get("data") or []
        if data and data[0].get("eid") == "error":
            return self._reply(400, {"return_code": -1000, "return_message": "error"})

        self._reply(200, {"return_code": 0})

    def _reply(self, status, body):
        raw = json.dumps(body).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)

    def log_message(self, format, *args):
        pass


class TimeoutProxyHandler(BaseHTTPRequestHandler):
    """Turns every proxied request into a 408."""

    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        self.rfile.read(length)
        self.server.received.append(self.path)
        raw = b"Request Timeout"
        self.send_response(408)
        self.send_header("Content-Length", str(len(raw)))
        self.end_headers()
        self.wfile.write(raw)

    def log_message(self, format, *args):
        pass


def _serve(handler):
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    server.received = []
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("ZHUGE_HOST", "ZHUGE_FLUSH_AT", "ZHUGE_FLUSH_AFTER", "ZHUGE_PROXY", "ZHUGE_TIMEOUT_SECONDS", "no_proxy", "NO_PROXY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def collector():
    server = _serve(CollectorHandler)
    server.url = f"http://127.0.0.1:{server.server_address[1]}"
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def timeout_proxy():
    server = _serve(TimeoutProxyHandler)
    server.url = f"http://127.0.0.1:{server.server_address[1]}"
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def client(collector):
    """Client pointed at the local collector with both triggers disabled."""
    analytics = Analytics(WRITE_KEY, host=collector.url, flush_at=math.inf, flush_after=math.inf, retry_backoff_base=0)
    yield analytics
    analytics.batcher.shutdown(timeout=5)

