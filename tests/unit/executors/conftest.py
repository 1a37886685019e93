"""Shared fixtures for executor tests.

This module provides connectors pointed at the local mock remote service,
a fast-failing executor configuration, an unreachable endpoint and an
endpoint whose response body stalls.
"""

# pylint: disable=redefined-outer-name

import socket
import threading
import time
from collections.abc import Iterator
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

import pytest

from mlconnect.config import HttpClientConfig
from mlconnect.connectors import Connector


@pytest.fixture
def executor_config() -> HttpClientConfig:
    """Short timeouts and a low circuit breaker threshold."""
    return HttpClientConfig(connect_timeout=1.0, read_timeout=5.0, circuit_breaker_threshold=2, circuit_breaker_timeout=60)


@pytest.fixture
def unreachable_url() -> str:
    """URL of a local port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}/v1/predict"


@pytest.fixture
def local_http_connector(mock_remote_service: Any) -> Connector:
    """HTTP connector whose PREDICT action targets the mock service."""
    return Connector.from_dict(
        {
            "name": "local-model",
            "protocol": "http",
            "parameters": {"base": mock_remote_service.base_url},
            "credential": {"api_key": "k-123"},
            "actions": [
                {
                    "action_type": "PREDICT",
                    "method": "POST",
                    "url": "${parameters.base}/v1/predict",
                    "headers": {"Authorization": "Bearer ${credential.api_key}"},
                    "request_body": '{"input": ${parameters.input}}',
                },
                {
                    "action_type": "DOWNLOAD",
                    "method": "GET",
                    "url": "${parameters.base}/files/model.zip",
                },
            ],
        }
    )


class _StalledBodyHandler(BaseHTTPRequestHandler):
    """Declares a 100 byte body, sends 5 bytes, then stalls."""

    def _handle(self) -> None:
        length = int(self.headers.get("Content-Length") or 0)
        if length:
            self.rfile.read(length)
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", "100")
        self.end_headers()
        self.wfile.write(b'{"emb')
        self.wfile.flush()
        time.sleep(2)

    do_GET = _handle
    do_POST = _handle

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        pass


@pytest.fixture
def stalled_body_url() -> Iterator[str]:
    """URL of a local server whose response body stops after a few bytes."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _StalledBodyHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    try:
        yield f"http://{host}:{port}/v1/predict"
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)
