"""Shared pytest configuration and fixtures.

This module provides global fixtures that are available to all tests in the
test suite:
  - `mock_remote_service`: a local HTTP server standing in for a remote model
  - connector documents for each protocol
  - settings cache reset between tests

Keep fixtures small, composable, and focused on setup/teardown.
Do NOT put business logic in fixtures.
"""

# pylint: disable=redefined-outer-name

import json
import threading
from collections.abc import Iterator
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

import attrs
import pytest

from mlconnect.config import get_settings

# =============================================================================
# Mock remote service
# =============================================================================

NOT_FOUND_BODY = {"code": "NotAuthorizedOrNotFound", "message": "Authorization failed or requested resource not found."}


@attrs.define
class RecordedRequest:
    method: str
    path: str
    headers: Any
    body: bytes


@attrs.define
class CannedResponse:
    status: int
    body: bytes
    headers: dict[str, str] = attrs.field(factory=dict)


@attrs.define
class MockRemoteService:
    """Routes keyed by (method, path). Unknown routes answer 404."""

    server: ThreadingHTTPServer
    routes: dict[tuple[str, str], list[CannedResponse]] = attrs.field(factory=dict)
    requests: list[RecordedRequest] = attrs.field(factory=list)

    @property
    def base_url(self) -> str:
        host, port = self.server.server_address[:2]
        return f"http://{host}:{port}"

    def add_json(self, method: str, path: str, payload: Any, status: int = 200, headers: dict[str, str] | None = None) -> None:
        self.add(method, path, json.dumps(payload).encode("utf-8"), status, headers)

    def add(self, method: str, path: str, body: bytes, status: int = 200, headers: dict[str, str] | None = None) -> None:
        """Queue a response. The last queued response for a route repeats."""
        self.routes.setdefault((method, path), []).append(CannedResponse(status, body, headers or {}))

    def next_response(self, method: str, path: str) -> CannedResponse:
        queue = self.routes.get((method, path))
        if not queue:
            return CannedResponse(404, json.dumps(NOT_FOUND_BODY).encode("utf-8"), {"opc-request-id": "req-404"})
        return queue.pop(0) if len(queue) > 1 else queue[0]


def _handler_for(service_ref: list[MockRemoteService]) -> type[BaseHTTPRequestHandler]:
    class Handler(BaseHTTPRequestHandler):
        def _handle(self) -> None:
            service = service_ref[0]
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length else b""
            # email.message.Message: case-insensitive header lookup
            service.requests.append(RecordedRequest(self.command, self.path, self.headers, body))
            canned = service.next_response(self.command, self.path)
            self.send_response(canned.status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(canned.body)))
            for name, value in canned.headers.items():
                self.send_header(name, value)
            self.end_headers()
            self.wfile.write(canned.body)

        do_GET = _handle
        do_POST = _handle
        do_PUT = _handle

        def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
            pass

    return Handler


@pytest.fixture
def mock_remote_service() -> Iterator[MockRemoteService]:
    """Start a local HTTP server for end-to-end executor scenarios.

    Yields:
        MockRemoteService: Server handle with route and request recording.
    """
    service_ref: list[MockRemoteService] = []
    server = ThreadingHTTPServer(("127.0.0.1", 0), _handler_for(service_ref))
    service = MockRemoteService(server=server)
    service_ref.append(service)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield service
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


# =============================================================================
# Connector documents
# =============================================================================


@pytest.fixture
def http_connector_doc() -> dict[str, Any]:
    """Connector document for an OpenAI-style chat endpoint."""
    return {
        "name": "openai-chat",
        "description": "OpenAI chat completions",
        "version": "1",
        "protocol": "http",
        "parameters": {"endpoint": "api.openai.com", "model": "gpt-4o-mini"},
        "credential": {"openAI_key": "sk-test"},
        "actions": [
            {
                "action_type": "PREDICT",
                "method": "POST",
                "url": "https://${parameters.endpoint}/v1/chat/completions",
                "headers": {"Authorization": "Bearer ${credential.openAI_key}"},
                "request_body": '{"model": "${parameters.model}", "messages": ${parameters.messages}}',
            }
        ],
    }


@pytest.fixture
def aws_connector_doc() -> dict[str, Any]:
    """Connector document for a Bedrock embedding model."""
    return {
        "name": "bedrock-titan",
        "protocol": "aws_sigv4",
        "parameters": {"service_name": "bedrock", "region": "us-east-1"},
        "credential": {"access_key": "AKIDEXAMPLE", "secret_key": "secret-example"},
        "actions": [
            {
                "action_type": "PREDICT",
                "method": "POST",
                "url": "https://bedrock-runtime.us-east-1.amazonaws.com/model/amazon.titan-embed-text-v1/invoke",
                "headers": {"content-type": "application/json"},
                "request_body": '{"inputText": "${parameters.inputText}"}',
            }
        ],
    }


@pytest.fixture
def oci_connector_doc() -> dict[str, Any]:
    """Connector document for an OCI GenAI model with resource principal auth."""
    return {
        "name": "oci-genai",
        "protocol": "oci_genai",
        "parameters": {"auth_type": "RESOURCE_PRINCIPAL", "endpoint": "inference.generativeai.example.com"},
        "actions": [
            {
                "action_type": "PREDICT",
                "method": "POST",
                "url": "https://${parameters.endpoint}/20231130/actions/generateText",
                "request_body": '{"prompts": ["${parameters.prompt}"]}',
            }
        ],
    }


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Iterator[None]:
    """Reset cached settings so environment patches take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
