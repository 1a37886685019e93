"""Base class for connector executors.

An executor performs exactly one HTTP exchange per `execute_remote_call`:

    Unsent -> Signed -> Sent -> Completed | Failed

1. The HTTP method is checked (GET or POST only) before any I/O.
2. Headers are rendered from the connector with decrypted credentials;
   `Content-Type: application/json` is added when no content type is set.
3. The request is signed by the protocol's auth object, if any.
4. The request is sent on a pooled `requests.Session` with the configured
   (connect, read) timeout.
5. The status code, headers and body stream are returned for every HTTP
   status. Interpreting the status is the caller's job.

PREDICT bodies are read in full before the call returns. DOWNLOAD bodies
stay streamed; reading them later goes through `TransportGuardedStream`.

Failures before the body is available (connection refused, timeouts, TLS,
broken body reads) raise `TransportError` carrying the connector name and
endpoint. Executors never retry. Repeated transport
failures open the executor's circuit breaker, after which calls fail fast
with `ServiceUnavailableError`.

Every request is built with its own target URL, so one executor can serve
concurrent invocations.
"""

import io
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from functools import lru_cache
from typing import IO, Any, ClassVar

import attrs
import requests
import urllib3

from mlconnect.clients.mixins import CircuitBreakerMixin, ConnectorValidationMixin, LoggerMixin
from mlconnect.config import HttpClientConfig
from mlconnect.connectors import ActionType, Connector, ConnectorProtocol, Decryptor
from mlconnect.core.exceptions import (
    InvalidPayloadError,
    ServiceUnavailableError,
    TransportError,
    UnsupportedMethodError,
)
from mlconnect.core.models import Response
from mlconnect.foundation.circuit_breaker import with_circuit_breaker
from mlconnect.foundation.http import create_session

SUPPORTED_METHODS: frozenset[str] = frozenset({"GET", "POST"})
CONTENT_TYPE = "Content-Type"
JSON_CONTENT_TYPE = "application/json"


@lru_cache(maxsize=8)
def shared_session(pool_connections: int, pool_maxsize: int) -> requests.Session:
    """Return the process-wide session for the given pool sizes."""
    return create_session(pool_connections=pool_connections, pool_maxsize=pool_maxsize)


def _is_transport_error(exc: BaseException) -> bool:
    return isinstance(exc, TransportError)


@attrs.define(frozen=False, slots=True)
class RemoteConnectorExecutor(CircuitBreakerMixin, ConnectorValidationMixin, LoggerMixin, ABC):
    """Issues signed HTTP calls on behalf of one connector.

    Attributes:
        connector: Connector whose calls this executor performs.
        config: Timeouts, pool sizes and circuit breaker settings.
        decrypt: Turns a stored credential value into its plain form.
            Identity when None.
        session: Session to send requests on. Defaults to the process-wide
            pooled session.

    Subclasses set `supported_protocols` and implement `_auth()`.
    """

    connector: Connector
    config: HttpClientConfig = attrs.field(factory=HttpClientConfig)
    decrypt: Decryptor | None = None
    session: requests.Session | None = None

    supported_protocols: ClassVar[frozenset[ConnectorProtocol]] = frozenset()

    def __attrs_post_init__(self) -> None:
        self._validate_connector(self.connector, sorted(self.supported_protocols, key=lambda p: p.value))
        if self.session is None:
            self.session = shared_session(self.config.pool_connections, self.config.pool_maxsize)
        self._init_circuit_breaker()

    def _circuit_breaker_config(self) -> tuple[str, int, int]:
        return (
            f"connector:{self.connector.name}",
            self.config.circuit_breaker_threshold,
            self.config.circuit_breaker_timeout,
        )

    def _circuit_breaker_exclude(self):
        # Only transport failures count; responses and local errors do not.
        return [lambda exc: not _is_transport_error(exc)]

    @abstractmethod
    def _auth(self) -> requests.auth.AuthBase | None:
        """Return the auth object that signs outgoing requests, if any."""

    def execute_remote_call(
        self,
        endpoint: str,
        method: str,
        payload: str | None,
        action_type: ActionType = ActionType.PREDICT,
        parameters: Mapping[str, str] | None = None,
    ) -> Response:
        """Send one request to the remote service.

        Args:
            endpoint: Fully rendered target URL.
            method: HTTP method, GET or POST (case-insensitive).
            payload: Rendered JSON body. Required for POST, ignored for GET.
            action_type: Action whose headers are sent.
            parameters: Values for `${parameters.X}` in header templates.

        Returns:
            Response with status code, headers and the unread body stream.

        Raises:
            UnsupportedMethodError: If the method is not GET or POST.
            InvalidPayloadError: If a POST has no payload.
            KeyLoadError: If the signing key cannot be loaded.
            TransportError: If no HTTP response was obtained.
            ServiceUnavailableError: If the circuit breaker is open.
        """
        http_method = (method or "").upper()
        if http_method not in SUPPORTED_METHODS:
            msg = f"unsupported http method {method}"
            raise UnsupportedMethodError(msg)

        body: bytes | None = None
        if http_method == "POST":
            if payload is None:
                msg = "Content length is 0. Aborting request to remote model"
                raise InvalidPayloadError(msg)
            body = payload.encode("utf-8")

        headers = self.connector.get_decrypted_headers(action_type, self.decrypt, parameters)
        if not any(name.lower() == CONTENT_TYPE.lower() for name in headers):
            headers[CONTENT_TYPE] = JSON_CONTENT_TYPE

        request = requests.Request(
            method=http_method,
            url=endpoint,
            headers=headers,
            data=body,
            auth=self._auth(),
        )
        return self._send(request, stream=action_type is ActionType.DOWNLOAD)

    @with_circuit_breaker(error_cls=ServiceUnavailableError)
    def _send(self, request: requests.Request, stream: bool = False) -> Response:
        session: requests.Session = self.session  # type: ignore[assignment]
        # Signing happens here; KeyLoadError propagates unchanged.
        prepared = session.prepare_request(request)
        invocation = {
            "connector": self.connector.name,
            "protocol": self.connector.protocol.value,
            "endpoint": request.url,
            "method": request.method,
        }
        start = time.perf_counter()
        try:
            http_response = session.send(prepared, stream=stream, timeout=self.config.timeout)
        except requests.RequestException as e:
            self._logger.warning(
                "Remote call failed before a response was received",
                extra={"invocation": invocation, "error_type": type(e).__name__},
            )
            msg = f"Failed to call remote service of connector {self.connector.name} at {request.url}: {e}"
            raise TransportError(msg, connector=self.connector.name, endpoint=request.url) from e

        invocation["status_code"] = http_response.status_code
        invocation["since"] = round(time.perf_counter() - start, 4)
        self._logger.info("Remote call completed", extra={"invocation": invocation})

        if stream:
            http_response.raw.decode_content = True
            body: IO[bytes] = TransportGuardedStream(http_response.raw, self.connector.name, request.url)
        else:
            body = io.BytesIO(http_response.content)
        return Response(
            body=body,
            status_code=http_response.status_code,
            headers=http_response.headers,
        )


class TransportGuardedStream(io.RawIOBase):
    """Read-only view of a streamed response body.

    Errors raised while reading (read timeouts, truncated bodies, reset
    connections) surface as `TransportError` with the connector and endpoint.
    """

    def __init__(self, raw: Any, connector: str, endpoint: str | None) -> None:
        super().__init__()
        self._raw = raw
        self.connector = connector
        self.endpoint = endpoint

    def readable(self) -> bool:
        return True

    def read(self, size: int | None = -1) -> bytes:
        try:
            return self._raw.read(None if size is None or size < 0 else size)
        except (urllib3.exceptions.HTTPError, requests.RequestException, OSError) as e:
            raise self._transport_error(e) from e

    def readall(self) -> bytes:
        return self.read()

    def readinto(self, buffer: Any) -> int:
        data = self.read(len(buffer))
        buffer[: len(data)] = data
        return len(data)

    def close(self) -> None:
        try:
            self._raw.close()
        finally:
            super().close()

    def _transport_error(self, exc: BaseException) -> TransportError:
        msg = f"Failed to read response of connector {self.connector} from {self.endpoint}: {exc}"
        return TransportError(msg, connector=self.connector, endpoint=self.endpoint)
