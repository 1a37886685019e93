"""Exception hierarchy for the connector runtime.

This module defines a framework-agnostic exception hierarchy that allows:
- Connector, auth and executor code to raise errors without HTTP dependencies
- Hosts to translate exceptions into structured status + message responses
- CLI tools and tests to handle errors consistently

## Exception Hierarchy

All exceptions inherit from `MLConnectError`:

- `InvalidConfigError`: Connector or auth configuration is invalid (400)
  - `UnsupportedAuthTypeError`: Auth type outside the known set
  - `UnsupportedProtocolError`: Connector protocol outside the known set
- `UnsupportedMethodError`: HTTP method other than GET/POST (400)
- `ActionNotFoundError`: Connector has no action of the requested type (400)
- `MissingParameterError`: Template placeholder left unresolved (400)
- `InvalidPayloadError`: Rendered payload is not valid JSON (400)
- `KeyLoadError`: Private key could not be read at signing time (500)
- `TransportError`: No HTTP response was obtained (502)
  - `ServiceUnavailableError`: Circuit breaker is open (503)
- `RemoteServiceError`: Remote service answered outside [200, 300)
- `ArtifactError`: Model artifact download or verification failed (400)
  - `ArtifactDownloadError`, `HashMismatchError`, `ModelFormatMismatchError`,
    `MultipleModelFilesError`, `NoModelFileError`, `NoTokenizerFileError`

## Usage

```python
from mlconnect.core.exceptions import TransportError

try:
    response = session.send(prepared, timeout=timeout)
except requests.RequestException as e:
    msg = f"Failed to call {endpoint}: {e}"
    raise TransportError(msg, connector=name, endpoint=endpoint) from e
```
"""

from mlconnect.foundation.exceptions import UpstreamError

REMOTE_SERVICE_ERROR = "Error from remote service: "


class MLConnectError(Exception):
    """Base exception class for all connector runtime errors.

    Maps to HTTP 500 (Internal Server Error) unless a subclass says otherwise.
    """

    status_code: int = 500


class InvalidConfigError(MLConnectError, ValueError):
    """Raised when connector or credential configuration is invalid.

    Examples:
        - Missing auth type
        - USER_PRINCIPAL auth missing tenant id, user id, fingerprint,
          pemfile or region
        - AWS connector without access key
    """

    status_code = 400


class UnsupportedAuthTypeError(InvalidConfigError):
    """Raised when an auth type is outside the supported set."""


class UnsupportedProtocolError(InvalidConfigError):
    """Raised when a connector declares an unknown protocol."""


class UnsupportedMethodError(MLConnectError, ValueError):
    """Raised when an action declares an HTTP method other than GET or POST."""

    status_code = 400


class ActionNotFoundError(MLConnectError, LookupError):
    """Raised when a connector has no action of the requested type."""

    status_code = 400


class MissingParameterError(MLConnectError, ValueError):
    """Raised when a template placeholder has no value.

    Attributes:
        placeholders: The unresolved placeholder names.
    """

    status_code = 400

    def __init__(self, message: str, placeholders: list[str] | None = None) -> None:
        super().__init__(message)
        self.placeholders = placeholders or []


class InvalidPayloadError(MLConnectError, ValueError):
    """Raised when a rendered request body is not valid JSON."""

    status_code = 400


class KeyLoadError(MLConnectError):
    """Raised when a signing private key cannot be read or parsed.

    The failure surfaces at signing time, never at connector load, so a
    later invocation retries the load.
    """

    status_code = 500


class TransportError(MLConnectError, UpstreamError):
    """Raised when no HTTP response could be obtained.

    Covers connection refused, DNS failure, TLS errors and timeouts.

    Attributes:
        connector: Name of the connector that issued the call.
        endpoint: Target URL of the call.
    """

    status_code = 502

    def __init__(self, message: str, connector: str | None = None, endpoint: str | None = None) -> None:
        super().__init__(message)
        self.connector = connector
        self.endpoint = endpoint


class ServiceUnavailableError(TransportError):
    """Raised while a connector's circuit breaker is open."""

    status_code = 503


class RemoteServiceError(MLConnectError):
    """Raised when the remote service answers with a non-2xx status.

    The remote status code is propagated as `status_code` and the raw body is
    kept on `body`.
    """

    def __init__(self, status_code: int, body: str, request_id: str | None = None) -> None:
        message = REMOTE_SERVICE_ERROR + body
        if request_id:
            message = f"{message} opc request id: {request_id}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.request_id = request_id


class ArtifactError(MLConnectError, ValueError):
    """Base class for model artifact download and verification errors."""

    status_code = 400


class ArtifactDownloadError(ArtifactError):
    """Raised when a model artifact cannot be fetched from its source."""

    status_code = 502


class HashMismatchError(ArtifactError):
    """Raised when the downloaded artifact digest differs from the declared one."""


class ModelFormatMismatchError(ArtifactError):
    """Raised when the archive holds a model file of the other format."""


class MultipleModelFilesError(ArtifactError):
    """Raised when the archive holds more than one model file."""


class NoModelFileError(ArtifactError):
    """Raised when the archive holds no model file."""


class NoTokenizerFileError(ArtifactError):
    """Raised when the archive holds no tokenizer.json."""
