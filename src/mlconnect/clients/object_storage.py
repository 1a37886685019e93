"""OCI object storage client wrapper for model artifact downloads.

This module provides a small wrapper around `oci.object_storage
.ObjectStorageClient` that streams one object into a local file.

## Usage

```python
from mlconnect.auth import AuthConfig, build_signer
from mlconnect.clients.object_storage import ObjectStorageClientWrapper

client = ObjectStorageClientWrapper(
    signer=build_signer(AuthConfig.from_mapping({"auth_type": "RESOURCE_PRINCIPAL"})),
    endpoint="https://objectstorage.us-ashburn-1.oraclecloud.com",
)
client.download_to_file("namespace", "models", "model.zip", "/tmp/model.zip")
```

## Resilience Features

1. **Retry with Exponential Backoff**: Connection errors, throttling (429)
   and 5xx answers are retried with exponential backoff.
2. **Circuit Breaker**: After repeated failures, the circuit opens to fail
   fast.
3. **Fail-Fast for Non-Retriable Errors**: 4xx answers such as 404
   (object not found) or 401 (bad signature) are not retried.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Any

import attrs
import oci
import requests
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from mlconnect.auth.oci import LazySigner
from mlconnect.core.exceptions import ArtifactDownloadError, KeyLoadError
from mlconnect.foundation.circuit_breaker import with_circuit_breaker
from mlconnect.foundation.retry import HTTPErrorClassifier, create_retry_logger

from .mixins import CircuitBreakerMixin, LoggerMixin

logger = logging.getLogger("mlconnect.clients.object_storage")

STREAM_CHUNK_SIZE = 1024 * 1024


class ObjectStorageErrorClassifier(HTTPErrorClassifier):
    """Classify OCI SDK errors into retriable and non-retriable."""

    def is_retriable(self, exc: BaseException) -> bool:
        if isinstance(exc, oci.exceptions.ServiceError):
            return self.is_retriable_http_status(exc.status)
        if isinstance(exc, (oci.exceptions.RequestException, requests.ConnectionError, requests.Timeout)):
            logger.debug("Retriable connection error: %s", type(exc).__name__)
            return True
        return False

    def get_error_details(self, exc: BaseException) -> dict[str, Any]:
        if isinstance(exc, oci.exceptions.ServiceError):
            return {"http_status": exc.status, "error_code": exc.code, "opc_request_id": exc.request_id}
        return {}


_classifier = ObjectStorageErrorClassifier()


@attrs.define(frozen=False, slots=True)
class ObjectStorageClientWrapper(CircuitBreakerMixin, LoggerMixin):
    """Streams objects from OCI object storage to local files.

    Attributes:
        signer: Signing strategy for the bucket's tenancy.
        endpoint: Service endpoint. When None, the SDK derives it from the
            signer's region.
        timeout: (connect, read) timeout in seconds.
        max_retries: Attempts for retriable errors. Default: 3.
        retry_min_wait: Minimum wait between retries. Default: 1.0.
        retry_max_wait: Maximum wait between retries. Default: 10.0.
        circuit_breaker_threshold: Failures before the circuit opens.
        circuit_breaker_timeout: Seconds before recovery is attempted.
    """

    signer: LazySigner
    endpoint: str | None = None
    timeout: tuple[float, float] = (10.0, 300.0)
    max_retries: int = 3
    retry_min_wait: float = 1.0
    retry_max_wait: float = 10.0
    circuit_breaker_threshold: int = 5
    circuit_breaker_timeout: int = 120
    _client: Any = attrs.field(init=False, default=None)
    _client_lock: threading.Lock = attrs.field(init=False, factory=threading.Lock)

    def __attrs_post_init__(self) -> None:
        self._init_circuit_breaker()

    def _circuit_breaker_config(self) -> tuple[str, int, int]:
        return ("oci-object-storage", self.circuit_breaker_threshold, self.circuit_breaker_timeout)

    def _circuit_breaker_exclude(self):
        return [lambda exc: not _classifier.is_retriable(exc)]

    def _get_client(self) -> Any:
        with self._client_lock:
            if self._client is None:
                signer = self.signer.get_signer()
                region = getattr(signer, "region", None) or self.signer.region
                config: dict[str, Any] = {"region": region} if region else {}
                kwargs: dict[str, Any] = {"signer": signer, "timeout": self.timeout}
                if self.endpoint:
                    kwargs["service_endpoint"] = self.endpoint
                self._client = oci.object_storage.ObjectStorageClient(config, **kwargs)
            return self._client

    def download_to_file(self, namespace: str, bucket: str, object_name: str, target_path: str | os.PathLike) -> Path:
        """Download one object into `target_path`, creating parent folders.

        Returns:
            Path of the written file.

        Raises:
            KeyLoadError: If the signer cannot be initialized.
            ArtifactDownloadError: If the object cannot be downloaded.
        """
        target = Path(target_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        self._logger.debug(
            "Downloading object",
            extra={"endpoint": self.endpoint, "namespace": namespace, "bucket": bucket, "object": object_name},
        )
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(multiplier=1, min=self.retry_min_wait, max=self.retry_max_wait),
                retry=retry_if_exception(_classifier.is_retriable),
                before_sleep=create_retry_logger(logger, _classifier.get_error_details, "Object download failed, retrying"),
                reraise=False,
            ):
                with attempt:
                    self._download(namespace, bucket, object_name, target)
        except RetryError as e:
            cause = e.last_attempt.exception()
            msg = f"Failed to download file from object storage after {self.max_retries} attempts: {cause}"
            raise ArtifactDownloadError(msg) from cause
        except KeyLoadError:
            raise
        except oci.exceptions.ServiceError as e:
            msg = f"Failed to download file from object storage: {e.message} opc request id: {e.request_id}"
            raise ArtifactDownloadError(msg) from e
        except (oci.exceptions.ClientError, requests.RequestException, OSError) as e:
            msg = f"Failed to download file from object storage: {e}"
            raise ArtifactDownloadError(msg) from e
        return target

    @with_circuit_breaker("oci-object-storage", error_cls=ArtifactDownloadError)
    def _download(self, namespace: str, bucket: str, object_name: str, target: Path) -> None:
        response = self._get_client().get_object(namespace, bucket, object_name)
        with open(target, "wb") as out:
            for chunk in response.data.raw.stream(STREAM_CHUNK_SIZE, decode_content=False):
                out.write(chunk)
