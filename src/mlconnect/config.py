"""Configuration management for the connector runtime.

This module provides the configuration for executors, the artifact helper
and the OCI object storage client using Pydantic models. All settings are
loaded from environment variables with sensible defaults.

## Configuration Sources

Configuration is read from environment variables. The `get_settings()`
function uses `@lru_cache` so settings are loaded once per process.

## Environment Variables

**HTTP client (connector executors)**
- `MLCONNECT_CONNECT_TIMEOUT`: Connect timeout in seconds (default: `10`)
- `MLCONNECT_READ_TIMEOUT`: Read timeout in seconds (default: `60`)
- `MLCONNECT_POOL_CONNECTIONS`: Host pools kept by the session
  (default: `10`)
- `MLCONNECT_POOL_MAXSIZE`: Connections per host pool (default: `20`)
- `MLCONNECT_CIRCUIT_BREAKER_THRESHOLD`: Transport failures before a
  connector's circuit opens (default: `5`)
- `MLCONNECT_CIRCUIT_BREAKER_TIMEOUT`: Circuit recovery timeout in seconds
  (default: `30`)

**Model artifacts**
- `MLCONNECT_DATA_ROOT`: Root folder of the model cache
  (default: `/tmp/mlconnect`)
- `MLCONNECT_CHUNK_SIZE`: Chunk size in bytes (default: `10000000`)
- `MLCONNECT_MODEL_REPO_ENDPOINT`: Base URL of the prebuilt model repository
- `MLCONNECT_MODEL_METALIST_ENDPOINT`: URL of the prebuilt model meta list
- `MLCONNECT_DOWNLOAD_TIMEOUT`: Read timeout of artifact downloads in
  seconds (default: `300`)
- `MLCONNECT_DOWNLOAD_MAX_RETRIES`: Transport retries of artifact GET
  downloads (default: `3`)

**OCI object storage**
- `OCI_OS_ENDPOINT`: Default object storage endpoint, used when a
  registration request does not name one
- `OCI_OS_TIMEOUT`: Read timeout in seconds (default: `300`)

## Usage

```python
from mlconnect.config import get_settings
from mlconnect.executors import create_executor

settings = get_settings()
executor = create_executor(connector, config=settings.http)
```
"""

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel
from pydantic_settings import SettingsConfigDict

REGISTER_MODEL_FOLDER = "register"
DEPLOY_MODEL_FOLDER = "deploy"


class HttpClientConfig(BaseModel):
    """Configuration for connector executors.

    Attributes:
        connect_timeout: Seconds to wait for a connection. Default: 10.
        read_timeout: Seconds to wait between response bytes. Default: 60.
        pool_connections: Host pools kept by the shared session. Default: 10.
        pool_maxsize: Connections per host pool. Default: 20.
        circuit_breaker_threshold: Transport failures before the circuit
            opens. Default: 5.
        circuit_breaker_timeout: Seconds before a half-open retry. Default: 30.
    """

    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    pool_connections: int = 10
    pool_maxsize: int = 20
    circuit_breaker_threshold: int = 5
    circuit_breaker_timeout: int = 30

    model_config = SettingsConfigDict(frozen=True)

    @property
    def timeout(self) -> tuple[float, float]:
        """(connect, read) timeout tuple as accepted by requests."""
        return (self.connect_timeout, self.read_timeout)

    @classmethod
    def from_env(cls) -> "HttpClientConfig":
        return cls(
            connect_timeout=float(os.getenv("MLCONNECT_CONNECT_TIMEOUT", "10")),
            read_timeout=float(os.getenv("MLCONNECT_READ_TIMEOUT", "60")),
            pool_connections=int(os.getenv("MLCONNECT_POOL_CONNECTIONS", "10")),
            pool_maxsize=int(os.getenv("MLCONNECT_POOL_MAXSIZE", "20")),
            circuit_breaker_threshold=int(os.getenv("MLCONNECT_CIRCUIT_BREAKER_THRESHOLD", "5")),
            circuit_breaker_timeout=int(os.getenv("MLCONNECT_CIRCUIT_BREAKER_TIMEOUT", "30")),
        )


class ArtifactConfig(BaseModel):
    """Configuration for model artifact download and caching.

    The cache layout under `data_root` is::

        ml_cache/models_cache/register/<task_id>/<version>/<model_name>
        ml_cache/models_cache/deploy/<model_id>/<model_name>.zip
        ml_cache/models_cache/deploy/<model_id>/chunks/<n>
        ml_cache/models_cache/models/<model_id>/<version>/<model_name>

    Attributes:
        data_root: Root folder of the cache.
        chunk_size: Size of each chunk file in bytes. Default: 10_000_000.
        model_repo_endpoint: Base URL of the prebuilt model repository.
        model_metalist_endpoint: URL of the prebuilt model meta list.
        download_timeout: Read timeout of downloads in seconds. Default: 300.
        download_max_retries: Transport retries of GET downloads. Default: 3.
    """

    data_root: str = "/tmp/mlconnect"
    chunk_size: int = 10_000_000
    model_repo_endpoint: str | None = None
    model_metalist_endpoint: str | None = None
    download_timeout: float = 300.0
    download_max_retries: int = 3

    model_config = SettingsConfigDict(frozen=True, protected_namespaces=())

    @classmethod
    def from_env(cls) -> "ArtifactConfig":
        return cls(
            data_root=os.getenv("MLCONNECT_DATA_ROOT", "/tmp/mlconnect"),
            chunk_size=int(os.getenv("MLCONNECT_CHUNK_SIZE", "10000000")),
            model_repo_endpoint=os.getenv("MLCONNECT_MODEL_REPO_ENDPOINT"),
            model_metalist_endpoint=os.getenv("MLCONNECT_MODEL_METALIST_ENDPOINT"),
            download_timeout=float(os.getenv("MLCONNECT_DOWNLOAD_TIMEOUT", "300")),
            download_max_retries=int(os.getenv("MLCONNECT_DOWNLOAD_MAX_RETRIES", "3")),
        )

    # Prebuilt model repository

    def prebuilt_model_metalist_url(self) -> str | None:
        return self.model_metalist_endpoint

    def prebuilt_model_config_url(self, model_name: str, version: str, model_format: str) -> str:
        return f"{self.model_repo_endpoint}/{model_name}/{version}/{model_format.lower()}/config.json"

    def prebuilt_model_url(self, model_name: str, version: str, model_format: str) -> str:
        # huggingface/sentence-transformers/all-MiniLM-L6-v2 ->
        # sentence-transformers_all-MiniLM-L6-v2-1.0.1-torch_script.zip
        fmt = model_format.lower()
        file_name = model_name[model_name.find("/") + 1 :].replace("/", "_")
        return f"{self.model_repo_endpoint}/{model_name}/{version}/{fmt}/{file_name}-{version}-{fmt}.zip"

    # Cache layout

    @property
    def cache_path(self) -> Path:
        return Path(self.data_root) / "ml_cache"

    @property
    def models_cache_path(self) -> Path:
        return self.cache_path / "models_cache"

    def register_model_root_path(self) -> Path:
        return self.models_cache_path / REGISTER_MODEL_FOLDER

    def register_model_path(self, model_id: str, model_name: str | None = None, version: str | None = None) -> Path:
        path = self.register_model_root_path() / model_id
        if model_name is not None and version is not None:
            path = path / version / model_name
        return path

    def deploy_model_root_path(self) -> Path:
        return self.models_cache_path / DEPLOY_MODEL_FOLDER

    def deploy_model_path(self, model_id: str) -> Path:
        return self.deploy_model_root_path() / model_id

    def deploy_model_zip_path(self, model_id: str, model_name: str) -> Path:
        return self.deploy_model_path(model_id) / f"{model_name}.zip"

    def deploy_model_chunk_path(self, model_id: str, chunk_number: int) -> Path:
        return self.deploy_model_path(model_id) / "chunks" / str(chunk_number)

    def model_cache_root_path(self) -> Path:
        return self.models_cache_path / "models"

    def model_cache_path(self, model_id: str, model_name: str | None = None, version: str | None = None) -> Path:
        path = self.model_cache_root_path() / model_id
        if model_name is not None and version is not None:
            path = path / version / model_name
        return path


class ObjectStorageConfig(BaseModel):
    """Configuration for the OCI object storage client.

    Attributes:
        endpoint: Default service endpoint. Registration requests may
            override it.
        timeout: Read timeout in seconds. Default: 300.
    """

    endpoint: str | None = None
    timeout: float = 300.0

    model_config = SettingsConfigDict(frozen=True)

    @classmethod
    def from_env(cls) -> "ObjectStorageConfig":
        return cls(
            endpoint=os.getenv("OCI_OS_ENDPOINT"),
            timeout=float(os.getenv("OCI_OS_TIMEOUT", "300")),
        )


class Settings(BaseModel):
    """Immutable runtime configuration.

    Attributes:
        http: Connector executor configuration.
        artifacts: Model artifact configuration.
        object_storage: OCI object storage configuration.
    """

    http: HttpClientConfig
    artifacts: ArtifactConfig
    object_storage: ObjectStorageConfig

    model_config = SettingsConfigDict(frozen=True)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            http=HttpClientConfig.from_env(),
            artifacts=ArtifactConfig.from_env(),
            object_storage=ObjectStorageConfig.from_env(),
        )


@lru_cache(maxsize=1)
def get_settings() -> "Settings":
    """Load and return settings (cached per process).

    Note:
        Settings are loaded once per process. Call `get_settings.cache_clear()`
        to pick up changed environment variables (tests do this).
    """
    return Settings.from_env()
