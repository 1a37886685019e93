"""Model artifact download, verification and chunking.

`ModelArtifactHelper` fetches a model archive at registration time, checks
its layout and digest, and splits it into fixed-size chunk files.

## Sources

- `url_connector`: the connector's DOWNLOAD action, through
  `RemoteInferenceService.execute_download`
- `oci-os://{namespace}/{bucket}/{object}`: OCI object storage, signed with
  the registration request's OCI auth fields
- `file://...`: a local file
- `http(s)://...`: a plain GET

## Archive layout

A model archive is a zip holding exactly one model file of the declared
format (`*.pt` for TORCH_SCRIPT, `*.onnx` for ONNX) and a `tokenizer.json`.
Sparse tokenizers need no model file; metrics correlation models need no
tokenizer.

## Guarantees

- The sha256 digest is compared with the declared hash before any chunk is
  written.
- The downloaded archive is removed when the call ends, whatever the outcome.
"""

import hashlib
import json
import logging
import os
import shutil
import zipfile
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any
from urllib.parse import urlparse
from urllib.request import url2pathname

import attrs
import requests

from mlconnect.auth.config import AuthConfig
from mlconnect.auth.oci import LazySigner, build_signer
from mlconnect.clients import ObjectStorageClientWrapper, create_object_storage_client
from mlconnect.config import ArtifactConfig, get_settings
from mlconnect.connectors import Connector
from mlconnect.core.exceptions import (
    ArtifactDownloadError,
    ArtifactError,
    HashMismatchError,
    InvalidConfigError,
    ModelFormatMismatchError,
    MultipleModelFilesError,
    NoModelFileError,
    NoTokenizerFileError,
)
from mlconnect.core.invocation import RemoteInferenceService
from mlconnect.core.models import ArtifactMetadata, FunctionName, ModelFormat, RegisterModelInput
from mlconnect.foundation.http import create_session

logger = logging.getLogger(__name__)

PYTORCH_FILE_EXTENSION = ".pt"
ONNX_FILE_EXTENSION = ".onnx"
TOKENIZER_FILE_NAME = "tokenizer.json"
OCI_OS_SCHEME = "oci-os"

MODEL_META_LIST_FILE_NAME = "model_meta_list.json"
MODEL_CONFIG_FILE_NAME = "config.json"

# Fields of a prebuilt model config.json
MODEL_FORMAT_FIELD = "model_format"
MODEL_CONFIG_FIELD = "model_config"
HASH_VALUE_FIELD = "model_content_hash_value"

_MODEL_FILE_EXTENSIONS: dict[ModelFormat, str] = {
    ModelFormat.TORCH_SCRIPT: PYTORCH_FILE_EXTENSION,
    ModelFormat.ONNX: ONNX_FILE_EXTENSION,
}

_READ_BLOCK_SIZE = 1024 * 1024


# =============================================================================
# File helpers
# =============================================================================


def calculate_file_hash(path: str | os.PathLike) -> str:
    """Return the sha256 hex digest of a file."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(_READ_BLOCK_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


def split_file_into_chunks(path: str | os.PathLike, output_dir: str | os.PathLike, chunk_size: int) -> list[str]:
    """Split a file into sequential chunks named 0, 1, 2, ...

    Returns:
        Chunk file paths in order.
    """
    if chunk_size <= 0:
        msg = f"Chunk size must be positive, got {chunk_size}"
        raise ValueError(msg)
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    chunk_files: list[str] = []
    with open(path, "rb") as f:
        index = 0
        while True:
            data = f.read(chunk_size)
            if not data:
                break
            chunk_path = out / str(index)
            chunk_path.write_bytes(data)
            chunk_files.append(str(chunk_path))
            index += 1
    return chunk_files


def delete_quietly(path: str | os.PathLike) -> None:
    """Remove a file or folder, logging instead of raising on failure."""
    target = Path(path)
    try:
        if target.is_dir():
            shutil.rmtree(target)
        elif target.exists():
            target.unlink()
    except OSError as e:
        logger.warning("Failed to delete %s", target, extra={"error_type": type(e).__name__})


def _copy_stream(stream: Any, target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "wb") as out:
        shutil.copyfileobj(stream, out, _READ_BLOCK_SIZE)


# =============================================================================
# Model artifact helper
# =============================================================================


@attrs.define(frozen=False, slots=True)
class ModelArtifactHelper:
    """Downloads, verifies and splits model archives.

    Attributes:
        config: Cache layout, chunk size and repository endpoints.
        session: Session for http(s) downloads.
        object_storage_factory: Builds the OCI object storage client from a
            signer and an optional endpoint.
        inference_service_factory: Builds the service that runs a
            connector's DOWNLOAD action.
    """

    config: ArtifactConfig = attrs.field(factory=lambda: get_settings().artifacts)
    session: requests.Session | None = None
    object_storage_factory: Callable[[LazySigner, str | None], ObjectStorageClientWrapper] = create_object_storage_client
    inference_service_factory: Callable[[Connector], RemoteInferenceService] = RemoteInferenceService

    def __attrs_post_init__(self) -> None:
        if self.session is None:
            self.session = create_session(max_retries=self.config.download_max_retries)

    # -------------------------------------------------------------------------
    # Download and split
    # -------------------------------------------------------------------------

    def download_and_split(
        self,
        register_input: RegisterModelInput,
        task_id: str,
        version: str | None = None,
    ) -> ArtifactMetadata:
        """Download a model archive, verify it and split it into chunks.

        Args:
            register_input: Model to register.
            task_id: Registration task id; names the staging folder.
            version: Version folder. Defaults to the model's version.

        Returns:
            Chunk paths, archive size and sha256 digest.

        Raises:
            InvalidConfigError: If the source URL is missing or malformed.
            ArtifactDownloadError: If the archive cannot be fetched.
            HashMismatchError: If the digest differs from the declared hash.
                No chunk file is written in that case.
            ArtifactError: If the archive layout is wrong.
        """
        version = version or register_input.version
        register_path = self.config.register_model_path(task_id, register_input.model_name, version)
        zip_path = Path(f"{register_path}.zip")
        chunks_path = register_path / "chunks"
        logger.debug("Downloading model", extra={"task_id": task_id, "model_name": register_input.model_name})

        try:
            self._download_model(register_input, zip_path)
            self.verify_model_zip_file(
                register_input.model_format,
                zip_path,
                register_input.model_name,
                register_input.function_name,
            )
            model_hash = calculate_file_hash(zip_path)
            if model_hash != register_input.hash_value:
                logger.error(
                    "Model content hash can't match original hash value when registering",
                    extra={"task_id": task_id, "model_name": register_input.model_name},
                )
                msg = "model content changed"
                raise HashMismatchError(msg)

            try:
                chunk_files = split_file_into_chunks(zip_path, chunks_path, self.config.chunk_size)
            except OSError:
                delete_quietly(chunks_path)
                raise
            return ArtifactMetadata(
                chunk_files=chunk_files,
                model_size_in_bytes=zip_path.stat().st_size,
                model_file_hash=model_hash,
            )
        finally:
            delete_quietly(zip_path)

    def _download_model(self, register_input: RegisterModelInput, target: Path) -> None:
        if register_input.url_connector is not None:
            self._download_with_connector(register_input.url_connector, target)
            return

        url = register_input.url
        if not url:
            msg = "Model url is required"
            raise InvalidConfigError(msg)

        scheme = urlparse(url).scheme.lower()
        if scheme == OCI_OS_SCHEME:
            self._download_from_object_storage(register_input, url, target)
        elif scheme == "file":
            self._copy_local_file(url, target)
        elif scheme in ("http", "https"):
            self.download_file(url, target)
        else:
            msg = f"Unsupported model url scheme: {scheme or url}"
            raise InvalidConfigError(msg)

    def _download_with_connector(self, connector: Connector, target: Path) -> None:
        service = self.inference_service_factory(connector)
        stream = service.execute_download()
        try:
            _copy_stream(stream, target)
        except OSError as e:
            msg = f"Failed to store model downloaded by connector {connector.name}: {e}"
            raise ArtifactDownloadError(msg) from e
        finally:
            stream.close()

    def _download_from_object_storage(self, register_input: RegisterModelInput, url: str, target: Path) -> None:
        parsed = urlparse(url)
        namespace = parsed.netloc
        # path is expected to be /{bucket}/{object}
        parts = parsed.path.split("/")
        if not namespace or len(parts) != 3 or not parts[1] or not parts[2]:
            msg = f"Invalid OCI object storage URI {url}"
            raise InvalidConfigError(msg)
        bucket, object_name = parts[1], parts[2]

        signer = build_signer(AuthConfig.from_mapping(register_input.oci_auth_parameters()))
        client = self.object_storage_factory(signer, register_input.oci_os_endpoint)
        client.download_to_file(namespace, bucket, object_name, target)

    @staticmethod
    def _copy_local_file(url: str, target: Path) -> None:
        source = Path(url2pathname(urlparse(url).path))
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as e:
            msg = f"Failed to copy model file {source}: {e}"
            raise ArtifactDownloadError(msg) from e

    def download_file(self, url: str, target: str | os.PathLike) -> Path:
        """GET `url` into `target`.

        Raises:
            ArtifactDownloadError: On transport failure or non-2xx status.
        """
        path = Path(target)
        timeout = (10.0, self.config.download_timeout)
        try:
            with self.session.get(url, stream=True, timeout=timeout) as response:  # type: ignore[union-attr]
                response.raise_for_status()
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(path, "wb") as out:
                    for block in response.iter_content(chunk_size=_READ_BLOCK_SIZE):
                        out.write(block)
        except requests.RequestException as e:
            msg = f"Failed to download {url}: {e}"
            raise ArtifactDownloadError(msg) from e
        return path

    # -------------------------------------------------------------------------
    # Verification
    # -------------------------------------------------------------------------

    def verify_model_zip_file(
        self,
        model_format: ModelFormat | None,
        model_zip_file_path: str | os.PathLike,
        model_name: str,
        function_name: FunctionName | None,
    ) -> None:
        """Check the layout of a model archive.

        Raises:
            ModelFormatMismatchError: If the archive holds a model file of a
                format other than `model_format`.
            MultipleModelFilesError: If it holds more than one model file.
            NoModelFileError: If it holds no model file (sparse tokenizers
                excepted).
            NoTokenizerFileError: If it holds no tokenizer.json (metrics
                correlation excepted).
            ArtifactError: If the file is not a zip archive.
        """
        has_model_file = False
        has_tokenizer_file = False
        try:
            with zipfile.ZipFile(model_zip_file_path) as archive:
                names = archive.namelist()
        except zipfile.BadZipFile as e:
            msg = f"Model file of {model_name} is not a zip archive"
            raise ArtifactError(msg) from e

        for file_name in names:
            for fmt, extension in _MODEL_FILE_EXTENSIONS.items():
                if not file_name.endswith(extension):
                    continue
                if model_format is not fmt:
                    declared = model_format.value if model_format is not None else None
                    msg = f"Model format is {declared}, but find {extension} file"
                    raise ModelFormatMismatchError(msg)
                if has_model_file:
                    msg = "Find multiple model files, but expected only one"
                    raise MultipleModelFilesError(msg)
                has_model_file = True
            if file_name == TOKENIZER_FILE_NAME:
                has_tokenizer_file = True

        if not has_model_file and function_name is not FunctionName.SPARSE_TOKENIZE:
            msg = "Can't find model file"
            raise NoModelFileError(msg)
        if not has_tokenizer_file and function_name is not FunctionName.METRICS_CORRELATION:
            msg = "No tokenizer file"
            raise NoTokenizerFileError(msg)

    @staticmethod
    def is_model_allowed(register_input: RegisterModelInput, model_meta_list: Iterable[Mapping[str, Any]]) -> bool:
        """Return True if the model name, version and format are listed."""
        version = register_input.version.lower()
        model_format = register_input.model_format.value.lower() if register_input.model_format else None
        for meta in model_meta_list:
            if (
                meta.get("name") == register_input.model_name
                and version in (meta.get("version") or [])
                and model_format in (meta.get("format") or [])
            ):
                return True
        return False

    # -------------------------------------------------------------------------
    # Prebuilt models
    # -------------------------------------------------------------------------

    def download_prebuilt_model_meta_list(self, task_id: str, register_input: RegisterModelInput) -> list[dict[str, Any]]:
        """Fetch the list of prebuilt models from the model repository.

        Raises:
            InvalidConfigError: If no meta list endpoint is configured.
            ArtifactDownloadError: If the list cannot be fetched.
        """
        url = self.config.prebuilt_model_metalist_url()
        if not url:
            msg = "Prebuilt model meta list endpoint is not configured"
            raise InvalidConfigError(msg)
        register_path = self.config.register_model_path(task_id, register_input.model_name, register_input.version)
        try:
            cache_file = self.download_file(url, register_path / MODEL_META_LIST_FILE_NAME)
            meta_list = json.loads(cache_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            msg = f"Prebuilt model meta list is not valid JSON: {e}"
            raise ArtifactDownloadError(msg) from e
        finally:
            delete_quietly(self.config.register_model_path(task_id))
        if not isinstance(meta_list, list):
            msg = "Prebuilt model meta list is not a list"
            raise ArtifactDownloadError(msg)
        return meta_list

    def download_prebuilt_model_config(self, task_id: str, register_input: RegisterModelInput) -> RegisterModelInput:
        """Fetch a prebuilt model's config.json and build its registration input.

        The returned input points `url` at the prebuilt archive and carries
        the format, hash and model config from the repository.

        Raises:
            InvalidConfigError: If the repository endpoint or the model
                format is missing.
            ArtifactError: If the config cannot be fetched or is empty.
        """
        if not self.config.model_repo_endpoint:
            msg = "Prebuilt model repository endpoint is not configured"
            raise InvalidConfigError(msg)
        if register_input.model_format is None:
            msg = "Model format is required for prebuilt models"
            raise InvalidConfigError(msg)

        name, version = register_input.model_name, register_input.version
        fmt = register_input.model_format.value
        register_path = self.config.register_model_path(task_id, name, version)
        try:
            cache_file = self.download_file(
                self.config.prebuilt_model_config_url(name, version, fmt),
                register_path / MODEL_CONFIG_FILE_NAME,
            )
            config = json.loads(cache_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            msg = f"Prebuilt model config is not valid JSON: {e}"
            raise ArtifactDownloadError(msg) from e
        finally:
            delete_quietly(self.config.register_model_path(task_id))

        if not isinstance(config, dict) or not config:
            msg = "model config not found"
            raise ArtifactError(msg)

        model_format = register_input.model_format
        if MODEL_FORMAT_FIELD in config:
            model_format = ModelFormat.from_str(str(config[MODEL_FORMAT_FIELD]))
        model_config = _normalize_model_config(config.get(MODEL_CONFIG_FIELD))
        hash_value = config.get(HASH_VALUE_FIELD)

        return attrs.evolve(
            register_input,
            url=self.config.prebuilt_model_url(name, version, fmt),
            model_format=model_format,
            model_config=model_config if model_config is not None else register_input.model_config,
            hash_value=str(hash_value) if hash_value is not None else register_input.hash_value,
        )

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    def delete_file_cache(self, model_id: str) -> None:
        """Remove every cached file of a model."""
        delete_quietly(self.config.model_cache_path(model_id))
        delete_quietly(self.config.deploy_model_path(model_id))
        delete_quietly(self.config.register_model_path(model_id))


def _normalize_model_config(raw: Any) -> dict[str, Any] | None:
    if not isinstance(raw, dict):
        return None
    config: dict[str, Any] = {}
    for key, value in raw.items():
        if key in ("embedding_dimension", "model_max_length"):
            config[key] = int(value)
        elif key == "pooling_mode":
            config[key] = str(value).upper()
        elif key == "normalize_result":
            config[key] = str(value).lower() == "true"
        elif key == "all_config":
            config[key] = value if isinstance(value, str) else json.dumps(value)
        elif key in ("model_type", "framework_type"):
            config[key] = str(value)
    return config
