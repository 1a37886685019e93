"""Domain models for remote inference and model artifacts.

This module defines the structured value types exchanged between the
orchestrator, the executors and the artifact helper: input datasets, the
executor `Response`, the tensor output shapes, and model registration input.

All classes use `attrs` for concise, correct class definitions.
"""

import enum
import io
from typing import IO, TYPE_CHECKING, Any

import attrs

if TYPE_CHECKING:
    from mlconnect.connectors.connector import Connector

# Keys of the artifact metadata mapping handed back to callers.
CHUNK_FILES = "chunk_files"
MODEL_SIZE_IN_BYTES = "model_size_in_bytes"
MODEL_FILE_HASH = "model_file_hash"


class ModelFormat(enum.Enum):
    """Packaging format of a model archive."""

    TORCH_SCRIPT = "TORCH_SCRIPT"
    ONNX = "ONNX"

    @classmethod
    def from_str(cls, value: str) -> "ModelFormat":
        try:
            return cls[value.upper()]
        except KeyError:
            msg = f"Wrong model format: {value}"
            raise ValueError(msg) from None


class FunctionName(enum.Enum):
    """Function a model serves. Only the values the runtime branches on."""

    TEXT_EMBEDDING = "TEXT_EMBEDDING"
    SPARSE_ENCODING = "SPARSE_ENCODING"
    SPARSE_TOKENIZE = "SPARSE_TOKENIZE"
    METRICS_CORRELATION = "METRICS_CORRELATION"
    REMOTE = "REMOTE"


# =============================================================================
# Inference input
# =============================================================================


@attrs.define(frozen=True, slots=True)
class TextDocsInput:
    """A list of text documents to run through a remote model.

    Attributes:
        docs: Documents in caller order.
    """

    docs: list[str] = attrs.field(factory=list)


@attrs.define(frozen=True, slots=True)
class RemoteInferenceInput:
    """Free-form parameters for a remote model invocation.

    Attributes:
        parameters: Per-call parameters. They override the connector's own
            parameters of the same name.
    """

    parameters: dict[str, str] = attrs.field(factory=dict)


@attrs.define(frozen=True, slots=True)
class MLInput:
    """One prediction request.

    Attributes:
        function_name: Function served by the remote model.
        dataset: Either text documents or remote inference parameters.
    """

    dataset: TextDocsInput | RemoteInferenceInput
    function_name: FunctionName = FunctionName.REMOTE


# =============================================================================
# Executor response and tensor output
# =============================================================================


@attrs.define(frozen=False, slots=True)
class Response:
    """Result of one HTTP exchange with a remote service.

    The body is a readable binary stream owned by exactly one caller and
    consumed once.

    Attributes:
        body: Readable binary stream of the response body.
        status_code: HTTP status code.
        headers: Response headers (case-insensitive mapping when produced by
            requests).
    """

    body: IO[bytes]
    status_code: int
    headers: Any = attrs.field(factory=dict)

    def read_text(self, encoding: str = "utf-8") -> str:
        """Drain the body stream and decode it.

        Bytes that are not valid in `encoding` are replaced, so error pages
        in other charsets still produce text.

        Returns:
            The full body as text. The stream is closed afterwards.
        """
        try:
            return self.body.read().decode(encoding, errors="replace")
        finally:
            self.body.close()

    @classmethod
    def from_bytes(cls, content: bytes, status_code: int, headers: Any = None) -> "Response":
        return cls(body=io.BytesIO(content), status_code=status_code, headers=headers or {})


@attrs.define(frozen=False, slots=True)
class ModelTensor:
    """One named result produced by a remote model.

    Attributes:
        name: Tensor name (e.g. "response" or "sentence_embedding").
        data_as_map: Parsed JSON document returned by the remote service.
        data: Optional numeric data.
        result: Optional plain-text result.
    """

    name: str
    data_as_map: dict[str, Any] | None = None
    data: list[float] | None = None
    result: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name}
        if self.data_as_map is not None:
            out["dataAsMap"] = self.data_as_map
        if self.data is not None:
            out["data"] = self.data
        if self.result is not None:
            out["result"] = self.result
        return out


@attrs.define(frozen=False, slots=True)
class ModelTensors:
    """Tensors produced by one remote call, tagged with its HTTP status."""

    tensors: list[ModelTensor] = attrs.field(factory=list)
    status_code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"output": [t.to_dict() for t in self.tensors]}
        if self.status_code is not None:
            out["status_code"] = self.status_code
        return out


@attrs.define(frozen=False, slots=True)
class ModelTensorOutput:
    """Ordered outputs of a prediction, one `ModelTensors` per remote call."""

    mlmodel_outputs: list[ModelTensors] = attrs.field(factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"inference_results": [t.to_dict() for t in self.mlmodel_outputs]}


# =============================================================================
# Model artifacts
# =============================================================================


@attrs.define(frozen=True, slots=True)
class ArtifactMetadata:
    """Result of downloading and splitting a model archive.

    Attributes:
        chunk_files: Paths of the chunk files in order.
        model_size_in_bytes: Size of the archive.
        model_file_hash: sha256 hex digest of the archive.
    """

    chunk_files: list[str]
    model_size_in_bytes: int
    model_file_hash: str

    def to_dict(self) -> dict[str, Any]:
        return {
            CHUNK_FILES: list(self.chunk_files),
            MODEL_SIZE_IN_BYTES: self.model_size_in_bytes,
            MODEL_FILE_HASH: self.model_file_hash,
        }


@attrs.define(frozen=True, slots=True)
class RegisterModelInput:
    """Description of a model to register from an archive.

    Attributes:
        model_name: Model name (prebuilt models use the repository path,
            e.g. "huggingface/sentence-transformers/all-MiniLM-L6-v2").
        version: Model version.
        model_format: Archive format.
        hash_value: Expected sha256 hex digest of the archive.
        url: Archive location: http(s) URL, file URL or
            `oci-os://{namespace}/{bucket}/{object}`.
        url_connector: Connector whose DOWNLOAD action fetches the archive.
            Takes precedence over `url`.
        function_name: Function the model serves.
        model_config: Free-form model configuration.
        oci_os_endpoint: OCI object storage endpoint for `oci-os://` URLs.
        oci_client_auth_type: OCI auth type for `oci-os://` URLs.
        oci_client_auth_tenant_id: Tenancy OCID (USER_PRINCIPAL).
        oci_client_auth_user_id: User OCID (USER_PRINCIPAL).
        oci_client_auth_fingerprint: API key fingerprint (USER_PRINCIPAL).
        oci_client_auth_pemfile_path: PEM private key path (USER_PRINCIPAL).
        oci_client_auth_region: Region identifier (USER_PRINCIPAL).
    """

    model_name: str
    version: str
    model_format: ModelFormat | None = None
    hash_value: str | None = None
    url: str | None = None
    url_connector: "Connector | None" = None
    function_name: FunctionName = FunctionName.TEXT_EMBEDDING
    model_config: dict[str, Any] | None = None
    oci_os_endpoint: str | None = None
    oci_client_auth_type: str | None = None
    oci_client_auth_tenant_id: str | None = None
    oci_client_auth_user_id: str | None = None
    oci_client_auth_fingerprint: str | None = None
    oci_client_auth_pemfile_path: str | None = None
    oci_client_auth_region: str | None = None

    def oci_auth_parameters(self) -> dict[str, str]:
        """Return the OCI auth fields in connector-parameter form."""
        fields = {
            "auth_type": self.oci_client_auth_type,
            "tenant_id": self.oci_client_auth_tenant_id,
            "user_id": self.oci_client_auth_user_id,
            "fingerprint": self.oci_client_auth_fingerprint,
            "pemfile_path": self.oci_client_auth_pemfile_path,
            "region": self.oci_client_auth_region,
        }
        return {k: v for k, v in fields.items() if v is not None}
