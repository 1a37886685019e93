"""Unit tests for core.models and core.exceptions modules.

# Test Coverage

The tests cover:
  - ModelFormat.from_str parsing
  - Response: read_text drains and closes the body
  - Tensor output serialization (dataAsMap key, status codes)
  - ArtifactMetadata.to_dict keys
  - RegisterModelInput.oci_auth_parameters
  - Exception status codes and RemoteServiceError message format

# Running Tests

Run with: pytest tests/unit/core/test_models.py
"""

import io

import pytest

from mlconnect.core.exceptions import (
    ArtifactDownloadError,
    InvalidConfigError,
    MLConnectError,
    RemoteServiceError,
    ServiceUnavailableError,
    TransportError,
)
from mlconnect.core.models import (
    ArtifactMetadata,
    ModelFormat,
    ModelTensor,
    ModelTensorOutput,
    ModelTensors,
    RegisterModelInput,
    Response,
)
from mlconnect.foundation.exceptions import UpstreamError


class TestModelFormat:
    """Test suite for ModelFormat parsing."""

    def test_case_insensitive(self) -> None:
        assert ModelFormat.from_str("onnx") is ModelFormat.ONNX
        assert ModelFormat.from_str("Torch_Script") is ModelFormat.TORCH_SCRIPT

    def test_unknown(self) -> None:
        with pytest.raises(ValueError, match="Wrong model format"):
            ModelFormat.from_str("safetensors")


class TestResponse:
    """Test suite for the executor Response."""

    def test_read_text_closes_body(self) -> None:
        """Test that the body is consumed once and released.

        **What it tests:**
          - Full body decoded
          - Stream closed afterwards
        """
        body = io.BytesIO("héllo".encode("utf-8"))
        response = Response(body=body, status_code=200)

        assert response.read_text() == "héllo"
        assert body.closed

    def test_read_text_replaces_invalid_bytes(self) -> None:
        response = Response.from_bytes(b"Gateway \xe9rror", 502)

        assert response.read_text() == "Gateway \ufffdrror"


class TestTensorSerialization:
    """Test suite for tensor output shapes."""

    def test_output_to_dict(self) -> None:
        output = ModelTensorOutput(
            mlmodel_outputs=[
                ModelTensors(tensors=[ModelTensor(name="response", data_as_map={"a": 1})], status_code=200),
                ModelTensors(tensors=[ModelTensor(name="response", result="text")]),
            ]
        )

        assert output.to_dict() == {
            "inference_results": [
                {"output": [{"name": "response", "dataAsMap": {"a": 1}}], "status_code": 200},
                {"output": [{"name": "response", "result": "text"}]},
            ]
        }

    def test_artifact_metadata_keys(self) -> None:
        metadata = ArtifactMetadata(chunk_files=["/c/0"], model_size_in_bytes=10, model_file_hash="abc")

        assert metadata.to_dict() == {"chunk_files": ["/c/0"], "model_size_in_bytes": 10, "model_file_hash": "abc"}


class TestRegisterModelInput:
    """Test suite for RegisterModelInput."""

    def test_oci_auth_parameters(self) -> None:
        register_input = RegisterModelInput(
            model_name="m",
            version="1",
            oci_client_auth_type="USER_PRINCIPAL",
            oci_client_auth_tenant_id="t",
            oci_client_auth_region="us-ashburn-1",
        )

        assert register_input.oci_auth_parameters() == {
            "auth_type": "USER_PRINCIPAL",
            "tenant_id": "t",
            "region": "us-ashburn-1",
        }


class TestExceptions:
    """Test suite for the exception hierarchy."""

    def test_status_codes(self) -> None:
        """Test that every error maps to an HTTP-like status.

        **What it tests:**
          - Validation errors are 400
          - Transport errors are 502, open circuit 503
          - Remote errors keep the remote status
        """
        assert InvalidConfigError("x").status_code == 400
        assert TransportError("x").status_code == 502
        assert ServiceUnavailableError("x").status_code == 503
        assert ArtifactDownloadError("x").status_code == 502
        assert RemoteServiceError(429, "slow down").status_code == 429

    def test_hierarchy(self) -> None:
        assert issubclass(ServiceUnavailableError, TransportError)
        assert issubclass(TransportError, UpstreamError)
        assert issubclass(RemoteServiceError, MLConnectError)
        assert issubclass(InvalidConfigError, ValueError)

    def test_remote_service_error_message(self) -> None:
        assert str(RemoteServiceError(500, '{"error": "x"}')) == 'Error from remote service: {"error": "x"}'
        assert str(RemoteServiceError(404, "gone", "req-1")) == "Error from remote service: gone opc request id: req-1"
