"""Remote inference orchestration.

`RemoteInferenceService` turns a prediction request into one or more remote
calls through a connector executor and maps each response body into
`ModelTensors`.

## Predict flow

1. Merge parameters: connector defaults, then per-call parameters, then the
   parameters produced by the input processor (later wins).
2. Render the request body and validate it as JSON.
3. Render the endpoint and read the HTTP method.
4. Execute the call and drain the response body.
5. Raise `RemoteServiceError` for a status outside [200, 300).
6. Map the body through the output processor and tag it with the status.

## Text document batching

For `TextDocsInput` the service sends the remaining documents on every
iteration and advances by the number of tensors the call produced, at least
one. A remote model that embeds the whole list in one call finishes in one
iteration; a model that embeds one document per call takes one iteration per
document.

## Processors

The input processor returns extra template parameters for a request (by
default the documents as a JSON list under `input`). The output processor
maps a response body to `ModelTensors` (by default one tensor named
`response` holding the parsed JSON document).
"""

import json
import logging
from collections.abc import Callable, Mapping
from typing import IO, Any

import attrs

from mlconnect.connectors import ActionType, Connector
from mlconnect.core.exceptions import RemoteServiceError
from mlconnect.core.models import (
    FunctionName,
    MLInput,
    ModelTensor,
    ModelTensorOutput,
    ModelTensors,
    RemoteInferenceInput,
    Response,
    TextDocsInput,
)
from mlconnect.executors import RemoteConnectorExecutor, create_executor

logger = logging.getLogger(__name__)

OPC_REQUEST_ID_HEADER = "opc-request-id"
RESPONSE_TENSOR_NAME = "response"

InputProcessor = Callable[[MLInput, Connector, Mapping[str, str]], Mapping[str, str]]
OutputProcessor = Callable[[str, Connector, Mapping[str, str]], ModelTensors]


def default_input_processor(ml_input: MLInput, connector: Connector, parameters: Mapping[str, str]) -> dict[str, str]:
    """Expose text documents to templates as `${parameters.input}`."""
    if isinstance(ml_input.dataset, TextDocsInput):
        return {"input": json.dumps(ml_input.dataset.docs)}
    return {}


def default_output_processor(body: str, connector: Connector, parameters: Mapping[str, str]) -> ModelTensors:
    """Wrap the response body in a single tensor named `response`.

    JSON objects become the tensor's `data_as_map`; other JSON values are
    nested under a `response` key; non-JSON bodies are kept as `result`.
    """
    try:
        parsed: Any = json.loads(body) if body else {}
    except json.JSONDecodeError:
        return ModelTensors(tensors=[ModelTensor(name=RESPONSE_TENSOR_NAME, result=body)])
    if not isinstance(parsed, dict):
        parsed = {RESPONSE_TENSOR_NAME: parsed}
    return ModelTensors(tensors=[ModelTensor(name=RESPONSE_TENSOR_NAME, data_as_map=parsed)])


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


@attrs.define(frozen=False, slots=True)
class RemoteInferenceService:
    """Runs predictions and downloads through one connector.

    Attributes:
        connector: Connector definition. Never mutated.
        executor: Executor for the connector's protocol. Created with
            `create_executor` when not given.
        input_processor: Produces extra template parameters per request.
        output_processor: Maps a response body to `ModelTensors`.
    """

    connector: Connector
    executor: RemoteConnectorExecutor | None = None
    input_processor: InputProcessor = default_input_processor
    output_processor: OutputProcessor = default_output_processor

    def __attrs_post_init__(self) -> None:
        if self.executor is None:
            self.executor = create_executor(self.connector)

    def _executor(self) -> RemoteConnectorExecutor:
        return self.executor  # type: ignore[return-value]

    def execute_predict(self, ml_input: MLInput) -> ModelTensorOutput:
        """Run a prediction.

        Args:
            ml_input: Text documents or remote inference parameters.

        Returns:
            One `ModelTensors` per remote call, in call order.

        Raises:
            RemoteServiceError: If the remote service answers outside 2xx.
            MissingParameterError: If a template cannot be rendered.
            InvalidPayloadError: If the rendered body is not valid JSON.
            TransportError: If no response was obtained.
        """
        outputs: list[ModelTensors] = []

        if isinstance(ml_input.dataset, TextDocsInput):
            docs = ml_input.dataset.docs
            processed = 0
            while processed < len(docs):
                batch = MLInput(
                    dataset=TextDocsInput(docs=docs[processed:]),
                    function_name=FunctionName.TEXT_EMBEDDING,
                )
                tensors = self._invoke_predict(batch)
                returned = len(tensors.tensors)
                if returned == 0:
                    logger.warning(
                        "Remote model returned no tensors, advancing by one document",
                        extra={"connector": self.connector.name, "processed": processed, "total": len(docs)},
                    )
                processed += max(returned, 1)
                outputs.append(tensors)
        else:
            outputs.append(self._invoke_predict(ml_input))

        return ModelTensorOutput(mlmodel_outputs=outputs)

    def _merge_parameters(self, ml_input: MLInput) -> dict[str, str]:
        parameters: dict[str, str] = dict(self.connector.parameters)
        if isinstance(ml_input.dataset, RemoteInferenceInput):
            parameters.update(ml_input.dataset.parameters)
        parameters.update(self.input_processor(ml_input, self.connector, parameters))
        return parameters

    def _invoke_predict(self, ml_input: MLInput) -> ModelTensors:
        parameters = self._merge_parameters(ml_input)

        payload = self.connector.create_predict_payload(parameters)
        self.connector.validate_payload(payload)
        endpoint = self.connector.get_predict_endpoint(parameters)
        method = self.connector.get_predict_http_method()

        response = self._executor().execute_remote_call(endpoint, method, payload, ActionType.PREDICT, parameters)
        body = response.read_text()

        if not _is_success(response.status_code):
            logger.warning(
                "Remote service returned an error",
                extra={"invocation": {"connector": self.connector.name, "status_code": response.status_code}},
            )
            raise RemoteServiceError(response.status_code, body)

        tensors = self.output_processor(body, self.connector, parameters)
        tensors.status_code = response.status_code
        return tensors

    def execute_download(self, parameters: Mapping[str, str] | None = None) -> IO[bytes]:
        """Fetch a binary artifact through the connector's DOWNLOAD action.

        Args:
            parameters: Extra template parameters (override connector ones).

        Returns:
            The unread response body stream. The caller must close it.

        Raises:
            RemoteServiceError: If the remote service answers outside 2xx.
                The message carries the `opc-request-id` when one was sent.
        """
        merged: dict[str, str] = dict(self.connector.parameters)
        if parameters:
            merged.update(parameters)

        payload = self.connector.create_payload(ActionType.DOWNLOAD, merged)
        self.connector.validate_payload(payload)
        endpoint = self.connector.get_endpoint(ActionType.DOWNLOAD, merged)
        method = self.connector.get_http_method(ActionType.DOWNLOAD)

        response = self._executor().execute_remote_call(endpoint, method, payload, ActionType.DOWNLOAD, merged)
        if not _is_success(response.status_code):
            raise RemoteServiceError(response.status_code, response.read_text(), _request_id(response))
        return response.body


def _request_id(response: Response) -> str | None:
    headers = response.headers or {}
    # requests returns a case-insensitive mapping; plain dicts are checked by hand.
    value = headers.get(OPC_REQUEST_ID_HEADER)
    if value is None and isinstance(headers, dict):
        for name, header_value in headers.items():
            if name.lower() == OPC_REQUEST_ID_HEADER:
                return header_value
    return value
