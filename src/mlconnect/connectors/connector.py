"""Connector model.

A `Connector` is the declarative description of a remote model endpoint: its
protocol, default parameters, (encrypted) credentials and the actions it
supports. Each action carries templates for the URL, headers and request
body. Connectors are immutable; per-request values travel in a separate
parameters mapping, and `clone()` produces an independent copy through a JSON
round trip.

## Usage

```python
from mlconnect.connectors import ActionType, Connector

connector = Connector.from_dict(document)
params = {**connector.parameters, "prompt": "hello"}
payload = connector.create_payload(ActionType.PREDICT, params)
connector.validate_payload(payload)
url = connector.get_endpoint(ActionType.PREDICT, params)
```

## Protocol-specific state

- `aws_sigv4` connectors must carry `access_key` and `secret_key` credentials
  and `service_name` and `region` parameters.
- `oci_sigv1` / `oci_genai` connectors get a validated `AuthConfig` built once
  when the connector is created.
"""

import json
from collections.abc import Callable, Mapping
from typing import Any

import attrs

from mlconnect.auth.config import AuthConfig, resolve_auth_fields
from mlconnect.connectors import templates
from mlconnect.connectors.protocols import ActionType, ConnectorProtocol
from mlconnect.core.exceptions import (
    ActionNotFoundError,
    InvalidConfigError,
    InvalidPayloadError,
    MissingParameterError,
)

ACCESS_KEY_FIELD = "access_key"
SECRET_KEY_FIELD = "secret_key"
SESSION_TOKEN_FIELD = "session_token"
SERVICE_NAME_FIELD = "service_name"
REGION_FIELD = "region"

Decryptor = Callable[[str], str]


def _identity(value: str) -> str:
    return value


def _str_dict(value: Mapping[str, Any] | None) -> dict[str, str]:
    if not value:
        return {}
    return {str(k): v if v is None else str(v) for k, v in value.items()}


@attrs.define(frozen=True, slots=True)
class AwsCredentials:
    """Decrypted AWS signing material of one connector."""

    access_key: str = attrs.field(repr=False)
    secret_key: str = attrs.field(repr=False)
    service_name: str
    region: str
    session_token: str | None = attrs.field(default=None, repr=False)


@attrs.define(frozen=True, slots=True)
class ConnectorAction:
    """One call a connector can make.

    Attributes:
        action_type: PREDICT or DOWNLOAD.
        method: HTTP method, GET or POST.
        url: URL template.
        headers: Header templates.
        request_body: Body template, or None for body-less calls.
    """

    action_type: ActionType
    method: str
    url: str
    headers: dict[str, str] | None = None
    request_body: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConnectorAction":
        action_type = data.get("action_type")
        if action_type is None:
            msg = "Connector action has no action_type"
            raise InvalidConfigError(msg)
        if not data.get("method"):
            msg = "Connector action has no method"
            raise InvalidConfigError(msg)
        if not data.get("url"):
            msg = "Connector action has no url"
            raise InvalidConfigError(msg)
        return cls(
            action_type=ActionType.from_str(str(action_type)),
            method=str(data["method"]),
            url=str(data["url"]),
            headers=_str_dict(data.get("headers")) or None,
            request_body=data.get("request_body"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "action_type": self.action_type.value,
            "method": self.method,
            "url": self.url,
        }
        if self.headers is not None:
            out["headers"] = dict(self.headers)
        if self.request_body is not None:
            out["request_body"] = self.request_body
        return out


@attrs.define(frozen=True, slots=True)
class Connector:
    """Immutable connector definition.

    Attributes:
        name: Connector name, used in logs and errors.
        protocol: Transport and signing scheme.
        description: Free text.
        version: Connector version.
        parameters: Default template parameters.
        credential: Credential values (possibly encrypted).
        actions: Declared actions, in order.
        backend_roles: Access control roles.
        access_mode: Access control mode.
        owner: Owning user.
        auth_config: OCI auth descriptor, set for OCI protocols only.
    """

    name: str
    protocol: ConnectorProtocol = attrs.field(converter=ConnectorProtocol.validate)
    description: str | None = None
    version: str | None = None
    parameters: dict[str, str] = attrs.field(factory=dict, converter=_str_dict)
    credential: dict[str, str] = attrs.field(factory=dict, converter=_str_dict, repr=False)
    actions: list[ConnectorAction] = attrs.field(factory=list, converter=list)
    backend_roles: list[str] = attrs.field(factory=list, converter=list)
    access_mode: str | None = None
    owner: str | None = None
    auth_config: AuthConfig | None = attrs.field(init=False, default=None, eq=False)

    def __attrs_post_init__(self) -> None:
        if self.protocol is ConnectorProtocol.AWS_SIGV4:
            self._validate_aws_fields()
        elif self.protocol.is_oci:
            auth_fields = resolve_auth_fields(self.parameters, self.credential)
            object.__setattr__(self, "auth_config", AuthConfig.from_mapping(auth_fields))

    def _validate_aws_fields(self) -> None:
        if not self.credential.get(ACCESS_KEY_FIELD):
            msg = "Missing access key"
            raise InvalidConfigError(msg)
        if not self.credential.get(SECRET_KEY_FIELD):
            msg = "Missing secret key"
            raise InvalidConfigError(msg)
        if not self.parameters.get(SERVICE_NAME_FIELD):
            msg = "Missing service name"
            raise InvalidConfigError(msg)
        if not self.parameters.get(REGION_FIELD):
            msg = "Missing region"
            raise InvalidConfigError(msg)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Connector":
        """Build a connector from its document form.

        Raises:
            InvalidConfigError: If the document is malformed or fails
                protocol-specific validation.
        """
        if not data.get("name"):
            msg = "Connector name is required"
            raise InvalidConfigError(msg)
        return cls(
            name=data["name"],
            protocol=data.get("protocol"),
            description=data.get("description"),
            version=data.get("version"),
            parameters=data.get("parameters") or {},
            credential=data.get("credential") or {},
            actions=[ConnectorAction.from_dict(a) for a in data.get("actions") or []],
            backend_roles=data.get("backend_roles") or [],
            access_mode=data.get("access_mode"),
            owner=data.get("owner"),
        )

    @classmethod
    def from_json(cls, text: str) -> "Connector":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            msg = f"Connector document is not valid JSON: {e}"
            raise InvalidConfigError(msg) from e
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name, "protocol": self.protocol.value}
        if self.description is not None:
            out["description"] = self.description
        if self.version is not None:
            out["version"] = self.version
        out["parameters"] = dict(self.parameters)
        out["credential"] = dict(self.credential)
        out["actions"] = [a.to_dict() for a in self.actions]
        if self.backend_roles:
            out["backend_roles"] = list(self.backend_roles)
        if self.access_mode is not None:
            out["access_mode"] = self.access_mode
        if self.owner is not None:
            out["owner"] = self.owner
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def clone(self) -> "Connector":
        """Return an independent copy through a serialize/deserialize round trip."""
        return Connector.from_json(self.to_json())

    # -------------------------------------------------------------------------
    # Actions and rendering
    # -------------------------------------------------------------------------

    def find_action(self, action_type: ActionType) -> ConnectorAction | None:
        for action in self.actions:
            if action.action_type is action_type:
                return action
        return None

    def get_action(self, action_type: ActionType) -> ConnectorAction:
        action = self.find_action(action_type)
        if action is None:
            msg = f"No {action_type.value} action found in connector {self.name}"
            raise ActionNotFoundError(msg)
        return action

    def get_endpoint(self, action_type: ActionType, parameters: Mapping[str, str] | None = None) -> str:
        """Render the URL of an action."""
        return templates.render(self.get_action(action_type).url, parameters, what="endpoint")

    def get_http_method(self, action_type: ActionType) -> str:
        """Return the declared HTTP method of an action.

        Raises:
            ActionNotFoundError: If the connector has no such action.
        """
        return self.get_action(action_type).method

    def create_payload(self, action_type: ActionType, parameters: Mapping[str, str] | None = None) -> str | None:
        """Render the request body of an action, or None if it declares none."""
        body = self.get_action(action_type).request_body
        if body is None:
            return None
        return templates.render(body, parameters, what="payload")

    @staticmethod
    def validate_payload(payload: str | None) -> None:
        """Check that a rendered payload is complete JSON.

        None and empty payloads are accepted (body-less calls).

        Raises:
            MissingParameterError: If a placeholder survived rendering.
            InvalidPayloadError: If the payload is not valid JSON.
        """
        if not payload:
            return
        leftovers = templates.find_placeholders(payload)
        if leftovers:
            msg = f"Some parameter placeholder not filled in payload: {', '.join(leftovers)}"
            raise MissingParameterError(msg, placeholders=leftovers)
        try:
            json.loads(payload)
        except json.JSONDecodeError as e:
            msg = f"Invalid payload: {e}"
            raise InvalidPayloadError(msg) from e

    def get_decrypted_headers(
        self,
        action_type: ActionType,
        decrypt: Decryptor | None = None,
        parameters: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """Render the headers of an action with decrypted credentials.

        Decrypted values exist only in the returned mapping.
        """
        headers = self.get_action(action_type).headers or {}
        if not headers:
            return {}
        decrypted = self.decrypted_credential(decrypt)
        return {
            name: templates.render(value, parameters, decrypted, what=f"header {name}")
            for name, value in headers.items()
        }

    def decrypted_credential(self, decrypt: Decryptor | None = None) -> dict[str, str]:
        decrypt = decrypt or _identity
        return {k: decrypt(v) for k, v in self.credential.items() if v is not None}

    # Predict shortcuts

    def get_predict_endpoint(self, parameters: Mapping[str, str] | None = None) -> str:
        return self.get_endpoint(ActionType.PREDICT, parameters)

    def get_predict_http_method(self) -> str:
        return self.get_http_method(ActionType.PREDICT)

    def create_predict_payload(self, parameters: Mapping[str, str] | None = None) -> str | None:
        return self.create_payload(ActionType.PREDICT, parameters)

    # -------------------------------------------------------------------------
    # OCI
    # -------------------------------------------------------------------------

    def oci_auth_config(self, decrypt: Decryptor | None = None) -> AuthConfig:
        """Return the OCI auth descriptor with credential values decrypted.

        Auth fields kept in `credential` are stored encrypted; the descriptor
        built at load time only proves they are present. With a `decrypt`
        function the descriptor is rebuilt from the decrypted values.

        Raises:
            InvalidConfigError: If the connector is not an OCI connector.
        """
        if self.auth_config is None:
            msg = f"Connector {self.name} has no OCI auth configuration"
            raise InvalidConfigError(msg)
        if decrypt is None:
            return self.auth_config
        return AuthConfig.from_mapping(resolve_auth_fields(self.parameters, self.decrypted_credential(decrypt)))

    # -------------------------------------------------------------------------
    # AWS
    # -------------------------------------------------------------------------

    def aws_credentials(self, decrypt: Decryptor | None = None) -> AwsCredentials:
        """Return decrypted SigV4 signing material.

        Raises:
            InvalidConfigError: If the connector is not an AWS connector.
        """
        if self.protocol is not ConnectorProtocol.AWS_SIGV4:
            msg = f"Connector {self.name} does not use {ConnectorProtocol.AWS_SIGV4.value}"
            raise InvalidConfigError(msg)
        credential = self.decrypted_credential(decrypt)
        return AwsCredentials(
            access_key=credential[ACCESS_KEY_FIELD],
            secret_key=credential[SECRET_KEY_FIELD],
            session_token=credential.get(SESSION_TOKEN_FIELD),
            service_name=self.parameters[SERVICE_NAME_FIELD],
            region=self.parameters[REGION_FIELD],
        )
