"""Connector protocols and action types."""

import enum

from mlconnect.core.exceptions import InvalidConfigError, UnsupportedProtocolError


class ConnectorProtocol(enum.Enum):
    """Transport and signing scheme of a connector."""

    HTTP = "http"
    AWS_SIGV4 = "aws_sigv4"
    OCI_SIGV1 = "oci_sigv1"
    OCI_GENAI = "oci_genai"

    @property
    def is_oci(self) -> bool:
        return self in (ConnectorProtocol.OCI_SIGV1, ConnectorProtocol.OCI_GENAI)

    @classmethod
    def validate(cls, value: "str | ConnectorProtocol | None") -> "ConnectorProtocol":
        """Parse a protocol name.

        Raises:
            UnsupportedProtocolError: If the value is None or unknown.
        """
        if isinstance(value, ConnectorProtocol):
            return value
        valid = ", ".join(p.value for p in cls)
        if value is None:
            msg = f"Connector protocol is null. Please use one of [{valid}]"
            raise UnsupportedProtocolError(msg)
        try:
            return cls(value)
        except ValueError:
            msg = f"Unsupported connector protocol. Please use one of [{valid}]"
            raise UnsupportedProtocolError(msg) from None


class ActionType(enum.Enum):
    """Kinds of calls a connector declares."""

    PREDICT = "PREDICT"
    DOWNLOAD = "DOWNLOAD"

    @classmethod
    def from_str(cls, value: str) -> "ActionType":
        try:
            return cls[value.upper()]
        except KeyError:
            msg = f"Wrong action type: {value}"
            raise InvalidConfigError(msg) from None
