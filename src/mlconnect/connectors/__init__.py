"""Connector definitions and template rendering."""

from mlconnect.connectors.connector import AwsCredentials, Connector, ConnectorAction, Decryptor
from mlconnect.connectors.protocols import ActionType, ConnectorProtocol

__all__ = [
    "ActionType",
    "AwsCredentials",
    "Connector",
    "ConnectorAction",
    "ConnectorProtocol",
    "Decryptor",
]
