"""Executor for plain HTTP connectors.

Requests are sent unsigned; any API key travels in the connector's header
templates (e.g. `Authorization: Bearer ${credential.openAI_key}`).
"""

import attrs
import requests

from mlconnect.connectors import ConnectorProtocol

from .base import RemoteConnectorExecutor


@attrs.define(frozen=False, slots=True)
class HttpConnectorExecutor(RemoteConnectorExecutor):
    """Executor for `http` connectors."""

    supported_protocols = frozenset({ConnectorProtocol.HTTP})

    def _auth(self) -> requests.auth.AuthBase | None:
        return None
