"""Executor for AWS SigV4 connectors.

The signer is built once from the connector's decrypted credentials and signs
every request (method, URL, headers, body hash) with botocore.
"""

import attrs
import requests

from mlconnect.auth.aws import AwsSigV4Signer
from mlconnect.connectors import ConnectorProtocol

from .base import RemoteConnectorExecutor


@attrs.define(frozen=False, slots=True)
class AwsConnectorExecutor(RemoteConnectorExecutor):
    """Executor for `aws_sigv4` connectors."""

    supported_protocols = frozenset({ConnectorProtocol.AWS_SIGV4})

    _signer: AwsSigV4Signer = attrs.field(init=False)

    def __attrs_post_init__(self) -> None:
        super().__attrs_post_init__()
        self._signer = AwsSigV4Signer.from_connector(self.connector, self.decrypt)

    def _auth(self) -> requests.auth.AuthBase | None:
        return self._signer
