"""Connector executors, one per protocol family.

`create_executor` picks the executor for a connector's protocol.
"""

import requests

from mlconnect.config import HttpClientConfig, get_settings
from mlconnect.connectors import Connector, ConnectorProtocol, Decryptor
from mlconnect.core.exceptions import UnsupportedProtocolError

from .aws import AwsConnectorExecutor
from .base import RemoteConnectorExecutor
from .http import HttpConnectorExecutor
from .oci import OciConnectorExecutor


def create_executor(
    connector: Connector,
    config: HttpClientConfig | None = None,
    decrypt: Decryptor | None = None,
    session: requests.Session | None = None,
) -> RemoteConnectorExecutor:
    """Create the executor for a connector.

    Args:
        connector: Connector to execute calls for.
        config: Optional HttpClientConfig. If None, uses settings from
            get_settings().
        decrypt: Credential decryption function. Identity when None.
        session: Optional session; defaults to the shared pooled session.

    Returns:
        Executor matching the connector's protocol.

    Example:
        ```python
        from mlconnect.executors import create_executor

        executor = create_executor(connector)
        response = executor.execute_remote_call(url, "POST", payload)
        ```
    """
    if config is None:
        config = get_settings().http

    match connector.protocol:
        case ConnectorProtocol.HTTP:
            executor_cls: type[RemoteConnectorExecutor] = HttpConnectorExecutor
        case ConnectorProtocol.AWS_SIGV4:
            executor_cls = AwsConnectorExecutor
        case ConnectorProtocol.OCI_SIGV1 | ConnectorProtocol.OCI_GENAI:
            executor_cls = OciConnectorExecutor
        case _:
            msg = f"Unsupported connector protocol: {connector.protocol}"
            raise UnsupportedProtocolError(msg)

    return executor_cls(connector=connector, config=config, decrypt=decrypt, session=session)


__all__ = [
    "AwsConnectorExecutor",
    "HttpConnectorExecutor",
    "OciConnectorExecutor",
    "RemoteConnectorExecutor",
    "create_executor",
]
