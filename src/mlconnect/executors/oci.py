"""Executor for OCI connectors (`oci_sigv1` and `oci_genai`).

The signing strategy comes from the connector's `AuthConfig`, validated when
the connector was loaded and rebuilt here from decrypted credential
values. Strategies initialize lazily: a USER_PRINCIPAL key file is read on
the first signed request, and a failed read is retried on the next one.
"""

import attrs
import requests

from mlconnect.auth.oci import LazySigner, build_signer
from mlconnect.connectors import ConnectorProtocol

from .base import RemoteConnectorExecutor


@attrs.define(frozen=False, slots=True)
class OciConnectorExecutor(RemoteConnectorExecutor):
    """Executor for `oci_sigv1` / `oci_genai` connectors."""

    supported_protocols = frozenset({ConnectorProtocol.OCI_SIGV1, ConnectorProtocol.OCI_GENAI})

    _signer: LazySigner = attrs.field(init=False)

    def __attrs_post_init__(self) -> None:
        super().__attrs_post_init__()
        self._signer = build_signer(self.connector.oci_auth_config(self.decrypt))

    def _auth(self) -> requests.auth.AuthBase | None:
        return self._signer
