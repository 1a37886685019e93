"""AWS Signature Version 4 request signing.

`AwsSigV4Signer` is a `requests` auth object that signs the final request
(method, URL, headers and body hash) with botocore's `SigV4Auth`. Credentials
are read from the connector: access key, secret key and optional session token
from the credential map, service name and region from the parameters.
"""

from typing import TYPE_CHECKING

import requests
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials

if TYPE_CHECKING:
    from mlconnect.connectors.connector import AwsCredentials, Connector, Decryptor

# Hop-by-hop headers that must not be part of the signature.
_UNSIGNED_HEADERS = frozenset({"connection", "accept-encoding", "user-agent", "content-length"})


class AwsSigV4Signer(requests.auth.AuthBase):
    """Sign requests for an AWS service with SigV4."""

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        service_name: str,
        region: str,
        session_token: str | None = None,
    ) -> None:
        self.service_name = service_name
        self.region = region
        self._credentials = Credentials(access_key, secret_key, session_token)

    @classmethod
    def from_credentials(cls, credentials: "AwsCredentials") -> "AwsSigV4Signer":
        return cls(
            access_key=credentials.access_key,
            secret_key=credentials.secret_key,
            session_token=credentials.session_token,
            service_name=credentials.service_name,
            region=credentials.region,
        )

    @classmethod
    def from_connector(cls, connector: "Connector", decrypt: "Decryptor | None" = None) -> "AwsSigV4Signer":
        """Read credentials and signing scope from an AWS connector."""
        return cls.from_credentials(connector.aws_credentials(decrypt))

    def __call__(self, r: requests.PreparedRequest) -> requests.PreparedRequest:
        headers = {k: v for k, v in r.headers.items() if k.lower() not in _UNSIGNED_HEADERS}
        aws_request = AWSRequest(method=r.method, url=r.url, data=r.body or b"", headers=headers)
        SigV4Auth(self._credentials, self.service_name, self.region).add_auth(aws_request)
        r.headers.update(dict(aws_request.headers.items()))
        return r

    def __repr__(self) -> str:
        return f"AwsSigV4Signer(service_name={self.service_name}, region={self.region})"
