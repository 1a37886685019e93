"""Authentication descriptors and request signers.

- `config`: OCI auth descriptor and its validating resolver
- `oci`: OCI signing strategies (resource, instance and user principals)
- `aws`: AWS SigV4 signer
"""

from mlconnect.auth.aws import AwsSigV4Signer
from mlconnect.auth.config import AuthConfig, AuthType, validate_connection_parameters
from mlconnect.auth.oci import LazySigner, build_signer

__all__ = [
    "AuthConfig",
    "AuthType",
    "AwsSigV4Signer",
    "LazySigner",
    "build_signer",
    "validate_connection_parameters",
]
