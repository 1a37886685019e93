"""OCI request signing strategies.

`build_signer` turns an `AuthConfig` into a `requests` auth object that signs
each outgoing request with the OCI HTTP signature scheme:

- RESOURCE_PRINCIPAL: `oci.auth.signers.get_resource_principals_signer()`
- INSTANCE_PRINCIPAL: `oci.auth.signers.InstancePrincipalsSecurityTokenSigner()`
- USER_PRINCIPAL: `oci.signer.Signer` built from tenancy, user, fingerprint and
  the PEM private key file

Every strategy is created lazily, on the first request it signs. For
USER_PRINCIPAL this means the PEM file is only read at signing time; an
unreadable key raises `KeyLoadError` from that request and the next request
tries again. The strategy object is shared by concurrent invocations, so the
one-time construction is guarded by a lock.
"""

import logging
import threading
from collections.abc import Callable

import oci
import requests

from mlconnect.auth.config import AuthConfig, AuthType, validate_connection_parameters
from mlconnect.core.exceptions import KeyLoadError, UnsupportedAuthTypeError

logger = logging.getLogger(__name__)


class LazySigner(requests.auth.AuthBase):
    """Signer whose underlying OCI signer is created on first use.

    Args:
        supplier: Zero-argument callable returning an OCI signer (itself a
            `requests.auth.AuthBase`).
        description: Human readable name used in errors and logs.
        region: Region associated with the credentials, if known.
    """

    def __init__(self, supplier: Callable[[], requests.auth.AuthBase], description: str, region: str | None = None) -> None:
        self._supplier = supplier
        self._description = description
        self._delegate: requests.auth.AuthBase | None = None
        self._lock = threading.Lock()
        self.region = region

    @property
    def initialized(self) -> bool:
        return self._delegate is not None

    def get_signer(self) -> requests.auth.AuthBase:
        """Return the underlying OCI signer, creating it if needed.

        Raises:
            KeyLoadError: If the signer cannot be created. Nothing is cached,
                so a later call tries again.
        """
        if self._delegate is not None:
            return self._delegate
        with self._lock:
            if self._delegate is None:
                try:
                    self._delegate = self._supplier()
                except KeyLoadError:
                    raise
                except Exception as e:
                    msg = f"Failed to initialize {self._description} signer: {e}"
                    raise KeyLoadError(msg) from e
                logger.debug("Initialized OCI signer", extra={"auth_type": self._description})
        return self._delegate

    def __call__(self, r: requests.PreparedRequest) -> requests.PreparedRequest:
        return self.get_signer()(r)

    def __repr__(self) -> str:
        return f"LazySigner({self._description}, initialized={self.initialized})"


def _user_principal_supplier(auth_config: AuthConfig) -> Callable[[], requests.auth.AuthBase]:
    def supply() -> requests.auth.AuthBase:
        try:
            with open(auth_config.pemfile_path, encoding="utf-8") as pem:  # type: ignore[arg-type]
                private_key = pem.read()
        except OSError as e:
            msg = "Failed to read private key"
            raise KeyLoadError(msg) from e
        try:
            return oci.signer.Signer(
                tenancy=auth_config.tenant_id,
                user=auth_config.user_id,
                fingerprint=auth_config.fingerprint,
                private_key_file_location=auth_config.pemfile_path,
                private_key_content=private_key,
            )
        except Exception as e:
            msg = f"Failed to read private key: {e}"
            raise KeyLoadError(msg) from e

    return supply


def build_signer(auth_config: AuthConfig) -> LazySigner:
    """Build the signing strategy for an OCI auth descriptor.

    Args:
        auth_config: Validated auth descriptor.

    Returns:
        A lazily initialized signer usable as `requests` auth.

    Raises:
        InvalidConfigError: If the USER_PRINCIPAL fields fail validation.
        UnsupportedAuthTypeError: If the auth type is not supported.
    """
    logger.debug("Building OCI signer", extra={"auth_type": getattr(auth_config.auth_type, "value", None)})

    match auth_config.auth_type:
        case AuthType.RESOURCE_PRINCIPAL:
            return LazySigner(oci.auth.signers.get_resource_principals_signer, "resource principal")
        case AuthType.INSTANCE_PRINCIPAL:
            return LazySigner(oci.auth.signers.InstancePrincipalsSecurityTokenSigner, "instance principal")
        case AuthType.USER_PRINCIPAL:
            validate_connection_parameters(
                {
                    "auth_type": auth_config.auth_type.value,
                    "tenant_id": auth_config.tenant_id,
                    "user_id": auth_config.user_id,
                    "fingerprint": auth_config.fingerprint,
                    "pemfile_path": auth_config.pemfile_path,
                    "region": auth_config.region,
                }
            )
            return LazySigner(_user_principal_supplier(auth_config), "user principal", region=auth_config.region)
        case _:
            msg = f"OCI client auth type is not supported {auth_config.auth_type}"
            raise UnsupportedAuthTypeError(msg)
