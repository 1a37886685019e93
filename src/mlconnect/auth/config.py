"""Typed OCI authentication descriptor and its validating resolver.

A connector carries its OCI auth settings as plain string parameters
(`auth_type`, `tenant_id`, `user_id`, `fingerprint`, `pemfile_path`,
`region`). `validate_connection_parameters` checks such a mapping and
`AuthConfig.from_mapping` turns it into an immutable `AuthConfig`. Both the
connector load path and the signer build path validate independently.
"""

import enum
from collections.abc import Mapping

import attrs

from mlconnect.core.exceptions import InvalidConfigError, UnsupportedAuthTypeError

AUTH_TYPE_FIELD = "auth_type"
TENANT_ID_FIELD = "tenant_id"
USER_ID_FIELD = "user_id"
FINGERPRINT_FIELD = "fingerprint"
PEMFILE_PATH_FIELD = "pemfile_path"
REGION_FIELD = "region"

AUTH_FIELDS: tuple[str, ...] = (
    AUTH_TYPE_FIELD,
    TENANT_ID_FIELD,
    USER_ID_FIELD,
    FINGERPRINT_FIELD,
    PEMFILE_PATH_FIELD,
    REGION_FIELD,
)

# Checked in this order; the first missing field is reported.
_USER_PRINCIPAL_REQUIRED: tuple[tuple[str, str], ...] = (
    (TENANT_ID_FIELD, "Missing tenant id"),
    (USER_ID_FIELD, "Missing user id"),
    (FINGERPRINT_FIELD, "Missing fingerprint"),
    (PEMFILE_PATH_FIELD, "Missing pemfile"),
    (REGION_FIELD, "Missing region"),
)


class AuthType(enum.Enum):
    """OCI client authentication types."""

    RESOURCE_PRINCIPAL = "RESOURCE_PRINCIPAL"
    INSTANCE_PRINCIPAL = "INSTANCE_PRINCIPAL"
    USER_PRINCIPAL = "USER_PRINCIPAL"

    @classmethod
    def from_str(cls, value: str) -> "AuthType":
        """Parse an auth type name, ignoring case.

        Raises:
            UnsupportedAuthTypeError: If the name is not a known auth type.
        """
        try:
            return cls[value.strip().upper()]
        except (KeyError, AttributeError):
            msg = "Wrong OCI client auth type"
            raise UnsupportedAuthTypeError(msg) from None


def _present(mapping: Mapping[str, str | None], key: str) -> bool:
    value = mapping.get(key)
    return value is not None and value != ""


def validate_connection_parameters(mapping: Mapping[str, str | None] | None) -> None:
    """Validate the OCI auth fields of a connector or registration request.

    Args:
        mapping: Field name to value. Extra keys are ignored.

    Raises:
        InvalidConfigError: If the mapping is None, the auth type is missing,
            or a USER_PRINCIPAL field is missing.
        UnsupportedAuthTypeError: If the auth type is not one of the three
            known names.
    """
    if mapping is None:
        msg = "Missing credential"
        raise InvalidConfigError(msg)
    if not _present(mapping, AUTH_TYPE_FIELD):
        msg = "Missing auth type"
        raise InvalidConfigError(msg)

    auth_type = AuthType.from_str(str(mapping[AUTH_TYPE_FIELD]))
    if auth_type is AuthType.USER_PRINCIPAL:
        for field, message in _USER_PRINCIPAL_REQUIRED:
            if not _present(mapping, field):
                raise InvalidConfigError(message)


def _user_principal_fields(instance: "AuthConfig", attribute: attrs.Attribute, value: str | None) -> None:
    if instance.auth_type is AuthType.USER_PRINCIPAL:
        if value is None:
            msg = f"{attribute.name} is required for USER_PRINCIPAL auth"
            raise InvalidConfigError(msg)
    elif value is not None:
        msg = f"{attribute.name} is only allowed for USER_PRINCIPAL auth"
        raise InvalidConfigError(msg)


@attrs.define(frozen=True, slots=True)
class AuthConfig:
    """Validated OCI authentication descriptor.

    The USER_PRINCIPAL fields are set if and only if `auth_type` is
    USER_PRINCIPAL. Instances are built at connector load and never persisted.
    """

    auth_type: AuthType
    tenant_id: str | None = attrs.field(default=None, validator=_user_principal_fields)
    user_id: str | None = attrs.field(default=None, validator=_user_principal_fields)
    region: str | None = attrs.field(default=None, validator=_user_principal_fields)
    fingerprint: str | None = attrs.field(default=None, validator=_user_principal_fields)
    pemfile_path: str | None = attrs.field(default=None, validator=_user_principal_fields)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str | None] | None) -> "AuthConfig":
        """Validate `mapping` and build the descriptor from it."""
        validate_connection_parameters(mapping)
        mapping = mapping or {}
        auth_type = AuthType.from_str(str(mapping[AUTH_TYPE_FIELD]))
        if auth_type is not AuthType.USER_PRINCIPAL:
            return cls(auth_type=auth_type)
        return cls(
            auth_type=auth_type,
            tenant_id=mapping[TENANT_ID_FIELD],
            user_id=mapping[USER_ID_FIELD],
            region=mapping[REGION_FIELD],
            fingerprint=mapping[FINGERPRINT_FIELD],
            pemfile_path=mapping[PEMFILE_PATH_FIELD],
        )

    def __repr__(self) -> str:
        return f"AuthConfig(auth_type={self.auth_type.value}, region={self.region})"


def resolve_auth_fields(
    parameters: Mapping[str, str] | None,
    credential: Mapping[str, str] | None,
) -> dict[str, str]:
    """Collect the OCI auth fields of a connector.

    Parameters take precedence; fields absent from the parameters are looked
    up in the (decrypted) credential map.
    """
    parameters = parameters or {}
    credential = credential or {}
    resolved: dict[str, str] = {}
    for field in AUTH_FIELDS:
        if _present(parameters, field):
            resolved[field] = parameters[field]
        elif _present(credential, field):
            resolved[field] = credential[field]
    return resolved
