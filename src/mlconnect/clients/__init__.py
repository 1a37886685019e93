"""External service clients used by the artifact helper.

This module provides factory functions for creating configured client
instances from centralized configuration.
"""

from mlconnect.auth.oci import LazySigner
from mlconnect.config import ObjectStorageConfig, get_settings

from .object_storage import ObjectStorageClientWrapper


def create_object_storage_client(
    signer: LazySigner,
    endpoint: str | None = None,
    config: ObjectStorageConfig | None = None,
) -> ObjectStorageClientWrapper:
    """Create a configured OCI object storage client.

    Args:
        signer: Signing strategy for the bucket's tenancy.
        endpoint: Service endpoint. Falls back to the configured endpoint.
        config: Optional ObjectStorageConfig. If None, uses settings from
            get_settings().

    Returns:
        Configured ObjectStorageClientWrapper instance.
    """
    if config is None:
        config = get_settings().object_storage

    return ObjectStorageClientWrapper(
        signer=signer,
        endpoint=endpoint or config.endpoint,
        timeout=(10.0, config.timeout),
    )


__all__ = ["ObjectStorageClientWrapper", "create_object_storage_client"]
