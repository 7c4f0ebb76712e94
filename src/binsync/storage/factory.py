"""Factory for creating object stores from configuration."""

import logging

from binsync.config import RemoteConfig
from binsync.errors import ConfigError
from binsync.storage.base import ObjectStore

logger = logging.getLogger(__name__)


def create_store(config: RemoteConfig) -> ObjectStore:
    """Create an ObjectStore for the configured backend.

    Raises:
        ConfigError: If the bucket is missing or the backend is unsupported.
    """
    if not config.bucket:
        raise ConfigError("Remote bucket required: set remote.bucket or pass --dest")

    if config.type == "local":
        from binsync.storage.local import LocalObjectStore

        return LocalObjectStore(config.bucket)

    if config.type == "s3":
        from binsync.storage.s3 import S3ObjectStore

        key_id, app_key = config.credentials()
        if not (key_id and app_key):
            logger.debug(
                f"{config.key_id_env}/{config.app_key_env} not set; using default AWS credential chain"
            )
        return S3ObjectStore(
            bucket_name=config.bucket,
            region=config.region,
            endpoint_url=config.endpoint_url,
            aws_access_key_id=key_id,
            aws_secret_access_key=app_key,
            trust_etag=config.trust_etag,
        )

    raise ConfigError(f"Unsupported storage type: {config.type!r}. Supported: s3, local")
