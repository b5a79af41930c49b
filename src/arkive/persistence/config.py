"""Backup storage location configuration.

Environment Variables (location_from_env):
    ARKIVE_LOCATION_NAME: Location name (default: "default")
    ARKIVE_PROVIDER: Object storage provider name, e.g. "filesystem"
    ARKIVE_BUCKET: Bucket name
    ARKIVE_PREFIX: Optional prefix inside the bucket
    ARKIVE_OBJECT_STORE_BASE_DIR: Passed to the provider as config["base_dir"]
"""

from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field

from arkive.persistence.errors import ConfigurationError
from arkive.storage.filesystem_store import ARKIVE_OBJECT_STORE_BASE_DIR_ENV

ARKIVE_LOCATION_NAME_ENV = "ARKIVE_LOCATION_NAME"
ARKIVE_PROVIDER_ENV = "ARKIVE_PROVIDER"
ARKIVE_BUCKET_ENV = "ARKIVE_BUCKET"
ARKIVE_PREFIX_ENV = "ARKIVE_PREFIX"


class ObjectStorageLocation(BaseModel):
    """Bucket and optional prefix inside it."""

    model_config = ConfigDict(extra="forbid")

    bucket: str
    prefix: str = ""


class BackupStorageLocation(BaseModel):
    """Where and how backups are stored.

    Attributes:
        name: Location name, used only for logging.
        provider: Object storage provider name, resolved through an
            ObjectStoreGetter.
        object_storage: Bucket/prefix; None for locations that do not use
            object storage.
        config: Provider-specific settings handed to ObjectStore.init().
    """

    model_config = ConfigDict(extra="forbid")

    name: str = "default"
    provider: str = ""
    object_storage: ObjectStorageLocation | None = None
    config: dict[str, str] = Field(default_factory=dict)


def normalize_bucket_and_prefix(bucket: str, prefix: str) -> tuple[str, str]:
    """Trim leading/trailing slashes from bucket and prefix.

    Raises:
        ConfigurationError: If the bucket still contains "/", which usually
            means "<bucket>/<prefix>" was put in the bucket field.
    """
    trimmed_bucket = bucket.strip("/")
    trimmed_prefix = prefix.strip("/")

    if "/" in trimmed_bucket:
        raise ConfigurationError(
            f"backup storage location's bucket name {bucket!r} must not contain a '/' "
            "(if using a prefix, put it in the 'prefix' field instead)",
            bucket=bucket,
        )

    return trimmed_bucket, trimmed_prefix


def location_from_env() -> BackupStorageLocation:
    """Build a BackupStorageLocation from ARKIVE_* environment variables.

    Raises:
        ConfigurationError: If ARKIVE_BUCKET is not set.
    """
    bucket = os.environ.get(ARKIVE_BUCKET_ENV, "").strip()
    if not bucket:
        raise ConfigurationError(f"{ARKIVE_BUCKET_ENV} must be set")

    config: dict[str, str] = {}
    base_dir = os.environ.get(ARKIVE_OBJECT_STORE_BASE_DIR_ENV, "").strip()
    if base_dir:
        config["base_dir"] = base_dir

    return BackupStorageLocation(
        name=os.environ.get(ARKIVE_LOCATION_NAME_ENV, "default").strip() or "default",
        provider=os.environ.get(ARKIVE_PROVIDER_ENV, "").strip(),
        object_storage=ObjectStorageLocation(
            bucket=bucket,
            prefix=os.environ.get(ARKIVE_PREFIX_ENV, "").strip(),
        ),
        config=config,
    )
