"""Arkive persistence: backup and restore artifacts in object storage.

The artifact store composes the key layout, an object storage backend and
the artifact codec:

    store = new_object_backup_store(location, default_registry())
    store.put_backup(BackupInfo(name="nightly-1", metadata=..., contents=...))
"""

from arkive.persistence.backup_store import (
    DOWNLOAD_URL_TTL,
    BackupStore,
    ObjectBackupStore,
    new_object_backup_store,
)
from arkive.persistence.codec import BackupDecoder, MetadataDecoder
from arkive.persistence.config import (
    BackupStorageLocation,
    ObjectStorageLocation,
    location_from_env,
)
from arkive.persistence.errors import (
    AggregatedError,
    ConfigurationError,
    CorruptArtifactError,
    StructuralInconsistencyError,
    UnsupportedTargetError,
)
from arkive.persistence.layout import ObjectStoreLayout
from arkive.persistence.models import (
    Backup,
    BackupInfo,
    DownloadTarget,
    DownloadTargetKind,
    PodVolumeBackup,
    VolumeSnapshot,
)
from arkive.persistence.providers import (
    ObjectStoreGetter,
    ProviderNotRegisteredError,
    ProviderRegistry,
    default_registry,
)

__all__ = [
    "DOWNLOAD_URL_TTL",
    "AggregatedError",
    "Backup",
    "BackupDecoder",
    "BackupInfo",
    "BackupStorageLocation",
    "BackupStore",
    "ConfigurationError",
    "CorruptArtifactError",
    "DownloadTarget",
    "DownloadTargetKind",
    "MetadataDecoder",
    "ObjectBackupStore",
    "ObjectStorageLocation",
    "ObjectStoreGetter",
    "ObjectStoreLayout",
    "PodVolumeBackup",
    "ProviderNotRegisteredError",
    "ProviderRegistry",
    "StructuralInconsistencyError",
    "UnsupportedTargetError",
    "VolumeSnapshot",
    "default_registry",
    "location_from_env",
    "new_object_backup_store",
]
