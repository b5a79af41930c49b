"""Backup store: backup and restore artifacts in object storage.

Lays out every artifact of a backup (or restore) under one directory per
name (see arkive.persistence.layout), uploads a backup's artifacts as a
compensated write plan, tolerates optional artifacts that older backups do
not have, and maintains an advisory revision marker that changes on every
mutation.

No locking is done here. Concurrent put/delete of the same name may
interleave; the revision marker only says "something changed", it cannot
reconstruct a consistent snapshot.
"""

from __future__ import annotations

import io
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import timedelta
from typing import IO, Any, BinaryIO

from arkive.persistence.codec import BackupDecoder, MetadataDecoder, decode_json_gz
from arkive.persistence.compensation import WritePlan, seek_and_put_object
from arkive.persistence.config import BackupStorageLocation, normalize_bucket_and_prefix
from arkive.persistence.errors import (
    ConfigurationError,
    CorruptArtifactError,
    StructuralInconsistencyError,
    UnsupportedTargetError,
    aggregate_errors,
)
from arkive.persistence.layout import BACKUPS_DIR, ObjectStoreLayout
from arkive.persistence.models import (
    Backup,
    BackupInfo,
    DownloadTarget,
    DownloadTargetKind,
    PodVolumeBackup,
    VolumeSnapshot,
)
from arkive.persistence.providers import ObjectStoreGetter
from arkive.storage.errors import StorageBackendError
from arkive.storage.object_store import ObjectStore

DOWNLOAD_URL_TTL = timedelta(minutes=10)

_DELIMITER = "/"


class BackupStore(ABC):
    """Operations for creating, retrieving, and deleting backup and restore
    data in a persistent backup store."""

    @abstractmethod
    def is_valid(self) -> None:
        """Raise StructuralInconsistencyError if the store has unexpected top-level dirs."""
        ...

    @abstractmethod
    def get_revision(self) -> str: ...

    @abstractmethod
    def list_backups(self) -> list[str]: ...

    @abstractmethod
    def put_backup(self, info: BackupInfo) -> None: ...

    @abstractmethod
    def get_backup_metadata(self, name: str) -> Backup: ...

    @abstractmethod
    def get_backup_volume_snapshots(self, name: str) -> list[VolumeSnapshot] | None: ...

    @abstractmethod
    def get_pod_volume_backups(self, name: str) -> list[PodVolumeBackup] | None: ...

    @abstractmethod
    def get_backup_contents(self, name: str) -> BinaryIO: ...

    @abstractmethod
    def backup_exists(self, bucket: str, backup_name: str) -> bool:
        """Check if the backup metadata file exists in object storage."""
        ...

    @abstractmethod
    def delete_backup(self, name: str) -> None: ...

    @abstractmethod
    def put_restore_log(self, backup: str, restore: str, log: IO[bytes]) -> None: ...

    @abstractmethod
    def put_restore_results(self, backup: str, restore: str, results: IO[bytes]) -> None: ...

    @abstractmethod
    def delete_restore(self, name: str) -> None: ...

    @abstractmethod
    def get_download_url(self, target: DownloadTarget) -> str: ...


class ObjectBackupStore(BackupStore):
    """BackupStore backed by an ObjectStore bucket.

    The logger passed in is wrapped in an adapter carrying this store's
    bucket and prefix; nothing is logged through process-wide state owned
    by the store.
    """

    def __init__(
        self,
        object_store: ObjectStore,
        bucket: str,
        layout: ObjectStoreLayout,
        *,
        logger: logging.Logger | None = None,
        decoder: MetadataDecoder | None = None,
    ) -> None:
        self._object_store = object_store
        self._bucket = bucket
        self._layout = layout
        self._decoder: MetadataDecoder = decoder or BackupDecoder()
        self._log = logging.LoggerAdapter(
            logger if logger is not None else logging.getLogger(__name__),
            {"bucket": bucket, "prefix": layout.root_prefix},
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def layout(self) -> ObjectStoreLayout:
        return self._layout

    @property
    def object_store(self) -> ObjectStore:
        return self._object_store

    def is_valid(self) -> None:
        """Check that only reserved directories exist under the root prefix.

        Raises:
            StructuralInconsistencyError: Listing every unexpected directory
                (the message names at most three).
        """
        root = self._layout.root_prefix
        dirs = self._object_store.list_common_prefixes(self._bucket, root, _DELIMITER)

        invalid: list[str] = []
        for directory in dirs:
            subdir = directory.removeprefix(root).removesuffix(_DELIMITER)
            if not self._layout.is_valid_subdir(subdir):
                invalid.append(subdir)

        if invalid:
            raise StructuralInconsistencyError(invalid, bucket=self._bucket)

    def validate(self) -> None:
        """Alias of is_valid()."""
        self.is_valid()

    def list_backups(self) -> list[str]:
        """Return the names of all backups (empty list if there are none)."""
        backups_prefix = self._layout.subdirs[BACKUPS_DIR]
        prefixes = self._object_store.list_common_prefixes(
            self._bucket, backups_prefix, _DELIMITER
        )

        # common prefixes are full prefixes ending with the delimiter
        return [p.removeprefix(backups_prefix).removesuffix(_DELIMITER) for p in prefixes]

    def put_backup(self, info: BackupInfo) -> None:
        """Upload a backup's artifacts.

        Without metadata nothing at all is uploaded: the backup failed
        upstream and is not restorable. Otherwise the log goes first and is
        best-effort. Metadata, contents, pod volume backups, volume snapshots
        and the resource list follow in that order; when one fails, the
        metadata and contents written before it are deleted again.

        Raises:
            AggregatedError: The failed write plus any compensation delete
                errors.
        """
        layout = self._layout
        name = info.name

        if info.metadata is None:
            self._log.debug("Backup %s has no metadata, nothing to upload", name)
            return

        try:
            seek_and_put_object(
                self._object_store, self._bucket, layout.get_backup_log_key(name), info.log
            )
        except Exception as e:
            # the log is cosmetic: never fail the backup over it
            self._log.error("Error uploading log file for backup %s: %s", name, e)

        metadata_key = layout.get_backup_metadata_key(name)
        contents_key = layout.get_backup_contents_key(name)

        (
            WritePlan(self._object_store, self._bucket, self._log)
            .add("metadata", metadata_key, info.metadata)
            .add("contents", contents_key, info.contents, [metadata_key])
            .add(
                "pod volume backups",
                layout.get_pod_volume_backups_key(name),
                info.pod_volume_backups,
                [contents_key, metadata_key],
            )
            .add(
                "volume snapshots",
                layout.get_backup_volume_snapshots_key(name),
                info.volume_snapshots,
                [contents_key, metadata_key],
            )
            .add(
                "resource list",
                layout.get_backup_resource_list_key(name),
                info.backup_resource_list,
                [contents_key, metadata_key],
            )
            .execute()
        )

        self._refresh_revision(name)

    def get_backup_metadata(self, name: str) -> Backup:
        """Read and decode a backup's metadata.

        Raises:
            ObjectNotFoundError: If the metadata object does not exist.
            CorruptArtifactError: If it cannot be decoded as a Backup.
        """
        metadata_key = self._layout.get_backup_metadata_key(name)
        data = self._read_all(metadata_key)

        obj = self._decoder.decode(data)
        if not isinstance(obj, Backup):
            raise CorruptArtifactError(
                f"unexpected type for {self._bucket}/{metadata_key}: {type(obj).__name__}",
                bucket=self._bucket,
                key=metadata_key,
            )
        return obj

    def get_backup_volume_snapshots(self, name: str) -> list[VolumeSnapshot] | None:
        """Return a backup's volume snapshots, or None if it has none recorded.

        Legacy backups and backups without snapshots have no such artifact;
        that is not an error.
        """
        return self._get_optional_list(
            self._layout.get_backup_volume_snapshots_key(name), VolumeSnapshot
        )

    def get_pod_volume_backups(self, name: str) -> list[PodVolumeBackup] | None:
        """Return a backup's pod volume backups, or None if it has none recorded."""
        return self._get_optional_list(
            self._layout.get_pod_volume_backups_key(name), PodVolumeBackup
        )

    def get_backup_contents(self, name: str) -> BinaryIO:
        """Return a stream over the backup archive. The caller must close it."""
        return self._object_store.get_object(
            self._bucket, self._layout.get_backup_contents_key(name)
        )

    def backup_exists(self, bucket: str, backup_name: str) -> bool:
        return self._object_store.object_exists(
            bucket, self._layout.get_backup_metadata_key(backup_name)
        )

    def delete_backup(self, name: str) -> None:
        """Delete every object under the backup's directory.

        A failure to refresh the revision afterwards is only logged.

        Raises:
            AggregatedError: If any object could not be deleted.
        """
        errors = self._delete_dir(self._layout.get_backup_dir(name))

        try:
            self._put_revision()
        except Exception as e:
            self._log.warning(
                "Error updating backup store revision after deleting %s: %s", name, e
            )

        aggregated = aggregate_errors(errors)
        if aggregated is not None:
            raise aggregated
        self._log.info("Deleted backup %s", name)

    def put_restore_log(self, backup: str, restore: str, log: IO[bytes]) -> None:
        seek_and_put_object(
            self._object_store, self._bucket, self._layout.get_restore_log_key(restore), log
        )
        self._refresh_revision(restore)

    def put_restore_results(self, backup: str, restore: str, results: IO[bytes]) -> None:
        results_key = self._layout.get_restore_results_key(restore)
        seek_and_put_object(self._object_store, self._bucket, results_key, results)
        self._refresh_revision(restore)

    def delete_restore(self, name: str) -> None:
        """Delete every object under the restore's directory.

        Unlike delete_backup, a failure to refresh the revision is part of
        the raised error.

        Raises:
            AggregatedError: If any object could not be deleted or the
                revision could not be refreshed.
        """
        errors = self._delete_dir(self._layout.get_restore_dir(name))

        try:
            self._put_revision()
        except Exception as e:
            errors.append(e)

        aggregated = aggregate_errors(errors)
        if aggregated is not None:
            raise aggregated
        self._log.info("Deleted restore %s", name)

    def get_download_url(self, target: DownloadTarget) -> str:
        """Return a signed URL valid for DOWNLOAD_URL_TTL.

        Raises:
            UnsupportedTargetError: If target.kind is not a DownloadTargetKind.
        """
        key_for: dict[str, Callable[[str], str]] = {
            DownloadTargetKind.BACKUP_CONTENTS: self._layout.get_backup_contents_key,
            DownloadTargetKind.BACKUP_LOG: self._layout.get_backup_log_key,
            DownloadTargetKind.BACKUP_VOLUME_SNAPSHOTS: (
                self._layout.get_backup_volume_snapshots_key
            ),
            DownloadTargetKind.BACKUP_RESOURCE_LIST: self._layout.get_backup_resource_list_key,
            DownloadTargetKind.RESTORE_LOG: self._layout.get_restore_log_key,
            DownloadTargetKind.RESTORE_RESULTS: self._layout.get_restore_results_key,
        }

        get_key = key_for.get(target.kind)
        if get_key is None:
            raise UnsupportedTargetError(target.kind)

        return self._object_store.create_signed_url(
            self._bucket, get_key(target.name), DOWNLOAD_URL_TTL
        )

    def get_revision(self) -> str:
        """Return the current revision token.

        Raises:
            ObjectNotFoundError: If no mutation has ever been recorded.
        """
        return self._read_all(self._layout.get_revision_key()).decode("utf-8")

    def _put_revision(self) -> None:
        revision_key = self._layout.get_revision_key()
        token = io.BytesIO(str(uuid.uuid4()).encode("utf-8"))
        try:
            seek_and_put_object(self._object_store, self._bucket, revision_key, token)
        except Exception as e:
            raise StorageBackendError(
                message=f"error updating revision file: {e}",
                bucket=self._bucket,
                key=revision_key,
                cause=e,
            ) from e

    def _refresh_revision(self, name: str) -> None:
        """Refresh the revision; failures are logged, never raised."""
        try:
            self._put_revision()
        except Exception as e:
            self._log.warning("Error updating backup store revision after %s: %s", name, e)

    def _read_all(self, key: str) -> bytes:
        with self._object_store.get_object(self._bucket, key) as res:
            try:
                return res.read()
            except OSError as e:
                raise StorageBackendError(
                    message=f"error reading object: {e}",
                    bucket=self._bucket,
                    key=key,
                    cause=e,
                ) from e

    def _try_get(self, key: str) -> BinaryIO | None:
        """Return the object if it exists, None if it does not."""
        if not self._object_store.object_exists(self._bucket, key):
            return None
        return self._object_store.get_object(self._bucket, key)

    def _get_optional_list(self, key: str, model: type[Any]) -> list[Any] | None:
        res = self._try_get(key)
        if res is None:
            return None
        with res:
            return decode_json_gz(res, model, bucket=self._bucket, key=key)

    def _delete_dir(self, prefix: str) -> list[BaseException]:
        errors: list[BaseException] = []
        for key in self._object_store.list_objects(self._bucket, prefix):
            self._log.debug("Trying to delete object %s", key)
            try:
                self._object_store.delete_object(self._bucket, key)
            except Exception as e:
                errors.append(e)
        return errors


def new_object_backup_store(
    location: BackupStorageLocation,
    getter: ObjectStoreGetter,
    *,
    logger: logging.Logger | None = None,
    decoder: MetadataDecoder | None = None,
) -> ObjectBackupStore:
    """Create an ObjectBackupStore for a backup storage location.

    The bucket name is added to the provider config as "bucket" (backends
    may need it to initialize); the caller's location is not modified.

    Raises:
        ConfigurationError: If the location does not use object storage,
            names no provider, or has a bucket containing "/".
        ProviderNotRegisteredError: If the provider is unknown.
    """
    if location.object_storage is None:
        raise ConfigurationError("backup storage location does not use object storage")

    if not location.provider:
        raise ConfigurationError("object storage provider name must not be empty")

    bucket, prefix = normalize_bucket_and_prefix(
        location.object_storage.bucket, location.object_storage.prefix
    )

    config = dict(location.config)
    config["bucket"] = bucket

    object_store = getter.get_object_store(location.provider)
    object_store.init(config)

    store = ObjectBackupStore(
        object_store,
        bucket,
        ObjectStoreLayout(prefix),
        logger=logger,
        decoder=decoder,
    )
    (logger if logger is not None else logging.getLogger(__name__)).info(
        "Backup store ready: location=%s provider=%s bucket=%s prefix=%s",
        location.name,
        location.provider,
        bucket,
        prefix,
    )
    return store
