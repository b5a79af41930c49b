"""Artifact store data models.

Resource objects (Backup, PodVolumeBackup, VolumeSnapshot) are opaque to the
store beyond the fields it needs; unknown fields are kept (extra="allow") so
they survive a decode/encode cycle. Wire field names are camelCase.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, BinaryIO

from pydantic import BaseModel, ConfigDict, Field

BACKUP_KIND = "Backup"
POD_VOLUME_BACKUP_KIND = "PodVolumeBackup"


class _Resource(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ObjectMeta(_Resource):
    """Standard object metadata (name, namespace, labels, ...)."""

    name: str | None = None
    namespace: str | None = None
    uid: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)


class Backup(_Resource):
    """Backup resource as stored in the metadata artifact."""

    api_version: str | None = Field(default=None, alias="apiVersion")
    kind: str = BACKUP_KIND
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: dict[str, Any] = Field(default_factory=dict)
    status: dict[str, Any] = Field(default_factory=dict)


class PodVolumeBackup(_Resource):
    """Record of one pod volume backed up by the file-level backup path."""

    api_version: str | None = Field(default=None, alias="apiVersion")
    kind: str = POD_VOLUME_BACKUP_KIND
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: dict[str, Any] = Field(default_factory=dict)
    status: dict[str, Any] = Field(default_factory=dict)


class VolumeSnapshotSpec(_Resource):
    backup_name: str | None = Field(default=None, alias="backupName")
    backup_uid: str | None = Field(default=None, alias="backupUID")
    location: str | None = None
    persistent_volume_name: str | None = Field(default=None, alias="persistentVolumeName")
    provider_volume_id: str | None = Field(default=None, alias="providerVolumeID")
    volume_type: str | None = Field(default=None, alias="volumeType")
    volume_az: str | None = Field(default=None, alias="volumeAZ")
    volume_iops: int | None = Field(default=None, alias="volumeIOPS")


class VolumeSnapshotStatus(_Resource):
    provider_snapshot_id: str | None = Field(default=None, alias="providerSnapshotID")
    phase: str | None = None


class VolumeSnapshot(_Resource):
    """Record of one persistent volume snapshot taken during a backup."""

    spec: VolumeSnapshotSpec = Field(default_factory=VolumeSnapshotSpec)
    status: VolumeSnapshotStatus = Field(default_factory=VolumeSnapshotStatus)


@dataclass
class BackupInfo:
    """Artifacts to upload for one backup.

    Each artifact is a binary stream owned by the caller (the store never
    closes it). None means the artifact was not produced; its write is
    skipped. A missing metadata stream means the backup failed upstream and
    nothing is uploaded.
    """

    name: str
    metadata: BinaryIO | None = None
    contents: BinaryIO | None = None
    log: BinaryIO | None = None
    pod_volume_backups: BinaryIO | None = None
    volume_snapshots: BinaryIO | None = None
    backup_resource_list: BinaryIO | None = None


class DownloadTargetKind(StrEnum):
    """Artifact kinds a download URL can be issued for."""

    BACKUP_CONTENTS = "BackupContents"
    BACKUP_LOG = "BackupLog"
    BACKUP_VOLUME_SNAPSHOTS = "BackupVolumeSnapshots"
    BACKUP_RESOURCE_LIST = "BackupResourceList"
    RESTORE_LOG = "RestoreLog"
    RESTORE_RESULTS = "RestoreResults"


@dataclass(frozen=True)
class DownloadTarget:
    """A (kind, name) pair identifying one downloadable artifact.

    kind is a plain string so that unrecognised kinds coming from callers
    can be rejected by the store rather than at construction.
    """

    kind: str
    name: str
