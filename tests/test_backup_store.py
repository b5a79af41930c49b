"""Tests for ObjectBackupStore.

Covers:
- Key layout of uploaded artifacts and listing of backups
- Compensated uploads: which objects are removed when a later write fails
- Best-effort log upload and revision refresh
- Optional artifacts that older backups do not carry
- Deletion of backups and restores, and error aggregation
- Download URLs, store validation and the revision marker
"""

from __future__ import annotations

import gzip
import io
import json
import logging
import threading
import time
from typing import Any
from urllib.parse import parse_qs, urlsplit

import pytest

from arkive.persistence.backup_store import ObjectBackupStore
from arkive.persistence.codec import encode_json_gz
from arkive.persistence.errors import (
    AggregatedError,
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
from arkive.storage.errors import ObjectNotFoundError, StorageBackendError
from arkive.storage.signing import verify_signed_url
from tests.fixtures.storage import TEST_BUCKET, FaultyObjectStore


def _metadata(name: str) -> io.BytesIO:
    doc = {"apiVersion": "arkive.io/v1", "kind": "Backup", "metadata": {"name": name}}
    return io.BytesIO(gzip.compress(json.dumps(doc).encode("utf-8")))


def _full_info(name: str) -> BackupInfo:
    return BackupInfo(
        name=name,
        metadata=_metadata(name),
        contents=io.BytesIO(b"tarball"),
        log=io.BytesIO(b"log lines"),
        pod_volume_backups=io.BytesIO(encode_json_gz([PodVolumeBackup()])),
        volume_snapshots=io.BytesIO(
            encode_json_gz(
                [VolumeSnapshot.model_validate({"spec": {"providerVolumeID": "vol-1"}})]
            )
        ),
        backup_resource_list=io.BytesIO(encode_json_gz({"v1/Pod": ["ns/pod-1"]})),
    )


def _backup_keys(name: str) -> list[str]:
    return sorted(
        f"backups/{name}/{name}{suffix}"
        for suffix in (
            "-metadata.json.gz",
            "-contents.tar.gz",
            "-logs.txt.gz",
            "-podvolumebackups.json.gz",
            "-volumesnapshots.json.gz",
            "-resource-list.json.gz",
        )
    )


class _BrokenStream(io.RawIOBase):
    """Non-seekable stream whose reads fail partway through an upload."""

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def readinto(self, buffer: Any) -> int:
        raise OSError("stream broken")


class _FixedDecoder:
    """Metadata decoder returning a canned value."""

    def __init__(self, value: Any) -> None:
        self.value = value

    def decode(self, data: bytes) -> Any:
        return self.value


class TestListBackups:
    """Tests for list_backups."""

    def test_empty_store(self, store: ObjectBackupStore) -> None:
        """An empty store has no backups."""
        assert store.list_backups() == []

    def test_lists_backup_dirs(self, store: ObjectBackupStore) -> None:
        """Every backup directory is listed by name."""
        store.put_backup(_full_info("b1"))
        store.put_backup(_full_info("b2"))
        store.put_restore_log("b1", "r1", io.BytesIO(b"log"))

        assert sorted(store.list_backups()) == ["b1", "b2"]

    def test_respects_prefix(self, backend: FaultyObjectStore) -> None:
        """Only backups under the store's prefix are listed."""
        team_a = ObjectBackupStore(backend, TEST_BUCKET, ObjectStoreLayout("team-a"))
        team_b = ObjectBackupStore(backend, TEST_BUCKET, ObjectStoreLayout("team-b"))

        team_a.put_backup(_full_info("a1"))
        team_b.put_backup(_full_info("b1"))

        assert team_a.list_backups() == ["a1"]
        assert team_b.list_backups() == ["b1"]


class TestPutBackup:
    """Tests for put_backup."""

    def test_full_backup_layout(self, store: ObjectBackupStore, backend: FaultyObjectStore) -> None:
        """Every artifact lands at its key and the revision is written."""
        store.put_backup(_full_info("b1"))

        assert backend.list_objects(TEST_BUCKET, "backups/") == _backup_keys("b1")
        assert backend.object_exists(TEST_BUCKET, "revision")
        assert backend.read(TEST_BUCKET, "backups/b1/b1-contents.tar.gz") == b"tarball"

    def test_upload_order(self, store: ObjectBackupStore, backend: FaultyObjectStore) -> None:
        """Log first, then metadata, contents and the optional artifacts."""
        store.put_backup(_full_info("b1"))

        assert backend.put_keys == [
            "backups/b1/b1-logs.txt.gz",
            "backups/b1/b1-metadata.json.gz",
            "backups/b1/b1-contents.tar.gz",
            "backups/b1/b1-podvolumebackups.json.gz",
            "backups/b1/b1-volumesnapshots.json.gz",
            "backups/b1/b1-resource-list.json.gz",
            "revision",
        ]

    def test_optional_artifacts_skipped(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """Artifacts that were not produced are not written."""
        store.put_backup(
            BackupInfo(name="b1", metadata=_metadata("b1"), contents=io.BytesIO(b"tar"))
        )

        assert backend.list_objects(TEST_BUCKET, "backups/") == [
            "backups/b1/b1-contents.tar.gz",
            "backups/b1/b1-metadata.json.gz",
        ]

    def test_without_metadata_nothing_written(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """A backup without metadata failed upstream: nothing is uploaded."""
        info = _full_info("b1")
        info.metadata = None

        store.put_backup(info)

        assert backend.put_keys == []
        assert backend.count() == 0
        assert store.list_backups() == []

    def test_rewinds_consumed_streams(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """Streams already read by the caller are uploaded from the start."""
        info = _full_info("b1")
        assert info.contents is not None
        info.contents.read()

        store.put_backup(info)

        assert backend.read(TEST_BUCKET, "backups/b1/b1-contents.tar.gz") == b"tarball"

    def test_streams_left_open(self, store: ObjectBackupStore) -> None:
        """The store never closes caller-owned streams."""
        info = _full_info("b1")

        store.put_backup(info)

        assert info.metadata is not None and not info.metadata.closed
        assert info.contents is not None and not info.contents.closed
        assert info.log is not None and not info.log.closed

    def test_log_failure_is_not_fatal(
        self,
        store: ObjectBackupStore,
        backend: FaultyObjectStore,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A failed log upload is logged and the backup still succeeds."""
        backend.fail_put.add("-logs.txt.gz")

        with caplog.at_level(logging.ERROR):
            store.put_backup(_full_info("b1"))

        assert store.backup_exists(TEST_BUCKET, "b1")
        assert not backend.object_exists(TEST_BUCKET, "backups/b1/b1-logs.txt.gz")
        assert any("Error uploading log file" in r.getMessage() for r in caplog.records)

    def test_metadata_failure_writes_nothing_else(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """A metadata failure stops the upload; only the log remains."""
        backend.fail_put.add("-metadata.json.gz")

        with pytest.raises(AggregatedError) as exc_info:
            store.put_backup(_full_info("b1"))

        assert backend.list_objects(TEST_BUCKET, "") == ["backups/b1/b1-logs.txt.gz"]
        assert backend.deleted_keys == []
        assert len(exc_info.value) == 1

    def test_contents_failure_removes_metadata(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """A contents failure deletes the metadata written before it."""
        backend.fail_put.add("-contents.tar.gz")

        with pytest.raises(AggregatedError):
            store.put_backup(_full_info("b1"))

        assert backend.deleted_keys == ["backups/b1/b1-metadata.json.gz"]
        assert not store.backup_exists(TEST_BUCKET, "b1")
        assert backend.list_objects(TEST_BUCKET, "") == ["backups/b1/b1-logs.txt.gz"]

    @pytest.mark.parametrize(
        "failing_suffix",
        ["-podvolumebackups.json.gz", "-volumesnapshots.json.gz", "-resource-list.json.gz"],
    )
    def test_optional_artifact_failure_removes_contents_and_metadata(
        self,
        store: ObjectBackupStore,
        backend: FaultyObjectStore,
        failing_suffix: str,
    ) -> None:
        """Later failures delete contents then metadata, but not earlier optional artifacts."""
        backend.fail_put.add(failing_suffix)

        with pytest.raises(AggregatedError):
            store.put_backup(_full_info("b1"))

        assert backend.deleted_keys == [
            "backups/b1/b1-contents.tar.gz",
            "backups/b1/b1-metadata.json.gz",
        ]
        assert not store.backup_exists(TEST_BUCKET, "b1")
        assert not backend.object_exists(TEST_BUCKET, "revision")

    def test_resource_list_failure_leaves_earlier_artifacts(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """Pod volume backups and snapshots written before the failure stay."""
        backend.fail_put.add("-resource-list.json.gz")

        with pytest.raises(AggregatedError):
            store.put_backup(_full_info("b1"))

        assert backend.list_objects(TEST_BUCKET, "backups/b1/") == [
            "backups/b1/b1-logs.txt.gz",
            "backups/b1/b1-podvolumebackups.json.gz",
            "backups/b1/b1-volumesnapshots.json.gz",
        ]

    def test_compensation_failure_aggregated(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """A failing compensation delete is reported with the write error."""
        backend.fail_put.add("-volumesnapshots.json.gz")
        backend.fail_delete.add("-contents.tar.gz")

        with pytest.raises(AggregatedError) as exc_info:
            store.put_backup(_full_info("b1"))

        assert len(exc_info.value) == 2
        keys = [getattr(e, "key", None) for e in exc_info.value]
        assert keys == [
            "backups/b1/b1-volumesnapshots.json.gz",
            "backups/b1/b1-contents.tar.gz",
        ]
        # metadata was still attempted and removed
        assert not store.backup_exists(TEST_BUCKET, "b1")

    def test_compensation_of_skipped_contents(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """Compensating contents that were never written is not an error."""
        backend.fail_put.add("-podvolumebackups.json.gz")
        info = _full_info("b1")
        info.contents = None

        with pytest.raises(AggregatedError) as exc_info:
            store.put_backup(info)

        assert len(exc_info.value) == 1
        assert not store.backup_exists(TEST_BUCKET, "b1")

    def test_revision_failure_is_not_fatal(
        self,
        store: ObjectBackupStore,
        backend: FaultyObjectStore,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A failed revision refresh is logged; the backup is still stored."""
        backend.fail_put.add("revision")

        with caplog.at_level(logging.WARNING):
            store.put_backup(_full_info("b1"))

        assert store.backup_exists(TEST_BUCKET, "b1")
        assert any("revision" in r.getMessage() for r in caplog.records)

    def test_log_records_carry_location(
        self, backend: FaultyObjectStore, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Records logged by the store are tagged with bucket and prefix."""
        store = ObjectBackupStore(backend, TEST_BUCKET, ObjectStoreLayout("pfx"))
        backend.fail_put.add("-logs.txt.gz")

        with caplog.at_level(logging.ERROR):
            store.put_backup(_full_info("b1"))

        record = next(r for r in caplog.records if "log file" in r.getMessage())
        assert record.bucket == TEST_BUCKET  # type: ignore[attr-defined]
        assert record.prefix == "pfx/"  # type: ignore[attr-defined]

    def test_concurrent_puts_of_different_backups(self, store: ObjectBackupStore) -> None:
        """Independent backups can be uploaded from several threads."""
        errors: list[BaseException] = []

        def upload(name: str) -> None:
            try:
                store.put_backup(_full_info(name))
            except BaseException as e:  # pragma: no cover - surfaced below
                errors.append(e)

        threads = [threading.Thread(target=upload, args=(f"b{i}",)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sorted(store.list_backups()) == ["b0", "b1", "b2", "b3"]


class TestGetBackupMetadata:
    """Tests for get_backup_metadata."""

    def test_returns_backup(self, store: ObjectBackupStore) -> None:
        """Stored metadata decodes to the Backup resource."""
        store.put_backup(_full_info("b1"))

        backup = store.get_backup_metadata("b1")

        assert isinstance(backup, Backup)
        assert backup.metadata.name == "b1"

    def test_missing_raises_not_found(self, store: ObjectBackupStore) -> None:
        """Metadata is mandatory."""
        with pytest.raises(ObjectNotFoundError):
            store.get_backup_metadata("nope")

    def test_corrupt_metadata(self, store: ObjectBackupStore, backend: FaultyObjectStore) -> None:
        """Undecodable metadata raises CorruptArtifactError."""
        backend.put_object(
            TEST_BUCKET, "backups/b1/b1-metadata.json.gz", io.BytesIO(b"not json")
        )

        with pytest.raises(CorruptArtifactError):
            store.get_backup_metadata("b1")

    def test_non_backup_from_decoder(self, backend: FaultyObjectStore) -> None:
        """A decoder yielding something other than a Backup is rejected."""
        store = ObjectBackupStore(
            backend,
            TEST_BUCKET,
            ObjectStoreLayout(""),
            decoder=_FixedDecoder({"kind": "Backup"}),
        )
        backend.put_object(TEST_BUCKET, "backups/b1/b1-metadata.json.gz", io.BytesIO(b"{}"))

        with pytest.raises(CorruptArtifactError):
            store.get_backup_metadata("b1")

    def test_custom_decoder_used(self, backend: FaultyObjectStore) -> None:
        """The injected decoder replaces the default one."""
        canned = Backup.model_validate({"kind": "Backup", "metadata": {"name": "canned"}})
        store = ObjectBackupStore(
            backend, TEST_BUCKET, ObjectStoreLayout(""), decoder=_FixedDecoder(canned)
        )
        backend.put_object(TEST_BUCKET, "backups/b1/b1-metadata.json.gz", io.BytesIO(b"?"))

        assert store.get_backup_metadata("b1") is canned


class TestOptionalArtifacts:
    """Tests for volume snapshots and pod volume backups."""

    def test_volume_snapshots(self, store: ObjectBackupStore) -> None:
        """Recorded snapshots decode to models."""
        store.put_backup(_full_info("b1"))

        snapshots = store.get_backup_volume_snapshots("b1")

        assert snapshots is not None
        assert [s.spec.provider_volume_id for s in snapshots] == ["vol-1"]

    def test_pod_volume_backups(self, store: ObjectBackupStore) -> None:
        """Recorded pod volume backups decode to models."""
        store.put_backup(_full_info("b1"))

        pvbs = store.get_pod_volume_backups("b1")

        assert pvbs is not None
        assert len(pvbs) == 1

    def test_absent_artifacts_are_none(self, store: ObjectBackupStore) -> None:
        """Backups without these artifacts return None, not an error."""
        store.put_backup(
            BackupInfo(name="old", metadata=_metadata("old"), contents=io.BytesIO(b"t"))
        )

        assert store.get_backup_volume_snapshots("old") is None
        assert store.get_pod_volume_backups("old") is None

    def test_unknown_backup_is_none(self, store: ObjectBackupStore) -> None:
        """Absence is not distinguished from an unknown backup."""
        assert store.get_backup_volume_snapshots("nope") is None

    def test_json_null_is_none(self, store: ObjectBackupStore, backend: FaultyObjectStore) -> None:
        """A stored JSON null reads as None."""
        backend.put_object(
            TEST_BUCKET,
            "backups/b1/b1-volumesnapshots.json.gz",
            io.BytesIO(gzip.compress(b"null")),
        )

        assert store.get_backup_volume_snapshots("b1") is None

    def test_corrupt_artifact(self, store: ObjectBackupStore, backend: FaultyObjectStore) -> None:
        """A present but undecodable artifact is an error."""
        backend.put_object(
            TEST_BUCKET, "backups/b1/b1-podvolumebackups.json.gz", io.BytesIO(b"garbage")
        )

        with pytest.raises(CorruptArtifactError) as exc_info:
            store.get_pod_volume_backups("b1")

        assert exc_info.value.key == "backups/b1/b1-podvolumebackups.json.gz"


class TestContentsAndExists:
    """Tests for get_backup_contents and backup_exists."""

    def test_contents_stream(self, store: ObjectBackupStore) -> None:
        """The archive is returned as a readable stream."""
        store.put_backup(_full_info("b1"))

        with store.get_backup_contents("b1") as res:
            assert res.read() == b"tarball"

    def test_missing_contents(self, store: ObjectBackupStore) -> None:
        """Contents are mandatory."""
        with pytest.raises(ObjectNotFoundError):
            store.get_backup_contents("nope")

    def test_backup_exists(self, store: ObjectBackupStore) -> None:
        """Existence is keyed on the metadata object."""
        store.put_backup(_full_info("b1"))

        assert store.backup_exists(TEST_BUCKET, "b1")
        assert not store.backup_exists(TEST_BUCKET, "b2")
        assert not store.backup_exists("other-bucket", "b1")


class TestDeleteBackup:
    """Tests for delete_backup."""

    def test_deletes_every_artifact(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """Nothing under the backup directory remains."""
        store.put_backup(_full_info("b1"))

        store.delete_backup("b1")

        assert backend.list_objects(TEST_BUCKET, "backups/") == []
        assert store.list_backups() == []

    def test_leaves_similarly_named_backup(self, store: ObjectBackupStore) -> None:
        """Deleting b1 does not touch b10."""
        store.put_backup(_full_info("b1"))
        store.put_backup(_full_info("b10"))

        store.delete_backup("b1")

        assert store.list_backups() == ["b10"]

    def test_refreshes_revision(self, store: ObjectBackupStore) -> None:
        """Deletion is a mutation and changes the revision."""
        store.put_backup(_full_info("b1"))
        before = store.get_revision()

        store.delete_backup("b1")

        assert store.get_revision() != before

    def test_unknown_backup_is_noop(self, store: ObjectBackupStore) -> None:
        """Deleting a backup with no objects succeeds."""
        store.delete_backup("nope")

    @pytest.mark.parametrize("with_log", [False, True])
    def test_failed_upload_then_delete_leaves_no_backup(
        self, store: ObjectBackupStore, with_log: bool
    ) -> None:
        """A backup whose metadata never uploaded is gone once deleted."""
        info = BackupInfo(
            name="bk",
            metadata=_BrokenStream(),  # type: ignore[arg-type]
            log=io.BytesIO(b"log lines") if with_log else None,
        )

        with pytest.raises(AggregatedError):
            store.put_backup(info)

        assert store.list_backups() == (["bk"] if with_log else [])

        store.delete_backup("bk")

        assert store.list_backups() == []
        store.is_valid()

    def test_failed_deletes_aggregated(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """Every object is attempted; failures are reported together."""
        store.put_backup(_full_info("b1"))
        backend.fail_delete.update({"-contents.tar.gz", "-logs.txt.gz"})

        with pytest.raises(AggregatedError) as exc_info:
            store.delete_backup("b1")

        assert len(exc_info.value) == 2
        assert backend.list_objects(TEST_BUCKET, "backups/") == [
            "backups/b1/b1-contents.tar.gz",
            "backups/b1/b1-logs.txt.gz",
        ]

    def test_revision_failure_only_logged(
        self,
        store: ObjectBackupStore,
        backend: FaultyObjectStore,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A failed revision refresh does not fail the deletion."""
        store.put_backup(_full_info("b1"))
        backend.fail_put.add("revision")

        with caplog.at_level(logging.WARNING):
            store.delete_backup("b1")

        assert store.list_backups() == []
        assert any(
            r.levelno == logging.WARNING and "revision" in r.getMessage() for r in caplog.records
        )


class TestRestores:
    """Tests for restore artifacts."""

    def test_put_restore_log(self, store: ObjectBackupStore, backend: FaultyObjectStore) -> None:
        """The restore log lands under the restore directory."""
        stream = io.BytesIO(b"restore log")
        stream.read()

        store.put_restore_log("b1", "r1", stream)

        assert backend.read(TEST_BUCKET, "restores/r1/restore-r1-logs.txt.gz") == b"restore log"
        assert not stream.closed

    def test_put_restore_results(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """Restore results land under the restore directory."""
        store.put_restore_results("b1", "r1", io.BytesIO(b"{}"))

        assert backend.object_exists(TEST_BUCKET, "restores/r1/restore-r1-results.json.gz")

    def test_restore_writes_refresh_revision(self, store: ObjectBackupStore) -> None:
        """Each restore write changes the revision."""
        store.put_restore_log("b1", "r1", io.BytesIO(b"log"))
        first = store.get_revision()

        store.put_restore_results("b1", "r1", io.BytesIO(b"{}"))

        assert store.get_revision() != first

    def test_put_restore_log_failure_raises(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """Restore writes are not best-effort."""
        backend.fail_put.add("-logs.txt.gz")

        with pytest.raises(StorageBackendError):
            store.put_restore_log("b1", "r1", io.BytesIO(b"log"))

    def test_delete_restore(self, store: ObjectBackupStore, backend: FaultyObjectStore) -> None:
        """Every restore artifact is removed; backups are untouched."""
        store.put_backup(_full_info("b1"))
        store.put_restore_log("b1", "r1", io.BytesIO(b"log"))
        store.put_restore_results("b1", "r1", io.BytesIO(b"{}"))

        store.delete_restore("r1")

        assert backend.list_objects(TEST_BUCKET, "restores/") == []
        assert store.list_backups() == ["b1"]

    def test_delete_restore_revision_failure_raised(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """Unlike delete_backup, a revision failure fails delete_restore."""
        store.put_restore_log("b1", "r1", io.BytesIO(b"log"))
        backend.fail_put.add("revision")

        with pytest.raises(AggregatedError) as exc_info:
            store.delete_restore("r1")

        assert len(exc_info.value) == 1
        assert "error updating revision file" in str(exc_info.value)
        assert backend.list_objects(TEST_BUCKET, "restores/") == []

    def test_delete_restore_combines_errors(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """Delete failures and the revision failure are reported together."""
        store.put_restore_log("b1", "r1", io.BytesIO(b"log"))
        backend.fail_delete.add("-logs.txt.gz")
        backend.fail_put.add("revision")

        with pytest.raises(AggregatedError) as exc_info:
            store.delete_restore("r1")

        assert len(exc_info.value) == 2


class TestDownloadUrl:
    """Tests for get_download_url."""

    @pytest.mark.parametrize(
        ("kind", "key"),
        [
            (DownloadTargetKind.BACKUP_CONTENTS, "backups/x/x-contents.tar.gz"),
            (DownloadTargetKind.BACKUP_LOG, "backups/x/x-logs.txt.gz"),
            (DownloadTargetKind.BACKUP_VOLUME_SNAPSHOTS, "backups/x/x-volumesnapshots.json.gz"),
            (DownloadTargetKind.BACKUP_RESOURCE_LIST, "backups/x/x-resource-list.json.gz"),
            (DownloadTargetKind.RESTORE_LOG, "restores/x/restore-x-logs.txt.gz"),
            (DownloadTargetKind.RESTORE_RESULTS, "restores/x/restore-x-results.json.gz"),
        ],
    )
    def test_url_for_each_kind(
        self, store: ObjectBackupStore, kind: DownloadTargetKind, key: str
    ) -> None:
        """Each kind is signed for its artifact's key."""
        url = store.get_download_url(DownloadTarget(kind=kind, name="x"))

        assert url.split("?")[0].endswith(f"/{TEST_BUCKET}/{key}")
        assert verify_signed_url(url, TEST_BUCKET, key)

    def test_plain_string_kind(self, store: ObjectBackupStore) -> None:
        """Kinds may be passed as their string value."""
        url = store.get_download_url(DownloadTarget(kind="BackupLog", name="x"))

        assert verify_signed_url(url, TEST_BUCKET, "backups/x/x-logs.txt.gz")

    def test_unsupported_kind(self, store: ObjectBackupStore) -> None:
        """Unknown kinds are rejected."""
        with pytest.raises(UnsupportedTargetError) as exc_info:
            store.get_download_url(DownloadTarget(kind="PodVolumeBackups", name="x"))

        assert exc_info.value.kind == "PodVolumeBackups"

    def test_ttl_is_ten_minutes(self, store: ObjectBackupStore) -> None:
        """URLs expire ten minutes after issue."""
        issued_at = time.time()

        url = store.get_download_url(
            DownloadTarget(kind=DownloadTargetKind.BACKUP_CONTENTS, name="x")
        )

        expires = int(parse_qs(urlsplit(url).query)["expires"][0])
        assert 599 <= expires - issued_at <= 601


class TestIsValid:
    """Tests for is_valid/validate."""

    def test_empty_store_is_valid(self, store: ObjectBackupStore) -> None:
        """A store with nothing in it is valid."""
        store.is_valid()

    def test_reserved_dirs_and_revision_are_valid(self, store: ObjectBackupStore) -> None:
        """backups/, restores/ and the revision object are expected."""
        store.put_backup(_full_info("b1"))
        store.put_restore_log("b1", "r1", io.BytesIO(b"log"))

        store.is_valid()
        store.validate()

    def test_unexpected_dir_rejected(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """Any other top-level directory is a structural inconsistency."""
        backend.put_object(TEST_BUCKET, "junk/file", io.BytesIO(b"x"))

        with pytest.raises(StructuralInconsistencyError) as exc_info:
            store.is_valid()

        assert exc_info.value.invalid_dirs == ["junk"]
        assert str(exc_info.value).startswith(
            "Backup store contains invalid top-level directories: ['junk']"
        )

    def test_many_unexpected_dirs_truncated(
        self, store: ObjectBackupStore, backend: FaultyObjectStore
    ) -> None:
        """More than three offenders are counted and truncated in the message."""
        for name in ("d1", "d2", "d3", "d4", "d5"):
            backend.put_object(TEST_BUCKET, f"{name}/f", io.BytesIO(b"x"))

        with pytest.raises(StructuralInconsistencyError) as exc_info:
            store.is_valid()

        assert exc_info.value.invalid_dirs == ["d1", "d2", "d3", "d4", "d5"]
        assert "contains 5 invalid top-level directories" in str(exc_info.value)
        assert "'...'" in str(exc_info.value)
        assert "d4" not in str(exc_info.value)

    def test_dirs_outside_prefix_ignored(self, backend: FaultyObjectStore) -> None:
        """Only directories under the store's prefix are checked."""
        store = ObjectBackupStore(backend, TEST_BUCKET, ObjectStoreLayout("mine"))
        backend.put_object(TEST_BUCKET, "other/junk/f", io.BytesIO(b"x"))
        backend.put_object(TEST_BUCKET, "mine/backups/b1/f", io.BytesIO(b"x"))

        store.is_valid()

    def test_junk_under_prefix_rejected(self, backend: FaultyObjectStore) -> None:
        """Offending names are reported relative to the prefix."""
        store = ObjectBackupStore(backend, TEST_BUCKET, ObjectStoreLayout("mine"))
        backend.put_object(TEST_BUCKET, "mine/junk/f", io.BytesIO(b"x"))

        with pytest.raises(StructuralInconsistencyError) as exc_info:
            store.is_valid()

        assert exc_info.value.invalid_dirs == ["junk"]


class TestRevision:
    """Tests for the revision marker."""

    def test_missing_before_first_mutation(self, store: ObjectBackupStore) -> None:
        """A store that was never written to has no revision."""
        with pytest.raises(ObjectNotFoundError):
            store.get_revision()

    def test_changes_on_every_mutation(self, store: ObjectBackupStore) -> None:
        """Each mutating operation produces a new token."""
        seen: list[str] = []

        store.put_backup(_full_info("b1"))
        seen.append(store.get_revision())
        store.put_restore_log("b1", "r1", io.BytesIO(b"log"))
        seen.append(store.get_revision())
        store.delete_restore("r1")
        seen.append(store.get_revision())
        store.delete_backup("b1")
        seen.append(store.get_revision())

        assert len(set(seen)) == 4

    def test_reads_do_not_change_revision(self, store: ObjectBackupStore) -> None:
        """Read-only operations leave the token alone."""
        store.put_backup(_full_info("b1"))
        before = store.get_revision()

        store.list_backups()
        store.get_backup_metadata("b1")
        store.is_valid()

        assert store.get_revision() == before

    def test_revision_under_prefix(self, backend: FaultyObjectStore) -> None:
        """The revision object lives at the root of the prefix."""
        store = ObjectBackupStore(backend, TEST_BUCKET, ObjectStoreLayout("pfx"))

        store.put_restore_log("b1", "r1", io.BytesIO(b"log"))

        assert backend.object_exists(TEST_BUCKET, "pfx/revision")
