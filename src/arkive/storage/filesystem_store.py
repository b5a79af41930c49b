"""Arkive Filesystem Object Storage backend.

Provides local filesystem storage for development and testing with:
- Bucket isolation via top-level directories
- Path traversal protection
- Atomic writes (temp file + rename)
- Directory pruning after delete so prefix listings stay accurate

Environment Variables:
    ARKIVE_OBJECT_STORE_BASE_DIR: Base directory for storage
        (default: tempfile.gettempdir() / arkive_objects)
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
import uuid
from collections.abc import Mapping
from datetime import timedelta
from pathlib import Path
from typing import BinaryIO

from arkive.storage.errors import (
    ObjectNotFoundError,
    PathTraversalError,
    StorageBackendError,
)
from arkive.storage.object_store import ObjectStore
from arkive.storage.signing import sign_url
from arkive.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)

ARKIVE_OBJECT_STORE_BASE_DIR_ENV = "ARKIVE_OBJECT_STORE_BASE_DIR"

_SAFE_KEY_PATTERN = re.compile(r"^[a-zA-Z0-9_\-./]+$")
_SAFE_BUCKET_PATTERN = re.compile(r"^[a-zA-Z0-9_\-.]+$")

_TMP_SUFFIX = ".tmp"


def _is_path_traversal(key: str) -> bool:
    """Check if a key contains path traversal sequences.

    Detects:
    - ".." segments
    - Absolute paths (starting with / or ~, or drive letters like C:)
    - Backslashes (Windows path separators)
    - Null bytes
    - Characters outside the safe key alphabet
    """
    if not key:
        return True

    if "\x00" in key or "\\" in key:
        return True

    if key.startswith("/") or key.startswith("~"):
        return True

    if len(key) >= 2 and key[1] == ":":
        return True

    segments = key.split("/")
    if any(segment == ".." for segment in segments):
        return True

    return not bool(_SAFE_KEY_PATTERN.match(key))


def _contains_object(directory: Path) -> bool:
    """Return True if any non-temp file exists below directory."""
    return any(
        p.is_file() and not p.name.endswith(_TMP_SUFFIX) for p in directory.rglob("*")
    )


def _validate_key(key: str, bucket: str) -> None:
    """Validate object key and raise if invalid."""
    if _is_path_traversal(key) or key.endswith("/"):
        raise PathTraversalError(
            message="Invalid key: path traversal or unsafe characters detected",
            bucket=bucket,
            key=key,
        )


class FilesystemObjectStore(ObjectStore):
    """Filesystem-based object storage implementation.

    Objects are stored one file per key:
        {base_dir}/{bucket}/{key}

    so "/" in a key becomes a real directory. Common prefixes are therefore
    plain directory listings.
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        """Initialize filesystem storage.

        Args:
            base_dir: Base directory for storage. If None, init() may supply
                one via the "base_dir" config key; otherwise the
                ARKIVE_OBJECT_STORE_BASE_DIR env var or OS temp directory
                is used.
        """
        self._explicit_base_dir = base_dir is not None
        self._base_dir = self._resolve_base_dir(base_dir)
        logger.debug("FilesystemObjectStore initialized with base_dir=%s", self._base_dir)

    @staticmethod
    def _resolve_base_dir(base_dir: str | Path | None) -> Path:
        if base_dir is None:
            base_dir = os.environ.get(ARKIVE_OBJECT_STORE_BASE_DIR_ENV)

        if base_dir is None:
            return (Path(tempfile.gettempdir()) / "arkive_objects").resolve()
        return Path(base_dir).resolve()

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "filesystem"

    @property
    def base_dir(self) -> Path:
        """Return the base directory path."""
        return self._base_dir

    def init(self, config: Mapping[str, str]) -> None:
        """Apply the "base_dir" config key unless a base dir was given explicitly."""
        configured = config.get("base_dir")
        if configured and not self._explicit_base_dir:
            self._base_dir = Path(configured).resolve()
        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to create base directory: {e}",
                cause=e,
            ) from e
        logger.debug("FilesystemObjectStore using base_dir=%s", self._base_dir)

    def _get_bucket_dir(self, bucket: str) -> Path:
        """Get the directory for a bucket, validating the bucket name."""
        if not _SAFE_BUCKET_PATTERN.match(bucket) or bucket in (".", ".."):
            raise StorageBackendError(message=f"Invalid bucket name: {bucket!r}", bucket=bucket)
        return self._base_dir / bucket

    def _get_object_path(self, bucket: str, key: str) -> Path:
        """Get the file path for an object, validating inputs."""
        _validate_key(key, bucket)
        path = self._get_bucket_dir(bucket) / key
        self._ensure_resolved_within_base(path, bucket, key)
        return path

    def _get_prefix_dir(self, bucket: str, prefix: str) -> tuple[Path, str]:
        """Split a listing prefix into (directory to walk, leaf name filter)."""
        bucket_dir = self._get_bucket_dir(bucket)
        if not prefix:
            return bucket_dir, ""
        if prefix.endswith("/"):
            _validate_key(prefix.rstrip("/"), bucket)
            directory = bucket_dir / prefix.rstrip("/")
            self._ensure_resolved_within_base(directory, bucket, prefix)
            return directory, ""

        _validate_key(prefix, bucket)
        head, _, leaf = prefix.rpartition("/")
        directory = bucket_dir / head if head else bucket_dir
        self._ensure_resolved_within_base(directory, bucket, prefix)
        return directory, leaf

    def _ensure_resolved_within_base(self, path: Path, bucket: str, key: str) -> Path:
        """Ensure a path resolves within the base directory."""
        resolved = path.resolve()
        try:
            resolved.relative_to(self._base_dir)
        except ValueError as e:
            raise PathTraversalError(
                message="Path resolves outside storage base directory",
                bucket=bucket,
                key=key,
            ) from e
        return resolved

    def _relative_key(self, bucket: str, path: Path) -> str:
        return path.relative_to(self._get_bucket_dir(bucket)).as_posix()

    @traced_storage_operation("put_object")
    def put_object(self, bucket: str, key: str, body: BinaryIO) -> None:
        """Store an object atomically."""
        path = self._get_object_path(bucket, key)
        tmp_file = path.parent / f".{path.name}.{uuid.uuid4().hex}{_TMP_SUFFIX}"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_file.open("wb") as out:
                shutil.copyfileobj(body, out)
            tmp_file.replace(path)
        except OSError as e:
            tmp_file.unlink(missing_ok=True)
            self._prune_empty_dirs(path.parent, self._get_bucket_dir(bucket))
            raise StorageBackendError(
                message=f"Failed to write object: {e}",
                bucket=bucket,
                key=key,
                cause=e,
            ) from e

        logger.debug("Stored object: bucket=%s key=%s", bucket, key)

    @traced_storage_operation("get_object")
    def get_object(self, bucket: str, key: str) -> BinaryIO:
        """Open an object for reading; the caller closes the stream."""
        path = self._get_object_path(bucket, key)
        if not path.is_file():
            raise ObjectNotFoundError(bucket=bucket, key=key)
        try:
            return path.open("rb")
        except FileNotFoundError as e:
            raise ObjectNotFoundError(bucket=bucket, key=key) from e
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to open object: {e}",
                bucket=bucket,
                key=key,
                cause=e,
            ) from e

    @traced_storage_operation("object_exists")
    def object_exists(self, bucket: str, key: str) -> bool:
        """Check if an object exists."""
        return self._get_object_path(bucket, key).is_file()

    @traced_storage_operation("list_objects")
    def list_objects(self, bucket: str, prefix: str) -> list[str]:
        """List keys in bucket starting with prefix."""
        directory, _ = self._get_prefix_dir(bucket, prefix)
        if not directory.is_dir():
            return []

        keys: list[str] = []
        try:
            for path in directory.rglob("*"):
                if not path.is_file() or path.name.endswith(_TMP_SUFFIX):
                    continue
                key = self._relative_key(bucket, path)
                if key.startswith(prefix):
                    keys.append(key)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to list objects: {e}",
                bucket=bucket,
                key=prefix,
                cause=e,
            ) from e
        return sorted(keys)

    @traced_storage_operation("list_common_prefixes")
    def list_common_prefixes(self, bucket: str, prefix: str, delimiter: str) -> list[str]:
        """List sub-directories one level below prefix."""
        if delimiter != "/":
            raise StorageBackendError(
                message=f"Unsupported delimiter {delimiter!r}; only '/' is supported",
                bucket=bucket,
            )

        directory, leaf = self._get_prefix_dir(bucket, prefix)
        if not directory.is_dir():
            return []

        try:
            children = [
                p
                for p in directory.iterdir()
                if p.is_dir() and p.name.startswith(leaf) and _contains_object(p)
            ]
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to list prefixes: {e}",
                bucket=bucket,
                key=prefix,
                cause=e,
            ) from e
        return sorted(f"{self._relative_key(bucket, p)}/" for p in children)

    @traced_storage_operation("delete_object")
    def delete_object(self, bucket: str, key: str) -> None:
        """Delete an object and prune any directories it leaves empty."""
        path = self._get_object_path(bucket, key)
        if not path.is_file():
            raise ObjectNotFoundError(bucket=bucket, key=key)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise ObjectNotFoundError(bucket=bucket, key=key) from e
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to delete object: {e}",
                bucket=bucket,
                key=key,
                cause=e,
            ) from e

        self._prune_empty_dirs(path.parent, self._get_bucket_dir(bucket))
        logger.debug("Deleted object: bucket=%s key=%s", bucket, key)

    def _prune_empty_dirs(self, directory: Path, stop_at: Path) -> None:
        while directory != stop_at and directory.is_relative_to(stop_at):
            try:
                directory.rmdir()
            except FileNotFoundError:
                # a failed mkdir may have created only some ancestors
                pass
            except OSError:
                # not empty: nothing more to prune
                return
            directory = directory.parent

    @traced_storage_operation("create_signed_url")
    def create_signed_url(self, bucket: str, key: str, ttl: timedelta) -> str:
        """Return a file:// URL for the object with an expiry signature."""
        path = self._get_object_path(bucket, key)
        return sign_url(path.as_uri(), bucket, key, ttl)
