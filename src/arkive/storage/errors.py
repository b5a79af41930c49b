"""Arkive object storage error types.

Provides typed exceptions for backend operations. Every backend raises these
(or lets unrelated exceptions propagate unchanged); the artifact store builds
its own taxonomy on top of ObjectStorageError.
"""

from __future__ import annotations


class ObjectStorageError(Exception):
    """Base exception for object storage operations.

    Attributes:
        message: Human-readable error message.
        bucket: Bucket associated with the operation (if applicable).
        key: Object key associated with the operation (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.bucket = bucket
        self.key = key

    def __str__(self) -> str:
        parts = [self.message]
        if self.bucket:
            parts.append(f"bucket={self.bucket}")
        if self.key:
            parts.append(f"key={self.key}")
        return " ".join(parts)


class ObjectNotFoundError(ObjectStorageError):
    """Raised when an object is not found in storage."""

    def __init__(
        self,
        message: str = "Object not found",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class PathTraversalError(ObjectStorageError):
    """Raised when an object key contains path traversal sequences.

    Only backends that map keys onto a real filesystem raise this.
    """

    def __init__(
        self,
        message: str = "Invalid key: path traversal detected",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class StorageBackendError(ObjectStorageError):
    """Raised when the storage backend cannot complete an operation.

    This error indicates the backend itself failed (e.g., disk full,
    permission denied, I/O error) rather than a logical error like
    object not found.
    """

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        bucket: str | None = None,
        key: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)
        self.cause = cause
