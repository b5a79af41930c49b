"""Arkive Object Storage interface definition.

Provides the ObjectStore base class that all storage backends must implement.
Everything is addressed by (bucket, key); keys use "/" as the conventional
directory separator, but backends treat them as flat strings except when
listing common prefixes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import timedelta
from typing import BinaryIO


class ObjectStore(ABC):
    """Abstract base class for object storage backends.

    Implementations:
    - MemoryObjectStore: in-process dict (tests, ephemeral use)
    - FilesystemObjectStore: local filesystem (dev/test)
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability.

        Returns:
            Backend name string (e.g., "memory", "filesystem").
        """
        ...

    @abstractmethod
    def init(self, config: Mapping[str, str]) -> None:
        """Initialize the backend from a location config map.

        The config always carries a "bucket" entry when called by the
        backup store factory.

        Raises:
            StorageBackendError: If the backend cannot be initialized.
        """
        ...

    @abstractmethod
    def put_object(self, bucket: str, key: str, body: BinaryIO) -> None:
        """Store the remaining content of body under key, overwriting.

        The stream is read but not closed; it belongs to the caller.

        Raises:
            PathTraversalError: If key is unsafe for this backend.
            StorageBackendError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    def get_object(self, bucket: str, key: str) -> BinaryIO:
        """Return a readable stream over an object's content.

        The caller owns the returned stream and must close it.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StorageBackendError: If the backend cannot complete the read.
        """
        ...

    @abstractmethod
    def object_exists(self, bucket: str, key: str) -> bool:
        """Check whether an object exists without reading it."""
        ...

    @abstractmethod
    def list_objects(self, bucket: str, prefix: str) -> list[str]:
        """List the full keys of all objects whose key starts with prefix.

        Returns:
            Sorted list of keys. Empty list if nothing matches.
        """
        ...

    @abstractmethod
    def list_common_prefixes(self, bucket: str, prefix: str, delimiter: str) -> list[str]:
        """List the "directories" immediately below prefix.

        Returns:
            Sorted list of full prefixes (inclusive of prefix), each ending
            with delimiter. Objects sitting directly under prefix are not
            included.
        """
        ...

    @abstractmethod
    def delete_object(self, bucket: str, key: str) -> None:
        """Delete an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StorageBackendError: If the backend cannot complete the deletion.
        """
        ...

    @abstractmethod
    def create_signed_url(self, bucket: str, key: str, ttl: timedelta) -> str:
        """Return a URL granting read access to one object until ttl elapses."""
        ...
