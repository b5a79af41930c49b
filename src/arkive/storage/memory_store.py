"""Simple in-memory object storage backend.

Used by the test suite and for ephemeral stores. Objects are kept in a dict
keyed by (bucket, key) and guarded by a lock, so one instance can be shared
between threads.
"""

from __future__ import annotations

import io
import logging
import threading
from collections.abc import Mapping
from datetime import timedelta
from typing import BinaryIO
from urllib.parse import quote

from arkive.storage.errors import ObjectNotFoundError
from arkive.storage.object_store import ObjectStore
from arkive.storage.signing import sign_url
from arkive.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)


class MemoryObjectStore(ObjectStore):
    """Thread-safe in-memory object storage backend."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._objects: dict[tuple[str, str], bytes] = {}
        self._config: dict[str, str] = {}

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "memory"

    @property
    def config(self) -> dict[str, str]:
        """Return a copy of the config passed to init()."""
        return dict(self._config)

    def init(self, config: Mapping[str, str]) -> None:
        """Remember the config; nothing else to set up."""
        self._config = dict(config)

    @traced_storage_operation("put_object")
    def put_object(self, bucket: str, key: str, body: BinaryIO) -> None:
        """Store an object in memory."""
        data = body.read()
        with self._lock:
            self._objects[(bucket, key)] = data
        logger.debug("Stored object: bucket=%s key=%s (%d bytes)", bucket, key, len(data))

    @traced_storage_operation("get_object")
    def get_object(self, bucket: str, key: str) -> BinaryIO:
        """Return a stream over a copy of the stored bytes."""
        with self._lock:
            data = self._objects.get((bucket, key))
        if data is None:
            raise ObjectNotFoundError(bucket=bucket, key=key)
        return io.BytesIO(data)

    @traced_storage_operation("object_exists")
    def object_exists(self, bucket: str, key: str) -> bool:
        """Check if an object exists."""
        with self._lock:
            return (bucket, key) in self._objects

    @traced_storage_operation("list_objects")
    def list_objects(self, bucket: str, prefix: str) -> list[str]:
        """List keys in bucket starting with prefix."""
        with self._lock:
            return sorted(k for b, k in self._objects if b == bucket and k.startswith(prefix))

    @traced_storage_operation("list_common_prefixes")
    def list_common_prefixes(self, bucket: str, prefix: str, delimiter: str) -> list[str]:
        """List distinct sub-prefixes one delimiter below prefix."""
        prefixes: set[str] = set()
        with self._lock:
            keys = [k for b, k in self._objects if b == bucket and k.startswith(prefix)]
        for key in keys:
            rest = key[len(prefix) :]
            idx = rest.find(delimiter)
            if idx >= 0:
                prefixes.add(prefix + rest[: idx + len(delimiter)])
        return sorted(prefixes)

    @traced_storage_operation("delete_object")
    def delete_object(self, bucket: str, key: str) -> None:
        """Delete an object from memory."""
        with self._lock:
            if self._objects.pop((bucket, key), None) is None:
                raise ObjectNotFoundError(bucket=bucket, key=key)
        logger.debug("Deleted object: bucket=%s key=%s", bucket, key)

    @traced_storage_operation("create_signed_url")
    def create_signed_url(self, bucket: str, key: str, ttl: timedelta) -> str:
        """Return a memory:// URL signed with the process signing secret."""
        return sign_url(f"memory://{quote(bucket)}/{quote(key)}", bucket, key, ttl)

    def count(self) -> int:
        """Get number of objects stored across all buckets."""
        with self._lock:
            return len(self._objects)
