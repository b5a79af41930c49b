"""Arkive Object Storage Abstraction.

Provides the minimal object storage capability the artifact store builds on:
put/get/list/delete/check-existence/sign-URL against a bucket+key address space.

Backends:
- MemoryObjectStore: in-process dict (tests, ephemeral use)
- FilesystemObjectStore: local filesystem (dev/test)

Environment Variables:
    ARKIVE_OBJECT_STORE_BASE_DIR: Base directory for filesystem backend
        (default: OS temp dir / arkive_objects)
    ARKIVE_URL_SIGNING_SECRET: Secret used to sign download URLs
        (default: random per process)
"""

from arkive.storage.errors import (
    ObjectNotFoundError,
    ObjectStorageError,
    PathTraversalError,
    StorageBackendError,
)
from arkive.storage.filesystem_store import FilesystemObjectStore
from arkive.storage.memory_store import MemoryObjectStore
from arkive.storage.object_store import ObjectStore

__all__ = [
    "ObjectStore",
    "MemoryObjectStore",
    "FilesystemObjectStore",
    "ObjectStorageError",
    "ObjectNotFoundError",
    "PathTraversalError",
    "StorageBackendError",
]
