"""Pytest configuration and fixtures for Arkive tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from arkive.observability.tracing import reset_tracing
from arkive.persistence.backup_store import ObjectBackupStore
from arkive.persistence.layout import ObjectStoreLayout
from arkive.storage.filesystem_store import FilesystemObjectStore
from arkive.storage.memory_store import MemoryObjectStore
from arkive.storage.object_store import ObjectStore
from tests.fixtures.storage import TEST_BUCKET, FaultyObjectStore

_ARKIVE_ENV_VARS = (
    "ARKIVE_OTEL_ENABLED",
    "ARKIVE_OTEL_TEST_CAPTURE",
    "ARKIVE_REQUIRE_OTEL",
    "ARKIVE_OTEL_SERVICE_NAME",
    "ARKIVE_OTEL_EXPORTER",
    "ARKIVE_OTEL_EXPORTER_OTLP_ENDPOINT",
    "ARKIVE_OTEL_EXPORTER_OTLP_PROTOCOL",
    "ARKIVE_OTEL_RESOURCE_ATTRS",
    "ARKIVE_OBJECT_STORE_BASE_DIR",
    "ARKIVE_URL_SIGNING_SECRET",
    "ARKIVE_PROVIDER",
    "ARKIVE_BUCKET",
    "ARKIVE_PREFIX",
    "ARKIVE_LOCATION_NAME",
)


@pytest.fixture(autouse=True)
def isolate_arkive_env(monkeypatch: pytest.MonkeyPatch) -> Any:
    """Start every test without ARKIVE_* configuration and with tracing reset."""
    for name in _ARKIVE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_tracing()

    yield

    reset_tracing()


@pytest.fixture(params=["memory", "filesystem"])
def backend(request: pytest.FixtureRequest, tmp_path: Path) -> FaultyObjectStore:
    """Return each backend wrapped with fault injection."""
    inner: ObjectStore
    if request.param == "memory":
        inner = MemoryObjectStore()
    else:
        inner = FilesystemObjectStore(base_dir=tmp_path / "objects")
    inner.init({"bucket": TEST_BUCKET})
    return FaultyObjectStore(inner)


@pytest.fixture
def store(backend: FaultyObjectStore) -> ObjectBackupStore:
    """Return a backup store rooted at the top of the test bucket."""
    return ObjectBackupStore(backend, TEST_BUCKET, ObjectStoreLayout(""))


@pytest.fixture
def temp_storage_dir(tmp_path: Path) -> Iterator[Path]:
    """Return a temporary directory for filesystem storage tests."""
    storage_dir = tmp_path / "arkive_test_storage"
    storage_dir.mkdir()
    yield storage_dir


@pytest.fixture
def fs_store(temp_storage_dir: Path) -> FilesystemObjectStore:
    """Return a FilesystemObjectStore rooted in a temp directory."""
    return FilesystemObjectStore(base_dir=temp_storage_dir)
