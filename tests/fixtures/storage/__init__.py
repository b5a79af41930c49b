"""Object storage test doubles for Arkive tests."""

from tests.fixtures.storage.faulty_store import TEST_BUCKET, FaultyObjectStore

__all__ = ["TEST_BUCKET", "FaultyObjectStore"]
