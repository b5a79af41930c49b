"""Object storage provider registry.

Maps provider names to backend factories. Fail-closed on unknown providers.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from arkive.persistence.errors import ConfigurationError
from arkive.storage.filesystem_store import FilesystemObjectStore
from arkive.storage.memory_store import MemoryObjectStore
from arkive.storage.object_store import ObjectStore

logger = logging.getLogger(__name__)

ObjectStoreFactory = Callable[[], ObjectStore]


class ProviderNotRegisteredError(ConfigurationError):
    """Raised when a requested provider is not in the registry."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"object storage provider not registered: {provider}")


class DuplicateProviderError(Exception):
    """Raised when attempting to register a provider that already exists."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(f"object storage provider already registered: {provider}")


class ObjectStoreGetter(Protocol):
    """Anything that can produce an ObjectStore from a provider name."""

    def get_object_store(self, provider: str) -> ObjectStore: ...


@dataclass
class ProviderRegistry:
    """Registry of object storage backend factories.

    Each get_object_store() call creates a fresh, uninitialized backend.
    """

    _factories: dict[str, ObjectStoreFactory] = field(default_factory=dict)

    def register(self, provider: str, factory: ObjectStoreFactory) -> None:
        """Register a backend factory under a provider name.

        Raises:
            DuplicateProviderError: If the provider is already registered.
        """
        if provider in self._factories:
            raise DuplicateProviderError(provider)
        self._factories[provider] = factory
        logger.debug("Registered object storage provider: %s", provider)

    def get_object_store(self, provider: str) -> ObjectStore:
        """Create a backend for provider.

        Raises:
            ProviderNotRegisteredError: If provider is not registered.
        """
        factory = self._factories.get(provider)
        if factory is None:
            raise ProviderNotRegisteredError(provider)
        return factory()

    @property
    def providers(self) -> frozenset[str]:
        """Return the set of registered provider names."""
        return frozenset(self._factories)


def default_registry() -> ProviderRegistry:
    """Return a registry with the built-in "memory" and "filesystem" backends."""
    registry = ProviderRegistry()
    registry.register("memory", MemoryObjectStore)
    registry.register("filesystem", FilesystemObjectStore)
    return registry
