"""DataStore contract and backend registry.

This module provides:
- DataStore: Abstract contract every storage backend implements
- Backend registry: Register and retrieve backend factories
- new_datastore(): Factory function building the configured backend
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, BinaryIO, Callable, Dict, List, Mapping, Optional, Union

from datastore.cancellation import CancellationToken
from datastore.config.models import DataStoreConfig
from datastore.exceptions import ConfigValidationError

logger = logging.getLogger(__name__)

# Bytes-like object or readable binary file
Payload = Union[bytes, bytearray, memoryview, BinaryIO]

DEFAULT_LIST_LIMIT = 1000


# =============================================================================
# DataStore Contract
# =============================================================================


class DataStore(ABC):
    """Backend-agnostic access to files addressed by a path relative to the store root.

    Error vocabulary shared by all backends:
        NotFoundError: the object does not exist
        UnsupportedOperationError: the backend lacks the capability entirely
        MetadataIncompleteError: size or modification time is never reported
        StorageError: any other backend or transport failure
        OperationCancelledError: the caller's token fired

    Instances are safe to share across threads. Every operation blocks the
    calling thread and accepts an optional CancellationToken.
    """

    @abstractmethod
    def get_file(self, path: str, cancel: Optional[CancellationToken] = None) -> BinaryIO:
        """Open the file for reading; the caller must close the stream."""

    @abstractmethod
    def get_file_metadata(
        self, path: str, cancel: Optional[CancellationToken] = None
    ) -> Dict[str, str]:
        """Return attributes keyed by lower-case name, without transferring the body."""

    @abstractmethod
    def get_file_last_modified(
        self, path: str, cancel: Optional[CancellationToken] = None
    ) -> datetime:
        """Return the modification time as a timezone-aware UTC datetime."""

    @abstractmethod
    def exists(self, path: str, cancel: Optional[CancellationToken] = None) -> bool:
        """Report whether the file exists; absence is False, never NotFoundError."""

    @abstractmethod
    def size(self, path: str, cancel: Optional[CancellationToken] = None) -> int:
        """Return the file size in bytes."""

    @abstractmethod
    def put_file(
        self,
        path: str,
        data: Payload,
        metadata: Optional[Mapping[str, str]] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        """Write the file, replacing any existing object."""

    @abstractmethod
    def put_file_if_not_exists(
        self,
        path: str,
        data: Payload,
        metadata: Optional[Mapping[str, str]] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> bool:
        """Atomically create the file; False if an object was already there."""

    @abstractmethod
    def list_file_paths(
        self, prefix: str, limit: int, cancel: Optional[CancellationToken] = None
    ) -> List[str]:
        """Return up to ``limit`` paths starting with ``prefix``, sorted ascending."""

    @abstractmethod
    def close(self) -> None:
        """Release held connection resources. Safe to call more than once."""

    @abstractmethod
    def get_backend_type(self) -> str:
        """Return the registry name of this backend."""

    def __enter__(self) -> "DataStore":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def effective_limit(limit: int) -> int:
    """Map non-positive list limits to DEFAULT_LIST_LIMIT."""
    return limit if limit > 0 else DEFAULT_LIST_LIMIT


# =============================================================================
# Backend Registry
# =============================================================================

BackendFactory = Callable[[DataStoreConfig], DataStore]

BACKEND_REGISTRY: Dict[str, BackendFactory] = {}


def register_backend(name: str) -> Callable[[BackendFactory], BackendFactory]:
    """Decorator to register a datastore backend factory.

    Usage:
        @register_backend("my_backend")
        def my_backend_factory(config: DataStoreConfig) -> DataStore:
            return MyBackend(config)
    """
    def decorator(factory: BackendFactory) -> BackendFactory:
        BACKEND_REGISTRY[name.strip().lower()] = factory
        return factory

    return decorator


def list_backends() -> List[str]:
    """Return all registered backend identifiers."""
    return sorted(BACKEND_REGISTRY.keys())


def get_backend_factory(backend_type: str) -> BackendFactory:
    """Get the factory function for a backend type."""
    factory = BACKEND_REGISTRY.get(backend_type.strip().lower())
    if not factory:
        available = list_backends()
        raise ConfigValidationError(
            f"Datastore backend '{backend_type}' is not available. "
            f"Available backends: {', '.join(available)}.",
            key="type",
        )
    return factory


def new_datastore(config: Union[DataStoreConfig, Mapping[str, Any]]) -> DataStore:
    """Build the backend declared by ``config.type``.

    Args:
        config: DataStoreConfig, or a ``{"type": ..., "params": {...}}`` mapping

    Returns:
        Configured DataStore instance owned by the caller

    Raises:
        ConfigValidationError: Unknown type or invalid backend parameters
    """
    if not isinstance(config, DataStoreConfig):
        config = DataStoreConfig.from_dict(config)
    factory = get_backend_factory(config.backend_type)
    store = factory(config)
    logger.debug("Created %s datastore", store.get_backend_type())
    return store


# =============================================================================
# Built-in Backend Factories
# =============================================================================


@register_backend("http")
def _http_factory(config: DataStoreConfig) -> DataStore:
    from datastore.backends.http import HTTPDataStore
    return HTTPDataStore(config)


@register_backend("s3")
def _s3_factory(config: DataStoreConfig) -> DataStore:
    from datastore.backends.s3 import S3DataStore
    return S3DataStore(config)


@register_backend("filesystem")
@register_backend("local")
def _filesystem_factory(config: DataStoreConfig) -> DataStore:
    from datastore.backends.local import LocalDataStore
    return LocalDataStore(config)
