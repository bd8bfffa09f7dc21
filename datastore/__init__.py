"""datastore-foundry: uniform file access over HTTP, S3 and local storage.

Usage:
    from datastore import DataStoreConfig, new_datastore

    config = DataStoreConfig(type="HTTP", params={"base_url": "https://example.com/data"})
    with new_datastore(config) as store:
        if store.exists("f.txt"):
            with store.get_file("f.txt") as stream:
                payload = stream.read()
"""

from datastore.base import (
    BACKEND_REGISTRY,
    DEFAULT_LIST_LIMIT,
    DataStore,
    get_backend_factory,
    list_backends,
    new_datastore,
    register_backend,
)
from datastore.cancellation import CancellationToken
from datastore.config import DataStoreConfig, load_datastore_config
from datastore.exceptions import (
    ConfigValidationError,
    DataStoreError,
    MetadataIncompleteError,
    NotFoundError,
    OperationCancelledError,
    StorageError,
    UnsupportedOperationError,
)

__version__ = "1.0.0"

__all__ = [
    "BACKEND_REGISTRY",
    "DEFAULT_LIST_LIMIT",
    "CancellationToken",
    "ConfigValidationError",
    "DataStore",
    "DataStoreConfig",
    "DataStoreError",
    "MetadataIncompleteError",
    "NotFoundError",
    "OperationCancelledError",
    "StorageError",
    "UnsupportedOperationError",
    "get_backend_factory",
    "list_backends",
    "load_datastore_config",
    "new_datastore",
    "register_backend",
]
