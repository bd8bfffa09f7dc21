"""Unit tests covering the backend registry and factory."""

import pytest

from datastore import base as base_mod
from datastore.backends.http import HTTPDataStore
from datastore.base import (
    BACKEND_REGISTRY,
    DEFAULT_LIST_LIMIT,
    DataStore,
    effective_limit,
    get_backend_factory,
    new_datastore,
    register_backend,
)
from datastore.config import DataStoreConfig
from datastore.exceptions import ConfigValidationError


class DummyStore(DataStore):
    def __init__(self, config):
        self.config = config
        self.closed = 0

    def get_file(self, path, cancel=None):
        raise NotImplementedError

    def get_file_metadata(self, path, cancel=None):
        return {}

    def get_file_last_modified(self, path, cancel=None):
        raise NotImplementedError

    def exists(self, path, cancel=None):
        return False

    def size(self, path, cancel=None):
        return 0

    def put_file(self, path, data, metadata=None, cancel=None):
        return None

    def put_file_if_not_exists(self, path, data, metadata=None, cancel=None):
        return True

    def list_file_paths(self, prefix, limit, cancel=None):
        return []

    def close(self):
        self.closed += 1

    def get_backend_type(self):
        return "dummy"


def test_builtin_backends_registered():
    assert {"http", "s3", "filesystem", "local"} <= set(base_mod.list_backends())


def test_register_custom_backend():
    original_registry = BACKEND_REGISTRY.copy()
    try:
        @register_backend("Dummy-Test")
        def dummy_factory(config):
            return DummyStore(config)

        assert "dummy-test" in base_mod.list_backends()
        store = new_datastore(DataStoreConfig(type="DUMMY-TEST", params={"a": "1"}))
        assert isinstance(store, DummyStore)
        assert store.config.params["a"] == "1"

        with store:
            pass
        assert store.closed == 1
    finally:
        BACKEND_REGISTRY.clear()
        BACKEND_REGISTRY.update(original_registry)


def test_type_dispatch_is_case_insensitive():
    store = new_datastore({"type": " Http ", "params": {"base_url": "https://example.com"}})
    assert isinstance(store, HTTPDataStore)


def test_unknown_backend_lists_available():
    with pytest.raises(ConfigValidationError, match="Available backends") as exc_info:
        get_backend_factory("gcs")
    assert "http" in str(exc_info.value)


def test_invalid_params_fail_construction():
    with pytest.raises(ConfigValidationError):
        new_datastore({"type": "HTTP", "params": {}})


def test_contract_is_abstract():
    with pytest.raises(TypeError):
        DataStore()  # type: ignore[abstract]


def test_effective_limit():
    assert effective_limit(5) == 5
    assert effective_limit(0) == DEFAULT_LIST_LIMIT
    assert effective_limit(-1) == DEFAULT_LIST_LIMIT
