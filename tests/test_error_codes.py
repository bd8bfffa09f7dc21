"""Tests for the datastore error taxonomy and error codes."""

from datastore.exceptions import (
    ConfigValidationError,
    DataStoreError,
    MetadataIncompleteError,
    NotFoundError,
    OperationCancelledError,
    StorageError,
    UnsupportedOperationError,
)


def test_base_error_code():
    err = DataStoreError("Test error")
    assert err.error_code == "ERR000"
    assert "[ERR000]" in str(err)


def test_error_code_override():
    err = DataStoreError("Test error", error_code="X42")
    assert str(err) == "[X42] Test error"


def test_config_validation_error_code():
    err = ConfigValidationError("Invalid config", config_path="/etc/datastore.yaml", key="base_url")
    assert err.error_code == "CFG001"
    assert "config_path=/etc/datastore.yaml" in str(err)
    assert "config_key=base_url" in str(err)
    assert isinstance(err, ValueError)


def test_not_found_is_file_not_found():
    err = NotFoundError("file f.txt does not exist", file_path="f.txt", backend_type="http")
    assert err.error_code == "NF001"
    assert isinstance(err, FileNotFoundError)
    assert isinstance(err, DataStoreError)
    assert "[NF001]" in str(err)
    assert err.file_path == "f.txt"


def test_unsupported_is_not_implemented():
    err = UnsupportedOperationError("read-only", operation="put_file", backend_type="http")
    assert err.error_code == "UNS001"
    assert isinstance(err, NotImplementedError)
    assert err.operation == "put_file"


def test_metadata_incomplete_error_code():
    err = MetadataIncompleteError("no size", file_path="a", attribute="content-length")
    assert err.error_code == "META001"
    assert "attribute=content-length" in str(err)


def test_storage_error_carries_diagnostics():
    cause = ConnectionError("refused")
    err = StorageError(
        "GET request failed for a.txt",
        backend_type="http",
        operation="get_file",
        file_path="a.txt",
        status_code=502,
        original_error=cause,
    )
    assert err.error_code == "STG001"
    assert err.status_code == 502
    assert err.original_error is cause
    rendered = str(err)
    assert "file_path=a.txt" in rendered
    assert "status_code=502" in rendered
    assert "error_type=ConnectionError" in rendered


def test_cancelled_error_code():
    err = OperationCancelledError("aborted", operation="get_file", deadline_exceeded=True)
    assert err.error_code == "CAN001"
    assert err.details["deadline_exceeded"] is True
