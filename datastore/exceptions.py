"""Custom exception classes for datastore-foundry.

Every backend translates its native failures into these types so callers can
branch on the classification without knowing which backend is in play.
"""

from typing import Any, Dict, Optional


class DataStoreError(Exception):
    """Base exception for all datastore errors."""

    error_code: str = "ERR000"  # Override in subclasses

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, error_code: Optional[str] = None):
        """
        Initialize datastore exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context
            error_code: Optional error code override
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def __str__(self) -> str:
        """Return string representation with error code and details."""
        parts = [f"[{self.error_code}] {self.message}"]
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            parts.append(f"({detail_str})")
        return " ".join(parts)


class ConfigValidationError(DataStoreError, ValueError):
    """Raised when a datastore configuration is missing or malformed.

    Examples:
        - Missing base_url / destination_bucket_path
        - Unsupported URL scheme
        - Unparseable timeout duration
        - Unknown backend type
    """

    error_code = "CFG001"

    def __init__(self, message: str, config_path: Optional[str] = None, key: Optional[str] = None):
        """
        Initialize configuration validation error.

        Args:
            message: Description of validation failure
            config_path: Path to config file that failed validation
            key: Specific configuration key that caused the error
        """
        details = {}
        if config_path:
            details['config_path'] = config_path
        if key:
            details['config_key'] = key
        super().__init__(message, details)
        self.key = key


class NotFoundError(DataStoreError, FileNotFoundError):
    """Raised when the addressed object does not exist at the backend."""

    error_code = "NF001"

    def __init__(self, message: str, file_path: Optional[str] = None, backend_type: Optional[str] = None):
        details = {}
        if backend_type:
            details['backend_type'] = backend_type
        if file_path:
            details['file_path'] = file_path
        super().__init__(message, details)
        self.file_path = file_path


class UnsupportedOperationError(DataStoreError, NotImplementedError):
    """Raised when a backend cannot perform an operation at all.

    Independent of the path: a read-only backend rejects every write.
    """

    error_code = "UNS001"

    def __init__(self, message: str, operation: Optional[str] = None, backend_type: Optional[str] = None):
        details = {}
        if backend_type:
            details['backend_type'] = backend_type
        if operation:
            details['operation'] = operation
        super().__init__(message, details)
        self.operation = operation


class MetadataIncompleteError(DataStoreError):
    """Raised when the backend never reports a required attribute."""

    error_code = "META001"

    def __init__(self, message: str, file_path: Optional[str] = None, attribute: Optional[str] = None):
        details = {}
        if file_path:
            details['file_path'] = file_path
        if attribute:
            details['attribute'] = attribute
        super().__init__(message, details)
        self.file_path = file_path
        self.attribute = attribute


class StorageError(DataStoreError):
    """Raised when a backend operation fails for any other reason.

    Examples:
        - Unexpected HTTP status
        - Network connectivity issues
        - S3 client errors other than missing keys
        - Malformed response headers
        - Local filesystem permission errors
    """

    error_code = "STG001"

    def __init__(
        self,
        message: str,
        backend_type: Optional[str] = None,
        operation: Optional[str] = None,
        file_path: Optional[str] = None,
        status_code: Optional[int] = None,
        original_error: Optional[BaseException] = None
    ):
        """
        Initialize storage error.

        Args:
            message: Description of storage failure
            backend_type: Storage backend type (http, s3, filesystem)
            operation: Operation that failed (get_file, size, put_file, ...)
            file_path: Path relative to the store root
            status_code: Backend status code when one was received
            original_error: Original exception that caused this error
        """
        details: Dict[str, Any] = {}
        if backend_type:
            details['backend_type'] = backend_type
        if operation:
            details['operation'] = operation
        if file_path:
            details['file_path'] = file_path
        if status_code is not None:
            details['status_code'] = status_code
        if original_error:
            details['original_error'] = str(original_error)
            details['error_type'] = type(original_error).__name__

        super().__init__(message, details)
        self.file_path = file_path
        self.status_code = status_code
        self.original_error = original_error


class OperationCancelledError(DataStoreError):
    """Raised when a caller's cancellation token fires mid-operation."""

    error_code = "CAN001"

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        file_path: Optional[str] = None,
        deadline_exceeded: bool = False
    ):
        details: Dict[str, Any] = {}
        if operation:
            details['operation'] = operation
        if file_path:
            details['file_path'] = file_path
        if deadline_exceeded:
            details['deadline_exceeded'] = True
        super().__init__(message, details)
        self.deadline_exceeded = deadline_exceeded
