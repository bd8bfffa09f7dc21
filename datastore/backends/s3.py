"""S3-compatible datastore backend using boto3."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, BinaryIO, Dict, List, Mapping, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from datastore.base import DataStore, Payload, effective_limit
from datastore.cancellation import BlockingCallRunner, CancellationToken, check_cancelled
from datastore.config.models import DataStoreConfig
from datastore.exceptions import (
    ConfigValidationError,
    MetadataIncompleteError,
    NotFoundError,
    StorageError,
)
from datastore.streams import open_reader, read_payload

from .helpers import get_env_value, normalize_prefix, parse_timeout, to_http_date

logger = logging.getLogger(__name__)

BACKEND_TYPE = "s3"

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_PRECONDITION_CODES = {"412", "PreconditionFailed"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _close_body(response: Dict[str, Any]) -> None:
    response["Body"].close()


def _status_code(exc: ClientError) -> Optional[int]:
    try:
        return int(exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)) or None
    except (TypeError, ValueError):
        return None


class S3DataStore(DataStore):
    """S3-compatible datastore backend.

    Supports AWS S3, MinIO, and any S3-compatible object storage.
    Objects live under ``destination_bucket_path`` (``bucket[/prefix]``).
    """

    def __init__(self, config: DataStoreConfig, client: Any = None):
        """Initialize S3 datastore from configuration.

        Args:
            config: DataStoreConfig whose params contain:
                - destination_bucket_path: bucket name with optional key prefix
                - region: Optional AWS region
                - endpoint_url / endpoint_url_env: Optional custom endpoint
                - access_key_env / secret_key_env: Environment variables for credentials
                - timeout: Optional connect/read timeout duration (default 30s)
            client: Pre-built boto3 S3 client (tests)
        """
        bucket_path = normalize_prefix(config.require("destination_bucket_path"))
        bucket, _, prefix = bucket_path.partition("/")
        if not bucket:
            raise ConfigValidationError(
                "destination_bucket_path must name a bucket", key="destination_bucket_path"
            )
        self.bucket = bucket
        self.prefix = normalize_prefix(prefix)

        timeout = parse_timeout(config)

        if client is None:
            endpoint_url = config.get("endpoint_url") or get_env_value(
                config.get("endpoint_url_env")
            )
            access_key = get_env_value(config.get("access_key_env", "AWS_ACCESS_KEY_ID"))
            secret_key = get_env_value(
                config.get("secret_key_env", "AWS_SECRET_ACCESS_KEY")
            )

            session_kwargs: Dict[str, Any] = {}
            if access_key and secret_key:
                session_kwargs["aws_access_key_id"] = access_key
                session_kwargs["aws_secret_access_key"] = secret_key

            config_kwargs: Dict[str, Any] = {
                "retries": {"max_attempts": 1, "mode": "standard"},
            }
            if timeout is not None:
                config_kwargs["connect_timeout"] = timeout
                config_kwargs["read_timeout"] = timeout
            boto_config = BotoConfig(**config_kwargs)
            client = boto3.client(
                "s3",
                region_name=config.get("region"),
                endpoint_url=endpoint_url,
                config=boto_config,
                **session_kwargs,
            )
            logger.debug(
                "Created S3 client for bucket '%s' with endpoint: %s",
                self.bucket,
                endpoint_url or "default",
            )

        self.client = client
        self._calls = BlockingCallRunner(thread_name_prefix="datastore-s3")
        self._closed = False

    def get_backend_type(self) -> str:
        return BACKEND_TYPE

    def _build_key(self, path: str) -> str:
        """Build full S3 key from path and prefix."""
        if not self.prefix:
            return path
        return f"{self.prefix}/{path}"

    def _strip_prefix(self, key: str) -> str:
        if self.prefix and key.startswith(self.prefix + "/"):
            return key[len(self.prefix) + 1:]
        return key

    def _translate(self, exc: Exception, path: str, operation: str) -> Exception:
        """Map boto errors onto the datastore error vocabulary."""
        if isinstance(exc, ClientError):
            code = _error_code(exc)
            if code in _NOT_FOUND_CODES:
                return NotFoundError(
                    f"file {path} does not exist", file_path=path, backend_type=BACKEND_TYPE
                )
            return StorageError(
                f"S3 {operation} failed for {path}: {code or 'unknown error'}",
                backend_type=BACKEND_TYPE,
                operation=operation,
                file_path=path,
                status_code=_status_code(exc),
                original_error=exc,
            )
        return StorageError(
            f"S3 {operation} failed for {path}",
            backend_type=BACKEND_TYPE,
            operation=operation,
            file_path=path,
            original_error=exc,
        )

    def _head(self, path: str, operation: str, cancel: Optional[CancellationToken]) -> Dict[str, Any]:
        check_cancelled(cancel, operation, path)
        try:
            return self._calls.run(
                lambda: self.client.head_object(Bucket=self.bucket, Key=self._build_key(path)),
                cancel,
                operation,
                path,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.debug("HEAD s3://%s/%s failed: %s", self.bucket, self._build_key(path), exc)
            raise self._translate(exc, path, operation) from exc

    def get_file_metadata(
        self, path: str, cancel: Optional[CancellationToken] = None
    ) -> Dict[str, str]:
        """Return user metadata plus content-length, last-modified, content-type and etag."""
        response = self._head(path, "get_file_metadata", cancel)
        metadata = {str(k).lower(): str(v) for k, v in response.get("Metadata", {}).items()}
        if "ContentLength" in response:
            metadata["content-length"] = str(response["ContentLength"])
        if response.get("LastModified") is not None:
            metadata["last-modified"] = to_http_date(response["LastModified"])
        if response.get("ContentType"):
            metadata["content-type"] = response["ContentType"]
        if response.get("ETag"):
            metadata["etag"] = response["ETag"]
        return metadata

    def get_file_last_modified(
        self, path: str, cancel: Optional[CancellationToken] = None
    ) -> datetime:
        response = self._head(path, "get_file_last_modified", cancel)
        last_modified = response.get("LastModified")
        if last_modified is None:
            raise MetadataIncompleteError(
                "object has no last-modified time", file_path=path, attribute="last-modified"
            )
        if last_modified.tzinfo is None:
            last_modified = last_modified.replace(tzinfo=timezone.utc)
        return last_modified.astimezone(timezone.utc)

    def get_file(self, path: str, cancel: Optional[CancellationToken] = None) -> BinaryIO:
        check_cancelled(cancel, "get_file", path)
        key = self._build_key(path)
        try:
            response = self._calls.run(
                lambda: self.client.get_object(Bucket=self.bucket, Key=key),
                cancel,
                "get_file",
                path,
                discard=_close_body,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.debug("Error retrieving s3://%s/%s: %s", self.bucket, key, exc)
            raise self._translate(exc, path, "get_file") from exc
        logger.debug("File retrieved successfully: s3://%s/%s", self.bucket, key)
        return open_reader(response["Body"], path, cancel=cancel)

    def exists(self, path: str, cancel: Optional[CancellationToken] = None) -> bool:
        try:
            self._head(path, "exists", cancel)
        except NotFoundError:
            return False
        return True

    def size(self, path: str, cancel: Optional[CancellationToken] = None) -> int:
        response = self._head(path, "size", cancel)
        if response.get("ContentLength") is None:
            raise MetadataIncompleteError(
                "object has no content length", file_path=path, attribute="content-length"
            )
        return int(response["ContentLength"])

    def _put(
        self,
        path: str,
        data: Payload,
        metadata: Optional[Mapping[str, str]],
        operation: str,
        cancel: Optional[CancellationToken],
        **extra: Any,
    ) -> None:
        key = self._build_key(path)
        kwargs: Dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": read_payload(data),
            **extra,
        }
        if metadata:
            kwargs["Metadata"] = {str(k): str(v) for k, v in metadata.items()}
        self._calls.run(lambda: self.client.put_object(**kwargs), cancel, operation, path)
        logger.info("Uploaded s3://%s/%s", self.bucket, key)

    def put_file(
        self,
        path: str,
        data: Payload,
        metadata: Optional[Mapping[str, str]] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        check_cancelled(cancel, "put_file", path)
        try:
            self._put(path, data, metadata, "put_file", cancel)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Failed to upload %s to S3: %s", path, exc)
            raise self._translate(exc, path, "put_file") from exc

    def put_file_if_not_exists(
        self,
        path: str,
        data: Payload,
        metadata: Optional[Mapping[str, str]] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> bool:
        """Create the object with a conditional write (``If-None-Match: *``)."""
        check_cancelled(cancel, "put_file_if_not_exists", path)
        try:
            self._put(
                path, data, metadata, "put_file_if_not_exists", cancel, IfNoneMatch="*"
            )
        except ClientError as exc:
            if _error_code(exc) in _PRECONDITION_CODES or _status_code(exc) == 412:
                logger.debug("s3://%s/%s already exists", self.bucket, self._build_key(path))
                return False
            logger.error("Failed to upload %s to S3: %s", path, exc)
            raise self._translate(exc, path, "put_file_if_not_exists") from exc
        except BotoCoreError as exc:
            logger.error("Failed to upload %s to S3: %s", path, exc)
            raise self._translate(exc, path, "put_file_if_not_exists") from exc
        return True

    def list_file_paths(
        self, prefix: str, limit: int, cancel: Optional[CancellationToken] = None
    ) -> List[str]:
        check_cancelled(cancel, "list_file_paths", prefix)
        max_items = effective_limit(limit)
        full_prefix = self._build_key(prefix)
        paths: List[str] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            pages = iter(
                paginator.paginate(
                    Bucket=self.bucket,
                    Prefix=full_prefix,
                    PaginationConfig={"PageSize": min(max_items, 1000)},
                )
            )
            while len(paths) < max_items:
                page = self._calls.run(
                    lambda: next(pages, None), cancel, "list_file_paths", prefix
                )
                if page is None:
                    break
                for obj in page.get("Contents", []):
                    paths.append(self._strip_prefix(obj["Key"]))
                    if len(paths) >= max_items:
                        break
        except (BotoCoreError, ClientError) as exc:
            logger.error("Failed to list files in S3: %s", exc)
            raise self._translate(exc, prefix, "list_file_paths") from exc
        logger.debug("Listed %d files with prefix '%s'", len(paths), full_prefix)
        return paths

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._calls.shutdown()
        close = getattr(self.client, "close", None)
        if close is not None:
            close()
