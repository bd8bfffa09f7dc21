"""Read-only HTTP(S) datastore backend using requests."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, BinaryIO, Dict, List, Mapping, Optional
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter

from datastore.base import DataStore, Payload
from datastore.cancellation import BlockingCallRunner, CancellationToken, check_cancelled
from datastore.config.durations import format_duration
from datastore.config.models import DataStoreConfig
from datastore.exceptions import (
    ConfigValidationError,
    MetadataIncompleteError,
    NotFoundError,
    StorageError,
    UnsupportedOperationError,
)
from datastore.streams import open_reader

from .helpers import parse_http_date, parse_positive_int, parse_timeout

logger = logging.getLogger(__name__)

HEADER_PARAM_PREFIX = "header_"
CHUNK_SIZE = 64 * 1024
BACKEND_TYPE = "http"


@dataclass(frozen=True)
class SyncPoolConfig:
    """Connection pooling for the requests.Session HTTPAdapter.

    Attributes:
        pool_connections: Number of urllib3 connection pools to cache
        pool_maxsize: Maximum connections per pool (per host)
        max_retries: Always 0; the datastore never retries internally
    """

    pool_connections: int = 10
    pool_maxsize: int = 10
    max_retries: int = 0

    @classmethod
    def from_config(cls, config: DataStoreConfig) -> "SyncPoolConfig":
        return cls(
            pool_connections=parse_positive_int(config, "pool_connections", 10),
            pool_maxsize=parse_positive_int(config, "pool_maxsize", 10),
        )


def _create_pooled_session(pool_config: Optional[SyncPoolConfig] = None) -> requests.Session:
    """Create a requests.Session with explicit connection pooling configuration."""
    config = pool_config or SyncPoolConfig()
    session = requests.Session()

    adapter = HTTPAdapter(
        pool_connections=config.pool_connections,
        pool_maxsize=config.pool_maxsize,
        max_retries=config.max_retries,
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    # Keep content-length equal to the bytes a GET yields.
    session.headers["Accept-Encoding"] = "identity"

    logger.debug(
        "Created pooled session with connections=%d, maxsize=%d",
        config.pool_connections,
        config.pool_maxsize,
    )
    return session


def _normalize_base_url(config: DataStoreConfig) -> str:
    base_url = config.get("base_url")
    if base_url is None:
        raise ConfigValidationError("invalid HTTP config, no base_url", key="base_url")

    try:
        parsed = urlparse(base_url)
    except ValueError as exc:
        raise ConfigValidationError(f"invalid base_url: {exc}", key="base_url") from exc
    if parsed.scheme not in ("http", "https"):
        raise ConfigValidationError("base_url must use http or https scheme", key="base_url")
    if not parsed.netloc:
        raise ConfigValidationError("base_url must include a host", key="base_url")

    return base_url.rstrip("/") + "/"


def _collect_headers(config: DataStoreConfig) -> Dict[str, str]:
    headers = config.params_with_prefix(HEADER_PARAM_PREFIX)
    if "" in headers:
        raise ConfigValidationError(
            f"header parameter '{HEADER_PARAM_PREFIX}' has no header name",
            key=HEADER_PARAM_PREFIX,
        )
    return headers


def _collect_metadata(response: requests.Response) -> Dict[str, str]:
    """Lower-case every header name, keeping the first value of repeated headers."""
    raw_headers = getattr(getattr(response, "raw", None), "headers", None)
    headers: Any = raw_headers if raw_headers is not None else response.headers
    metadata: Dict[str, str] = {}
    for name in headers.keys():
        key = name.lower()
        if key in metadata:
            continue
        if hasattr(headers, "getlist"):
            values = headers.getlist(name)
            metadata[key] = values[0] if values else ""
        else:
            metadata[key] = headers[name]
    return metadata


def _close_response(response: requests.Response) -> None:
    response.close()


class _ResponseBody:
    """File-like view over a streamed requests.Response."""

    def __init__(self, response: requests.Response, path: str) -> None:
        self._response = response
        self._path = path
        self._chunks = response.iter_content(chunk_size=CHUNK_SIZE)
        self._pending = b""

    def read(self, size: int = -1) -> bytes:
        if not self._pending:
            try:
                self._pending = next(self._chunks, b"")
            except requests.RequestException as exc:
                raise StorageError(
                    f"reading body failed for {self._path}",
                    backend_type=BACKEND_TYPE,
                    operation="get_file",
                    file_path=self._path,
                    original_error=exc,
                ) from exc
        if size < 0 or size >= len(self._pending):
            data, self._pending = self._pending, b""
        else:
            data, self._pending = self._pending[:size], self._pending[size:]
        return data

    def close(self) -> None:
        self._response.close()


class HTTPDataStore(DataStore):
    """DataStore over plain HTTP(S) endpoints, for read-only access to published files.

    Config params:
        - base_url (required): http:// or https:// URL; a trailing slash is appended
        - timeout (optional): duration string such as "30s" or "1m"; default 30s, "0" disables
        - header_<Name> (optional): header <Name> sent with every request
        - pool_connections / pool_maxsize (optional): connection pool sizing

    Configured headers take precedence over every transport default with the
    same name, including Host and User-Agent.

    Example config:
        datastore:
          type: HTTP
          params:
            base_url: https://example.com/data/
            timeout: 60s
            header_Authorization: "Bearer token123"
            header_X-Custom-Header: custom-value
    """

    def __init__(
        self, config: DataStoreConfig, session: Optional[requests.Session] = None
    ) -> None:
        self._base_url = _normalize_base_url(config)
        self._timeout = parse_timeout(config)
        self._headers: Mapping[str, str] = MappingProxyType(_collect_headers(config))

        pool_config = SyncPoolConfig.from_config(config)
        if session is None:
            session = _create_pooled_session(pool_config)
        self._session = session
        self._calls = BlockingCallRunner(
            max_workers=pool_config.pool_maxsize, thread_name_prefix="datastore-http"
        )
        self._closed = False

        logger.debug(
            "Configured HTTP datastore base_url=%s timeout=%s headers=%s",
            self._base_url,
            format_duration(self._timeout) if self._timeout else "none",
            sorted(self._headers.keys()),
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout(self) -> Optional[float]:
        return self._timeout

    @property
    def headers(self) -> Mapping[str, str]:
        return self._headers

    def get_backend_type(self) -> str:
        return BACKEND_TYPE

    def _build_url(self, path: str) -> str:
        return self._base_url + path

    def _request_timeout(self, cancel: Optional[CancellationToken]) -> Optional[float]:
        """Configured timeout, shortened to the caller's remaining deadline."""
        remaining = cancel.remaining() if cancel is not None else None
        if remaining is None:
            return self._timeout
        if self._timeout is None:
            return remaining
        return min(self._timeout, remaining)

    def _check_status(self, response: requests.Response, path: str, operation: str) -> None:
        if response.status_code == 200:
            return
        if response.status_code == 404:
            raise NotFoundError(
                f"file {path} does not exist", file_path=path, backend_type=BACKEND_TYPE
            )
        raise StorageError(
            f"HTTP error {response.status_code} for file {path}",
            backend_type=BACKEND_TYPE,
            operation=operation,
            file_path=path,
            status_code=response.status_code,
        )

    def _send(
        self,
        method: str,
        path: str,
        operation: str,
        cancel: Optional[CancellationToken],
        stream: bool,
    ) -> requests.Response:
        check_cancelled(cancel, operation, path)
        url = self._build_url(path)
        headers = dict(self._headers)
        timeout = self._request_timeout(cancel)
        try:
            response = self._calls.run(
                lambda: self._session.request(
                    method,
                    url,
                    headers=headers,
                    timeout=timeout,
                    stream=stream,
                    allow_redirects=True,
                ),
                cancel,
                operation,
                path,
                discard=_close_response,
            )
        except requests.RequestException as exc:
            logger.debug("Error retrieving file '%s': %s", path, exc)
            check_cancelled(cancel, operation, path)
            raise StorageError(
                f"{method} request failed for {path}",
                backend_type=BACKEND_TYPE,
                operation=operation,
                file_path=path,
                original_error=exc,
            ) from exc

        try:
            self._check_status(response, path, operation)
            check_cancelled(cancel, operation, path)
        except Exception:
            response.close()
            raise
        return response

    def get_file_metadata(
        self, path: str, cancel: Optional[CancellationToken] = None
    ) -> Dict[str, str]:
        """Retrieve response headers for a file via an HTTP HEAD request."""
        response = self._send("HEAD", path, "get_file_metadata", cancel, stream=False)
        try:
            return _collect_metadata(response)
        finally:
            response.close()

    def get_file_last_modified(
        self, path: str, cancel: Optional[CancellationToken] = None
    ) -> datetime:
        metadata = self.get_file_metadata(path, cancel)
        last_modified = metadata.get("last-modified")
        if last_modified is None:
            raise MetadataIncompleteError(
                "last-modified header not found", file_path=path, attribute="last-modified"
            )
        try:
            return parse_http_date(last_modified)
        except ValueError as exc:
            raise StorageError(
                f"invalid last-modified header: {last_modified}",
                backend_type=BACKEND_TYPE,
                operation="get_file_last_modified",
                file_path=path,
                original_error=exc,
            ) from exc

    def get_file(self, path: str, cancel: Optional[CancellationToken] = None) -> BinaryIO:
        """Stream a file from the HTTP endpoint; close the returned stream when done."""
        response = self._send("GET", path, "get_file", cancel, stream=True)
        logger.debug("File retrieved successfully: %s", path)
        return open_reader(_ResponseBody(response, path), path, cancel=cancel)

    def exists(self, path: str, cancel: Optional[CancellationToken] = None) -> bool:
        try:
            response = self._send("HEAD", path, "exists", cancel, stream=False)
        except NotFoundError:
            return False
        response.close()
        return True

    def size(self, path: str, cancel: Optional[CancellationToken] = None) -> int:
        """Return the file size from the Content-Length header."""
        metadata = self.get_file_metadata(path, cancel)
        content_length = metadata.get("content-length")
        if content_length is None:
            raise MetadataIncompleteError(
                "content-length header not found", file_path=path, attribute="content-length"
            )
        try:
            size = int(content_length)
        except ValueError as exc:
            raise StorageError(
                f"invalid content-length header: {content_length}",
                backend_type=BACKEND_TYPE,
                operation="size",
                file_path=path,
                original_error=exc,
            ) from exc
        if size < 0:
            raise StorageError(
                f"invalid content-length header: {content_length}",
                backend_type=BACKEND_TYPE,
                operation="size",
                file_path=path,
            )
        return size

    def put_file(
        self,
        path: str,
        data: Payload,
        metadata: Optional[Mapping[str, str]] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        raise UnsupportedOperationError(
            "HTTP datastore is read-only, put_file not supported",
            operation="put_file",
            backend_type=BACKEND_TYPE,
        )

    def put_file_if_not_exists(
        self,
        path: str,
        data: Payload,
        metadata: Optional[Mapping[str, str]] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> bool:
        raise UnsupportedOperationError(
            "HTTP datastore is read-only, put_file_if_not_exists not supported",
            operation="put_file_if_not_exists",
            backend_type=BACKEND_TYPE,
        )

    def list_file_paths(
        self, prefix: str, limit: int, cancel: Optional[CancellationToken] = None
    ) -> List[str]:
        raise UnsupportedOperationError(
            "HTTP datastore does not support listing files",
            operation="list_file_paths",
            backend_type=BACKEND_TYPE,
        )

    def close(self) -> None:
        """Release pooled connections. No other state is held across calls."""
        if self._closed:
            return
        self._closed = True
        self._calls.shutdown()
        self._session.close()
