"""Readable streams handed back by ``DataStore.get_file``."""

from __future__ import annotations

import io
from typing import Any, BinaryIO, Optional

from datastore.cancellation import CancellationToken

DEFAULT_BUFFER_SIZE = 64 * 1024


class CancellableReader(io.RawIOBase):
    """Raw byte stream over a backend body that honours a cancellation token.

    ``source`` is any object with ``read(size)`` and ``close()``. Closing the
    reader closes the source; firing the token closes it too, so a blocked
    consumer sees the next read fail with OperationCancelledError.
    """

    def __init__(
        self,
        source: Any,
        path: str,
        cancel: Optional[CancellationToken] = None,
        operation: str = "get_file",
    ) -> None:
        super().__init__()
        self._source = source
        self._path = path
        self._operation = operation
        self._cancel = cancel
        self._callback_handle: Optional[int] = None
        if cancel is not None:
            self._callback_handle = cancel.add_callback(self._close_source)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        if self._cancel is not None:
            self._cancel.check(self._operation, self._path)
        view = memoryview(buffer).cast("B")
        data = self._source.read(len(view))
        if not data:
            return 0
        size = len(data)
        view[:size] = data
        return size

    def _close_source(self) -> None:
        close = getattr(self._source, "close", None)
        if close is not None:
            close()

    def close(self) -> None:
        if not self.closed:
            if self._cancel is not None:
                self._cancel.remove_callback(self._callback_handle)
            self._close_source()
        super().close()


def open_reader(
    source: Any,
    path: str,
    cancel: Optional[CancellationToken] = None,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
) -> BinaryIO:
    """Wrap a backend body in a buffered, cancellation-aware binary stream."""
    raw = CancellableReader(source, path, cancel=cancel)
    return io.BufferedReader(raw, buffer_size=buffer_size)  # type: ignore[return-value]


def read_payload(data: Any) -> bytes:
    """Materialize a write payload (bytes-like or binary file object)."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    read = getattr(data, "read", None)
    if read is None:
        raise TypeError(
            f"Payload must be bytes-like or a readable binary file, got {type(data).__name__}"
        )
    content = read()
    if isinstance(content, str):
        raise TypeError("Payload file must be opened in binary mode")
    return bytes(content)
