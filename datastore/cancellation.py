"""Cancellation and deadline signals passed into datastore operations.

A token is created by the caller and handed to any number of operations,
possibly on different threads. Firing it (explicitly or by reaching the
deadline) makes every operation holding it raise OperationCancelledError
without waiting for in-flight network calls, and closes any stream it
returned.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional, TypeVar

from datastore.exceptions import OperationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Thread-safe cancellation signal with an optional deadline.

    Example:
        token = CancellationToken(timeout=5.0)
        with store.get_file("ledgers/0001.xdr", cancel=token) as stream:
            data = stream.read()

        # From another thread:
        token.cancel()
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._next_handle = 0
        self._deadline: Optional[float] = None
        if timeout is not None:
            self._deadline = time.monotonic() + timeout

    @property
    def deadline(self) -> Optional[float]:
        """Deadline on the ``time.monotonic()`` clock, or None."""
        return self._deadline

    @property
    def cancelled(self) -> bool:
        """True once cancel() was called or the deadline passed."""
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel()
            return True
        return False

    @property
    def deadline_exceeded(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline (never negative), or None."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self) -> None:
        """Fire the token and run registered callbacks once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception as exc:  # callbacks release resources; keep firing the rest
                logger.debug("Cancellation callback failed: %s", exc)

    def add_callback(self, callback: Callable[[], None]) -> Optional[int]:
        """Register a callback to run when the token fires.

        Returns a handle for remove_callback(), or None if the token already
        fired, in which case the callback has been run immediately.
        """
        with self._lock:
            if not self._event.is_set():
                handle = self._next_handle
                self._next_handle += 1
                self._callbacks[handle] = callback
                return handle
        callback()
        return None

    def remove_callback(self, handle: Optional[int]) -> None:
        if handle is None:
            return
        with self._lock:
            self._callbacks.pop(handle, None)

    def check(self, operation: Optional[str] = None, path: Optional[str] = None) -> None:
        """Raise OperationCancelledError if the token has fired."""
        if not self.cancelled:
            return
        exceeded = self.deadline_exceeded
        reason = "deadline exceeded" if exceeded else "operation cancelled"
        raise OperationCancelledError(
            f"{operation or 'operation'} aborted: {reason}",
            operation=operation,
            file_path=path,
            deadline_exceeded=exceeded,
        )


def check_cancelled(
    cancel: Optional[CancellationToken], operation: str, path: Optional[str] = None
) -> None:
    """Raise if an optional token has fired."""
    if cancel is not None:
        cancel.check(operation, path)


def _discard_late_result(discard: Callable[[Any], None]) -> Callable[["Future[Any]"], None]:
    def callback(future: "Future[Any]") -> None:
        if future.cancelled() or future.exception() is not None:
            return
        try:
            discard(future.result())
        except Exception as exc:  # nobody left to raise to
            logger.debug("Discarding abandoned result failed: %s", exc)

    return callback


class BlockingCallRunner:
    """Runs blocking backend calls so a token can abandon them mid-flight.

    Without a token the call runs on the caller's thread. With one, it runs on
    a worker thread while the caller waits on the token; when the token fires
    the caller raises OperationCancelledError immediately and ``discard`` is
    applied to the result if the abandoned call completes later (for example
    to close a response that nobody will read).

    The worker itself stays blocked until the underlying client returns, so
    its lifetime is bounded by the client's own connect/read timeouts.
    """

    def __init__(self, max_workers: int = 10, thread_name_prefix: str = "datastore") -> None:
        self._max_workers = max_workers
        self._thread_name_prefix = thread_name_prefix
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    def _submit(self, call: Callable[[], T]) -> "Future[T]":
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix=self._thread_name_prefix,
                )
            return self._executor.submit(call)

    def run(
        self,
        call: Callable[[], T],
        cancel: Optional[CancellationToken],
        operation: str,
        path: Optional[str] = None,
        discard: Optional[Callable[[T], None]] = None,
    ) -> T:
        if cancel is None:
            return call()
        cancel.check(operation, path)

        future = self._submit(call)
        wake = threading.Event()
        future.add_done_callback(lambda _: wake.set())
        handle = cancel.add_callback(wake.set)
        try:
            while not future.done():
                wake.wait(cancel.remaining())
                if not future.done():
                    cancel.check(operation, path)
        except OperationCancelledError:
            logger.debug("Abandoning in-flight %s for %s", operation, path)
            if not future.cancel() and discard is not None:
                future.add_done_callback(_discard_late_result(discard))
            raise
        finally:
            cancel.remove_callback(handle)
        return future.result()

    def shutdown(self) -> None:
        """Stop accepting work; abandoned calls finish in the background."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False)
