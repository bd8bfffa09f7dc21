"""Local filesystem datastore backend."""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Dict, List, Mapping, Optional

from datastore.base import DataStore, Payload, effective_limit
from datastore.cancellation import CancellationToken, check_cancelled
from datastore.config.models import DataStoreConfig
from datastore.exceptions import NotFoundError, StorageError
from datastore.streams import open_reader, read_payload

from .helpers import to_http_date

logger = logging.getLogger(__name__)

BACKEND_TYPE = "filesystem"
METADATA_DIR = ".datastore-metadata"


class LocalDataStore(DataStore):
    """Filesystem backend used for tests, local mirrors and air-gapped exports.

    Paths are joined onto ``destination_path`` without normalization. User
    metadata is kept in JSON sidecars under
    ``<root>/.datastore-metadata/<path>/<inode>.json``, written before the
    file itself is renamed or linked into place.
    """

    def __init__(self, config: DataStoreConfig) -> None:
        root = config.require("destination_path")
        self.base_dir = Path(root).expanduser().absolute()

    def get_backend_type(self) -> str:
        return BACKEND_TYPE

    def _resolve_path(self, path: str) -> Path:
        return self.base_dir / path

    def _metadata_dir(self, path: str) -> Path:
        return self.base_dir / METADATA_DIR / path

    def _metadata_path(self, path: str, inode: int) -> Path:
        """Sidecar for one published version of ``path``, keyed by its inode."""
        return self._metadata_dir(path) / f"{inode}.json"

    def _error(self, exc: OSError, path: str, operation: str) -> StorageError:
        return StorageError(
            f"filesystem {operation} failed for {path}",
            backend_type=BACKEND_TYPE,
            operation=operation,
            file_path=path,
            original_error=exc,
        )

    def _stat(self, path: str, operation: str) -> os.stat_result:
        target = self._resolve_path(path)
        try:
            result = target.stat()
        except (FileNotFoundError, NotADirectoryError) as exc:
            # NotADirectoryError: a parent component is a regular file
            raise NotFoundError(
                f"file {path} does not exist", file_path=path, backend_type=BACKEND_TYPE
            ) from exc
        except OSError as exc:
            raise self._error(exc, path, operation) from exc
        if not stat.S_ISREG(result.st_mode):
            raise NotFoundError(
                f"file {path} does not exist", file_path=path, backend_type=BACKEND_TYPE
            )
        return result

    def _read_user_metadata(self, path: str, inode: int) -> Dict[str, str]:
        sidecar = self._metadata_path(path, inode)
        try:
            with open(sidecar, "r", encoding="utf-8") as handle:
                stored = json.load(handle)
        except (FileNotFoundError, NotADirectoryError):
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable metadata for %s: %s", path, exc)
            return {}
        return {str(k).lower(): str(v) for k, v in stored.items()}

    def _write_atomic(self, target: Path, payload: bytes) -> Path:
        """Write payload to a temp file next to target and return its path."""
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", dir=target.parent)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
        except BaseException:
            os.unlink(tmp_name)
            raise
        return Path(tmp_name)

    def _stage_user_metadata(
        self, path: str, staged: Path, metadata: Optional[Mapping[str, str]]
    ) -> Optional[Path]:
        """Write the sidecar for a staged file before the file becomes visible.

        Linking or renaming keeps the inode, so readers find the sidecar as
        soon as they can see the file.
        """
        if not metadata:
            return None
        sidecar = self._metadata_path(path, os.stat(staged).st_ino)
        body = json.dumps({str(k): str(v) for k, v in metadata.items()}, sort_keys=True)
        tmp = self._write_atomic(sidecar, body.encode("utf-8"))
        os.replace(tmp, sidecar)
        return sidecar

    def _prune_user_metadata(self, path: str) -> None:
        """Drop sidecars of versions of ``path`` that are no longer published."""
        folder = self._metadata_dir(path)
        if not folder.is_dir():
            return
        try:
            current = f"{self._resolve_path(path).stat().st_ino}.json"
        except OSError:
            current = None
        for sidecar in folder.glob("*.json"):
            if sidecar.name != current:
                sidecar.unlink(missing_ok=True)

    def _publish(
        self,
        path: str,
        payload: bytes,
        metadata: Optional[Mapping[str, str]],
        exclusive: bool,
    ) -> bool:
        """Stage payload and metadata, then rename (or link, if exclusive) into place.

        Returns False only when ``exclusive`` and the target already exists.
        """
        target = self._resolve_path(path)
        staged = self._write_atomic(target, payload)
        try:
            sidecar = self._stage_user_metadata(path, staged, metadata)
            try:
                if exclusive:
                    os.link(staged, target)
                else:
                    os.replace(staged, target)
            except FileExistsError:
                if sidecar is not None:
                    sidecar.unlink(missing_ok=True)
                if not exclusive:
                    raise
                logger.debug("%s already exists", target)
                return False
            except BaseException:
                if sidecar is not None:
                    sidecar.unlink(missing_ok=True)
                raise
        finally:
            staged.unlink(missing_ok=True)
        self._prune_user_metadata(path)
        logger.info("Wrote %s", target)
        return True

    def get_file_metadata(
        self, path: str, cancel: Optional[CancellationToken] = None
    ) -> Dict[str, str]:
        check_cancelled(cancel, "get_file_metadata", path)
        result = self._stat(path, "get_file_metadata")
        metadata = self._read_user_metadata(path, result.st_ino)
        metadata["content-length"] = str(result.st_size)
        metadata["last-modified"] = to_http_date(
            datetime.fromtimestamp(result.st_mtime, tz=timezone.utc)
        )
        return metadata

    def get_file_last_modified(
        self, path: str, cancel: Optional[CancellationToken] = None
    ) -> datetime:
        check_cancelled(cancel, "get_file_last_modified", path)
        result = self._stat(path, "get_file_last_modified")
        return datetime.fromtimestamp(result.st_mtime, tz=timezone.utc)

    def get_file(self, path: str, cancel: Optional[CancellationToken] = None) -> BinaryIO:
        check_cancelled(cancel, "get_file", path)
        self._stat(path, "get_file")
        try:
            handle = open(self._resolve_path(path), "rb")
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise NotFoundError(
                f"file {path} does not exist", file_path=path, backend_type=BACKEND_TYPE
            ) from exc
        except OSError as exc:
            raise self._error(exc, path, "get_file") from exc
        return open_reader(handle, path, cancel=cancel)

    def exists(self, path: str, cancel: Optional[CancellationToken] = None) -> bool:
        check_cancelled(cancel, "exists", path)
        try:
            self._stat(path, "exists")
        except NotFoundError:
            return False
        return True

    def size(self, path: str, cancel: Optional[CancellationToken] = None) -> int:
        check_cancelled(cancel, "size", path)
        return self._stat(path, "size").st_size

    def put_file(
        self,
        path: str,
        data: Payload,
        metadata: Optional[Mapping[str, str]] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> None:
        check_cancelled(cancel, "put_file", path)
        try:
            self._publish(path, read_payload(data), metadata, exclusive=False)
        except OSError as exc:
            logger.error("Failed to write %s: %s", path, exc)
            raise self._error(exc, path, "put_file") from exc

    def put_file_if_not_exists(
        self,
        path: str,
        data: Payload,
        metadata: Optional[Mapping[str, str]] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> bool:
        """Link a fully written temp file into place; linking fails if the target exists."""
        check_cancelled(cancel, "put_file_if_not_exists", path)
        try:
            return self._publish(path, read_payload(data), metadata, exclusive=True)
        except OSError as exc:
            logger.error("Failed to write %s: %s", path, exc)
            raise self._error(exc, path, "put_file_if_not_exists") from exc

    def list_file_paths(
        self, prefix: str, limit: int, cancel: Optional[CancellationToken] = None
    ) -> List[str]:
        """List files whose root-relative path starts with prefix (string match)."""
        check_cancelled(cancel, "list_file_paths", prefix)
        if not self.base_dir.exists():
            return []
        matches: List[str] = []
        try:
            for dirpath, dirnames, filenames in os.walk(self.base_dir):
                dirnames[:] = [d for d in dirnames if d != METADATA_DIR]
                relative_dir = Path(dirpath).relative_to(self.base_dir)
                for name in filenames:
                    if name.startswith(".tmp-"):
                        continue
                    relative = (relative_dir / name).as_posix()
                    if relative.startswith(prefix):
                        matches.append(relative)
        except OSError as exc:
            raise self._error(exc, prefix, "list_file_paths") from exc
        matches.sort()
        return matches[: effective_limit(limit)]

    def close(self) -> None:
        """Nothing to release; file handles belong to the returned streams."""
