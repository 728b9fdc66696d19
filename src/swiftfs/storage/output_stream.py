"""
Write stream staging data on local disk before uploading to Swift.

Bytes are appended to a local staging file. Each time ``part_size`` bytes
have accumulated the staging file is uploaded as the next part object and a
fresh one is started. On close, a stream that never produced a part uploads
its staging file as the whole object; otherwise the remainder goes up as a
final part and a manifest object ties the parts together.
"""
from __future__ import annotations

import logging
import os
import tempfile
import threading
from typing import IO, Optional

from ..errors import SwiftOperationFailed
from .base import IOStatistics
from .native_store import SwiftNativeStore

__all__ = ["SwiftOutputStream"]

logger = logging.getLogger(__name__)


class SwiftOutputStream:
    """
    Buffering -> PartUploading -> Closed.

    The staging file is owned exclusively by this stream and is deleted after
    every upload attempt, successful or not.

    Args:
        store: Store to upload into
        path: Absolute path of the object being written
        part_size: Bytes per part object
        staging_dir: Directory for the local staging file
        statistics: Optional counters updated with bytes written
    """

    def __init__(self, store: SwiftNativeStore, path: str, part_size: int,
                 staging_dir: Optional[str] = None,
                 statistics: Optional[IOStatistics] = None):
        if part_size <= 0:
            raise ValueError(f"part_size must be positive, got {part_size}")
        self._store = store
        self._path = path
        self._part_size = part_size
        self._staging_dir = staging_dir
        self._statistics = statistics
        self._lock = threading.Lock()
        self._closed = False
        self._part_number = 0
        self._bytes_in_part = 0
        self._bytes_written = 0
        self._staging: Optional[IO[bytes]] = None
        self._staging = self._new_staging_file()

    @property
    def path(self) -> str:
        return self._path

    @property
    def part_size(self) -> int:
        return self._part_size

    @property
    def partitions_written(self) -> int:
        """Part objects uploaded so far."""
        return self._part_number

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def staging_file(self) -> Optional[str]:
        return self._staging.name if self._staging is not None else None

    def writable(self) -> bool:
        return not self._closed

    def write(self, data) -> int:
        """
        Append bytes, uploading a part each time a part boundary is reached.

        Raises:
            SwiftOperationFailed: If the stream is closed
        """
        view = memoryview(data).cast("B")
        with self._lock:
            if self._closed:
                raise SwiftOperationFailed(f"Output stream for {self._path} is closed")
            offset = 0
            while offset < len(view):
                count = min(self._part_size - self._bytes_in_part, len(view) - offset)
                self._staging.write(view[offset:offset + count])
                self._bytes_in_part += count
                self._bytes_written += count
                offset += count
                if self._bytes_in_part >= self._part_size:
                    self._flush_part()
            if self._statistics is not None:
                self._statistics.increment_bytes_written(len(view))
            return len(view)

    def flush(self) -> None:
        with self._lock:
            if self._staging is not None:
                self._staging.flush()

    def close(self) -> None:
        """
        Upload whatever is staged and finish the object.

        Idempotent. The staging file is removed even if the upload fails.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                if self._part_number == 0:
                    self._upload_staging(None)
                else:
                    if self._bytes_in_part > 0:
                        self._part_number += 1
                        self._upload_staging(self._part_number)
                    logger.debug(f"Writing manifest for {self._path} over {self._part_number} parts")
                    self._store.create_manifest_for_part_upload(self._path)
            finally:
                self._release_staging()

    def abort(self) -> None:
        """Discard staged data without uploading it."""
        with self._lock:
            self._closed = True
            self._release_staging()

    def _flush_part(self) -> None:
        self._part_number += 1
        try:
            self._upload_staging(self._part_number)
        except BaseException:
            self._closed = True
            raise
        self._staging = self._new_staging_file()
        self._bytes_in_part = 0

    def _upload_staging(self, part_number: Optional[int]) -> None:
        """Upload the staging file as the whole object or as one part, then delete it."""
        staging = self._staging
        length = self._bytes_in_part
        try:
            staging.flush()
            staging.seek(0)
            if part_number is None:
                self._store.upload_file(self._path, staging, length)
            else:
                self._store.upload_file_part(self._path, part_number, staging, length)
        finally:
            self._release_staging()

    def _new_staging_file(self) -> IO[bytes]:
        staging = tempfile.NamedTemporaryFile(
            mode="w+b", delete=False, prefix="swift-output-", suffix=".tmp", dir=self._staging_dir)
        logger.debug(f"Staging {self._path} in {staging.name}")
        return staging

    def _release_staging(self) -> None:
        staging, self._staging = self._staging, None
        if staging is None:
            return
        staging.close()
        try:
            os.remove(staging.name)
        except OSError as e:
            logger.warning(f"Could not delete staging file {staging.name}: {e}")

    def __enter__(self) -> SwiftOutputStream:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        if exc_type is not None:
            self.abort()
        else:
            self.close()

    def __repr__(self) -> str:
        return (f"SwiftOutputStream(path={self._path!r}, bytes_written={self._bytes_written}, "
                f"partitions_written={self._part_number}, closed={self._closed})")
