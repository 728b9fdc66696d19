"""
Seekable read stream over ranged GETs.

Data is fetched in windows of at most ``window_size`` bytes, each one ranged
GET. Short forward seeks inside the open window discard bytes ("chomp")
instead of paying for a new request; any other seek reopens at the target.
"""
from __future__ import annotations

import io
import logging
import threading
from typing import Iterator, Optional

import httpx

from .base import IOStatistics
from .http import SwiftResponse
from .native_store import SwiftNativeStore

__all__ = ["SwiftInputStream", "DEFAULT_READ_WINDOW"]

logger = logging.getLogger(__name__)

DEFAULT_READ_WINDOW = 64 * 1024 * 1024

# Failures that trigger a reopen at the current position
_READ_ERRORS = (httpx.TransportError, httpx.StreamError, OSError)


class SwiftInputStream(io.RawIOBase):
    """
    Raw binary stream over one Swift object.

    The object length is taken from a HEAD when the stream is opened. A read
    that fails mid-transfer is retried exactly once after reopening at the
    current position.

    Args:
        store: Store the object lives in
        path: Absolute path of the object
        window_size: Maximum bytes requested per ranged GET
        statistics: Optional counters updated with bytes read
    """

    def __init__(self, store: SwiftNativeStore, path: str,
                 window_size: int = DEFAULT_READ_WINDOW,
                 statistics: Optional[IOStatistics] = None):
        super().__init__()
        if window_size <= 0:
            raise ValueError(f"window_size must be positive, got {window_size}")
        self._lock = threading.RLock()
        self._source: Optional[SwiftResponse] = None
        self._chunks: Optional[Iterator[bytes]] = None
        self._pending = b""
        self._store = store
        self._path = path
        self._window_size = window_size
        self._statistics = statistics
        self._pos = 0
        self._window_end = 0
        self._length = store.get_content_length(path)

    @property
    def path(self) -> str:
        return self._path

    @property
    def length(self) -> int:
        return self._length

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        self._checkClosed()
        return self._pos

    def readinto(self, buffer) -> int:
        with self._lock:
            self._checkClosed()
            view = memoryview(buffer).cast("B")
            if len(view) == 0 or self._pos >= self._length:
                return 0
            try:
                data = self._read_some(len(view))
            except _READ_ERRORS as e:
                logger.info(f"Received IOException while reading '{self._path}', "
                            f"attempting to reopen: {e}")
                self._reopen(self._pos)
                data = self._read_some(len(view))

            count = len(data)
            view[:count] = data
            self._pos += count
            if self._statistics is not None:
                self._statistics.increment_bytes_read(count)
            return count

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        with self._lock:
            self._checkClosed()
            if whence == io.SEEK_SET:
                target = offset
            elif whence == io.SEEK_CUR:
                target = self._pos + offset
            elif whence == io.SEEK_END:
                target = self._length + offset
            else:
                raise ValueError(f"Invalid whence: {whence}")
            if target < 0:
                raise ValueError(f"Negative seek position {target}")
            if target == self._pos:
                return target

            forward = target - self._pos
            if self._source is not None and forward > 0 and target < self._window_end:
                try:
                    if self._chomp(forward):
                        return self._pos
                except _READ_ERRORS as e:
                    logger.info(f"Failed to skip forward in '{self._path}', reopening: {e}")

            self._reopen(target)
            return self._pos

    def seek_to_new_source(self, target: int) -> bool:
        """There is only ever one source for an object."""
        return False

    def close(self) -> None:
        with self._lock:
            if self.closed:
                return
            self._close_source()
            super().close()

    def _read_some(self, size: int) -> bytes:
        if not self._pending:
            chunk = self._next_chunk()
            if chunk is None:
                # window used up: open the next one
                self._reopen(self._pos)
                chunk = self._next_chunk()
                if chunk is None:
                    return b""
            self._pending = chunk
        data = self._pending[:size]
        self._pending = self._pending[size:]
        return data

    def _next_chunk(self) -> Optional[bytes]:
        if self._chunks is None:
            return None
        for chunk in self._chunks:
            if chunk:
                return chunk
        return None

    def _chomp(self, count: int) -> bool:
        """Discard ``count`` bytes from the open window; False if it ran dry."""
        remaining = count
        while remaining > 0:
            if not self._pending:
                chunk = self._next_chunk()
                if chunk is None:
                    return False
                self._pending = chunk
            skipped = min(remaining, len(self._pending))
            self._pending = self._pending[skipped:]
            self._pos += skipped
            remaining -= skipped
        return True

    def _reopen(self, position: int) -> None:
        self._close_source()
        self._pos = position
        if position >= self._length:
            # at or past EOF there is nothing to fetch
            self._window_end = position
            return
        length = min(self._window_size, self._length - position)
        logger.debug(f"Opening {self._path} at {position} for {length} bytes")
        self._source = self._store.get_object(self._path, position, length)
        self._chunks = self._source.iter_bytes()
        self._window_end = position + length

    def _close_source(self) -> None:
        self._pending = b""
        self._chunks = None
        source, self._source = self._source, None
        if source is not None:
            source.close()

    def __repr__(self) -> str:
        return f"SwiftInputStream(path={self._path!r}, pos={self._pos}, length={self._length})"
