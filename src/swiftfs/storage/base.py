"""
Storage interfaces for the Swift filesystem.

These types define the boundary between the filesystem surface and the
directory emulation over Swift, so the filesystem can be exercised against
any store honouring the same contract.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, List, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class FileStatus:
    """
    Metadata for one path in the emulated hierarchy.

    Invariants:
    - path: absolute, normalized, no trailing separator (except root)
    - length: exact byte length (0 for directories)
    - manifest: the X-Object-Manifest prefix for multi-part files, else None
    """
    path: str
    length: int
    is_directory: bool
    modification_time: datetime
    manifest: Optional[str] = None

    @property
    def is_file(self) -> bool:
        return not self.is_directory


__all__ = ["FileStatus", "NativeStore", "IOStatistics"]


@runtime_checkable
class NativeStore(Protocol):
    """Protocol for the directory-emulating store behind a filesystem."""

    def get_object_metadata(self, path: str) -> FileStatus:
        """
        Resolve metadata for a path.

        Raises:
            FileNotFoundError: If nothing exists at the path
        """
        ...

    def create_directory(self, path: str) -> None:
        ...

    def list_directory(self, path: str, recursive: bool = False) -> List[FileStatus]:
        """
        List the entries below a directory.

        Returns an empty list (never raises) when nothing matches.
        """
        ...

    def object_exists(self, path: str) -> bool:
        ...

    def upload_file(self, path: str, source: BinaryIO, length: int) -> None:
        ...

    def delete_object(self, path: str) -> bool:
        ...

    def rename(self, src: str, dst: str) -> None:
        """
        Move a file or directory tree.

        Raises:
            FileNotFoundError: If the source does not exist
            SwiftOperationFailed: If the rename is rejected
            SwiftPartialRename: If only some children of a directory moved
        """
        ...


class IOStatistics:
    """Thread-safe byte counters shared by one filesystem's streams."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.bytes_read = 0
        self.bytes_written = 0

    def increment_bytes_read(self, count: int) -> None:
        with self._lock:
            self.bytes_read += count

    def increment_bytes_written(self, count: int) -> None:
        with self._lock:
            self.bytes_written += count

    def __repr__(self) -> str:
        return f"IOStatistics(bytes_read={self.bytes_read}, bytes_written={self.bytes_written})"
