"""
Hierarchical filesystem over one Swift container.

:class:`SwiftFileSystem` is the entry point for callers: it qualifies paths
against a working directory and implements create/open/delete/rename/mkdir/
list/status on top of :class:`~swiftfs.storage.native_store.SwiftNativeStore`.
"""
from __future__ import annotations

import io
import logging
from typing import List, Mapping, Optional

import httpx

from .errors import (
    SwiftNotFound,
    SwiftOperationFailed,
    SwiftPartialRename,
    SwiftUnsupportedFeature,
)
from .path_safety import is_root, parent_of, qualify
from .settings import Settings, bind, create_settings_from_env
from .storage.base import FileStatus, IOStatistics
from .storage.input_stream import DEFAULT_READ_WINDOW, SwiftInputStream
from .storage.native_store import SwiftNativeStore
from .storage.output_stream import SwiftOutputStream
from .storage.rest_client import SwiftRestClient

__all__ = ["SwiftFileSystem", "SCHEME"]

logger = logging.getLogger(__name__)

SCHEME = "swift"


class SwiftFileSystem:
    """
    Filesystem semantics for ``swift://<service>/`` URIs.

    Safe to share between threads; each stream returned by :meth:`open` or
    :meth:`create` belongs to a single caller.

    Args:
        settings: Endpoint binding for the service
        client: Optional REST client to use instead of building one
        transport: Optional httpx transport for the REST client built here
    """

    def __init__(self, settings: Settings, client: Optional[SwiftRestClient] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self._settings = settings
        self._uri = f"{SCHEME}://{settings.service}"
        self._client = client if client is not None else SwiftRestClient(settings, transport=transport)
        self._store = SwiftNativeStore(self._client)
        self._working_dir = f"/user/{settings.username}"
        self.statistics = IOStatistics()

    @classmethod
    def initialize(cls, fs_uri: str, conf: Mapping[str, str],
                   transport: Optional[httpx.BaseTransport] = None) -> SwiftFileSystem:
        """Bind ``fs_uri`` against a configuration mapping."""
        return cls(bind(fs_uri, conf), transport=transport)

    @classmethod
    def from_env(cls, fs_uri: str, environ: Optional[Mapping[str, str]] = None,
                 transport: Optional[httpx.BaseTransport] = None) -> SwiftFileSystem:
        """Bind ``fs_uri`` against ``SWIFTFS_<SERVICE>_*`` environment variables."""
        return cls(create_settings_from_env(fs_uri, environ), transport=transport)

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def store(self) -> SwiftNativeStore:
        return self._store

    @property
    def working_directory(self) -> str:
        return self._working_dir

    def set_working_directory(self, path: str) -> None:
        self._working_dir = self.make_absolute(path)

    def make_absolute(self, path: str) -> str:
        return qualify(path, self._working_dir)

    def get_file_status(self, path: str) -> FileStatus:
        """
        Metadata for a path.

        Raises:
            SwiftNotFound: If nothing exists at the path
        """
        target = self.make_absolute(path)
        status = self._store.status_or_none(target)
        if status is None:
            raise SwiftNotFound(f"File not found: {target}")
        return status

    def exists(self, path: str) -> bool:
        return self._store.object_exists(self.make_absolute(path))

    def is_file(self, path: str) -> bool:
        try:
            return self.get_file_status(path).is_file
        except SwiftNotFound:
            return False

    def is_directory(self, path: str) -> bool:
        try:
            return self.get_file_status(path).is_directory
        except SwiftNotFound:
            return False

    def mkdirs(self, path: str) -> bool:
        """
        Create a directory and every missing ancestor.

        Raises:
            SwiftOperationFailed: If the path or an ancestor is a file
        """
        target = self.make_absolute(path)
        # shortest first
        paths = []
        while not is_root(target):
            paths.insert(0, target)
            target = parent_of(target)

        for directory in paths:
            try:
                status = self._store.get_object_metadata(directory)
            except SwiftNotFound:
                logger.debug(f"Making dir '{directory}' in Swift")
                self._store.create_directory(directory)
                continue
            if not status.is_directory:
                raise SwiftOperationFailed(f"Can't mkdir {directory}: it is a file")
            logger.debug(f"skipping mkdir({directory}) as it exists already")
        return True

    def create(self, path: str, overwrite: bool = False,
               part_size: Optional[int] = None) -> SwiftOutputStream:
        """
        Open a new file for writing; the object appears when the stream closes.

        Parent directories are created as needed.

        Raises:
            SwiftOperationFailed: If a file exists and ``overwrite`` is False,
                or the path is a directory
        """
        target = self.make_absolute(path)
        if is_root(target):
            raise SwiftOperationFailed("Cannot create a file at the root")
        status = self._store.status_or_none(target)
        if status is not None:
            if status.is_directory:
                raise SwiftOperationFailed(f"Cannot create {target}: it is a directory")
            if not overwrite:
                raise SwiftOperationFailed(f"File already exists: {target}")
            self.delete(target)
        else:
            parent = parent_of(target)
            if parent is not None and not is_root(parent):
                self.mkdirs(parent)

        return SwiftOutputStream(
            self._store, target,
            part_size=part_size or self._settings.part_size,
            staging_dir=self._settings.staging_dir,
            statistics=self.statistics)

    def open(self, path: str, buffer_size: int = io.DEFAULT_BUFFER_SIZE,
             window_size: int = DEFAULT_READ_WINDOW) -> io.BufferedReader:
        """
        Open a file for reading.

        Raises:
            SwiftNotFound: If the file does not exist
            SwiftOperationFailed: If the path is a directory
        """
        target = self.make_absolute(path)
        status = self.get_file_status(target)
        if status.is_directory:
            raise SwiftOperationFailed(f"Cannot open {target}: it is a directory")
        raw = SwiftInputStream(self._store, target, window_size=window_size,
                               statistics=self.statistics)
        return io.BufferedReader(raw, buffer_size)

    def append(self, path: str) -> SwiftOutputStream:
        raise SwiftUnsupportedFeature("Not supported: append()")

    def delete(self, path: str, recursive: bool = False) -> bool:
        """
        Delete a file or directory.

        Returns:
            False if nothing existed at the path, else True

        Raises:
            SwiftOperationFailed: Non-empty directory without ``recursive``
        """
        target = self.make_absolute(path)
        status = self._store.status_or_none(target)
        if status is None:
            logger.debug(f"Path '{target}' doesn't exist")
            return False
        if status.is_file:
            self._delete_file(status)
            return True

        children = self._store.list_directory(target, recursive=True)
        if children and not recursive:
            raise SwiftOperationFailed(f"Directory {target} is not empty")

        # deepest entries first
        for child in sorted(children, key=lambda s: s.path, reverse=True):
            if child.is_directory:
                deleted = self._store.delete_object(child.path)
            else:
                deleted = self._delete_file(child)
            if not deleted:
                logger.info(f"{child.path} was already gone while deleting {target}")
        if not is_root(target):
            self._store.delete_object(target)
        return True

    def _delete_file(self, status: FileStatus) -> bool:
        deleted = self._store.delete_object(status.path)
        for part in self._store.part_paths(status):
            self._store.delete_object(part)
        return deleted

    def rename(self, src: str, dst: str) -> bool:
        """
        Rename a file or directory.

        Returns:
            False if the source is missing or the rename is rejected
            (onto itself, the root, into a descendant, over a file)

        Raises:
            SwiftPartialRename: A directory rename moved only some children
        """
        src_path = self.make_absolute(src)
        dst_path = self.make_absolute(dst)
        try:
            self._store.rename(src_path, dst_path)
        except SwiftPartialRename:
            raise
        except (SwiftNotFound, SwiftOperationFailed) as e:
            logger.debug(f"rename({src_path}, {dst_path}) rejected: {e}")
            return False
        return True

    def list_status(self, path: str) -> List[FileStatus]:
        """
        Entries in a directory, or the status of a file.

        A path with nothing under it lists as empty.
        """
        target = self.make_absolute(path)
        status = self._store.status_or_none(target)
        if status is None:
            return []
        if status.is_file:
            return [status]
        return self._store.list_directory(target)

    def get_file_block_locations(self, path: str) -> List[str]:
        """
        Hosts holding a file's data.

        For a multi-part file the hosts of every part are collected.
        """
        status = self.get_file_status(path)
        parts = self._store.part_paths(status)
        hosts: List[str] = []
        for located in parts or [status.path]:
            for host in self._store.get_object_location_hosts(located):
                if host not in hosts:
                    hosts.append(host)
        return hosts

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> SwiftFileSystem:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SwiftFileSystem(uri={self._uri!r}, store={self._store!r})"
