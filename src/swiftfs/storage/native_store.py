"""
Directory emulation over Swift's flat object namespace.

Swift has no directories and no rename. Directories are represented by
zero-length marker objects plus key prefixes; listings are prefix queries;
rename is a server-side copy followed by a delete, one object at a time.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import BinaryIO, List, Optional, Tuple

import httpx

from ..errors import (
    SwiftError,
    SwiftNotFound,
    SwiftOperationFailed,
    SwiftPartialRename,
)
from ..path_safety import ROOT, child_of, is_descendant, is_root, name_of
from .base import FileStatus, NativeStore
from .http import X_CONTAINER_BYTES_USED, X_CONTAINER_OBJECT_COUNT, X_OBJECT_MANIFEST, SwiftResponse
from .object_path import SwiftObjectPath
from .rest_client import SwiftRestClient

__all__ = ["SwiftNativeStore"]

logger = logging.getLogger(__name__)


class SwiftNativeStore(NativeStore):
    """
    Hierarchical view of one Swift container.

    All paths are absolute, normalized filesystem paths (see
    :func:`swiftfs.path_safety.qualify`).
    """

    def __init__(self, client: SwiftRestClient):
        self._client = client
        self._container = client.settings.container

    @property
    def client(self) -> SwiftRestClient:
        return self._client

    def __repr__(self) -> str:
        return f"SwiftNativeStore(container={self._container!r}, endpoint={self._client.endpoint_uri!r})"

    def to_object_path(self, path: str) -> SwiftObjectPath:
        return SwiftObjectPath(self._container, path)

    def get_object_metadata(self, path: str, newest: bool = True) -> FileStatus:
        """
        HEAD a path and describe it.

        Raises:
            SwiftNotFound: If the object is absent or the store returned no headers
            SwiftError: If Last-Modified cannot be parsed
        """
        headers = self._client.get_object_metadata(self.to_object_path(path), newest)
        # no headers is treated as a missing file
        if not headers:
            raise SwiftNotFound(f"Not Found {path}")
        return _status_from_headers(path, headers)

    def status_or_none(self, path: str) -> Optional[FileStatus]:
        """
        Metadata for a path, or None if nothing is there.

        A path with no marker object but with objects below it is reported
        as a directory.
        """
        try:
            return self.get_object_metadata(path)
        except SwiftNotFound:
            pass
        if self._client.list_objects_in_directory(self.to_object_path(path)):
            return _implicit_directory(path)
        return None

    def create_directory(self, path: str) -> None:
        """PUT a zero-length marker; repeating it is harmless."""
        self._client.put_request(self.to_object_path(path))

    def list_directory(self, path: str, recursive: bool = False) -> List[FileStatus]:
        """
        List the entries below a directory.

        Keys are re-absolutized and HEADed one by one; an entry that vanishes
        between the listing and its HEAD is skipped, unless it was listed as
        a subdirectory, which is reported as a directory without a marker.
        """
        keys = self._client.list_objects_in_directory(self.to_object_path(path), recursive)
        seen = set()
        statuses = []
        for key in keys:
            child = "/" + key.strip("/")
            if child == ROOT or child == path or child in seen:
                continue
            seen.add(child)
            try:
                statuses.append(self.get_object_metadata(child))
            except SwiftNotFound:
                if key.endswith("/"):
                    statuses.append(_implicit_directory(child))
                else:
                    logger.debug(f"{child} vanished while listing {path}")
        return statuses

    def object_exists(self, path: str) -> bool:
        return self.status_or_none(path) is not None

    def upload_file(self, path: str, source: BinaryIO, length: int) -> None:
        self._client.upload(self.to_object_path(path), source, length)

    def upload_file_part(self, path: str, part_number: int, source: BinaryIO, length: int) -> None:
        self._client.upload_part(self.to_object_path(path), part_number, source, length)

    def create_manifest_for_part_upload(self, path: str) -> None:
        self._client.create_manifest(self.to_object_path(path))

    def get_object(self, path: str, offset: int, length: int) -> SwiftResponse:
        """
        Open a ranged read; the caller closes the response.

        Raises:
            SwiftNotFound: If the object is absent
        """
        response = self._client.get_object(self.to_object_path(path), offset, length)
        if not response.found:
            raise SwiftNotFound(f"Not Found {path}")
        return response

    def get_content_length(self, path: str) -> int:
        return self._client.get_content_length(self.to_object_path(path))

    def delete_object(self, path: str) -> bool:
        """True if this call removed the object."""
        return self._client.delete(self.to_object_path(path))

    def part_paths(self, status: FileStatus) -> List[str]:
        """Paths of the part objects behind a manifest-backed file."""
        if status.manifest is None:
            return []
        container, _, prefix = status.manifest.partition("/")
        keys = self._client.find_objects_by_prefix(SwiftObjectPath(container, prefix))
        return ["/" + key for key in keys]

    def get_object_location(self, path: str) -> List[str]:
        return self._client.get_object_location(self.to_object_path(path))

    def get_object_location_hosts(self, path: str) -> List[str]:
        return self._client.get_object_location_hosts(self.to_object_path(path))

    def rename(self, src: str, dst: str) -> None:
        """
        Move a file or a directory tree by copy-then-delete.

        Not atomic: a directory rename that fails partway leaves the children
        already moved at the destination and raises SwiftPartialRename.

        Raises:
            SwiftNotFound: If src does not exist
            SwiftOperationFailed: Self-rename, root rename, rename into a
                descendant, or a file in the way at the destination
            SwiftPartialRename: Some directory children could not be moved
        """
        if src == dst:
            raise SwiftOperationFailed(f"Cannot rename {src} onto itself")
        if is_root(src):
            raise SwiftOperationFailed("Cannot rename the root directory")
        if is_descendant(dst, src):
            raise SwiftOperationFailed(f"Cannot rename {src} into its own descendant {dst}")

        src_status = self.status_or_none(src)
        if src_status is None:
            raise SwiftNotFound(f"Rename source does not exist: {src}")
        dst_status = self.status_or_none(dst)

        if dst_status is not None and not dst_status.is_directory:
            if src_status.is_directory:
                raise SwiftOperationFailed(f"Cannot rename directory {src} onto file {dst}")
            raise SwiftOperationFailed(f"A file already exists at the destination: {dst}")

        # an existing destination directory receives the source by name
        target = child_of(dst, name_of(src)) if dst_status is not None else dst
        if target == src:
            raise SwiftOperationFailed(f"Cannot rename {src} onto itself")

        if not src_status.is_directory:
            if self.status_or_none(target) is not None:
                raise SwiftOperationFailed(f"A file already exists at the destination: {target}")
            self._move_object(src, target, src_status)
            return

        target_status = self.status_or_none(target) if target != dst else None
        if target_status is not None and not target_status.is_directory:
            raise SwiftOperationFailed(f"Cannot rename directory {src} onto file {target}")
        self._rename_directory(src, target)

    def _rename_directory(self, src: str, target: str) -> None:
        listed = self.list_directory(src, recursive=True)
        # parts travel with their manifest, not as entries of their own
        part_prefixes = [_part_prefix(child) for child in listed if child.manifest is not None]
        children = [child for child in listed
                    if not any(child.path.startswith(prefix) for prefix in part_prefixes)]
        logger.debug(f"Renaming directory {src} to {target}: {len(children)} entries")
        self.create_directory(target)

        renamed: List[str] = []
        failed: List[Tuple[str, BaseException]] = []
        for child in children:
            child_target = target + child.path[len(src):]
            try:
                self._move_object(child.path, child_target, child)
                renamed.append(child.path)
            except SwiftError as e:
                logger.info(f"Failed to move {child.path} to {child_target}: {e}")
                failed.append((child.path, e))

        if failed:
            raise SwiftPartialRename(
                f"Rename of {src} to {target} moved {len(renamed)} of "
                f"{len(children)} entries", renamed, failed)
        self.delete_object(src)

    def _move_object(self, src: str, dst: str, status: Optional[FileStatus] = None) -> None:
        """
        Copy one object and delete the source.

        The copy of a manifest holds the concatenated content, so the parts
        behind the source are deleted along with it.
        """
        self._client.copy_object(self.to_object_path(src), self.to_object_path(dst))
        self.delete_object(src)
        if status is not None and status.manifest is not None:
            for part in self.part_paths(status):
                self.delete_object(part)


def _part_prefix(status: FileStatus) -> str:
    _, _, prefix = status.manifest.partition("/")
    return "/" + prefix


def _implicit_directory(path: str) -> FileStatus:
    return FileStatus(path=path, length=0, is_directory=True,
                      modification_time=datetime.now(timezone.utc))


def _status_from_headers(path: str, headers: httpx.Headers) -> FileStatus:
    is_container = X_CONTAINER_OBJECT_COUNT in headers or X_CONTAINER_BYTES_USED in headers
    length = 0
    if not is_container:
        raw_length = headers.get("Content-Length", "0")
        try:
            length = int(raw_length)
        except ValueError as e:
            raise SwiftError(f"Failed to parse Content-Length: {raw_length} for {path}") from e

    modified = datetime.now(timezone.utc)
    last_modified = headers.get("Last-Modified")
    if last_modified is not None:
        try:
            modified = parsedate_to_datetime(last_modified)
        except (TypeError, ValueError) as e:
            raise SwiftError(f"Failed to parse Last-Modified: {last_modified} for {path}") from e

    manifest = headers.get(X_OBJECT_MANIFEST)
    # zero-length objects are directory markers
    is_directory = is_container or (length == 0 and manifest is None)
    return FileStatus(path=path, length=length, is_directory=is_directory,
                      modification_time=modified, manifest=manifest)
