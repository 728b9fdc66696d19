"""
Mapping between hierarchical paths and Swift (container, object) pairs.

Provides consistent conversion of filesystem paths into object paths and of
object paths into request URIs relative to a resolved storage endpoint.
"""
from __future__ import annotations

import re
from typing import Optional
from urllib.parse import quote, urlsplit

import httpx

from ..errors import SwiftError, SwiftInternalStateError

__all__ = ["SwiftObjectPath", "join_paths", "encode_key", "path_to_uri"]

# Everything up to and including an "AUTH_<account>/" segment is auth context,
# not part of the object key.
AUTH_SEGMENT_PATTERN = re.compile(r".*/AUTH_\w*/")
_WHITESPACE = re.compile(r"\s")


class SwiftObjectPath:
    """
    A (container, object) pair inside a Swift account.

    Equality and hashing are defined on :meth:`to_uri_path`, so two values
    that serialize identically are equal however container and object were
    split.

    Attributes:
        container: Swift container name
        object: Object key within the container (may start with "/")
    """

    __slots__ = ("container", "object")

    def __init__(self, container: str, object: str):
        self.container = container
        self.object = object

    def to_uri_path(self) -> str:
        return join_paths(self.container, self.object)

    def __eq__(self, other) -> bool:
        if self is other:
            return True
        if not isinstance(other, SwiftObjectPath):
            return NotImplemented
        return self.to_uri_path() == other.to_uri_path()

    def __hash__(self) -> int:
        return hash(self.to_uri_path())

    def __str__(self) -> str:
        return self.to_uri_path()

    def __repr__(self) -> str:
        return f"SwiftObjectPath(container={self.container!r}, object={self.object!r})"

    @property
    def key(self) -> str:
        """Object key without a leading separator."""
        return self.object.lstrip("/")

    @classmethod
    def from_path(cls, fs_uri: str, path: str, container: Optional[str] = None) -> SwiftObjectPath:
        """
        Map a hierarchical path onto the filesystem's container.

        Args:
            fs_uri: Filesystem URI; its host names the container
            path: Absolute path or full ``swift://`` URI
            container: Explicit container overriding the URI host

        Examples:
            >>> SwiftObjectPath.from_path("swift://data/", "/v1/AUTH_abc/logs/1.txt")
            SwiftObjectPath(container='data', object='logs/1.txt')
        """
        raw = urlsplit(path).path if "://" in path else path
        key = AUTH_SEGMENT_PATTERN.sub("", raw, count=1)
        return cls(container or urlsplit(fs_uri).hostname, key)


def join_paths(path1: str, path2: str) -> str:
    """
    Join two paths with exactly one "/" between them.

    Examples:
        >>> join_paths("http://host/v1", "c/o")
        'http://host/v1/c/o'

        >>> join_paths("http://host/v1/", "/c/o")
        'http://host/v1/c/o'
    """
    return path1.rstrip("/") + "/" + path2.lstrip("/")


def encode_key(uri_path: str) -> str:
    """
    Percent-encode path segments that contain whitespace.

    Spaces become ``%20`` rather than ``+``: Swift treats a literal "+" in a
    path as a plus sign, not a space.
    """
    if not _WHITESPACE.search(uri_path):
        return uri_path
    return "/".join(
        quote(segment, safe="") if _WHITESPACE.search(segment) else segment
        for segment in uri_path.split("/")
    )


def path_to_uri(path: SwiftObjectPath, endpoint_uri: Optional[str]) -> str:
    """
    Convert an object path to a request URI under an endpoint.

    Args:
        path: Object path to address
        endpoint_uri: Storage endpoint, e.g. ``http://host:8080/v1/AUTH_abc``

    Returns:
        The full object URI

    Raises:
        SwiftInternalStateError: If no endpoint is known yet
        SwiftError: If the joined string is not a valid URI
    """
    if endpoint_uri is None:
        raise SwiftInternalStateError("Null Endpoint -client is not authenticated")
    location = join_paths(endpoint_uri, encode_key(path.to_uri_path()))
    try:
        url = httpx.URL(location)
    except httpx.InvalidURL as e:
        raise SwiftError(f"Failed to create URI from {location}") from e
    if not url.scheme or not url.host:
        raise SwiftError(f"Failed to create URI from {location}")
    return location
