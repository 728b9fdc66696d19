"""
Hierarchical path utilities for the Swift filesystem.

Every operation is keyed by an absolute POSIX-style path. These helpers
qualify caller paths against a working directory, strip a ``swift://`` URI
down to its path, and reject paths that climb above the root.
"""
from __future__ import annotations

import posixpath
from typing import Optional
from urllib.parse import urlsplit

ROOT = "/"
SEPARATOR = "/"


def strip_uri(path: str) -> str:
    """
    Reduce a ``swift://service/a/b`` URI to its path component.

    Plain paths are returned unchanged.

    Examples:
        >>> strip_uri("swift://local/data/file.csv")
        '/data/file.csv'

        >>> strip_uri("swift://local")
        '/'
    """
    if "://" in path:
        return urlsplit(path).path or ROOT
    return path


def qualify(path: str, working_dir: Optional[str] = None) -> str:
    """
    Normalize a path to an absolute path without trailing separator.

    Relative paths are resolved against ``working_dir``.

    Raises:
        ValueError: If the path is empty or escapes the root

    Examples:
        >>> qualify("/a//b/")
        '/a/b'

        >>> qualify("c", "/user/alice")
        '/user/alice/c'

        >>> qualify("/../etc")
        ValueError: unsafe path: /../etc
    """
    raw = strip_uri(path)
    if not raw:
        raise ValueError(f"unsafe path: {path}")
    if "\\" in raw:
        raise ValueError(f"unsafe path: {path}")
    if not raw.startswith(SEPARATOR):
        if working_dir is None:
            raise ValueError(f"Path must be absolute: {path}")
        raw = posixpath.join(working_dir, raw)
    if ".." in raw.split(SEPARATOR):
        # refuse anything that would climb above the root
        depth = 0
        for part in raw.split(SEPARATOR):
            if part == "..":
                depth -= 1
            elif part and part != ".":
                depth += 1
            if depth < 0:
                raise ValueError(f"unsafe path: {path}")
    normalized = posixpath.normpath(raw)
    # normpath keeps a leading "//"
    if normalized.startswith("//"):
        normalized = SEPARATOR + normalized.lstrip(SEPARATOR)
    return normalized


def is_root(path: str) -> bool:
    return path == ROOT


def parent_of(path: str) -> Optional[str]:
    """Parent of an absolute path, or None for the root."""
    if is_root(path):
        return None
    return posixpath.dirname(path) or ROOT


def name_of(path: str) -> str:
    return posixpath.basename(path)


def child_of(parent: str, name: str) -> str:
    return posixpath.join(parent, name)


def is_descendant(path: str, ancestor: str) -> bool:
    """True if ``path`` lies strictly below ``ancestor``."""
    if is_root(ancestor):
        return not is_root(path)
    return path.startswith(ancestor + SEPARATOR)


__all__ = [
    "ROOT",
    "SEPARATOR",
    "strip_uri",
    "qualify",
    "is_root",
    "parent_of",
    "name_of",
    "child_of",
    "is_descendant",
]
