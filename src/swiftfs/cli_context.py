"""
CLI Context for managing application dependencies.

Provides a clean way to manage CLI-level dependencies like settings and the
filesystem instance, avoiding global state and enabling dependency injection.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

import httpx

from .filesystem import SCHEME, SwiftFileSystem
from .settings import Settings, create_settings_from_env


def filesystem_uri(uri: str) -> str:
    """
    Filesystem URI (scheme and service) of a ``swift://`` path URI.

    Raises:
        ValueError: If the URI is not a swift:// URI with a service name

    Examples:
        >>> filesystem_uri("swift://local/data/file.csv")
        'swift://local/'
    """
    parts = urlsplit(uri)
    if parts.scheme != SCHEME or not parts.netloc:
        raise ValueError(f"Expected a {SCHEME}://<service>/<path> URI, got {uri}")
    return f"{SCHEME}://{parts.netloc}/"


@dataclass
class CLIContext:
    """
    Shared context for CLI commands.

    Holds the settings of the service named by the command's URI and creates
    the filesystem on first use, once per command execution.
    """
    settings: Settings
    transport: Optional[httpx.BaseTransport] = None
    _filesystem: Optional[SwiftFileSystem] = None

    @classmethod
    def from_uri(cls, uri: str) -> CLIContext:
        """
        Create CLI context for a path URI from environment variables.

        Returns:
            CLIContext with settings loaded from ``SWIFTFS_<SERVICE>_*``
        """
        return cls(settings=create_settings_from_env(filesystem_uri(uri)))

    @property
    def filesystem(self) -> SwiftFileSystem:
        """Filesystem instance, created on first access and reused."""
        if self._filesystem is None:
            self._filesystem = SwiftFileSystem(self.settings, transport=self.transport)
        return self._filesystem

    def close(self) -> None:
        if self._filesystem is not None:
            self._filesystem.close()
            self._filesystem = None
