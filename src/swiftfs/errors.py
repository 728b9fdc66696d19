"""
Swift filesystem error classes.

Provides a clear taxonomy of errors that can occur while talking to a Swift
object store. HTTP status codes and transport failures are mapped onto these
classes by the request engine so that callers branch on error kind rather
than on raw status codes.
"""
from __future__ import annotations

from typing import List, Optional, Tuple


class SwiftError(Exception):
    """
    Base class for all Swift filesystem errors.
    """
    pass


class SwiftConfigurationError(SwiftError, ValueError):
    """
    Configuration is missing or malformed.

    Raised when:
    - A mandatory key (auth URL, username, password/api key) is absent
    - A numeric or boolean option cannot be parsed
    - The filesystem URI host is not a short service name
    """
    pass


class SwiftAuthenticationError(SwiftError):
    """
    Authentication against the auth endpoint failed.

    Raised when:
    - HTTP 401 from the auth endpoint itself (bad credentials)
    - The service catalog holds no usable object-store endpoint
    """
    pass


class SwiftNotFound(SwiftError, FileNotFoundError):
    """
    Object or container does not exist where absence is a fault.

    The request engine reports absence as a result rather than raising this;
    it is raised by higher layers whose callers asked for something that
    must exist.
    """
    pass


class SwiftBadRequest(SwiftError):
    """
    HTTP 400 Bad Request, usually an illegal object or container name.
    """
    pass


class SwiftInvalidResponse(SwiftError):
    """
    The store answered with a status code the operation does not accept.

    Carries enough context to diagnose the failure without re-running at a
    higher log level.
    """

    def __init__(self, message: str, status_code: int, verb: str, uri: Optional[str],
                 status_line: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.verb = verb
        self.uri = uri
        self.status_line = status_line

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} (verb={self.verb} uri={self.uri} status={self.status_code})"


class SwiftRangeNotSatisfiable(SwiftError, EOFError):
    """
    HTTP 416: a ranged read started past the end of the object.
    """
    pass


class SwiftConnectionError(SwiftError, ConnectionError):
    """
    Transport failure after retries were exhausted, or a repeated 401 after
    re-authenticating.
    """
    pass


class SwiftOperationFailed(SwiftError):
    """
    Filesystem-level operation failed.

    Raised when:
    - A non-recursive delete hits a non-empty directory
    - A rename would overwrite a file, target itself, the root or a descendant
    - A write is attempted on a closed output stream
    """
    pass


class SwiftPartialRename(SwiftOperationFailed):
    """
    Directory rename copied some children but not others.

    Rename over Swift is copy-then-delete per object and is not atomic; this
    reports exactly what moved and what did not.
    """

    def __init__(self, message: str, renamed: List[str],
                 failed: List[Tuple[str, BaseException]]):
        super().__init__(message)
        self.renamed = renamed
        self.failed = failed


class SwiftUnsupportedFeature(SwiftError):
    """
    Operation is not supported by the Swift filesystem (e.g. append).
    """
    pass


class SwiftInternalStateError(SwiftError):
    """
    Client used outside its contract, such as building an object URI before
    any endpoint is known.
    """
    pass


__all__ = [
    "SwiftError",
    "SwiftConfigurationError",
    "SwiftAuthenticationError",
    "SwiftNotFound",
    "SwiftBadRequest",
    "SwiftInvalidResponse",
    "SwiftRangeNotSatisfiable",
    "SwiftConnectionError",
    "SwiftOperationFailed",
    "SwiftPartialRename",
    "SwiftUnsupportedFeature",
    "SwiftInternalStateError",
]
