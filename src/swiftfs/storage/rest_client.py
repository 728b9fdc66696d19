"""
Object store facade over the Swift REST API.

Each operation takes a consistent session snapshot (authenticating first if
needed), builds its URI from that snapshot and hands one request descriptor
to the :class:`~swiftfs.storage.http.RequestEngine`.
"""
from __future__ import annotations

import json
import logging
from typing import BinaryIO, Iterator, List, Optional, Tuple
from urllib.parse import urlencode, urlsplit

import httpx

from ..errors import SwiftError, SwiftNotFound
from ..settings import Settings
from .auth import AuthSession, SessionManager
from .http import (
    COPY_ACCEPTED,
    DELETE_ACCEPTED,
    HEADER_DESTINATION,
    HEADER_RANGE,
    NEWEST,
    PUT_ACCEPTED,
    RANGE_HEADER_FORMAT,
    SC_NO_CONTENT,
    X_OBJECT_MANIFEST,
    RequestEngine,
    SwiftRequest,
    SwiftResponse,
    create_http_client,
)
from .object_path import SwiftObjectPath, encode_key, join_paths, path_to_uri

__all__ = ["SwiftRestClient", "part_object_path", "UPLOAD_CHUNK_SIZE"]

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 64 * 1024


def part_object_path(path: SwiftObjectPath, part_number: int) -> SwiftObjectPath:
    """
    Object path of part ``part_number`` of a multi-part object.

    Part numbers are zero-padded so that the store's lexicographic
    concatenation order matches numeric order.

    Examples:
        >>> part_object_path(SwiftObjectPath("data", "/big.bin"), 3)
        SwiftObjectPath(container='data', object='/big.bin/000003')
    """
    return SwiftObjectPath(path.container, f"{path.object.rstrip('/')}/{part_number:06d}")


def _read_chunks(source: BinaryIO, length: int) -> Iterator[bytes]:
    remaining = length
    while remaining > 0:
        chunk = source.read(min(UPLOAD_CHUNK_SIZE, remaining))
        if not chunk:
            raise SwiftError(f"Upload source ended {remaining} bytes short of {length}")
        remaining -= len(chunk)
        yield chunk


class SwiftRestClient:
    """
    Client for one Swift endpoint binding.

    Owns the HTTP client (unless one is injected), the request engine and the
    session manager. Use as a context manager or call :meth:`close`.

    Args:
        settings: Endpoint binding
        client: Optional pre-built httpx.Client; not closed by this object
        transport: Optional transport for the client built here (tests use
            ``httpx.MockTransport``)
    """

    def __init__(self, settings: Settings, client: Optional[httpx.Client] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self._settings = settings
        self._owns_client = client is None
        self._client = client if client is not None else create_http_client(settings, transport)
        self._engine = RequestEngine(settings, self._client)
        self._sessions = SessionManager(settings, self._engine)
        self._engine.sessions = self._sessions

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def engine(self) -> RequestEngine:
        return self._engine

    @property
    def endpoint_uri(self) -> Optional[str]:
        session = self._sessions.current()
        return session.endpoint_uri if session else None

    def authenticate(self) -> AuthSession:
        return self._sessions.authenticate()

    def _object_uri(self, path: SwiftObjectPath) -> Tuple[str, AuthSession]:
        session = self._sessions.ensure_authenticated()
        return path_to_uri(path, session.endpoint_uri), session

    def head_request(self, path: SwiftObjectPath, newest: bool = True) -> SwiftResponse:
        """HEAD an object or container; ``found`` is False on 404."""
        uri, session = self._object_uri(path)
        return self._engine.perform(
            SwiftRequest(method="HEAD", uri=uri, headers=NEWEST if newest else {},
                         absent_on_404=True),
            session)

    def get_object_metadata(self, path: SwiftObjectPath, newest: bool = True) -> Optional[httpx.Headers]:
        """
        Response headers of a HEAD request, or None if the object is absent.

        An empty header set is returned as-is; callers decide how to treat it.
        """
        response = self.head_request(path, newest)
        return response.headers if response.found else None

    def get_content_length(self, path: SwiftObjectPath) -> int:
        """
        Length of an object as reported by the newest replica.

        Raises:
            SwiftNotFound: If the object does not exist
        """
        response = self.head_request(path, newest=True)
        if not response.found:
            raise SwiftNotFound(f"Not found: {path}")
        try:
            return int(response.headers.get("Content-Length", "0"))
        except ValueError as e:
            raise SwiftError(f"Invalid Content-Length for {path}: {response.headers.get('Content-Length')}") from e

    def get_object(self, path: SwiftObjectPath, offset: Optional[int] = None,
                   length: Optional[int] = None) -> SwiftResponse:
        """
        Open a streaming GET, optionally restricted to a byte range.

        The range sent is ``[offset, offset + length - 1]``; with no length
        the range runs to the end of the object. The caller must close the
        returned response when ``found`` is True.

        Raises:
            SwiftRangeNotSatisfiable: If offset is past the end of the object
        """
        uri, session = self._object_uri(path)
        headers = dict(NEWEST)
        if offset is not None:
            end = "" if length is None else offset + length - 1
            headers[HEADER_RANGE] = RANGE_HEADER_FORMAT.format(offset, end)
        return self._engine.perform(
            SwiftRequest(method="GET", uri=uri, headers=headers, absent_on_404=True, stream=True),
            session)

    def get_data(self, path: SwiftObjectPath, offset: Optional[int] = None,
                 length: Optional[int] = None) -> Optional[bytes]:
        """Whole (or ranged) object body, or None if the object is absent."""
        uri, session = self._object_uri(path)
        headers = dict(NEWEST)
        if offset is not None:
            end = "" if length is None else offset + length - 1
            headers[HEADER_RANGE] = RANGE_HEADER_FORMAT.format(offset, end)
        response = self._engine.perform(
            SwiftRequest(method="GET", uri=uri, headers=headers, absent_on_404=True),
            session)
        return response.content if response.found else None

    def find_objects_by_prefix(self, path: SwiftObjectPath, delimiter: Optional[str] = None) -> List[str]:
        """
        List object keys in the path's container starting with its key.

        A missing container or empty result is returned as an empty list.
        Subdirectory entries produced by a delimiter keep their trailing "/".
        """
        session = self._sessions.ensure_authenticated()
        uri = join_paths(session.endpoint_uri, encode_key(path.container))
        params = {}
        prefix = path.key
        if prefix and prefix != "/":
            params["prefix"] = prefix
        if delimiter:
            params["delimiter"] = delimiter
        if params:
            uri = f"{uri}?{urlencode(params, safe='/')}"
        logger.debug(f"findObjectsByPrefix path={path} delimiter={delimiter}")

        response = self._engine.perform(
            SwiftRequest(method="GET", uri=uri, headers=NEWEST, absent_on_404=True),
            session)
        if not response.found or response.status_code == SC_NO_CONTENT:
            return []
        return _parse_listing(response)

    def list_objects_in_directory(self, path: SwiftObjectPath, recursive: bool = False) -> List[str]:
        """
        List the keys below a directory path.

        The prefix is normalized to end with "/" (root lists the whole
        container). Non-recursive listings group deeper keys by "/".
        """
        key = path.key
        if key and not key.endswith("/"):
            key += "/"
        return self.find_objects_by_prefix(
            SwiftObjectPath(path.container, key), delimiter=None if recursive else "/")

    def upload(self, path: SwiftObjectPath, source: BinaryIO, length: int,
               headers: Optional[dict] = None) -> None:
        """
        PUT ``length`` bytes read from ``source`` as one object.

        The source must be seekable: retries and the post-401 replay rewind
        it to its starting position and resend the full body.
        """
        uri, session = self._object_uri(path)
        start = source.tell()

        def body() -> Iterator[bytes]:
            source.seek(start)
            return _read_chunks(source, length)

        request_headers = dict(headers or {})
        request_headers["Content-Length"] = str(length)
        self._engine.perform(
            SwiftRequest(method="PUT", uri=uri, headers=request_headers, body=body,
                         accepted=PUT_ACCEPTED),
            session)

    def upload_part(self, path: SwiftObjectPath, part_number: int, source: BinaryIO, length: int) -> None:
        logger.debug(f"Uploading part {part_number} of {path}: {length} bytes")
        self.upload(part_object_path(path, part_number), source, length)

    def create_manifest(self, path: SwiftObjectPath) -> None:
        """Write the zero-length manifest presenting ``<key>/`` parts as one object."""
        prefix = f"{path.container}/{path.key.rstrip('/')}/"
        uri, session = self._object_uri(path)
        self._engine.perform(
            SwiftRequest(method="PUT", uri=uri,
                         headers={X_OBJECT_MANIFEST: prefix, "Content-Length": "0"},
                         body=lambda: b"", accepted=PUT_ACCEPTED),
            session)

    def put_request(self, path: SwiftObjectPath) -> int:
        """PUT a zero-length object; returns the status code."""
        uri, session = self._object_uri(path)
        response = self._engine.perform(
            SwiftRequest(method="PUT", uri=uri, headers={"Content-Length": "0"},
                         body=lambda: b"", accepted=PUT_ACCEPTED),
            session)
        return response.status_code

    def delete(self, path: SwiftObjectPath) -> bool:
        """
        DELETE an object.

        Returns:
            True only if the store reports the content removed (204); an
            already-absent object is not an error
        """
        uri, session = self._object_uri(path)
        response = self._engine.perform(
            SwiftRequest(method="DELETE", uri=uri, accepted=DELETE_ACCEPTED),
            session)
        return response.status_code == SC_NO_CONTENT

    def copy_object(self, src: SwiftObjectPath, dst: SwiftObjectPath) -> bool:
        """Server-side copy; only 201 Created counts as success."""
        uri, session = self._object_uri(src)
        self._engine.perform(
            SwiftRequest(method="COPY", uri=uri,
                         headers={HEADER_DESTINATION: encode_key(dst.to_uri_path())},
                         accepted=COPY_ACCEPTED),
            session)
        return True

    def create_container(self, name: str) -> None:
        """Create a container unless it already exists."""
        self._sessions.create_container(name, self._sessions.ensure_authenticated())

    def get_object_location(self, path: SwiftObjectPath) -> List[str]:
        """
        URIs of the replicas holding an object, from the object-location endpoint.

        Returns an empty list when the service reports nothing.
        """
        session = self._sessions.ensure_authenticated()
        uri = join_paths(session.object_location_uri, encode_key(path.to_uri_path()))
        response = self._engine.perform(
            SwiftRequest(method="GET", uri=uri, absent_on_404=True),
            session)
        if not response.found or response.status_code == SC_NO_CONTENT or not response.content:
            return []
        try:
            locations = json.loads(response.content)
        except ValueError as e:
            raise SwiftError(f"Unparseable object location for {path}") from e
        return [str(location) for location in locations]

    def get_object_location_hosts(self, path: SwiftObjectPath) -> List[str]:
        hosts = []
        for location in self.get_object_location(path):
            host = urlsplit(location).hostname
            if host and host not in hosts:
                hosts.append(host)
        return hosts

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> SwiftRestClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _parse_listing(response: SwiftResponse) -> List[str]:
    """Keys from a plain (one per line) or JSON container listing."""
    content_type = response.headers.get("Content-Type", "")
    if content_type.startswith("application/json"):
        try:
            entries = json.loads(response.content)
        except ValueError as e:
            raise SwiftError("Unparseable container listing") from e
        keys = []
        for entry in entries:
            name = entry.get("name") or entry.get("subdir")
            if name:
                keys.append(name)
        return keys
    text = response.content.decode("utf-8")
    return [line.strip() for line in text.splitlines() if line.strip()]
