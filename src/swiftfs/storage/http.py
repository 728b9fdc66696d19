"""
REST request engine for the Swift API.

Every call against the store is described by one :class:`SwiftRequest` value
(verb, URI, headers, body factory, accepted status codes) and executed by the
single generic :meth:`RequestEngine.perform`. The engine owns the policy that
is common to all operations:

- auth token injection from a consistent session snapshot
- bounded transport-level retry (tenacity)
- one re-authentication and replay on HTTP 401
- mapping of unexpected status codes onto the error taxonomy
- release of the connection on every exit path
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Callable, Collection, Iterable, Mapping, Optional, Union

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import (
    SwiftAuthenticationError,
    SwiftBadRequest,
    SwiftConnectionError,
    SwiftInternalStateError,
    SwiftInvalidResponse,
    SwiftNotFound,
    SwiftRangeNotSatisfiable,
)
from ..settings import Settings

if TYPE_CHECKING:
    from .auth import AuthSession, SessionManager

__all__ = [
    "SwiftRequest",
    "SwiftResponse",
    "RequestEngine",
    "create_http_client",
    "DEFAULT_ACCEPTED",
    "PUT_ACCEPTED",
    "COPY_ACCEPTED",
    "DELETE_ACCEPTED",
    "AUTH_ACCEPTED",
]

logger = logging.getLogger(__name__)

HEADER_AUTH_KEY = "X-Auth-Token"
HEADER_STORAGE_USER = "X-Storage-User"
HEADER_STORAGE_PASS = "X-Storage-Pass"
HEADER_STORAGE_URL = "X-Storage-Url"
HEADER_RANGE = "Range"
HEADER_DESTINATION = "Destination"
X_NEWEST = "X-Newest"
X_OBJECT_MANIFEST = "X-Object-Manifest"
X_CONTAINER_OBJECT_COUNT = "X-Container-Object-Count"
X_CONTAINER_BYTES_USED = "X-Container-Bytes-Used"
RANGE_HEADER_FORMAT = "bytes={}-{}"

NEWEST = {X_NEWEST: "true"}

SC_OK = 200
SC_CREATED = 201
SC_ACCEPTED = 202
SC_NON_AUTHORITATIVE_INFORMATION = 203
SC_NO_CONTENT = 204
SC_RESET_CONTENT = 205
SC_PARTIAL_CONTENT = 206
SC_MULTI_STATUS = 207
SC_BAD_REQUEST = 400
SC_UNAUTHORIZED = 401
SC_NOT_FOUND = 404
SC_REQUESTED_RANGE_NOT_SATISFIABLE = 416

DEFAULT_ACCEPTED = frozenset({SC_OK, SC_CREATED, SC_ACCEPTED, SC_NO_CONTENT, SC_PARTIAL_CONTENT})
PUT_ACCEPTED = frozenset({SC_OK, SC_CREATED, SC_ACCEPTED, SC_NO_CONTENT})
COPY_ACCEPTED = frozenset({SC_CREATED})
# deleting something already gone is not a failure
DELETE_ACCEPTED = frozenset({SC_OK, SC_ACCEPTED, SC_NO_CONTENT, SC_NOT_FOUND})
# any 2xx from the auth endpoint is a success
AUTH_ACCEPTED = frozenset({
    SC_OK, SC_CREATED, SC_ACCEPTED, SC_NON_AUTHORITATIVE_INFORMATION,
    SC_NO_CONTENT, SC_RESET_CONTENT, SC_PARTIAL_CONTENT, SC_MULTI_STATUS,
})

Body = Union[bytes, Iterable[bytes]]


@dataclass(frozen=True)
class SwiftRequest:
    """
    Description of one REST call.

    Attributes:
        method: HTTP verb, including the COPY extension
        uri: Absolute request URI
        headers: Caller headers; the auth token is added by the engine
        body: Factory producing the request body; invoked once per attempt
            so that retries and replays resend the full body
        accepted: Status codes that count as success for this operation
        absent_on_404: Report 404 as absence instead of raising
        authenticated: Attach the session token (False for the auth call)
        stream: Leave the response body unread for the caller to stream
    """
    method: str
    uri: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[Callable[[], Body]] = None
    accepted: Collection[int] = DEFAULT_ACCEPTED
    absent_on_404: bool = False
    authenticated: bool = True
    stream: bool = False


@dataclass
class SwiftResponse:
    """
    Outcome of a request: either found (with headers and body) or absent.

    For streamed requests ``raw`` is the still-open response; the caller owns
    it and must call :meth:`close`.
    """
    status_code: int
    reason: str
    headers: httpx.Headers
    content: bytes = b""
    raw: Optional[httpx.Response] = None
    found: bool = True

    def iter_bytes(self, chunk_size: Optional[int] = None) -> Iterable[bytes]:
        if self.raw is None:
            if self.content:
                yield self.content
            return
        yield from self.raw.iter_bytes(chunk_size)

    def close(self) -> None:
        if self.raw is not None:
            self.raw.close()


def create_http_client(settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> httpx.Client:
    """
    Create the HTTP client for one endpoint binding.

    The timeout is fixed at binding time and applies to every call.
    """
    proxy = f"http://{settings.proxy_host}:{settings.proxy_port}" if settings.proxy_host else None
    return httpx.Client(
        timeout=httpx.Timeout(settings.connect_timeout_s),
        follow_redirects=False,
        proxy=proxy,
        transport=transport,
        headers={"User-Agent": "swiftfs/0.1.0"},
    )


class RequestEngine:
    """
    Executes :class:`SwiftRequest` descriptors against the store.

    The engine is bound to one Settings/httpx.Client pair. Authentication is
    delegated to a :class:`~swiftfs.storage.auth.SessionManager`, which in turn
    uses this engine for the auth handshake itself.
    """

    def __init__(self, settings: Settings, client: httpx.Client,
                 sessions: Optional[SessionManager] = None):
        self._settings = settings
        self._client = client
        self.sessions = sessions

    def perform(self, request: SwiftRequest, session: Optional[AuthSession] = None) -> SwiftResponse:
        """
        Execute a request and classify the response.

        Args:
            request: Request descriptor
            session: Session snapshot the request URI was built from; taken
                from the session manager when omitted

        Returns:
            SwiftResponse; ``found`` is False for a 404 the request treats as absence

        Raises:
            SwiftAuthenticationError: 401 from the auth endpoint
            SwiftConnectionError: Transport failure after retries, or 401 after re-auth
            SwiftBadRequest: HTTP 400
            SwiftNotFound: HTTP 404 where absence is not expected
            SwiftRangeNotSatisfiable: HTTP 416
            SwiftInvalidResponse: Any other status outside ``accepted``
        """
        if request.authenticated and session is None:
            session = self._require_sessions().ensure_authenticated()

        response = self._execute(request, session)
        if response.status_code == SC_UNAUTHORIZED:
            response.close()
            response = self._replay_after_reauth(request, session)

        try:
            return self._to_result(request, response)
        except BaseException:
            response.close()
            raise

    def _require_sessions(self) -> SessionManager:
        if self.sessions is None:
            raise SwiftInternalStateError("No session manager bound to the request engine")
        return self.sessions

    def _execute(self, request: SwiftRequest, session: Optional[AuthSession]) -> httpx.Response:
        """Send with bounded retry on transport errors."""
        retryer = Retrying(
            stop=stop_after_attempt(self._settings.retry_count + 1),
            wait=wait_exponential(multiplier=self._settings.retry_backoff_s, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        try:
            return retryer(self._send, request, session)
        except httpx.TransportError as e:
            raise SwiftConnectionError(
                f"Method {request.method} on {request.uri} failed after "
                f"{self._settings.retry_count} retries: {e}") from e

    def _send(self, request: SwiftRequest, session: Optional[AuthSession]) -> httpx.Response:
        headers = dict(request.headers)
        if request.authenticated:
            if session is None:
                raise SwiftInternalStateError("Not authenticated")
            headers[HEADER_AUTH_KEY] = session.token

        content = request.body() if request.body is not None else None
        http_request = self._client.build_request(
            request.method, request.uri, headers=headers, content=content)
        if logger.isEnabledFor(logging.DEBUG):
            shown = {k: ("<redacted>" if k in (HEADER_AUTH_KEY, HEADER_STORAGE_PASS) else v)
                     for k, v in headers.items()}
            logger.debug(f"{request.method} {request.uri} {shown}")

        response = self._client.send(http_request, stream=True)
        if not request.stream:
            try:
                response.read()
            finally:
                response.close()
        logger.debug(f"Status code = {response.status_code}")
        return response

    def _replay_after_reauth(self, request: SwiftRequest,
                             stale: Optional[AuthSession]) -> httpx.Response:
        if request.uri == self._settings.auth_url or not request.authenticated:
            # unauthorized by the auth endpoint itself: bad credentials
            raise SwiftAuthenticationError(
                f"Authentication failed, URI credentials are incorrect, "
                f"or Openstack Keystone is configured incorrectly. URL='{self._settings.auth_url}' "
                f"username={{{self._settings.username}}} "
                f"password length={len(self._settings.secret)}")

        logger.debug("Reauthenticating")
        session = self._require_sessions().authenticate()
        request = _rebase(request, stale, session)
        logger.debug("Retrying original request")
        response = self._execute(request, session)
        if response.status_code == SC_UNAUTHORIZED:
            response.close()
            raise SwiftConnectionError(
                f"Method {request.method} on {request.uri} unauthorized "
                f"even after re-authenticating against {self._settings.auth_url}")
        return response

    def _to_result(self, request: SwiftRequest, response: httpx.Response) -> SwiftResponse:
        status = response.status_code
        if status in request.accepted:
            return SwiftResponse(
                status_code=status,
                reason=response.reason_phrase,
                headers=response.headers,
                content=b"" if request.stream else response.content,
                raw=response if request.stream else None,
                found=status != SC_NOT_FOUND,
            )
        if status == SC_NOT_FOUND and request.absent_on_404:
            response.close()
            return SwiftResponse(status_code=status, reason=response.reason_phrase,
                                 headers=response.headers, found=False)
        raise self._build_exception(request, response)

    def _build_exception(self, request: SwiftRequest, response: httpx.Response) -> Exception:
        status = response.status_code
        status_line = f"{response.http_version} {status} {response.reason_phrase}"
        message = (f"Method {request.method} on {request.uri} failed, status code: {status},"
                   f" status line: {status_line}")
        logger.debug(message)

        if status == SC_NOT_FOUND:
            return SwiftNotFound(f"Operation {request.method} on {request.uri}")
        if status == SC_BAD_REQUEST:
            return SwiftBadRequest(f"Bad request against {request.uri}")
        if status == SC_REQUESTED_RANGE_NOT_SATISFIABLE:
            # out of range: end of the object
            return SwiftRangeNotSatisfiable(f"{status_line} on {request.uri}")
        return SwiftInvalidResponse(message, status, request.method, request.uri, status_line)


def _rebase(request: SwiftRequest, stale: Optional[AuthSession], fresh: AuthSession) -> SwiftRequest:
    """Move a request built under one session onto the endpoints of another."""
    if stale is None:
        return request
    for old, new in ((stale.endpoint_uri, fresh.endpoint_uri),
                     (stale.object_location_uri, fresh.object_location_uri)):
        if old and new and old != new and request.uri.startswith(old):
            return replace(request, uri=new + request.uri[len(old):])
    return request
