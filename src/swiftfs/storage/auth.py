"""
Session management for the Swift REST client.

Holds the (token, data endpoint, object-location endpoint) triple as one
immutable :class:`AuthSession` snapshot. Readers take the snapshot under the
lock and build every URI of a request from that one value, so a token is
never paired with an endpoint from a different authentication cycle.

Authentication itself is not serialized: concurrent callers may each run a
full handshake, and the last one to finish wins.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from pydantic import ValidationError

from ..errors import (
    SwiftAuthenticationError,
    SwiftBadRequest,
    SwiftInvalidResponse,
)
from ..models import (
    ApiKeyCredentials,
    AuthenticationRequest,
    AuthenticationRequestWrapper,
    AuthenticationResponse,
    AuthenticationWrapper,
    Endpoint,
    PasswordCredentials,
)
from ..settings import AUTH_SWAUTH, Settings
from .http import (
    AUTH_ACCEPTED,
    HEADER_AUTH_KEY,
    HEADER_STORAGE_PASS,
    HEADER_STORAGE_URL,
    HEADER_STORAGE_USER,
    NEWEST,
    PUT_ACCEPTED,
    RequestEngine,
    SwiftRequest,
)
from .object_path import join_paths

__all__ = ["AuthSession", "SessionManager", "OBJECT_ENDPOINT_PATH"]

logger = logging.getLogger(__name__)

# Sub-path of the data endpoint host that answers object-location queries
OBJECT_ENDPOINT_PATH = "/object_endpoint/"


@dataclass(frozen=True)
class AuthSession:
    """
    Result of one successful authentication.

    Attributes:
        token: Opaque auth token sent as X-Auth-Token
        endpoint_uri: Storage endpoint all object URIs are built under
        object_location_uri: Endpoint answering object-location queries
        tenant_id: Tenant the token was issued for, if reported
        expires: Token expiry as reported by the service, if any
    """
    token: str
    endpoint_uri: str
    object_location_uri: str
    tenant_id: Optional[str] = None
    expires: Optional[str] = None


class SessionManager:
    """
    Unauthenticated -> Authenticated state machine for one endpoint binding.

    After each successful handshake the configured container is provisioned,
    once per manager.
    """

    def __init__(self, settings: Settings, engine: RequestEngine):
        self._settings = settings
        self._engine = engine
        self._lock = threading.Lock()
        self._session: Optional[AuthSession] = None
        self._container_ready = False

    @property
    def settings(self) -> Settings:
        return self._settings

    def current(self) -> Optional[AuthSession]:
        """Consistent snapshot of the session, or None before the first handshake."""
        with self._lock:
            return self._session

    @property
    def is_authenticated(self) -> bool:
        return self.current() is not None

    def ensure_authenticated(self) -> AuthSession:
        session = self.current()
        if session is None:
            session = self.authenticate()
        return session

    def authenticate(self) -> AuthSession:
        """
        Run the configured auth protocol and publish the new session.

        Raises:
            SwiftAuthenticationError: Bad credentials or no usable catalog entry
            SwiftConnectionError: Auth endpoint unreachable after retries
        """
        if self._settings.auth_method == AUTH_SWAUTH:
            session = self._authenticate_swauth()
        else:
            session = self._authenticate_keystone()

        with self._lock:
            self._session = session
        logger.debug(f"authenticated against {session.endpoint_uri}")

        self._provision_container(session)
        return session

    def _authenticate_keystone(self) -> AuthSession:
        settings = self._settings
        if settings.password is not None:
            auth = AuthenticationRequest(
                password_credentials=PasswordCredentials(
                    username=settings.username, password=settings.password),
                tenant_name=settings.tenant)
        else:
            auth = AuthenticationRequest(
                api_key_credentials=ApiKeyCredentials(
                    username=settings.username, api_key=settings.api_key),
                tenant_name=settings.tenant)
        logger.debug(f"Authenticating with {auth!r}")
        payload = AuthenticationRequestWrapper(auth=auth).to_json().encode("utf-8")

        response = self._engine.perform(SwiftRequest(
            method="POST",
            uri=settings.auth_url,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            body=lambda: payload,
            accepted=AUTH_ACCEPTED,
            authenticated=False,
        ))
        try:
            access = AuthenticationWrapper.model_validate_json(response.content).access
        except ValidationError as e:
            raise SwiftAuthenticationError(
                f"Unparseable authentication response from {settings.auth_url}: {e}") from e

        endpoint, endpoint_uri = self._select_endpoint(access)
        tenant_id = access.token.tenant.id if access.token.tenant and access.token.tenant.id else endpoint.tenant_id
        return AuthSession(
            token=access.token.id,
            endpoint_uri=endpoint_uri,
            object_location_uri=_object_location_uri(endpoint_uri, tenant_id),
            tenant_id=tenant_id,
            expires=access.token.expires,
        )

    def _select_endpoint(self, access: AuthenticationResponse) -> Tuple[Endpoint, str]:
        """Pick the object-store endpoint matching the configured region."""
        settings = self._settings
        catalogs: List[str] = []
        regions: List[str] = []
        for catalog in access.service_catalog:
            catalogs.append(f"[{catalog.name}: {catalog.type}]")
            logger.debug(f"Catalog entry [{catalog.name}: {catalog.type}]")
            if not catalog.is_object_store():
                continue
            for endpoint in catalog.endpoints:
                regions.append(f"[{endpoint.region} => {endpoint.public_url} / {endpoint.internal_url}]")
                if settings.region is not None and endpoint.region != settings.region:
                    continue
                url = endpoint.public_url if settings.use_public_url else endpoint.internal_url
                if url:
                    return endpoint, url

        raise SwiftAuthenticationError(
            f"Could not find swift service from auth URL {settings.auth_url} "
            f"and region '{settings.region}'. Categories: {'; '.join(catalogs) or 'none'}; "
            + (f"regions: {'; '.join(regions)}" if regions else "No regions"))

    def _authenticate_swauth(self) -> AuthSession:
        settings = self._settings
        logger.debug(f"Authenticating {settings.username} with storage headers")
        response = self._engine.perform(SwiftRequest(
            method="GET",
            uri=settings.auth_url,
            headers={HEADER_STORAGE_USER: settings.username,
                     HEADER_STORAGE_PASS: settings.secret},
            accepted=AUTH_ACCEPTED,
            authenticated=False,
        ))
        token = response.headers.get(HEADER_AUTH_KEY)
        storage_url = response.headers.get(HEADER_STORAGE_URL)
        if not token or not storage_url:
            raise SwiftInvalidResponse(
                f"Authentication response from {settings.auth_url} lacks "
                f"{HEADER_AUTH_KEY} or {HEADER_STORAGE_URL}",
                response.status_code, "GET", settings.auth_url)
        return AuthSession(token=token, endpoint_uri=storage_url, object_location_uri=storage_url)

    def _provision_container(self, session: AuthSession) -> None:
        """Create the configured container if it does not exist yet."""
        if self._container_ready:
            return
        # set first: a 401 during provisioning re-enters authenticate()
        self._container_ready = True
        try:
            self.create_container(self._settings.container, session)
        except BaseException:
            self._container_ready = False
            raise

    def create_container(self, name: str, session: AuthSession) -> None:
        uri = join_paths(session.endpoint_uri, name)
        head = self._engine.perform(
            SwiftRequest(method="HEAD", uri=uri, headers=NEWEST, absent_on_404=True),
            session)
        if head.found:
            return

        logger.debug(f"Creating container {name}")
        try:
            put = self._engine.perform(
                SwiftRequest(method="PUT", uri=uri, body=lambda: b"",
                             accepted=PUT_ACCEPTED, absent_on_404=True),
                session)
        except SwiftBadRequest as e:
            raise SwiftBadRequest(f"Bad request -possibly an illegal container name: {name}") from e
        if not put.found:
            raise SwiftInvalidResponse(
                f"Couldn't create container {name} for storing data in Swift. "
                f"Try to create container {name} manually",
                put.status_code, "PUT", uri)


def _object_location_uri(endpoint_uri: str, tenant_id: Optional[str]) -> str:
    parts = urlsplit(endpoint_uri)
    return urlunsplit((parts.scheme, parts.netloc, OBJECT_ENDPOINT_PATH + (tenant_id or ""), "", ""))
