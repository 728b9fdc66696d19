"""
Settings and configuration binding for the Swift filesystem.

Resolves the per-instance configuration of one ``swift://<service>/`` URI into
a single immutable :class:`Settings` record. A process may talk to several
Swift endpoints at once, so every key is namespaced by the short service name
taken from the filesystem URI host.

Binding validates eagerly (fail-fast) and never touches the network.
"""
from __future__ import annotations

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from typing import Dict, Mapping, Optional
from urllib.parse import urlsplit

from .errors import SwiftConfigurationError

__all__ = [
    "Settings",
    "bind",
    "config_from_env",
    "create_settings_from_env",
    "build_instance_prefix",
    "DEFAULT_PART_SIZE",
]

logger = logging.getLogger(__name__)

SWIFT_SERVICE_PREFIX = "fs.swift.service."

DOT_AUTH_URL = ".auth.url"
DOT_USERNAME = ".username"
DOT_PASSWORD = ".password"
DOT_APIKEY = ".apikey"
DOT_TENANT = ".tenant"
DOT_REGION = ".region"
DOT_PUBLIC = ".public"
DOT_RETRY_COUNT = ".retry.count"
DOT_RETRY_BACKOFF = ".retry.backoff"
DOT_CONNECT_TIMEOUT = ".connect.timeout"
DOT_PROXY_HOST = ".proxy.host"
DOT_PROXY_PORT = ".proxy.port"
DOT_AUTH_METHOD = ".auth.method"
DOT_CONTAINER = ".container"
DOT_PARTSIZE = ".partsize"
DOT_BUFFER_DIR = ".buffer.dir"

ALL_KEYS = (
    DOT_AUTH_URL, DOT_USERNAME, DOT_PASSWORD, DOT_APIKEY, DOT_TENANT, DOT_REGION,
    DOT_PUBLIC, DOT_RETRY_COUNT, DOT_RETRY_BACKOFF, DOT_CONNECT_TIMEOUT,
    DOT_PROXY_HOST, DOT_PROXY_PORT, DOT_AUTH_METHOD, DOT_CONTAINER,
    DOT_PARTSIZE, DOT_BUFFER_DIR,
)

AUTH_KEYSTONE = "keystone"
AUTH_SWAUTH = "swauth"

DEFAULT_RETRY_COUNT = 3
DEFAULT_CONNECT_TIMEOUT_MS = 15000
DEFAULT_PROXY_PORT = 8080
# Swift caps single objects at 5 GB; larger files are split into parts.
DEFAULT_PART_SIZE = 4768709000


@dataclass(frozen=True)
class Settings:
    """
    Endpoint binding for one Swift filesystem instance.

    Auth Settings:
        service: Short service name (the filesystem URI host)
        auth_url: Absolute URL of the auth endpoint
        username: Account user name
        password: Password secret (mutually exclusive with api_key)
        api_key: API key secret (mutually exclusive with password)
        tenant: Optional tenant name sent with Keystone auth
        region: Optional region used to select the catalog endpoint
        use_public_url: Prefer the public endpoint over the internal one
        auth_method: "keystone" (token catalog) or "swauth" (header token)

    HTTP Settings:
        retry_count: Transport-level retries per request (0 = no retry)
        retry_backoff_s: Base of the exponential backoff between retries
        connect_timeout_s: Connect/read timeout applied to every call
        proxy_host: Optional HTTP proxy host
        proxy_port: Proxy port, ignored without proxy_host

    Storage Settings:
        container: Container holding this filesystem (defaults to service)
        part_size: Multipart upload threshold in bytes
        buffer_dir: Directory for local write staging files
    """
    service: str
    auth_url: str
    username: str
    password: Optional[str] = None
    api_key: Optional[str] = None
    tenant: Optional[str] = None
    region: Optional[str] = None
    use_public_url: bool = False
    auth_method: str = AUTH_KEYSTONE
    retry_count: int = DEFAULT_RETRY_COUNT
    retry_backoff_s: float = 0.5
    connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_MS / 1000.0
    proxy_host: Optional[str] = None
    proxy_port: int = DEFAULT_PROXY_PORT
    container: Optional[str] = None
    part_size: int = DEFAULT_PART_SIZE
    buffer_dir: Optional[str] = None

    def __post_init__(self):
        """Validate settings on construction."""
        if not self.service:
            raise SwiftConfigurationError("service is required")

        if not self.auth_url:
            raise SwiftConfigurationError("auth_url is required")
        parsed = urlsplit(self.auth_url)
        if not parsed.scheme or not parsed.netloc:
            raise SwiftConfigurationError(
                f"auth_url must be an absolute URI, got {self.auth_url}")
        if parsed.scheme not in ("http", "https"):
            raise SwiftConfigurationError(
                f"auth_url must use http or https, got {self.auth_url}")

        if not self.username:
            raise SwiftConfigurationError("username is required")

        # Exactly one credential secret
        if self.password is None and self.api_key is None:
            raise SwiftConfigurationError(
                f"Configuration for {self.service} must contain either "
                f"a password or an api key")
        if self.password is not None and self.api_key is not None:
            raise SwiftConfigurationError(
                "Specify either password OR api_key, not both")

        if self.auth_method not in (AUTH_KEYSTONE, AUTH_SWAUTH):
            raise SwiftConfigurationError(
                f"Unknown auth_method: {self.auth_method}. "
                f"Supported values: {AUTH_KEYSTONE}, {AUTH_SWAUTH}")

        if self.retry_count < 0:
            raise SwiftConfigurationError(
                f"retry_count must be non-negative, got {self.retry_count}")
        if self.retry_backoff_s < 0:
            raise SwiftConfigurationError(
                f"retry_backoff_s must be non-negative, got {self.retry_backoff_s}")
        if self.connect_timeout_s <= 0:
            raise SwiftConfigurationError(
                f"connect_timeout_s must be positive, got {self.connect_timeout_s}")
        if self.part_size <= 0:
            raise SwiftConfigurationError(
                f"part_size must be positive, got {self.part_size}")

        if self.container is None:
            object.__setattr__(self, "container", self.service)
        elif not self.container or "/" in self.container:
            raise SwiftConfigurationError(f"Invalid container name: {self.container!r}")

    @property
    def secret(self) -> str:
        """The one configured credential secret."""
        return self.password if self.password is not None else self.api_key

    @property
    def staging_dir(self) -> str:
        return self.buffer_dir or tempfile.gettempdir()


def build_instance_prefix(service: str) -> str:
    """
    Build the configuration key prefix for a service.

    Examples:
        >>> build_instance_prefix("local")
        'fs.swift.service.local'
    """
    return SWIFT_SERVICE_PREFIX + service


def service_name(fs_uri: str) -> str:
    """
    Extract and validate the short service name from a filesystem URI.

    Raises:
        SwiftConfigurationError: If the host is missing or fully qualified
    """
    host = urlsplit(fs_uri).hostname
    if not host or "." in host:
        # expect short names mapping to configuration names
        raise SwiftConfigurationError(
            f"Only short hostnames mapping to a service binding are supported, "
            f"not {host} (from) {fs_uri}")
    return host


def bind(fs_uri: str, conf: Mapping[str, str]) -> Settings:
    """
    Bind a filesystem URI to its instance-specific configuration.

    Args:
        fs_uri: Filesystem URI, e.g. ``swift://local/``
        conf: Source of dotted configuration keys

    Returns:
        Validated Settings for the instance

    Raises:
        SwiftConfigurationError: If a mandatory key is missing or a value is malformed
    """
    service = service_name(fs_uri)
    prefix = build_instance_prefix(service)
    logger.debug(f"Filesystem {fs_uri} is using configuration keys {prefix}")

    def get(suffix: str, required: bool = False) -> Optional[str]:
        value = conf.get(prefix + suffix)
        if value is not None:
            value = value.strip()
        if required and not value:
            raise SwiftConfigurationError(
                f"Missing mandatory configuration option: {prefix + suffix}")
        return value or None

    def get_int(suffix: str, default: int) -> int:
        value = get(suffix)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError as e:
            raise SwiftConfigurationError(
                f"Failed to parse (numeric) value of property {prefix + suffix} : {value}") from e

    def get_float(suffix: str, default: float) -> float:
        value = get(suffix)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError as e:
            raise SwiftConfigurationError(
                f"Failed to parse (numeric) value of property {prefix + suffix} : {value}") from e

    auth_url = get(DOT_AUTH_URL, required=True)
    username = get(DOT_USERNAME, required=True)
    password = get(DOT_PASSWORD)
    api_key = get(DOT_APIKEY)
    if password is None and api_key is None:
        raise SwiftConfigurationError(
            f"Missing mandatory configuration option: {prefix + DOT_PASSWORD} "
            f"or {prefix + DOT_APIKEY}")
    if password is not None and api_key is not None:
        logger.debug(f"Both password and api key set for {service}; using the password")
        api_key = None

    public = (get(DOT_PUBLIC) or "false").lower()
    if public not in ("true", "false"):
        raise SwiftConfigurationError(
            f"Failed to parse (boolean) value of property {prefix + DOT_PUBLIC} : {public}")

    settings = Settings(
        service=service,
        auth_url=auth_url,
        username=username,
        password=password,
        api_key=api_key,
        tenant=get(DOT_TENANT),
        region=get(DOT_REGION),
        use_public_url=public == "true",
        auth_method=(get(DOT_AUTH_METHOD) or AUTH_KEYSTONE).lower(),
        retry_count=get_int(DOT_RETRY_COUNT, DEFAULT_RETRY_COUNT),
        retry_backoff_s=get_float(DOT_RETRY_BACKOFF, 0.5),
        connect_timeout_s=get_int(DOT_CONNECT_TIMEOUT, DEFAULT_CONNECT_TIMEOUT_MS) / 1000.0,
        proxy_host=get(DOT_PROXY_HOST),
        proxy_port=get_int(DOT_PROXY_PORT, DEFAULT_PROXY_PORT),
        container=get(DOT_CONTAINER),
        part_size=get_int(DOT_PARTSIZE, DEFAULT_PART_SIZE),
        buffer_dir=get(DOT_BUFFER_DIR),
    )

    # everything needed for diagnostics; the secret is omitted
    logger.debug(
        f"Service={settings.service} container={settings.container} uri={settings.auth_url} "
        f"tenant={settings.tenant} user={settings.username} region={settings.region or '(none)'} "
        f"publicURL={settings.use_public_url} connect timeout={settings.connect_timeout_s}s "
        f"retry count={settings.retry_count}")
    return settings


def _env_name(service: str, suffix: str) -> str:
    return "SWIFTFS_" + re.sub(r"[^A-Za-z0-9]", "_", service).upper() + suffix.replace(".", "_").upper()


def config_from_env(service: str, environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Build a dotted configuration mapping from environment variables.

    Each key ``fs.swift.service.<service><suffix>`` is read from
    ``SWIFTFS_<SERVICE><SUFFIX>`` with dots turned into underscores, e.g.
    ``SWIFTFS_LOCAL_AUTH_URL`` for ``fs.swift.service.local.auth.url``.

    Args:
        service: Short service name
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Mapping suitable for :func:`bind`
    """
    environ = os.environ if environ is None else environ
    prefix = build_instance_prefix(service)
    conf: Dict[str, str] = {}
    for suffix in ALL_KEYS:
        value = environ.get(_env_name(service, suffix))
        if value is not None:
            conf[prefix + suffix] = value
    return conf


def create_settings_from_env(fs_uri: str, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Load settings for a filesystem URI from environment variables.

    Creates a fresh Settings instance every time (no caching).

    Raises:
        SwiftConfigurationError: If configuration is invalid or required values missing
    """
    return bind(fs_uri, config_from_env(service_name(fs_uri), environ))
