"""
Wire models for Keystone token-catalog authentication.

These Pydantic models describe the JSON request sent to the auth endpoint and
the access document it returns, from which the object-store endpoint is
discovered.
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Catalog identifiers that denote an object store
SERVICE_CATALOG_SWIFT = "swift"
SERVICE_CATALOG_CLOUD_FILES = "cloudFiles"
SERVICE_CATALOG_OBJECT_STORE = "object-store"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PasswordCredentials(_WireModel):
    """Username + password credentials."""
    username: str
    password: str

    def __repr__(self) -> str:
        return f"PasswordCredentials(username={self.username!r}, password=<{len(self.password)} chars>)"


class ApiKeyCredentials(_WireModel):
    """Username + API key credentials."""
    username: str
    api_key: str = Field(..., alias="apiKey")

    def __repr__(self) -> str:
        return f"ApiKeyCredentials(username={self.username!r}, apiKey=<{len(self.api_key)} chars>)"


class AuthenticationRequest(_WireModel):
    """Body of the ``auth`` element; exactly one credential block is set."""
    password_credentials: Optional[PasswordCredentials] = Field(default=None, alias="passwordCredentials")
    api_key_credentials: Optional[ApiKeyCredentials] = Field(default=None, alias="apiKeyCredentials")
    tenant_name: Optional[str] = Field(default=None, alias="tenantName")


class AuthenticationRequestWrapper(_WireModel):
    auth: AuthenticationRequest

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class Tenant(_WireModel):
    id: Optional[str] = None
    name: Optional[str] = None


class AccessToken(_WireModel):
    """Opaque token id; expiry is owned by the remote service."""
    id: str
    expires: Optional[str] = None
    tenant: Optional[Tenant] = None


class Endpoint(_WireModel):
    region: Optional[str] = None
    public_url: Optional[str] = Field(default=None, alias="publicURL")
    internal_url: Optional[str] = Field(default=None, alias="internalURL")
    tenant_id: Optional[str] = Field(default=None, alias="tenantId")


class Catalog(_WireModel):
    name: str = ""
    type: str = ""
    endpoints: List[Endpoint] = Field(default_factory=list)

    def is_object_store(self) -> bool:
        return (self.name in (SERVICE_CATALOG_SWIFT, SERVICE_CATALOG_CLOUD_FILES)
                or self.type == SERVICE_CATALOG_OBJECT_STORE)


class AuthenticationResponse(_WireModel):
    token: AccessToken
    service_catalog: List[Catalog] = Field(default_factory=list, alias="serviceCatalog")


class AuthenticationWrapper(_WireModel):
    access: AuthenticationResponse


__all__ = [
    "PasswordCredentials",
    "ApiKeyCredentials",
    "AuthenticationRequest",
    "AuthenticationRequestWrapper",
    "AccessToken",
    "Tenant",
    "Endpoint",
    "Catalog",
    "AuthenticationResponse",
    "AuthenticationWrapper",
    "SERVICE_CATALOG_SWIFT",
    "SERVICE_CATALOG_CLOUD_FILES",
    "SERVICE_CATALOG_OBJECT_STORE",
]
