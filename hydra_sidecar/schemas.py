"""
Request bodies for the sidecar's JSON endpoints. Unknown fields are ignored.
"""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SyncClient(BaseModel):
    """
    One entry of a sync request. client_secret_hash must hold the stored hash
    (the value returned as client_secret_hash at creation/rotation).
    client_secret is accepted only so it can be detected and ignored.
    """

    model_config = ConfigDict(extra="ignore")

    client_id: str
    client_secret_hash: str | None = None
    client_secret: str | None = None
    client_name: str = ""
    grant_types: list[str] | None = None
    response_types: list[str] | None = None
    scope: str = ""
    audience: list[str] = Field(default_factory=list)
    redirect_uris: list[str] = Field(default_factory=list)
    owner: str = ""
    token_endpoint_auth_method: str | None = None
    metadata: dict[str, Any] | None = None
    client_secret_expires_at: int = Field(default=0, ge=0)


class SyncClientsRequest(BaseModel):
    clients: list[SyncClient]


class RotateClientRequest(BaseModel):
    # Unix timestamp when the new secret expires (0 = leave unchanged)
    client_secret_expires_at: int = Field(default=0, ge=0)


class _HookSession(BaseModel):
    model_config = ConfigDict(extra="ignore")

    client_id: str | None = None


class _HookRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    client_id: str | None = None
    # Sent as null when no scope was granted
    granted_scopes: list[str] | None = None


class TokenHookRequest(BaseModel):
    """Payload the authorization server posts during token issuance."""

    model_config = ConfigDict(extra="ignore")

    session: _HookSession = Field(default_factory=_HookSession)
    request: _HookRequest = Field(default_factory=_HookRequest)

    def resolve_client_id(self) -> str:
        """request.client_id first, then session.client_id."""
        return self.request.client_id or self.session.client_id or ""
