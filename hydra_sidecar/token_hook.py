"""
Token hook (POST /token-hook): claim injection at token issuance.
The authorization server calls this synchronously for every token, so the client lookup is
bounded by TOKEN_HOOK_TIMEOUT_SECONDS and its failure never blocks issuance (empty claims).
The one hard failure is an expired client, which is rejected with 403 access_denied.
"""
import logging
import time
from dataclasses import dataclass

from fastapi import APIRouter, Depends

from hydra_sidecar.admin_api import AdminApiClient, get_admin_api
from hydra_sidecar.config import TOKEN_HOOK_TIMEOUT_SECONDS
from hydra_sidecar.errors import ExpiredClientError, SidecarError, UpstreamError
from hydra_sidecar.schemas import TokenHookRequest

logger = logging.getLogger(__name__)
router = APIRouter()


def current_time() -> int:
    """Whole Unix seconds, the resolution of client_secret_expires_at."""
    return int(time.time())


@dataclass
class ClientInfo:
    metadata: dict
    secret_expires_at: int = 0

    def is_expired(self, now: int) -> bool:
        return self.secret_expires_at > 0 and now > self.secret_expires_at


def parse_client_info(client: dict) -> ClientInfo:
    """Extract metadata and expiry; a body that does not have the expected shape is an upstream error."""
    metadata = client.get("metadata")
    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        raise UpstreamError("client metadata is not an object")
    expires_at = client.get("client_secret_expires_at") or 0
    if isinstance(expires_at, bool) or not isinstance(expires_at, int):
        raise UpstreamError("client_secret_expires_at is not an integer")
    return ClientInfo(metadata=metadata, secret_expires_at=expires_at)


def fetch_client_info(admin_api: AdminApiClient, client_id: str) -> ClientInfo | None:
    """Client metadata and expiry, or None if the lookup failed for any reason."""
    try:
        return parse_client_info(admin_api.get_client(client_id, timeout=TOKEN_HOOK_TIMEOUT_SECONDS))
    except SidecarError as e:
        logger.warning("Failed to fetch client info for %s: %s, using fallback", client_id, e.message)
        return None


def build_claims(client_id: str, info: ClientInfo | None, now: int) -> dict:
    """Claims for the access token; raises ExpiredClientError for an expired client."""
    if info is None:
        return {}
    if info.is_expired(now):
        logger.info("Client %s has expired (expired_at: %d)", client_id, info.secret_expires_at)
        raise ExpiredClientError("client has expired")
    # Copied verbatim: the metadata schema belongs to whoever registers the client
    claims = dict(info.metadata)
    logger.info("Injecting %d metadata fields for client: %s", len(claims), client_id)
    return claims


@router.post("/token-hook")
def token_hook(body: TokenHookRequest, admin_api: AdminApiClient = Depends(get_admin_api)):
    """Return {"session": {"access_token": claims}} for the authorization server to merge into the token."""
    client_id = body.resolve_client_id()
    logger.info("Token hook called for client_id: %s", client_id)

    info = fetch_client_info(admin_api, client_id) if client_id else None
    claims = build_claims(client_id, info, current_time())
    return {"session": {"access_token": claims}}
