"""
Client administration proxy: /admin/clients.
Requests go to the authorization server's admin API unchanged. Create and rotate responses are
enriched with client_secret_hash, read back from the store, so the caller's system of record can
keep the hash for later syncs:
  - client_secret: plaintext, shown once (never stored by the sidecar)
  - client_secret_hash: hash of the secret (store this for sync)
"""
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Response, status
from fastapi.responses import JSONResponse

from hydra_sidecar.admin_api import AdminApiClient, get_admin_api
from hydra_sidecar.config import HASHER_ALGORITHM
from hydra_sidecar.errors import SidecarError, ValidationError
from hydra_sidecar.hashing import validate_hash
from hydra_sidecar.schemas import RotateClientRequest
from hydra_sidecar.store import ClientStore, get_store

logger = logging.getLogger(__name__)
router = APIRouter()

EXPIRY_UPDATE_WARNING = '199 hydra-sidecar "secret rotated but client_secret_expires_at was not updated"'


def attach_secret_hash(client_data: dict, store: ClientStore) -> dict:
    """
    Add client_secret_hash from the store. Non-fatal: the server already persisted the client,
    so a failed read (or a hash in an unexpected format) only omits the field.
    """
    client_id = client_data.get("client_id")
    if not client_id:
        logger.warning("Upstream response has no client_id; returning it without client_secret_hash")
        return client_data
    try:
        secret_hash = store.get_secret_hash(client_id)
        validate_hash(secret_hash, HASHER_ALGORITHM)
    except SidecarError as e:
        logger.warning("Could not retrieve hashed secret for %s: %s", client_id, e.message)
        return client_data
    client_data["client_secret_hash"] = secret_hash
    return client_data


@router.post("/admin/clients")
def create_client(
    spec: dict[str, Any] = Body(...),
    admin_api: AdminApiClient = Depends(get_admin_api),
    store: ClientStore = Depends(get_store),
):
    """Create an OAuth2 client at the authorization server; respond with plaintext secret and its hash."""
    upstream_status, client_data = admin_api.create_client(spec)
    logger.info("Created client %s", client_data.get("client_id"))
    return JSONResponse(status_code=upstream_status, content=attach_secret_hash(client_data, store))


@router.get("/admin/clients/{client_id}")
def get_client(client_id: str, admin_api: AdminApiClient = Depends(get_admin_api)):
    """Passthrough. The authorization server never returns a secret on read."""
    logger.info("Getting client: %s", client_id)
    return admin_api.get_client(client_id)


@router.delete("/admin/clients/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(client_id: str, admin_api: AdminApiClient = Depends(get_admin_api)):
    admin_api.delete_client(client_id)
    logger.info("Client %s deleted", client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/admin/clients/rotate/{client_id}")
def rotate_client(
    client_id: str,
    body: RotateClientRequest | None = None,
    admin_api: AdminApiClient = Depends(get_admin_api),
    store: ClientStore = Depends(get_store),
):
    """
    Rotate the client secret; respond with the new plaintext secret and its hash.
    With client_secret_expires_at > 0 the expiry is updated in a second call. The two calls are
    not atomic: if the update fails after the rotation succeeded, the rotation result is still
    returned (with the previous expiry) and a Warning header flags the partial success.
    """
    if not client_id.strip():
        raise ValidationError("missing client_id")
    expires_at = body.client_secret_expires_at if body else 0

    logger.info("Rotating secret for client: %s", client_id)
    client_data = admin_api.rotate_secret(client_id)

    headers = {}
    if expires_at > 0:
        try:
            admin_api.update_secret_expiry(client_id, expires_at)
        except SidecarError as e:
            logger.warning("Failed to update client expiration for %s: %s", client_id, e.message)
            headers["Warning"] = EXPIRY_UPDATE_WARNING
        else:
            client_data["client_secret_expires_at"] = expires_at
            logger.info("Updated client %s expiration to %d", client_id, expires_at)

    client_data.setdefault("client_id", client_id)
    logger.info("Client %s secret rotated successfully", client_id)
    return JSONResponse(content=attach_secret_hash(client_data, store), headers=headers)
