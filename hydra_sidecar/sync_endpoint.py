"""
Bulk client sync (POST /sync/clients). Full reconciliation: creates new, updates existing, deletes removed.
Each entry must carry the stored hash in client_secret_hash; client_secret is ignored.
"""
import logging

from fastapi import APIRouter, Depends

from hydra_sidecar.config import (
    DEFAULT_GRANT_TYPES,
    DEFAULT_RESPONSE_TYPES,
    DEFAULT_TOKEN_ENDPOINT_AUTH_METHOD,
    HASHER_ALGORITHM,
)
from hydra_sidecar.reconcile import ClientReconciler
from hydra_sidecar.schemas import SyncClient, SyncClientsRequest
from hydra_sidecar.store import ClientRecord, ClientStore, get_store

logger = logging.getLogger(__name__)
router = APIRouter()


def to_record(entry: SyncClient) -> ClientRecord:
    """Build the row to write, applying defaults for omitted fields."""
    if entry.client_secret:
        # Plaintext must never reach the store; the hash field is the only credential source
        logger.warning(
            "client %s has client_secret populated in sync request, ignoring (use client_secret_hash)",
            entry.client_id,
        )
    return ClientRecord(
        client_id=entry.client_id,
        secret_hash=entry.client_secret_hash or "",
        name=entry.client_name,
        grant_types=entry.grant_types or list(DEFAULT_GRANT_TYPES),
        response_types=entry.response_types or list(DEFAULT_RESPONSE_TYPES),
        scope=entry.scope,
        audience=entry.audience,
        redirect_uris=entry.redirect_uris,
        owner=entry.owner,
        token_endpoint_auth_method=entry.token_endpoint_auth_method or DEFAULT_TOKEN_ENDPOINT_AUTH_METHOD,
        metadata=entry.metadata or {},
        secret_expires_at=entry.client_secret_expires_at,
    )


def get_reconciler(store: ClientStore = Depends(get_store)) -> ClientReconciler:
    return ClientReconciler(store, HASHER_ALGORITHM)


@router.post("/sync/clients")
def sync_clients(body: SyncClientsRequest, reconciler: ClientReconciler = Depends(get_reconciler)):
    """
    Reconcile the store against body.clients. Invalid input (empty list, bad hash, duplicate id)
    rejects the whole call with 400 before any write; per-entry write failures are reported
    with status "failed" in a 200 response.
    """
    records = [to_record(entry) for entry in body.clients]
    logger.info("Sync requested for %d clients", len(records))
    return reconciler.sync(records).to_dict()
