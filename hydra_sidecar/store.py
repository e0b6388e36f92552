"""
Persistence adapter for client rows in the authorization server's store.
Every operation is scoped to one tenant partition (network), resolved once and cached on the instance.
Database errors surface as StoreError; callers decide whether to fail a request or continue a batch.
"""
import json
import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterator

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hydra_sidecar.errors import NotFoundError, StoreError
from hydra_sidecar.models import HydraClient, Network

logger = logging.getLogger(__name__)


@dataclass
class ClientRecord:
    """One OAuth2 client as the sidecar writes it. secret_hash is always a hash."""

    client_id: str
    secret_hash: str
    name: str = ""
    grant_types: list[str] = field(default_factory=list)
    response_types: list[str] = field(default_factory=list)
    scope: str = ""
    audience: list[str] = field(default_factory=list)
    redirect_uris: list[str] = field(default_factory=list)
    owner: str = ""
    token_endpoint_auth_method: str = ""
    metadata: dict = field(default_factory=dict)
    secret_expires_at: int = 0

    def apply_to(self, row: HydraClient) -> None:
        """
        Overwrite every mutable column of row with this record (full overwrite, not a patch).
        Columns the record does not carry go back to their defaults.
        """
        row.client_name = self.name
        row.client_secret = self.secret_hash
        row.client_secret_expires_at = self.secret_expires_at
        row.grant_types = json.dumps(self.grant_types)
        row.response_types = json.dumps(self.response_types)
        row.scope = self.scope
        row.audience = json.dumps(self.audience)
        row.redirect_uris = json.dumps(self.redirect_uris)
        row.owner = self.owner
        row.token_endpoint_auth_method = self.token_endpoint_auth_method
        row.metadata_ = json.dumps(self.metadata)
        row.reset_unmanaged()
        row.updated_at = datetime.now(timezone.utc)


class ClientStore:
    def __init__(self, session_factory: Callable[[], Session], network_id: uuid.UUID | str | None = None):
        self._session_factory = session_factory
        self._configured_network_id = uuid.UUID(str(network_id)) if network_id else None
        self._network_id: uuid.UUID | None = None
        self._lock = threading.Lock()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Yield a session; roll back and raise StoreError on any database error."""
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"database error: {e.__class__.__name__}") from e
        finally:
            db.close()

    def resolve_tenant_id(self) -> uuid.UUID:
        """
        Return the tenant (network) id, resolving it on first use.
        Configured id wins; otherwise the single row of the networks table.
        """
        with self._lock:
            if self._network_id is not None:
                return self._network_id
            if self._configured_network_id is not None:
                self._network_id = self._configured_network_id
                return self._network_id
            with self._session() as db:
                nid = db.execute(select(Network.id).limit(1)).scalar_one_or_none()
            if nid is None:
                raise StoreError("no network ID available")
            self._network_id = nid
            logger.info("Resolved network ID %s", nid)
            return nid

    def get_secret_hash(self, client_id: str) -> str:
        nid = self.resolve_tenant_id()
        with self._session() as db:
            secret = db.execute(
                select(HydraClient.client_secret).where(HydraClient.id == client_id, HydraClient.nid == nid)
            ).scalar_one_or_none()
        if secret is None:
            raise NotFoundError(f"client {client_id} not found")
        return secret

    def list_client_ids(self) -> set[str]:
        nid = self.resolve_tenant_id()
        with self._session() as db:
            return set(db.execute(select(HydraClient.id).where(HydraClient.nid == nid)).scalars())

    def upsert(self, record: ClientRecord) -> None:
        """Insert the client if absent, else overwrite its mutable fields. created_at is kept."""
        nid = self.resolve_tenant_id()
        with self._session() as db:
            row = db.get(HydraClient, (record.client_id, nid))
            if row is None:
                row = HydraClient(id=record.client_id, nid=nid)
                db.add(row)
            record.apply_to(row)
            db.commit()

    def delete(self, client_id: str) -> None:
        """Delete the client; deleting an absent id is not an error."""
        nid = self.resolve_tenant_id()
        with self._session() as db:
            db.query(HydraClient).filter(HydraClient.id == client_id, HydraClient.nid == nid).delete()
            db.commit()

    def ping(self, timeout: float | None = None) -> None:
        """SELECT 1; on PostgreSQL the statement is cut off after timeout seconds."""
        with self._session() as db:
            if timeout and db.get_bind().dialect.name == "postgresql":
                db.execute(text(f"SET LOCAL statement_timeout = {int(timeout * 1000)}"))
            db.execute(text("SELECT 1"))


_store: ClientStore | None = None


def get_store() -> ClientStore:
    """Dependency: the process-wide ClientStore bound to the configured database."""
    global _store
    if _store is None:
        from hydra_sidecar.config import NETWORK_ID
        from hydra_sidecar.database import SessionLocal

        _store = ClientStore(SessionLocal, NETWORK_ID)
    return _store
