"""
Reconciliation of the store's client set against a full target list.
Writes are applied one entry at a time and each failure is recorded, not raised:
one bad row must not abort the batch, and earlier successes are never unwound.
A failed run is re-run to convergence.
"""
import logging
from dataclasses import dataclass, field

from hydra_sidecar.config import HashScheme
from hydra_sidecar.errors import SidecarError, ValidationError
from hydra_sidecar.hashing import validate_hash
from hydra_sidecar.store import ClientRecord, ClientStore

logger = logging.getLogger(__name__)

STATUS_CREATED = "created"
STATUS_UPDATED = "updated"
STATUS_DELETED = "deleted"
STATUS_FAILED = "failed"


@dataclass
class ClientResult:
    client_id: str
    status: str
    error: str | None = None

    def to_dict(self) -> dict:
        d = {"client_id": self.client_id, "status": self.status}
        if self.error is not None:
            d["error"] = self.error
        return d


@dataclass
class SyncResult:
    created_count: int = 0
    updated_count: int = 0
    deleted_count: int = 0
    failed_count: int = 0
    results: list[ClientResult] = field(default_factory=list)

    def record(self, client_id: str, status: str, error: str | None = None) -> None:
        self.results.append(ClientResult(client_id, status, error))
        if status == STATUS_CREATED:
            self.created_count += 1
        elif status == STATUS_UPDATED:
            self.updated_count += 1
        elif status == STATUS_DELETED:
            self.deleted_count += 1
        else:
            self.failed_count += 1

    def to_dict(self) -> dict:
        return {
            "created_count": self.created_count,
            "updated_count": self.updated_count,
            "deleted_count": self.deleted_count,
            "failed_count": self.failed_count,
            "results": [r.to_dict() for r in self.results],
        }


def check_targets(targets: list[ClientRecord], scheme: HashScheme) -> None:
    """All-or-nothing input validation; raises before anything is written."""
    if not targets:
        raise ValidationError("clients array is empty")
    seen: set[str] = set()
    for record in targets:
        if not record.client_id:
            raise ValidationError("client_id is required")
        if record.client_id in seen:
            raise ValidationError(f"client {record.client_id}: duplicate client_id")
        seen.add(record.client_id)
        try:
            validate_hash(record.secret_hash, scheme)
        except ValidationError as e:
            raise type(e)(f"client {record.client_id}: {e.message}") from e


class ClientReconciler:
    def __init__(self, store: ClientStore, scheme: HashScheme):
        self.store = store
        self.scheme = scheme

    def sync(self, targets: list[ClientRecord]) -> SyncResult:
        """
        Make the tenant's client set equal to targets: upsert every target, delete every other id.
        Raises ValidationError on bad input and StoreError if the existing set cannot be read;
        per-entry write failures are reported in the result.
        """
        check_targets(targets, self.scheme)

        existing_ids = self.store.list_client_ids()
        target_ids = {record.client_id for record in targets}
        result = SyncResult()

        for record in targets:
            try:
                self.store.upsert(record)
            except SidecarError as e:
                logger.warning("Sync: upsert of %s failed: %s", record.client_id, e.message)
                result.record(record.client_id, STATUS_FAILED, e.message)
                continue
            status = STATUS_UPDATED if record.client_id in existing_ids else STATUS_CREATED
            result.record(record.client_id, status)

        for client_id in sorted(existing_ids - target_ids):
            try:
                self.store.delete(client_id)
            except SidecarError as e:
                logger.warning("Sync: delete of %s failed: %s", client_id, e.message)
                result.record(client_id, STATUS_FAILED, e.message)
                continue
            result.record(client_id, STATUS_DELETED)

        logger.info(
            "Sync completed: created=%d, updated=%d, deleted=%d, failed=%d",
            result.created_count,
            result.updated_count,
            result.deleted_count,
            result.failed_count,
        )
        return result
