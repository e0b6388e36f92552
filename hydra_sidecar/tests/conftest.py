"""
Pytest configuration for hydra_sidecar. In-memory SQLite stands in for the authorization server's
store; a MockTransport stands in for its admin API.
"""
import base64
import hashlib
import json
import os
import secrets
import uuid

# Must be set before hydra_sidecar.config / database are imported
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["HASHER_ALGORITHM"] = "pbkdf2"
os.environ.pop("SIDECAR_NETWORK_ID", None)

import httpx
import pytest
from fastapi.testclient import TestClient

from hydra_sidecar.admin_api import AdminApiClient, get_admin_api
from hydra_sidecar.database import SessionLocal, engine
from hydra_sidecar.main import app
from hydra_sidecar.models import Base, Network
from hydra_sidecar.store import ClientRecord, get_store

NETWORK_ID = uuid.UUID("3c2b1a00-0000-4000-8000-00000000a11d")
ADMIN_BASE_URL = "http://hydra-admin.test"


def pbkdf2_hash(secret: str, iterations: int = 1000) -> str:
    """Hash in the authorization server's PBKDF2 format: $pbkdf2-sha256$i=N,l=32$salt$key."""
    salt = secrets.token_bytes(16)
    key = hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt, iterations, dklen=32)
    b64 = lambda b: base64.b64encode(b).decode("ascii").rstrip("=")  # noqa: E731
    return f"$pbkdf2-sha256$i={iterations},l=32${b64(salt)}${b64(key)}"


@pytest.fixture(autouse=True)
def db():
    """Fresh tables with a single network row for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        session.add(Network(id=NETWORK_ID))
        session.commit()
        yield session
    finally:
        session.close()


@pytest.fixture
def network_id():
    return NETWORK_ID


@pytest.fixture
def store():
    return get_store()


@pytest.fixture
def make_hash():
    return pbkdf2_hash


class FakeAdminApi:
    """
    Minimal authorization server admin API. Created/rotated clients get a generated plaintext
    secret, and their hash is written to the shared store like the real server does.
    """

    def __init__(self, store):
        self.store = store
        self.clients: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.fail_with: Exception | None = None
        self.status_overrides: dict[tuple[str, str], int] = {}

    def add(self, client_id: str, metadata: dict | None = None, expires_at: int = 0) -> dict:
        client = {
            "client_id": client_id,
            "client_name": client_id,
            "grant_types": ["client_credentials"],
            "metadata": metadata if metadata is not None else {},
            "client_secret_expires_at": expires_at,
        }
        self.clients[client_id] = client
        return client

    def _persist(self, client: dict, secret: str) -> None:
        self.store.upsert(
            ClientRecord(
                client_id=client["client_id"],
                secret_hash=pbkdf2_hash(secret),
                name=client.get("client_name", ""),
                grant_types=client.get("grant_types", []),
                metadata=client.get("metadata", {}),
                secret_expires_at=client.get("client_secret_expires_at", 0),
            )
        )

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        path = request.url.path
        override = self.status_overrides.get((request.method, path))
        if override is not None:
            return httpx.Response(override, json={"error": "override", "error_description": "forced failure"})

        if request.method == "POST" and path == "/admin/clients":
            spec = json.loads(request.content)
            if "grant_types" in spec and not isinstance(spec["grant_types"], list):
                return httpx.Response(400, json={"error": "invalid_client_metadata", "error_description": "grant_types must be a list"})
            client_id = spec.get("client_id") or str(uuid.uuid4())
            client = self.add(client_id, spec.get("metadata"), spec.get("client_secret_expires_at", 0))
            secret = secrets.token_urlsafe(24)
            self._persist(client, secret)
            return httpx.Response(201, json={**client, "client_secret": secret})

        parts = path.strip("/").split("/")
        if len(parts) < 3 or parts[:2] != ["admin", "clients"]:
            return httpx.Response(404, json={"error": "not_found"})
        client_id = parts[2]
        client = self.clients.get(client_id)
        if client is None:
            return httpx.Response(404, json={"error": "Unable to locate the resource"})

        if len(parts) == 4 and parts[3] == "rotate" and request.method == "POST":
            secret = secrets.token_urlsafe(24)
            self._persist(client, secret)
            return httpx.Response(200, json={**client, "client_secret": secret})
        if request.method == "GET":
            return httpx.Response(200, json=client)
        if request.method == "DELETE":
            del self.clients[client_id]
            self.store.delete(client_id)
            return httpx.Response(204)
        if request.method == "PATCH":
            for op in json.loads(request.content):
                client[op["path"].lstrip("/")] = op["value"]
            return httpx.Response(200, json=client)
        return httpx.Response(405)


@pytest.fixture
def fake_admin(store):
    fake = FakeAdminApi(store)
    admin_api = AdminApiClient(ADMIN_BASE_URL, timeout=5.0, transport=httpx.MockTransport(fake.handle))
    app.dependency_overrides[get_admin_api] = lambda: admin_api
    try:
        yield fake
    finally:
        app.dependency_overrides.pop(get_admin_api, None)
        admin_api.close()


@pytest.fixture
def client():
    return TestClient(app)
