"""
Sidecar configuration. Values come from the environment; no secrets in this file.
The sidecar runs next to its authorization server, so the admin URL defaults to localhost.
"""
import os
from enum import Enum


class HashScheme(str, Enum):
    """Client secret hash formats the authorization server can be configured with."""

    PBKDF2 = "pbkdf2"
    BCRYPT = "bcrypt"


_SCHEME_ALIASES = {
    "pbkdf2": HashScheme.PBKDF2,
    "scheme-a": HashScheme.PBKDF2,
    "bcrypt": HashScheme.BCRYPT,
    "scheme-b": HashScheme.BCRYPT,
}


def parse_hash_scheme(value: str) -> HashScheme:
    """Map a configured scheme name (or its scheme-a/scheme-b alias) to a HashScheme."""
    scheme = _SCHEME_ALIASES.get((value or "").strip().lower())
    if scheme is None:
        raise ValueError(f"unknown hasher algorithm: {value}")
    return scheme


def _float_env(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


# Listening address for uvicorn
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8080"))

# Store DSN (the authorization server's own database). Required; checked in database.py.
DATABASE_URL = os.environ.get("DATABASE_URL", "").strip()

# Authorization server admin API
HYDRA_ADMIN_URL = os.environ.get("HYDRA_ADMIN_URL", "http://localhost:4445").rstrip("/")

# Must match the authorization server's hasher setting; every synced hash is checked against it
HASHER_ALGORITHM = parse_hash_scheme(os.environ.get("HASHER_ALGORITHM", "pbkdf2"))

# Optional explicit tenant (network) id; otherwise read from the networks table
NETWORK_ID = os.environ.get("SIDECAR_NETWORK_ID", "").strip() or None

# Outbound timeouts (seconds). The token hook sits on the token issuance path, keep it short.
ADMIN_API_TIMEOUT_SECONDS = _float_env("ADMIN_API_TIMEOUT_SECONDS", 30.0)
TOKEN_HOOK_TIMEOUT_SECONDS = _float_env("TOKEN_HOOK_TIMEOUT_SECONDS", 5.0)
# Upper bound for the readiness probe's store ping (connect and query)
READY_TIMEOUT_SECONDS = _float_env("READY_TIMEOUT_SECONDS", 5.0)

# In-flight requests get this long to finish after SIGTERM/SIGINT
SHUTDOWN_GRACE_SECONDS = int(os.environ.get("SHUTDOWN_GRACE_SECONDS", "30"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Defaults applied to synced clients that omit these fields
DEFAULT_GRANT_TYPES = ["client_credentials"]
DEFAULT_RESPONSE_TYPES = ["token"]
DEFAULT_TOKEN_ENDPOINT_AUTH_METHOD = "client_secret_basic"
