"""
Hash-format validation for client secrets.
The sidecar never hashes anything itself: it only checks that a supplied credential
already is a hash in the format the authorization server is configured for.
"""
import re

from hydra_sidecar.config import HashScheme
from hydra_sidecar.errors import InvalidHashFormat

# $pbkdf2-sha256$i=25000,l=32$<salt>$<key>
_PBKDF2_RE = re.compile(r"^\$pbkdf2-sha(1|224|256|384|512)\$[^$]+\$[^$]+\$[^$]+$")
_PBKDF2_PREFIX = "$pbkdf2-sha"
# $2b$10$ + 22 chars salt + 31 chars digest
_BCRYPT_RE = re.compile(r"^\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}$")
_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")

_EXPECTED = {
    HashScheme.PBKDF2: "PBKDF2 hash format ($pbkdf2-sha...)",
    HashScheme.BCRYPT: "BCrypt hash format ($2a$...)",
}


def is_pbkdf2_hash(candidate: str) -> bool:
    return bool(_PBKDF2_RE.match(candidate))


def is_bcrypt_hash(candidate: str) -> bool:
    return bool(_BCRYPT_RE.match(candidate))


def detect_hash_format(candidate: str) -> str:
    """Describe a candidate for error messages without echoing long values."""
    if candidate.startswith(_PBKDF2_PREFIX):
        return "PBKDF2" if is_pbkdf2_hash(candidate) else "malformed PBKDF2"
    if candidate.startswith(_BCRYPT_PREFIXES):
        return "BCrypt" if is_bcrypt_hash(candidate) else "malformed BCrypt"
    if len(candidate) > 20:
        return f"unknown (starts with: {candidate[:20]}...)"
    return f"unknown ({candidate})"


def validate_hash(candidate, scheme: HashScheme) -> None:
    """Raise InvalidHashFormat unless candidate is a well-formed hash of the given scheme."""
    if not isinstance(candidate, str) or not candidate:
        raise InvalidHashFormat("client_secret_hash is required")
    if scheme == HashScheme.PBKDF2:
        ok = is_pbkdf2_hash(candidate)
    elif scheme == HashScheme.BCRYPT:
        ok = is_bcrypt_hash(candidate)
    else:
        raise InvalidHashFormat(f"unknown hasher algorithm: {scheme}")
    if not ok:
        raise InvalidHashFormat(f"expected {_EXPECTED[scheme]}, got: {detect_hash_format(candidate)}")
