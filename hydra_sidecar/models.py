"""
SQLAlchemy mappings of the authorization server's tables the sidecar touches.
The schema belongs to the authorization server; only the columns read or written here are mapped.
List and object columns are stored as JSON text, the same way the authorization server stores them.
"""
import json
import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, DateTime, String, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Network(Base):
    """One row per tenant partition; single-tenant deployments have exactly one."""
    __tablename__ = "networks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)


class HydraClient(Base):
    __tablename__ = "hydra_client"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    nid: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, index=True)
    client_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Hashed secret; the column name is the authorization server's, the value is never plaintext
    client_secret: Mapped[str] = mapped_column(Text, nullable=False, default="")
    client_secret_expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    redirect_uris: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    grant_types: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    response_types: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    scope: Mapped[str] = mapped_column(Text, nullable=False, default="")
    audience: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    owner: Mapped[str] = mapped_column(Text, nullable=False, default="")
    token_endpoint_auth_method: Mapped[str] = mapped_column(String(25), nullable=False, default="client_secret_basic")
    metadata_: Mapped[str] = mapped_column("metadata", Text, nullable=False, default="{}")
    # Columns the sidecar does not manage; neutral values so inserted rows are complete
    policy_uri: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tos_uri: Mapped[str] = mapped_column(Text, nullable=False, default="")
    client_uri: Mapped[str] = mapped_column(Text, nullable=False, default="")
    logo_uri: Mapped[str] = mapped_column(Text, nullable=False, default="")
    contacts: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    subject_type: Mapped[str] = mapped_column(String(15), nullable=False, default="public")
    jwks: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    jwks_uri: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sector_identifier_uri: Mapped[str] = mapped_column(Text, nullable=False, default="")
    request_uris: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    request_object_signing_alg: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    userinfo_signed_response_alg: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    allowed_cors_origins: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    post_logout_redirect_uris: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    frontchannel_logout_uri: Mapped[str] = mapped_column(Text, nullable=False, default="")
    frontchannel_logout_session_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    backchannel_logout_uri: Mapped[str] = mapped_column(Text, nullable=False, default="")
    backchannel_logout_session_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)

    def reset_unmanaged(self) -> None:
        """Set every column the sidecar does not manage back to its default value."""
        for name in UNMANAGED_COLUMNS:
            setattr(self, name, self.__table__.c[name].default.arg)

    def get_grant_types_list(self) -> list[str]:
        return json.loads(self.grant_types or "[]")

    def get_metadata_dict(self) -> dict:
        return json.loads(self.metadata_ or "{}")


# Written by the authorization server only; a sync overwrite resets them
UNMANAGED_COLUMNS = (
    "policy_uri",
    "tos_uri",
    "client_uri",
    "logo_uri",
    "contacts",
    "subject_type",
    "jwks",
    "jwks_uri",
    "sector_identifier_uri",
    "request_uris",
    "request_object_signing_alg",
    "userinfo_signed_response_alg",
    "allowed_cors_origins",
    "post_logout_redirect_uris",
    "frontchannel_logout_uri",
    "frontchannel_logout_session_required",
    "backchannel_logout_uri",
    "backchannel_logout_session_required",
)
