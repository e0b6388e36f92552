"""
Database engine and session for the authorization server's store.
The DSN may be written for the authorization server itself (postgres://, pool options in the query);
it is normalised to something SQLAlchemy understands.
"""
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hydra_sidecar.config import DATABASE_URL, READY_TIMEOUT_SECONDS

# Pool options understood by the authorization server's driver but rejected by libpq
_SERVER_ONLY_PARAMS = {"max_conns", "max_idle_conns", "max_conn_lifetime", "max_idle_conn_time"}


def normalize_database_url(url: str) -> str:
    """Rewrite a postgres:// DSN for the psycopg driver and drop server-only query params."""
    if url.startswith("postgres://"):
        url = "postgresql+psycopg://" + url[len("postgres://"):]
    elif url.startswith("postgresql://"):
        url = "postgresql+psycopg://" + url[len("postgresql://"):]
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in _SERVER_ONLY_PARAMS]
    return urlunsplit(parts._replace(query=urlencode(query)))


def engine_connect_args(url: str) -> dict:
    """Driver arguments: SQLite may be used across threads; PostgreSQL connects with a bounded timeout."""
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    if url.startswith("postgresql") and "connect_timeout" not in dict(parse_qsl(urlsplit(url).query)):
        return {"connect_timeout": max(1, int(READY_TIMEOUT_SECONDS))}
    return {}


if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is required")

SQLALCHEMY_URL = normalize_database_url(DATABASE_URL)

# SQLite: in-memory needs StaticPool so all connections share the same DB (for tests)
if SQLALCHEMY_URL.startswith("sqlite:///:memory:"):
    engine = create_engine(
        SQLALCHEMY_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(SQLALCHEMY_URL, connect_args=engine_connect_args(SQLALCHEMY_URL), pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def dispose_engine() -> None:
    """Release every pooled connection. Called on shutdown."""
    engine.dispose()
