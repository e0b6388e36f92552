"""
Hydra Sidecar: token hook claim injection, client administration proxy and bulk client sync
for an authorization server whose store it shares.
Port 8080 by default; runs next to the authorization server's admin API.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse

from hydra_sidecar.admin_api import close_admin_api
from hydra_sidecar.clients import router as clients_router
from hydra_sidecar.config import HASHER_ALGORITHM, HYDRA_ADMIN_URL, READY_TIMEOUT_SECONDS
from hydra_sidecar.database import dispose_engine
from hydra_sidecar.errors import SidecarError, register_exception_handlers
from hydra_sidecar.store import ClientStore, get_store
from hydra_sidecar.sync_endpoint import router as sync_router
from hydra_sidecar.token_hook import router as token_hook_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Resolve the network ID on startup; release the admin API client and DB pool on shutdown."""
    logger.info("Hydra sidecar starting (hasher: %s, admin URL: %s)", HASHER_ALGORITHM.value, HYDRA_ADMIN_URL)
    try:
        get_store().resolve_tenant_id()
    except SidecarError as e:
        logger.warning("Could not get network ID: %s (will be resolved on first use)", e.message)
    try:
        yield
    finally:
        close_admin_api()
        dispose_engine()
        logger.info("Hydra sidecar stopped")


app = FastAPI(title="Hydra Sidecar", version="1.0.0", lifespan=lifespan)
register_exception_handlers(app)
app.include_router(token_hook_router, tags=["hooks"])
app.include_router(clients_router, tags=["clients"])
app.include_router(sync_router, tags=["clients"])


@app.get("/health")
def health():
    """Liveness probe."""
    return {"status": "ok", "service": "hydra_sidecar"}


@app.get("/ready")
def ready(store: ClientStore = Depends(get_store)):
    """Readiness probe: the store must answer within READY_TIMEOUT_SECONDS."""
    try:
        store.ping(timeout=READY_TIMEOUT_SECONDS)
    except SidecarError as e:
        logger.warning("Readiness check failed: %s", e.message)
        return JSONResponse(
            status_code=503,
            content={"error": "not_ready", "error_description": "Database not ready"},
        )
    return {"status": "ready"}


def run() -> None:
    """Console entry point. uvicorn stops accepting on SIGTERM/SIGINT and drains in-flight requests."""
    import uvicorn

    from hydra_sidecar.config import HOST, LOG_LEVEL, PORT, SHUTDOWN_GRACE_SECONDS

    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(
        "hydra_sidecar.main:app",
        host=HOST,
        port=PORT,
        timeout_graceful_shutdown=SHUTDOWN_GRACE_SECONDS,
        log_level=LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
