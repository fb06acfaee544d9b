from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from app.core.config import settings
from app.db.session import init_db
from app.offline import build_storage
from app.services.gateway import OfflineGateway
from app.utils.logging import get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger = get_logger()
    if settings.CACHE_TYPE == "database":
        await init_db()

    # Tests swap in their own upstream transport and storage through app.state.
    upstream = getattr(app.state, "upstream_transport", None)
    if upstream is None:
        upstream = httpx.AsyncHTTPTransport()
    storage = getattr(app.state, "cache_storage", None) or build_storage(settings)

    gateway = OfflineGateway(settings, storage, upstream)
    worker = await gateway.start()
    app.state.gateway = gateway
    mode = worker.state.value if worker else "passthrough"
    logger.info(
        f"Startup: {app.title} v{app.version} fronting {settings.ORIGIN_URL} "
        f"(cache {settings.CACHE_VERSION}, {mode})"
    )
    yield
    # Shutdown
    await gateway.close()
    logger.info("Shutdown: App shutting down...")
