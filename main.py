from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.proxy import router as proxy_router
from app.api.v1.router import router as v1_router
from app.core.config import settings
from app.core.dependencies import GatewayDependency
from app.core.exceptions.handlers import register_exception_handlers
from app.core.lifespan import lifespan
from app.core.logging import setup_early_logging
from app.core.middlewares import LogRequestsMiddleware
from app.core.responses import send_success

# Setup early logging for startup errors
setup_early_logging()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.PROJECT_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "offline", "description": "Offline cache administration and hooks"},
        {"name": "proxy", "description": "Requests forwarded to the MindfulReplay app"},
    ],
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add logging middleware
app.add_middleware(LogRequestsMiddleware)

# Register all exception handlers
register_exception_handlers(app)


@app.get("/health")
async def health_check(gateway: GatewayDependency):
    worker = gateway.worker
    return send_success(
        message="OK",
        data={
            "status": "healthy",
            "version": settings.PROJECT_VERSION,
            "cache_version": worker.version if worker else None,
            "worker_state": worker.state.value if worker else None,
        },
    )


# Include API routers; the proxy catch-all goes last
app.include_router(v1_router)
app.include_router(proxy_router)
