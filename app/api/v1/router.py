from fastapi import APIRouter

from app.api.v1.endpoints.offline import router as offline_router

router = APIRouter(prefix="/api/v1")
router.include_router(offline_router)
