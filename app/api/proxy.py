from fastapi import APIRouter, Request

from app.core.dependencies import GatewayDependency

router = APIRouter(tags=["proxy"])

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


@router.get("/thumbnails/{youtube_id}")
async def thumbnail(youtube_id: str, gateway: GatewayDependency):
    return await gateway.fetch_thumbnail(youtube_id)


# Must be included last: it matches every path.
@router.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy(path: str, request: Request, gateway: GatewayDependency):
    return await gateway.forward(request)
