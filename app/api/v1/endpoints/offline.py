from fastapi import APIRouter, HTTPException, status

from app.core.dependencies import GatewayDependency
from app.core.exceptions.errors import StoreNotFoundError
from app.core.responses import send_success
from app.db.schemas.offline import (
    CacheStoreDetail,
    CacheStoreSummary,
    NotificationResponse,
    PushRequest,
    SyncRequest,
    SyncResult,
    WindowActionResponse,
)
from app.offline import OfflineInterceptor
from app.offline.notifications import Notification

router = APIRouter(prefix="/offline", tags=["offline"])


def _require_worker(gateway) -> OfflineInterceptor:
    worker = gateway.worker
    if worker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No offline cache version is active",
        )
    return worker


def _notification_response(notification: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        title=notification.title,
        body=notification.body,
        icon=notification.icon,
        badge=notification.badge,
        vibrate=notification.vibrate,
        date_of_arrival=notification.data.date_of_arrival,
        primary_key=notification.data.primary_key,
    )


@router.get("/caches")
async def list_caches(gateway: GatewayDependency):
    current = set()
    if gateway.worker is not None:
        current = set(gateway.worker.store_names.allow_list)

    summaries = []
    for name in await gateway.storage.keys():
        store = await gateway.storage.open(name)
        summaries.append(
            CacheStoreSummary(
                name=name, entries=len(await store.keys()), current=name in current
            )
        )
    return send_success(data=summaries).model_dump()


@router.get("/caches/{name}")
async def get_cache(name: str, gateway: GatewayDependency):
    if not await gateway.storage.has(name):
        raise StoreNotFoundError(name)
    store = await gateway.storage.open(name)
    return send_success(
        data=CacheStoreDetail(name=name, keys=await store.keys())
    ).model_dump()


@router.post("/sync")
async def background_sync(payload: SyncRequest, gateway: GatewayDependency):
    worker = _require_worker(gateway)
    handled = await worker.sync(payload.tag)
    return send_success(
        message="Sync handled" if handled else "Sync tag ignored",
        data=SyncResult(tag=payload.tag, handled=handled),
    ).model_dump()


@router.post("/push")
async def push_notification(payload: PushRequest, gateway: GatewayDependency):
    worker = _require_worker(gateway)
    notification = await worker.push(payload.data)
    return send_success(
        message="Notification shown", data=_notification_response(notification)
    ).model_dump()


@router.get("/notifications")
async def list_notifications(gateway: GatewayDependency):
    notifications = gateway.registration.notifications.list_open()
    return send_success(
        data=[_notification_response(n) for n in notifications]
    ).model_dump()


@router.post("/notifications/{notification_id}/click")
async def click_notification(notification_id: str, gateway: GatewayDependency):
    worker = _require_worker(gateway)
    action = await worker.notification_click(notification_id)
    return send_success(
        data=WindowActionResponse(
            action=action.action, client_id=action.client_id, url=action.url
        )
    ).model_dump()
