from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class CacheStoreSummary(BaseModel):
    name: str
    entries: int
    current: bool


class CacheStoreDetail(BaseModel):
    name: str
    keys: List[str]


class SyncRequest(BaseModel):
    tag: str


class SyncResult(BaseModel):
    tag: str
    handled: bool


class PushRequest(BaseModel):
    data: Optional[str] = None


class NotificationResponse(BaseModel):
    id: str
    title: str
    body: str
    icon: str
    badge: str
    vibrate: List[int]
    date_of_arrival: datetime
    primary_key: str


class WindowActionResponse(BaseModel):
    action: str
    client_id: str
    url: str
