import uuid
from datetime import datetime, timezone
from typing import Dict, List

from pydantic import BaseModel, Field

from app.core.exceptions.errors import NotificationNotFoundError

NOTIFICATION_TITLE = "MindfulReplay"
DEFAULT_NOTIFICATION_BODY = "New notification from MindfulReplay"
NOTIFICATION_ICON = "/icon-192.png"


class NotificationData(BaseModel):
    date_of_arrival: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    primary_key: str = "1"


class Notification(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str = NOTIFICATION_TITLE
    body: str = DEFAULT_NOTIFICATION_BODY
    icon: str = NOTIFICATION_ICON
    badge: str = NOTIFICATION_ICON
    vibrate: List[int] = Field(default_factory=lambda: [100, 50, 100])
    data: NotificationData = Field(default_factory=NotificationData)
    closed: bool = False

    @classmethod
    def from_push(cls, payload: bytes | str | None) -> "Notification":
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="replace")
        return cls(body=payload or DEFAULT_NOTIFICATION_BODY)


class NotificationCenter:
    """Notifications shown by the registration, until closed."""

    def __init__(self):
        self._notifications: Dict[str, Notification] = {}

    def show(self, notification: Notification) -> Notification:
        self._notifications[notification.id] = notification
        return notification

    def get(self, notification_id: str) -> Notification:
        try:
            return self._notifications[notification_id]
        except KeyError:
            raise NotificationNotFoundError(notification_id) from None

    def close(self, notification_id: str) -> Notification:
        notification = self._notifications.pop(notification_id, None)
        if notification is None:
            raise NotificationNotFoundError(notification_id)
        notification.closed = True
        return notification

    def list_open(self) -> List[Notification]:
        return list(self._notifications.values())
