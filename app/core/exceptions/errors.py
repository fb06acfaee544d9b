class OfflineCacheError(Exception):
    """Base error for the offline cache layer."""


class InstallError(OfflineCacheError):
    """A precache URL could not be fetched while installing a version."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to precache {url}: {reason}")


class StoreNotFoundError(OfflineCacheError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Cache store '{name}' does not exist")


class NotificationNotFoundError(OfflineCacheError):
    def __init__(self, notification_id: str):
        self.notification_id = notification_id
        super().__init__(f"Notification '{notification_id}' does not exist")
