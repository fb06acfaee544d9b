"""Version lifecycle for offline interceptors.

A :class:`Registration` plays the part the browser plays for service workers:
it installs each new :class:`OfflineInterceptor`, decides when it takes over,
and keeps track of which clients each version controls. One registration is
created at startup and shared by everything that needs to send requests
through the interceptor.
"""

import itertools
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from app.offline.interceptor import OfflineInterceptor, WorkerState
from app.offline.notifications import NotificationCenter
from app.utils.logging import get_logger

logger = get_logger("offline")


@dataclass
class Client:
    id: str
    url: Optional[str] = None
    focused: bool = False
    controller: Optional[OfflineInterceptor] = field(default=None, repr=False)


@dataclass
class WindowAction:
    action: str  # "focus" or "open"
    client_id: str
    url: str


class ClientRegistry:
    def __init__(self):
        self._clients: Dict[str, Client] = {}
        self._ids = itertools.count(1)

    def add(
        self,
        url: Optional[str] = None,
        controller: Optional[OfflineInterceptor] = None,
    ) -> Client:
        client = Client(id=f"client-{next(self._ids)}", url=url, controller=controller)
        self._clients[client.id] = client
        return client

    def remove(self, client: Client) -> None:
        self._clients.pop(client.id, None)

    def match_all(self) -> List[Client]:
        return list(self._clients.values())

    def claim(self, worker: OfflineInterceptor) -> None:
        for client in self._clients.values():
            client.controller = worker

    def handover(
        self, previous: Optional[OfflineInterceptor], worker: OfflineInterceptor
    ) -> None:
        for client in self._clients.values():
            if previous is not None and client.controller is previous:
                client.controller = worker

    def focus(self, client: Client) -> None:
        for other in self._clients.values():
            other.focused = other is client

    def focus_or_open(self, url: str) -> WindowAction:
        for client in self._clients.values():
            if client.url == url:
                self.focus(client)
                return WindowAction(action="focus", client_id=client.id, url=url)
        client = self.add(url=url)
        self.focus(client)
        return WindowAction(action="open", client_id=client.id, url=url)


class Registration:
    def __init__(self):
        self.active: Optional[OfflineInterceptor] = None
        self.waiting: Optional[OfflineInterceptor] = None
        self.clients = ClientRegistry()
        self.notifications = NotificationCenter()

    async def register(self, worker: OfflineInterceptor) -> OfflineInterceptor:
        """Install ``worker`` and activate it if nothing holds it back.

        If installation fails the worker becomes redundant, the active version
        stays in control and the error propagates.
        """
        worker.registration = self
        worker.state = WorkerState.INSTALLING
        try:
            await worker.install()
        except Exception:
            worker.state = WorkerState.REDUNDANT
            logger.exception(f"Install failed for cache version {worker.version}")
            raise
        worker.state = WorkerState.INSTALLED

        if self.waiting is not None:
            self.waiting.state = WorkerState.REDUNDANT
        self.waiting = worker

        if self.active is None or worker.skip_waiting_requested:
            await self.activate_waiting()
        return worker

    async def activate_waiting(self) -> Optional[OfflineInterceptor]:
        worker = self.waiting
        if worker is None:
            return None
        self.waiting = None
        previous = self.active

        worker.state = WorkerState.ACTIVATING
        self.active = worker
        self.clients.handover(previous, worker)
        await worker.activate()
        worker.state = WorkerState.ACTIVATED

        if previous is not None:
            previous.state = WorkerState.REDUNDANT
            await previous.drain()
        logger.info(f"Cache version {worker.version} is now active")
        return worker

    def add_client(self, url: Optional[str] = None) -> Client:
        # New clients are controlled by the active version from the start.
        return self.clients.add(url=url, controller=self.active)

    async def close(self) -> None:
        for worker in (self.active, self.waiting):
            if worker is not None:
                await worker.drain()
