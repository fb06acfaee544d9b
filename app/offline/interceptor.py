"""Offline request interceptor.

One :class:`OfflineInterceptor` corresponds to one deployed cache version. It
owns the static, API and media stores for that version, classifies every
outgoing request and answers it from a store, the network, or a synthesized
offline response.

Routing, first match wins:

===  ==================================  ======================  ========
     condition                           policy                  store
===  ==================================  ======================  ========
a    path starts with an API prefix      network-first (API)     api
b    path starts with the asset prefix   cache-first             static
c    host is a media host                cache-first             media
d    anything else (page navigation)     network-first (page)    static
===  ==================================  ======================  ========

Only GET requests to the origin or to a media host are intercepted; anything
else is passed through to the network untouched.
"""

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Iterable, List, Optional, Set

import httpx

from app.core.config import Settings
from app.core.exceptions.errors import InstallError
from app.offline.network import Network
from app.offline.notifications import Notification
from app.offline.responses import offline_api_response, offline_page_response
from app.offline.storage import CacheStorage, CacheStore
from app.offline.stores import ResponseSnapshot, StoreNames, StoreRole, request_key
from app.utils.logging import get_logger

if TYPE_CHECKING:
    from app.offline.registration import Registration

logger = get_logger("offline")

BACKGROUND_SYNC_TAG = "background-sync"
DEFAULT_PRECACHE_URLS = ("/", "/memos", "/tasks", "/offline", "/manifest.json")
CREDENTIAL_HEADERS = ("authorization", "cookie")


class WorkerState(str, Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class Strategy(str, Enum):
    CACHE_FIRST = "cache-first"
    STALE_WHILE_REVALIDATE = "stale-while-revalidate"


class RouteKind(str, Enum):
    API = "api"
    STATIC_ASSET = "static-asset"
    MEDIA = "media"
    PAGE = "page"


def _origin_of(url: httpx.URL) -> tuple:
    port = url.port or {"http": 80, "https": 443}.get(url.scheme)
    return (url.scheme, url.host, port)


def host_matches(host: str, allowed: str) -> bool:
    host = host.lower()
    return host == allowed or host.endswith("." + allowed)


class OfflineInterceptor:
    def __init__(
        self,
        storage: CacheStorage,
        network: Network,
        *,
        origin: str,
        store_names: StoreNames,
        precache_urls: Iterable[str] = DEFAULT_PRECACHE_URLS,
        api_prefixes: Iterable[str] = ("/api/",),
        static_asset_prefix: str = "/_next/static/",
        media_hosts: Iterable[str] = ("youtube.com", "ytimg.com"),
        media_strategy: Strategy = Strategy.CACHE_FIRST,
        shell_path: str = "/",
        offline_path: str = "/offline",
        skip_waiting: bool = True,
        store_credentialed: bool = True,
    ):
        self.storage = storage
        self.network = network
        self.origin = httpx.URL(origin)
        self.store_names = store_names
        self.precache_urls = list(precache_urls)
        self.api_prefixes = tuple(api_prefixes)
        self.static_asset_prefix = static_asset_prefix
        self.media_hosts = tuple(h.lower() for h in media_hosts)
        self.media_strategy = Strategy(media_strategy)
        self.shell_path = shell_path
        self.offline_path = offline_path
        self.store_credentialed = store_credentialed
        self._skip_waiting_on_install = skip_waiting

        self.state = WorkerState.PARSED
        self.skip_waiting_requested = False
        self.registration: Optional["Registration"] = None
        self._refreshes: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls, config: Settings, storage: CacheStorage, network: Network
    ) -> "OfflineInterceptor":
        return cls(
            storage,
            network,
            origin=config.ORIGIN_URL,
            store_names=StoreNames(
                prefix=config.CACHE_PREFIX, version=config.CACHE_VERSION
            ),
            precache_urls=config.precache_urls_list,
            api_prefixes=config.api_prefixes_list,
            static_asset_prefix=config.STATIC_ASSET_PREFIX,
            media_hosts=config.media_hosts_list,
            media_strategy=Strategy(config.MEDIA_STRATEGY),
            shell_path=config.SHELL_PATH,
            offline_path=config.OFFLINE_PATH,
            store_credentialed=config.CACHE_CREDENTIALED_REQUESTS,
        )

    @property
    def version(self) -> str:
        return self.store_names.version

    def __repr__(self) -> str:
        return f"<OfflineInterceptor {self.version} {self.state.value}>"

    def url_for(self, path: str) -> httpx.URL:
        return self.origin.join(path)

    async def open(self, role: StoreRole) -> CacheStore:
        return await self.storage.open(self.store_names.name_for(role))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def install(self) -> None:
        logger.info(f"Installing cache version {self.version}")
        steps = [self._precache()]
        if self._skip_waiting_on_install:
            steps.append(self.skip_waiting())
        await asyncio.gather(*steps)

    async def skip_waiting(self) -> None:
        self.skip_waiting_requested = True

    async def _precache(self) -> None:
        store = await self.open(StoreRole.STATIC)
        requests = [
            httpx.Request("GET", self.url_for(path)) for path in self.precache_urls
        ]
        snapshots = await asyncio.gather(*(self._precache_one(r) for r in requests))
        # All-or-nothing: only write once every URL has been fetched.
        for request, snapshot in zip(requests, snapshots):
            await store.put(request_key(request), snapshot.shareable())
        logger.info(f"Precached {len(requests)} shell URLs into {store.name}")

    async def _precache_one(self, request: httpx.Request) -> ResponseSnapshot:
        try:
            snapshot = await self.network.fetch(request)
        except httpx.TransportError as exc:
            reason = str(exc) or type(exc).__name__
            raise InstallError(str(request.url), reason) from exc
        if not snapshot.ok:
            raise InstallError(str(request.url), f"HTTP {snapshot.status_code}")
        return snapshot

    async def activate(self) -> List[str]:
        logger.info(f"Activating cache version {self.version}")
        deleted, _ = await asyncio.gather(self._delete_stale_stores(), self._claim())
        return deleted

    async def _delete_stale_stores(self) -> List[str]:
        allowed = set(self.store_names.allow_list)
        stale = [name for name in await self.storage.keys() if name not in allowed]
        for name in stale:
            logger.info(f"Deleting old cache: {name}")
        await asyncio.gather(*(self.storage.delete(name) for name in stale))
        return stale

    async def _claim(self) -> None:
        if self.registration is not None:
            self.registration.clients.claim(self)

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    def classify(self, request: httpx.Request) -> Optional[RouteKind]:
        """Return the route for an intercepted request, or None for passthrough."""
        if request.method.upper() != "GET":
            return None

        url = request.url
        same_origin = _origin_of(url) == _origin_of(self.origin)
        is_media = any(host_matches(url.host, h) for h in self.media_hosts)
        if not same_origin and not is_media:
            return None

        path = url.path
        if any(path.startswith(prefix) for prefix in self.api_prefixes):
            return RouteKind.API
        if path.startswith(self.static_asset_prefix):
            return RouteKind.STATIC_ASSET
        if is_media:
            return RouteKind.MEDIA
        return RouteKind.PAGE

    async def handle(self, request: httpx.Request) -> Optional[ResponseSnapshot]:
        """Answer an outgoing request, or return None to let it pass through."""
        route = self.classify(request)
        if route is None:
            return None
        if route is RouteKind.API:
            return await self.network_first_api(request)
        if route is RouteKind.STATIC_ASSET:
            return await self.cache_first(request, StoreRole.STATIC)
        if route is RouteKind.MEDIA:
            if self.media_strategy is Strategy.STALE_WHILE_REVALIDATE:
                return await self.stale_while_revalidate(request, StoreRole.MEDIA)
            return await self.cache_first(request, StoreRole.MEDIA)
        return await self.network_first_page(request)

    async def _fetch_and_store(
        self, request: httpx.Request, store: CacheStore
    ) -> ResponseSnapshot:
        snapshot = await self.network.fetch(request)
        if snapshot.ok and self.storable(request):
            await store.put(request_key(request), snapshot.shareable())
        return snapshot

    def storable(self, request: httpx.Request) -> bool:
        """Whether a response to ``request`` may be written to a store.

        Stores are keyed by method and URL only, so when they are shared by
        several users a response fetched with credentials must not land in one.
        """
        if self.store_credentialed:
            return True
        return not any(name in request.headers for name in CREDENTIAL_HEADERS)

    async def cache_first(
        self, request: httpx.Request, role: StoreRole
    ) -> ResponseSnapshot:
        store = await self.open(role)
        cached = await store.match(request_key(request))
        if cached is not None:
            return cached
        try:
            return await self._fetch_and_store(request, store)
        except httpx.TransportError:
            logger.warning(f"Failed to fetch {role.value} asset: {request.url}")
            raise

    async def stale_while_revalidate(
        self, request: httpx.Request, role: StoreRole
    ) -> ResponseSnapshot:
        store = await self.open(role)
        cached = await store.match(request_key(request))
        if cached is None:
            return await self._fetch_and_store(request, store)
        task = asyncio.create_task(self._revalidate(request, store))
        self._refreshes.add(task)
        task.add_done_callback(self._refreshes.discard)
        return cached

    async def _revalidate(self, request: httpx.Request, store: CacheStore) -> None:
        try:
            await self._fetch_and_store(request, store)
        except httpx.TransportError as exc:
            logger.info(f"Background refresh failed for {request.url}: {exc!r}")
        except Exception:
            logger.exception(f"Background refresh of {request.url} failed")

    async def drain(self) -> None:
        """Wait for background refreshes started by stale-while-revalidate."""
        if self._refreshes:
            await asyncio.gather(*list(self._refreshes))

    async def network_first_api(self, request: httpx.Request) -> ResponseSnapshot:
        store = await self.open(StoreRole.API)
        try:
            return await self._fetch_and_store(request, store)
        except httpx.TransportError:
            logger.info(f"Network failed, trying cache for: {request.url}")

        cached = await store.match(request_key(request))
        if cached is not None:
            return cached
        return offline_api_response()

    async def network_first_page(self, request: httpx.Request) -> ResponseSnapshot:
        store = await self.open(StoreRole.STATIC)
        try:
            return await self._fetch_and_store(request, store)
        except httpx.TransportError:
            logger.info(f"Network failed, trying cache for: {request.url}")

        fallbacks = [
            request_key(request),
            request_key(httpx.Request("GET", self.url_for(self.shell_path))),
            request_key(httpx.Request("GET", self.url_for(self.offline_path))),
        ]
        for key in fallbacks:
            cached = await store.match(key)
            if cached is not None:
                return cached
        return offline_page_response()

    # ------------------------------------------------------------------
    # Secondary hooks
    # ------------------------------------------------------------------

    async def sync(self, tag: str) -> bool:
        logger.info(f"Background sync triggered: {tag}")
        if tag != BACKGROUND_SYNC_TAG:
            return False
        await self.do_background_sync()
        return True

    async def do_background_sync(self) -> None:
        # No offline actions are queued yet.
        logger.info("Performing background sync...")

    async def push(self, payload: bytes | str | None = None) -> Notification:
        logger.info("Push notification received")
        notification = Notification.from_push(payload)
        if self.registration is not None:
            self.registration.notifications.show(notification)
        return notification

    async def notification_click(self, notification_id: str):
        logger.info("Notification click received")
        if self.registration is None:
            raise RuntimeError("Interceptor is not registered")
        self.registration.notifications.close(notification_id)
        return self.registration.clients.focus_or_open(self.shell_path)
