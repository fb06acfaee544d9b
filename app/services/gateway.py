from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import List, Optional, Tuple

import httpx
from fastapi import Request, Response

from app.core.config import Settings
from app.core.exceptions.errors import InstallError
from app.offline import (
    CacheStorage,
    Network,
    OfflineInterceptor,
    OfflineTransport,
    Registration,
)
from app.utils.logging import get_logger

THUMBNAIL_URL = "https://img.youtube.com/vi/{youtube_id}/maxresdefault.jpg"

# Headers that describe a single connection or a body encoding httpx has
# already undone; they must not be forwarded. Accept-Encoding is left to httpx
# so upstream only compresses with codings it can decode.
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
        "content-encoding",
        "accept-encoding",
    }
)


def _end_to_end(headers) -> List[Tuple[str, str]]:
    return [(k, v) for k, v in headers if k.lower() not in HOP_BY_HOP_HEADERS]


class OfflineGateway:
    """Fronts the MindfulReplay origin with the offline interceptor.

    Holds the single registration for this process together with an httpx
    client whose requests are intercepted, the way page requests are in a
    browser.
    """

    def __init__(
        self,
        config: Settings,
        storage: CacheStorage,
        upstream: httpx.AsyncBaseTransport,
    ):
        self.settings = config
        self.storage = storage
        self.network = Network(upstream)
        self.registration = Registration()
        self.client = httpx.AsyncClient(
            transport=OfflineTransport(self.registration, upstream),
            base_url=config.ORIGIN_URL,
            # Cookies belong to the browsers behind the gateway, not to it.
            cookies=CookieJar(policy=DefaultCookiePolicy(allowed_domains=[])),
        )
        self.logger = get_logger()

    @property
    def worker(self) -> Optional[OfflineInterceptor]:
        return self.registration.active

    async def start(self) -> Optional[OfflineInterceptor]:
        worker = OfflineInterceptor.from_settings(
            self.settings, self.storage, self.network
        )
        try:
            return await self.registration.register(worker)
        except InstallError as exc:
            self.logger.error(
                f"Offline cache {self.settings.CACHE_VERSION} not installed, "
                f"serving without it: {exc}"
            )
            return None

    async def forward(self, request: Request) -> Response:
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"
        upstream_request = self.client.build_request(
            request.method,
            target,
            headers=_end_to_end(request.headers.items()),
            content=await request.body(),
        )
        upstream_response = await self.client.send(upstream_request)
        return self._relay(upstream_response)

    async def fetch_thumbnail(self, youtube_id: str) -> Response:
        upstream_response = await self.client.get(
            THUMBNAIL_URL.format(youtube_id=youtube_id)
        )
        return self._relay(upstream_response)

    @staticmethod
    def _relay(upstream_response: httpx.Response) -> Response:
        response = Response(
            content=upstream_response.content,
            status_code=upstream_response.status_code,
        )
        for key, value in _end_to_end(upstream_response.headers.multi_items()):
            response.headers.append(key, value)
        return response

    async def close(self) -> None:
        # Background refreshes still send through the client transport.
        await self.registration.close()
        await self.client.aclose()
        await self.storage.close()
