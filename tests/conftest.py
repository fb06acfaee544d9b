import fakeredis.aioredis
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.db.session import init_db
from app.offline import Network, OfflineInterceptor, Registration, StoreNames
from app.offline.storage import (
    DatabaseCacheStorage,
    InMemoryCacheStorage,
    RedisCacheStorage,
)

ORIGIN = "http://mindfulreplay.test"
SHELL_PATHS = ["/", "/memos", "/tasks", "/offline", "/manifest.json"]
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeUpstream:
    """Stands in for the network: canned responses keyed by URL."""

    def __init__(self, origin: str = ORIGIN):
        self.origin = origin
        self.routes = {}
        self.offline = False
        self.requests = []

    def url(self, path_or_url: str) -> str:
        if path_or_url.startswith("/"):
            return self.origin + path_or_url
        return path_or_url

    def add(
        self, path_or_url, body="", status=200, content_type="text/html", headers=None
    ):
        self.routes[self.url(path_or_url)] = (
            status,
            body,
            [("content-type", content_type), *(headers or [])],
        )

    def add_shell(self):
        for path in SHELL_PATHS[:-1]:
            self.add(path, f"<html>shell {path}</html>")
        self.add(
            "/manifest.json", '{"name": "MindfulReplay"}', content_type="application/json"
        )

    def calls(self, path_or_url: str, method: str = "GET") -> int:
        url = self.url(path_or_url)
        return sum(1 for r in self.requests if str(r.url) == url and r.method == method)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.offline:
            raise httpx.ConnectError("Network is unreachable", request=request)
        status, body, headers = self.routes.get(
            str(request.url), (404, "not found", {"content-type": "text/plain"})
        )
        return httpx.Response(status, headers=headers, content=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def get(path_or_url: str) -> httpx.Request:
    url = ORIGIN + path_or_url if path_or_url.startswith("/") else path_or_url
    return httpx.Request("GET", url)


def make_interceptor(storage, upstream, version="v1", **kwargs) -> OfflineInterceptor:
    return OfflineInterceptor(
        storage,
        Network(upstream.transport),
        origin=ORIGIN,
        store_names=StoreNames(prefix="mindfulreplay", version=version),
        **kwargs,
    )


@pytest.fixture
def upstream():
    fake = FakeUpstream()
    fake.add_shell()
    return fake


@pytest.fixture
def storage():
    return InMemoryCacheStorage()


@pytest.fixture
def interceptor(storage, upstream):
    return make_interceptor(storage, upstream)


@pytest.fixture
async def registration(interceptor):
    registration = Registration()
    await registration.register(interceptor)
    return registration


@pytest.fixture(params=["inmemory", "redis", "database"])
async def any_storage(request):
    if request.param == "inmemory":
        yield InMemoryCacheStorage()
    elif request.param == "redis":
        storage = RedisCacheStorage(fakeredis.aioredis.FakeRedis())
        yield storage
        await storage.close()
    else:
        engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
        await init_db(engine)
        yield DatabaseCacheStorage(
            async_sessionmaker(engine, expire_on_commit=False)
        )
        await engine.dispose()


@pytest.fixture
def gateway_upstream():
    fake = FakeUpstream(origin=settings.ORIGIN_URL)
    fake.add_shell()
    return fake


@pytest.fixture
def client(gateway_upstream):
    """A TestClient whose gateway talks to the fake upstream."""
    from main import app

    app.state.upstream_transport = gateway_upstream.transport
    app.state.cache_storage = InMemoryCacheStorage()
    with TestClient(app) as test_client:
        yield test_client
    del app.state.upstream_transport
    del app.state.cache_storage
