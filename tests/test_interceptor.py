import json

import httpx
import pytest

from app.offline import RouteKind, Strategy
from app.offline.storage import InMemoryCacheStorage, InMemoryCacheStore
from app.offline.stores import request_key
from conftest import ORIGIN, get, make_interceptor

API_STORE = "mindfulreplay-api-v1"
STATIC_STORE = "mindfulreplay-static-v1"
MEDIA_STORE = "mindfulreplay-v1"
THUMBNAIL = "https://img.youtube.com/vi/dQw4w9WgXcQ/maxresdefault.jpg"


async def entries(storage, name):
    store = await storage.open(name)
    return await store.keys()


class ReadOnlyStore(InMemoryCacheStore):
    async def put(self, key, snapshot):
        raise ConnectionError("storage backend down")


class FailingWritesStorage(InMemoryCacheStorage):
    """In-memory storage whose stores reject writes once ``failing`` is set."""

    failing = False

    async def open(self, name):
        if not self.failing:
            return await super().open(name)
        return ReadOnlyStore(name, self._stores.setdefault(name, {}))


# --- classification -------------------------------------------------------


@pytest.mark.parametrize(
    "url,route",
    [
        (f"{ORIGIN}/api/memos", RouteKind.API),
        (f"{ORIGIN}/api/tasks/7", RouteKind.API),
        (f"{ORIGIN}/_next/static/chunks/main.js", RouteKind.STATIC_ASSET),
        (THUMBNAIL, RouteKind.MEDIA),
        ("https://i.ytimg.com/vi/abc/hqdefault.jpg", RouteKind.MEDIA),
        (f"{ORIGIN}/", RouteKind.PAGE),
        (f"{ORIGIN}/memos/42", RouteKind.PAGE),
    ],
)
def test_classify_routes(interceptor, url, route):
    assert interceptor.classify(httpx.Request("GET", url)) is route


@pytest.mark.parametrize(
    "method,url",
    [
        ("POST", f"{ORIGIN}/api/memos"),
        ("DELETE", f"{ORIGIN}/api/memos/1"),
        ("GET", "https://example.com/api/memos"),
        ("GET", "https://notyoutube.com/video.jpg"),
        ("GET", "http://mindfulreplay.test:8080/memos"),
        ("GET", "https://mindfulreplay.test/memos"),
    ],
)
def test_classify_passthrough(interceptor, method, url):
    assert interceptor.classify(httpx.Request(method, url)) is None


async def test_passthrough_requests_touch_nothing(interceptor, storage, upstream):
    post = httpx.Request("POST", f"{ORIGIN}/api/memos", json={"content": "note"})
    assert await interceptor.handle(post) is None
    assert await interceptor.handle(get("https://example.com/")) is None

    assert await storage.keys() == []
    assert upstream.requests == []


# --- cache-first ------------------------------------------------------------


async def test_cache_first_hit_skips_network(interceptor, storage, upstream):
    upstream.add("/_next/static/app.js", "console.log(1)", content_type="text/javascript")

    first = await interceptor.handle(get("/_next/static/app.js"))
    second = await interceptor.handle(get("/_next/static/app.js"))

    assert upstream.calls("/_next/static/app.js") == 1
    assert second.body == first.body == b"console.log(1)"
    assert await entries(storage, STATIC_STORE) == [f"GET {ORIGIN}/_next/static/app.js"]


async def test_cache_first_does_not_store_failures(interceptor, storage, upstream):
    upstream.add("/_next/static/missing.js", "nope", status=404)

    response = await interceptor.handle(get("/_next/static/missing.js"))

    assert response.status_code == 404
    assert await entries(storage, STATIC_STORE) == []


async def test_cache_first_miss_while_offline_propagates(interceptor, upstream):
    upstream.offline = True

    with pytest.raises(httpx.ConnectError):
        await interceptor.handle(get("/_next/static/app.js"))


async def test_media_goes_to_shared_store(interceptor, storage, upstream):
    upstream.add(THUMBNAIL, b"\xff\xd8jpeg", content_type="image/jpeg")

    await interceptor.handle(get(THUMBNAIL))
    upstream.offline = True
    cached = await interceptor.handle(get(THUMBNAIL))

    assert cached.body == b"\xff\xd8jpeg"
    assert await entries(storage, MEDIA_STORE) == [f"GET {THUMBNAIL}"]


# --- stale-while-revalidate -------------------------------------------------


async def test_stale_while_revalidate_serves_cache_then_refreshes(storage, upstream):
    interceptor = make_interceptor(
        storage, upstream, media_strategy=Strategy.STALE_WHILE_REVALIDATE
    )
    upstream.add(THUMBNAIL, "old", content_type="image/jpeg")
    await interceptor.handle(get(THUMBNAIL))

    upstream.add(THUMBNAIL, "new", content_type="image/jpeg")
    served = await interceptor.handle(get(THUMBNAIL))
    await interceptor.drain()

    assert served.body == b"old"
    store = await storage.open(MEDIA_STORE)
    assert (await store.match(f"GET {THUMBNAIL}")).body == b"new"


async def test_stale_while_revalidate_ignores_refresh_failure(storage, upstream):
    interceptor = make_interceptor(
        storage, upstream, media_strategy=Strategy.STALE_WHILE_REVALIDATE
    )
    upstream.add(THUMBNAIL, "old", content_type="image/jpeg")
    await interceptor.handle(get(THUMBNAIL))

    upstream.offline = True
    served = await interceptor.handle(get(THUMBNAIL))
    await interceptor.drain()

    assert served.body == b"old"


async def test_stale_while_revalidate_logs_storage_failure(upstream):
    storage = FailingWritesStorage()
    interceptor = make_interceptor(
        storage, upstream, media_strategy=Strategy.STALE_WHILE_REVALIDATE
    )
    upstream.add(THUMBNAIL, "old", content_type="image/jpeg")
    await interceptor.handle(get(THUMBNAIL))

    storage.failing = True
    upstream.add(THUMBNAIL, "new", content_type="image/jpeg")
    served = await interceptor.handle(get(THUMBNAIL))
    await interceptor.drain()

    assert served.body == b"old"
    storage.failing = False
    store = await storage.open(MEDIA_STORE)
    assert (await store.match(f"GET {THUMBNAIL}")).body == b"old"


# --- network-first: API ------------------------------------------------------


async def test_api_overwrites_with_latest_success(interceptor, storage, upstream):
    upstream.add("/api/memos", '{"data": [1]}', content_type="application/json")
    await interceptor.handle(get("/api/memos"))
    upstream.add("/api/memos", '{"data": [1, 2]}', content_type="application/json")
    await interceptor.handle(get("/api/memos"))

    key = f"GET {ORIGIN}/api/memos"
    assert await entries(storage, API_STORE) == [key]
    store = await storage.open(API_STORE)
    assert json.loads((await store.match(key)).body) == {"data": [1, 2]}


async def test_api_error_status_never_overwrites(interceptor, storage, upstream):
    upstream.add("/api/memos", '{"data": [1]}', content_type="application/json")
    await interceptor.handle(get("/api/memos"))
    upstream.add("/api/memos", '{"success": false}', status=500, content_type="application/json")

    response = await interceptor.handle(get("/api/memos"))

    assert response.status_code == 500
    store = await storage.open(API_STORE)
    assert json.loads((await store.match(f"GET {ORIGIN}/api/memos")).body) == {"data": [1]}


async def test_api_offline_serves_cached_copy(interceptor, upstream):
    upstream.add("/api/tasks", '{"data": ["review"]}', content_type="application/json")
    await interceptor.handle(get("/api/tasks"))
    upstream.offline = True

    response = await interceptor.handle(get("/api/tasks"))

    assert response.status_code == 200
    assert json.loads(response.body) == {"data": ["review"]}


async def test_api_offline_without_cache_returns_envelope(interceptor, upstream):
    upstream.offline = True

    response = await interceptor.handle(get("/api/memos"))

    assert response.status_code == 503
    assert response.header("content-type") == "application/json"
    body = json.loads(response.body)
    assert body["success"] is False
    assert body["error"]["code"] == "OFFLINE"
    assert body["error"]["message"] == (
        "You are currently offline. Please check your internet connection."
    )


# --- network-first: pages --------------------------------------------------------


async def test_page_offline_prefers_exact_match(interceptor, upstream):
    upstream.add("/memos/42", "<html>memo 42</html>")
    await interceptor.handle(get("/"))
    await interceptor.handle(get("/memos/42"))
    upstream.offline = True

    response = await interceptor.handle(get("/memos/42"))

    assert response.body == b"<html>memo 42</html>"


async def test_page_offline_falls_back_to_shell(interceptor, upstream):
    await interceptor.handle(get("/"))
    upstream.offline = True

    response = await interceptor.handle(get("/memos/42"))

    assert response.body == b"<html>shell /</html>"


async def test_page_offline_falls_back_to_offline_page(interceptor, upstream):
    await interceptor.handle(get("/offline"))
    upstream.offline = True

    response = await interceptor.handle(get("/tasks/3"))

    assert response.body == b"<html>shell /offline</html>"


async def test_page_offline_with_nothing_cached_renders_inline_page(interceptor, upstream):
    upstream.offline = True

    response = await interceptor.handle(get("/videos/abc"))

    assert response.status_code == 200
    assert response.header("content-type") == "text/html"
    assert "You're Offline" in response.body.decode()
    assert "window.location.reload()" in response.body.decode()


async def test_page_error_status_is_returned_uncached(interceptor, storage, upstream):
    response = await interceptor.handle(get("/does-not-exist"))

    assert response.status_code == 404
    store = await storage.open(STATIC_STORE)
    assert await store.match(request_key(get("/does-not-exist"))) is None


# --- shared stores ----------------------------------------------------------------


async def test_set_cookie_is_relayed_but_never_stored(interceptor, storage, upstream):
    upstream.add(
        "/api/memos",
        '{"data": []}',
        content_type="application/json",
        headers=[("set-cookie", "session=alice")],
    )

    response = await interceptor.handle(get("/api/memos"))

    assert response.header("set-cookie") == "session=alice"
    store = await storage.open(API_STORE)
    stored = await store.match(f"GET {ORIGIN}/api/memos")
    assert stored.header("set-cookie") is None
    assert stored.header("content-type") == "application/json"


@pytest.mark.parametrize(
    "header", [("cookie", "session=alice"), ("authorization", "Bearer alice")]
)
async def test_credentialed_responses_stay_out_of_shared_stores(storage, upstream, header):
    interceptor = make_interceptor(storage, upstream, store_credentialed=False)
    upstream.add("/api/memos", '{"data": ["alice private memo"]}', content_type="application/json")

    request = httpx.Request("GET", f"{ORIGIN}/api/memos", headers=[header])
    response = await interceptor.handle(request)

    assert response.status_code == 200
    assert await entries(storage, API_STORE) == []

    upstream.offline = True
    response = await interceptor.handle(
        httpx.Request("GET", f"{ORIGIN}/api/memos", headers={"cookie": "session=bob"})
    )
    assert response.status_code == 503


async def test_anonymous_responses_are_stored_in_shared_stores(storage, upstream):
    interceptor = make_interceptor(storage, upstream, store_credentialed=False)
    upstream.add("/api/videos", '{"data": ["public"]}', content_type="application/json")

    await interceptor.handle(get("/api/videos"))

    assert await entries(storage, API_STORE) == [f"GET {ORIGIN}/api/videos"]
