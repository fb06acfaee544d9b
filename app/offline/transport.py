import httpx

from app.offline.interceptor import RouteKind
from app.offline.registration import Client, Registration


class OfflineTransport(httpx.AsyncBaseTransport):
    """An httpx transport that sends requests through the controlling interceptor.

    Each transport is one client of the registration. Requests it cannot or
    should not intercept go to ``transport`` exactly as they were built.

    Usage::

        client = httpx.AsyncClient(
            transport=OfflineTransport(registration, httpx.AsyncHTTPTransport()),
            base_url=settings.ORIGIN_URL,
        )
    """

    def __init__(self, registration: Registration, transport: httpx.AsyncBaseTransport):
        self._registration = registration
        self._transport = transport
        self.client: Client = registration.add_client()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        worker = self.client.controller
        if worker is None:
            return await self._transport.handle_async_request(request)

        route = worker.classify(request)
        if route is None:
            return await self._transport.handle_async_request(request)
        if route is RouteKind.PAGE:
            self.client.url = request.url.path

        snapshot = await worker.handle(request)
        return snapshot.to_response(request)

    async def aclose(self) -> None:
        self._registration.clients.remove(self.client)
        await self._transport.aclose()
