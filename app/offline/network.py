import httpx

from app.offline.stores import ResponseSnapshot


class Network:
    """Performs requests on the real network and buffers the response.

    Failures surface as ``httpx.TransportError`` (connection refused, DNS,
    timeouts). An HTTP error status is not a failure.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport):
        self._transport = transport

    async def fetch(self, request: httpx.Request) -> ResponseSnapshot:
        response = await self._transport.handle_async_request(request)
        try:
            body = await response.aread()
        finally:
            await response.aclose()
        return ResponseSnapshot.capture(response, body)
