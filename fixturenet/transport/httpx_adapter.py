"""httpx capture adapter.

Mount ``FixtureTransport`` on an ``httpx.AsyncClient`` and every request the
client sends is registered with the session and disposed by its engine.
Requests that must reach the network (record, passthrough) go through the
wrapped transport, ``httpx.AsyncHTTPTransport`` by default.

Bodies are handled as text.  Responses are decoded before they are
captured, so ``Content-Encoding`` is dropped from what the client sees.
"""

from __future__ import annotations

import httpx

from fixturenet.engine.session import FixtureSession
from fixturenet.logging import get_logger
from fixturenet.protocol.headers import HTTPHeaders
from fixturenet.protocol.models import CapturedRequest, CapturedResponse

log = get_logger(__name__)

# Framing headers that no longer describe a decoded, in-memory body.
_FRAMING_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


def _to_items(headers: HTTPHeaders, skip: frozenset[str] = frozenset()) -> list[tuple[str, str]]:
    items: list[tuple[str, str]] = []
    for name, value in headers.items():
        if name in skip:
            continue
        if isinstance(value, list):
            items.extend((name, v) for v in value)
        else:
            items.append((name, value))
    return items


def _from_httpx_headers(headers: httpx.Headers) -> HTTPHeaders:
    result = HTTPHeaders()
    for name, value in headers.multi_items():
        result.add(name, value)
    return result


class FixtureTransport(httpx.AsyncBaseTransport):
    def __init__(
        self,
        session: FixtureSession,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._session = session
        self._transport = transport or httpx.AsyncHTTPTransport()
        session.connect(self._send_to_network)

    @property
    def session(self) -> FixtureSession:
        return self._session

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        content = await request.aread()
        body = content.decode("utf-8", errors="replace") if content else None
        captured = self._session.request(
            request.method,
            str(request.url),
            _from_httpx_headers(request.headers),
            body,
        )
        response = await self._session.dispose(captured)
        return httpx.Response(
            status_code=response.status_code,
            headers=_to_items(response.headers, skip=_FRAMING_HEADERS),
            content=(response.body or "").encode("utf-8"),
            request=request,
            extensions={"reason_phrase": response.status_text.encode("ascii", errors="replace")},
        )

    async def _send_to_network(self, captured: CapturedRequest) -> CapturedResponse:
        request = httpx.Request(
            captured.method,
            captured.url,
            headers=_to_items(captured.headers),
            content=captured.body.encode("utf-8") if captured.body is not None else None,
        )
        response = await self._transport.handle_async_request(request)
        try:
            await response.aread()
        finally:
            await response.aclose()

        headers = _from_httpx_headers(response.headers)
        if headers.pop("content-encoding", None) is not None:
            # The body is stored decoded; the compressed length is meaningless now.
            headers.pop("content-length", None)
        log.debug("network_response", method=captured.method, url=captured.url, status_code=response.status_code)
        return CapturedResponse(
            status_code=response.status_code,
            status_text=response.reason_phrase,
            headers=headers,
            body=response.text if response.content else None,
        )

    async def aclose(self) -> None:
        await self._transport.aclose()
