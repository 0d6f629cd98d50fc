"""REST store — talks to a recordings server (``fixturenet serve``).

Contract::

    GET    {host}{namespace}/{recording_id}  → 200 + HAR JSON | 204 not found
    POST   {host}{namespace}/{recording_id}  → 201 saved
    DELETE {host}{namespace}/{recording_id}  → 200 deleted
    GET    {host}{namespace}                 → 200 {"recordings": [...], "count": n}
"""

from __future__ import annotations

from typing import Any

import httpx

from fixturenet.exceptions import StoreError
from fixturenet.logging import get_logger
from fixturenet.recording.store import RecordingData, Store

log = get_logger(__name__)


class RestStore(Store):
    NAME = "rest"

    def __init__(
        self,
        host: str = "http://127.0.0.1:3000",
        namespace: str = "/fixturenet",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = host.rstrip("/") + "/" + namespace.strip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def init(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, recording_id: str, **kwargs: Any) -> httpx.Response:
        await self.init()
        assert self._client is not None
        url = f"{self._base_url}/{recording_id}" if recording_id else self._base_url
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise StoreError(
                f"{method} {url} failed: {exc}",
                context={"recording_id": recording_id},
            ) from exc
        if response.is_error:
            raise StoreError(
                f"{method} {url} returned {response.status_code}",
                context={"recording_id": recording_id, "status_code": response.status_code},
            )
        return response

    async def find(self, recording_id: str) -> RecordingData | None:
        response = await self._request("GET", recording_id)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def save(self, recording_id: str, data: RecordingData) -> None:
        await self._request("POST", recording_id, json=data)
        log.debug("recording_posted", recording_id=recording_id)

    async def delete(self, recording_id: str) -> None:
        await self._request("DELETE", recording_id)

    async def list_recordings(self) -> list[str]:
        response = await self._request("GET", "")
        return list(response.json().get("recordings", []))
