"""Captured request / response models.

A ``CapturedRequest`` is created by a capture adapter (e.g. the httpx
transport) for every outbound request, handed to the disposition engine, and
owned by its originator until the completion handle settles.
"""

from __future__ import annotations

import inspect
import json
import time
from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping
from urllib.parse import parse_qsl, urlsplit

from fixturenet.exceptions import CompletionError
from fixturenet.protocol.deferred import Deferred
from fixturenet.protocol.headers import HeaderValue, HTTPHeaders
from fixturenet.timing import format_timestamp, utc_now

if TYPE_CHECKING:
    from fixturenet.config import RequestConfig


class Disposition(str, Enum):
    PASSTHROUGH = "passthrough"
    INTERCEPT = "intercept"
    RECORD = "record"
    REPLAY = "replay"


# Request-level hook events.
BEFORE_PERSIST = "before_persist"
BEFORE_REPLAY = "before_replay"
_EVENTS = (BEFORE_PERSIST, BEFORE_REPLAY)

RequestHook = Callable[["CapturedRequest", Any], "Awaitable[Any] | Any"]


def _status_text(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


@dataclass
class CapturedResponse:
    status_code: int = 200
    status_text: str = ""
    headers: HTTPHeaders = field(default_factory=HTTPHeaders)
    body: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.headers, HTTPHeaders):
            self.headers = HTTPHeaders(self.headers)
        if not self.status_text:
            self.status_text = _status_text(self.status_code)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400


class CapturedRequest:
    """One in-flight outbound request.

    ``id`` and ``order`` are assigned by the session when the request is
    registered; ``disposition`` is set exactly once by the engine.
    """

    def __init__(
        self,
        method: str,
        url: str,
        headers: Mapping[str, HeaderValue | None] | HTTPHeaders | None = None,
        body: str | None = None,
        *,
        config: "RequestConfig",
        recording_name: str,
        recording_id: str,
        id: str = "",
        order: int = 0,
    ) -> None:
        self.method = method.upper()
        self.url = url
        self.headers = headers if isinstance(headers, HTTPHeaders) else HTTPHeaders(headers)
        self.body = body
        self.config = config
        self.recording_name = recording_name
        self.recording_id = recording_id
        self.id = id
        self.order = order

        self.timestamp = format_timestamp(utc_now())
        self.response: CapturedResponse | None = None
        self.response_time: float = 0.0
        self.promise: Deferred[CapturedResponse] = Deferred()

        self._started = time.monotonic()
        self._disposition: Disposition | None = None
        self._hooks: dict[str, list[RequestHook]] = {event: [] for event in _EVENTS}

    # ------------------------------------------------------------------
    # Disposition
    # ------------------------------------------------------------------

    @property
    def disposition(self) -> Disposition | None:
        return self._disposition

    @disposition.setter
    def disposition(self, value: Disposition) -> None:
        if self._disposition is not None:
            raise CompletionError(
                f"Disposition for [{self.method}] {self.url} was already set "
                f"to '{self._disposition.value}'",
                context={"current": self._disposition.value, "requested": value.value},
            )
        self._disposition = value

    # ------------------------------------------------------------------
    # Response
    # ------------------------------------------------------------------

    @property
    def did_respond(self) -> bool:
        return self.response is not None

    def respond(self, response: CapturedResponse) -> None:
        """Attach *response* and record the elapsed time in milliseconds."""
        self.response = response
        self.response_time = round((time.monotonic() - self._started) * 1000, 3)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def on(self, event: str, handler: RequestHook) -> "CapturedRequest":
        if event not in self._hooks:
            raise ValueError(f"Unknown request event '{event}'. Expected one of {_EVENTS}.")
        self._hooks[event].append(handler)
        return self

    async def emit(self, event: str, payload: Any) -> Any:
        """Run every *event* handler in registration order.

        A handler may return a replacement payload (e.g. an entry with its
        body redacted); later handlers receive the replacement.  Returns the
        final payload.
        """
        for handler in self._hooks.get(event, []):
            result = handler(self, payload)
            if inspect.isawaitable(result):
                result = await result
            if result is not None:
                payload = result
        return payload

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def query(self) -> list[tuple[str, str]]:
        return parse_qsl(urlsplit(self.url).query, keep_blank_values=True)

    def describe(self) -> str:
        """Human-readable JSON dump used in error messages."""
        return json.dumps(
            {
                "url": self.url,
                "method": self.method,
                "headers": self.headers.to_dict(),
                "body": self.body,
                "recordingName": self.recording_name,
                "id": self.id,
                "order": self.order,
                "config": {
                    "mode": self.config.mode.value,
                    "recordIfMissing": self.config.record_if_missing,
                    "recordIfExpired": self.config.record_if_expired,
                    "recordFailedRequests": self.config.record_failed_requests,
                    "expiresIn": self.config.expires_in,
                },
            },
            indent=2,
        )

    def __repr__(self) -> str:
        return f"CapturedRequest({self.method} {self.url}, id={self.id!r}, order={self.order})"
