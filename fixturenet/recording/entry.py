"""Entry builder — turns a captured exchange into an immutable HAR entry.

Size semantics follow HAR 1.2:

  request.headersSize  = bytes(method + url + names + values)
                         + 2 per header (": " / CRLF) + 2 (final CRLF)
                         + 12 (" HTTP/1.1\\r\\n" start line) + 2
  response.headersSize = bytes(names + values) + 2 per header + 2 + 2

where names and values are each joined with commas.  Body sizes come from
``Content-Length`` when present, otherwise the UTF-8 length of the text.
Only the wait phase is measured; connection phases are ``-1``.
"""

from __future__ import annotations

from http.cookies import CookieError, SimpleCookie
from typing import Any

from fixturenet.exceptions import FixtureNetError
from fixturenet.logging import get_logger
from fixturenet.protocol.headers import HTTPHeaders
from fixturenet.protocol.models import CapturedRequest, CapturedResponse
from fixturenet.recording.models import (
    NOT_MEASURED,
    Content,
    Entry,
    EntryRequest,
    EntryResponse,
    NVPair,
    PostData,
    Timings,
)

log = get_logger(__name__)

_REQUEST_LINE_BYTES = 12  # " HTTP/1.1\r\n" plus the two separating spaces
_CRLF_BYTES = 2
_DEFAULT_MIME_TYPE = "text/plain"

_COOKIE_ATTRS = {
    "path": "path",
    "domain": "domain",
    "expires": "expires",
    "max-age": "maxAge",
    "samesite": "sameSite",
}
_COOKIE_FLAGS = {"secure": "secure", "httponly": "httpOnly"}


def _byte_length(text: str) -> int:
    return len(text.encode("utf-8"))


def to_nv_pairs(headers: HTTPHeaders) -> tuple[NVPair, ...]:
    pairs: list[NVPair] = []
    for name, value in headers.items():
        if isinstance(value, list):
            pairs.extend(NVPair(name, v, from_type="array") for v in value)
        else:
            pairs.append(NVPair(name, value))
    return tuple(pairs)


def _joined(pairs: tuple[NVPair, ...]) -> str:
    return ",".join(p.name for p in pairs) + ",".join(p.value for p in pairs)


def _content_length(headers: HTTPHeaders) -> int | None:
    raw = headers.first("content-length")
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def parse_set_cookie(headers: HTTPHeaders) -> tuple[dict[str, Any], ...]:
    """Parse ``Set-Cookie`` values into HAR cookie objects."""
    raw = headers.get("set-cookie")
    if raw is None:
        return ()
    values = raw if isinstance(raw, list) else [raw]

    cookies: list[dict[str, Any]] = []
    for value in values:
        jar = SimpleCookie()
        try:
            jar.load(value)
        except CookieError:
            log.debug("set_cookie_unparsable", length=len(value))
            continue
        if not jar:
            continue
        # One Set-Cookie header carries one cookie; its attributes sit on the first morsel.
        morsel = next(iter(jar.values()))
        cookie: dict[str, Any] = {"name": morsel.key, "value": morsel.value}
        for attr, har_key in _COOKIE_ATTRS.items():
            if morsel[attr]:
                cookie[har_key] = morsel[attr]
        for flag, har_key in _COOKIE_FLAGS.items():
            if morsel[flag]:
                cookie[har_key] = True
        cookies.append(cookie)
    return tuple(cookies)


def build_request(request: CapturedRequest) -> EntryRequest:
    headers = to_nv_pairs(request.headers)
    headers_size = (
        _byte_length(request.method + request.url + _joined(headers))
        + len(headers) * 2
        + _CRLF_BYTES
        + _REQUEST_LINE_BYTES
        + _CRLF_BYTES
    )

    post_data: PostData | None = None
    if request.body:
        post_data = PostData(
            mime_type=request.headers.first("content-type") or _DEFAULT_MIME_TYPE,
            text=request.body,
        )

    body_size = _content_length(request.headers)
    if body_size is None:
        body_size = _byte_length(post_data.text) if post_data and post_data.text else 0

    return EntryRequest(
        method=request.method,
        url=request.url,
        headers=headers,
        headers_size=headers_size,
        query_string=tuple(NVPair(k, v) for k, v in request.query),
        cookies=parse_set_cookie(request.headers),
        body_size=body_size,
        post_data=post_data,
    )


def build_response(response: CapturedResponse) -> EntryResponse:
    headers = to_nv_pairs(response.headers)
    headers_size = _byte_length(_joined(headers)) + len(headers) * 2 + _CRLF_BYTES + _CRLF_BYTES

    text = response.body if response.body else None
    size = _content_length(response.headers)
    if size is None:
        size = _byte_length(text) if text else 0

    return EntryResponse(
        status=response.status_code,
        status_text=response.status_text,
        headers=headers,
        headers_size=headers_size,
        redirect_url=response.headers.first("location") or "",
        cookies=parse_set_cookie(response.headers),
        content=Content(
            mime_type=response.headers.first("content-type") or _DEFAULT_MIME_TYPE,
            size=size,
            text=text,
        ),
        body_size=size,
    )


def build_entry(request: CapturedRequest) -> Entry:
    """Materialise *request* and its response as an Entry.

    Raises:
        FixtureNetError: The request has not been responded to.
    """
    if request.response is None:
        raise FixtureNetError(
            f"Cannot build an entry for [{request.method}] {request.url} without a response",
            context={"id": request.id, "order": request.order},
        )

    timings = Timings(
        blocked=NOT_MEASURED,
        dns=NOT_MEASURED,
        connect=NOT_MEASURED,
        send=0,
        wait=request.response_time,
        receive=0,
        ssl=NOT_MEASURED,
    )
    return Entry(
        id=request.id,
        order=request.order,
        started_date_time=request.timestamp,
        request=build_request(request),
        response=build_response(request.response),
        timings=timings,
        time=timings.total(),
    )
