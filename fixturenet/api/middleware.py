"""API layer — request tracing and error responses."""

from __future__ import annotations

import time
import uuid
from typing import Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from fixturenet.api.schemas import ErrorResponse
from fixturenet.exceptions import FatalError, FixtureNetError, StoreError
from fixturenet.logging import get_logger

log = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Checked in order; the first matching class wins.
_ERROR_STATUS: list[tuple[type[FixtureNetError], int, str]] = [
    (FatalError, 400, "bad_request"),
    (StoreError, 500, "store_error"),
]


class RecordingsTraceMiddleware(BaseHTTPMiddleware):
    """Tag each exchange with a request id and log it once it completes.

    A client-supplied ``X-Request-ID`` is reused so a RestStore call can be
    followed from the test process into the server log.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        log.info(
            "recordings_api_call",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            request_id=request_id,
        )
        return response


def _classify(exc: FixtureNetError) -> tuple[int, str]:
    for exc_type, status_code, code in _ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code, code
    return 500, "internal_error"


def build_error_handler() -> Any:
    """Return the handler that renders FixtureNetError as an ErrorResponse."""

    async def handler(request: Request, exc: FixtureNetError) -> JSONResponse:
        request_id = getattr(request.state, "request_id", None)
        status_code, code = _classify(exc)
        log.error("recordings_api_error", error=exc.message, code=code, request_id=request_id)
        body = ErrorResponse(
            error=exc.message,
            code=code,
            detail=exc.context or None,
            request_id=request_id,
        )
        return JSONResponse(status_code=status_code, content=body.model_dump())

    return handler
