"""Disposition engine — decides the fate of every captured request.

Order of precedence:
  1. A matching synthetic route whose handler intercepts → INTERCEPT
  2. Passthrough mode, a passthrough route, or a handler that asked
     for passthrough → PASSTHROUGH
  3. No cache configured → ConfigurationError
  4. Record mode → RECORD (network, then enqueue for the next flush)
  5. Replay mode → look the request up in its recording:
       a. missing: RECORD when ``record_if_missing``, else RecordingNotFoundError
       b. expired: RECORD when ``record_if_expired`` and online,
          else ExpiredRecordingError (logged as a policy warning)
       c. otherwise await the timing function, then REPLAY

The request's completion handle is settled exactly once per ``dispose``,
with the response or with the error that ``dispose`` raises.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Awaitable, Callable

from fixturenet.config import Mode
from fixturenet.engine.intercept import Interceptor, RouteTable
from fixturenet.exceptions import (
    ConfigurationError,
    ExpiredRecordingError,
    PolicyWarning,
    RecordingNotFoundError,
)
from fixturenet.logging import bind_request_context, get_logger, reset_request_context
from fixturenet.protocol.headers import HTTPHeaders
from fixturenet.protocol.models import (
    BEFORE_REPLAY,
    CapturedRequest,
    CapturedResponse,
    Disposition,
)
from fixturenet.recording.cache import RecordingCache
from fixturenet.recording.models import Entry
from fixturenet.timing import is_expired

log = get_logger(__name__)

NetworkFn = Callable[[CapturedRequest], Awaitable[CapturedResponse]]
ConnectivityProbe = Callable[[], "bool | Awaitable[bool]"]


def normalize_recorded_response(entry: Entry) -> CapturedResponse:
    """Rebuild a response from a recorded entry.

    A header name seen more than once becomes a list, in recorded order.
    """
    headers = HTTPHeaders()
    for pair in entry.response.headers:
        headers.add(pair.name, pair.value)
    return CapturedResponse(
        status_code=entry.response.status,
        status_text=entry.response.status_text,
        headers=headers,
        body=entry.response.content.text,
    )


class DispositionEngine:
    """Resolves captured requests against the network, routes and recordings.

    Usage::

        engine = DispositionEngine(network=send, cache=RecordingCache(store))
        response = await engine.dispose(request)
    """

    def __init__(
        self,
        network: NetworkFn,
        cache: RecordingCache | None = None,
        routes: RouteTable | None = None,
        connectivity: ConnectivityProbe | None = None,
    ) -> None:
        self._network = network
        self._cache = cache
        self._routes = routes or RouteTable()
        self._connectivity = connectivity

    @property
    def cache(self) -> RecordingCache | None:
        return self._cache

    @property
    def routes(self) -> RouteTable:
        return self._routes

    async def dispose(self, request: CapturedRequest) -> CapturedResponse:
        """Resolve *request* and settle its completion handle.

        Raises:
            ConfigurationError: Record/replay requested without a cache.
            RecordingNotFoundError: Replay miss with ``record_if_missing`` off.
            ExpiredRecordingError: The entry expired and cannot be renewed.
            FailedRequestNotRecordableError: A failed response would be recorded.
        """
        context_tokens = bind_request_context(recording_id=request.recording_id, request_id=request.id)
        try:
            response = await self._handle(request)
        except asyncio.CancelledError:
            request.promise.cancel()
            raise
        except Exception as exc:
            if isinstance(exc, PolicyWarning):
                log.warning("request_unresolved", reason=exc.message)
            request.promise.reject(exc)
            raise
        else:
            request.promise.resolve(response)
            return response
        finally:
            reset_request_context(context_tokens)

    async def _handle(self, request: CapturedRequest) -> CapturedResponse:
        route = self._routes.match(request)
        interceptor: Interceptor | None = None

        if route is not None and not route.passthrough:
            interceptor = Interceptor()
            await route.invoke(request, interceptor)
            if interceptor.should_intercept:
                return self._intercept(request, interceptor)

        if (
            request.config.mode is Mode.PASSTHROUGH
            or (route is not None and route.passthrough)
            or (interceptor is not None and interceptor.should_passthrough)
        ):
            return await self._passthrough(request)

        if self._cache is None:
            raise ConfigurationError(
                "A store must be configured in order to record and replay requests.",
                context={"mode": request.config.mode.value},
            )

        if request.config.mode is Mode.RECORD:
            return await self._record(request)
        return await self._replay(request)

    # ------------------------------------------------------------------
    # Dispositions
    # ------------------------------------------------------------------

    def _intercept(self, request: CapturedRequest, interceptor: Interceptor) -> CapturedResponse:
        assert interceptor.response is not None
        request.disposition = Disposition.INTERCEPT
        request.respond(interceptor.response)
        log.debug("request_intercepted", method=request.method, url=request.url)
        return interceptor.response

    async def _passthrough(self, request: CapturedRequest) -> CapturedResponse:
        request.disposition = Disposition.PASSTHROUGH
        response = await self._network(request)
        request.respond(response)
        log.debug("request_passed_through", method=request.method, url=request.url)
        return response

    async def _record(self, request: CapturedRequest) -> CapturedResponse:
        assert self._cache is not None
        request.disposition = Disposition.RECORD
        response = await self._network(request)
        request.respond(response)
        self._cache.enqueue(request)
        log.info(
            "request_recorded",
            method=request.method,
            url=request.url,
            status_code=response.status_code,
        )
        return response

    async def _replay(self, request: CapturedRequest) -> CapturedResponse:
        assert self._cache is not None
        config = request.config
        entry = await self._cache.find_entry(request)

        if entry is None:
            if config.record_if_missing:
                return await self._record(request)
            raise RecordingNotFoundError(request.describe(), request.recording_id)

        entry = await request.emit(BEFORE_REPLAY, entry)

        if is_expired(entry.started_date_time, config.expires_in):
            if not config.record_if_expired:
                raise ExpiredRecordingError(
                    entry.request.method, entry.request.url, "`record_if_expired` is `false`"
                )
            if not await self._is_online():
                raise ExpiredRecordingError(
                    entry.request.method, entry.request.url, "the network is offline"
                )
            return await self._record(request)

        await config.timing(entry.time)
        request.disposition = Disposition.REPLAY
        response = normalize_recorded_response(entry)
        request.respond(response)
        log.debug("request_replayed", method=request.method, url=request.url)
        return response

    async def _is_online(self) -> bool:
        if self._connectivity is None:
            return True
        result = self._connectivity()
        if inspect.isawaitable(result):
            result = await result
        return bool(result)
