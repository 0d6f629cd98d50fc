"""Unit tests — DispositionEngine."""

from __future__ import annotations

import asyncio
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

from fixturenet.config import Mode, RequestConfig
from fixturenet.engine.disposition import DispositionEngine, normalize_recorded_response
from fixturenet.engine.intercept import Interceptor, RouteTable
from fixturenet.exceptions import (
    CompletionError,
    ConfigurationError,
    ExpiredRecordingError,
    FailedRequestNotRecordableError,
    InterceptorError,
    RecordingNotFoundError,
)
from fixturenet.logging import _inject_context_vars
from fixturenet.protocol.models import BEFORE_REPLAY, CapturedRequest, CapturedResponse, Disposition
from fixturenet.recording.cache import RecordingCache
from fixturenet.recording.entry import build_entry
from fixturenet.recording.models import Entry

OLD_TIMESTAMP = "2000-01-01T00:00:00.000Z"


async def _seed(cache: RecordingCache, request: CapturedRequest) -> None:
    cache.enqueue(request)
    await cache.flush()


@pytest.mark.asyncio
class TestSyntheticRoutes:
    async def test_intercept(self, network: Any, cache: RecordingCache, make_request: Callable[..., Any]) -> None:
        routes = RouteTable()
        routes.add("GET", "*", lambda req, i: i.intercept(200, body="synthetic"))
        engine = DispositionEngine(network, cache=cache, routes=routes)
        request = make_request(mode=Mode.RECORD)

        response = await engine.dispose(request)

        assert response.body == "synthetic"
        assert request.disposition is Disposition.INTERCEPT
        assert network.calls == []
        assert not cache.has_pending
        assert (await request.promise).body == "synthetic"

    async def test_intercept_needs_no_cache(self, network: Any, make_request: Callable[..., Any]) -> None:
        routes = RouteTable()
        routes.add("*", "*", lambda req, i: i.intercept(204))
        response = await DispositionEngine(network, routes=routes).dispose(make_request())
        assert response.status_code == 204

    async def test_handler_that_does_nothing_falls_through(
        self, network: Any, cache: RecordingCache, make_request: Callable[..., Any]
    ) -> None:
        routes = RouteTable()
        routes.add("*", "*", lambda req, i: None)
        request = make_request(mode=Mode.RECORD)
        await DispositionEngine(network, cache=cache, routes=routes).dispose(request)
        assert request.disposition is Disposition.RECORD
        assert cache.pending(request.recording_id) == [request]

    async def test_handler_passthrough(
        self, network: Any, cache: RecordingCache, make_request: Callable[..., Any]
    ) -> None:
        async def handler(request: CapturedRequest, interceptor: Interceptor) -> None:
            interceptor.passthrough()

        routes = RouteTable()
        routes.add("*", "*", handler)
        request = make_request(mode=Mode.RECORD)
        response = await DispositionEngine(network, cache=cache, routes=routes).dispose(request)
        assert response.body == "live"
        assert request.disposition is Disposition.PASSTHROUGH
        assert not cache.has_pending

    async def test_passthrough_route(self, network: Any, make_request: Callable[..., Any]) -> None:
        routes = RouteTable()
        routes.passthrough("GET", "https://api.example.com/*")
        request = make_request()
        await DispositionEngine(network, routes=routes).dispose(request)
        assert request.disposition is Disposition.PASSTHROUGH
        assert len(network.calls) == 1

    async def test_handler_choosing_twice_rejects(self, network: Any, make_request: Callable[..., Any]) -> None:
        def handler(request: CapturedRequest, interceptor: Interceptor) -> None:
            interceptor.intercept()
            interceptor.passthrough()

        routes = RouteTable()
        routes.add("*", "*", handler)
        request = make_request()
        with pytest.raises(InterceptorError):
            await DispositionEngine(network, routes=routes).dispose(request)
        assert request.promise.settled

    async def test_nested_dispose_keeps_outer_log_context(
        self, network: Any, make_request: Callable[..., Any]
    ) -> None:
        seen: list[dict[str, Any]] = []

        async def outer_handler(request: CapturedRequest, interceptor: Interceptor) -> None:
            inner = make_request(url="https://inner.example.com/token", id="fp-inner", recording_id="inner-rec")
            await engine.dispose(inner)
            seen.append(_inject_context_vars(None, "info", {}))
            interceptor.intercept(200)

        routes = RouteTable()
        routes.add("GET", "https://inner.example.com/*", lambda req, i: i.intercept(204))
        routes.add("*", "*", outer_handler)
        engine = DispositionEngine(network, routes=routes)

        await engine.dispose(make_request(id="fp-outer", recording_id="outer-rec"))

        assert seen == [{"recording_id": "outer-rec", "request_id": "fp-outer"}]
        assert _inject_context_vars(None, "info", {}) == {}


@pytest.mark.asyncio
class TestPassthroughAndRecord:
    async def test_passthrough_mode(self, network: Any, make_request: Callable[..., Any]) -> None:
        request = make_request(mode=Mode.PASSTHROUGH)
        response = await DispositionEngine(network).dispose(request)
        assert response.body == "live"
        assert request.disposition is Disposition.PASSTHROUGH
        assert request.response is response

    async def test_missing_cache(self, network: Any, make_request: Callable[..., Any]) -> None:
        request = make_request(mode=Mode.RECORD)
        with pytest.raises(ConfigurationError):
            await DispositionEngine(network).dispose(request)
        with pytest.raises(ConfigurationError):
            await request.promise
        assert network.calls == []

    async def test_record(self, network: Any, cache: RecordingCache, make_request: Callable[..., Any]) -> None:
        request = make_request(mode=Mode.RECORD)
        response = await DispositionEngine(network, cache=cache).dispose(request)
        assert response.body == "live"
        assert request.disposition is Disposition.RECORD
        assert cache.pending(request.recording_id) == [request]

    async def test_record_ignores_existing_entry(
        self, network: Any, cache: RecordingCache, responded: Callable[..., Any], make_request: Callable[..., Any]
    ) -> None:
        await _seed(cache, responded(response_body="stored"))
        response = await DispositionEngine(network, cache=cache).dispose(make_request(mode=Mode.RECORD))
        assert response.body == "live"
        assert len(network.calls) == 1

    async def test_failed_response_is_not_recordable(
        self, network: Any, cache: RecordingCache, make_request: Callable[..., Any]
    ) -> None:
        network.status_code = 500
        request = make_request(mode=Mode.RECORD)
        with pytest.raises(FailedRequestNotRecordableError):
            await DispositionEngine(network, cache=cache).dispose(request)
        with pytest.raises(FailedRequestNotRecordableError):
            await request.promise
        assert not cache.has_pending

    async def test_network_error_rejects(
        self, network: Any, cache: RecordingCache, make_request: Callable[..., Any]
    ) -> None:
        network.error = ConnectionError("connection refused")
        request = make_request(mode=Mode.RECORD)
        with pytest.raises(ConnectionError):
            await DispositionEngine(network, cache=cache).dispose(request)
        with pytest.raises(ConnectionError):
            await request.promise
        assert not cache.has_pending

    async def test_cancellation_cancels_completion_handle(
        self, cache: RecordingCache, make_request: Callable[..., Any]
    ) -> None:
        started = asyncio.Event()

        async def hang(request: CapturedRequest) -> CapturedResponse:
            started.set()
            await asyncio.Event().wait()
            raise AssertionError("unreachable")

        request = make_request(mode=Mode.RECORD)
        task = asyncio.create_task(DispositionEngine(hang, cache=cache).dispose(request))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert request.promise.future.cancelled()

    async def test_second_dispose_is_an_error(
        self, network: Any, cache: RecordingCache, make_request: Callable[..., Any]
    ) -> None:
        engine = DispositionEngine(network, cache=cache)
        request = make_request(mode=Mode.RECORD)
        await engine.dispose(request)
        with pytest.raises(CompletionError):
            await engine.dispose(request)


@pytest.mark.asyncio
class TestReplay:
    async def test_replay_hit(
        self, network: Any, cache: RecordingCache, responded: Callable[..., Any], make_request: Callable[..., Any]
    ) -> None:
        await _seed(cache, responded(response_body="stored", response_headers={"Set-Cookie": ["a=1", "b=2"]}))
        request = make_request()

        response = await DispositionEngine(network, cache=cache).dispose(request)

        assert response.body == "stored"
        assert response.headers["set-cookie"] == ["a=1", "b=2"]
        assert request.disposition is Disposition.REPLAY
        assert network.calls == []
        assert not cache.has_pending

    async def test_timing_awaited_with_recorded_time(
        self, network: Any, cache: RecordingCache, responded: Callable[..., Any], make_request: Callable[..., Any]
    ) -> None:
        seeded = responded()
        seeded.response_time = 42.0
        await _seed(cache, seeded)
        timing = AsyncMock()

        await DispositionEngine(network, cache=cache).dispose(make_request(config=RequestConfig(timing=timing)))

        timing.assert_awaited_once_with(42.0)

    async def test_before_replay_hook(
        self, network: Any, cache: RecordingCache, responded: Callable[..., Any], make_request: Callable[..., Any]
    ) -> None:
        await _seed(cache, responded())
        seen: list[Entry] = []
        request = make_request()
        request.on(BEFORE_REPLAY, lambda req, entry: seen.append(entry))

        await DispositionEngine(network, cache=cache).dispose(request)

        assert [e.key for e in seen] == [("fp-users", 0)]

    async def test_miss_records(self, network: Any, cache: RecordingCache, make_request: Callable[..., Any]) -> None:
        request = make_request()
        response = await DispositionEngine(network, cache=cache).dispose(request)
        assert response.body == "live"
        assert request.disposition is Disposition.RECORD
        assert cache.pending(request.recording_id) == [request]

    async def test_miss_without_record_if_missing(
        self, network: Any, cache: RecordingCache, make_request: Callable[..., Any]
    ) -> None:
        request = make_request(config=RequestConfig(record_if_missing=False))
        with pytest.raises(RecordingNotFoundError) as exc_info:
            await DispositionEngine(network, cache=cache).dispose(request)
        assert "`record_if_missing` is `false`" in exc_info.value.message
        assert '"url": "https://api.example.com/users"' in exc_info.value.message
        assert request.disposition is None
        assert network.calls == []

    async def test_order_distinguishes_entries(
        self, network: Any, cache: RecordingCache, responded: Callable[..., Any], make_request: Callable[..., Any]
    ) -> None:
        cache.enqueue(responded(order=0, response_body="first"))
        cache.enqueue(responded(order=1, response_body="second"))
        await cache.flush()
        engine = DispositionEngine(network, cache=cache)
        assert (await engine.dispose(make_request(order=1))).body == "second"
        assert (await engine.dispose(make_request(order=0))).body == "first"


@pytest.mark.asyncio
class TestExpiry:
    async def _seed_expired(self, cache: RecordingCache, responded: Callable[..., Any]) -> None:
        request = responded(response_body="stale")
        request.timestamp = OLD_TIMESTAMP
        await _seed(cache, request)

    async def test_not_expired_without_expires_in(
        self, network: Any, cache: RecordingCache, responded: Callable[..., Any], make_request: Callable[..., Any]
    ) -> None:
        await self._seed_expired(cache, responded)
        response = await DispositionEngine(network, cache=cache).dispose(make_request())
        assert response.body == "stale"

    async def test_expired_without_record_if_expired(
        self, network: Any, cache: RecordingCache, responded: Callable[..., Any], make_request: Callable[..., Any]
    ) -> None:
        await self._seed_expired(cache, responded)
        request = make_request(config=RequestConfig(expires_in="1d"))

        with pytest.raises(ExpiredRecordingError) as exc_info:
            await DispositionEngine(network, cache=cache).dispose(request)

        assert exc_info.value.reason == "`record_if_expired` is `false`"
        assert request.disposition is None
        with pytest.raises(ExpiredRecordingError):
            await request.promise
        assert network.calls == []

    async def test_expired_rerecords(
        self, network: Any, cache: RecordingCache, responded: Callable[..., Any], make_request: Callable[..., Any]
    ) -> None:
        await self._seed_expired(cache, responded)
        request = make_request(config=RequestConfig(expires_in="1d", record_if_expired=True))

        response = await DispositionEngine(network, cache=cache).dispose(request)

        assert response.body == "live"
        assert request.disposition is Disposition.RECORD
        assert cache.pending(request.recording_id) == [request]

    async def test_expired_while_offline(
        self, network: Any, cache: RecordingCache, responded: Callable[..., Any], make_request: Callable[..., Any]
    ) -> None:
        await self._seed_expired(cache, responded)
        engine = DispositionEngine(network, cache=cache, connectivity=lambda: False)
        request = make_request(config=RequestConfig(expires_in="1d", record_if_expired=True))

        with pytest.raises(ExpiredRecordingError) as exc_info:
            await engine.dispose(request)
        assert exc_info.value.reason == "the network is offline"

    async def test_async_connectivity_probe(
        self, network: Any, cache: RecordingCache, responded: Callable[..., Any], make_request: Callable[..., Any]
    ) -> None:
        await self._seed_expired(cache, responded)
        probe = AsyncMock(return_value=True)
        engine = DispositionEngine(network, cache=cache, connectivity=probe)

        await engine.dispose(make_request(config=RequestConfig(expires_in="1d", record_if_expired=True)))

        probe.assert_awaited_once()
        assert len(network.calls) == 1


@pytest.mark.unit
class TestNormalizeRecordedResponse:
    def test_rebuilds_response(self, responded: Callable[..., Any]) -> None:
        request = responded(
            status_code=302,
            response_body="moved",
            response_headers={"Location": "/next", "Set-Cookie": ["a=1", "b=2"]},
        )
        response = normalize_recorded_response(build_entry(request))
        assert response.status_code == 302
        assert response.status_text == "Found"
        assert response.body == "moved"
        assert response.headers.to_dict() == {"location": "/next", "set-cookie": ["a=1", "b=2"]}
