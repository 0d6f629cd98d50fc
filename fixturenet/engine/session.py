"""Fixture session — the entry point for recording and replaying traffic.

A session owns everything scoped to one recording: the current request
config, the order counters used to tell identical requests apart, every
request observed in this run (used for eviction), and the cache in front of
the store.

Usage::

    async with FixtureSession("users/list", store=FilesystemStore("recordings")) as session:
        async with httpx.AsyncClient(transport=FixtureTransport(session)) as client:
            await client.get("https://api.example.com/users")
    # leaving the block flushes recorded exchanges and closes the store
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Mapping

from fixturenet.config import Mode, RequestConfig, Settings, get_settings
from fixturenet.engine.disposition import ConnectivityProbe, DispositionEngine, NetworkFn
from fixturenet.engine.intercept import RouteTable
from fixturenet.exceptions import ConfigurationError
from fixturenet.logging import get_logger
from fixturenet.protocol.fingerprint import identify, recording_id_for
from fixturenet.protocol.headers import HeaderValue, HTTPHeaders
from fixturenet.protocol.models import CapturedRequest, CapturedResponse
from fixturenet.recording.cache import RecordingCache
from fixturenet.recording.registry import StoreRegistry
from fixturenet.recording.store import Store

log = get_logger(__name__)


class FixtureSession:
    def __init__(
        self,
        recording_name: str,
        config: RequestConfig | None = None,
        *,
        store: Store | None = None,
        routes: RouteTable | None = None,
        connectivity: ConnectivityProbe | None = None,
    ) -> None:
        self.recording_name = recording_name
        self.recording_id = recording_id_for(recording_name)
        self._config = config or RequestConfig()
        self._store = store
        self._cache = RecordingCache(store) if store is not None else None
        self._network: NetworkFn | None = None
        self._engine = DispositionEngine(
            network=self._send,
            cache=self._cache,
            routes=routes,
            connectivity=connectivity,
        )
        self._order_counts: defaultdict[tuple[str, str], int] = defaultdict(int)
        self._requests: list[CapturedRequest] = []
        self._started = False
        self._stopped = False

    @classmethod
    def from_settings(
        cls,
        recording_name: str,
        settings: Settings | None = None,
        registry: StoreRegistry | None = None,
        **kwargs: Any,
    ) -> "FixtureSession":
        """Build a session whose config and store come from *settings*."""
        settings = settings or get_settings()
        registry = registry or StoreRegistry.with_builtins()
        backend = settings.store.backend
        store = registry.create(backend, **settings.store.options_for(backend))
        return cls(
            recording_name,
            settings.recording.to_request_config(),
            store=store,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> RequestConfig:
        return self._config

    @property
    def mode(self) -> Mode:
        return self._config.mode

    @property
    def store(self) -> Store | None:
        return self._store

    @property
    def cache(self) -> RecordingCache | None:
        return self._cache

    @property
    def routes(self) -> RouteTable:
        return self._engine.routes

    @property
    def requests(self) -> list[CapturedRequest]:
        """Every request registered in this run, in registration order."""
        return list(self._requests)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(self, **overrides: Any) -> None:
        """Deep-merge *overrides* into the config used by later requests."""
        self._config = self._config.merge(overrides)
        log.debug("session_configured", recording_id=self.recording_id, keys=sorted(overrides))

    def record(self) -> None:
        self.configure(mode=Mode.RECORD)

    def replay(self) -> None:
        self.configure(mode=Mode.REPLAY)

    def passthrough(self) -> None:
        self.configure(mode=Mode.PASSTHROUGH)

    def connect(self, network: NetworkFn) -> None:
        """Attach the callable that sends requests to the real network."""
        self._network = network

    async def _send(self, request: CapturedRequest) -> CapturedResponse:
        if self._network is None:
            raise ConfigurationError(
                "No network adapter is connected; cannot send the request.",
                context={"method": request.method, "url": request.url},
            )
        return await self._network(request)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, HeaderValue | None] | HTTPHeaders | None = None,
        body: str | None = None,
    ) -> CapturedRequest:
        """Register an outbound request, assigning its fingerprint and order."""
        config = self._config
        captured = CapturedRequest(
            method,
            url,
            headers,
            body,
            config=config,
            recording_name=self.recording_name,
            recording_id=self.recording_id,
        )
        captured.id, _ = identify(
            captured.method, captured.url, captured.headers, captured.body, config.match_requests_by
        )
        if config.match_requests_by.order:
            key = (captured.recording_id, captured.id)
            captured.order = self._order_counts[key]
            self._order_counts[key] += 1
        self._requests.append(captured)
        return captured

    async def dispose(self, request: CapturedRequest) -> CapturedResponse:
        return await self._engine.dispose(request)

    async def fetch(
        self,
        method: str,
        url: str,
        headers: Mapping[str, HeaderValue | None] | HTTPHeaders | None = None,
        body: str | None = None,
    ) -> CapturedResponse:
        """Register and dispose a request in one call."""
        return await self.dispose(self.request(method, url, headers, body))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._started:
            return
        if self._store is not None:
            await self._store.init()
        self._started = True
        log.info("session_started", recording_id=self.recording_id, mode=self.mode.value)

    async def flush(self) -> None:
        """Persist pending exchanges, evicting entries unused in this run."""
        if self._cache is None:
            return
        await self._cache.flush(
            observed=self._requests,
            keep_unused_requests=self._config.keep_unused_requests,
        )

    async def stop(self) -> None:
        """Flush, then close the store.  Safe to call more than once."""
        if self._stopped:
            return
        try:
            await self.flush()
        finally:
            if self._store is not None:
                await self._store.close()
            self._stopped = True
            log.info(
                "session_stopped",
                recording_id=self.recording_id,
                requests=len(self._requests),
            )

    async def __aenter__(self) -> "FixtureSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
