"""Shared pytest fixtures for the fixturenet test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any, AsyncGenerator, Callable

import pytest
import pytest_asyncio

from fixturenet.config import Mode, RequestConfig, Settings, override_settings
from fixturenet.protocol.headers import HTTPHeaders
from fixturenet.protocol.models import CapturedRequest, CapturedResponse, Disposition
from fixturenet.recording.cache import RecordingCache
from fixturenet.recording.store import InMemoryStore

RECORDING_NAME = "suite/test"
RECORDING_ID = "suite-id"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    monkeypatch.setenv("HOME", str(tmp_path))
    settings = Settings(
        store={
            "backend": "memory",
            "recordings_dir": str(tmp_path / "recordings"),
            "db_path": str(tmp_path / "recordings.db"),
        },
        server={"recordings_dir": str(tmp_path / "served")},
        logging={"level": "warning", "format": "console"},
    )
    override_settings(settings)
    return settings


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@pytest.fixture
def make_request() -> Callable[..., CapturedRequest]:
    """Factory for captured requests with an explicit fingerprint."""

    def _make(
        method: str = "GET",
        url: str = "https://api.example.com/users",
        headers: dict[str, Any] | None = None,
        body: str | None = None,
        *,
        config: RequestConfig | None = None,
        mode: Mode | None = None,
        id: str = "fp-users",
        order: int = 0,
        recording_id: str = RECORDING_ID,
        recording_name: str = RECORDING_NAME,
    ) -> CapturedRequest:
        config = config or RequestConfig()
        if mode is not None:
            config = config.merge({"mode": mode})
        return CapturedRequest(
            method,
            url,
            headers,
            body,
            config=config,
            recording_name=recording_name,
            recording_id=recording_id,
            id=id,
            order=order,
        )

    return _make


@pytest.fixture
def responded(make_request: Callable[..., CapturedRequest]) -> Callable[..., CapturedRequest]:
    """Factory for requests already answered by the network (disposition RECORD)."""

    def _make(
        *,
        status_code: int = 200,
        response_body: str = "ok",
        response_headers: dict[str, Any] | None = None,
        disposition: Disposition = Disposition.RECORD,
        **kwargs: Any,
    ) -> CapturedRequest:
        request = make_request(**kwargs)
        request.disposition = disposition
        request.respond(
            CapturedResponse(
                status_code=status_code,
                headers=response_headers or {"Content-Type": "text/plain"},
                body=response_body,
            )
        )
        return request

    return _make


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------


class FakeNetwork:
    """Stands in for the real network; answers every request the same way."""

    def __init__(self) -> None:
        self.calls: list[CapturedRequest] = []
        self.status_code = 200
        self.headers: dict[str, Any] = {"Content-Type": "text/plain"}
        self.body: str | None = "live"
        self.error: Exception | None = None

    async def __call__(self, request: CapturedRequest) -> CapturedResponse:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return CapturedResponse(
            status_code=self.status_code,
            headers=HTTPHeaders(self.headers),
            body=self.body,
        )


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest_asyncio.fixture
async def cache(memory_store: InMemoryStore) -> AsyncGenerator[RecordingCache, None]:
    await memory_store.init()
    yield RecordingCache(memory_store)
    await memory_store.close()
