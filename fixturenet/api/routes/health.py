"""GET /health — liveness and store details."""

from __future__ import annotations

from fastapi import APIRouter

from fixturenet import __version__
from fixturenet.api.dependencies import ConfigDep, StoreDep
from fixturenet.api.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse, summary="Server health check")
async def health(store: StoreDep, config: ConfigDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        store=store.NAME,
        recordings_dir=str(config.server.recordings_dir),
    )
