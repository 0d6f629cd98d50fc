"""API layer — route dependencies resolved from ``app.state``."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from fixturenet.config import Settings
from fixturenet.recording.store import Store


def served_store(request: Request) -> Store:
    return request.app.state.store  # type: ignore[no-any-return]


def server_settings(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[no-any-return]


StoreDep = Annotated[Store, Depends(served_store)]
ConfigDep = Annotated[Settings, Depends(server_settings)]
