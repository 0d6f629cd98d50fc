"""API layer — response schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str
    code: str
    detail: Any | None = None
    request_id: str | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
    store: str
    recordings_dir: str


class RecordingListResponse(BaseModel):
    recordings: list[str]
    count: int
