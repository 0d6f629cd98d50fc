"""Recordings endpoints — the server side of ``RestStore``.

REST endpoints (mounted under the configured namespace, ``/fixturenet``
by default)::

    GET    /fixturenet                  — list stored recording ids
    GET    /fixturenet/{recording_id}   — 200 + HAR JSON, or 204 when absent
    POST   /fixturenet/{recording_id}   — save the HAR JSON body, 201
    DELETE /fixturenet/{recording_id}   — delete, 200 (also when absent)

Recording ids contain ``/`` for nested recording names, hence the
``path`` converter.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from fixturenet.api.dependencies import StoreDep
from fixturenet.api.schemas import RecordingListResponse
from fixturenet.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["recordings"])


@router.get("", response_model=RecordingListResponse)
async def list_recordings(store: StoreDep) -> RecordingListResponse:
    """List every recording id held by the store."""
    try:
        ids = await store.list_recordings()
    except NotImplementedError as exc:
        raise HTTPException(status_code=501, detail=str(exc)) from exc
    return RecordingListResponse(recordings=ids, count=len(ids))


@router.get("/{recording_id:path}")
async def get_recording(recording_id: str, store: StoreDep) -> Response:
    data = await store.find(recording_id)
    if data is None:
        return Response(status_code=204)
    return JSONResponse(content=data)


@router.post("/{recording_id:path}", status_code=201)
async def save_recording(recording_id: str, request: Request, store: StoreDep) -> Response:
    try:
        data: Any = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Body must be a HAR JSON document.") from exc
    if not isinstance(data, dict) or not isinstance(data.get("log"), dict):
        raise HTTPException(status_code=400, detail="Body must be a HAR JSON document.")

    await store.save(recording_id, data)
    log.info("recording_saved", recording_id=recording_id, entries=len(data["log"].get("entries", [])))
    return Response(status_code=201)


@router.delete("/{recording_id:path}")
async def delete_recording(recording_id: str, store: StoreDep) -> Response:
    await store.delete(recording_id)
    log.info("recording_deleted", recording_id=recording_id)
    return Response(status_code=200)
