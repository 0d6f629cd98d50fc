"""Filesystem store — one ``recording.har`` file per recording.

Layout::

    <recordings_dir>/<recording_id>/recording.har

Recording ids may contain ``/`` (nested recording names), which map to
nested directories.  Writes go to a temporary file first and are renamed
into place so a crashed flush never leaves a truncated recording behind.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

from fixturenet.exceptions import StoreError
from fixturenet.logging import get_logger
from fixturenet.recording.store import RecordingData, Store

log = get_logger(__name__)

RECORDING_FILENAME = "recording.har"


class FilesystemStore(Store):
    NAME = "filesystem"

    def __init__(self, recordings_dir: Path | str = "recordings") -> None:
        self._root = Path(recordings_dir).expanduser()

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, recording_id: str) -> Path:
        path = (self._root / recording_id / RECORDING_FILENAME).resolve()
        if self._root.resolve() not in path.parents:
            raise StoreError(
                f"Recording id '{recording_id}' escapes the recordings directory",
                context={"recording_id": recording_id},
            )
        return path

    async def init(self) -> None:
        await asyncio.to_thread(self._root.mkdir, parents=True, exist_ok=True)
        log.debug("filesystem_store_init", path=str(self._root))

    async def find(self, recording_id: str) -> RecordingData | None:
        path = self._path(recording_id)
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StoreError(f"Failed to read recording '{recording_id}': {exc}") from exc
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise StoreError(
                f"Recording '{recording_id}' is not valid JSON: {exc}",
                context={"path": str(path)},
            ) from exc

    async def save(self, recording_id: str, data: RecordingData) -> None:
        path = self._path(recording_id)
        text = json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False)
        try:
            await asyncio.to_thread(self._write_atomic, path, text)
        except OSError as exc:
            raise StoreError(f"Failed to save recording '{recording_id}': {exc}") from exc
        log.debug("recording_written", recording_id=recording_id, path=str(path))

    async def delete(self, recording_id: str) -> None:
        path = self._path(recording_id)
        try:
            await asyncio.to_thread(self._remove, path)
        except OSError as exc:
            raise StoreError(f"Failed to delete recording '{recording_id}': {exc}") from exc

    async def list_recordings(self) -> list[str]:
        if not self._root.exists():
            return []
        files = await asyncio.to_thread(lambda: sorted(self._root.rglob(RECORDING_FILENAME)))
        return [f.parent.relative_to(self._root).as_posix() for f in files]

    @staticmethod
    def _write_atomic(path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".har.tmp")
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)

    def _remove(self, path: Path) -> None:
        # Nested recordings live below this one; only prune directories left empty.
        path.unlink(missing_ok=True)
        root = self._root.resolve()
        directory = path.parent
        while directory != root and directory.is_dir() and not any(directory.iterdir()):
            directory.rmdir()
            directory = directory.parent
