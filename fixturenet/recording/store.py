"""Store contract and the in-process backends (memory, SQLite).

A Store is the only durable resource fixturenet touches.  Recordings cross
the store boundary as HAR JSON dicts (``Recording.to_dict()``); the cache
validates and converts them.  Absence is a normal ``None`` from ``find``;
backends raise :class:`StoreError` only for transport or storage failures.
"""

from __future__ import annotations

import copy
import json
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import aiosqlite

from fixturenet.exceptions import StoreError
from fixturenet.logging import get_logger

log = get_logger(__name__)

RecordingData = dict[str, Any]


class Store(ABC):
    """Abstract recording store.  Implementations must be safe for concurrent async use."""

    NAME: str = ""

    async def init(self) -> None:
        """Open connections / create directories.  Called once before first use."""

    async def close(self) -> None:
        """Release resources.  The store is not used afterwards."""

    @abstractmethod
    async def find(self, recording_id: str) -> RecordingData | None:
        """Return the stored HAR dict for *recording_id*, or None."""

    @abstractmethod
    async def save(self, recording_id: str, data: RecordingData) -> None:
        """Insert or replace the recording."""

    @abstractmethod
    async def delete(self, recording_id: str) -> None:
        """Remove the recording.  Deleting a missing recording is not an error."""

    async def list_recordings(self) -> list[str]:
        """Return all stored recording ids.

        Not every backend can enumerate its contents; those raise
        ``NotImplementedError``.
        """
        raise NotImplementedError(f"{self.__class__.__name__} cannot list recordings.")


# ---------------------------------------------------------------------------
# InMemoryStore
# ---------------------------------------------------------------------------


class InMemoryStore(Store):
    """Keeps recordings in a dict.  Data is copied on the way in and out."""

    NAME = "memory"

    def __init__(self) -> None:
        self._recordings: dict[str, RecordingData] = {}

    async def find(self, recording_id: str) -> RecordingData | None:
        data = self._recordings.get(recording_id)
        return copy.deepcopy(data) if data is not None else None

    async def save(self, recording_id: str, data: RecordingData) -> None:
        self._recordings[recording_id] = copy.deepcopy(data)

    async def delete(self, recording_id: str) -> None:
        self._recordings.pop(recording_id, None)

    async def list_recordings(self) -> list[str]:
        return sorted(self._recordings)


# ---------------------------------------------------------------------------
# SQLiteStore
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS recordings (
    recording_id    TEXT PRIMARY KEY,
    recording_name  TEXT NOT NULL DEFAULT '',
    data            TEXT NOT NULL,
    updated_at      REAL NOT NULL
);
"""


class SQLiteStore(Store):
    """Async SQLite store; one row of serialised HAR JSON per recording."""

    NAME = "sqlite"

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self._db_path))
        await self._conn.executescript(_SCHEMA_SQL)
        await self._conn.commit()
        log.debug("sqlite_store_init", path=str(self._db_path))

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StoreError("SQLiteStore used before init()", context={"path": str(self._db_path)})
        return self._conn

    async def find(self, recording_id: str) -> RecordingData | None:
        conn = self._connection()
        try:
            async with conn.execute(
                "SELECT data FROM recordings WHERE recording_id=?", (recording_id,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to read recording '{recording_id}': {exc}") from exc

        if row is None:
            return None
        return json.loads(row[0])

    async def save(self, recording_id: str, data: RecordingData) -> None:
        conn = self._connection()
        name = data.get("log", {}).get("_recordingName", "")
        try:
            await conn.execute(
                """INSERT OR REPLACE INTO recordings
                   (recording_id, recording_name, data, updated_at)
                   VALUES (?,?,?,?)""",
                (recording_id, name, json.dumps(data, sort_keys=True), time.time()),
            )
            await conn.commit()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to save recording '{recording_id}': {exc}") from exc

    async def delete(self, recording_id: str) -> None:
        conn = self._connection()
        try:
            await conn.execute("DELETE FROM recordings WHERE recording_id=?", (recording_id,))
            await conn.commit()
        except aiosqlite.Error as exc:
            raise StoreError(f"Failed to delete recording '{recording_id}': {exc}") from exc

    async def list_recordings(self) -> list[str]:
        conn = self._connection()
        async with conn.execute("SELECT recording_id FROM recordings ORDER BY recording_id") as cursor:
            return [row[0] async for row in cursor]
