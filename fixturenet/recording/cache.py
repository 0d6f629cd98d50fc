"""Recording cache — the in-process layer over a Store.

Responsibilities:

  - **Memoised lookups**: ``find_recording`` starts at most one store read
    per recording id; concurrent and later callers share the same task until
    the recording changes (save, delete, confirmed absent).
  - **Pending buffer**: recorded exchanges wait here, bucketed by recording
    id, until ``flush`` persists them.
  - **Eviction**: on flush, entries no longer matched by any request seen
    in this run are dropped unless ``keep_unused_requests`` is set.

A flush is all-or-nothing per recording id: the bucket is detached before
the first await and put back (ahead of any late arrivals) if anything fails,
so a failed write never loses or half-persists requests.  Writes to the same
recording id (overlapping flushes, deletes) hold a per-id lock from the read
of the stored recording until its memoised copy is invalidated.
"""

from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass, field
from typing import Iterable

from fixturenet import __version__
from fixturenet.exceptions import (
    FailedRequestNotRecordableError,
    FixtureNetError,
    FlushError,
    InvalidRecordingError,
)
from fixturenet.logging import get_logger
from fixturenet.protocol.models import BEFORE_PERSIST, CapturedRequest, Disposition
from fixturenet.recording.entry import build_entry
from fixturenet.recording.models import CREATOR_NAME, Entry, Recording
from fixturenet.recording.store import RecordingData, Store

log = get_logger(__name__)

_MATCHED_DISPOSITIONS = (Disposition.RECORD, Disposition.REPLAY)


@dataclass
class PendingBucket:
    name: str
    requests: list[CapturedRequest] = field(default_factory=list)


def _check_recordable(request: CapturedRequest) -> None:
    response = request.response
    if response is None:
        raise FixtureNetError(
            "Cannot save a request with no response.",
            context={"method": request.method, "url": request.url},
        )
    if not response.ok and not request.config.record_failed_requests:
        raise FailedRequestNotRecordableError(request.method, request.url, response.status_code)


class RecordingCache:
    def __init__(self, store: Store) -> None:
        self._store = store
        self._pending: dict[str, PendingBucket] = {}
        self._memo: dict[str, asyncio.Task[Recording | None]] = {}
        self._write_locks: dict[str, asyncio.Lock] = {}

    @property
    def store(self) -> Store:
        return self._store

    @property
    def has_pending(self) -> bool:
        # A bucket is only ever created together with its first request.
        return bool(self._pending)

    def pending(self, recording_id: str) -> list[CapturedRequest]:
        bucket = self._pending.get(recording_id)
        return list(bucket.requests) if bucket else []

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def find_recording(self, recording_id: str) -> Recording | None:
        task = self._memo.get(recording_id)
        if task is None:
            task = asyncio.ensure_future(self._load(recording_id))
            self._memo[recording_id] = task
        # Shield so one cancelled caller doesn't cancel the shared load.
        return await asyncio.shield(task)

    async def find_entry(self, request: CapturedRequest) -> Entry | None:
        recording = await self.find_recording(request.recording_id)
        if recording is None:
            return None
        return recording.find_entry(request.id, request.order)

    async def _load(self, recording_id: str) -> Recording | None:
        try:
            data = await self._store.find(recording_id)
            if data is None:
                self._forget(recording_id)
                return None
            recording = self._validate(recording_id, data)
        except BaseException:
            self._forget(recording_id)
            raise
        log.debug("recording_loaded", recording_id=recording_id, entries=len(recording.entries))
        return recording

    @staticmethod
    def _validate(recording_id: str, data: RecordingData) -> Recording:
        log_data = data.get("log") if isinstance(data, dict) else None
        creator = (log_data or {}).get("creator") or {}
        if not log_data or creator.get("name") != CREATOR_NAME:
            raise InvalidRecordingError(recording_id, creator.get("name"))
        try:
            return Recording.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidRecordingError(recording_id, creator.get("name")) from exc

    def _forget(self, recording_id: str) -> None:
        """Drop the memoised lookup owned by the running task, if it is still current."""
        if self._memo.get(recording_id) is asyncio.current_task():
            del self._memo[recording_id]

    def invalidate(self, recording_id: str) -> None:
        self._memo.pop(recording_id, None)

    def _write_lock(self, recording_id: str) -> asyncio.Lock:
        """Serialise writes (flush, delete) to one recording id."""
        return self._write_locks.setdefault(recording_id, asyncio.Lock())

    # ------------------------------------------------------------------
    # Pending buffer
    # ------------------------------------------------------------------

    def enqueue(self, request: CapturedRequest) -> None:
        """Buffer a responded request for the next flush.

        Raises:
            FailedRequestNotRecordableError: The response is not ok and the
                request's config does not allow recording failures.
        """
        _check_recordable(request)
        bucket = self._pending.get(request.recording_id)
        if bucket is None:
            bucket = PendingBucket(name=request.recording_name)
            self._pending[request.recording_id] = bucket
        bucket.requests.append(request)

    async def flush(
        self,
        observed: Iterable[CapturedRequest] | None = None,
        keep_unused_requests: bool = False,
    ) -> None:
        """Persist every pending bucket.

        *observed* is every request seen in the current run; when given (and
        ``keep_unused_requests`` is off) stored entries that none of them
        recorded or replayed are evicted.  Recording ids are flushed
        concurrently and independently.  Buckets that failed are restored;
        the others stay persisted.

        Raises:
            FlushError: At least one recording failed to persist.
        """
        if not self._pending:
            return

        snapshot = self._pending
        self._pending = {}
        observed_list = None if observed is None else list(observed)

        try:
            results = await asyncio.gather(
                *(
                    self._flush_one(rid, bucket, observed_list, keep_unused_requests)
                    for rid, bucket in snapshot.items()
                ),
                return_exceptions=True,
            )
        except BaseException:
            for rid, bucket in snapshot.items():
                self._restore(rid, bucket)
            raise

        failures: dict[str, BaseException] = {}
        for (rid, bucket), result in zip(snapshot.items(), results):
            if isinstance(result, BaseException):
                failures[rid] = result
                self._restore(rid, bucket)
                log.error("recording_flush_failed", recording_id=rid, error=str(result))

        if failures:
            raise FlushError(failures) from next(iter(failures.values()))

    async def _flush_one(
        self,
        recording_id: str,
        bucket: PendingBucket,
        observed: list[CapturedRequest] | None,
        keep_unused_requests: bool,
    ) -> None:
        async with self._write_lock(recording_id):
            await self._write_bucket(recording_id, bucket, observed, keep_unused_requests)

    async def _write_bucket(
        self,
        recording_id: str,
        bucket: PendingBucket,
        observed: list[CapturedRequest] | None,
        keep_unused_requests: bool,
    ) -> None:
        existing = await self.find_recording(recording_id)
        if existing is None:
            recording = Recording.create(
                bucket.name, version=__version__, comment=f"store:{self._store.NAME}"
            )
        else:
            # Work on a copy; concurrent replays may hold the memoised one.
            recording = dataclasses.replace(existing, entries=list(existing.entries))

        entries: list[Entry] = []
        for request in bucket.requests:
            _check_recordable(request)
            entry = build_entry(request)
            # Last step before appending: hooks may rewrite the entry.
            entry = await request.emit(BEFORE_PERSIST, entry)
            entries.append(entry)

        recording.add_entries(entries)

        if observed is not None and not keep_unused_requests:
            used = {
                (r.id, r.order)
                for r in observed
                if r.recording_id == recording_id and r.disposition in _MATCHED_DISPOSITIONS
            }
            used.update(entry.key for entry in entries)
            removed = recording.retain(used)
            if removed:
                log.debug("unused_entries_removed", recording_id=recording_id, count=len(removed))

        await self._store.save(recording_id, recording.to_dict())
        self.invalidate(recording_id)
        log.info(
            "recording_persisted",
            recording_id=recording_id,
            new_entries=len(entries),
            total_entries=len(recording.entries),
        )

    def _restore(self, recording_id: str, bucket: PendingBucket) -> None:
        late = self._pending.get(recording_id)
        if late is not None:
            bucket.requests.extend(late.requests)
        self._pending[recording_id] = bucket

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def delete(self, recording_id: str) -> None:
        async with self._write_lock(recording_id):
            await self._store.delete(recording_id)
            self.invalidate(recording_id)
        log.info("recording_deleted", recording_id=recording_id)
