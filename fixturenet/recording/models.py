"""Recording data models (HAR 1.2).

A Recording is the durable log of every exchange captured for one logical
test scenario.  Entries are immutable snapshots; ``(id, order)`` identifies
an entry uniquely within its recording.

On disk the log uses HAR's camelCase keys plus the private ``_id``,
``_order`` and ``_recordingName`` fields.  ``dumps()`` sorts keys so the same
recording always serialises to the same bytes.
"""

from __future__ import annotations

import json
import platform
from dataclasses import dataclass, field
from typing import Any, Iterable

from fixturenet.timing import parse_timestamp

CREATOR_NAME = "fixturenet"
HAR_VERSION = "1.2"
HTTP_VERSION = "HTTP/1.1"
NOT_MEASURED = -1


@dataclass(frozen=True)
class NVPair:
    """A HAR name/value pair (headers, query string)."""

    name: str
    value: str
    from_type: str | None = None  # "array" when the header was list-valued

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"name": self.name, "value": self.value}
        if self.from_type:
            d["_fromType"] = self.from_type
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "NVPair":
        return cls(name=d["name"], value=d["value"], from_type=d.get("_fromType"))


@dataclass(frozen=True)
class PostData:
    mime_type: str
    text: str | None = None
    params: tuple[dict[str, Any], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"mimeType": self.mime_type, "params": list(self.params)}
        if self.text is not None:
            d["text"] = self.text
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "PostData":
        return cls(
            mime_type=d.get("mimeType", "text/plain"),
            text=d.get("text"),
            params=tuple(d.get("params", [])),
        )


@dataclass(frozen=True)
class EntryRequest:
    method: str
    url: str
    headers: tuple[NVPair, ...]
    headers_size: int
    query_string: tuple[NVPair, ...]
    cookies: tuple[dict[str, Any], ...]
    body_size: int
    post_data: PostData | None = None
    http_version: str = HTTP_VERSION

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "bodySize": self.body_size,
            "cookies": list(self.cookies),
            "headers": [h.to_dict() for h in self.headers],
            "headersSize": self.headers_size,
            "httpVersion": self.http_version,
            "method": self.method,
            "queryString": [q.to_dict() for q in self.query_string],
            "url": self.url,
        }
        if self.post_data is not None:
            d["postData"] = self.post_data.to_dict()
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "EntryRequest":
        post = d.get("postData")
        return cls(
            method=d["method"],
            url=d["url"],
            headers=tuple(NVPair.from_dict(h) for h in d.get("headers", [])),
            headers_size=d.get("headersSize", NOT_MEASURED),
            query_string=tuple(NVPair.from_dict(q) for q in d.get("queryString", [])),
            cookies=tuple(d.get("cookies", [])),
            body_size=d.get("bodySize", 0),
            post_data=PostData.from_dict(post) if post else None,
            http_version=d.get("httpVersion", HTTP_VERSION),
        )


@dataclass(frozen=True)
class Content:
    mime_type: str
    size: int
    text: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"mimeType": self.mime_type, "size": self.size}
        if self.text is not None:
            d["text"] = self.text
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Content":
        return cls(mime_type=d.get("mimeType", "text/plain"), size=d.get("size", 0), text=d.get("text"))


@dataclass(frozen=True)
class EntryResponse:
    status: int
    status_text: str
    headers: tuple[NVPair, ...]
    headers_size: int
    redirect_url: str
    cookies: tuple[dict[str, Any], ...]
    content: Content
    body_size: int
    http_version: str = HTTP_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "bodySize": self.body_size,
            "content": self.content.to_dict(),
            "cookies": list(self.cookies),
            "headers": [h.to_dict() for h in self.headers],
            "headersSize": self.headers_size,
            "httpVersion": self.http_version,
            "redirectURL": self.redirect_url,
            "status": self.status,
            "statusText": self.status_text,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "EntryResponse":
        return cls(
            status=d["status"],
            status_text=d.get("statusText", ""),
            headers=tuple(NVPair.from_dict(h) for h in d.get("headers", [])),
            headers_size=d.get("headersSize", NOT_MEASURED),
            redirect_url=d.get("redirectURL", ""),
            cookies=tuple(d.get("cookies", [])),
            content=Content.from_dict(d.get("content", {})),
            body_size=d.get("bodySize", 0),
            http_version=d.get("httpVersion", HTTP_VERSION),
        )


@dataclass(frozen=True)
class Timings:
    """Per-phase timings in ms; ``NOT_MEASURED`` (-1) marks skipped phases."""

    blocked: float = NOT_MEASURED
    dns: float = NOT_MEASURED
    connect: float = NOT_MEASURED
    send: float = 0
    wait: float = 0
    receive: float = 0
    ssl: float = NOT_MEASURED

    def total(self) -> float:
        phases = (self.blocked, self.dns, self.connect, self.send, self.wait, self.receive, self.ssl)
        return sum(p for p in phases if p > 0)

    def to_dict(self) -> dict[str, float]:
        return {
            "blocked": self.blocked,
            "connect": self.connect,
            "dns": self.dns,
            "receive": self.receive,
            "send": self.send,
            "ssl": self.ssl,
            "wait": self.wait,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Timings":
        return cls(**{k: d[k] for k in ("blocked", "dns", "connect", "send", "wait", "receive", "ssl") if k in d})


@dataclass(frozen=True)
class Entry:
    """One recorded request/response exchange."""

    id: str
    order: int
    started_date_time: str
    request: EntryRequest
    response: EntryResponse
    timings: Timings
    time: float

    @property
    def key(self) -> tuple[str, int]:
        return (self.id, self.order)

    def to_dict(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "_order": self.order,
            "cache": {},
            "request": self.request.to_dict(),
            "response": self.response.to_dict(),
            "startedDateTime": self.started_date_time,
            "time": self.time,
            "timings": self.timings.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Entry":
        timings = Timings.from_dict(d.get("timings", {}))
        return cls(
            id=d["_id"],
            order=d.get("_order", 0),
            started_date_time=d["startedDateTime"],
            request=EntryRequest.from_dict(d["request"]),
            response=EntryResponse.from_dict(d["response"]),
            timings=timings,
            time=d.get("time", timings.total()),
        )


@dataclass
class Creator:
    name: str
    version: str
    comment: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"comment": self.comment, "name": self.name, "version": self.version}


@dataclass
class Browser:
    """Runtime provenance of the process that produced the recording."""

    name: str
    version: str = ""

    @classmethod
    def current(cls) -> "Browser":
        return cls(name=platform.python_implementation(), version=platform.python_version())

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "version": self.version}


@dataclass
class Recording:
    """A HAR log: ordered entries plus provenance metadata."""

    creator: Creator
    recording_name: str = ""
    entries: list[Entry] = field(default_factory=list)
    browser: Browser | None = None
    version: str = HAR_VERSION
    pages: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def create(cls, recording_name: str, version: str, comment: str = "") -> "Recording":
        return cls(
            creator=Creator(name=CREATOR_NAME, version=version, comment=comment),
            recording_name=recording_name,
            browser=Browser.current(),
        )

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def add_entries(self, entries: Iterable[Entry]) -> None:
        """Merge *entries* in; on an ``(id, order)`` collision the new entry wins."""
        merged: dict[tuple[str, int], Entry] = {}
        for entry in [*entries, *self.entries]:
            merged.setdefault(entry.key, entry)
        self.entries = list(merged.values())
        self.sort_entries()

    def sort_entries(self) -> None:
        self.entries.sort(key=lambda e: parse_timestamp(e.started_date_time))

    def find_entry(self, id: str, order: int) -> Entry | None:
        for entry in self.entries:
            if entry.id == id and entry.order == order:
                return entry
        return None

    def retain(self, keys: set[tuple[str, int]]) -> list[Entry]:
        """Keep only entries whose ``(id, order)`` is in *keys*; return the removed ones."""
        removed = [e for e in self.entries if e.key not in keys]
        self.entries = [e for e in self.entries if e.key in keys]
        return removed

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        log: dict[str, Any] = {
            "_recordingName": self.recording_name,
            "creator": self.creator.to_dict(),
            "entries": [e.to_dict() for e in self.entries],
            "pages": list(self.pages),
            "version": self.version,
        }
        if self.browser is not None:
            log["browser"] = self.browser.to_dict()
        return {"log": log}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Recording":
        log = data["log"]
        creator = log.get("creator") or {}
        browser = log.get("browser")
        return cls(
            creator=Creator(
                name=creator.get("name", ""),
                version=creator.get("version", ""),
                comment=creator.get("comment", ""),
            ),
            recording_name=log.get("_recordingName", ""),
            entries=[Entry.from_dict(e) for e in log.get("entries", [])],
            browser=Browser(name=browser["name"], version=browser.get("version", "")) if browser else None,
            version=log.get("version", HAR_VERSION),
            pages=list(log.get("pages", [])),
        )

    def dumps(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True, ensure_ascii=False)

    @classmethod
    def loads(cls, text: str) -> "Recording":
        return cls.from_dict(json.loads(text))
