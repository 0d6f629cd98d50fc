"""Case-insensitive header multimap.

Every key is lower-cased on insert and lookup, so ``headers["Content-Type"]``
and ``headers["content-type"]`` address the same value.  A value is either a
string or a list of strings (repeated headers such as ``Set-Cookie``).
Assigning ``None`` removes the header.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from typing import Union

HeaderValue = Union[str, list[str]]


class HTTPHeaders(MutableMapping[str, HeaderValue]):
    def __init__(
        self,
        headers: Mapping[str, HeaderValue | None]
        | Iterable[tuple[str, HeaderValue | None]]
        | None = None,
    ) -> None:
        self._data: dict[str, HeaderValue] = {}
        if headers is None:
            return
        items = headers.items() if isinstance(headers, Mapping) else headers
        for name, value in items:
            self[name] = value

    def __getitem__(self, name: str) -> HeaderValue:
        return self._data[name.lower()]

    def __setitem__(self, name: str, value: HeaderValue | None) -> None:
        if value is None:
            self._data.pop(name.lower(), None)
        elif isinstance(value, (list, tuple)):
            self._data[name.lower()] = [str(v) for v in value]
        else:
            self._data[name.lower()] = str(value)

    def __delitem__(self, name: str) -> None:
        del self._data[name.lower()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"HTTPHeaders({self._data!r})"

    def add(self, name: str, value: str) -> None:
        """Append *value*, turning an existing single value into a list."""
        key = name.lower()
        existing = self._data.get(key)
        if existing is None:
            self._data[key] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            self._data[key] = [existing, value]

    def first(self, name: str) -> str | None:
        """Return the first value for *name*, or None."""
        value = self._data.get(name.lower())
        if isinstance(value, list):
            return value[0] if value else None
        return value

    def copy(self) -> "HTTPHeaders":
        return HTTPHeaders(
            {k: list(v) if isinstance(v, list) else v for k, v in self._data.items()}
        )

    def to_dict(self) -> dict[str, HeaderValue]:
        return {k: list(v) if isinstance(v, list) else v for k, v in self._data.items()}
