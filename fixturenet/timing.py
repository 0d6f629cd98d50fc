"""Timing helpers — replay delays, durations and expiration.

A *timing function* is an async callable receiving the recorded elapsed time
of an entry (milliseconds) and sleeping for however long the replay should
appear to take::

    config = RequestConfig(timing=Timing.relative(1.0))   # real-time replay
    config = RequestConfig(timing=Timing.fixed(50))       # always 50ms

Durations (``expires_in``) are human strings such as ``"1d"``,
``"2 hours 30 minutes"`` or ``"1y 6mo"``; bare numbers are milliseconds.
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

TimingFn = Callable[[float], Awaitable[None]]

_SECOND = 1000.0
_MINUTE = 60 * _SECOND
_HOUR = 60 * _MINUTE
_DAY = 24 * _HOUR
_WEEK = 7 * _DAY
_MONTH = 30 * _DAY
_YEAR = 365 * _DAY

_UNITS_MS: dict[str, float] = {
    "ms": 1.0,
    "millisecond": 1.0,
    "milliseconds": 1.0,
    "s": _SECOND,
    "sec": _SECOND,
    "secs": _SECOND,
    "second": _SECOND,
    "seconds": _SECOND,
    "m": _MINUTE,
    "min": _MINUTE,
    "mins": _MINUTE,
    "minute": _MINUTE,
    "minutes": _MINUTE,
    "h": _HOUR,
    "hr": _HOUR,
    "hrs": _HOUR,
    "hour": _HOUR,
    "hours": _HOUR,
    "d": _DAY,
    "day": _DAY,
    "days": _DAY,
    "w": _WEEK,
    "wk": _WEEK,
    "week": _WEEK,
    "weeks": _WEEK,
    "mo": _MONTH,
    "month": _MONTH,
    "months": _MONTH,
    "y": _YEAR,
    "yr": _YEAR,
    "year": _YEAR,
    "years": _YEAR,
}

_TERM_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([a-zA-Z]+)")


def parse_duration(value: str | int | float) -> float:
    """Return *value* in milliseconds.

    Raises:
        ValueError: The string contains an unknown unit or stray characters.
    """
    if isinstance(value, (int, float)):
        return float(value)

    text = value.strip().lower()
    if not text:
        raise ValueError("Empty duration")
    if re.fullmatch(r"\d+(?:\.\d+)?", text):
        return float(text)

    total = 0.0
    consumed = 0
    for match in _TERM_RE.finditer(text):
        if text[consumed:match.start()].strip(" ,"):
            raise ValueError(f"Invalid duration: {value!r}")
        amount, unit = match.groups()
        if unit not in _UNITS_MS:
            raise ValueError(f"Unknown duration unit {unit!r} in {value!r}")
        total += float(amount) * _UNITS_MS[unit]
        consumed = match.end()

    if consumed == 0 or text[consumed:].strip(" ,"):
        raise ValueError(f"Invalid duration: {value!r}")
    return total


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 with millisecond precision and a ``Z`` suffix."""
    return (
        moment.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def parse_timestamp(value: str) -> datetime:
    moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def is_expired(
    started_date_time: str,
    expires_in: str | int | float | None,
    now: datetime | None = None,
) -> bool:
    """True when ``started_date_time + expires_in`` is not in the future."""
    if expires_in is None:
        return False
    started = parse_timestamp(started_date_time)
    expires_at = started + timedelta(milliseconds=parse_duration(expires_in))
    return expires_at <= (now or utc_now())


class Timing:
    """Factories for replay timing functions."""

    @staticmethod
    def fixed(ms: float) -> TimingFn:
        """Delay every replayed response by *ms* milliseconds."""

        async def _fixed(_elapsed: float) -> None:
            await asyncio.sleep(ms / 1000)

        return _fixed

    @staticmethod
    def relative(ratio: float) -> TimingFn:
        """Delay by *ratio* times the recorded elapsed time."""

        async def _relative(elapsed: float) -> None:
            await asyncio.sleep(ratio * elapsed / 1000)

        return _relative
