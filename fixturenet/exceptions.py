"""fixturenet — Exception hierarchy.

All exceptions raised by the library inherit from FixtureNetError so that
callers can catch the full family with a single except clause when needed.

Hierarchy:
    FixtureNetError
    ├── FatalError                         (never retried)
    │   ├── ConfigurationError
    │   ├── InvalidRecordingError
    │   ├── RecordingNotFoundError
    │   ├── FailedRequestNotRecordableError
    │   └── CompletionError
    ├── PolicyWarning
    │   └── ExpiredRecordingError
    ├── StoreError
    │   ├── StoreNotFoundError
    │   └── FlushError
    └── InterceptorError
"""

from __future__ import annotations

from typing import Any


class FixtureNetError(Exception):
    """Base exception for all fixturenet errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


# ---------------------------------------------------------------------------
# Fatal (non-retryable) errors
# ---------------------------------------------------------------------------


class FatalError(FixtureNetError):
    """Misconfiguration or corrupt state.  Retrying the request will not help."""


class ConfigurationError(FatalError):
    """The session is missing a collaborator required for the current mode."""


class InvalidRecordingError(FatalError):
    """A stored recording was not produced by fixturenet."""

    def __init__(self, recording_id: str, creator: str | None = None) -> None:
        super().__init__(
            f"Recording with id '{recording_id}' is invalid. "
            "Please delete the recording so a new one can be created.",
            context={"recording_id": recording_id, "creator": creator},
        )
        self.recording_id = recording_id
        self.creator = creator


class RecordingNotFoundError(FatalError):
    """Replay found no entry for the request and ``record_if_missing`` is off."""

    def __init__(self, request_description: str, recording_id: str) -> None:
        super().__init__(
            "Recording for the following request is not found and "
            f"`record_if_missing` is `false`.\n{request_description}",
            context={"recording_id": recording_id},
        )
        self.recording_id = recording_id


class FailedRequestNotRecordableError(FatalError):
    """A non-ok response was about to be recorded with ``record_failed_requests`` off."""

    def __init__(self, method: str, url: str, status_code: int) -> None:
        super().__init__(
            f"Cannot persist response for [{method}] {url} because the status code "
            f"was {status_code} and `record_failed_requests` is `false`",
            context={"method": method, "url": url, "status_code": status_code},
        )
        self.method = method
        self.url = url
        self.status_code = status_code


class CompletionError(FatalError):
    """A one-shot value (completion handle, disposition) was set twice."""


# ---------------------------------------------------------------------------
# Policy warnings
# ---------------------------------------------------------------------------


class PolicyWarning(FixtureNetError):
    """The request was deliberately left without a response by policy."""


class ExpiredRecordingError(PolicyWarning):
    """The recorded entry has expired and cannot be re-recorded."""

    def __init__(self, method: str, url: str, reason: str) -> None:
        super().__init__(
            f"Recording for [{method}] {url} has expired: {reason}",
            context={"method": method, "url": url, "reason": reason},
        )
        self.method = method
        self.url = url
        self.reason = reason


# ---------------------------------------------------------------------------
# Store layer
# ---------------------------------------------------------------------------


class StoreError(FixtureNetError):
    """A store backend failed to read, write or delete a recording."""


class StoreNotFoundError(StoreError):
    """No store backend with the given name is registered."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Store backend '{name}' is not registered",
            context={"name": name},
        )
        self.name = name


class FlushError(StoreError):
    """One or more recordings failed to persist during a flush."""

    def __init__(self, failures: dict[str, BaseException]) -> None:
        super().__init__(
            "Failed to persist recordings: "
            + ", ".join(f"{rid} ({exc})" for rid, exc in failures.items()),
            context={"recording_ids": sorted(failures)},
        )
        self.failures = failures


# ---------------------------------------------------------------------------
# Synthetic handlers
# ---------------------------------------------------------------------------


class InterceptorError(FixtureNetError):
    """A synthetic handler asked for both intercept and passthrough."""
