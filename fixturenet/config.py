"""fixturenet — Configuration.

Two layers:

``RequestConfig``
    The frozen, per-request snapshot consumed by the disposition engine and
    the cache.  A session holds one and every captured request receives the
    instance current at the time it was registered, so reconfiguring a
    session never races with requests already in flight.

``Settings``
    Process-level settings for the CLI and recordings server, loaded from
    (in order of increasing priority):
        1. Built-in defaults (this file)
        2. User config:   ~/.fixturenet/config.yaml
        3. An explicit config file
        4. Environment variables prefixed with FIXTURENET_
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fixturenet.timing import Timing, TimingFn, parse_duration


class Mode(str, Enum):
    RECORD = "record"
    REPLAY = "replay"
    PASSTHROUGH = "passthrough"


# ---------------------------------------------------------------------------
# Request matching
# ---------------------------------------------------------------------------


class UrlMatchConfig(BaseModel):
    """Which URL components take part in a request's fingerprint."""

    model_config = ConfigDict(frozen=True)

    protocol: bool = True
    username: bool = True
    password: bool = True
    hostname: bool = True
    port: bool = True
    pathname: bool = True
    query: bool = True
    hash: bool = False


class MatchRequestsBy(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: bool = True
    headers: bool = True
    exclude_headers: tuple[str, ...] = Field(
        default=(),
        description="Header names left out of the fingerprint (case-insensitive).",
    )
    body: bool = True
    order: bool = True
    url: UrlMatchConfig = Field(default_factory=UrlMatchConfig)


# ---------------------------------------------------------------------------
# Per-request configuration
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            # Lists, tuples and callables replace rather than merge.
            merged[key] = value
    return merged


class RequestConfig(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    mode: Mode = Mode.REPLAY
    record_if_missing: bool = True
    record_if_expired: bool = False
    record_failed_requests: bool = False
    expires_in: str | None = Field(
        default=None,
        description="Age after which a recorded entry is stale, e.g. '7d'. None = never.",
    )
    timing: TimingFn = Field(
        default_factory=lambda: Timing.fixed(0),
        description="Async callable awaited with the entry's recorded time (ms) before replay.",
    )
    keep_unused_requests: bool = False
    match_requests_by: MatchRequestsBy = Field(default_factory=MatchRequestsBy)

    @field_validator("expires_in", mode="before")
    @classmethod
    def validate_expires_in(cls, v: object) -> object:
        if v is None:
            return v
        if isinstance(v, (int, float)):
            v = str(v)
        if isinstance(v, str):
            parse_duration(v)
        return v

    def merge(self, overrides: dict[str, Any]) -> "RequestConfig":
        """Return a new config with *overrides* deep-merged over this one."""
        merged = _deep_merge(self.model_dump(), overrides)
        return RequestConfig.model_validate(merged)


# ---------------------------------------------------------------------------
# Process settings
# ---------------------------------------------------------------------------


class RecordingDefaults(BaseModel):
    """Serialisable defaults used to build a session's initial RequestConfig."""

    mode: Mode = Mode.REPLAY
    record_if_missing: bool = True
    record_if_expired: bool = False
    record_failed_requests: bool = False
    expires_in: str | None = None
    timing_ms: float = Field(default=0.0, ge=0.0, description="Fixed replay delay in ms.")
    keep_unused_requests: bool = False
    match_requests_by: MatchRequestsBy = Field(default_factory=MatchRequestsBy)

    def to_request_config(self) -> RequestConfig:
        return RequestConfig(
            mode=self.mode,
            record_if_missing=self.record_if_missing,
            record_if_expired=self.record_if_expired,
            record_failed_requests=self.record_failed_requests,
            expires_in=self.expires_in,
            timing=Timing.fixed(self.timing_ms),
            keep_unused_requests=self.keep_unused_requests,
            match_requests_by=self.match_requests_by,
        )


class StoreConfig(BaseModel):
    backend: str = Field(
        default="filesystem",
        description="Registered store backend name: memory, filesystem, sqlite or rest.",
    )
    recordings_dir: Path = Path("recordings")
    db_path: Path = Path("~/.fixturenet/recordings.db")
    api_host: str = "http://127.0.0.1:3000"
    api_namespace: str = "/fixturenet"
    timeout_seconds: float = Field(default=10.0, gt=0)

    def options_for(self, backend: str) -> dict[str, Any]:
        """Constructor keyword arguments for the named backend."""
        if backend == "filesystem":
            return {"recordings_dir": self.recordings_dir}
        if backend == "sqlite":
            return {"db_path": self.db_path}
        if backend == "rest":
            return {
                "host": self.api_host,
                "namespace": self.api_namespace,
                "timeout": self.timeout_seconds,
            }
        return {}


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(default=3000, ge=1, le=65535)
    recordings_dir: Path = Path("recordings")
    api_namespace: str = "/fixturenet"


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FIXTURENET_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    recording: RecordingDefaults = Field(default_factory=RecordingDefaults)
    store: StoreConfig = Field(default_factory=StoreConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("store", mode="before")
    @classmethod
    def expand_store_paths(cls, v: object) -> object:
        if isinstance(v, dict):
            for key in ("recordings_dir", "db_path"):
                if key in v and isinstance(v[key], str):
                    v[key] = Path(v[key]).expanduser()
        return v

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Load settings from the YAML files, then apply FIXTURENET_* variables.

        Values passed to the constructor outrank environment variables in
        pydantic-settings, so the variables that are actually set are merged
        over the file values before construction.
        """
        data: dict[str, Any] = {}

        candidates = [Path.home() / ".fixturenet" / "config.yaml"]
        if config_file:
            candidates.append(config_file)

        for path in candidates:
            if path.exists():
                import yaml  # lazy import, only needed when a file exists

                with path.open() as f:
                    loaded = yaml.safe_load(f) or {}
                    data = _deep_merge(data, loaded)

        from_env = cls().model_dump(exclude_unset=True)
        return cls(**_deep_merge(data, from_env))


# Module-level singleton, replaced by ``Settings.load()`` at CLI startup.
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def override_settings(settings: Settings) -> None:
    """Replace the module-level singleton. Used in tests."""
    global _settings
    _settings = settings
