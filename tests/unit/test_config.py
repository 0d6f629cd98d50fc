"""Unit tests — RequestConfig and Settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from fixturenet.config import (
    Mode,
    RecordingDefaults,
    RequestConfig,
    Settings,
    StoreConfig,
    get_settings,
    override_settings,
)


@pytest.mark.unit
class TestRequestConfig:
    def test_defaults(self) -> None:
        config = RequestConfig()
        assert config.mode is Mode.REPLAY
        assert config.record_if_missing is True
        assert config.record_if_expired is False
        assert config.record_failed_requests is False
        assert config.expires_in is None
        assert config.keep_unused_requests is False
        assert config.match_requests_by.order is True
        assert config.match_requests_by.url.hash is False
        assert callable(config.timing)

    def test_frozen(self) -> None:
        config = RequestConfig()
        with pytest.raises(ValidationError):
            config.mode = Mode.RECORD  # type: ignore[misc]

    def test_invalid_expires_in_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RequestConfig(expires_in="soon")

    def test_numeric_expires_in_kept_as_string(self) -> None:
        assert RequestConfig(expires_in=1000).expires_in == "1000"

    def test_merge_returns_new_config(self) -> None:
        config = RequestConfig()
        merged = config.merge({"mode": "record", "expires_in": "7d"})
        assert merged.mode is Mode.RECORD
        assert merged.expires_in == "7d"
        assert config.mode is Mode.REPLAY

    def test_merge_nested_dicts(self) -> None:
        config = RequestConfig().merge({"match_requests_by": {"url": {"query": False}}})
        assert config.match_requests_by.url.query is False
        assert config.match_requests_by.url.hostname is True
        assert config.match_requests_by.headers is True

    def test_merge_replaces_sequences(self) -> None:
        config = RequestConfig().merge({"match_requests_by": {"exclude_headers": ["a", "b"]}})
        config = config.merge({"match_requests_by": {"exclude_headers": ["c"]}})
        assert config.match_requests_by.exclude_headers == ("c",)

    def test_merge_keeps_timing_function(self) -> None:
        async def timing(elapsed: float) -> None:
            return None

        config = RequestConfig(timing=timing).merge({"mode": Mode.RECORD})
        assert config.timing is timing


@pytest.mark.unit
class TestRecordingDefaults:
    def test_to_request_config(self) -> None:
        defaults = RecordingDefaults(mode=Mode.RECORD, expires_in="1d", timing_ms=10)
        config = defaults.to_request_config()
        assert config.mode is Mode.RECORD
        assert config.expires_in == "1d"
        assert callable(config.timing)


@pytest.mark.unit
class TestStoreConfig:
    def test_options_for_each_backend(self, tmp_path: Path) -> None:
        store = StoreConfig(recordings_dir=tmp_path / "r", db_path=tmp_path / "db.sqlite")
        assert store.options_for("filesystem") == {"recordings_dir": tmp_path / "r"}
        assert store.options_for("sqlite") == {"db_path": tmp_path / "db.sqlite"}
        assert store.options_for("rest") == {
            "host": "http://127.0.0.1:3000",
            "namespace": "/fixturenet",
            "timeout": 10.0,
        }
        assert store.options_for("memory") == {}


@pytest.mark.unit
class TestSettings:
    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setenv("FIXTURENET_STORE__BACKEND", "sqlite")
        monkeypatch.setenv("FIXTURENET_RECORDING__MODE", "record")
        settings = Settings()
        assert settings.store.backend == "sqlite"
        assert settings.recording.mode is Mode.RECORD

    def test_load_yaml_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "recording:\n"
            "  mode: record\n"
            "  expires_in: 7d\n"
            "store:\n"
            "  backend: filesystem\n"
            "  recordings_dir: ~/fixtures\n"
        )
        settings = Settings.load(config_file=config_file)
        assert settings.recording.mode is Mode.RECORD
        assert settings.recording.expires_in == "7d"
        assert settings.store.recordings_dir == tmp_path / "fixtures"

    def test_user_config_merged_under_explicit_file(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        user_dir = tmp_path / ".fixturenet"
        user_dir.mkdir()
        (user_dir / "config.yaml").write_text("server:\n  port: 4000\n  host: 0.0.0.0\n")
        explicit = tmp_path / "override.yaml"
        explicit.write_text("server:\n  port: 5000\n")

        settings = Settings.load(config_file=explicit)
        assert settings.server.port == 5000
        assert settings.server.host == "0.0.0.0"

    def test_env_overrides_file_values(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setenv("FIXTURENET_STORE__BACKEND", "memory")
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "store:\n"
            "  backend: sqlite\n"
            "  api_host: http://recordings.internal:3000\n"
        )

        settings = Settings.load(config_file=config_file)

        assert settings.store.backend == "memory"
        assert settings.store.api_host == "http://recordings.internal:3000"

    def test_missing_file_uses_defaults(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))
        settings = Settings.load(config_file=tmp_path / "absent.yaml")
        assert settings.store.backend == "filesystem"

    def test_override_settings(self, test_settings: Settings) -> None:
        assert get_settings() is test_settings
        replacement = Settings(store={"backend": "sqlite"})
        override_settings(replacement)
        assert get_settings() is replacement
