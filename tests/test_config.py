"""Tests for Config model, configure(), and credential resolution."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import pytest
from pydantic import ValidationError

from ndvitrend.config import (
    _CREDENTIALS_ENV_VAR,
    Config,
    _check_file_permissions,
    configure,
    get_default_config,
    load_credentials,
    resolve_credentials_path,
)
from ndvitrend.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def _reset_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset module-level config before each test."""
    import ndvitrend.config as _cfg

    monkeypatch.setattr(_cfg, "_default_config", Config())


@pytest.mark.unit
class TestConfigDefaults:
    """Verify Config constructs with correct defaults."""

    def test_defaults(self) -> None:
        cfg = Config()
        assert cfg.project is None
        assert cfg.service_account_key is None
        assert cfg.cache_size_mb == 500
        assert cfg.cache_ttl_hours == 24.0
        assert cfg.max_pixels == 1e13
        assert cfg.best_effort is True
        assert cfg.default_crs == "EPSG:4326"

    def test_cache_dir_default_expands_home(self) -> None:
        cfg = Config()
        assert cfg.cache_dir.is_absolute()
        assert "~" not in str(cfg.cache_dir)


@pytest.mark.unit
class TestConfigExplicit:
    """Verify Config constructs with explicit values."""

    def test_explicit_values(self, tmp_path: Path) -> None:
        key = tmp_path / "key.json"
        cfg = Config(
            project="my-ee-project",
            service_account_key=key,
            cache_dir=tmp_path / "cache",
            cache_size_mb=100,
            cache_ttl_hours=1.5,
            max_pixels=1e9,
            best_effort=False,
            default_crs="EPSG:32645",
        )
        assert cfg.project == "my-ee-project"
        assert cfg.service_account_key == key
        assert cfg.cache_dir == tmp_path / "cache"
        assert cfg.cache_size_mb == 100
        assert cfg.cache_ttl_hours == 1.5
        assert cfg.max_pixels == 1e9
        assert cfg.best_effort is False
        assert cfg.default_crs == "EPSG:32645"

    def test_string_paths_converted(self, tmp_path: Path) -> None:
        cfg = Config(cache_dir=str(tmp_path), service_account_key=str(tmp_path / "k"))
        assert isinstance(cfg.cache_dir, Path)
        assert isinstance(cfg.service_account_key, Path)

    def test_key_path_tilde_expanded(self) -> None:
        cfg = Config(service_account_key="~/key.json")
        assert cfg.service_account_key is not None
        assert cfg.service_account_key.is_absolute()


@pytest.mark.unit
class TestConfigImmutable:
    """Verify Config is frozen."""

    def test_frozen_field_raises(self) -> None:
        cfg = Config()
        with pytest.raises(ValidationError):
            cfg.cache_size_mb = 999  # type: ignore[misc]


@pytest.mark.unit
class TestConfigValidation:
    """Verify field validators reject invalid inputs."""

    @pytest.mark.parametrize("size", [0, -1])
    def test_cache_size_must_be_positive(self, size: int) -> None:
        with pytest.raises(ValidationError, match="cache_size_mb"):
            Config(cache_size_mb=size)

    @pytest.mark.parametrize("field", ["cache_ttl_hours", "max_pixels"])
    def test_positive_floats(self, field: str) -> None:
        with pytest.raises(ValidationError, match=field):
            Config(**{field: 0})

    @pytest.mark.parametrize("crs", ["epsg:4326", "EPSG:", "WGS84", ""])
    def test_invalid_crs_rejected(self, crs: str) -> None:
        with pytest.raises(ValidationError, match="default_crs"):
            Config(default_crs=crs)

    def test_extra_fields_rejected(self) -> None:
        with pytest.raises(ValidationError, match="extra"):
            Config(nonexistent_field="value")


@pytest.mark.unit
class TestConfigure:
    """Verify configure() updates module-level config."""

    def test_configure_updates_default(self) -> None:
        configure(project="ee-project")
        assert get_default_config().project == "ee-project"

    def test_configure_partial_merges_with_defaults(self) -> None:
        configure(cache_size_mb=50)
        cfg = get_default_config()
        assert cfg.cache_size_mb == 50
        assert cfg.default_crs == "EPSG:4326"

    def test_configure_replaces_previous(self) -> None:
        configure(cache_size_mb=10)
        configure(cache_size_mb=20)
        assert get_default_config().cache_size_mb == 20

    def test_configure_invalid_value_raises(self) -> None:
        with pytest.raises(ValidationError):
            configure(max_pixels=-1)


@pytest.mark.unit
class TestResolveCredentialsPath:
    """Verify service-account key path resolution priority."""

    def test_explicit_path_highest_priority(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        explicit = tmp_path / "explicit.json"
        explicit.write_text("{}")
        env_path = tmp_path / "env.json"
        env_path.write_text("{}")
        monkeypatch.setenv(_CREDENTIALS_ENV_VAR, str(env_path))

        assert resolve_credentials_path(explicit=explicit) == explicit

    def test_env_var_second_priority(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        env_path = tmp_path / "env-key.json"
        env_path.write_text("{}")
        monkeypatch.setenv(_CREDENTIALS_ENV_VAR, str(env_path))

        assert resolve_credentials_path() == env_path

    def test_default_path_lowest_priority(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv(_CREDENTIALS_ENV_VAR, raising=False)
        default = tmp_path / "service-account.json"
        monkeypatch.setattr("ndvitrend.config._DEFAULT_CREDENTIALS_PATH", default)
        assert resolve_credentials_path() is None

        default.write_text("{}")
        assert resolve_credentials_path() == default

    def test_returns_none_when_file_missing(self, tmp_path: Path) -> None:
        assert resolve_credentials_path(explicit=tmp_path / "missing.json") is None


@pytest.mark.unit
class TestFilePermissions:
    """Verify the permission warning on POSIX systems."""

    @staticmethod
    def _make_fake_stat(real_path: Path, desired_mode: int) -> Any:
        original_stat = Path.stat

        def patched_stat(self: Path, **kwargs: Any) -> os.stat_result:
            result = original_stat(self, **kwargs)
            if self == real_path:
                return os.stat_result(
                    ((result.st_mode & ~0o777) | desired_mode, *tuple(result)[1:])
                )
            return result

        return patched_stat

    def test_warning_logged_for_permissive_file(
        self,
        tmp_path: Path,
        caplog: pytest.LogCaptureFixture,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr("ndvitrend.config.sys.platform", "linux")
        key = tmp_path / "key.json"
        key.write_text("{}")
        monkeypatch.setattr(Path, "stat", self._make_fake_stat(key, 0o644))

        with caplog.at_level(logging.WARNING, logger="ndvitrend"):
            _check_file_permissions(key)

        assert "overly permissive" in caplog.text

    def test_no_warning_for_secure_file(
        self,
        tmp_path: Path,
        caplog: pytest.LogCaptureFixture,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr("ndvitrend.config.sys.platform", "linux")
        key = tmp_path / "key.json"
        key.write_text("{}")
        monkeypatch.setattr(Path, "stat", self._make_fake_stat(key, 0o600))

        with caplog.at_level(logging.WARNING, logger="ndvitrend"):
            _check_file_permissions(key)

        assert "overly permissive" not in caplog.text

    def test_no_warning_on_windows(
        self,
        tmp_path: Path,
        caplog: pytest.LogCaptureFixture,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr("ndvitrend.config.sys.platform", "win32")
        key = tmp_path / "key.json"
        key.write_text("{}")

        with caplog.at_level(logging.WARNING, logger="ndvitrend"):
            _check_file_permissions(key)

        assert "overly permissive" not in caplog.text


@pytest.mark.unit
class TestLoadCredentials:
    """Verify service-account key loading and error handling."""

    def test_valid_key_loaded(self, tmp_path: Path) -> None:
        data = {
            "type": "service_account",
            "client_email": "ee@project.iam.gserviceaccount.com",
            "project_id": "project",
        }
        key = tmp_path / "key.json"
        key.write_text(json.dumps(data))
        assert load_credentials(key) == data

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Cannot read") as exc_info:
            load_credentials(tmp_path / "gone.json")
        assert "gone.json" in str(exc_info.value)
        assert _CREDENTIALS_ENV_VAR in exc_info.value.fix

    def test_invalid_json_raises(self, tmp_path: Path) -> None:
        key = tmp_path / "key.json"
        key.write_text('{"private_key": "SUPER_SECRET" }{')
        with pytest.raises(ConfigurationError, match="Invalid service account") as exc_info:
            load_credentials(key)
        assert "SUPER_SECRET" not in str(exc_info.value)

    def test_non_dict_json_raises(self, tmp_path: Path) -> None:
        key = tmp_path / "key.json"
        key.write_text("[1, 2, 3]")
        with pytest.raises(ConfigurationError, match="Expected a JSON object"):
            load_credentials(key)

    def test_missing_client_email_raises(self, tmp_path: Path) -> None:
        key = tmp_path / "key.json"
        key.write_text(json.dumps({"installed": {"client_id": "x"}}))
        with pytest.raises(ConfigurationError, match="client_email"):
            load_credentials(key)
