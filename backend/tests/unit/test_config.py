"""Tests for configuration functionality."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

import pytest
from pydantic import ValidationError

from helixio.core.config import Settings, get_settings, reload_settings


def test_settings_defaults(isolated_data_dir: Path) -> None:
    """Test that settings have correct defaults."""
    os.environ.pop("HELIXIO_ENV", None)
    settings = Settings()

    assert settings.env == "development"
    assert settings.host_bind_address == "127.0.0.1"
    assert settings.host_port == 8000
    assert settings.log_level == "INFO"
    assert settings.database_url.startswith("sqlite+aiosqlite:///")
    assert settings.database_url.endswith("helixio.db")
    assert settings.is_debug is True
    assert settings.is_production is False
    assert settings.is_testing is False

    assert settings.data_dir == isolated_data_dir.resolve()
    assert settings.config_dir == settings.data_dir / "config"
    assert settings.database_dir == settings.data_dir / "database"
    assert settings.cache_dir == settings.data_dir / "cache"
    assert settings.logs_dir == settings.data_dir / "logs"


def test_settings_creates_directories(isolated_data_dir: Path) -> None:
    """Test that data directories are created on construction."""
    settings = Settings()

    for directory in (settings.config_dir, settings.database_dir, settings.cache_dir, settings.logs_dir):
        assert directory.is_dir()


def test_settings_from_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that settings can be loaded from environment variables."""
    monkeypatch.setenv("HELIXIO_ENV", "production")
    monkeypatch.setenv("HELIXIO_HOST_BIND_ADDRESS", "0.0.0.0")
    monkeypatch.setenv("HELIXIO_HOST_PORT", "9000")

    settings = reload_settings()

    assert settings.env == "production"
    assert settings.host_bind_address == "0.0.0.0"
    assert settings.host_port == 9000
    assert settings.is_production is True
    assert settings.is_debug is False


def test_settings_from_env_file(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that settings can be loaded from .env file."""
    monkeypatch.delenv("HELIXIO_ENV", raising=False)
    with tempfile.TemporaryDirectory() as tmpdir:
        env_file = Path(tmpdir) / ".env"
        env_file.write_text(
            "HELIXIO_ENV=testing\n"
            "HELIXIO_HOST_BIND_ADDRESS=localhost\n"
            "HELIXIO_HOST_PORT=8080\n"
            "HELIXIO_LOG_LEVEL=DEBUG\n"
        )

        settings = Settings(_env_file=str(env_file))

        assert settings.env == "testing"
        assert settings.host_bind_address == "localhost"
        assert settings.host_port == 8080
        assert settings.log_level == "DEBUG"
        assert settings.is_testing is True


def test_settings_from_json_file(isolated_data_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that settings.json supplies values, with the nested host section flattened."""
    monkeypatch.delenv("HELIXIO_ENV", raising=False)
    config_dir = isolated_data_dir / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "settings.json").write_text(
        json.dumps(
            {
                "host": {"bind_address": "0.0.0.0", "port": 8123},
                "log_level": "WARNING",
                "metadata": {"enabled_sources": ["comicvine"]},
            }
        )
    )

    settings = reload_settings()

    assert settings.host_bind_address == "0.0.0.0"
    assert settings.host_port == 8123
    assert settings.log_level == "WARNING"


def test_env_vars_override_json_file(isolated_data_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that environment variables take priority over settings.json."""
    config_dir = isolated_data_dir / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "settings.json").write_text(json.dumps({"host": {"port": 8123}}))
    monkeypatch.setenv("HELIXIO_HOST_PORT", "9100")

    assert reload_settings().host_port == 9100


def test_get_settings_cached() -> None:
    """Test that get_settings returns the cached instance."""
    assert get_settings() is get_settings()


def test_reload_settings_returns_new_instance() -> None:
    settings1 = get_settings()
    settings2 = reload_settings()

    assert settings1 is not settings2
    assert get_settings() is settings2


def test_settings_port_validation() -> None:
    """Test that port validation works."""
    with pytest.raises(ValidationError):
        Settings(host_port=0)

    with pytest.raises(ValidationError):
        Settings(host_port=65536)

    assert Settings(host_port=1).host_port == 1
    assert Settings(host_port=65535).host_port == 65535


def test_settings_env_validation() -> None:
    """Test that env validation works."""
    with pytest.raises(ValidationError):
        Settings(env="invalid")  # type: ignore[arg-type]
