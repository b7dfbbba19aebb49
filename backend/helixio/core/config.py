"""Application configuration using Pydantic Settings."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

# Top-level keys in settings.json that belong to feature sections, not to Settings fields
JSON_ONLY_SECTIONS = ("metadata", "similarity", "external_apis")


def _default_data_dir() -> Path:
    """Resolve the data directory used when HELIXIO_DATA_DIR is not set."""
    if Path("/config").exists():
        # Container environment
        return Path("/config")
    # __file__ is backend/helixio/core/config.py, so go up to backend/ and add data
    return (Path(__file__).parent.parent.parent / "data").resolve()


def json_config_settings_source(
    settings: BaseSettings | None = None,
) -> dict[str, Any]:  # noqa: ANN001
    """Load settings from settings.json file.

    This source has lowest priority - env vars will override JSON values.

    Args:
        settings: The Settings class (not instance) being constructed.

    Returns:
        Dictionary with setting keys (lowercase) and values from JSON file.
        Feature sections (metadata, similarity, external_apis) are skipped;
        they are read through settings_persistence instead.
    """
    data_dir_env = os.environ.get("HELIXIO_DATA_DIR", "")
    data_dir = Path(data_dir_env) if data_dir_env else _default_data_dir()
    settings_file = data_dir / "config" / "settings.json"

    if not settings_file.exists():
        return {}

    try:
        with settings_file.open("r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return {}

    if not isinstance(data, dict):
        return {}

    flattened: dict[str, Any] = {}
    host = data.get("host")
    if isinstance(host, dict):
        # Nested format: {"host": {"bind_address": "...", "port": ...}}
        if "bind_address" in host:
            flattened["host_bind_address"] = host["bind_address"]
        if "port" in host:
            flattened["host_port"] = host["port"]

    for key, value in data.items():
        if key == "host" or key in JSON_ONLY_SECTIONS:
            continue
        flattened[key] = value

    return {k.lower(): v for k, v in flattened.items()}


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from:
    1. JSON file (settings.json in config directory) - lowest priority
    2. .env file
    3. Environment variables - highest priority (override JSON/.env)

    All settings are prefixed with HELIXIO_ (e.g., HELIXIO_ENV=production).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HELIXIO_",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources - JSON file first, then env vars.

        Priority (lowest to highest):
        1. JSON file (settings.json)
        2. .env file
        3. Environment variables
        4. Init settings (values passed to Settings())
        """
        return (  # type: ignore[return-value]
            json_config_settings_source,
            dotenv_settings,
            env_settings,
            init_settings,
        )

    # Application
    env: Literal["development", "production", "testing"] = Field(
        default="development",
        description="Application environment (development, production, testing)",
    )

    # Host settings
    host_bind_address: str = Field(
        default="127.0.0.1",
        description="Host address to bind the server to",
    )

    host_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port number to bind the server to",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    data_dir: Path = Field(
        default_factory=_default_data_dir,
        description="Base directory for all application data (config, database, cache, logs)",
    )

    @property
    def config_dir(self) -> Path:
        """Directory for configuration files (settings.json, etc.)."""
        return self.data_dir / "config"

    @property
    def database_dir(self) -> Path:
        """Directory for database files."""
        return self.data_dir / "database"

    @property
    def cache_dir(self) -> Path:
        """Directory for cache files."""
        return self.data_dir / "cache"

    @property
    def logs_dir(self) -> Path:
        """Directory for log files."""
        return self.data_dir / "logs"

    @property
    def database_file(self) -> Path:
        """SQLite database file."""
        return self.database_dir / "helixio.db"

    @property
    def database_url(self) -> str:
        """Database connection URL (sqlite+aiosqlite:///absolute/path)."""
        return f"sqlite+aiosqlite:///{self.database_file.resolve().as_posix()}"

    @property
    def is_debug(self) -> bool:
        """Check if running in debug/development mode."""
        return self.env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.env == "testing"

    def model_post_init(self, __context: object) -> None:
        """Post-initialization: create data directories if they don't exist."""
        self.data_dir = self.data_dir.resolve()

        for directory in (
            self.data_dir,
            self.config_dir,
            self.database_dir,
            self.cache_dir,
            self.logs_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the cached settings instance.

    The cache is cleared when reload_settings() is called.
    """
    return Settings()


def reload_settings() -> Settings:
    """Reload settings from all sources (JSON, .env, env vars)."""
    get_settings.cache_clear()
    return get_settings()
