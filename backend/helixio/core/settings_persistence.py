"""Settings persistence to JSON file."""

from __future__ import annotations

import json
from typing import Any

import structlog
from pydantic import BaseModel, Field, ValidationError

from helixio.core.config import get_settings, reload_settings
from helixio.core.providers.models import MetadataSource

logger = structlog.get_logger("helixio.settings_persistence")

DEFAULT_ENABLED_SOURCES: list[MetadataSource] = ["comicvine", "metron", "gcd", "anilist", "mal"]


class MetadataSettings(BaseModel):
    """Metadata source configuration read by the cross-source matcher."""

    enabled_sources: list[MetadataSource] = Field(
        default_factory=lambda: list(DEFAULT_ENABLED_SOURCES),
        description="Metadata sources that may be searched",
    )
    auto_match_threshold: float | None = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
        description="Confidence at or above which a cross-source match is auto-accepted",
    )
    auto_apply_high_confidence: bool = Field(
        default=True,
        description="Whether auto-match candidates are saved as mappings when found",
    )


class SimilaritySettings(BaseModel):
    """Scheduling configuration for the similarity engine."""

    scheduler_enabled: bool = True
    incremental_interval_minutes: int = Field(default=60, ge=1)
    nightly_rebuild_hour: int = Field(default=3, ge=0, le=23)


def _load_settings_file() -> dict[str, Any]:
    """Read settings.json, returning an empty dict if missing or unreadable."""
    settings_file = get_settings().config_dir / "settings.json"
    if not settings_file.exists():
        return {}

    try:
        with settings_file.open("r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Failed to read settings file", path=str(settings_file), error=str(e))
        return {}

    return data if isinstance(data, dict) else {}


def save_settings_to_file(settings_dict: dict[str, Any]) -> None:  # noqa: ANN001
    """Save settings to settings.json file and reload settings.

    Args:
        settings_dict: Top-level keys to merge into the existing file.
    """
    settings = get_settings()
    settings_file = settings.config_dir / "settings.json"

    try:
        settings_file.parent.mkdir(parents=True, exist_ok=True)

        existing = _load_settings_file()
        existing.update(settings_dict)

        with settings_file.open("w") as f:
            json.dump(existing, f, indent=2)

        logger.info(
            "Settings saved to file",
            path=str(settings_file),
            settings=list(settings_dict.keys()),
        )

        reload_settings()

    except OSError as e:
        logger.error(
            "Failed to save settings to file",
            path=str(settings_file),
            error=str(e),
            exc_info=True,
        )
        raise


def get_metadata_settings() -> MetadataSettings:
    """Get metadata source settings, falling back to defaults on invalid data."""
    raw = _load_settings_file().get("metadata") or {}
    try:
        return MetadataSettings.model_validate(raw)
    except ValidationError as e:
        logger.warning("Invalid metadata settings, using defaults", error=str(e))
        return MetadataSettings()


def get_similarity_settings() -> SimilaritySettings:
    """Get similarity scheduler settings, falling back to defaults on invalid data."""
    raw = _load_settings_file().get("similarity") or {}
    try:
        return SimilaritySettings.model_validate(raw)
    except ValidationError as e:
        logger.warning("Invalid similarity settings, using defaults", error=str(e))
        return SimilaritySettings()


def get_external_api_settings(name: str) -> dict[str, Any]:
    """Get raw settings for an external API (e.g. ``comicvine``)."""
    external_apis = _load_settings_file().get("external_apis") or {}
    section = external_apis.get(name) if isinstance(external_apis, dict) else None
    return section if isinstance(section, dict) else {}


def get_effective_settings() -> dict[str, Any]:  # noqa: ANN001
    """Get current effective settings as dictionary.

    Returns:
        Dictionary with typed settings plus the metadata and similarity sections
        (with defaults applied).
    """
    settings = get_settings()

    return {
        "env": settings.env,
        "host_bind_address": settings.host_bind_address,
        "host_port": settings.host_port,
        "log_level": settings.log_level,
        "data_dir": str(settings.data_dir),
        "config_dir": str(settings.config_dir),
        "database_dir": str(settings.database_dir),
        "cache_dir": str(settings.cache_dir),
        "logs_dir": str(settings.logs_dir),
        "database_url": settings.database_url,
        "metadata": get_metadata_settings().model_dump(),
        "similarity": get_similarity_settings().model_dump(),
    }
