"""
Storage Configuration for Recall Store

The configuration is a small JSON document validated with pydantic.
A file that cannot be read or fails validation is moved aside to
config.json.old and replaced with defaults, so a broken config never
prevents capture from starting.
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from src.core.paths import AUDIO_DIR, CONFIG_PATH, SCREENS_DIR

logger = logging.getLogger(__name__)

GIB = 1024 * 1024 * 1024

DEFAULT_STORAGE_FLOOR_BYTES = 20 * GIB
DEFAULT_SIMILARITY_THRESHOLD = 0.95


class StorageConfig(BaseModel):
    """Configuration consumed by the ingestion pipeline and reclamation policy."""

    storage_directory_override: str = Field(
        "",
        description="Directory for capture files; empty means the default data directories",
    )
    storage_floor_bytes: int = Field(
        DEFAULT_STORAGE_FLOOR_BYTES,
        ge=0,
        description="Reclaim space when usable bytes on the capture volume drop below this",
    )
    image_similarity_threshold: float = Field(
        DEFAULT_SIMILARITY_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Captures at least this similar to the previous one are folded into it",
    )

    @field_validator("storage_directory_override")
    @classmethod
    def strip_override(cls, v: str) -> str:
        return v.strip()


def resolve_screen_dir(config: StorageConfig) -> Path:
    """Get the screenshot directory, honoring the override."""
    if config.storage_directory_override:
        return Path(config.storage_directory_override).expanduser()
    return SCREENS_DIR


def resolve_audio_dir(config: StorageConfig) -> Path:
    """Get the audio directory, honoring the override."""
    if config.storage_directory_override:
        return Path(config.storage_directory_override).expanduser()
    return AUDIO_DIR


def save_config(config: StorageConfig, config_path: Path | None = None) -> Path:
    """
    Write the configuration as JSON.

    Args:
        config: Configuration to persist
        config_path: Target file (defaults to CONFIG_PATH)

    Returns:
        Path the configuration was written to
    """
    path = Path(config_path) if config_path else CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.model_dump(), indent=2), encoding="utf-8")
    logger.debug(f"Saved storage config to {path}")
    return path


def load_config(config_path: Path | None = None) -> StorageConfig:
    """
    Load the configuration, recovering to defaults on any error.

    Args:
        config_path: Config file (defaults to CONFIG_PATH)

    Returns:
        Validated StorageConfig
    """
    path = Path(config_path) if config_path else CONFIG_PATH

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return StorageConfig.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Failed to load config {path}, restoring defaults: {e}")

    if path.exists():
        backup = path.with_name(path.name + ".old")
        path.replace(backup)
        logger.warning(f"Moved unreadable config to {backup}")

    config = StorageConfig()
    save_config(config, path)
    return config


if __name__ == "__main__":
    import fire

    def show(config_path: str | None = None):
        """Show the effective storage configuration."""
        config = load_config(Path(config_path) if config_path else None)
        return {
            **config.model_dump(),
            "screen_dir": str(resolve_screen_dir(config)),
            "audio_dir": str(resolve_audio_dir(config)),
        }

    def set_value(key: str, value, config_path: str | None = None):
        """Set a single configuration value."""
        path = Path(config_path) if config_path else None
        config = load_config(path)
        updated = StorageConfig.model_validate({**config.model_dump(), key: value})
        save_config(updated, path)
        return updated.model_dump()

    fire.Fire(
        {
            "show": show,
            "set": set_value,
        }
    )
