"""
Tests for storage configuration loading and validation.
"""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from src.core.config import (
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_STORAGE_FLOOR_BYTES,
    StorageConfig,
    load_config,
    resolve_audio_dir,
    resolve_screen_dir,
    save_config,
)
from src.core.paths import AUDIO_DIR, SCREENS_DIR


class TestStorageConfig:
    """Tests for the StorageConfig model."""

    def test_defaults(self):
        config = StorageConfig()
        assert config.storage_directory_override == ""
        assert config.storage_floor_bytes == DEFAULT_STORAGE_FLOOR_BYTES == 20 * 1024**3
        assert config.image_similarity_threshold == DEFAULT_SIMILARITY_THRESHOLD == 0.95

    def test_threshold_out_of_range(self):
        with pytest.raises(ValidationError):
            StorageConfig(image_similarity_threshold=1.5)
        with pytest.raises(ValidationError):
            StorageConfig(image_similarity_threshold=-0.1)

    def test_negative_floor_rejected(self):
        with pytest.raises(ValidationError):
            StorageConfig(storage_floor_bytes=-1)

    def test_override_is_stripped(self):
        assert StorageConfig(storage_directory_override="  ").storage_directory_override == ""


class TestDirectories:
    """Tests for directory resolution."""

    def test_default_directories(self):
        config = StorageConfig()
        assert resolve_screen_dir(config) == SCREENS_DIR
        assert resolve_audio_dir(config) == AUDIO_DIR

    def test_override_applies_to_both(self, tmp_path: Path):
        config = StorageConfig(storage_directory_override=str(tmp_path))
        assert resolve_screen_dir(config) == tmp_path
        assert resolve_audio_dir(config) == tmp_path


class TestLoadSave:
    """Tests for reading and writing config files."""

    def test_round_trip(self, tmp_path: Path):
        path = tmp_path / "config.json"
        config = StorageConfig(storage_floor_bytes=1024, image_similarity_threshold=0.9)
        save_config(config, path)
        assert load_config(path) == config

    def test_missing_file_writes_defaults(self, tmp_path: Path):
        path = tmp_path / "config.json"
        config = load_config(path)

        assert config == StorageConfig()
        assert json.loads(path.read_text())["image_similarity_threshold"] == 0.95
        assert not (tmp_path / "config.json.old").exists()

    def test_corrupt_file_is_moved_aside(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text("{not json")

        config = load_config(path)

        assert config == StorageConfig()
        assert (tmp_path / "config.json.old").read_text() == "{not json"
        assert json.loads(path.read_text())["storage_floor_bytes"] == DEFAULT_STORAGE_FLOOR_BYTES

    def test_invalid_values_are_moved_aside(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"image_similarity_threshold": 7}))

        assert load_config(path) == StorageConfig()
        assert (tmp_path / "config.json.old").exists()
