"""Shared fixtures for Recall Store tests."""

import io
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from src.core.config import StorageConfig
from src.db.index import DeduplicationIndex
from src.platform.volume import VolumeUsage

GIB = 1024 * 1024 * 1024


def make_noise_png(seed: int, size: int = 64) -> bytes:
    """Encode a deterministic random-noise RGB image as PNG."""
    rng = np.random.RandomState(seed)
    pixels = rng.randint(0, 256, size=(size, size, 3), dtype=np.uint8)
    buffer = io.BytesIO()
    Image.fromarray(pixels).save(buffer, format="PNG")
    return buffer.getvalue()


def make_blocky_png(seed: int, nudge: bool = False) -> bytes:
    """
    Encode an 8x8 grid of random flat tiles scaled up to 64x64 as PNG.

    With nudge, one pixel is shifted by 8 levels so the bytes differ while
    the picture stays visually the same.
    """
    rng = np.random.RandomState(seed)
    tiles = rng.randint(0, 256, size=(8, 8, 3), dtype=np.uint8)
    pixels = tiles.repeat(8, axis=0).repeat(8, axis=1)
    if nudge:
        pixels[10, 10] ^= 8
    buffer = io.BytesIO()
    Image.fromarray(pixels).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeVolume:
    """Volume usage query returning a settable usable byte count."""

    def __init__(self, usable_bytes: int, total_bytes: int = 100 * GIB):
        self.usable_bytes = usable_bytes
        self.total_bytes = total_bytes
        self.calls: list[Path] = []

    def __call__(self, directory: Path) -> VolumeUsage:
        self.calls.append(Path(directory))
        return VolumeUsage(total_bytes=self.total_bytes, usable_bytes=self.usable_bytes)


@pytest.fixture
def png_a() -> bytes:
    return make_noise_png(1)


@pytest.fixture
def png_b() -> bytes:
    return make_noise_png(2)


@pytest.fixture
def screen_dir(tmp_path: Path) -> Path:
    path = tmp_path / "screens"
    path.mkdir()
    return path


@pytest.fixture
def index(tmp_path: Path):
    with DeduplicationIndex(tmp_path / "db" / "recall.sqlite") as idx:
        yield idx


@pytest.fixture
def store_config(screen_dir: Path) -> StorageConfig:
    return StorageConfig(
        storage_directory_override=str(screen_dir),
        storage_floor_bytes=10 * GIB,
        image_similarity_threshold=0.95,
    )


@pytest.fixture
def noise_png():
    """Factory for deterministic noise PNGs keyed by seed."""
    return make_noise_png


@pytest.fixture
def blocky_png():
    """Factory for tiled PNGs, optionally with a one-pixel change."""
    return make_blocky_png


@pytest.fixture
def fake_volume() -> FakeVolume:
    """Volume reporting 1000 usable bytes until a test changes it."""
    return FakeVolume(usable_bytes=1000)
