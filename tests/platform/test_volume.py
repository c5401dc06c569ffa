"""
Tests for volume usage queries.
"""

from collections import namedtuple
from pathlib import Path
from unittest import mock

import pytest

from src.core.errors import IOFailureError
from src.platform.volume import VolumeUsage, format_bytes, get_volume_usage

_DiskUsage = namedtuple("_DiskUsage", ["total", "used", "free"])


class TestVolumeUsage:
    """Tests for the VolumeUsage model."""

    def test_used_and_progress(self):
        usage = VolumeUsage(total_bytes=1000, usable_bytes=250)
        assert usage.used_bytes == 750
        assert usage.progress == pytest.approx(0.75)

    def test_progress_with_zero_total(self):
        assert VolumeUsage(total_bytes=0, usable_bytes=0).progress == 0.0

    def test_to_dict(self):
        assert VolumeUsage(total_bytes=10, usable_bytes=4).to_dict() == {
            "total_bytes": 10,
            "usable_bytes": 4,
            "used_bytes": 6,
            "progress": pytest.approx(0.6),
        }


class TestGetVolumeUsage:
    """Tests for get_volume_usage."""

    def test_reports_real_volume(self, tmp_path: Path):
        usage = get_volume_usage(tmp_path)
        assert usage.total_bytes > 0
        assert 0 <= usage.usable_bytes <= usage.total_bytes

    def test_missing_directory_uses_existing_ancestor(self, tmp_path: Path):
        with mock.patch("src.platform.volume.shutil.disk_usage", return_value=_DiskUsage(100, 60, 40)) as du:
            usage = get_volume_usage(tmp_path / "not" / "yet" / "created")

        du.assert_called_once_with(tmp_path)
        assert usage == VolumeUsage(total_bytes=100, usable_bytes=40)

    def test_os_error_becomes_io_failure(self, tmp_path: Path):
        with mock.patch("src.platform.volume.shutil.disk_usage", side_effect=PermissionError("denied")):
            with pytest.raises(IOFailureError):
                get_volume_usage(tmp_path)


class TestFormatBytes:
    """Tests for human-readable sizes."""

    def test_units(self):
        assert format_bytes(512) == "512 B"
        assert format_bytes(1536) == "1.5 KB"
        assert format_bytes(3 * 1024**3) == "3.0 GB"
