"""
Volume Usage Queries for Recall Store

Reports total and usable bytes on the volume holding a directory.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from src.core.errors import IOFailureError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VolumeUsage:
    """Space on the volume holding the capture directory."""

    total_bytes: int
    usable_bytes: int

    @property
    def used_bytes(self) -> int:
        return self.total_bytes - self.usable_bytes

    @property
    def progress(self) -> float:
        """Fraction of the volume in use, between 0.0 and 1.0."""
        if self.total_bytes <= 0:
            return 0.0
        return min(max(self.used_bytes / self.total_bytes, 0.0), 1.0)

    def to_dict(self) -> dict:
        return {
            "total_bytes": self.total_bytes,
            "usable_bytes": self.usable_bytes,
            "used_bytes": self.used_bytes,
            "progress": self.progress,
        }


def get_volume_usage(directory: Path | str) -> VolumeUsage:
    """
    Query the volume holding a directory.

    Args:
        directory: Any path on the volume. The nearest existing ancestor
            is queried when the directory does not exist yet.

    Returns:
        VolumeUsage with total and usable bytes

    Raises:
        IOFailureError: If the file system query fails
    """
    path = Path(directory)
    while not path.exists() and path != path.parent:
        path = path.parent

    try:
        usage = shutil.disk_usage(path)
    except OSError as e:
        logger.error(f"Failed to query volume usage for {path}: {e}")
        raise IOFailureError(f"Cannot query volume usage for {path}: {e}") from e

    return VolumeUsage(total_bytes=usage.total, usable_bytes=usage.free)


def format_bytes(num_bytes: int | float) -> str:
    """Format a byte count for humans (e.g. '1.5 GB')."""
    value = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if abs(value) < 1024 or unit == "TB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TB"
