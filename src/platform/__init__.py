"""Platform-specific functionality for Recall Store."""

from .volume import VolumeUsage, format_bytes, get_volume_usage

__all__ = [
    "VolumeUsage",
    "get_volume_usage",
    "format_bytes",
]
