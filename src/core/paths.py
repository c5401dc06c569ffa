"""
Data Directory Structure Management for Recall Store

This module defines and manages the data directory structure for the store.
All paths are relative to the DATA_ROOT (~/RecallStore by default).

Directory structure:
    RecallStore/
    ├── config.json                # Storage configuration
    ├── db/recall.sqlite           # SQLite capture index (source of truth)
    ├── screens/<fileTimestamp>.png
    ├── audio/<timestamp>.wav
    └── logs/
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

# Allow override via environment variable for testing
_data_root_override = os.environ.get("RECALL_DATA_ROOT")
DATA_ROOT: Path = Path(_data_root_override) if _data_root_override else Path.home() / "RecallStore"

# Primary directories
DB_DIR: Path = DATA_ROOT / "db"
SCREENS_DIR: Path = DATA_ROOT / "screens"
AUDIO_DIR: Path = DATA_ROOT / "audio"
LOG_DIR: Path = DATA_ROOT / "logs"

# Files
DB_PATH: Path = DB_DIR / "recall.sqlite"
CONFIG_PATH: Path = DATA_ROOT / "config.json"

# File extensions per media type
SCREEN_EXTENSION = ".png"
AUDIO_EXTENSION = ".wav"

# All directories that should exist
_REQUIRED_DIRS: tuple[Path, ...] = (
    DB_DIR,
    SCREENS_DIR,
    AUDIO_DIR,
    LOG_DIR,
)


def ensure_data_directories() -> dict[str, bool]:
    """
    Ensure all required data directories exist.

    This function is idempotent and safe to call multiple times.

    Returns:
        Dictionary mapping directory names to whether they were created (True)
        or already existed (False).
    """
    results: dict[str, bool] = {}

    for dir_path in _REQUIRED_DIRS:
        try:
            created = not dir_path.exists()
            dir_path.mkdir(parents=True, exist_ok=True)
            results[str(dir_path.relative_to(DATA_ROOT))] = created
            if created:
                logger.info(f"Created directory: {dir_path}")
        except OSError as e:
            logger.error(f"Failed to create directory {dir_path}: {e}")
            raise

    return results


def screen_file_path(directory: Path, file_timestamp: int) -> Path:
    """
    Get the path of the screenshot file named by a file timestamp.

    Args:
        directory: Screenshot directory
        file_timestamp: Timestamp identifying the physical file

    Returns:
        Path like <directory>/<file_timestamp>.png
    """
    return Path(directory) / f"{int(file_timestamp)}{SCREEN_EXTENSION}"


def audio_file_path(directory: Path, timestamp: int) -> Path:
    """Get the path of the audio file for a capture timestamp."""
    return Path(directory) / f"{int(timestamp)}{AUDIO_EXTENSION}"


def count_files(directory: Path, extension: str | None = None) -> int:
    """
    Count regular files (not directories) directly inside a directory.

    Args:
        directory: Directory to scan
        extension: Only count files with this suffix (e.g. ".png")
    """
    directory = Path(directory)
    if not directory.is_dir():
        return 0
    return sum(
        1
        for entry in directory.iterdir()
        if entry.is_file() and (extension is None or entry.suffix == extension)
    )


if __name__ == "__main__":
    import fire

    def init():
        """Initialize all data directories."""
        results = ensure_data_directories()
        created_count = sum(1 for created in results.values() if created)
        return {
            "data_root": str(DATA_ROOT),
            "directories": results,
            "created": created_count,
            "total": len(results),
        }

    def show():
        """Show all data directory paths."""
        return {
            "data_root": str(DATA_ROOT),
            "db": str(DB_DIR),
            "db_file": str(DB_PATH),
            "screens": str(SCREENS_DIR),
            "audio": str(AUDIO_DIR),
            "logs": str(LOG_DIR),
            "config": str(CONFIG_PATH),
        }

    def verify():
        """Verify all required directories exist."""
        missing = [str(d) for d in _REQUIRED_DIRS if not d.exists()]
        return {
            "valid": len(missing) == 0,
            "missing": missing,
        }

    fire.Fire(
        {
            "init": init,
            "show": show,
            "verify": verify,
        }
    )
