"""
Space Reclamation for Recall Store

When usable space on the capture volume drops below the configured floor,
the oldest unmarked captures are evicted until 1.5x the shortfall has been
freed. The overshoot keeps the policy from re-triggering on every capture.

Eviction is FIFO by capture time. Each candidate is billed and deleted by
the file named after its capture timestamp. Aliases own no file, so they
contribute zero bytes and their deletion is a no-op; their owner is always
older and is reached first.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from src.core.logging import OperationTimer
from src.core.paths import screen_file_path
from src.db.index import MARK_DELETED, DeduplicationIndex
from src.platform.volume import VolumeUsage, format_bytes, get_volume_usage

logger = logging.getLogger(__name__)

OVERSHOOT_FACTOR = 1.5

VolumeQuery = Callable[[Path], VolumeUsage]


@dataclass
class ReclamationResult:
    """Outcome of a single check_space pass."""

    triggered: bool = False
    usable_bytes: int = 0
    needed_bytes: float = 0.0
    freed_bytes: int = 0
    files_deleted: int = 0
    evicted: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "triggered": self.triggered,
            "usable_bytes": self.usable_bytes,
            "needed_bytes": self.needed_bytes,
            "freed_bytes": self.freed_bytes,
            "files_deleted": self.files_deleted,
            "evicted": self.evicted,
            "failed": self.failed,
        }


class SpaceReclamationPolicy:
    """
    Evicts the oldest unmarked captures when the volume runs low.

    Runs synchronously; a pass scans only unmarked candidates.
    """

    def __init__(
        self,
        index: DeduplicationIndex,
        screen_dir: Path,
        storage_floor_bytes: int,
        volume_query: VolumeQuery = get_volume_usage,
    ):
        """
        Initialize the policy.

        Args:
            index: Open capture index handle
            screen_dir: Directory holding <timestamp>.png files
            storage_floor_bytes: Minimum usable bytes to keep free
            volume_query: Returns usage for the volume holding a directory
        """
        self.index = index
        self.screen_dir = Path(screen_dir)
        self.storage_floor_bytes = storage_floor_bytes
        self.volume_query = volume_query

    def _file_size(self, path: Path) -> int:
        try:
            return path.stat().st_size
        except FileNotFoundError:
            return 0
        except OSError as e:
            logger.warning(f"Cannot stat {path}: {e}")
            return 0

    def check_space(self) -> ReclamationResult:
        """
        Free space if usable bytes are below the floor.

        Deletion failures are logged and the candidate is left unmarked for
        the next pass; the pass itself never raises for them.

        Returns:
            ReclamationResult describing what was evicted
        """
        usage = self.volume_query(self.screen_dir)
        result = ReclamationResult(usable_bytes=usage.usable_bytes)

        if usage.usable_bytes >= self.storage_floor_bytes:
            return result

        result.triggered = True
        result.needed_bytes = (self.storage_floor_bytes - usage.usable_bytes) * OVERSHOOT_FACTOR

        with OperationTimer(logger, "check_space", logging.INFO):
            candidates = sorted(self.index.list_unmarked(MARK_DELETED))

            selected: list[tuple[int, Path, int]] = []
            accumulated = 0
            for timestamp in candidates:
                path = screen_file_path(self.screen_dir, timestamp)
                size = self._file_size(path)
                accumulated += size
                selected.append((timestamp, path, size))
                if accumulated >= result.needed_bytes:
                    break

            for timestamp, path, size in selected:
                try:
                    path.unlink()
                    result.files_deleted += 1
                    result.freed_bytes += size
                    logger.info(f"Deleted file: {path}")
                except FileNotFoundError:
                    pass
                except OSError as e:
                    logger.error(f"Failed to delete {path}, skipping: {e}")
                    result.failed.append(timestamp)
                    continue

                self.index.mark(timestamp, MARK_DELETED)
                result.evicted.append(timestamp)

        logger.info(
            f"Reclaimed {format_bytes(result.freed_bytes)} "
            f"(needed {format_bytes(result.needed_bytes)}, "
            f"{len(result.evicted)} evicted, {len(result.failed)} failed)"
        )

        if result.freed_bytes < result.needed_bytes:
            logger.warning("Could not free the requested space; capture continues")

        return result
