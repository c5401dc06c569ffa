"""
Capture Ingestion for Recall Store

Each capture moves through two states:
- PROVISIONAL: the file is allocated and indexed as its own owner
- COMMITTED: space was checked and the dedup decision is resolved

After the raw bytes are written, the capture is compared with the previous
record's backing file. If it is similar enough it is repointed to that file
and its own copy is deleted.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from src.capture.dedup import PerceptualHashEngine
from src.capture.reclaim import ReclamationResult, SpaceReclamationPolicy
from src.core.errors import InvalidInputError, IOFailureError, NotFoundError
from src.core.paths import screen_file_path
from src.db.index import DeduplicationIndex

logger = logging.getLogger(__name__)


class CaptureState(str, Enum):
    """Lifecycle state of a single capture."""

    PROVISIONAL = "provisional"
    COMMITTED = "committed"


@dataclass
class IngestionResult:
    """Result of processing a capture."""

    timestamp: int
    state: CaptureState
    file_timestamp: int
    previous_file_timestamp: int | None = None
    distance: int | None = None
    similarity: float | None = None
    deduplicated: bool = False
    reclamation: ReclamationResult | None = None

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "state": self.state.value,
            "file_timestamp": self.file_timestamp,
            "previous_file_timestamp": self.previous_file_timestamp,
            "distance": self.distance,
            "similarity": self.similarity,
            "deduplicated": self.deduplicated,
            "reclamation": self.reclamation.to_dict() if self.reclamation else None,
        }


def read_screen_file(screen_dir: Path, file_timestamp: int) -> bytes:
    """
    Read the physical file named by a file timestamp.

    Raises:
        NotFoundError: If the file does not exist
        IOFailureError: If the file exists but cannot be read
    """
    path = screen_file_path(screen_dir, file_timestamp)
    try:
        return path.read_bytes()
    except FileNotFoundError as e:
        raise NotFoundError(f"Missing capture file: {path}") from e
    except OSError as e:
        raise IOFailureError(f"Cannot read capture file {path}: {e}") from e


class IngestionPipeline:
    """
    Orchestrates new captures against the index, hash engine and reclamation policy.

    Assumes a single writer producing captures in increasing timestamp order.
    """

    def __init__(
        self,
        index: DeduplicationIndex,
        engine: PerceptualHashEngine,
        reclamation: SpaceReclamationPolicy,
        screen_dir: Path,
        similarity_threshold: float,
        stored_screen_count: int = 0,
    ):
        self.index = index
        self.engine = engine
        self.reclamation = reclamation
        self.screen_dir = Path(screen_dir)
        self.similarity_threshold = similarity_threshold
        self.stored_screen_count = stored_screen_count
        # in-flight captures only; everything else indexed is committed
        self._provisional: set[int] = set()

    def state_of(self, timestamp: int) -> CaptureState | None:
        """Get the state of a capture, or None if it is not indexed."""
        if timestamp in self._provisional:
            return CaptureState.PROVISIONAL
        if self.index.get(timestamp) is not None:
            return CaptureState.COMMITTED
        return None

    @property
    def in_flight(self) -> int:
        """Number of captures allocated but not yet processed."""
        return len(self._provisional)

    def _decrement_count(self, amount: int = 1) -> None:
        self.stored_screen_count = max(self.stored_screen_count - amount, 0)

    def require_file(self, timestamp: int) -> Path:
        """
        Allocate the physical file for a capture and pre-register its record.

        Any stale file at the target path is removed first. The caller
        writes the raw bytes to the returned path, then calls processed().

        Raises:
            DuplicateKeyError: If the timestamp is already indexed
            IOFailureError: If the stale file cannot be removed
        """
        path = screen_file_path(self.screen_dir, timestamp)
        try:
            self.screen_dir.mkdir(parents=True, exist_ok=True)
            path.unlink(missing_ok=True)
        except OSError as e:
            raise IOFailureError(f"Cannot prepare capture file {path}: {e}") from e

        self.index.insert(timestamp, timestamp)
        self.stored_screen_count += 1
        self._provisional.add(timestamp)
        return path

    def check_space(self) -> ReclamationResult:
        """Run the reclamation policy and keep the stored-file count in step."""
        result = self.reclamation.check_space()
        if result.files_deleted:
            self._decrement_count(result.files_deleted)
        return result

    def _score(self, timestamp: int, previous_file_timestamp: int) -> tuple[int, float] | None:
        try:
            current = read_screen_file(self.screen_dir, timestamp)
            previous = read_screen_file(self.screen_dir, previous_file_timestamp)
            return self.engine.compare(current, previous)
        except NotFoundError as e:
            logger.debug(f"Skipping similarity for {timestamp}: {e}")
        except (InvalidInputError, IOFailureError) as e:
            logger.warning(f"Skipping similarity for {timestamp}: {e}")
        return None

    def processed(self, timestamp: int) -> IngestionResult:
        """
        Resolve the dedup decision for a capture whose bytes are fully written.

        Raises:
            NotFoundError: If the capture was never registered
        """
        record = self.index.get(timestamp)
        if record is None:
            raise NotFoundError(f"No capture record for {timestamp}")

        result = IngestionResult(
            timestamp=timestamp,
            state=CaptureState.COMMITTED,
            file_timestamp=record.file_timestamp,
        )
        try:
            result.reclamation = self.check_space()
        except IOFailureError as e:
            logger.error(f"Space check failed for {timestamp}, continuing: {e}")
            result.reclamation = ReclamationResult()

        previous = self.index.get_previous(timestamp)
        if previous is None:
            self._provisional.discard(timestamp)
            return result

        result.previous_file_timestamp = previous.file_timestamp
        scored = self._score(timestamp, previous.file_timestamp)
        if scored is not None:
            result.distance, result.similarity = scored
            logger.info(
                f"Similarity {result.similarity * 100:.2f}% [{result.distance}] "
                f"({timestamp} vs {previous.file_timestamp})"
            )

            if result.similarity >= self.similarity_threshold:
                self.index.repoint(timestamp, previous.file_timestamp)
                path = screen_file_path(self.screen_dir, timestamp)
                try:
                    path.unlink(missing_ok=True)
                except OSError as e:
                    logger.error(f"Failed to delete deduplicated file {path}: {e}")
                else:
                    self._decrement_count()
                result.file_timestamp = previous.file_timestamp
                result.deduplicated = True
                logger.info(
                    f"Similarity {result.similarity * 100:.2f}% over threshold, "
                    f"reusing {previous.file_timestamp} for {timestamp}"
                )

        self._provisional.discard(timestamp)
        return result
