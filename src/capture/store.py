"""
Capture Store for Recall Store

The collaborator-facing entry point. Wires the capture index, hash engine,
reclamation policy and ingestion pipeline together from a StorageConfig,
and exposes:

- require_file / open_image_stream: allocate a screenshot for a capture
- processed: resolve dedup and reclamation once bytes are written
- get_data: read a capture's bytes through its file_timestamp
- list_unmarked / list_marked / list_between: history queries
- require_audio_file: allocate an audio file (not indexed)
"""

import logging
import os
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import BinaryIO

from src.capture.dedup import PerceptualHashEngine
from src.capture.ingest import IngestionPipeline, IngestionResult, read_screen_file
from src.capture.reclaim import ReclamationResult, SpaceReclamationPolicy, VolumeQuery
from src.core.config import StorageConfig, resolve_audio_dir, resolve_screen_dir
from src.core.errors import IOFailureError, NotFoundError, StoreNotReadyError
from src.core.paths import SCREEN_EXTENSION, audio_file_path, count_files
from src.db.index import MARK_DELETED, CaptureRecord, DeduplicationIndex
from src.platform.volume import VolumeUsage, get_volume_usage

logger = logging.getLogger(__name__)


class StoreState(str, Enum):
    """Readiness of the store, observable by a UI layer."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    FAILED = "failed"


class CaptureStore:
    """
    Screenshot store with similarity-based deduplication.

    Usage:
        with CaptureStore(config, db_path=path) as store:
            target = store.require_file(ts)
            target.write_bytes(png)
            store.processed(ts)
    """

    def __init__(
        self,
        config: StorageConfig | None = None,
        db_path: Path | str | None = None,
        engine: PerceptualHashEngine | None = None,
        volume_query: VolumeQuery = get_volume_usage,
    ):
        """
        Initialize the store (does not touch the disk).

        Args:
            config: Storage configuration (defaults if None)
            db_path: Path to SQLite database (uses default if None)
            engine: Hash engine (a default 32/8 engine if None)
            volume_query: Volume usage query, injectable for tests
        """
        self.config = config or StorageConfig()
        self.screen_dir = resolve_screen_dir(self.config)
        self.audio_dir = resolve_audio_dir(self.config)
        self.volume_query = volume_query

        self.index = DeduplicationIndex(db_path)
        self.engine = engine or PerceptualHashEngine()
        self.reclamation = SpaceReclamationPolicy(
            index=self.index,
            screen_dir=self.screen_dir,
            storage_floor_bytes=self.config.storage_floor_bytes,
            volume_query=volume_query,
        )
        self.pipeline = IngestionPipeline(
            index=self.index,
            engine=self.engine,
            reclamation=self.reclamation,
            screen_dir=self.screen_dir,
            similarity_threshold=self.config.image_similarity_threshold,
        )

        self._state = StoreState.UNINITIALIZED
        self.last_error: str | None = None

    # -- lifecycle ---------------------------------------------------------

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def stored_screen_count(self) -> int:
        """Number of physical screenshot files currently held."""
        return self.pipeline.stored_screen_count

    def try_init(self) -> StoreState:
        """
        Open the index and verify the screenshot directory.

        Returns:
            READY on success, FAILED otherwise (see last_error)
        """
        try:
            self.screen_dir.mkdir(parents=True, exist_ok=True)
            if not os.access(self.screen_dir, os.R_OK):
                raise IOFailureError(f"Can't read: {self.screen_dir}")
            self.index.open()
        except (OSError, sqlite3.Error) as e:
            logger.error(f"Store initialization failed: {e}")
            self.last_error = str(e)
            self._state = StoreState.FAILED
            return self._state

        self.pipeline.stored_screen_count = count_files(self.screen_dir, SCREEN_EXTENSION)
        self.last_error = None
        self._state = StoreState.READY
        logger.info(
            f"Store initialized: {self.screen_dir} ({self.stored_screen_count} stored screenshots)"
        )
        return self._state

    def open(self) -> "CaptureStore":
        """Initialize the store, raising if it cannot become ready."""
        if self.try_init() is not StoreState.READY:
            raise StoreNotReadyError(self.last_error or "Store failed to initialize")
        return self

    def close(self) -> None:
        self.index.close()
        self._state = StoreState.UNINITIALIZED

    def __enter__(self) -> "CaptureStore":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _require_ready(self) -> None:
        if self._state is not StoreState.READY:
            raise StoreNotReadyError(f"Store is {self._state.value}")

    # -- capture write path ------------------------------------------------

    def require_file(self, timestamp: int) -> Path:
        """Pre-register a capture and return the path its bytes go to."""
        self._require_ready()
        return self.pipeline.require_file(timestamp)

    @contextmanager
    def open_image_stream(self, timestamp: int) -> Iterator[BinaryIO]:
        """
        Pre-register a capture and yield a writable binary stream for it.

        Raises:
            IOFailureError: If the file cannot be created or written
        """
        path = self.require_file(timestamp)
        try:
            stream = path.open("wb")
        except OSError as e:
            raise IOFailureError(f"Cannot open capture file {path}: {e}") from e
        with stream:
            yield stream

    def require_audio_file(self, timestamp: int) -> Path:
        """Get a fresh path for a capture's audio (audio is not deduplicated)."""
        self._require_ready()
        path = audio_file_path(self.audio_dir, timestamp)
        try:
            self.audio_dir.mkdir(parents=True, exist_ok=True)
            path.unlink(missing_ok=True)
        except OSError as e:
            raise IOFailureError(f"Cannot prepare audio file {path}: {e}") from e
        return path

    def processed(self, timestamp: int) -> IngestionResult:
        """Run reclamation and the dedup decision for a fully written capture."""
        self._require_ready()
        return self.pipeline.processed(timestamp)

    def check_space(self) -> ReclamationResult:
        self._require_ready()
        return self.pipeline.check_space()

    # -- reads -------------------------------------------------------------

    def get_record(self, timestamp: int) -> CaptureRecord | None:
        self._require_ready()
        return self.index.get(timestamp)

    def get_data(self, timestamp: int) -> bytes:
        """
        Read a capture's bytes, resolving aliases through file_timestamp.

        Raises:
            NotFoundError: If the capture is not indexed or its file is gone
        """
        record = self.get_record(timestamp)
        if record is None:
            raise NotFoundError(f"No capture record for {timestamp}")
        return read_screen_file(self.screen_dir, record.file_timestamp)

    def list_unmarked(self, status: str = MARK_DELETED) -> list[int]:
        self._require_ready()
        return self.index.list_unmarked(status)

    def list_marked(self, status: str = MARK_DELETED) -> list[int]:
        self._require_ready()
        return self.index.list_marked(status)

    def list_between(self, start: int, end: int) -> list[CaptureRecord]:
        self._require_ready()
        return self.index.list_between(start, end)

    def storage_space_info(self) -> VolumeUsage:
        """Usage of the volume holding the screenshot directory."""
        return self.volume_query(self.screen_dir)

    def get_status(self) -> dict:
        status = {
            "state": self._state.value,
            "screen_dir": str(self.screen_dir),
            "audio_dir": str(self.audio_dir),
            "stored_screen_count": self.stored_screen_count,
            "storage_floor_bytes": self.config.storage_floor_bytes,
            "image_similarity_threshold": self.config.image_similarity_threshold,
            "last_error": self.last_error,
        }
        if self._state is StoreState.READY:
            status["records"] = self.index.count()
            status["owning_records"] = self.index.count_owning()
            status["space"] = self.storage_space_info().to_dict()
        return status
