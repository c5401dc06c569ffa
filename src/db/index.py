"""
Capture Deduplication Index for Recall Store

Maps each logical capture instant (timestamp) to the physical file that
backs it (file_timestamp), plus an optional tombstone mark.

A record starts as its own owner (file_timestamp == timestamp). When a
capture is recognized as a near-duplicate of the previous one it is
repointed, once, to the earlier owner's file. Rows are never deleted;
eviction only sets the mark, so history stays queryable.
"""

import logging
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path

from src.core.errors import DuplicateKeyError, InvalidInputError, NotFoundError
from src.db.migrations import init_database

logger = logging.getLogger(__name__)

MARK_DELETED = "Deleted"


@dataclass(frozen=True)
class CaptureRecord:
    """One row per logical capture event."""

    timestamp: int
    file_timestamp: int
    mark: str | None = None

    @property
    def is_owner(self) -> bool:
        """True if this record owns its physical file."""
        return self.file_timestamp == self.timestamp

    @property
    def is_alias(self) -> bool:
        return not self.is_owner

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "file_timestamp": self.file_timestamp,
            "mark": self.mark,
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "CaptureRecord":
        return cls(
            timestamp=row["timestamp"],
            file_timestamp=row["file_timestamp"],
            mark=row["mark"],
        )


class DeduplicationIndex:
    """
    Persistent capture index backed by SQLite.

    The handle owns a single connection for its lifetime. Every operation is
    a single statement in its own transaction, serialized by a lock so reads
    from other threads can share the handle with the capture writer.

    Usage:
        with DeduplicationIndex(db_path) as index:
            index.insert(100, 100)
    """

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize the index handle (does not open the connection).

        Args:
            db_path: Path to SQLite database (uses default if None)
        """
        self.db_path = Path(db_path) if db_path else None
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    # -- lifecycle ---------------------------------------------------------

    def open(self) -> "DeduplicationIndex":
        """Run pending migrations and open the backing connection."""
        with self._lock:
            if self._conn is None:
                self._conn = init_database(self.db_path, check_same_thread=False)
                logger.info(f"Opened capture index: {self.db_path or 'default'}")
        return self

    def close(self) -> None:
        """Release the backing connection. Safe to call more than once."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("Closed capture index")

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def __enter__(self) -> "DeduplicationIndex":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("DeduplicationIndex is not open")
        return self._conn

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with self._lock:
            conn = self._connection()
            with conn:
                return conn.execute(sql, params)

    def _fetchone(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        with self._lock:
            return self._connection().execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._connection().execute(sql, params).fetchall()

    # -- writes ------------------------------------------------------------

    def insert(self, timestamp: int, file_timestamp: int) -> CaptureRecord:
        """
        Create a new live record.

        Raises:
            DuplicateKeyError: If the timestamp is already indexed
        """
        try:
            self._execute(
                "INSERT INTO capture_records (timestamp, file_timestamp, mark) VALUES (?, ?, NULL)",
                (int(timestamp), int(file_timestamp)),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateKeyError(timestamp) from e

        logger.debug(f"Indexed capture {timestamp} -> {file_timestamp}")
        return CaptureRecord(timestamp=int(timestamp), file_timestamp=int(file_timestamp))

    def repoint(self, timestamp: int, new_file_timestamp: int) -> None:
        """
        Fold a self-owning record into an earlier dedup group.

        Raises:
            NotFoundError: If the record does not exist
            InvalidInputError: If the target is not earlier than the record,
                or the record was already repointed
        """
        if new_file_timestamp >= timestamp:
            raise InvalidInputError(
                f"Cannot repoint capture {timestamp} to non-earlier file {new_file_timestamp}"
            )

        cursor = self._execute(
            """
            UPDATE capture_records
            SET file_timestamp = ?
            WHERE timestamp = ? AND file_timestamp = timestamp
            """,
            (int(new_file_timestamp), int(timestamp)),
        )

        if cursor.rowcount == 0:
            record = self.get(timestamp)
            if record is None:
                raise NotFoundError(f"No capture record for {timestamp}")
            raise InvalidInputError(
                f"Capture {timestamp} already points at {record.file_timestamp}"
            )

        logger.debug(f"Repointed capture {timestamp} -> {new_file_timestamp}")

    def mark(self, timestamp: int, status: str) -> None:
        """
        Set the tombstone mark on a record.

        Raises:
            NotFoundError: If the record does not exist
        """
        cursor = self._execute(
            "UPDATE capture_records SET mark = ? WHERE timestamp = ?",
            (status, int(timestamp)),
        )
        if cursor.rowcount == 0:
            raise NotFoundError(f"No capture record for {timestamp}")

    # -- reads -------------------------------------------------------------

    def get(self, timestamp: int) -> CaptureRecord | None:
        """Point lookup by capture timestamp."""
        row = self._fetchone(
            "SELECT timestamp, file_timestamp, mark FROM capture_records WHERE timestamp = ?",
            (int(timestamp),),
        )
        return CaptureRecord.from_row(row) if row else None

    def get_previous(self, before_timestamp: int) -> CaptureRecord | None:
        """Get the record with the greatest timestamp strictly before the given one."""
        row = self._fetchone(
            """
            SELECT timestamp, file_timestamp, mark
            FROM capture_records
            WHERE timestamp < ?
            ORDER BY timestamp DESC
            LIMIT 1
            """,
            (int(before_timestamp),),
        )
        return CaptureRecord.from_row(row) if row else None

    def list_unmarked(self, status: str = MARK_DELETED) -> list[int]:
        """
        List timestamps not carrying the given mark (unsorted).

        Records with no mark at all are included.
        """
        rows = self._fetchall(
            "SELECT timestamp FROM capture_records WHERE mark IS NULL OR mark != ?",
            (status,),
        )
        return [row["timestamp"] for row in rows]

    def list_marked(self, status: str = MARK_DELETED) -> list[int]:
        """List timestamps carrying exactly the given mark (unsorted)."""
        rows = self._fetchall(
            "SELECT timestamp FROM capture_records WHERE mark = ?",
            (status,),
        )
        return [row["timestamp"] for row in rows]

    def list_between(self, start: int, end: int) -> list[CaptureRecord]:
        """List records with start <= timestamp <= end, oldest first."""
        rows = self._fetchall(
            """
            SELECT timestamp, file_timestamp, mark
            FROM capture_records
            WHERE timestamp BETWEEN ? AND ?
            ORDER BY timestamp
            """,
            (int(start), int(end)),
        )
        return [CaptureRecord.from_row(row) for row in rows]

    def count(self) -> int:
        row = self._fetchone("SELECT COUNT(*) FROM capture_records")
        return row[0]

    def count_owning(self) -> int:
        """Count live records that own their physical file."""
        row = self._fetchone(
            """
            SELECT COUNT(*) FROM capture_records
            WHERE file_timestamp = timestamp AND mark IS NULL
            """
        )
        return row[0]
