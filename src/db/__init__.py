"""SQLite capture index and schema migrations for Recall Store."""

from src.db.index import MARK_DELETED, CaptureRecord, DeduplicationIndex
from src.db.migrations import MigrationRunner, get_connection, init_database

__all__ = [
    "CaptureRecord",
    "DeduplicationIndex",
    "MARK_DELETED",
    "MigrationRunner",
    "get_connection",
    "init_database",
]
