"""
Tests for the capture deduplication index.
"""

import sqlite3
import threading
from pathlib import Path

import pytest

from src.core.errors import DuplicateKeyError, InvalidInputError, NotFoundError
from src.db.index import MARK_DELETED, CaptureRecord, DeduplicationIndex
from src.db.migrations import MigrationRunner, get_connection, verify_schema


class TestLifecycle:
    """Tests for opening and closing the index."""

    def test_open_creates_schema(self, tmp_path: Path):
        db_path = tmp_path / "db" / "recall.sqlite"
        with DeduplicationIndex(db_path) as index:
            assert index.is_open

        conn = get_connection(db_path)
        try:
            assert verify_schema(conn)["valid"] is True
        finally:
            conn.close()

    def test_close_is_idempotent(self, tmp_path: Path):
        index = DeduplicationIndex(tmp_path / "recall.sqlite").open()
        index.close()
        index.close()
        assert not index.is_open

    def test_operations_require_open_handle(self, tmp_path: Path):
        index = DeduplicationIndex(tmp_path / "recall.sqlite")
        with pytest.raises(RuntimeError):
            index.get(1)

    def test_records_survive_reopen(self, tmp_path: Path):
        db_path = tmp_path / "recall.sqlite"
        with DeduplicationIndex(db_path) as index:
            index.insert(100, 100)
            index.insert(101, 101)
            index.repoint(101, 100)
            index.mark(100, MARK_DELETED)

        with DeduplicationIndex(db_path) as index:
            assert index.get(100) == CaptureRecord(100, 100, MARK_DELETED)
            assert index.get(101) == CaptureRecord(101, 100, None)

    def test_migrations_are_not_reapplied(self, tmp_path: Path):
        db_path = tmp_path / "recall.sqlite"
        with DeduplicationIndex(db_path):
            pass
        assert MigrationRunner(db_path).get_pending_migrations() == []
        assert MigrationRunner(db_path).get_status()["current_version"] == 1


class TestWrites:
    """Tests for insert, repoint and mark."""

    def test_insert_and_get(self, index):
        record = index.insert(100, 100)
        assert record == CaptureRecord(timestamp=100, file_timestamp=100)
        assert index.get(100) == record
        assert index.get(100).is_owner

    def test_insert_duplicate_raises(self, index):
        index.insert(100, 100)
        with pytest.raises(DuplicateKeyError) as exc_info:
            index.insert(100, 100)
        assert exc_info.value.timestamp == 100

    def test_repoint_to_earlier_owner(self, index):
        index.insert(100, 100)
        index.insert(101, 101)
        index.repoint(101, 100)

        record = index.get(101)
        assert record.file_timestamp == 100
        assert record.is_alias

    def test_repoint_only_once(self, index):
        index.insert(100, 100)
        index.insert(101, 101)
        index.insert(102, 102)
        index.repoint(102, 101)
        with pytest.raises(InvalidInputError):
            index.repoint(102, 100)
        assert index.get(102).file_timestamp == 101

    def test_repoint_rejects_later_target(self, index):
        index.insert(100, 100)
        with pytest.raises(InvalidInputError):
            index.repoint(100, 100)
        with pytest.raises(InvalidInputError):
            index.repoint(100, 200)

    def test_repoint_missing_record(self, index):
        with pytest.raises(NotFoundError):
            index.repoint(500, 100)

    def test_mark_sets_tombstone(self, index):
        index.insert(100, 100)
        index.mark(100, MARK_DELETED)
        assert index.get(100).mark == MARK_DELETED

    def test_mark_missing_record(self, index):
        with pytest.raises(NotFoundError):
            index.mark(42, MARK_DELETED)


class TestReads:
    """Tests for lookups and history queries."""

    def test_get_missing_returns_none(self, index):
        assert index.get(1) is None

    def test_get_previous(self, index):
        for ts in (100, 105, 110):
            index.insert(ts, ts)

        assert index.get_previous(110).timestamp == 105
        assert index.get_previous(106).timestamp == 105
        assert index.get_previous(105).timestamp == 100
        assert index.get_previous(100) is None
        assert index.get_previous(1000).timestamp == 110

    def test_get_previous_returns_alias_with_owner(self, index):
        index.insert(100, 100)
        index.insert(101, 101)
        index.repoint(101, 100)
        previous = index.get_previous(102)
        assert previous.timestamp == 101
        assert previous.file_timestamp == 100

    def test_list_marked_and_unmarked(self, index):
        for ts in (1, 2, 3, 4):
            index.insert(ts, ts)
        index.mark(2, MARK_DELETED)
        index.mark(3, "Pinned")

        assert sorted(index.list_marked(MARK_DELETED)) == [2]
        assert sorted(index.list_marked("Pinned")) == [3]
        assert sorted(index.list_unmarked(MARK_DELETED)) == [1, 3, 4]

    def test_list_between_is_inclusive(self, index):
        for ts in (10, 20, 30, 40):
            index.insert(ts, ts)
        index.mark(20, MARK_DELETED)

        records = index.list_between(20, 30)
        assert [r.timestamp for r in records] == [20, 30]
        assert records[0].mark == MARK_DELETED
        assert index.list_between(41, 50) == []

    def test_counts(self, index):
        index.insert(1, 1)
        index.insert(2, 2)
        index.insert(3, 3)
        index.repoint(2, 1)
        index.mark(3, MARK_DELETED)
        assert index.count() == 3
        assert index.count_owning() == 1

    def test_record_to_dict(self):
        assert CaptureRecord(5, 3, None).to_dict() == {
            "timestamp": 5,
            "file_timestamp": 3,
            "mark": None,
        }


class TestConcurrentReads:
    """Reads from another thread share the handle."""

    def test_read_from_other_thread(self, index):
        index.insert(100, 100)
        results = []

        def reader():
            results.append(index.get(100))

        thread = threading.Thread(target=reader)
        thread.start()
        thread.join()

        assert results == [CaptureRecord(100, 100, None)]


def test_schema_enforces_primary_key(tmp_path: Path):
    db_path = tmp_path / "recall.sqlite"
    with DeduplicationIndex(db_path):
        pass

    conn = get_connection(db_path)
    try:
        conn.execute("INSERT INTO capture_records (timestamp, file_timestamp) VALUES (1, 1)")
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("INSERT INTO capture_records (timestamp, file_timestamp) VALUES (1, 1)")
    finally:
        conn.close()
