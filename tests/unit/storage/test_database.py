"""Unit tests for storage.database module."""

import sqlite3
from unittest.mock import MagicMock

import pytest

from src.core.errors import PersistenceError
from src.core.utils import new_id, utc_now
from src.models.branch import Branch, BranchStatus
from src.models.diff import ABSENT
from src.models.merge import ConflictKind, MergeConflict
from src.storage.database import Database, decode_value, encode_value


def _branch(suite_id="suite-1", name="main", is_default=True, parent=None):
    now = utc_now()
    return Branch(
        id=new_id(),
        suite_id=suite_id,
        name=name,
        parent_branch_id=parent,
        is_default=is_default,
        status=BranchStatus.ACTIVE,
        created_at=now,
        updated_at=now,
    )


class TestValueEncoding:
    """Test cases for encode_value / decode_value."""

    def test_absent_is_sql_null(self):
        assert encode_value(ABSENT) is None
        assert decode_value(None) is ABSENT

    def test_json_null_is_distinct_from_absent(self):
        assert encode_value(None) == "null"
        assert decode_value("null") is None

    def test_nested_values_survive(self):
        value = {"b": [1, 2.5, None, True], "a": "x"}

        assert decode_value(encode_value(value)) == value


class TestTransactions:
    """Test cases for Database.transaction."""

    def test_commit_persists_writes(self, db):
        branch = _branch()

        with db.transaction():
            db.insert_branch(branch)

        assert db.get_branch(branch.id).name == "main"

    def test_exception_rolls_back_every_write(self, db):
        """A failure inside the block discards all writes of the block."""
        # Arrange
        first = _branch()
        second = _branch(name="feature", is_default=False)

        # Act
        with pytest.raises(RuntimeError):
            with db.transaction():
                db.insert_branch(first)
                db.insert_branch(second)
                raise RuntimeError("boom")

        # Assert
        assert db.get_branch(first.id) is None
        assert db.get_branch(second.id) is None
        assert not db.in_transaction

    def test_nested_block_joins_outer_transaction(self, db):
        """An inner block's writes roll back with the outer block."""
        branch = _branch()

        with pytest.raises(RuntimeError):
            with db.transaction():
                with db.transaction():
                    db.insert_branch(branch)
                assert db.in_transaction
                raise RuntimeError("boom")

        assert db.get_branch(branch.id) is None

    def test_constraint_violation_raises_persistence_error(self, db):
        with db.transaction():
            db.insert_branch(_branch())

        with pytest.raises(PersistenceError):
            with db.transaction():
                db.insert_branch(_branch(name="trunk"))

    def test_failed_commit_and_rollback_raise_persistence_error(self, db):
        """A rollback failing after a failed COMMIT does not mask the commit error."""
        # Arrange
        real_conn = db._conn
        failing_conn = MagicMock()

        def execute(sql, *args):
            if sql in ("COMMIT", "ROLLBACK"):
                raise sqlite3.OperationalError("disk I/O error")
            return real_conn.execute(sql, *args)

        failing_conn.execute.side_effect = execute
        db._conn = failing_conn

        # Act
        try:
            with pytest.raises(PersistenceError) as exc_info:
                with db.transaction():
                    db.insert_branch(_branch())
        finally:
            db._conn = real_conn
            real_conn.execute("ROLLBACK")

        # Assert
        assert exc_info.value.operation == "commit"
        assert not db.in_transaction
        assert db.list_branches("suite-1") == []

    def test_file_database_persists_across_connections(self, tmp_path):
        path = str(tmp_path / "state" / "branching.db")
        branch = _branch()

        first = Database(path)
        with first.transaction():
            first.insert_branch(branch)
        first.close()

        second = Database(path)
        try:
            assert second.get_branch(branch.id).name == "main"
        finally:
            second.close()


class TestAppendOnlyRecords:
    """Test cases for history and snapshot immutability triggers."""

    def test_history_rows_cannot_be_updated(self, engine):
        main = engine.create_suite("suite-1")
        feature = engine.create_branch("suite-1", "feature", main.id)
        request = engine.create_merge_request(feature.id, main.id)

        with pytest.raises(PersistenceError, match="append-only"):
            engine.db._execute(
                "tamper", "UPDATE merge_history SET actor = 'mallory' WHERE merge_request_id = ?",
                (request.id,),
            )

    def test_history_rows_cannot_be_deleted(self, engine):
        main = engine.create_suite("suite-1")
        feature = engine.create_branch("suite-1", "feature", main.id)
        engine.create_merge_request(feature.id, main.id)

        with pytest.raises(PersistenceError, match="append-only"):
            engine.db._execute("tamper", "DELETE FROM merge_history")

    def test_snapshots_cannot_be_updated(self, engine):
        main = engine.create_suite("suite-1")

        with pytest.raises(PersistenceError, match="immutable"):
            engine.db._execute(
                "tamper", "UPDATE snapshots SET config = '{}' WHERE id = ?",
                (main.head_snapshot_id,),
            )


class TestConflictStorage:
    """Test cases for conflict value round trips."""

    def test_absent_and_null_values_are_kept_apart(self, engine):
        """A removed key (ABSENT) and an explicit null read back differently."""
        # Arrange
        main = engine.create_suite("suite-1")
        feature = engine.create_branch("suite-1", "feature", main.id)
        request = engine.create_merge_request(feature.id, main.id)
        conflict = MergeConflict(
            id=new_id(),
            merge_request_id=request.id,
            path="/timeout",
            kind=ConflictKind.CONFIG,
            base_value=30,
            source_value=ABSENT,
            target_value=None,
        )

        # Act
        with engine.db.transaction():
            engine.db.insert_conflict(conflict)
        stored = engine.db.get_conflict(conflict.id)

        # Assert
        assert stored.base_value == 30
        assert stored.source_value is ABSENT
        assert stored.target_value is None
