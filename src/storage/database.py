"""SQLite persistence for branches, snapshots and merge state.

This module provides the Database class, the single source of truth for the
engine. Every mutating engine operation runs inside one transaction opened
with ``BEGIN IMMEDIATE`` so that concurrent writers (threads sharing this
object, or other processes sharing the file) are serialised and a failure
rolls back every write of the operation.
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional

from src.core.errors import PersistenceError
from src.models.branch import Branch, BranchStatus
from src.models.diff import ABSENT
from src.models.merge import (
    ConflictKind,
    ConflictResolution,
    HistoryAction,
    MergeConflict,
    MergeHistoryEntry,
    MergeRequest,
    MergeRequestStatus,
    ResolutionStatus,
    ResolutionStrategy,
)
from src.models.snapshot import Snapshot, SnapshotContent
from src.storage.schema import SCHEMA, SCHEMA_VERSION

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"


def encode_value(value: Any) -> Optional[str]:
    """Encode a JSON value for storage; ABSENT becomes SQL NULL."""
    if value is ABSENT:
        return None
    return json.dumps(value, sort_keys=True, ensure_ascii=False)


def decode_value(raw: Optional[str]) -> Any:
    """Decode a stored JSON value; SQL NULL becomes ABSENT."""
    if raw is None:
        return ABSENT
    return json.loads(raw)


class Database:
    """Transactional SQLite store.

    The connection is shared by all components of one engine instance and
    guarded by a re-entrant lock. ``transaction()`` may be nested: inner
    blocks join the outermost transaction, which commits or rolls back as a
    whole.

    Example:
        >>> db = Database(":memory:")
        >>> with db.transaction():
        ...     db.insert_branch(branch)
    """

    def __init__(self, db_path: str = IN_MEMORY):
        """Open (and initialise) the database.

        Args:
            db_path: SQLite file path, or ":memory:" for a private in-memory store

        Raises:
            PersistenceError: If the database cannot be opened or initialised
        """
        self.db_path = db_path
        self._lock = threading.RLock()
        self._depth = 0

        if db_path != IN_MEMORY:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = sqlite3.connect(
                db_path,
                check_same_thread=False,
                isolation_level=None,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys=ON")
            if db_path != IN_MEMORY:
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(SCHEMA)
            self._conn.execute(
                "INSERT OR IGNORE INTO meta (key, value) VALUES ('schema_version', ?)",
                (str(SCHEMA_VERSION),),
            )
        except sqlite3.Error as e:
            logger.error(f"Failed to open database at {db_path}: {e}")
            raise PersistenceError("open", str(e)) from e

        logger.debug(f"Database initialized at {db_path}")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator["Database"]:
        """Atomic transaction: all writes commit together or roll back entirely.

        Raises:
            PersistenceError: If the store fails to begin or commit
        """
        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise PersistenceError("begin", str(e)) from e

            self._depth = 1
            try:
                yield self
            except BaseException:
                self._depth = 0
                self._rollback()
                raise

            self._depth = 0
            try:
                self._conn.execute("COMMIT")
            except sqlite3.Error as e:
                self._rollback()
                raise PersistenceError("commit", str(e)) from e

    def _rollback(self) -> None:
        """Roll back the open transaction, logging (not raising) a failed rollback."""
        try:
            self._conn.execute("ROLLBACK")
            logger.debug("Transaction rolled back")
        except sqlite3.Error as rollback_error:
            logger.error(f"Rollback failed: {rollback_error}")

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def _execute(self, operation: str, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with self._lock:
            try:
                return self._conn.execute(sql, params)
            except sqlite3.Error as e:
                logger.error(f"Store operation '{operation}' failed: {e}")
                raise PersistenceError(operation, str(e)) from e

    def _fetchone(self, operation: str, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self._lock:
            return self._execute(operation, sql, params).fetchone()

    def _fetchall(self, operation: str, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self._execute(operation, sql, params).fetchall()

    # ── Branches ─────────────────────────────────────────────────────────────

    @staticmethod
    def _row_to_branch(row: sqlite3.Row) -> Branch:
        return Branch(
            id=row["id"],
            suite_id=row["suite_id"],
            name=row["name"],
            parent_branch_id=row["parent_branch_id"],
            is_default=bool(row["is_default"]),
            status=BranchStatus(row["status"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            head_snapshot_id=row["head_snapshot_id"],
            forked_from_snapshot_id=row["forked_from_snapshot_id"],
            description=row["description"],
            created_by=row["created_by"],
        )

    def insert_branch(self, branch: Branch) -> None:
        self._execute(
            "insert_branch",
            """
            INSERT INTO branches
                (id, suite_id, name, parent_branch_id, is_default, status,
                 head_snapshot_id, forked_from_snapshot_id, description,
                 created_by, created_at, updated_at)
            VALUES (?,?,?,?,?,?,?,?,?,?,?,?)
            """,
            (
                branch.id, branch.suite_id, branch.name, branch.parent_branch_id,
                int(branch.is_default), branch.status.value, branch.head_snapshot_id,
                branch.forked_from_snapshot_id, branch.description, branch.created_by,
                branch.created_at, branch.updated_at,
            ),
        )

    def update_branch(self, branch: Branch) -> None:
        self._execute(
            "update_branch",
            """
            UPDATE branches
               SET name = ?, status = ?, description = ?, head_snapshot_id = ?,
                   forked_from_snapshot_id = ?, updated_at = ?
             WHERE id = ?
            """,
            (
                branch.name, branch.status.value, branch.description,
                branch.head_snapshot_id, branch.forked_from_snapshot_id,
                branch.updated_at, branch.id,
            ),
        )

    def set_branch_head(self, branch_id: str, snapshot_id: str, updated_at: str) -> None:
        self._execute(
            "set_branch_head",
            "UPDATE branches SET head_snapshot_id = ?, updated_at = ? WHERE id = ?",
            (snapshot_id, updated_at, branch_id),
        )

    def delete_branch(self, branch_id: str) -> None:
        self._execute("delete_branch", "DELETE FROM branches WHERE id = ?", (branch_id,))

    def get_branch(self, branch_id: str) -> Optional[Branch]:
        row = self._fetchone("get_branch", "SELECT * FROM branches WHERE id = ?", (branch_id,))
        return self._row_to_branch(row) if row else None

    def find_branch_by_name(self, suite_id: str, name: str) -> Optional[Branch]:
        row = self._fetchone(
            "find_branch_by_name",
            "SELECT * FROM branches WHERE suite_id = ? AND name = ?",
            (suite_id, name),
        )
        return self._row_to_branch(row) if row else None

    def get_default_branch(self, suite_id: str) -> Optional[Branch]:
        row = self._fetchone(
            "get_default_branch",
            "SELECT * FROM branches WHERE suite_id = ? AND is_default = 1",
            (suite_id,),
        )
        return self._row_to_branch(row) if row else None

    def list_branches(self, suite_id: str) -> List[Branch]:
        rows = self._fetchall(
            "list_branches",
            "SELECT * FROM branches WHERE suite_id = ? ORDER BY seq",
            (suite_id,),
        )
        return [self._row_to_branch(row) for row in rows]

    def list_child_branches(self, branch_id: str) -> List[Branch]:
        rows = self._fetchall(
            "list_child_branches",
            "SELECT * FROM branches WHERE parent_branch_id = ? ORDER BY seq",
            (branch_id,),
        )
        return [self._row_to_branch(row) for row in rows]

    # ── Snapshots ────────────────────────────────────────────────────────────

    @staticmethod
    def _row_to_snapshot(row: sqlite3.Row) -> Snapshot:
        return Snapshot(
            id=row["id"],
            branch_id=row["branch_id"],
            captured_at=row["captured_at"],
            content_hash=row["content_hash"],
            content=SnapshotContent(
                code_files=json.loads(row["code_files"]),
                scenarios=json.loads(row["scenarios"]),
                config=json.loads(row["config"]),
            ),
        )

    def insert_snapshot(self, snapshot: Snapshot) -> None:
        self._execute(
            "insert_snapshot",
            """
            INSERT INTO snapshots
                (id, branch_id, captured_at, content_hash, code_files, scenarios, config)
            VALUES (?,?,?,?,?,?,?)
            """,
            (
                snapshot.id, snapshot.branch_id, snapshot.captured_at, snapshot.content_hash,
                json.dumps(snapshot.content.code_files, sort_keys=True, ensure_ascii=False),
                json.dumps(snapshot.content.scenarios, sort_keys=True, ensure_ascii=False),
                json.dumps(snapshot.content.config, sort_keys=True, ensure_ascii=False),
            ),
        )

    def get_snapshot(self, snapshot_id: str) -> Optional[Snapshot]:
        row = self._fetchone("get_snapshot", "SELECT * FROM snapshots WHERE id = ?", (snapshot_id,))
        return self._row_to_snapshot(row) if row else None

    def get_snapshot_seq(self, snapshot_id: str) -> Optional[int]:
        row = self._fetchone("get_snapshot_seq", "SELECT seq FROM snapshots WHERE id = ?", (snapshot_id,))
        return row["seq"] if row else None

    def get_latest_snapshot(self, branch_id: str) -> Optional[Snapshot]:
        row = self._fetchone(
            "get_latest_snapshot",
            """
            SELECT * FROM snapshots WHERE branch_id = ?
             ORDER BY captured_at DESC, seq DESC LIMIT 1
            """,
            (branch_id,),
        )
        return self._row_to_snapshot(row) if row else None

    def list_snapshots(self, branch_id: str) -> List[Snapshot]:
        rows = self._fetchall(
            "list_snapshots",
            "SELECT * FROM snapshots WHERE branch_id = ? ORDER BY seq",
            (branch_id,),
        )
        return [self._row_to_snapshot(row) for row in rows]

    def count_snapshots(self, branch_id: str) -> int:
        row = self._fetchone(
            "count_snapshots",
            "SELECT COUNT(*) AS n FROM snapshots WHERE branch_id = ?",
            (branch_id,),
        )
        return row["n"]

    # ── Merge requests ───────────────────────────────────────────────────────

    @staticmethod
    def _row_to_merge_request(row: sqlite3.Row) -> MergeRequest:
        return MergeRequest(
            id=row["id"],
            suite_id=row["suite_id"],
            source_branch_id=row["source_branch_id"],
            target_branch_id=row["target_branch_id"],
            base_snapshot_id=row["base_snapshot_id"],
            source_head_snapshot_id=row["source_head_snapshot_id"],
            target_head_snapshot_id=row["target_head_snapshot_id"],
            status=MergeRequestStatus(row["status"]),
            title=row["title"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            description=row["description"],
            created_by=row["created_by"],
            merged_by=row["merged_by"],
            merged_at=row["merged_at"],
            merged_snapshot_id=row["merged_snapshot_id"],
        )

    def insert_merge_request(self, request: MergeRequest) -> None:
        self._execute(
            "insert_merge_request",
            """
            INSERT INTO merge_requests
                (id, suite_id, source_branch_id, target_branch_id, base_snapshot_id,
                 source_head_snapshot_id, target_head_snapshot_id, status, title,
                 description, created_by, created_at, updated_at, merged_by,
                 merged_at, merged_snapshot_id)
            VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
            """,
            (
                request.id, request.suite_id, request.source_branch_id,
                request.target_branch_id, request.base_snapshot_id,
                request.source_head_snapshot_id, request.target_head_snapshot_id,
                request.status.value, request.title, request.description,
                request.created_by, request.created_at, request.updated_at,
                request.merged_by, request.merged_at, request.merged_snapshot_id,
            ),
        )

    def update_merge_request(self, request: MergeRequest) -> None:
        self._execute(
            "update_merge_request",
            """
            UPDATE merge_requests
               SET status = ?, updated_at = ?, merged_by = ?, merged_at = ?,
                   merged_snapshot_id = ?
             WHERE id = ?
            """,
            (
                request.status.value, request.updated_at, request.merged_by,
                request.merged_at, request.merged_snapshot_id, request.id,
            ),
        )

    def get_merge_request(self, request_id: str) -> Optional[MergeRequest]:
        row = self._fetchone(
            "get_merge_request", "SELECT * FROM merge_requests WHERE id = ?", (request_id,)
        )
        return self._row_to_merge_request(row) if row else None

    def list_merge_requests(
        self,
        suite_id: str,
        status: Optional[MergeRequestStatus] = None,
    ) -> List[MergeRequest]:
        if status is None:
            rows = self._fetchall(
                "list_merge_requests",
                "SELECT * FROM merge_requests WHERE suite_id = ? ORDER BY seq DESC",
                (suite_id,),
            )
        else:
            rows = self._fetchall(
                "list_merge_requests",
                "SELECT * FROM merge_requests WHERE suite_id = ? AND status = ? ORDER BY seq DESC",
                (suite_id, status.value),
            )
        return [self._row_to_merge_request(row) for row in rows]

    def list_active_merge_requests_for_branch(self, branch_id: str) -> List[MergeRequest]:
        """Merge requests in open or conflict state referencing the branch."""
        rows = self._fetchall(
            "list_active_merge_requests_for_branch",
            """
            SELECT * FROM merge_requests
             WHERE (source_branch_id = ? OR target_branch_id = ?)
               AND status IN (?, ?)
             ORDER BY seq
            """,
            (branch_id, branch_id, MergeRequestStatus.OPEN.value, MergeRequestStatus.CONFLICT.value),
        )
        return [self._row_to_merge_request(row) for row in rows]

    # ── Conflicts and resolutions ────────────────────────────────────────────

    @staticmethod
    def _row_to_conflict(row: sqlite3.Row) -> MergeConflict:
        return MergeConflict(
            id=row["id"],
            merge_request_id=row["merge_request_id"],
            path=row["path"],
            kind=ConflictKind(row["kind"]),
            base_value=decode_value(row["base_value"]),
            source_value=decode_value(row["source_value"]),
            target_value=decode_value(row["target_value"]),
            resolution_status=ResolutionStatus(row["resolution_status"]),
        )

    def insert_conflict(self, conflict: MergeConflict) -> None:
        self._execute(
            "insert_conflict",
            """
            INSERT INTO merge_conflicts
                (id, merge_request_id, path, kind, base_value, source_value,
                 target_value, resolution_status)
            VALUES (?,?,?,?,?,?,?,?)
            """,
            (
                conflict.id, conflict.merge_request_id, conflict.path, conflict.kind.value,
                encode_value(conflict.base_value), encode_value(conflict.source_value),
                encode_value(conflict.target_value), conflict.resolution_status.value,
            ),
        )

    def set_conflict_status(self, conflict_id: str, status: ResolutionStatus) -> None:
        self._execute(
            "set_conflict_status",
            "UPDATE merge_conflicts SET resolution_status = ? WHERE id = ?",
            (status.value, conflict_id),
        )

    def get_conflict(self, conflict_id: str) -> Optional[MergeConflict]:
        row = self._fetchone(
            "get_conflict", "SELECT * FROM merge_conflicts WHERE id = ?", (conflict_id,)
        )
        return self._row_to_conflict(row) if row else None

    def list_conflicts(self, merge_request_id: str) -> List[MergeConflict]:
        rows = self._fetchall(
            "list_conflicts",
            "SELECT * FROM merge_conflicts WHERE merge_request_id = ? ORDER BY seq",
            (merge_request_id,),
        )
        return [self._row_to_conflict(row) for row in rows]

    @staticmethod
    def _row_to_resolution(row: sqlite3.Row) -> ConflictResolution:
        return ConflictResolution(
            id=row["id"],
            conflict_id=row["conflict_id"],
            strategy=ResolutionStrategy(row["strategy"]),
            resolved_value=decode_value(row["resolved_value"]),
            resolved_by=row["resolved_by"],
            resolved_at=row["resolved_at"],
        )

    def insert_resolution(self, resolution: ConflictResolution) -> None:
        self._execute(
            "insert_resolution",
            """
            INSERT INTO conflict_resolutions
                (id, conflict_id, strategy, resolved_value, resolved_by, resolved_at)
            VALUES (?,?,?,?,?,?)
            """,
            (
                resolution.id, resolution.conflict_id, resolution.strategy.value,
                encode_value(resolution.resolved_value), resolution.resolved_by,
                resolution.resolved_at,
            ),
        )

    def get_latest_resolution(self, conflict_id: str) -> Optional[ConflictResolution]:
        row = self._fetchone(
            "get_latest_resolution",
            """
            SELECT * FROM conflict_resolutions WHERE conflict_id = ?
             ORDER BY seq DESC LIMIT 1
            """,
            (conflict_id,),
        )
        return self._row_to_resolution(row) if row else None

    # ── Merge history ────────────────────────────────────────────────────────

    def append_history(self, entry: MergeHistoryEntry) -> None:
        self._execute(
            "append_history",
            """
            INSERT INTO merge_history (id, merge_request_id, action, actor, timestamp, detail)
            VALUES (?,?,?,?,?,?)
            """,
            (
                entry.id, entry.merge_request_id, entry.action.value, entry.actor,
                entry.timestamp, json.dumps(entry.detail, sort_keys=True),
            ),
        )

    def list_history(self, merge_request_id: str) -> List[MergeHistoryEntry]:
        rows = self._fetchall(
            "list_history",
            "SELECT * FROM merge_history WHERE merge_request_id = ? ORDER BY seq",
            (merge_request_id,),
        )
        return [
            MergeHistoryEntry(
                id=row["id"],
                merge_request_id=row["merge_request_id"],
                action=HistoryAction(row["action"]),
                actor=row["actor"],
                timestamp=row["timestamp"],
                detail=json.loads(row["detail"]),
            )
            for row in rows
        ]
