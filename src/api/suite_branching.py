"""Engine facade used by the CLI and by presentation layers.

SuiteBranching wires the storage, snapshot, diff, branch and merge
components over one Database and exposes their operations. Suite and
branch ids are always passed explicitly; the facade keeps no notion of a
"current" branch.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from src.branching.branch_manager import BranchManager
from src.core.config import SuiteBranchingConfig
from src.core.errors import NotFoundError
from src.diff_engine.cancellation import CancellationToken
from src.diff_engine.diff_engine import DiffEngine
from src.merge.merge_coordinator import MergeCoordinator
from src.models.branch import Branch, BranchDetails, BranchStatus
from src.models.diff import ABSENT, Diff
from src.models.merge import (
    ConflictResolution,
    ConflictWithResolution,
    MergeHistoryEntry,
    MergeRequest,
    MergeRequestStatus,
    ResolutionStrategy,
)
from src.models.snapshot import Snapshot, SnapshotContent
from src.snapshots.snapshot_engine import SnapshotEngine
from src.storage.database import Database

logger = logging.getLogger(__name__)


class SuiteBranching:
    """Branching and merge engine for test suites.

    Example:
        >>> engine = SuiteBranching(SuiteBranchingConfig(database_path=":memory:"))
        >>> main = engine.create_suite("checkout")
        >>> feature = engine.create_branch("checkout", "feature-x")
        >>> engine.capture_snapshot(feature.id, {"scenarios": [{"name": "pay"}]})
        >>> request = engine.create_merge_request(feature.id, main.id)
        >>> engine.execute_merge(request.id)
    """

    def __init__(
        self,
        config: Optional[SuiteBranchingConfig] = None,
        db: Optional[Database] = None,
    ):
        """Initialize the engine.

        Args:
            config: Engine configuration (defaults apply when omitted)
            db: Existing Database to use instead of opening config.database_path

        Raises:
            PersistenceError: If the database cannot be opened
        """
        self.config = config or SuiteBranchingConfig()
        self.db = db if db is not None else Database(self.config.database_path)
        self.snapshots = SnapshotEngine(self.db)
        self.diffs = DiffEngine(self.snapshots)
        self.branches = BranchManager(
            self.db,
            self.snapshots,
            default_branch_name=self.config.default_branch_name,
            default_config=self.config.default_config,
        )
        self.merges = MergeCoordinator(
            self.db,
            self.branches,
            self.snapshots,
            self.diffs,
            diff_timeout=self.config.diff_timeout_seconds,
        )
        logger.debug(f"Suite branching engine ready (store: {self.db.db_path})")

    def __enter__(self) -> "SuiteBranching":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.db.close()

    def _actor(self, actor: Optional[str]) -> Optional[str]:
        return actor if actor is not None else self.config.default_actor

    # Branches

    def create_suite(
        self,
        suite_id: str,
        initial_content: Optional[Union[SnapshotContent, Dict[str, Any]]] = None,
        created_by: Optional[str] = None,
    ) -> Branch:
        """Ensure a suite has its default branch and return it."""
        if isinstance(initial_content, dict):
            initial_content = SnapshotContent.from_payload(initial_content)
        return self.branches.ensure_default_branch(
            suite_id, initial_content, created_by=self._actor(created_by)
        )

    def create_branch(
        self,
        suite_id: str,
        name: str,
        parent_branch_id: Optional[str] = None,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Branch:
        return self.branches.create_branch(
            suite_id, name, parent_branch_id, description, created_by=self._actor(created_by)
        )

    def list_branches(self, suite_id: str) -> List[Branch]:
        return self.branches.list_branches(suite_id)

    def get_branch(self, branch_id: str) -> Branch:
        return self.branches.get_branch(branch_id)

    def find_branch(self, suite_id: str, name_or_id: str) -> Branch:
        """Look a branch up by name within a suite, falling back to its id."""
        branch = self.db.find_branch_by_name(suite_id, name_or_id)
        if branch is not None:
            return branch
        branch = self.db.get_branch(name_or_id)
        if branch is None or branch.suite_id != suite_id:
            raise NotFoundError("Branch", name_or_id)
        return branch

    def get_branch_details(self, branch_id: str) -> BranchDetails:
        return self.branches.get_branch_details(branch_id)

    def get_ancestors(self, branch_id: str) -> List[Branch]:
        return self.branches.get_ancestors(branch_id)

    def get_children(self, branch_id: str) -> List[Branch]:
        return self.branches.get_children(branch_id)

    def update_branch(
        self,
        branch_id: str,
        name: Optional[str] = None,
        status: Optional[Union[BranchStatus, str]] = None,
        description: Optional[str] = None,
    ) -> Branch:
        if isinstance(status, str):
            status = BranchStatus.parse(status)
        return self.branches.update_branch(branch_id, name, status, description)

    def delete_branch(self, branch_id: str) -> None:
        self.branches.delete_branch(branch_id)

    # Snapshots

    def capture_snapshot(
        self,
        branch_id: str,
        content: Union[SnapshotContent, Dict[str, Any]],
    ) -> Snapshot:
        return self.snapshots.capture_snapshot(branch_id, content)

    def get_snapshot(self, snapshot_id: str) -> Snapshot:
        return self.snapshots.get_snapshot(snapshot_id)

    def get_head_snapshot(self, branch_id: str) -> Optional[Snapshot]:
        return self.snapshots.get_head_snapshot(branch_id)

    def list_snapshots(self, branch_id: str) -> List[Snapshot]:
        return self.snapshots.list_snapshots(branch_id)

    def get_diff(
        self,
        from_snapshot_id: str,
        to_snapshot_id: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Diff:
        return self.merges.get_diff(from_snapshot_id, to_snapshot_id, cancel_token)

    def compare_branches(
        self,
        source_branch_id: str,
        target_branch_id: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Diff:
        """Diff the current heads of two branches of the same suite."""
        return self.merges.compare_branches(source_branch_id, target_branch_id, cancel_token)

    # Merge requests

    def create_merge_request(
        self,
        source_branch_id: str,
        target_branch_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> MergeRequest:
        return self.merges.create_merge_request(
            source_branch_id,
            target_branch_id,
            title=title,
            description=description,
            created_by=self._actor(created_by),
            cancel_token=cancel_token,
        )

    def resolve_conflict(
        self,
        conflict_id: str,
        strategy: Union[ResolutionStrategy, str],
        custom_value: Any = ABSENT,
        resolved_by: Optional[str] = None,
    ) -> ConflictResolution:
        return self.merges.resolve_conflict(
            conflict_id, strategy, custom_value, resolved_by=self._actor(resolved_by)
        )

    def execute_merge(self, merge_request_id: str, merged_by: Optional[str] = None) -> Snapshot:
        return self.merges.execute_merge(merge_request_id, merged_by=self._actor(merged_by))

    def close_merge_request(self, merge_request_id: str, actor: Optional[str] = None) -> MergeRequest:
        return self.merges.close_merge_request(merge_request_id, actor=self._actor(actor))

    def get_merge_request(self, merge_request_id: str) -> MergeRequest:
        return self.merges.get_merge_request(merge_request_id)

    def list_merge_requests(
        self,
        suite_id: str,
        status: Optional[Union[MergeRequestStatus, str]] = None,
    ) -> List[MergeRequest]:
        return self.merges.list_merge_requests(suite_id, status)

    def list_conflicts(self, merge_request_id: str) -> List[ConflictWithResolution]:
        return self.merges.list_conflicts(merge_request_id)

    def get_history(self, merge_request_id: str) -> List[MergeHistoryEntry]:
        return self.merges.get_history(merge_request_id)

    def get_conflict(self, conflict_id: str) -> ConflictWithResolution:
        return self.merges.get_conflict(conflict_id)
