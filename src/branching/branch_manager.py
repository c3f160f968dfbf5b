"""Branch lifecycle and lineage management.

This module provides the BranchManager class which owns branch creation,
updates and deletion for a test suite. Branches form a single-parent tree
rooted at the suite's default branch; a new branch is seeded with a copy of
its parent's head snapshot.
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from src.core.errors import NotFoundError, ValidationError
from src.core.utils import new_id, utc_now
from src.models.branch import BRANCH_TRANSITIONS, Branch, BranchDetails, BranchStatus
from src.models.snapshot import Snapshot, SnapshotContent
from src.snapshots.snapshot_engine import SnapshotEngine
from src.storage.database import Database

logger = logging.getLogger(__name__)

DEFAULT_BRANCH_NAME = "main"

# Maximum branch name length
MAX_NAME_LENGTH = 100


class BranchManager:
    """Owns branch lifecycle and lineage invariants.

    Invariants maintained:
        - exactly one default branch per suite
        - every non-default branch has exactly one existing parent in the
          same suite
        - the parent graph is a tree (branches only ever attach to an
          existing parent and parents never change)

    Example:
        >>> manager = BranchManager(db, snapshot_engine)
        >>> main = manager.ensure_default_branch("checkout")
        >>> feature = manager.create_branch("checkout", "feature-x", main.id)
    """

    def __init__(
        self,
        db: Database,
        snapshots: SnapshotEngine,
        default_branch_name: str = DEFAULT_BRANCH_NAME,
        default_config: Optional[Dict[str, Any]] = None,
    ):
        """Initialize branch manager.

        Args:
            db: Transactional store
            snapshots: SnapshotEngine used to seed new branches
            default_branch_name: Name given to auto-created default branches
            default_config: Config of a default branch's initial snapshot
        """
        self.db = db
        self.snapshots = snapshots
        self.default_branch_name = default_branch_name
        self.default_config = default_config or {}

    def _validate_name(self, name: str) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Branch name cannot be empty", 'name')
        name = name.strip()
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(
                f"Branch name exceeds {MAX_NAME_LENGTH} characters", 'name'
            )
        return name

    def _require_branch(self, branch_id: str) -> Branch:
        branch = self.db.get_branch(branch_id)
        if branch is None:
            raise NotFoundError("Branch", branch_id)
        return branch

    def ensure_default_branch(
        self,
        suite_id: str,
        initial_content: Optional[SnapshotContent] = None,
        created_by: Optional[str] = None,
    ) -> Branch:
        """Return the suite's default branch, creating it if needed.

        A newly created default branch gets an initial snapshot with empty
        code, an empty scenario list and the configured default config,
        unless ``initial_content`` is supplied.

        Args:
            suite_id: Test suite id
            initial_content: Optional content for the initial snapshot
            created_by: Optional actor

        Returns:
            The (possibly new) default branch
        """
        if not suite_id:
            raise ValidationError("suite_id cannot be empty", 'suite_id')

        with self.db.transaction():
            existing = self.db.get_default_branch(suite_id)
            if existing is not None:
                return existing

            now = utc_now()
            branch = Branch(
                id=new_id(),
                suite_id=suite_id,
                name=self.default_branch_name,
                parent_branch_id=None,
                is_default=True,
                status=BranchStatus.ACTIVE,
                created_at=now,
                updated_at=now,
                description="Default branch",
                created_by=created_by,
            )
            if self.db.find_branch_by_name(suite_id, branch.name) is not None:
                raise ValidationError(
                    f"Branch name '{branch.name}' already exists in suite {suite_id}", 'name'
                )
            self.db.insert_branch(branch)

            content = initial_content or SnapshotContent(
                config=copy.deepcopy(self.default_config)
            )
            self.snapshots.capture_snapshot(branch.id, content)

            logger.info(f"Created default branch '{branch.name}' for suite {suite_id}")
            return self._require_branch(branch.id)

    def create_branch(
        self,
        suite_id: str,
        name: str,
        parent_branch_id: Optional[str] = None,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Branch:
        """Fork a new branch from a parent.

        The parent's head snapshot is copied as the new branch's initial
        snapshot and remembered as its fork point. Without a parent id the
        suite's default branch is used.

        Args:
            suite_id: Test suite id
            name: Branch name, unique within the suite
            parent_branch_id: Parent branch (defaults to the default branch)
            description: Optional description
            created_by: Optional actor

        Returns:
            The new branch

        Raises:
            ValidationError: Duplicate name, missing or archived parent, or a
                parent from another suite
            PersistenceError: If the store fails
        """
        name = self._validate_name(name)

        with self.db.transaction():
            if parent_branch_id is None:
                parent = self.ensure_default_branch(suite_id, created_by=created_by)
            else:
                parent = self.db.get_branch(parent_branch_id)
                if parent is None:
                    raise ValidationError(
                        f"Parent branch {parent_branch_id} does not exist", 'parent_branch_id'
                    )

            if parent.suite_id != suite_id:
                raise ValidationError(
                    f"Parent branch {parent.id} belongs to suite {parent.suite_id}",
                    'parent_branch_id',
                )
            if parent.status == BranchStatus.ARCHIVED:
                raise ValidationError(
                    f"Cannot fork from archived branch '{parent.name}'", 'parent_branch_id'
                )
            if self.db.find_branch_by_name(suite_id, name) is not None:
                raise ValidationError(
                    f"Branch name '{name}' already exists in suite {suite_id}", 'name'
                )

            parent_head = self.snapshots.get_head_snapshot(parent.id)

            now = utc_now()
            branch = Branch(
                id=new_id(),
                suite_id=suite_id,
                name=name,
                parent_branch_id=parent.id,
                is_default=False,
                status=BranchStatus.ACTIVE,
                created_at=now,
                updated_at=now,
                forked_from_snapshot_id=parent_head.id if parent_head else None,
                description=description,
                created_by=created_by,
            )
            self.db.insert_branch(branch)

            seed = parent_head.content if parent_head else SnapshotContent()
            self.snapshots.capture_snapshot(branch.id, seed)

            logger.info(
                f"Created branch '{name}' from '{parent.name}' "
                f"at snapshot {branch.forked_from_snapshot_id}"
            )
            return self._require_branch(branch.id)

    def list_branches(self, suite_id: str) -> List[Branch]:
        return self.db.list_branches(suite_id)

    def get_branch(self, branch_id: str) -> Branch:
        """Return a branch by id.

        Raises:
            NotFoundError: If the branch does not exist
        """
        return self._require_branch(branch_id)

    def get_head_snapshot(self, branch_id: str) -> Optional[Snapshot]:
        return self.snapshots.get_head_snapshot(branch_id)

    def get_branch_details(self, branch_id: str) -> BranchDetails:
        branch = self._require_branch(branch_id)
        return BranchDetails(
            branch=branch,
            head_snapshot=self.snapshots.get_head_snapshot(branch_id),
            snapshot_count=self.db.count_snapshots(branch_id),
        )

    def get_ancestors(self, branch_id: str) -> List[Branch]:
        """Return the lineage of a branch, nearest parent first.

        Raises:
            NotFoundError: If the branch does not exist
            ValidationError: If stored lineage is broken or cyclic
        """
        branch = self._require_branch(branch_id)
        ancestors: List[Branch] = []
        seen = {branch.id}
        current = branch
        while current.parent_branch_id is not None:
            if current.parent_branch_id in seen:
                raise ValidationError(f"Branch lineage of {branch_id} contains a cycle")
            parent = self.db.get_branch(current.parent_branch_id)
            if parent is None:
                raise ValidationError(
                    f"Branch {current.id} references missing parent {current.parent_branch_id}"
                )
            ancestors.append(parent)
            seen.add(parent.id)
            current = parent
        return ancestors

    def get_children(self, branch_id: str) -> List[Branch]:
        self._require_branch(branch_id)
        return self.db.list_child_branches(branch_id)

    def update_branch(
        self,
        branch_id: str,
        name: Optional[str] = None,
        status: Optional[BranchStatus] = None,
        description: Optional[str] = None,
    ) -> Branch:
        """Rename a branch, change its description, or move its status.

        Status may only move from active to merged, closed or archived; the
        default branch always stays active.

        Raises:
            NotFoundError: If the branch does not exist
            ValidationError: Invalid transition or duplicate name
        """
        with self.db.transaction():
            branch = self._require_branch(branch_id)

            if name is not None:
                name = self._validate_name(name)
                if name != branch.name:
                    clash = self.db.find_branch_by_name(branch.suite_id, name)
                    if clash is not None:
                        raise ValidationError(
                            f"Branch name '{name}' already exists in suite {branch.suite_id}",
                            'name',
                        )
                    branch.name = name

            if status is not None and status != branch.status:
                if branch.is_default:
                    raise ValidationError("The default branch status cannot change", 'status')
                if status not in BRANCH_TRANSITIONS[branch.status]:
                    raise ValidationError(
                        f"Cannot change status from {branch.status.value} to {status.value}",
                        'status',
                    )
                branch.status = status

            if description is not None:
                branch.description = description

            branch.updated_at = utc_now()
            self.db.update_branch(branch)

        logger.info(f"Updated branch {branch_id} ({branch.name}, {branch.status.value})")
        return branch

    def delete_branch(self, branch_id: str) -> None:
        """Delete a branch; its snapshots are retained.

        Raises:
            NotFoundError: If the branch does not exist
            ValidationError: Open merge requests reference it, it is the
                default branch, or it has child branches
        """
        with self.db.transaction():
            branch = self._require_branch(branch_id)

            active_requests = self.db.list_active_merge_requests_for_branch(branch_id)
            if active_requests:
                ids = ", ".join(r.id for r in active_requests)
                raise ValidationError(
                    f"Branch '{branch.name}' is referenced by open merge request(s): {ids}"
                )
            if branch.is_default:
                raise ValidationError("The default branch cannot be deleted")
            children = self.db.list_child_branches(branch_id)
            if children:
                names = ", ".join(c.name for c in children)
                raise ValidationError(
                    f"Branch '{branch.name}' has child branches: {names}"
                )

            self.db.delete_branch(branch_id)

        logger.info(f"Deleted branch {branch_id} ({branch.name})")
