"""Branch data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.core.errors import ValidationError
from src.models.snapshot import Snapshot


class BranchStatus(Enum):
    """Lifecycle status of a branch."""

    ACTIVE = "active"
    MERGED = "merged"
    CLOSED = "closed"
    ARCHIVED = "archived"

    @property
    def is_read_only(self) -> bool:
        """Merged and archived branches accept no new snapshots."""
        return self in (BranchStatus.MERGED, BranchStatus.ARCHIVED)

    @classmethod
    def parse(cls, value: str) -> "BranchStatus":
        """Return the status named by value.

        Raises:
            ValidationError: If value names no status
        """
        try:
            return cls(value.lower())
        except ValueError:
            valid = ", ".join(s.value for s in cls)
            raise ValidationError(
                f"Unknown branch status {value!r} (expected one of: {valid})", 'status'
            )


# Allowed status transitions (from -> to)
BRANCH_TRANSITIONS = {
    BranchStatus.ACTIVE: {BranchStatus.MERGED, BranchStatus.CLOSED, BranchStatus.ARCHIVED},
    BranchStatus.MERGED: set(),
    BranchStatus.CLOSED: set(),
    BranchStatus.ARCHIVED: set(),
}


@dataclass
class Branch:
    """Named, mutable pointer to an evolving line of test-suite content.

    Branches form a single-parent tree per suite. The default branch is the
    root of that tree and is the only branch without a parent.

    Attributes:
        id: Branch identifier
        suite_id: Owning test suite
        name: Branch name, unique within the suite
        parent_branch_id: Parent branch id (None only for the default branch)
        is_default: Whether this is the suite's default branch
        status: Lifecycle status
        created_at: ISO 8601 creation timestamp
        updated_at: ISO 8601 timestamp of the last metadata change
        head_snapshot_id: Most recent snapshot captured on the branch
        forked_from_snapshot_id: Parent snapshot the branch was seeded from
        description: Optional free-text description
        created_by: Optional actor that created the branch
    """
    id: str
    suite_id: str
    name: str
    parent_branch_id: Optional[str]
    is_default: bool
    status: BranchStatus
    created_at: str
    updated_at: str
    head_snapshot_id: Optional[str] = None
    forked_from_snapshot_id: Optional[str] = None
    description: Optional[str] = None
    created_by: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'suite_id': self.suite_id,
            'name': self.name,
            'parent_branch_id': self.parent_branch_id,
            'is_default': self.is_default,
            'status': self.status.value,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'head_snapshot_id': self.head_snapshot_id,
            'forked_from_snapshot_id': self.forked_from_snapshot_id,
            'description': self.description,
            'created_by': self.created_by,
        }


@dataclass
class BranchDetails:
    """Branch together with its head snapshot and snapshot count."""
    branch: Branch
    head_snapshot: Optional[Snapshot]
    snapshot_count: int
