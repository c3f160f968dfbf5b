"""Data models for branches, snapshots, diffs and merge requests."""

from src.models.snapshot import Snapshot, SnapshotContent
from src.models.branch import BRANCH_TRANSITIONS, Branch, BranchDetails, BranchStatus
from src.models.diff import (
    ABSENT,
    ChangeType,
    CodeChange,
    ConfigChange,
    Diff,
    LineOp,
    LineOpType,
)
from src.models.merge import (
    ConflictKind,
    ConflictResolution,
    ConflictWithResolution,
    HistoryAction,
    MergeConflict,
    MergeHistoryEntry,
    MergeRequest,
    MergeRequestStatus,
    ResolutionStatus,
    ResolutionStrategy,
)

__all__ = [
    'ABSENT',
    'BRANCH_TRANSITIONS',
    'Branch',
    'BranchDetails',
    'BranchStatus',
    'ChangeType',
    'CodeChange',
    'ConfigChange',
    'ConflictKind',
    'ConflictResolution',
    'ConflictWithResolution',
    'Diff',
    'HistoryAction',
    'LineOp',
    'LineOpType',
    'MergeConflict',
    'MergeHistoryEntry',
    'MergeRequest',
    'MergeRequestStatus',
    'ResolutionStatus',
    'ResolutionStrategy',
    'Snapshot',
    'SnapshotContent',
]
