"""Merge request, conflict, resolution and history data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from src.models.diff import ABSENT


class MergeRequestStatus(Enum):
    """Merge request state machine.

    OPEN -> CONFLICT -> OPEN (after resolution) -> MERGED; any non-terminal
    state may transition to CLOSED.
    """

    OPEN = "open"
    CONFLICT = "conflict"
    MERGED = "merged"
    CLOSED = "closed"

    @property
    def is_terminal(self) -> bool:
        return self in (MergeRequestStatus.MERGED, MergeRequestStatus.CLOSED)


class ConflictKind(Enum):
    """Which part of the snapshot a conflict lives in."""

    CODE = "code"
    CONFIG = "config"
    SCENARIO = "scenario"


class ResolutionStatus(Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class ResolutionStrategy(Enum):
    """Closed set of conflict resolution strategies.

    Every member must have exactly one handler in
    src.merge.resolution.STRATEGY_HANDLERS.
    """

    SOURCE = "source"
    TARGET = "target"
    BOTH = "both"
    CUSTOM = "custom"


class HistoryAction(Enum):
    CREATED = "created"
    CONFLICT_DETECTED = "conflict_detected"
    RESOLVED = "resolved"
    MERGED = "merged"
    CLOSED = "closed"


@dataclass
class MergeRequest:
    """Proposal to fold one branch's changes into another.

    Attributes:
        id: Merge request identifier
        suite_id: Suite both branches belong to
        source_branch_id: Branch whose changes are merged
        target_branch_id: Branch receiving the changes
        base_snapshot_id: Common ancestor snapshot
        source_head_snapshot_id: Source head the source diff was computed to
        target_head_snapshot_id: Target head the target diff was computed to
        status: Current state
        title: Short title
        created_at: ISO 8601 creation timestamp
        updated_at: ISO 8601 timestamp of the last status change
        description: Optional description
        created_by: Optional actor that proposed the merge
        merged_by: Actor that executed the merge
        merged_at: ISO 8601 merge timestamp
        merged_snapshot_id: Snapshot produced on the target by the merge
    """
    id: str
    suite_id: str
    source_branch_id: str
    target_branch_id: str
    base_snapshot_id: str
    source_head_snapshot_id: str
    target_head_snapshot_id: str
    status: MergeRequestStatus
    title: str
    created_at: str
    updated_at: str
    description: Optional[str] = None
    created_by: Optional[str] = None
    merged_by: Optional[str] = None
    merged_at: Optional[str] = None
    merged_snapshot_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'suite_id': self.suite_id,
            'source_branch_id': self.source_branch_id,
            'target_branch_id': self.target_branch_id,
            'base_snapshot_id': self.base_snapshot_id,
            'source_head_snapshot_id': self.source_head_snapshot_id,
            'target_head_snapshot_id': self.target_head_snapshot_id,
            'status': self.status.value,
            'title': self.title,
            'description': self.description,
            'created_by': self.created_by,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'merged_by': self.merged_by,
            'merged_at': self.merged_at,
            'merged_snapshot_id': self.merged_snapshot_id,
        }


@dataclass
class MergeConflict:
    """A path changed divergently by source and target since the base.

    Values that do not exist on one side (removed file, missing key) are
    ABSENT.

    Attributes:
        id: Conflict identifier
        merge_request_id: Owning merge request
        path: File path (code) or JSON pointer (config/scenario)
        kind: code, config or scenario
        base_value: Value at the base snapshot
        source_value: Value on the source head
        target_value: Value on the target head
        resolution_status: pending or resolved
    """
    id: str
    merge_request_id: str
    path: str
    kind: ConflictKind
    base_value: Any = ABSENT
    source_value: Any = ABSENT
    target_value: Any = ABSENT
    resolution_status: ResolutionStatus = ResolutionStatus.PENDING

    @property
    def is_resolved(self) -> bool:
        return self.resolution_status == ResolutionStatus.RESOLVED

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'merge_request_id': self.merge_request_id,
            'path': self.path,
            'kind': self.kind.value,
            'resolution_status': self.resolution_status.value,
        }
        for name in ('base_value', 'source_value', 'target_value'):
            value = getattr(self, name)
            data[name] = None if value is ABSENT else value
            data[f'{name}_present'] = value is not ABSENT
        return data


@dataclass
class ConflictResolution:
    """The chosen final value settling one conflict.

    Attributes:
        id: Resolution identifier
        conflict_id: Conflict being settled
        strategy: source, target, both or custom
        resolved_value: Final value (ABSENT removes the file/key)
        resolved_by: Actor that chose the resolution
        resolved_at: ISO 8601 timestamp
    """
    id: str
    conflict_id: str
    strategy: ResolutionStrategy
    resolved_value: Any
    resolved_by: Optional[str]
    resolved_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'conflict_id': self.conflict_id,
            'strategy': self.strategy.value,
            'resolved_value': None if self.resolved_value is ABSENT else self.resolved_value,
            'resolved_value_present': self.resolved_value is not ABSENT,
            'resolved_by': self.resolved_by,
            'resolved_at': self.resolved_at,
        }


@dataclass
class ConflictWithResolution:
    """Conflict paired with its latest resolution (if any)."""
    conflict: MergeConflict
    resolution: Optional[ConflictResolution] = None


@dataclass
class MergeHistoryEntry:
    """Append-only audit log entry for a merge request."""
    id: str
    merge_request_id: str
    action: HistoryAction
    actor: Optional[str]
    timestamp: str
    detail: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'merge_request_id': self.merge_request_id,
            'action': self.action.value,
            'actor': self.actor,
            'timestamp': self.timestamp,
            'detail': dict(self.detail),
        }
