"""Structured diff data models.

A Diff is derived data: it is computed on demand from two snapshots and is
never persisted. Values that exist on only one side of a change are
represented by the ABSENT marker, which is distinct from JSON null.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class _Absent:
    """Marker for a value that does not exist (missing key, removed file)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (_Absent, ())


ABSENT = _Absent()


class LineOpType(Enum):
    """Line-level edit operation."""

    EQUAL = "equal"
    INSERT = "insert"
    DELETE = "delete"


class ChangeType(Enum):
    """Kind of change to a file or key path."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


@dataclass(frozen=True)
class LineOp:
    """One operation of a line diff.

    Attributes:
        op: equal, insert or delete
        old_index: Line index in the old text (for inserts, the old line the
            new line is placed before)
        new_index: Line index in the new text (for deletes, the new line the
            removed line was before)
        text: Line content without its terminator
    """
    op: LineOpType
    old_index: int
    new_index: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'op': self.op.value,
            'old_index': self.old_index,
            'new_index': self.new_index,
            'text': self.text,
        }


@dataclass
class CodeChange:
    """Change to one generated code file.

    Attributes:
        path: File path (identity; no rename detection)
        change_type: added, removed or modified
        line_ops: Insert/delete operations in old-then-new order
    """
    path: str
    change_type: ChangeType
    line_ops: List[LineOp] = field(default_factory=list)

    @property
    def inserted_count(self) -> int:
        return sum(1 for op in self.line_ops if op.op == LineOpType.INSERT)

    @property
    def deleted_count(self) -> int:
        return sum(1 for op in self.line_ops if op.op == LineOpType.DELETE)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'type': self.change_type.value,
            'line_ops': [op.to_dict() for op in self.line_ops],
        }


@dataclass
class ConfigChange:
    """Change at one JSON key path (RFC 6901 pointer).

    Attributes:
        key_path: JSON pointer of the changed value ("" is the root)
        change_type: added, removed or modified
        old_value: Value before the change (ABSENT when added)
        new_value: Value after the change (ABSENT when removed)
    """
    key_path: str
    change_type: ChangeType
    old_value: Any = ABSENT
    new_value: Any = ABSENT

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'key_path': self.key_path,
            'type': self.change_type.value,
        }
        if self.old_value is not ABSENT:
            data['old_value'] = self.old_value
        if self.new_value is not ABSENT:
            data['new_value'] = self.new_value
        return data


@dataclass
class Diff:
    """Deterministic structured delta between two snapshots.

    Attributes:
        from_snapshot_id: Snapshot the diff starts from
        to_snapshot_id: Snapshot the diff ends at
        code_changes: Per-file changes, sorted by path
        config_changes: Config key path changes, sorted by pointer
        scenario_changes: Scenario list changes, sorted by pointer
    """
    from_snapshot_id: Optional[str]
    to_snapshot_id: Optional[str]
    code_changes: List[CodeChange] = field(default_factory=list)
    config_changes: List[ConfigChange] = field(default_factory=list)
    scenario_changes: List[ConfigChange] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.code_changes or self.config_changes or self.scenario_changes)

    def _all_changes(self) -> List[Any]:
        return [*self.code_changes, *self.config_changes, *self.scenario_changes]

    @property
    def summary(self) -> str:
        """Human-readable counts, e.g. "2 additions, 0 deletions, 1 modifications"."""
        changes = self._all_changes()
        additions = sum(1 for c in changes if c.change_type == ChangeType.ADDED)
        deletions = sum(1 for c in changes if c.change_type == ChangeType.REMOVED)
        modifications = sum(1 for c in changes if c.change_type == ChangeType.MODIFIED)
        return f"{additions} additions, {deletions} deletions, {modifications} modifications"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'from_snapshot_id': self.from_snapshot_id,
            'to_snapshot_id': self.to_snapshot_id,
            'code_changes': [c.to_dict() for c in self.code_changes],
            'config_changes': [c.to_dict() for c in self.config_changes],
            'scenario_changes': [c.to_dict() for c in self.scenario_changes],
            'summary': self.summary,
        }
