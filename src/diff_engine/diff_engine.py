"""Deterministic structured diff between two snapshots.

This module provides the DiffEngine class, the algorithmic core of the
branching workflow. It combines a per-file line LCS diff of generated code
with a key-path diff of the JSON config and of the scenario list.

Contracts:
    - diff(A, A) is empty
    - added/removed entries swap when the arguments are swapped; modified
      entries keep their paths with old/new values swapped
    - repeated calls return identical output (no clocks, no randomness)
"""

import logging
from typing import TYPE_CHECKING, Dict, List, Optional

from src.diff_engine.cancellation import CancellationToken
from src.diff_engine.line_diff import diff_lines, edit_ops, split_lines
from src.diff_engine.structure_diff import diff_structures
from src.models.diff import ChangeType, CodeChange, Diff, LineOp, LineOpType
from src.models.snapshot import SnapshotContent

if TYPE_CHECKING:
    from src.snapshots.snapshot_engine import SnapshotEngine

logger = logging.getLogger(__name__)


def diff_code_files(
    old_files: Dict[str, str],
    new_files: Dict[str, str],
    cancel_token: Optional[CancellationToken] = None,
) -> List[CodeChange]:
    """Diff two path -> text mappings file by file.

    Identity is the path string; a renamed file shows up as one removal and
    one addition.

    Returns:
        One CodeChange per changed path, sorted by path
    """
    changes: List[CodeChange] = []
    for path in sorted(set(old_files) | set(new_files)):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        if path not in old_files:
            lines = split_lines(new_files[path])
            ops = [LineOp(LineOpType.INSERT, 0, k, line) for k, line in enumerate(lines)]
            changes.append(CodeChange(path, ChangeType.ADDED, ops))
        elif path not in new_files:
            lines = split_lines(old_files[path])
            ops = [LineOp(LineOpType.DELETE, k, 0, line) for k, line in enumerate(lines)]
            changes.append(CodeChange(path, ChangeType.REMOVED, ops))
        elif old_files[path] != new_files[path]:
            ops = edit_ops(diff_lines(
                split_lines(old_files[path]),
                split_lines(new_files[path]),
                cancel_token,
            ))
            if ops:
                changes.append(CodeChange(path, ChangeType.MODIFIED, ops))
    return changes


def diff_contents(
    old: SnapshotContent,
    new: SnapshotContent,
    from_snapshot_id: Optional[str] = None,
    to_snapshot_id: Optional[str] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> Diff:
    """Diff two content bundles without touching the store."""
    return Diff(
        from_snapshot_id=from_snapshot_id,
        to_snapshot_id=to_snapshot_id,
        code_changes=diff_code_files(old.code_files, new.code_files, cancel_token),
        config_changes=diff_structures(old.config, new.config, "", cancel_token),
        scenario_changes=diff_structures(old.scenarios, new.scenarios, "", cancel_token),
    )


class DiffEngine:
    """Computes structured diffs between stored snapshots.

    Example:
        >>> engine = DiffEngine(snapshot_engine)
        >>> diff = engine.diff(base_id, head_id)
        >>> for change in diff.code_changes:
        ...     print(change.path, change.change_type.value)
    """

    def __init__(self, snapshots: "SnapshotEngine"):
        self.snapshots = snapshots

    def diff(
        self,
        from_snapshot_id: str,
        to_snapshot_id: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Diff:
        """Diff two snapshots by id.

        Args:
            from_snapshot_id: Snapshot to diff from
            to_snapshot_id: Snapshot to diff to
            cancel_token: Optional cancellation/deadline token

        Returns:
            Diff with code, config and scenario changes

        Raises:
            NotFoundError: If either snapshot does not exist
            DiffCancelledError: If the token fires; no partial diff is returned
        """
        old = self.snapshots.get_snapshot(from_snapshot_id)
        if from_snapshot_id == to_snapshot_id:
            return Diff(from_snapshot_id, to_snapshot_id)

        new = self.snapshots.get_snapshot(to_snapshot_id)
        if old.content_hash == new.content_hash:
            logger.debug(f"Snapshots {from_snapshot_id} and {to_snapshot_id} share content")
            return Diff(from_snapshot_id, to_snapshot_id)

        diff = diff_contents(
            old.content,
            new.content,
            from_snapshot_id,
            to_snapshot_id,
            cancel_token,
        )
        logger.debug(f"Diff {from_snapshot_id} -> {to_snapshot_id}: {diff.summary}")
        return diff
