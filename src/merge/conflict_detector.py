"""Conflict detection between two diffs from a common base.

A conflict is a path touched by both the source diff and the target diff
whose resulting values differ. For config and scenario key paths, changes at
nested pointers (``/a`` and ``/a/b``) overlap; the conflict is recorded at
the shallower pointer with the whole values found there.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Sequence

from src.diff_engine.json_pointer import (
    get_value,
    is_ancestor_or_self,
    pointer_sort_key,
    pointers_overlap,
)
from src.diff_engine.structure_diff import json_equal
from src.models.diff import ABSENT, ConfigChange, Diff
from src.models.merge import ConflictKind
from src.models.snapshot import SnapshotContent

logger = logging.getLogger(__name__)


@dataclass
class DetectedConflict:
    """A divergent change found before it is persisted as a MergeConflict."""
    kind: ConflictKind
    path: str
    base_value: Any
    source_value: Any
    target_value: Any


def _detect_code_conflicts(
    base: SnapshotContent,
    source: SnapshotContent,
    target: SnapshotContent,
    diff_source: Diff,
    diff_target: Diff,
) -> List[DetectedConflict]:
    touched_source = {c.path for c in diff_source.code_changes}
    touched_target = {c.path for c in diff_target.code_changes}

    conflicts = []
    for path in sorted(touched_source & touched_target):
        source_value = source.code_files.get(path, ABSENT)
        target_value = target.code_files.get(path, ABSENT)
        if json_equal(source_value, target_value):
            continue
        conflicts.append(DetectedConflict(
            kind=ConflictKind.CODE,
            path=path,
            base_value=base.code_files.get(path, ABSENT),
            source_value=source_value,
            target_value=target_value,
        ))
    return conflicts


def _detect_structure_conflicts(
    kind: ConflictKind,
    base_doc: Any,
    source_doc: Any,
    target_doc: Any,
    source_changes: Sequence[ConfigChange],
    target_changes: Sequence[ConfigChange],
) -> List[DetectedConflict]:
    candidates = set()
    for s in source_changes:
        for t in target_changes:
            if not pointers_overlap(s.key_path, t.key_path):
                continue
            shallower = s.key_path if is_ancestor_or_self(s.key_path, t.key_path) else t.key_path
            candidates.add(shallower)

    divergent = [
        pointer for pointer in candidates
        if not json_equal(get_value(source_doc, pointer), get_value(target_doc, pointer))
    ]

    # Keep only the shallowest pointer of nested candidates
    outermost = [
        pointer for pointer in divergent
        if not any(
            other != pointer and is_ancestor_or_self(other, pointer)
            for other in divergent
        )
    ]

    return [
        DetectedConflict(
            kind=kind,
            path=pointer,
            base_value=get_value(base_doc, pointer),
            source_value=get_value(source_doc, pointer),
            target_value=get_value(target_doc, pointer),
        )
        for pointer in sorted(outermost, key=pointer_sort_key)
    ]


def detect_conflicts(
    base: SnapshotContent,
    source: SnapshotContent,
    target: SnapshotContent,
    diff_source: Diff,
    diff_target: Diff,
) -> List[DetectedConflict]:
    """Find every path changed divergently by source and target.

    Args:
        base: Content of the common base snapshot
        source: Content of the source head
        target: Content of the target head
        diff_source: diff(base, source head)
        diff_target: diff(base, target head)

    Returns:
        Conflicts ordered code, config, scenario; each sorted by path
    """
    conflicts = _detect_code_conflicts(base, source, target, diff_source, diff_target)
    conflicts += _detect_structure_conflicts(
        ConflictKind.CONFIG,
        base.config, source.config, target.config,
        diff_source.config_changes, diff_target.config_changes,
    )
    conflicts += _detect_structure_conflicts(
        ConflictKind.SCENARIO,
        base.scenarios, source.scenarios, target.scenarios,
        diff_source.scenario_changes, diff_target.scenario_changes,
    )

    if conflicts:
        logger.info(f"Detected {len(conflicts)} conflict(s)")
        for conflict in conflicts:
            logger.debug(f"  {conflict.kind.value} conflict at {conflict.path or '<root>'}")
    return conflicts

