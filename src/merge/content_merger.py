"""Builds the merged snapshot content of a merge request.

Merged content is the target head content, plus every source change that
does not fall under a conflict, plus the resolved value of each conflict.
"""

import logging
from typing import Any, Iterable, List, Sequence, Tuple

from src.diff_engine.json_pointer import (
    pointer_sort_key,
    pointers_overlap,
    remove_value,
    set_value,
)
from src.models.diff import ABSENT, ChangeType, ConfigChange, Diff
from src.models.merge import ConflictKind, MergeConflict
from src.models.snapshot import SnapshotContent

logger = logging.getLogger(__name__)

ResolvedPair = Tuple[MergeConflict, Any]


def _apply_structure_changes(document: Any, changes: Iterable[ConfigChange]) -> Any:
    changes = list(changes)
    sets = sorted(
        (c for c in changes if c.change_type != ChangeType.REMOVED),
        key=lambda c: pointer_sort_key(c.key_path),
    )
    removals = sorted(
        (c for c in changes if c.change_type == ChangeType.REMOVED),
        key=lambda c: pointer_sort_key(c.key_path),
        reverse=True,
    )

    for change in sets:
        document = set_value(document, change.key_path, change.new_value)
    # Removals run deepest/highest index first so list positions stay valid
    for change in removals:
        document = remove_value(document, change.key_path)
    return document


def _set_or_remove(document: Any, pointer: str, value: Any) -> Any:
    if value is ABSENT:
        return remove_value(document, pointer)
    return set_value(document, pointer, value)


def _non_conflicting(
    changes: Sequence[ConfigChange],
    conflict_pointers: List[str],
) -> List[ConfigChange]:
    return [
        change for change in changes
        if not any(pointers_overlap(change.key_path, p) for p in conflict_pointers)
    ]


def build_merged_content(
    target: SnapshotContent,
    source: SnapshotContent,
    diff_source: Diff,
    resolved: Sequence[ResolvedPair],
) -> SnapshotContent:
    """Combine target content, source changes and conflict resolutions.

    Args:
        target: Content of the target head
        source: Content of the source head
        diff_source: diff(base, source head)
        resolved: (conflict, resolved value) pairs; ABSENT removes the path

    Returns:
        Validated merged content

    Raises:
        ValidationError: If the merged content is malformed
    """
    merged = target.copy()

    code_conflicts = {c.path for c, _ in resolved if c.kind == ConflictKind.CODE}
    config_conflicts = [c.path for c, _ in resolved if c.kind == ConflictKind.CONFIG]
    scenario_conflicts = [c.path for c, _ in resolved if c.kind == ConflictKind.SCENARIO]

    for change in diff_source.code_changes:
        if change.path in code_conflicts:
            continue
        if change.change_type == ChangeType.REMOVED:
            merged.code_files.pop(change.path, None)
        else:
            merged.code_files[change.path] = source.code_files[change.path]

    merged.config = _apply_structure_changes(
        merged.config, _non_conflicting(diff_source.config_changes, config_conflicts)
    )
    merged.scenarios = _apply_structure_changes(
        merged.scenarios, _non_conflicting(diff_source.scenario_changes, scenario_conflicts)
    )

    for conflict, value in resolved:
        if conflict.kind == ConflictKind.CODE:
            if value is ABSENT:
                merged.code_files.pop(conflict.path, None)
            else:
                merged.code_files[conflict.path] = value
        elif conflict.kind == ConflictKind.CONFIG:
            merged.config = _set_or_remove(merged.config, conflict.path, value)
        else:
            merged.scenarios = _set_or_remove(merged.scenarios, conflict.path, value)

    if merged.config is ABSENT:
        merged.config = {}
    if merged.scenarios is ABSENT:
        merged.scenarios = []

    merged.validate()
    logger.debug(
        f"Merged content: {len(merged.code_files)} code file(s), "
        f"{len(merged.scenarios)} scenario(s), {len(merged.config)} config key(s)"
    )
    return merged
