"""Recursive structural diff of JSON values.

Objects are compared key by key (sorted), arrays index by index (order
sensitive, no LCS), and leaves by canonical JSON so that ``1`` and ``true``
or ``1`` and ``1.0`` never compare equal.
"""

from typing import Any, List, Optional

from src.diff_engine.cancellation import CancellationToken
from src.diff_engine.json_pointer import child_pointer
from src.models.diff import ABSENT, ChangeType, ConfigChange
from src.snapshots.snapshot_engine import canonical_json


def json_equal(first: Any, second: Any) -> bool:
    if first is ABSENT or second is ABSENT:
        return first is second
    return canonical_json(first) == canonical_json(second)


def diff_structures(
    old: Any,
    new: Any,
    pointer: str = "",
    cancel_token: Optional[CancellationToken] = None,
) -> List[ConfigChange]:
    """Compute key-path changes turning ``old`` into ``new``.

    Args:
        old: Old JSON value
        new: New JSON value
        pointer: Pointer of ``old``/``new`` inside the enclosing document
        cancel_token: Optional token polled per container

    Returns:
        Changes in depth-first order (sorted keys, ascending indexes)
    """
    changes: List[ConfigChange] = []
    _diff_value(old, new, pointer, changes, cancel_token)
    return changes


def _diff_value(
    old: Any,
    new: Any,
    pointer: str,
    changes: List[ConfigChange],
    cancel_token: Optional[CancellationToken],
) -> None:
    if isinstance(old, dict) and isinstance(new, dict):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        for key in sorted(set(old) | set(new)):
            path = child_pointer(pointer, key)
            if key not in new:
                changes.append(ConfigChange(path, ChangeType.REMOVED, old[key], ABSENT))
            elif key not in old:
                changes.append(ConfigChange(path, ChangeType.ADDED, ABSENT, new[key]))
            else:
                _diff_value(old[key], new[key], path, changes, cancel_token)
        return

    if isinstance(old, list) and isinstance(new, list):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        for index in range(max(len(old), len(new))):
            path = child_pointer(pointer, index)
            if index >= len(new):
                changes.append(ConfigChange(path, ChangeType.REMOVED, old[index], ABSENT))
            elif index >= len(old):
                changes.append(ConfigChange(path, ChangeType.ADDED, ABSENT, new[index]))
            else:
                _diff_value(old[index], new[index], path, changes, cancel_token)
        return

    if not json_equal(old, new):
        changes.append(ConfigChange(pointer, ChangeType.MODIFIED, old, new))
