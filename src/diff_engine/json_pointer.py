"""RFC 6901 JSON pointer helpers used for config and scenario key paths."""

import copy
from typing import Any, List, Sequence, Union

from src.core.errors import ValidationError
from src.models.diff import ABSENT

Segment = Union[str, int]


def escape_segment(segment: Segment) -> str:
    return str(segment).replace('~', '~0').replace('/', '~1')


def unescape_segment(segment: str) -> str:
    return segment.replace('~1', '/').replace('~0', '~')


def join_pointer(segments: Sequence[Segment]) -> str:
    """Build a pointer from segments; no segments is the root pointer ""."""
    return ''.join('/' + escape_segment(s) for s in segments)


def child_pointer(pointer: str, segment: Segment) -> str:
    return pointer + '/' + escape_segment(segment)


def split_pointer(pointer: str) -> List[str]:
    """Split a pointer into unescaped string segments.

    Raises:
        ValidationError: If the pointer is not "" and does not start with "/"
    """
    if pointer == "":
        return []
    if not pointer.startswith('/'):
        raise ValidationError(f"Invalid JSON pointer: {pointer!r}", 'key_path')
    return [unescape_segment(s) for s in pointer[1:].split('/')]


def is_ancestor_or_self(ancestor: str, pointer: str) -> bool:
    """True if ``ancestor`` equals ``pointer`` or contains it."""
    a = split_pointer(ancestor)
    p = split_pointer(pointer)
    return len(a) <= len(p) and p[:len(a)] == a


def pointers_overlap(first: str, second: str) -> bool:
    return is_ancestor_or_self(first, second) or is_ancestor_or_self(second, first)


def _list_index(segment: str) -> int:
    if not segment.isdigit():
        return -1
    return int(segment)


def get_value(document: Any, pointer: str) -> Any:
    """Return the value at pointer, or ABSENT if any step is missing."""
    current = document
    for segment in split_pointer(pointer):
        if isinstance(current, dict):
            if segment not in current:
                return ABSENT
            current = current[segment]
        elif isinstance(current, list):
            index = _list_index(segment)
            if index < 0 or index >= len(current):
                return ABSENT
            current = current[index]
        else:
            return ABSENT
    return current


def set_value(document: Any, pointer: str, value: Any) -> Any:
    """Set the value at pointer and return the (possibly replaced) document.

    Missing intermediate object keys are created. For lists, an index past
    the end appends.
    """
    segments = split_pointer(pointer)
    if not segments:
        return copy.deepcopy(value)

    current = document
    for position, segment in enumerate(segments[:-1]):
        next_is_index = segments[position + 1].isdigit()
        if isinstance(current, dict):
            if not isinstance(current.get(segment), (dict, list)):
                current[segment] = [] if next_is_index else {}
            current = current[segment]
        elif isinstance(current, list):
            index = _list_index(segment)
            if index < 0:
                raise ValidationError(f"Pointer {pointer} indexes a list with {segment!r}", 'key_path')
            if index >= len(current):
                current.append([] if next_is_index else {})
                index = len(current) - 1
            elif not isinstance(current[index], (dict, list)):
                current[index] = [] if next_is_index else {}
            current = current[index]
        else:
            raise ValidationError(f"Pointer {pointer} traverses a scalar value", 'key_path')

    last = segments[-1]
    if isinstance(current, dict):
        current[last] = copy.deepcopy(value)
    elif isinstance(current, list):
        index = _list_index(last)
        if index < 0:
            raise ValidationError(f"Pointer {pointer} indexes a list with {last!r}", 'key_path')
        if index >= len(current):
            current.append(copy.deepcopy(value))
        else:
            current[index] = copy.deepcopy(value)
    else:
        raise ValidationError(f"Pointer {pointer} traverses a scalar value", 'key_path')
    return document


def remove_value(document: Any, pointer: str) -> Any:
    """Remove the value at pointer (no-op if absent) and return the document.

    Removing the root yields ABSENT.
    """
    segments = split_pointer(pointer)
    if not segments:
        return ABSENT

    parent = get_value(document, join_pointer(segments[:-1]))
    last = segments[-1]
    if isinstance(parent, dict):
        parent.pop(last, None)
    elif isinstance(parent, list):
        index = _list_index(last)
        if 0 <= index < len(parent):
            del parent[index]
    return document


def pointer_sort_key(pointer: str) -> tuple:
    """Sort key ordering list indexes numerically and keys lexically."""
    return tuple(
        (0, int(s), '') if s.isdigit() else (1, 0, s)
        for s in split_pointer(pointer)
    )
