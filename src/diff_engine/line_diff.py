"""Line-based longest-common-subsequence diff.

The diff is computed with the classic O(n·m) dynamic programming table over
the lines that remain after trimming the common prefix and suffix, which
bounds the practical cost for generated files where edits are local.

Tie-breaking is fixed (deletions before insertions, earliest match first),
so the same pair of texts always yields the same op list.
"""

import logging
from typing import List, Optional, Sequence

from src.diff_engine.cancellation import CancellationToken
from src.models.diff import LineOp, LineOpType

logger = logging.getLogger(__name__)


def split_lines(text: str) -> List[str]:
    """Split text into lines without terminators.

    The empty string has no lines; a trailing newline yields a final empty
    line so that ``join_lines(split_lines(t)) == t`` for every text.
    """
    if text == "":
        return []
    return text.split('\n')


def join_lines(lines: Sequence[str]) -> str:
    """Inverse of split_lines."""
    return '\n'.join(lines)


def _lcs_table(
    old: Sequence[str],
    new: Sequence[str],
    cancel_token: Optional[CancellationToken],
) -> List[List[int]]:
    """Build the suffix LCS table: table[i][j] = LCS length of old[i:], new[j:]."""
    n, m = len(old), len(new)
    table = [[0] * (m + 1) for _ in range(n + 1)]

    for i in range(n - 1, -1, -1):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        row = table[i]
        below = table[i + 1]
        old_line = old[i]
        for j in range(m - 1, -1, -1):
            if old_line == new[j]:
                row[j] = below[j + 1] + 1
            else:
                right = row[j + 1]
                down = below[j]
                row[j] = down if down >= right else right

    return table


def diff_lines(
    old: Sequence[str],
    new: Sequence[str],
    cancel_token: Optional[CancellationToken] = None,
) -> List[LineOp]:
    """Compute an ordered equal/insert/delete op list turning old into new.

    Args:
        old: Lines of the old text
        new: Lines of the new text
        cancel_token: Optional token polled once per table row

    Returns:
        Ops covering every line of both inputs, in order

    Raises:
        DiffCancelledError: If the token is cancelled mid-computation
    """
    n, m = len(old), len(new)

    # Trim common prefix and suffix before the quadratic part
    prefix = 0
    while prefix < n and prefix < m and old[prefix] == new[prefix]:
        prefix += 1
    suffix = 0
    while (
        suffix < n - prefix
        and suffix < m - prefix
        and old[n - 1 - suffix] == new[m - 1 - suffix]
    ):
        suffix += 1

    old_mid = old[prefix:n - suffix]
    new_mid = new[prefix:m - suffix]

    ops: List[LineOp] = []
    for k in range(prefix):
        ops.append(LineOp(LineOpType.EQUAL, k, k, old[k]))

    if old_mid or new_mid:
        logger.debug(
            f"LCS over {len(old_mid)}x{len(new_mid)} lines "
            f"(trimmed {prefix} prefix, {suffix} suffix)"
        )
        table = _lcs_table(old_mid, new_mid, cancel_token)
        i = j = 0
        while i < len(old_mid) and j < len(new_mid):
            if old_mid[i] == new_mid[j]:
                ops.append(LineOp(LineOpType.EQUAL, prefix + i, prefix + j, old_mid[i]))
                i += 1
                j += 1
            elif table[i + 1][j] >= table[i][j + 1]:
                ops.append(LineOp(LineOpType.DELETE, prefix + i, prefix + j, old_mid[i]))
                i += 1
            else:
                ops.append(LineOp(LineOpType.INSERT, prefix + i, prefix + j, new_mid[j]))
                j += 1
        while i < len(old_mid):
            ops.append(LineOp(LineOpType.DELETE, prefix + i, prefix + j, old_mid[i]))
            i += 1
        while j < len(new_mid):
            ops.append(LineOp(LineOpType.INSERT, prefix + i, prefix + j, new_mid[j]))
            j += 1

    old_tail = n - suffix
    new_tail = m - suffix
    for k in range(suffix):
        ops.append(LineOp(LineOpType.EQUAL, old_tail + k, new_tail + k, old[old_tail + k]))

    return ops


def edit_ops(ops: Sequence[LineOp]) -> List[LineOp]:
    """Return only the insert/delete ops of a line diff."""
    return [op for op in ops if op.op != LineOpType.EQUAL]
