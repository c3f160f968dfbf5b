"""Structured, deterministic diffs between snapshots.

This package provides the line LCS diff for generated code, the key-path
diff for JSON config and scenarios, and the DiffEngine that combines them.
"""

from src.diff_engine.cancellation import CancellationToken
from src.diff_engine.diff_engine import DiffEngine, diff_code_files, diff_contents
from src.diff_engine.line_diff import diff_lines, edit_ops, join_lines, split_lines
from src.diff_engine.structure_diff import diff_structures, json_equal

__all__ = [
    'CancellationToken',
    'DiffEngine',
    'diff_code_files',
    'diff_contents',
    'diff_lines',
    'diff_structures',
    'edit_ops',
    'join_lines',
    'json_equal',
    'split_lines',
]
