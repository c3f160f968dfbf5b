"""Unit tests for diff_engine.line_diff module."""

import pytest

from src.core.errors import DiffCancelledError
from src.diff_engine.cancellation import CancellationToken
from src.diff_engine.line_diff import diff_lines, edit_ops, join_lines, split_lines
from src.models.diff import LineOpType


def _apply(old, ops):
    """Rebuild the new text from the op list."""
    return [op.text for op in ops if op.op != LineOpType.DELETE]


class TestSplitLines:
    """Test cases for split_lines / join_lines."""

    def test_empty_text_has_no_lines(self):
        assert split_lines("") == []

    def test_trailing_newline_yields_final_empty_line(self):
        assert split_lines("a\nb\n") == ["a", "b", ""]

    @pytest.mark.parametrize("text", ["", "one", "a\nb", "a\n\nb\n"])
    def test_join_is_inverse_of_split(self, text):
        assert join_lines(split_lines(text)) == text


class TestDiffLines:
    """Test cases for diff_lines."""

    def test_identical_inputs_are_all_equal(self):
        """Identical sequences produce only EQUAL ops."""
        lines = ["a", "b", "c"]

        ops = diff_lines(lines, lines)

        assert [op.op for op in ops] == [LineOpType.EQUAL] * 3
        assert edit_ops(ops) == []

    def test_insert_in_middle(self):
        """A single inserted line is reported at its new index."""
        # Arrange
        old = ["a", "c"]
        new = ["a", "b", "c"]

        # Act
        ops = edit_ops(diff_lines(old, new))

        # Assert
        assert len(ops) == 1
        assert ops[0].op == LineOpType.INSERT
        assert ops[0].text == "b"
        assert ops[0].new_index == 1

    def test_delete_from_middle(self):
        """A single deleted line is reported at its old index."""
        ops = edit_ops(diff_lines(["a", "b", "c"], ["a", "c"]))

        assert len(ops) == 1
        assert ops[0].op == LineOpType.DELETE
        assert ops[0].text == "b"
        assert ops[0].old_index == 1

    def test_replacement_lists_delete_before_insert(self):
        """A changed line is a delete followed by an insert."""
        ops = edit_ops(diff_lines(["a", "old", "c"], ["a", "new", "c"]))

        assert [(op.op, op.text) for op in ops] == [
            (LineOpType.DELETE, "old"),
            (LineOpType.INSERT, "new"),
        ]

    def test_ops_rebuild_new_text(self):
        """Applying the op list to old yields new."""
        # Arrange
        old = ["x", "a", "b", "c", "y", "z"]
        new = ["a", "c", "d", "y", "q", "z"]

        # Act
        ops = diff_lines(old, new)

        # Assert
        assert _apply(old, ops) == new
        assert [op.text for op in ops if op.op != LineOpType.INSERT] == old

    def test_from_empty_is_all_inserts(self):
        ops = diff_lines([], ["a", "b"])

        assert [op.op for op in ops] == [LineOpType.INSERT, LineOpType.INSERT]

    def test_to_empty_is_all_deletes(self):
        ops = diff_lines(["a", "b"], [])

        assert [op.op for op in ops] == [LineOpType.DELETE, LineOpType.DELETE]

    def test_minimal_edit_count(self):
        """LCS keeps the longest common subsequence."""
        old = ["a", "b", "c", "d"]
        new = ["b", "c", "d", "e"]

        ops = edit_ops(diff_lines(old, new))

        assert len(ops) == 2

    def test_repeated_calls_are_identical(self):
        """Determinism: same inputs give the same op list."""
        old = ["a", "b", "a", "b", "c"]
        new = ["b", "a", "c", "a", "b"]

        assert diff_lines(old, new) == diff_lines(old, new)

    def test_cancelled_token_raises(self):
        """A cancelled token aborts the LCS with DiffCancelledError."""
        # Arrange
        token = CancellationToken()
        token.cancel()

        # Act & Assert
        with pytest.raises(DiffCancelledError):
            diff_lines(["a", "b"], ["c", "d"], token)

    def test_cancelled_token_ignored_when_no_lcs_needed(self):
        """Identical inputs never reach the LCS table."""
        token = CancellationToken()
        token.cancel()

        ops = diff_lines(["a"], ["a"], token)

        assert len(ops) == 1


class TestCancellationToken:
    """Test cases for CancellationToken."""

    def test_not_cancelled_by_default(self):
        token = CancellationToken()

        assert token.cancelled is False
        token.raise_if_cancelled()

    def test_expired_deadline_counts_as_cancelled(self):
        token = CancellationToken(timeout=0)

        assert token.cancelled is True
        with pytest.raises(DiffCancelledError):
            token.raise_if_cancelled()
