"""Unit tests for cli.output module."""

import io
import json

import pytest
from rich.console import Console

from src.cli.output import OutputHandler, _short_value
from src.diff_engine.diff_engine import diff_contents
from src.models.diff import ABSENT
from src.models.merge import (
    ConflictKind,
    ConflictResolution,
    ConflictWithResolution,
    MergeConflict,
    ResolutionStrategy,
)
from tests.fixtures.suite_content import make_content


@pytest.fixture
def handler():
    """OutputHandler writing plain text into a buffer."""
    output = OutputHandler(verbosity=0, no_color=True)
    output.console = Console(file=io.StringIO(), no_color=True, width=200, highlight=False)
    return output


def _text(handler):
    return handler.console.file.getvalue()


def _conflict(conflict_id, path="/timeout"):
    return MergeConflict(
        id=conflict_id,
        merge_request_id="mr-1",
        path=path,
        kind=ConflictKind.CONFIG,
        base_value=30,
        source_value=60,
        target_value=ABSENT,
    )


class TestOutputHandlerInit:
    """Test cases for OutputHandler initialization."""

    def test_init_default_verbosity_and_color(self):
        handler = OutputHandler()

        assert handler.verbosity == 0
        assert handler.no_color is False
        assert handler.console.no_color is False

    def test_init_no_color_true(self):
        """Initialize with no_color=True disables colors."""
        handler = OutputHandler(no_color=True)

        assert handler.console.no_color is True


class TestMessages:
    """Test cases for status messages and verbosity."""

    def test_info_hidden_at_verbosity_0(self, handler):
        handler.info("details")

        assert _text(handler) == ""

    def test_info_shown_at_verbosity_1(self, handler):
        handler.verbosity = 1

        handler.info("details")

        assert "details" in _text(handler)

    def test_debug_needs_verbosity_2(self, handler):
        handler.verbosity = 1
        handler.debug("hidden")
        handler.verbosity = 2
        handler.debug("shown")

        assert "hidden" not in _text(handler)
        assert "shown" in _text(handler)

    def test_success_and_error_always_shown(self, handler):
        handler.success("done")
        handler.error("failed")

        assert "✓ done" in _text(handler)
        assert "✗ failed" in _text(handler)

    def test_print_json_is_parseable(self, handler):
        """JSON output is printed without markup so it parses back."""
        data = {"title": "[bold]not markup[/bold]", "ids": ["a" * 60, "b"]}

        handler.print_json(data)

        assert json.loads(_text(handler)) == data

    def test_spinner_disabled_without_color(self, handler):
        with handler.spinner("working"):
            pass

        assert _text(handler) == ""


class TestRenderers:
    """Test cases for table and diff renderers."""

    def test_empty_collections(self, handler):
        handler.print_branches([])
        handler.print_merge_requests([])
        handler.print_conflicts([])

        text = _text(handler)
        assert "No branches" in text
        assert "No merge requests" in text
        assert "No conflicts" in text

    def test_conflicts_report_pending_count(self, handler):
        conflicts = [
            ConflictWithResolution(_conflict("c-1")),
            ConflictWithResolution(_conflict("c-2", "/retries")),
        ]

        handler.print_conflicts(conflicts)

        text = _text(handler)
        assert "2 conflict(s) pending" in text
        assert "<absent>" in text

    def test_conflicts_all_resolved(self, handler):
        conflict = _conflict("c-1")
        resolution = ConflictResolution(
            id="r-1",
            conflict_id="c-1",
            strategy=ResolutionStrategy.SOURCE,
            resolved_value=60,
            resolved_by=None,
            resolved_at="2026-01-01T00:00:00+00:00",
        )

        handler.print_conflicts([ConflictWithResolution(conflict, resolution)])

        assert "All conflicts resolved" in _text(handler)

    def test_empty_diff(self, handler):
        content = make_content(config={"a": 1})

        handler.print_diff(diff_contents(content, content))

        assert "No differences" in _text(handler)

    def test_diff_lists_changes_and_summary(self, handler):
        old = make_content(code_files={"t.py": "a\nb"}, config={"timeout": 30})
        new = make_content(code_files={"t.py": "a\nc"}, config={"timeout": 60, "retries": 2})

        handler.print_diff(diff_contents(old, new), show_lines=True)

        text = _text(handler)
        assert "t.py (+1 -1)" in text
        assert "+ c" in text
        assert "- b" in text
        assert "/timeout: 30 -> 60" in text
        assert "/retries: <absent> -> 2" in text
        assert "1 additions, 0 deletions, 2 modifications" in text

    def test_markup_in_values_is_escaped(self, handler):
        old = make_content(config={"label": "x"})
        new = make_content(config={"label": "[red]y[/red]"})

        handler.print_diff(diff_contents(old, new))

        assert "[red]y[/red]" in _text(handler)


class TestShortValue:
    """Test cases for _short_value."""

    def test_long_values_truncated(self):
        assert _short_value("x" * 100).endswith("...")
        assert len(_short_value("x" * 100)) == 40

    def test_newlines_shown_escaped(self):
        assert _short_value("a\nb") == "a\\nb"
