"""Unit tests for merge.conflict_detector module."""

from src.diff_engine.diff_engine import diff_contents
from src.merge.conflict_detector import detect_conflicts
from src.models.diff import ABSENT
from src.models.merge import ConflictKind
from tests.fixtures.suite_content import (
    CHECKOUT_TEST_BASE,
    CHECKOUT_TEST_SOURCE_SAME_LINE,
    CHECKOUT_TEST_SOURCE_TOP,
    CHECKOUT_TEST_TARGET_BOTTOM,
    CHECKOUT_TEST_TARGET_SAME_LINE,
    make_content,
)


def _detect(base, source, target):
    return detect_conflicts(
        base, source, target, diff_contents(base, source), diff_contents(base, target)
    )


class TestCodeConflicts:
    """Test cases for code file conflict detection."""

    def test_file_edited_on_both_sides_conflicts(self):
        """Any file changed differently by both sides is one code conflict."""
        # Arrange
        base = make_content(code_files={"t.py": CHECKOUT_TEST_BASE})
        source = make_content(code_files={"t.py": CHECKOUT_TEST_SOURCE_TOP})
        target = make_content(code_files={"t.py": CHECKOUT_TEST_TARGET_BOTTOM})

        # Act
        conflicts = _detect(base, source, target)

        # Assert
        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.kind == ConflictKind.CODE
        assert conflict.path == "t.py"
        assert conflict.base_value == CHECKOUT_TEST_BASE
        assert conflict.source_value == CHECKOUT_TEST_SOURCE_TOP
        assert conflict.target_value == CHECKOUT_TEST_TARGET_BOTTOM

    def test_identical_edits_do_not_conflict(self):
        base = make_content(code_files={"t.py": CHECKOUT_TEST_BASE})
        both = make_content(code_files={"t.py": CHECKOUT_TEST_SOURCE_SAME_LINE})

        assert _detect(base, both, both.copy()) == []

    def test_one_sided_edit_does_not_conflict(self):
        base = make_content(code_files={"t.py": CHECKOUT_TEST_BASE})
        source = make_content(code_files={"t.py": CHECKOUT_TEST_SOURCE_SAME_LINE})

        assert _detect(base, source, base.copy()) == []

    def test_remove_versus_edit_conflicts_with_absent_side(self):
        base = make_content(code_files={"t.py": CHECKOUT_TEST_BASE})
        source = make_content(code_files={})
        target = make_content(code_files={"t.py": CHECKOUT_TEST_TARGET_SAME_LINE})

        conflicts = _detect(base, source, target)

        assert len(conflicts) == 1
        assert conflicts[0].source_value is ABSENT

    def test_both_adding_same_path_differently_has_absent_base(self):
        base = make_content()
        source = make_content(code_files={"new.py": "a"})
        target = make_content(code_files={"new.py": "b"})

        conflicts = _detect(base, source, target)

        assert conflicts[0].base_value is ABSENT


class TestStructureConflicts:
    """Test cases for config and scenario conflict detection."""

    def test_same_key_divergent_values(self):
        base = make_content(config={"timeout": 30, "retries": 1})
        source = make_content(config={"timeout": 60, "retries": 1})
        target = make_content(config={"timeout": 45, "retries": 3})

        conflicts = _detect(base, source, target)

        assert [(c.kind, c.path, c.source_value, c.target_value) for c in conflicts] == [
            (ConflictKind.CONFIG, "/timeout", 60, 45)
        ]

    def test_different_keys_do_not_conflict(self):
        base = make_content(config={"timeout": 30, "retries": 1})
        source = make_content(config={"timeout": 60, "retries": 1})
        target = make_content(config={"timeout": 30, "retries": 3})

        assert _detect(base, source, target) == []

    def test_nested_overlap_recorded_at_shallower_pointer(self):
        """Replacing an object on one side and editing inside it on the other conflicts at the object."""
        # Arrange
        base = make_content(config={"browser": {"name": "chromium", "headless": True}})
        source = make_content(config={"browser": "firefox"})
        target = make_content(config={"browser": {"name": "webkit", "headless": True}})

        # Act
        conflicts = _detect(base, source, target)

        # Assert
        assert len(conflicts) == 1
        assert conflicts[0].path == "/browser"
        assert conflicts[0].base_value == {"name": "chromium", "headless": True}
        assert conflicts[0].source_value == "firefox"
        assert conflicts[0].target_value == {"name": "webkit", "headless": True}

    def test_remove_versus_modify_key(self):
        base = make_content(config={"timeout": 30})
        source = make_content(config={})
        target = make_content(config={"timeout": 45})

        conflicts = _detect(base, source, target)

        assert conflicts[0].path == "/timeout"
        assert conflicts[0].source_value is ABSENT
        assert conflicts[0].target_value == 45

    def test_scenario_edits_at_same_index(self):
        base = make_content(scenarios=[{"name": "login", "steps": ["open"]}])
        source = make_content(scenarios=[{"name": "login", "steps": ["open", "submit"]}])
        target = make_content(scenarios=[{"name": "login", "steps": ["open", "pay"]}])

        conflicts = _detect(base, source, target)

        assert len(conflicts) == 1
        assert conflicts[0].kind == ConflictKind.SCENARIO
        assert conflicts[0].path == "/0/steps/1"
        assert (conflicts[0].source_value, conflicts[0].target_value) == ("submit", "pay")

    def test_results_ordered_code_config_scenario(self):
        base = make_content(
            code_files={"t.py": "a"}, config={"timeout": 1}, scenarios=[{"name": "x"}]
        )
        source = make_content(
            code_files={"t.py": "b"}, config={"timeout": 2}, scenarios=[{"name": "y"}]
        )
        target = make_content(
            code_files={"t.py": "c"}, config={"timeout": 3}, scenarios=[{"name": "z"}]
        )

        conflicts = _detect(base, source, target)

        assert [c.kind for c in conflicts] == [
            ConflictKind.CODE, ConflictKind.CONFIG, ConflictKind.SCENARIO
        ]
        assert conflicts[-1].path == "/0/name"
