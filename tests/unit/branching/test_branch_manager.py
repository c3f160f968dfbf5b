"""Unit tests for branching.branch_manager module."""

import pytest

from src.core.errors import NotFoundError, ValidationError
from src.models.branch import BranchStatus
from tests.fixtures.suite_content import checkout_suite_content


class TestEnsureDefaultBranch:
    """Test cases for BranchManager.ensure_default_branch."""

    def test_creates_default_branch_with_initial_snapshot(self, branch_manager, snapshot_engine):
        """A new suite gets an active default branch seeded with the default config."""
        # Act
        main = branch_manager.ensure_default_branch("suite-1")

        # Assert
        assert main.name == "main"
        assert main.is_default is True
        assert main.parent_branch_id is None
        assert main.status == BranchStatus.ACTIVE
        head = snapshot_engine.get_head_snapshot(main.id)
        assert head.id == main.head_snapshot_id
        assert head.code_files == {}
        assert head.scenarios == []
        assert head.config == {"timeout": 30, "retries": 1}

    def test_is_idempotent(self, branch_manager):
        first = branch_manager.ensure_default_branch("suite-1")
        second = branch_manager.ensure_default_branch("suite-1")

        assert first.id == second.id
        assert len(branch_manager.list_branches("suite-1")) == 1

    def test_uses_supplied_initial_content(self, branch_manager, snapshot_engine):
        main = branch_manager.ensure_default_branch("suite-1", checkout_suite_content())

        head = snapshot_engine.get_head_snapshot(main.id)

        assert "tests/test_checkout.py" in head.code_files

    def test_suites_are_independent(self, branch_manager):
        first = branch_manager.ensure_default_branch("suite-1")
        second = branch_manager.ensure_default_branch("suite-2")

        assert first.id != second.id

    def test_empty_suite_id_rejected(self, branch_manager):
        with pytest.raises(ValidationError):
            branch_manager.ensure_default_branch("")


class TestCreateBranch:
    """Test cases for BranchManager.create_branch."""

    def test_fork_copies_parent_head(self, branch_manager, snapshot_engine):
        """The new branch starts from a copy of the parent's head content."""
        # Arrange
        main = branch_manager.ensure_default_branch("suite-1", checkout_suite_content())

        # Act
        feature = branch_manager.create_branch("suite-1", "feature-x", main.id, "Try things")

        # Assert
        assert feature.parent_branch_id == main.id
        assert feature.is_default is False
        assert feature.description == "Try things"
        assert feature.forked_from_snapshot_id == main.head_snapshot_id
        parent_head = snapshot_engine.get_head_snapshot(main.id)
        child_head = snapshot_engine.get_head_snapshot(feature.id)
        assert child_head.id != parent_head.id
        assert child_head.content_hash == parent_head.content_hash
        assert child_head.branch_id == feature.id

    def test_defaults_to_default_branch_parent(self, branch_manager):
        """Omitting the parent forks from the suite's default branch, creating it if needed."""
        feature = branch_manager.create_branch("suite-1", "feature-x")

        main = branch_manager.ensure_default_branch("suite-1")
        assert feature.parent_branch_id == main.id

    def test_name_is_trimmed(self, branch_manager):
        feature = branch_manager.create_branch("suite-1", "  feature-x  ")

        assert feature.name == "feature-x"

    def test_duplicate_name_rejected(self, branch_manager):
        branch_manager.create_branch("suite-1", "feature-x")

        with pytest.raises(ValidationError, match="already exists"):
            branch_manager.create_branch("suite-1", "feature-x")

    def test_same_name_allowed_in_other_suite(self, branch_manager):
        branch_manager.create_branch("suite-1", "feature-x")

        other = branch_manager.create_branch("suite-2", "feature-x")

        assert other.suite_id == "suite-2"

    @pytest.mark.parametrize("name", ["", "   ", "x" * 101])
    def test_invalid_names_rejected(self, branch_manager, name):
        with pytest.raises(ValidationError) as exc_info:
            branch_manager.create_branch("suite-1", name)

        assert exc_info.value.field_name == "name"

    def test_missing_parent_rejected(self, branch_manager):
        with pytest.raises(ValidationError) as exc_info:
            branch_manager.create_branch("suite-1", "feature-x", "missing")

        assert exc_info.value.field_name == "parent_branch_id"

    def test_parent_from_other_suite_rejected(self, branch_manager):
        other_main = branch_manager.ensure_default_branch("suite-2")

        with pytest.raises(ValidationError, match="belongs to suite"):
            branch_manager.create_branch("suite-1", "feature-x", other_main.id)

    def test_archived_parent_rejected(self, branch_manager):
        feature = branch_manager.create_branch("suite-1", "feature-x")
        branch_manager.update_branch(feature.id, status=BranchStatus.ARCHIVED)

        with pytest.raises(ValidationError, match="archived"):
            branch_manager.create_branch("suite-1", "feature-y", feature.id)

    def test_fork_of_fork(self, branch_manager):
        feature = branch_manager.create_branch("suite-1", "feature-x")

        nested = branch_manager.create_branch("suite-1", "feature-x-1", feature.id)

        assert nested.parent_branch_id == feature.id


class TestLineage:
    """Test cases for ancestors and children."""

    def test_ancestors_nearest_first(self, branch_manager):
        main = branch_manager.ensure_default_branch("suite-1")
        feature = branch_manager.create_branch("suite-1", "feature", main.id)
        nested = branch_manager.create_branch("suite-1", "nested", feature.id)

        ancestors = branch_manager.get_ancestors(nested.id)

        assert [b.id for b in ancestors] == [feature.id, main.id]
        assert branch_manager.get_ancestors(main.id) == []

    def test_children(self, branch_manager):
        main = branch_manager.ensure_default_branch("suite-1")
        first = branch_manager.create_branch("suite-1", "a", main.id)
        second = branch_manager.create_branch("suite-1", "b", main.id)

        children = branch_manager.get_children(main.id)

        assert {b.id for b in children} == {first.id, second.id}

    def test_details_count_snapshots(self, branch_manager, snapshot_engine):
        main = branch_manager.ensure_default_branch("suite-1")
        snapshot_engine.capture_snapshot(main.id, checkout_suite_content())

        details = branch_manager.get_branch_details(main.id)

        assert details.snapshot_count == 2
        assert details.head_snapshot.id == details.branch.head_snapshot_id

    def test_unknown_branch_raises(self, branch_manager):
        with pytest.raises(NotFoundError):
            branch_manager.get_branch("missing")


class TestUpdateBranch:
    """Test cases for BranchManager.update_branch."""

    def test_rename_and_describe(self, branch_manager):
        feature = branch_manager.create_branch("suite-1", "feature-x")

        updated = branch_manager.update_branch(feature.id, name="feature-y", description="new")

        assert updated.name == "feature-y"
        assert updated.description == "new"
        assert branch_manager.get_branch(feature.id).name == "feature-y"

    def test_rename_to_existing_name_rejected(self, branch_manager):
        branch_manager.create_branch("suite-1", "a")
        second = branch_manager.create_branch("suite-1", "b")

        with pytest.raises(ValidationError, match="already exists"):
            branch_manager.update_branch(second.id, name="a")

    @pytest.mark.parametrize(
        "status", [BranchStatus.MERGED, BranchStatus.CLOSED, BranchStatus.ARCHIVED]
    )
    def test_active_branch_can_leave_active(self, branch_manager, status):
        feature = branch_manager.create_branch("suite-1", "feature-x")

        updated = branch_manager.update_branch(feature.id, status=status)

        assert updated.status == status

    def test_terminal_status_cannot_change(self, branch_manager):
        """Merged, closed and archived branches never move back to active."""
        feature = branch_manager.create_branch("suite-1", "feature-x")
        branch_manager.update_branch(feature.id, status=BranchStatus.CLOSED)

        with pytest.raises(ValidationError, match="Cannot change status"):
            branch_manager.update_branch(feature.id, status=BranchStatus.ACTIVE)

    def test_default_branch_status_is_fixed(self, branch_manager):
        main = branch_manager.ensure_default_branch("suite-1")

        with pytest.raises(ValidationError, match="default branch"):
            branch_manager.update_branch(main.id, status=BranchStatus.ARCHIVED)

    def test_default_branch_can_be_renamed(self, branch_manager):
        main = branch_manager.ensure_default_branch("suite-1")

        updated = branch_manager.update_branch(main.id, name="trunk")

        assert updated.name == "trunk"
        assert updated.is_default is True


class TestDeleteBranch:
    """Test cases for BranchManager.delete_branch."""

    def test_delete_keeps_snapshots(self, branch_manager, snapshot_engine):
        """Deleting a branch removes it but its snapshots stay addressable."""
        # Arrange
        feature = branch_manager.create_branch("suite-1", "feature-x")
        head_id = feature.head_snapshot_id

        # Act
        branch_manager.delete_branch(feature.id)

        # Assert
        with pytest.raises(NotFoundError):
            branch_manager.get_branch(feature.id)
        assert snapshot_engine.get_snapshot(head_id).branch_id == feature.id

    def test_default_branch_cannot_be_deleted(self, branch_manager):
        main = branch_manager.ensure_default_branch("suite-1")

        with pytest.raises(ValidationError, match="default branch"):
            branch_manager.delete_branch(main.id)

    def test_branch_with_children_cannot_be_deleted(self, branch_manager):
        feature = branch_manager.create_branch("suite-1", "feature-x")
        branch_manager.create_branch("suite-1", "nested", feature.id)

        with pytest.raises(ValidationError, match="child branches"):
            branch_manager.delete_branch(feature.id)

    def test_branch_in_open_merge_request_cannot_be_deleted(self, engine, branch_manager):
        main = engine.create_suite("suite-1", checkout_suite_content())
        feature = engine.create_branch("suite-1", "feature-x", main.id)
        request = engine.create_merge_request(feature.id, main.id)

        with pytest.raises(ValidationError, match=request.id):
            branch_manager.delete_branch(feature.id)

    def test_branch_deletable_after_request_closed(self, engine, branch_manager):
        main = engine.create_suite("suite-1", checkout_suite_content())
        feature = engine.create_branch("suite-1", "feature-x", main.id)
        request = engine.create_merge_request(feature.id, main.id)
        engine.close_merge_request(request.id)

        branch_manager.delete_branch(feature.id)

        assert [b.name for b in branch_manager.list_branches("suite-1")] == ["main"]

    def test_unknown_branch_raises(self, branch_manager):
        with pytest.raises(NotFoundError):
            branch_manager.delete_branch("missing")
