"""Integration tests for file-backed state and configuration.

Tests that branch, snapshot and merge state written by one engine instance
is read back by the next, configured through a saved YAML file.
"""

import pytest

from src.api.suite_branching import SuiteBranching
from src.core.config import ConfigLoader, SuiteBranchingConfig
from src.core.errors import DiffCancelledError
from src.models.merge import HistoryAction, MergeRequestStatus


@pytest.fixture
def config_path(tmp_path):
    """Saved configuration pointing at a database under tmp_path."""
    path = str(tmp_path / ".suite-branching" / "config.yaml")
    ConfigLoader.save(path, SuiteBranchingConfig(
        database_path=str(tmp_path / ".suite-branching" / "branching.db"),
        default_branch_name="trunk",
        default_config={"timeout": 30},
        default_actor="ci-bot",
    ))
    return path


class TestStatePersistence:
    """State survives closing and reopening the engine."""

    def test_merge_state_survives_restart(self, config_path):
        """A merge request resolved in one session executes in the next."""
        # Arrange: first session creates a conflicting request
        with SuiteBranching(ConfigLoader.load(config_path, apply_env=False)) as engine:
            trunk = engine.create_suite("checkout")
            feature = engine.create_branch("checkout", "feature-x", trunk.id)
            engine.capture_snapshot(feature.id, {"config": {"timeout": 60}})
            engine.capture_snapshot(trunk.id, {"config": {"timeout": 45}})
            request = engine.create_merge_request(feature.id, trunk.id)
            conflict_id = engine.list_conflicts(request.id)[0].conflict.id

        # Act: second session resolves and merges
        with SuiteBranching(ConfigLoader.load(config_path, apply_env=False)) as engine:
            engine.resolve_conflict(conflict_id, "source")
            merged = engine.execute_merge(request.id)

        # Assert: third session sees the merged state
        with SuiteBranching(ConfigLoader.load(config_path, apply_env=False)) as engine:
            branches = {b.name: b for b in engine.list_branches("checkout")}
            assert set(branches) == {"trunk", "feature-x"}
            assert branches["trunk"].head_snapshot_id == merged.id
            assert engine.get_snapshot(merged.id).config == {"timeout": 60}

            stored = engine.get_merge_request(request.id)
            assert stored.status == MergeRequestStatus.MERGED
            assert stored.merged_by == "ci-bot"
            assert [h.action for h in engine.get_history(request.id)] == [
                HistoryAction.CREATED,
                HistoryAction.CONFLICT_DETECTED,
                HistoryAction.RESOLVED,
                HistoryAction.MERGED,
            ]

    def test_default_branch_name_from_config(self, config_path):
        with SuiteBranching(ConfigLoader.load(config_path, apply_env=False)) as engine:
            trunk = engine.create_suite("checkout")

            assert trunk.name == "trunk"
            assert trunk.created_by == "ci-bot"
            assert engine.get_head_snapshot(trunk.id).config == {"timeout": 30}


class TestDiffDeadline:
    """Configured diff deadlines cancel long diffs without partial results."""

    def test_expired_deadline_cancels_merge_request_creation(self, tmp_path):
        config = SuiteBranchingConfig(
            database_path=str(tmp_path / "branching.db"),
            diff_timeout_seconds=1e-9,
        )
        with SuiteBranching(config) as engine:
            main = engine.create_suite("checkout")
            feature = engine.create_branch("checkout", "feature-x", main.id)
            engine.capture_snapshot(feature.id, {"codeFiles": {"t.py": "a\nb\nc"}})

            with pytest.raises(DiffCancelledError):
                engine.create_merge_request(feature.id, main.id)

            assert engine.list_merge_requests("checkout") == []
