"""Root pytest configuration for all tests.

Provides an engine wired over a private in-memory SQLite store for every
test that asks for one.
"""

import logging

import pytest

from src.api.suite_branching import SuiteBranching
from src.core.config import SuiteBranchingConfig
from src.storage.database import IN_MEMORY, Database

# Engine INFO logs are noise in test output
logging.getLogger("src").setLevel(logging.WARNING)


@pytest.fixture
def db():
    database = Database(IN_MEMORY)
    yield database
    database.close()


@pytest.fixture
def engine(db) -> SuiteBranching:
    """SuiteBranching over the in-memory store with a small default config."""
    config = SuiteBranchingConfig(
        database_path=IN_MEMORY,
        default_config={"timeout": 30, "retries": 1},
        default_actor="tester",
    )
    return SuiteBranching(config, db=db)


@pytest.fixture
def snapshot_engine(engine):
    return engine.snapshots


@pytest.fixture
def branch_manager(engine):
    return engine.branches


@pytest.fixture
def diff_engine(engine):
    return engine.diffs


@pytest.fixture
def coordinator(engine):
    return engine.merges
