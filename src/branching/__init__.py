"""Branch lifecycle and lineage for test suites."""

from src.branching.branch_manager import DEFAULT_BRANCH_NAME, BranchManager

__all__ = [
    'DEFAULT_BRANCH_NAME',
    'BranchManager',
]
